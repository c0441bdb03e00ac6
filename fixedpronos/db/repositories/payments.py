"""Репозиторий для работы с платежами"""
import uuid
import asyncpg
from typing import Optional
from decimal import Decimal

from fixedpronos.db.pool import db_errors
from fixedpronos.models.payment import PaymentMetadata, PaymentRecord

PAYMENT_COLUMNS = """
    id, user_id, amount, currency, method, plan, status, correlation_token,
    mobile_number, mobile_provider, crypto_address, crypto_tx_hash, notes,
    metadata, processed_by, created_at, processed_at
"""


def _parse_id(payment_id: str) -> Optional[uuid.UUID]:
    """ID платежа приходит извне, поэтому мусор считаем ненайденным платежом"""
    try:
        return uuid.UUID(str(payment_id))
    except ValueError:
        return None


def _row_to_record(row: asyncpg.Record) -> PaymentRecord:
    record = dict(row)
    record['id'] = str(record['id'])
    record['metadata'] = PaymentMetadata.model_validate_json(record['metadata'] or "{}")
    return record  # type: ignore


class PaymentRepository:
    """Репозиторий для работы с платежами"""
    
    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool
    
    @db_errors
    async def create_payment(
        self,
        user_id: str,
        amount: Decimal,
        currency: str,
        method: str,
        status: str,
        plan: Optional[str] = None,
        mobile_number: Optional[str] = None,
        mobile_provider: Optional[str] = None,
        crypto_address: Optional[str] = None,
        crypto_tx_hash: Optional[str] = None,
        notes: Optional[str] = None
    ) -> PaymentRecord:
        """
        Создать новый платеж
        
        Args:
            user_id: ID пользователя
            amount: Сумма платежа
            currency: Валюта
            method: Способ оплаты (crypto, mobile_money, bank_transfer)
            status: Начальный статус (pending или processing)
            plan: Тариф, который выдается после подтверждения
        
        Returns:
            Созданная запись платежа
        """
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                INSERT INTO payments (
                    user_id, amount, currency, method, status, plan,
                    mobile_number, mobile_provider, crypto_address, crypto_tx_hash, notes
                )
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)
                RETURNING {PAYMENT_COLUMNS}
                """,
                user_id, amount, currency, method, status, plan,
                mobile_number, mobile_provider, crypto_address, crypto_tx_hash, notes
            )
            return _row_to_record(row)
    
    @db_errors
    async def get_payment(self, payment_id: str) -> Optional[PaymentRecord]:
        """Получить платеж по ID"""
        parsed = _parse_id(payment_id)
        if parsed is None:
            return None
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {PAYMENT_COLUMNS} FROM payments WHERE id = $1",
                parsed
            )
            return _row_to_record(row) if row else None
    
    @db_errors
    async def get_by_correlation_token(self, token: str) -> Optional[PaymentRecord]:
        """Получить платеж по токену сессии MoneyFusion (последний созданный)"""
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                SELECT {PAYMENT_COLUMNS}
                FROM payments
                WHERE correlation_token = $1
                ORDER BY created_at DESC
                LIMIT 1
                """,
                token
            )
            return _row_to_record(row) if row else None
    
    @db_errors
    async def attach_correlation_token(self, payment_id: str, token: str) -> None:
        """Сохранить токен сессии, выданный провайдером"""
        async with self.pool.acquire() as conn:
            await conn.execute(
                """
                UPDATE payments
                SET correlation_token = $2,
                    metadata = metadata || jsonb_build_object('provider_token', $2::text)
                WHERE id = $1
                """,
                _parse_id(payment_id), token
            )
    
    @db_errors
    async def transition_status(
        self,
        payment_id: str,
        expected_status: str,
        new_status: str,
        metadata: PaymentMetadata,
        processed_by: Optional[str] = None,
        notes: Optional[str] = None
    ) -> Optional[PaymentRecord]:
        """
        Атомарно сменить статус, только если он все еще равен expected_status
        
        Returns:
            Обновленная запись или None, если статус уже изменил другой запрос
        """
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                UPDATE payments
                SET status = $3::text,
                    metadata = $4::jsonb,
                    processed_by = COALESCE($5::text, processed_by),
                    notes = COALESCE($6::text, notes),
                    processed_at = CASE
                        WHEN $3::text IN ('approved', 'rejected') THEN now()
                        ELSE processed_at
                    END
                WHERE id = $1 AND status = $2
                RETURNING {PAYMENT_COLUMNS}
                """,
                _parse_id(payment_id), expected_status, new_status,
                metadata.model_dump_json(exclude_none=True), processed_by, notes
            )
            return _row_to_record(row) if row else None
    
    @db_errors
    async def get_user_payments(self, user_id: str) -> list[PaymentRecord]:
        """Получить все платежи пользователя"""
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                f"""
                SELECT {PAYMENT_COLUMNS}
                FROM payments
                WHERE user_id = $1
                ORDER BY created_at DESC
                """,
                user_id
            )
            return [_row_to_record(row) for row in rows]
    
    @db_errors
    async def list_payments(
        self,
        status: Optional[str] = None,
        limit: int = 10,
        offset: int = 0
    ) -> tuple[list[PaymentRecord], int]:
        """Страница платежей для админки и общее количество"""
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                f"""
                SELECT {PAYMENT_COLUMNS}
                FROM payments
                WHERE $1::text IS NULL OR status = $1
                ORDER BY created_at DESC
                LIMIT $2 OFFSET $3
                """,
                status, limit, offset
            )
            total = await conn.fetchval(
                "SELECT count(*) FROM payments WHERE $1::text IS NULL OR status = $1",
                status
            )
            return [_row_to_record(row) for row in rows], total
    
    @db_errors
    async def count_by_status(self) -> dict[str, int]:
        """Количество платежей в каждом статусе"""
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                "SELECT status, count(*) AS total FROM payments GROUP BY status"
            )
            return {row['status']: row['total'] for row in rows}
