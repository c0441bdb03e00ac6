"""Репозиторий истории транзакций"""
import uuid
import asyncpg
from decimal import Decimal
from typing import Optional

from fixedpronos.db.pool import db_errors
from fixedpronos.models.subscription import TransactionRecord

TRANSACTION_COLUMNS = "id, user_id, type, amount, description, status, payment_id, created_at"


def _row_to_record(row: asyncpg.Record) -> TransactionRecord:
    record = dict(row)
    if record['payment_id'] is not None:
        record['payment_id'] = str(record['payment_id'])
    return record  # type: ignore


class TransactionRepository:
    """Только добавление: записи истории никогда не меняются"""
    
    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool
    
    @db_errors
    async def append(
        self,
        user_id: str,
        type: str,
        amount: Decimal,
        description: str,
        status: str,
        payment_id: Optional[str] = None
    ) -> Optional[TransactionRecord]:
        """
        Добавить транзакцию
        
        Returns:
            Новая запись или None, если для payment_id запись уже есть
        """
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                INSERT INTO transactions (user_id, type, amount, description, status, payment_id)
                VALUES ($1, $2, $3, $4, $5, $6)
                ON CONFLICT (payment_id) DO NOTHING
                RETURNING {TRANSACTION_COLUMNS}
                """,
                user_id, type, amount, description, status,
                uuid.UUID(payment_id) if payment_id else None
            )
            return _row_to_record(row) if row else None
    
    @db_errors
    async def total_revenue(self) -> Decimal:
        """Сумма завершенных платежей"""
        async with self.pool.acquire() as conn:
            total = await conn.fetchval(
                """
                SELECT COALESCE(sum(amount), 0)
                FROM transactions
                WHERE type = 'payment' AND status = 'completed'
                """
            )
            return Decimal(total)
