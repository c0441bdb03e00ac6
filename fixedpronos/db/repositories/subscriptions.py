from datetime import datetime
from typing import Optional
import asyncpg
import logging

from fixedpronos.db.pool import db_errors
from fixedpronos.models.subscription import SubscriptionRecord

logger = logging.getLogger(__name__)

SUBSCRIPTION_COLUMNS = """
    user_id, plan, status, period_start, period_end,
    cancel_at_period_end, created_at, updated_at
"""


class SubscriptionRepository:
    """Репозиторий для работы с подписками в БД"""
    
    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool
    
    @db_errors
    async def get_by_user_id(self, user_id: str) -> Optional[SubscriptionRecord]:
        """Получает подписку по user_id"""
        async with self.pool.acquire() as conn:
            result = await conn.fetchrow(
                f"SELECT {SUBSCRIPTION_COLUMNS} FROM subscriptions WHERE user_id = $1",
                user_id
            )
            return dict(result) if result else None  # type: ignore
    
    @db_errors
    async def upsert(
        self,
        user_id: str,
        plan: str,
        status: str,
        period_start: datetime,
        period_end: datetime,
        cancel_at_period_end: bool = False
    ) -> SubscriptionRecord:
        """Создает или обновляет подписку пользователя"""
        async with self.pool.acquire() as conn:
            result = await conn.fetchrow(
                f"""
                INSERT INTO subscriptions (
                    user_id, plan, status, period_start, period_end, cancel_at_period_end
                )
                VALUES ($1, $2, $3, $4, $5, $6)
                ON CONFLICT (user_id)
                DO UPDATE SET plan = $2, status = $3, period_start = $4, period_end = $5,
                              cancel_at_period_end = $6, updated_at = now()
                RETURNING {SUBSCRIPTION_COLUMNS}
                """,
                user_id, plan, status, period_start, period_end, cancel_at_period_end
            )
            return dict(result)  # type: ignore
    
    @db_errors
    async def set_status(self, user_id: str, status: str) -> bool:
        """Меняет статус подписки, возвращает False если подписки нет"""
        async with self.pool.acquire() as conn:
            result = await conn.execute(
                "UPDATE subscriptions SET status = $2, updated_at = now() WHERE user_id = $1",
                user_id, status
            )
            return result != "UPDATE 0"
    
    @db_errors
    async def get_all(self) -> list[SubscriptionRecord]:
        """Получает все подписки"""
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                f"""
                SELECT {SUBSCRIPTION_COLUMNS}
                FROM subscriptions
                ORDER BY period_end DESC
                """
            )
            return [dict(row) for row in rows]  # type: ignore
    
    @db_errors
    async def count_active(self, now: datetime) -> int:
        """Количество действующих подписок"""
        async with self.pool.acquire() as conn:
            return await conn.fetchval(
                "SELECT count(*) FROM subscriptions WHERE status = 'active' AND period_end > $1",
                now
            )
    
    @db_errors
    async def expire_lapsed(self, now: datetime) -> list[str]:
        """Помечает истекшие активные подписки как expired, возвращает их user_id"""
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                """
                UPDATE subscriptions
                SET status = 'expired', updated_at = now()
                WHERE status = 'active' AND period_end <= $1
                RETURNING user_id
                """,
                now
            )
            return [row['user_id'] for row in rows]
