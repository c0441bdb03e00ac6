"""Схема базы данных (создается при старте, идемпотентно)"""
import asyncpg
import logging

logger = logging.getLogger(__name__)

DDL_STATEMENTS = [
    # payments
    """
    CREATE TABLE IF NOT EXISTS payments (
        id                UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        user_id           TEXT NOT NULL,
        amount            NUMERIC(12, 2) NOT NULL CHECK (amount > 0),
        currency          TEXT NOT NULL,
        method            TEXT NOT NULL CHECK (method IN ('crypto', 'mobile_money', 'bank_transfer')),
        plan              TEXT CHECK (plan IN ('basic', 'pro', 'vip')),
        status            TEXT NOT NULL DEFAULT 'pending'
                          CHECK (status IN ('pending', 'processing', 'approved', 'rejected')),
        correlation_token TEXT,
        mobile_number     TEXT,
        mobile_provider   TEXT,
        crypto_address    TEXT,
        crypto_tx_hash    TEXT,
        notes             TEXT,
        metadata          JSONB NOT NULL DEFAULT '{}'::jsonb,
        processed_by      TEXT,
        created_at        TIMESTAMPTZ NOT NULL DEFAULT now(),
        processed_at      TIMESTAMPTZ
    )
    """,
    # токен корреляции уникален среди незавершенных платежей
    """
    CREATE UNIQUE INDEX IF NOT EXISTS payments_open_correlation_token_idx
        ON payments (correlation_token)
        WHERE correlation_token IS NOT NULL AND status NOT IN ('approved', 'rejected')
    """,
    """
    CREATE INDEX IF NOT EXISTS payments_user_id_idx ON payments (user_id, created_at DESC)
    """,
    # subscriptions (одна подписка на пользователя)
    """
    CREATE TABLE IF NOT EXISTS subscriptions (
        user_id              TEXT PRIMARY KEY,
        plan                 TEXT NOT NULL CHECK (plan IN ('basic', 'pro', 'vip')),
        status               TEXT NOT NULL
                             CHECK (status IN ('active', 'canceled', 'expired', 'pending')),
        period_start         TIMESTAMPTZ NOT NULL,
        period_end           TIMESTAMPTZ NOT NULL,
        cancel_at_period_end BOOLEAN NOT NULL DEFAULT FALSE,
        created_at           TIMESTAMPTZ NOT NULL DEFAULT now(),
        updated_at           TIMESTAMPTZ NOT NULL DEFAULT now(),
        CHECK (period_end > period_start)
    )
    """,
    # transactions (история, только добавление)
    """
    CREATE TABLE IF NOT EXISTS transactions (
        id          BIGSERIAL PRIMARY KEY,
        user_id     TEXT NOT NULL,
        type        TEXT NOT NULL,
        amount      NUMERIC(12, 2) NOT NULL,
        description TEXT NOT NULL,
        status      TEXT NOT NULL,
        payment_id  UUID UNIQUE REFERENCES payments (id),
        created_at  TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
]


async def init_schema(pool: asyncpg.Pool) -> None:
    """Создает таблицы, если их еще нет"""
    async with pool.acquire() as conn:
        async with conn.transaction():
            for stmt in DDL_STATEMENTS:
                await conn.execute(stmt)
    logger.info("✅ Схема базы данных проверена")
