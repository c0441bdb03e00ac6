import asyncio
import functools
import asyncpg
from typing import Optional
import logging

from fixedpronos.exceptions import PersistenceError

logger = logging.getLogger(__name__)

_pool: Optional[asyncpg.Pool] = None


async def init_pool(database_url: str, command_timeout: float = 10.0) -> asyncpg.Pool:
    """Инициализирует пул соединений с PostgreSQL"""
    global _pool
    _pool = await asyncpg.create_pool(
        database_url, 
        min_size=1, 
        max_size=10,
        command_timeout=command_timeout
    )
    logger.info("✅ Подключение к базе данных установлено")
    return _pool


async def close_pool() -> None:
    """Закрывает пул соединений"""
    global _pool
    if _pool:
        await _pool.close()
        _pool = None
        logger.info("🔒 Соединение с базой данных закрыто")


def db_errors(func):
    """Переводит ошибки asyncpg и таймауты в PersistenceError"""
    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, asyncio.TimeoutError) as e:
            logger.error(f"Ошибка базы данных в {func.__qualname__}: {e!r}")
            raise PersistenceError(f"{func.__qualname__} failed") from e
    return wrapper
