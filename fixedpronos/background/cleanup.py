import asyncio
import logging

from fixedpronos.constants import CLEANUP_INTERVAL_SECONDS
from fixedpronos.services.subscriptions import SubscriptionService

logger = logging.getLogger(__name__)


async def expire_subscriptions_once(subscription_service: SubscriptionService) -> int:
    """Помечает просроченные подписки как expired, возвращает их количество"""
    expired = await subscription_service.expire_lapsed()
    if expired:
        logger.info(f"⏰ Истекло подписок: {len(expired)}")
    return len(expired)


async def subscription_cleanup_task(
    subscription_service: SubscriptionService,
    interval: float = CLEANUP_INTERVAL_SECONDS
):
    """Фоновая задача для перевода истекших подписок в статус expired"""
    logger.info("🔄 Запущена фоновая задача проверки подписок")
    
    try:
        while True:
            try:
                await asyncio.sleep(interval)
                await expire_subscriptions_once(subscription_service)
            
            except asyncio.CancelledError:
                # Позволяем задаче корректно завершиться при отмене
                logger.info("🛑 Задача проверки подписок остановлена")
                raise
            
            except Exception as e:
                logger.error(f"Ошибка в задаче проверки подписок: {e}")
    
    except asyncio.CancelledError:
        logger.info("✅ Задача проверки подписок завершена")
        raise
