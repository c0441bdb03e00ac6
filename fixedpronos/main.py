import asyncio
from aiohttp import web

from fixedpronos.config import config, logger
from fixedpronos.db.pool import init_pool, close_pool
from fixedpronos.db.schema import init_schema
from fixedpronos.db.repositories.payments import PaymentRepository
from fixedpronos.db.repositories.subscriptions import SubscriptionRepository
from fixedpronos.db.repositories.transactions import TransactionRepository
from fixedpronos.clients.moneyfusion_client import MoneyFusionClient
from fixedpronos.background.cleanup import subscription_cleanup_task
from fixedpronos.web import create_app


async def main():
    """Главная функция запуска сервиса"""
    logger.info("🚀 Запуск платежного сервиса FixedPronos...")
    
    # Инициализация базы данных
    pool = await init_pool(config.database_url, command_timeout=config.db_command_timeout_seconds)
    await init_schema(pool)
    
    # Клиент MoneyFusion
    gateway = MoneyFusionClient(
        api_url=config.moneyfusion_api_url,
        status_url=config.moneyfusion_status_url,
        timeout_seconds=config.provider_timeout_seconds
    )
    
    app = create_app(
        PaymentRepository(pool),
        SubscriptionRepository(pool),
        TransactionRepository(pool),
        gateway,
        public_base_url=config.public_base_url,
        admin_user_ids=config.admin_user_ids,
        currency=config.payment_currency
    )
    
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, config.host, config.port)
    await site.start()
    
    # Запуск фоновой задачи проверки подписок
    cleanup_task = asyncio.create_task(subscription_cleanup_task(app['subscription_service']))
    
    logger.info(f"✅ Сервис запущен на {config.host}:{config.port}")
    logger.info(f"👤 Admin IDs: {', '.join(config.admin_user_ids)}")
    
    try:
        await asyncio.Event().wait()
    finally:
        # Очистка ресурсов
        cleanup_task.cancel()
        try:
            await cleanup_task
        except asyncio.CancelledError:
            pass
        await runner.cleanup()
        await gateway.close()
        await close_pool()
        logger.info("👋 Сервис остановлен")


if __name__ == "__main__":
    asyncio.run(main())
