from typing import Iterable

from aiohttp import web

from fixedpronos.clients.moneyfusion_client import MoneyFusionClient
from fixedpronos.db.repositories.payments import PaymentRepository
from fixedpronos.db.repositories.subscriptions import SubscriptionRepository
from fixedpronos.db.repositories.transactions import TransactionRepository
from fixedpronos.handlers.admin import setup_admin_routes
from fixedpronos.handlers.responses import json_response
from fixedpronos.handlers.user import setup_user_routes
from fixedpronos.services.payments import PaymentService
from fixedpronos.services.reconciliation import ReconciliationService
from fixedpronos.services.subscriptions import SubscriptionService
from fixedpronos.webhook.moneyfusion_webhook import setup_webhook_routes


async def handle_health(request: web.Request) -> web.Response:
    return json_response({'status': 'ok'})


def create_app(
    payments: PaymentRepository,
    subscriptions: SubscriptionRepository,
    transactions: TransactionRepository,
    gateway: MoneyFusionClient,
    public_base_url: str,
    admin_user_ids: Iterable[str],
    currency: str = "XOF"
) -> web.Application:
    """Создает aiohttp приложение со всеми сервисами"""
    subscription_service = SubscriptionService(subscriptions, transactions)
    
    app = web.Application()
    app['public_base_url'] = public_base_url.rstrip("/")
    app['admin_user_ids'] = frozenset(admin_user_ids)
    app['subscription_service'] = subscription_service
    app['payment_service'] = PaymentService(payments, gateway, currency=currency)
    app['reconciliation'] = ReconciliationService(payments, subscription_service)
    
    app.router.add_route('GET', '/health', handle_health)
    setup_webhook_routes(app)
    setup_user_routes(app)
    setup_admin_routes(app)
    
    return app
