import functools
import logging
from aiohttp import web

from fixedpronos.constants import PLAN_VIP
from fixedpronos.exceptions import PaymentError
from fixedpronos.handlers.responses import error_response, get_user_id, json_response, read_json
from fixedpronos.services.payments import PaymentService
from fixedpronos.services.subscriptions import SubscriptionService, can_access

logger = logging.getLogger(__name__)


def user_required(handler):
    """Пропускает только запросы с ID пользователя"""
    @functools.wraps(handler)
    async def wrapper(request: web.Request) -> web.Response:
        user_id = get_user_id(request)
        if not user_id:
            return json_response({'error': 'Authentication required'}, status=401)
        return await handler(request, user_id)
    return wrapper


@user_required
async def get_subscription_status(request: web.Request, user_id: str) -> web.Response:
    """Статус подписки и уровень доступа пользователя"""
    subscription_service: SubscriptionService = request.app['subscription_service']
    
    try:
        status = await subscription_service.get_status(user_id)
    except PaymentError as e:
        logger.error(f"Ошибка получения подписки {user_id}: {e}")
        return error_response(e)
    
    return json_response({
        'hasActiveSubscription': status['has_active_subscription'],
        'accessTier': status['access_tier'],
        'canAccessVIP': can_access(status['access_tier'], PLAN_VIP),
        'subscription': status['subscription'],
    })


@user_required
async def get_payment_history(request: web.Request, user_id: str) -> web.Response:
    """История платежей пользователя"""
    payment_service: PaymentService = request.app['payment_service']
    
    try:
        payments = await payment_service.get_history(user_id)
    except PaymentError as e:
        logger.error(f"Ошибка получения истории платежей {user_id}: {e}")
        return error_response(e)
    
    return json_response({'payments': payments})


@user_required
async def submit_payment(request: web.Request, user_id: str) -> web.Response:
    """Заявка на оплату (crypto, mobile money, перевод) с ручной проверкой"""
    payment_service: PaymentService = request.app['payment_service']
    
    try:
        data = await read_json(request)
        payment = await payment_service.submit_manual(
            user_id,
            data.get('amount'),
            data.get('method'),
            data.get('plan'),
            crypto_address=data.get('cryptoAddress'),
            crypto_tx_hash=data.get('cryptoTxHash'),
            mobile_number=data.get('mobileNumber'),
            mobile_provider=data.get('mobileProvider'),
            notes=data.get('notes')
        )
    except PaymentError as e:
        return error_response(e)
    
    return json_response({
        'payment': payment,
        'message': 'Payment request submitted successfully. It will be reviewed by our team.'
    }, status=201)


def setup_user_routes(app: web.Application) -> None:
    app.router.add_route('GET', '/api/user/subscription', get_subscription_status)
    app.router.add_route('GET', '/api/payments/history', get_payment_history)
    app.router.add_route('POST', '/api/payments/submit', submit_payment)
