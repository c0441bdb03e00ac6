import functools
import logging
from aiohttp import web

from fixedpronos.constants import MAX_MANUAL_GRANT_MONTHS, MAX_PAGE_SIZE, PAYMENT_STATUSES
from fixedpronos.exceptions import PaymentError, ValidationError
from fixedpronos.handlers.responses import error_response, get_user_id, json_response, read_json
from fixedpronos.services.payments import PaymentService
from fixedpronos.services.reconciliation import ReconciliationService
from fixedpronos.services.subscriptions import SubscriptionService

logger = logging.getLogger(__name__)


def is_admin(request: web.Request, user_id: str) -> bool:
    """Проверяет, является ли пользователь администратором"""
    return user_id in request.app['admin_user_ids']


def admin_required(handler):
    """Пропускает только администраторов из списка ADMIN_USER_IDS"""
    @functools.wraps(handler)
    async def wrapper(request: web.Request) -> web.Response:
        user_id = get_user_id(request)
        if not user_id:
            return json_response({'error': 'Authentication required'}, status=401)
        if not is_admin(request, user_id):
            logger.warning(f"Попытка доступа к админке без прав: user_id={user_id}")
            return json_response({'error': 'Admin access required'}, status=403)
        return await handler(request, user_id)
    return wrapper


def _positive_int(value, name: str, maximum: int) -> int:
    """Целое из query или JSON: 1.9, true и "2.5" отклоняются, а не округляются"""
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise ValidationError(f"{name} must be an integer")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be an integer")
    if number < 1 or number > maximum:
        raise ValidationError(f"{name} must be between 1 and {maximum}")
    return number


@admin_required
async def list_payments(request: web.Request, admin_id: str) -> web.Response:
    """Все платежи с фильтром по статусу и пагинацией"""
    payment_service: PaymentService = request.app['payment_service']
    status = request.query.get('status') or None
    
    try:
        if status and status not in PAYMENT_STATUSES:
            raise ValidationError(f"Unknown status: {status}")
        page = _positive_int(request.query.get('page', '1'), 'page', 10_000)
        limit = _positive_int(request.query.get('limit', '10'), 'limit', MAX_PAGE_SIZE)
        payments, total = await payment_service.list_payments(status, page, limit)
    except PaymentError as e:
        return error_response(e)
    
    return json_response({
        'payments': payments,
        'pagination': {
            'page': page,
            'limit': limit,
            'total': total,
            'pages': (total + limit - 1) // limit,
        }
    })


@admin_required
async def process_payment(request: web.Request, admin_id: str) -> web.Response:
    """Ручное подтверждение или отклонение платежа"""
    reconciliation: ReconciliationService = request.app['reconciliation']
    payment_id = request.match_info['payment_id']
    
    try:
        data = await read_json(request)
        result = await reconciliation.process_manual(
            payment_id, data.get('status'), admin_id, notes=data.get('notes')
        )
    except PaymentError as e:
        logger.error(f"Ошибка обработки платежа {payment_id} админом {admin_id}: {e}")
        return error_response(e)
    
    logger.info(f"👤 Админ {admin_id} обработал платеж {payment_id}: {result['outcome']}")
    return json_response({'success': True, 'result': result})


@admin_required
async def list_subscriptions(request: web.Request, admin_id: str) -> web.Response:
    """Все подписки"""
    subscription_service: SubscriptionService = request.app['subscription_service']
    
    try:
        subscriptions = await subscription_service.get_all()
    except PaymentError as e:
        return error_response(e)
    
    return json_response({'subscriptions': subscriptions})


@admin_required
async def grant_subscription(request: web.Request, admin_id: str) -> web.Response:
    """Ручная выдача подписки"""
    subscription_service: SubscriptionService = request.app['subscription_service']
    
    try:
        data = await read_json(request)
        user_id = data.get('userId')
        if not isinstance(user_id, str) or not user_id.strip():
            raise ValidationError("userId is required")
        months = _positive_int(data.get('months', 1), 'months', MAX_MANUAL_GRANT_MONTHS)
        subscription = await subscription_service.grant_manual(user_id.strip(), data.get('plan'), months)
    except PaymentError as e:
        return error_response(e)
    
    logger.info(f"👤 Админ {admin_id} выдал подписку пользователю {user_id}")
    return json_response({'subscription': subscription}, status=201)


@admin_required
async def revoke_subscription(request: web.Request, admin_id: str) -> web.Response:
    """Отмена подписки"""
    subscription_service: SubscriptionService = request.app['subscription_service']
    user_id = request.match_info['user_id']
    
    try:
        revoked = await subscription_service.revoke(user_id)
    except PaymentError as e:
        return error_response(e)
    
    if not revoked:
        return json_response({'error': 'Subscription not found'}, status=404)
    return json_response({'success': True})


@admin_required
async def get_stats(request: web.Request, admin_id: str) -> web.Response:
    """Сводка для админ-панели"""
    subscription_service: SubscriptionService = request.app['subscription_service']
    payment_service: PaymentService = request.app['payment_service']
    
    try:
        active = await subscription_service.count_active()
        payments_by_status = await payment_service.count_by_status()
        revenue = await subscription_service.total_revenue()
    except PaymentError as e:
        return error_response(e)
    
    return json_response({
        'activeSubscriptions': active,
        'payments': payments_by_status,
        'revenue': revenue,
    })


def setup_admin_routes(app: web.Application) -> None:
    app.router.add_route('GET', '/api/admin/payments', list_payments)
    app.router.add_route('PUT', '/api/admin/payments/{payment_id}/process', process_payment)
    app.router.add_route('GET', '/api/admin/subscriptions', list_subscriptions)
    app.router.add_route('POST', '/api/admin/subscriptions', grant_subscription)
    app.router.add_route('DELETE', '/api/admin/subscriptions/{user_id}', revoke_subscription)
    app.router.add_route('GET', '/api/admin/stats', get_stats)
