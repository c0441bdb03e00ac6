"""Webhook и платежные маршруты MoneyFusion"""
import logging
from datetime import datetime, timezone
from html import escape

import pydantic
from aiohttp import web

from fixedpronos.exceptions import NotFoundError, PartialFailureError, PaymentError, ValidationError
from fixedpronos.handlers.responses import error_response, json_response, read_json
from fixedpronos.models.webhook import MoneyFusionWebhook
from fixedpronos.services.payments import PaymentService
from fixedpronos.services.reconciliation import OUTCOME_DUPLICATE, ReconciliationService

logger = logging.getLogger(__name__)


async def handle_webhook(request: web.Request) -> web.Response:
    """
    Обработчик webhook_url - уведомление MoneyFusion о статусе сессии
    
    ID платежа берется из query (мы добавили его в webhook_url),
    затем из personal_Info, в крайнем случае платеж ищется по tokenPay.
    tokenPay обязателен и должен совпасть с токеном, сохраненным при инициации.
    """
    reconciliation: ReconciliationService = request.app['reconciliation']
    
    try:
        data = await read_json(request)
        payload = MoneyFusionWebhook.model_validate(data)
    except ValidationError as e:
        logger.error(f"Некорректное тело webhook: {e}")
        return json_response({'error': str(e)}, status=400)
    except pydantic.ValidationError as e:
        logger.error(f"Некорректное тело webhook: {e.error_count()} ошибок валидации")
        return json_response({'error': 'Invalid webhook payload'}, status=400)
    
    payment_id = request.query.get('paymentId') or payload.payment_id()
    
    logger.info(
        f"Получен webhook от MoneyFusion: event={payload.event}, "
        f"paymentId={payment_id}, transaction={payload.transaction_number}"
    )
    
    try:
        result = await reconciliation.reconcile(
            payment_id,
            payload.event,
            payload.to_metadata(datetime.now(timezone.utc)),
            payload.token_pay
        )
    except ValidationError as e:
        return json_response({'error': str(e)}, status=400)
    except NotFoundError:
        return json_response({'error': 'Payment not found'}, status=404)
    except PartialFailureError as e:
        logger.error(f"Частичный сбой обработки webhook для платежа {e.payment_id}: {e.cause}")
        return json_response({'error': 'Subscription activation failed'}, status=500)
    except PaymentError as e:
        logger.error(f"Ошибка обработки webhook: {e}")
        return json_response({'error': 'Failed to update payment'}, status=500)
    
    if result['outcome'] == OUTCOME_DUPLICATE:
        return json_response({'success': True, 'message': 'Duplicate notification'})
    return json_response({'success': True, 'message': 'Webhook processed successfully'})


async def handle_initiate(request: web.Request) -> web.Response:
    """Создает платеж и платежную сессию MoneyFusion"""
    payment_service: PaymentService = request.app['payment_service']
    
    try:
        data = await read_json(request)
        initiated = await payment_service.initiate(
            data.get('userId'),
            data.get('amount'),
            data.get('plan'),
            data.get('phoneNumber'),
            data.get('customerName'),
            callback_base_url=request.app['public_base_url']
        )
    except PaymentError as e:
        if not isinstance(e, ValidationError):
            logger.error(f"Ошибка инициации платежа: {e}")
        return error_response(e)
    
    return json_response({
        'success': True,
        'paymentId': initiated['payment_id'],
        'paymentUrl': initiated['redirect_url'],
        'token': initiated['correlation_token'],
    })


async def handle_status(request: web.Request) -> web.Response:
    """Проверка статуса платежа по токену (прокси в MoneyFusion)"""
    payment_service: PaymentService = request.app['payment_service']
    
    try:
        status = await payment_service.check_provider_status(request.match_info['token'])
    except PaymentError as e:
        return error_response(e, gateway_message="Failed to check payment status")
    
    return json_response(status)


async def handle_return(request: web.Request) -> web.Response:
    """Обработчик return_url - страница после возврата с MoneyFusion"""
    payment_service: PaymentService = request.app['payment_service']
    payment_id = request.query.get('paymentId', '')
    
    try:
        payment = await payment_service.get_payment(payment_id)
    except NotFoundError:
        return web.Response(
            text="Paiement introuvable.",
            status=404,
            content_type='text/html',
            charset='utf-8'
        )
    
    messages = {
        'approved': "✅ Paiement confirmé ! Votre abonnement est actif.",
        'rejected': "❌ Le paiement n'a pas abouti. Veuillez réessayer.",
    }
    text = messages.get(payment['status'], "⏳ Paiement en cours de traitement...")
    return web.Response(
        text=f"{text} Référence : {escape(payment['id'])}",
        content_type='text/html',
        charset='utf-8'
    )


def setup_webhook_routes(app: web.Application) -> None:
    """Регистрирует маршруты MoneyFusion"""
    app.router.add_route('POST', '/api/webhooks/moneyfusion', handle_webhook)
    app.router.add_route('POST', '/api/payment/moneyfusion/initiate', handle_initiate)
    app.router.add_route('GET', '/api/payment/moneyfusion/status/{token}', handle_status)
    app.router.add_route('GET', '/payment/callback', handle_return)
