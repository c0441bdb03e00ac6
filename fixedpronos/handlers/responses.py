"""JSON ответы и отображение ошибок на HTTP статусы"""
from typing import Any, Optional

from aiohttp import web
from pydantic import TypeAdapter

from fixedpronos.exceptions import (
    GatewayError, NotFoundError, PartialFailureError, PaymentError, PersistenceError, ValidationError
)

USER_ID_HEADER = "X-User-Id"

_JSON = TypeAdapter(Any)


def _dumps(data: Any) -> str:
    # Decimal, datetime и pydantic модели
    return _JSON.dump_json(data).decode()


def json_response(data: Any, status: int = 200) -> web.Response:
    return web.json_response(data, status=status, dumps=_dumps)


def error_response(error: PaymentError, gateway_message: str = "Failed to initiate payment") -> web.Response:
    """Переводит ошибку в ответ без внутренних подробностей"""
    if isinstance(error, ValidationError):
        return json_response({'success': False, 'error': str(error)}, status=400)
    if isinstance(error, NotFoundError):
        return json_response({'success': False, 'error': str(error)}, status=404)
    if isinstance(error, GatewayError):
        return json_response({'success': False, 'error': gateway_message}, status=502)
    if isinstance(error, PartialFailureError):
        return json_response({'success': False, 'error': 'Payment recorded, subscription pending review'}, status=500)
    if isinstance(error, PersistenceError):
        return json_response({'success': False, 'error': 'Failed to update payment'}, status=500)
    return json_response({'success': False, 'error': 'Internal error'}, status=500)


def get_user_id(request: web.Request) -> Optional[str]:
    """ID пользователя проставляет внешний слой аутентификации"""
    user_id = request.headers.get(USER_ID_HEADER, "").strip()
    return user_id or None


async def read_json(request: web.Request) -> dict:
    """Читает JSON тело запроса, пустое или битое тело -> ValidationError"""
    try:
        data = await request.json()
    except ValueError:
        raise ValidationError("Request body must be valid JSON")
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data
