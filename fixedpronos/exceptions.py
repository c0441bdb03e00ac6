"""Ошибки платежного сервиса"""
from typing import Optional


class PaymentError(Exception):
    """Базовая ошибка платежного сервиса"""


class ValidationError(PaymentError):
    """Отсутствует или некорректно обязательное поле (до любых побочных эффектов)"""


class InvalidPlanError(ValidationError):
    """Тариф не входит в basic | pro | vip"""
    
    def __init__(self, plan: object):
        super().__init__(f"Неизвестный тариф: {plan!r}")
        self.plan = plan


class NotFoundError(PaymentError):
    """Идентификатор корреляции не указывает ни на один платеж"""


class GatewayError(PaymentError):
    """Вызов MoneyFusion не удался или вернул неожиданный ответ"""


class PersistenceError(PaymentError):
    """Ошибка записи или чтения в базе данных"""


class PartialFailureError(PaymentError):
    """
    Статус платежа сохранен, но выдача подписки не удалась.
    
    Повторная доставка webhook будет считаться дубликатом,
    поэтому такой платеж нужно сверить вручную.
    """
    
    def __init__(self, payment_id: str, cause: Optional[BaseException] = None):
        super().__init__(f"Платеж {payment_id} подтвержден, но подписка не выдана: {cause}")
        self.payment_id = payment_id
        self.cause = cause
