"""Сервис инициации и приема платежей"""
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Optional
from urllib.parse import urlencode

from fixedpronos.clients.moneyfusion_client import MoneyFusionClient
from fixedpronos.constants import (
    METHOD_CRYPTO, METHOD_MOBILE_MONEY, PAYMENT_METHODS, PLANS, STATUS_PENDING, STATUS_PROCESSING
)
from fixedpronos.db.repositories.payments import PaymentRepository
from fixedpronos.exceptions import InvalidPlanError, NotFoundError, ValidationError
from fixedpronos.models.payment import InitiatedPayment, PaymentRecord

logger = logging.getLogger(__name__)

WEBHOOK_PATH = "/api/webhooks/moneyfusion"
RETURN_PATH = "/payment/callback"


def parse_amount(value: Any) -> Decimal:
    """Сумма должна быть положительным конечным числом"""
    if value is None or isinstance(value, bool):
        raise ValidationError("amount is required")
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValidationError("amount must be a number")
    if not amount.is_finite() or amount <= 0:
        raise ValidationError("amount must be a positive number")
    return amount


def require_text(**fields: Any) -> dict[str, str]:
    """Проверяет, что все поля переданы и не пустые"""
    missing = [
        name for name, value in fields.items()
        if not isinstance(value, str) or not value.strip()
    ]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")
    return {name: value.strip() for name, value in fields.items()}


def mask_phone(phone_number: str) -> str:
    return f"***{phone_number[-4:]}" if len(phone_number) > 4 else "***"


class PaymentService:
    """Сервис для создания платежей"""
    
    def __init__(
        self,
        payments: PaymentRepository,
        gateway: MoneyFusionClient,
        currency: str = "XOF"
    ):
        self.payments = payments
        self.gateway = gateway
        self.currency = currency
    
    async def initiate(
        self,
        user_id: Any,
        amount: Any,
        plan: Any,
        phone_number: Any,
        customer_name: Any,
        callback_base_url: str
    ) -> InitiatedPayment:
        """
        Инициирует оплату через MoneyFusion
        
        Запись платежа создается в статусе processing до вызова провайдера,
        чтобы ранний webhook нашел ее. Если провайдер не ответил, запись
        остается в processing, повторная попытка создает новую запись.
        
        Raises:
            ValidationError: не хватает полей или сумма некорректна
            GatewayError: MoneyFusion недоступен или ответил неожиданно
            PersistenceError: ошибка записи в БД
        """
        fields = require_text(
            userId=user_id,
            plan=plan,
            phoneNumber=phone_number,
            customerName=customer_name
        )
        parsed_amount = parse_amount(amount)
        if fields['plan'] not in PLANS:
            raise InvalidPlanError(fields['plan'])
        
        payment = await self.payments.create_payment(
            user_id=fields['userId'],
            amount=parsed_amount,
            currency=self.currency,
            method=METHOD_MOBILE_MONEY,
            status=STATUS_PROCESSING,
            plan=fields['plan'],
            mobile_number=fields['phoneNumber'],
            mobile_provider="moneyfusion"
        )
        payment_id = payment['id']
        
        base_url = callback_base_url.rstrip("/")
        query = urlencode({"paymentId": payment_id})
        
        logger.info(
            f"💳 Инициация платежа {payment_id}: user_id={fields['userId']}, "
            f"plan={fields['plan']}, amount={parsed_amount}, phone={mask_phone(fields['phoneNumber'])}"
        )
        
        session = await self.gateway.create_payment_session(
            payment_id=payment_id,
            user_id=fields['userId'],
            amount=parsed_amount,
            plan=fields['plan'],
            phone_number=fields['phoneNumber'],
            customer_name=fields['customerName'],
            return_url=f"{base_url}{RETURN_PATH}?{query}",
            webhook_url=f"{base_url}{WEBHOOK_PATH}?{query}"
        )
        
        await self.payments.attach_correlation_token(payment_id, session['token'])
        
        return {
            'payment_id': payment_id,
            'redirect_url': session['url'],
            'correlation_token': session['token'],
        }
    
    async def submit_manual(
        self,
        user_id: Any,
        amount: Any,
        method: Any,
        plan: Any,
        crypto_address: Optional[str] = None,
        crypto_tx_hash: Optional[str] = None,
        mobile_number: Optional[str] = None,
        mobile_provider: Optional[str] = None,
        notes: Optional[str] = None
    ) -> PaymentRecord:
        """Создает заявку на оплату, которую подтверждает администратор"""
        fields = require_text(userId=user_id, method=method, plan=plan)
        parsed_amount = parse_amount(amount)
        
        if fields['method'] not in PAYMENT_METHODS:
            raise ValidationError(f"Unknown payment method: {fields['method']}")
        if fields['plan'] not in PLANS:
            raise InvalidPlanError(fields['plan'])
        if fields['method'] == METHOD_CRYPTO and not crypto_address:
            raise ValidationError("Crypto address is required for crypto payments")
        if fields['method'] == METHOD_MOBILE_MONEY and (not mobile_number or not mobile_provider):
            raise ValidationError("Mobile number and provider are required for mobile money payments")
        
        payment = await self.payments.create_payment(
            user_id=fields['userId'],
            amount=parsed_amount,
            currency=self.currency,
            method=fields['method'],
            status=STATUS_PENDING,
            plan=fields['plan'],
            mobile_number=mobile_number,
            mobile_provider=mobile_provider,
            crypto_address=crypto_address,
            crypto_tx_hash=crypto_tx_hash,
            notes=notes
        )
        logger.info(f"📝 Заявка на оплату {payment['id']} создана ({fields['method']})")
        return payment
    
    async def get_payment(self, payment_id: str) -> PaymentRecord:
        payment = await self.payments.get_payment(payment_id)
        if not payment:
            raise NotFoundError(f"Payment {payment_id} not found")
        return payment
    
    async def get_history(self, user_id: str) -> list[PaymentRecord]:
        return await self.payments.get_user_payments(user_id)
    
    async def list_payments(
        self,
        status: Optional[str],
        page: int,
        limit: int
    ) -> tuple[list[PaymentRecord], int]:
        return await self.payments.list_payments(status, limit=limit, offset=(page - 1) * limit)
    
    async def count_by_status(self) -> dict[str, int]:
        return await self.payments.count_by_status()
    
    async def check_provider_status(self, token: str) -> dict[str, Any]:
        """Проксирует проверку статуса сессии в MoneyFusion"""
        token = require_text(token=token)['token']
        return await self.gateway.check_status(token)
