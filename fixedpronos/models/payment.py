"""Модели для платежей"""
from typing import TypedDict, Optional
from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel


class PaymentMetadata(BaseModel):
    """Аудит-поля платежа, полученные от провайдера"""
    event_name: Optional[str] = None
    provider_transaction_id: Optional[str] = None
    amount_received: Optional[Decimal] = None
    fees: Optional[Decimal] = None
    received_at: Optional[datetime] = None
    provider_token: Optional[str] = None
    
    def merged(self, update: "PaymentMetadata") -> "PaymentMetadata":
        """Возвращает копию, дополненную непустыми полями update"""
        return self.model_copy(update=update.model_dump(exclude_none=True))


class PaymentRecord(TypedDict):
    """Запись платежа из базы данных"""
    id: str
    user_id: str
    amount: Decimal
    currency: str
    method: str  # crypto, mobile_money, bank_transfer
    plan: Optional[str]  # basic, pro, vip
    status: str  # pending, processing, approved, rejected
    correlation_token: Optional[str]
    mobile_number: Optional[str]
    mobile_provider: Optional[str]
    crypto_address: Optional[str]
    crypto_tx_hash: Optional[str]
    notes: Optional[str]
    metadata: PaymentMetadata
    processed_by: Optional[str]
    created_at: datetime
    processed_at: Optional[datetime]


class InitiatedPayment(TypedDict):
    """Результат инициации платежа через MoneyFusion"""
    payment_id: str
    redirect_url: str
    correlation_token: str


class ReconcileResult(TypedDict):
    """Результат обработки уведомления о платеже"""
    payment_id: str
    outcome: str  # updated, duplicate, ignored
    status: str
