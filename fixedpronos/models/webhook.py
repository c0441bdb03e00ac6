"""Модель уведомления MoneyFusion"""
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from fixedpronos.models.payment import PaymentMetadata


class PersonalInfo(BaseModel):
    """Данные корреляции, которые мы передали при инициации"""
    model_config = ConfigDict(extra="allow", populate_by_name=True)
    
    payment_id: Optional[str] = Field(default=None, alias="paymentId")
    user_id: Optional[str] = Field(default=None, alias="userId")
    plan: Optional[str] = None


class MoneyFusionWebhook(BaseModel):
    """
    Тело POST запроса MoneyFusion на webhook_url
    
    MoneyFusion отправляет:
    - event: payin.session.pending | completed | cancelled
    - personal_Info: массив с paymentId/userId/plan
    - tokenPay: токен платежной сессии
    - numeroTransaction, Montant, frais: данные транзакции
    """
    model_config = ConfigDict(extra="ignore", populate_by_name=True)
    
    event: str = Field(..., min_length=1)
    personal_info: list[PersonalInfo] = Field(default_factory=list, alias="personal_Info")
    token_pay: str = Field(..., min_length=1, alias="tokenPay")
    transaction_number: Optional[str] = Field(default=None, alias="numeroTransaction")
    amount: Optional[Decimal] = Field(default=None, alias="Montant")
    fees: Optional[Decimal] = Field(default=None, alias="frais")
    created_at: Optional[str] = Field(default=None, alias="createdAt")
    
    @field_validator('transaction_number', mode='before')
    @classmethod
    def coerce_to_str(cls, v: Any) -> Optional[str]:
        """MoneyFusion иногда присылает номер транзакции числом"""
        if v is None or v == "":
            return None
        return str(v)
    
    @field_validator('token_pay', mode='before')
    @classmethod
    def token_to_str(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip()
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v
    
    def payment_id(self) -> Optional[str]:
        """ID платежа из personal_Info, если провайдер его вернул"""
        for info in self.personal_info:
            if info.payment_id:
                return info.payment_id
        return None
    
    def to_metadata(self, received_at: datetime) -> PaymentMetadata:
        return PaymentMetadata(
            event_name=self.event,
            provider_transaction_id=self.transaction_number,
            amount_received=self.amount,
            fees=self.fees,
            received_at=received_at,
            provider_token=self.token_pay,
        )
