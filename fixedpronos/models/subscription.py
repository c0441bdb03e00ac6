from datetime import datetime
from decimal import Decimal
from typing import TypedDict, Optional


class SubscriptionRecord(TypedDict):
    """Запись подписки из базы данных"""
    user_id: str
    plan: str  # basic, pro, vip
    status: str  # active, canceled, expired, pending
    period_start: datetime
    period_end: datetime
    cancel_at_period_end: bool
    created_at: datetime
    updated_at: datetime


class TransactionRecord(TypedDict):
    """Запись истории транзакций (только добавление)"""
    id: int
    user_id: str
    type: str
    amount: Decimal
    description: str
    status: str
    payment_id: Optional[str]
    created_at: datetime


class SubscriptionStatus(TypedDict):
    """Состояние доступа пользователя для отображения"""
    has_active_subscription: bool
    access_tier: str
    subscription: Optional[SubscriptionRecord]
