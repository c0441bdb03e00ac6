from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
import logging

from dateutil.relativedelta import relativedelta

from fixedpronos.constants import (
    ACCESS_TIERS, METHOD_LABELS, PLAN_DURATION_MONTHS, PLANS, SUB_ACTIVE, SUB_CANCELED,
    TIER_FREE, TRANSACTION_COMPLETED, TRANSACTION_PAYMENT
)
from fixedpronos.db.repositories.subscriptions import SubscriptionRepository
from fixedpronos.db.repositories.transactions import TransactionRepository
from fixedpronos.exceptions import InvalidPlanError, ValidationError
from fixedpronos.models.payment import PaymentRecord
from fixedpronos.models.subscription import SubscriptionRecord, SubscriptionStatus

logger = logging.getLogger(__name__)


def add_months(start: datetime, months: int) -> datetime:
    """
    Прибавляет календарные месяцы.
    
    Если дня нет в целевом месяце, берется последний день месяца:
    31 января + 1 месяц = 28 (29) февраля.
    """
    return start + relativedelta(months=months)


def can_access(user_tier: str, required_tier: str) -> bool:
    """Проверяет, открывает ли уровень пользователя прогнозы нужного уровня"""
    if required_tier not in ACCESS_TIERS:
        raise ValidationError(f"Неизвестный уровень доступа: {required_tier!r}")
    if user_tier not in ACCESS_TIERS:
        return False
    return ACCESS_TIERS.index(user_tier) >= ACCESS_TIERS.index(required_tier)


def is_active(subscription: Optional[SubscriptionRecord], now: datetime) -> bool:
    return bool(
        subscription
        and subscription['status'] == SUB_ACTIVE
        and subscription['period_end'] > now
    )


class SubscriptionService:
    """Сервис для управления подписками"""
    
    def __init__(
        self,
        subscriptions: SubscriptionRepository,
        transactions: TransactionRepository
    ):
        self.subscriptions = subscriptions
        self.transactions = transactions
    
    async def grant_entitlement(
        self,
        payment: PaymentRecord,
        now: Optional[datetime] = None
    ) -> SubscriptionRecord:
        """
        Выдает или продлевает подписку по подтвержденному платежу
        
        Действующая подписка продлевается от текущего period_end, без потери
        оплаченного времени. Иначе новый период начинается сейчас.
        Записи делаются последовательно, без отката статуса платежа.
        """
        plan = payment['plan']
        if plan not in PLANS:
            raise InvalidPlanError(plan)
        
        user_id = payment['user_id']
        now = now or datetime.now(timezone.utc)
        existing = await self.subscriptions.get_by_user_id(user_id)
        
        if is_active(existing, now):
            new_start = existing['period_end']
        else:
            new_start = now
        new_end = add_months(new_start, PLAN_DURATION_MONTHS[plan])
        
        subscription = await self.subscriptions.upsert(
            user_id,
            plan,
            SUB_ACTIVE,
            new_start,
            new_end,
            cancel_at_period_end=False
        )
        
        method_label = METHOD_LABELS.get(payment['method'], payment['method'])
        transaction = await self.transactions.append(
            user_id,
            TRANSACTION_PAYMENT,
            payment['amount'],
            f"Paiement {plan.upper()} - {method_label}",
            TRANSACTION_COMPLETED,
            payment_id=payment['id']
        )
        if transaction is None:
            logger.warning(f"Транзакция для платежа {payment['id']} уже была записана")
        
        logger.info(
            f"✅ Подписка выдана: user_id={user_id}, plan={plan}, "
            f"period={new_start.isoformat()} -> {new_end.isoformat()}"
        )
        return subscription
    
    async def grant_manual(
        self,
        user_id: str,
        plan: str,
        months: int,
        now: Optional[datetime] = None
    ) -> SubscriptionRecord:
        """Выдает подписку вручную из админки: новый период начинается сейчас"""
        if plan not in PLANS:
            raise InvalidPlanError(plan)
        if months < 1:
            raise ValidationError("Длительность должна быть не меньше 1 месяца")
        
        now = now or datetime.now(timezone.utc)
        subscription = await self.subscriptions.upsert(
            user_id, plan, SUB_ACTIVE, now, add_months(now, months)
        )
        logger.info(f"✅ Подписка выдана вручную: user_id={user_id}, plan={plan}, months={months}")
        return subscription
    
    async def revoke(self, user_id: str) -> bool:
        """Отменяет подписку"""
        revoked = await self.subscriptions.set_status(user_id, SUB_CANCELED)
        if revoked:
            logger.info(f"🗑️ Подписка отменена: user_id={user_id}")
        return revoked
    
    async def get_status(self, user_id: str, now: Optional[datetime] = None) -> SubscriptionStatus:
        """Текущий уровень доступа пользователя"""
        now = now or datetime.now(timezone.utc)
        subscription = await self.subscriptions.get_by_user_id(user_id)
        active = is_active(subscription, now)
        return {
            'has_active_subscription': active,
            'access_tier': subscription['plan'] if active else TIER_FREE,
            'subscription': subscription,
        }
    
    async def get_all(self) -> list[SubscriptionRecord]:
        return await self.subscriptions.get_all()
    
    async def count_active(self, now: Optional[datetime] = None) -> int:
        return await self.subscriptions.count_active(now or datetime.now(timezone.utc))
    
    async def expire_lapsed(self, now: Optional[datetime] = None) -> list[str]:
        """Помечает просроченные подписки как expired"""
        return await self.subscriptions.expire_lapsed(now or datetime.now(timezone.utc))
    
    async def total_revenue(self) -> Decimal:
        return await self.transactions.total_revenue()
