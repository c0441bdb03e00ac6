"""Сверка уведомлений о платежах с записями платежей и подписок"""
import logging
from datetime import datetime, timezone
from typing import Optional

from fixedpronos.constants import (
    EVENT_STATUS_MAP, MAX_CAS_ATTEMPTS, PAYMENT_STATUSES, STATUS_APPROVED, TERMINAL_STATUSES
)
from fixedpronos.db.repositories.payments import PaymentRepository
from fixedpronos.exceptions import (
    NotFoundError, PartialFailureError, PaymentError, PersistenceError, ValidationError
)
from fixedpronos.models.payment import PaymentMetadata, PaymentRecord, ReconcileResult
from fixedpronos.services.subscriptions import SubscriptionService

logger = logging.getLogger(__name__)

OUTCOME_UPDATED = "updated"
OUTCOME_DUPLICATE = "duplicate"
OUTCOME_IGNORED = "ignored"


def map_event(external_event: str) -> Optional[str]:
    """Событие MoneyFusion -> внутренний статус (None для неизвестных событий)"""
    return EVENT_STATUS_MAP.get(external_event)


class ReconciliationService:
    """
    Применяет уведомления провайдера к платежам.
    
    approved и rejected конечны: из них переходов нет. Смена статуса
    делается условным UPDATE, поэтому из двух одновременных доставок одного
    события подписку выдает только одна.
    """
    
    def __init__(self, payments: PaymentRepository, subscriptions: SubscriptionService):
        self.payments = payments
        self.subscriptions = subscriptions
    
    async def reconcile(
        self,
        payment_id: Optional[str],
        external_event: str,
        external_payload: PaymentMetadata,
        correlation_token: str
    ) -> ReconcileResult:
        """
        Обрабатывает уведомление MoneyFusion
        
        Args:
            payment_id: ID платежа из callback URL или personal_Info
            external_event: Имя события провайдера
            external_payload: Аудит-поля уведомления
            correlation_token: tokenPay платежной сессии
        
        Raises:
            ValidationError: нет токена сессии
            NotFoundError: платеж не найден или токен не совпадает
            PersistenceError: ошибка записи статуса
            PartialFailureError: статус сохранен, подписка не выдана
        """
        payment = await self._resolve(payment_id, correlation_token)
        
        candidate = map_event(external_event)
        if candidate is None:
            logger.info(f"Событие {external_event!r} для платежа {payment['id']} не обрабатывается")
            return self._result(payment, OUTCOME_IGNORED)
        
        return await self._apply(payment, candidate, external_payload)
    
    async def process_manual(
        self,
        payment_id: str,
        status: str,
        processed_by: str,
        notes: Optional[str] = None
    ) -> ReconcileResult:
        """Ручное подтверждение или отклонение платежа администратором"""
        if status not in TERMINAL_STATUSES:
            raise ValidationError("Invalid status. Must be approved or rejected")
        if notes is not None and not isinstance(notes, str):
            raise ValidationError("notes must be a string")
        
        payment = await self.payments.get_payment(payment_id)
        if not payment:
            raise NotFoundError("Payment not found")
        
        payload = PaymentMetadata(
            event_name=f"manual.{status}",
            received_at=datetime.now(timezone.utc)
        )
        return await self._apply(payment, status, payload, processed_by=processed_by, notes=notes)
    
    async def _resolve(self, payment_id: Optional[str], correlation_token: str) -> PaymentRecord:
        """
        Находит платеж по ID, а если ID нет или он не найден, по токену.
        
        Сохраненный токен должен совпасть с токеном уведомления. Пустой
        сохраненный токен допустим: webhook мог прийти раньше, чем мы
        записали токен после инициации.
        """
        if not correlation_token:
            raise ValidationError("Missing tokenPay")
        
        payment = None
        if payment_id:
            payment = await self.payments.get_payment(payment_id)
        if not payment:
            payment = await self.payments.get_by_correlation_token(correlation_token)
        
        if not payment:
            logger.error(f"Платеж не найден: payment_id={payment_id}, token={correlation_token}")
            raise NotFoundError("Payment not found")
        
        stored_token = payment['correlation_token']
        if stored_token and stored_token != correlation_token:
            logger.warning(f"⚠️ Токен уведомления не совпадает с токеном платежа {payment['id']}, отклоняем")
            raise NotFoundError("Payment not found")
        return payment
    
    async def _apply(
        self,
        payment: PaymentRecord,
        candidate: str,
        payload: PaymentMetadata,
        processed_by: Optional[str] = None,
        notes: Optional[str] = None
    ) -> ReconcileResult:
        if candidate not in PAYMENT_STATUSES:
            raise ValidationError(f"Unknown payment status: {candidate}")
        
        for _ in range(MAX_CAS_ATTEMPTS):
            current = payment['status']
            if candidate == current or current in TERMINAL_STATUSES:
                logger.info(
                    f"Повторное уведомление для платежа {payment['id']} "
                    f"({current} -> {candidate}), игнорируем"
                )
                return self._result(payment, OUTCOME_DUPLICATE)
            
            updated = await self.payments.transition_status(
                payment['id'],
                expected_status=current,
                new_status=candidate,
                metadata=payment['metadata'].merged(payload),
                processed_by=processed_by,
                notes=notes
            )
            if updated is not None:
                break
            
            # Статус изменил параллельный запрос: перечитываем и решаем заново
            refreshed = await self.payments.get_payment(payment['id'])
            if refreshed is None:
                raise NotFoundError("Payment not found")
            payment = refreshed
        else:
            raise PersistenceError(f"Не удалось обновить статус платежа {payment['id']}")
        
        logger.info(f"🔄 Платеж {updated['id']}: {current} -> {candidate}")
        
        if candidate == STATUS_APPROVED:
            try:
                await self.subscriptions.grant_entitlement(updated)
            except PaymentError as e:
                logger.error(
                    f"❌ Платеж {updated['id']} подтвержден, но подписка не выдана: {e}. "
                    f"Требуется ручная сверка"
                )
                raise PartialFailureError(updated['id'], e) from e
            logger.info(f"💰 Платеж {updated['id']} обработан, подписка активирована")
        
        return self._result(updated, OUTCOME_UPDATED)
    
    @staticmethod
    def _result(payment: PaymentRecord, outcome: str) -> ReconcileResult:
        return {
            'payment_id': payment['id'],
            'outcome': outcome,
            'status': payment['status'],
        }
