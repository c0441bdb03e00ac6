from datetime import datetime, timezone
from decimal import Decimal
from urllib.parse import parse_qs, urlparse

import pytest

from fixedpronos.exceptions import GatewayError, InvalidPlanError, NotFoundError, ValidationError
from fixedpronos.models.payment import PaymentMetadata
from fixedpronos.services.subscriptions import add_months

BASE_URL = "https://fixedpronos.test"


async def initiate(payment_service, **overrides):
    params = dict(
        user_id="user-1",
        amount=79,
        plan="pro",
        phone_number="+2250701020304",
        customer_name="Jean",
        callback_base_url=BASE_URL,
    )
    params.update(overrides)
    return await payment_service.initiate(**params)


async def test_initiate_creates_processing_record(payment_service, payments_repo, gateway):
    initiated = await initiate(payment_service)
    
    stored = payments_repo.rows[initiated['payment_id']]
    assert stored['status'] == "processing"
    assert stored['method'] == "mobile_money"
    assert stored['plan'] == "pro"
    assert stored['amount'] == Decimal("79")
    assert stored['currency'] == "XOF"
    assert stored['correlation_token'] == initiated['correlation_token'] == "tok-1"
    assert initiated['redirect_url'] == "https://pay.moneyfusion.test/checkout/1"
    
    call = gateway.calls[0]
    assert call['payment_id'] == initiated['payment_id']
    assert call['customer_name'] == "Jean"


async def test_callback_urls_carry_payment_id(payment_service, gateway):
    initiated = await initiate(payment_service, callback_base_url=BASE_URL + "/")
    
    call = gateway.calls[0]
    webhook = urlparse(call['webhook_url'])
    assert f"{webhook.scheme}://{webhook.netloc}{webhook.path}" == f"{BASE_URL}/api/webhooks/moneyfusion"
    assert parse_qs(webhook.query)['paymentId'] == [initiated['payment_id']]
    assert parse_qs(urlparse(call['return_url']).query)['paymentId'] == [initiated['payment_id']]


@pytest.mark.parametrize("field", ["user_id", "plan", "phone_number", "customer_name"])
async def test_initiate_requires_fields(payment_service, payments_repo, gateway, field):
    with pytest.raises(ValidationError):
        await initiate(payment_service, **{field: "  "})
    
    assert payments_repo.rows == {}
    assert gateway.calls == []


@pytest.mark.parametrize("amount", [None, "", "abc", 0, -5, "NaN", "Infinity", True])
async def test_initiate_rejects_bad_amount(payment_service, payments_repo, amount):
    with pytest.raises(ValidationError):
        await initiate(payment_service, amount=amount)
    
    assert payments_repo.rows == {}


async def test_initiate_rejects_unknown_plan(payment_service, payments_repo):
    with pytest.raises(InvalidPlanError):
        await initiate(payment_service, plan="premium")
    
    assert payments_repo.rows == {}


async def test_gateway_failure_leaves_record_processing(payment_service, payments_repo, gateway_down):
    with pytest.raises(GatewayError):
        await initiate(payment_service)
    
    [stored] = payments_repo.rows.values()
    assert stored['status'] == "processing"
    assert stored['correlation_token'] is None
    
    gateway_down.error = None
    retry = await initiate(payment_service)
    
    assert len(payments_repo.rows) == 2
    assert retry['payment_id'] != stored['id']


async def test_submit_manual_payment(payment_service, payments_repo):
    payment = await payment_service.submit_manual(
        "user-3", "25.50", "crypto", "basic", crypto_address="TXyz", crypto_tx_hash="0xabc"
    )
    
    assert payment['status'] == "pending"
    assert payment['amount'] == Decimal("25.50")
    assert payments_repo.rows[payment['id']]['crypto_address'] == "TXyz"


async def test_submit_manual_validates_method_details(payment_service):
    with pytest.raises(ValidationError):
        await payment_service.submit_manual("user-3", 10, "crypto", "basic")
    with pytest.raises(ValidationError):
        await payment_service.submit_manual("user-3", 10, "mobile_money", "basic", mobile_number="0700")
    with pytest.raises(ValidationError):
        await payment_service.submit_manual("user-3", 10, "cash", "basic")


async def test_get_payment_not_found(payment_service):
    with pytest.raises(NotFoundError):
        await payment_service.get_payment("missing")


async def test_initiate_then_webhook_end_to_end(payment_service, reconciliation, payments_repo, subscriptions_repo, transactions_repo):
    before = datetime.now(timezone.utc)
    initiated = await initiate(payment_service, amount=79, plan="pro", phone_number="+2250700000000", customer_name="Jean")
    assert payments_repo.rows[initiated['payment_id']]['status'] == "processing"
    
    result = await reconciliation.reconcile(
        initiated['payment_id'],
        "payin.session.completed",
        PaymentMetadata(event_name="payin.session.completed", amount_received=Decimal("79")),
        correlation_token=initiated['correlation_token']
    )
    after = datetime.now(timezone.utc)
    
    assert result['status'] == "approved"
    subscription = subscriptions_repo.rows["user-1"]
    assert subscription['plan'] == "pro"
    assert subscription['status'] == "active"
    assert add_months(before, 1) <= subscription['period_end'] <= add_months(after, 1)
    assert len(transactions_repo.rows) == 1
    assert transactions_repo.rows[0]['amount'] == Decimal("79")
