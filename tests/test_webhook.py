from decimal import Decimal

from fixedpronos.exceptions import GatewayError

WEBHOOK = "/api/webhooks/moneyfusion"


def moneyfusion_body(event="payin.session.completed", **personal_info):
    return {
        "event": event,
        "personal_Info": [personal_info] if personal_info else [],
        "tokenPay": "tok-1",
        "numeroSend": "+2250701020304",
        "nomclient": "Jean",
        "numeroTransaction": 770012,
        "Montant": 79,
        "frais": 1.5,
        "createdAt": "2026-10-19T10:00:00.000Z",
    }


async def test_completed_webhook_approves_payment(client, make_payment, payments_repo, subscriptions_repo):
    payment = await make_payment()
    
    resp = await client.post(WEBHOOK, params={'paymentId': payment['id']}, json=moneyfusion_body())
    
    assert resp.status == 200
    assert await resp.json() == {'success': True, 'message': 'Webhook processed successfully'}
    stored = payments_repo.rows[payment['id']]
    assert stored['status'] == "approved"
    assert stored['metadata'].provider_transaction_id == "770012"
    assert stored['metadata'].amount_received == Decimal("79")
    assert subscriptions_repo.rows["user-1"]['status'] == "active"


async def test_replayed_webhook_is_acknowledged_as_duplicate(client, make_payment, transactions_repo):
    payment = await make_payment()
    
    first = await client.post(WEBHOOK, params={'paymentId': payment['id']}, json=moneyfusion_body())
    second = await client.post(WEBHOOK, params={'paymentId': payment['id']}, json=moneyfusion_body())
    
    assert first.status == second.status == 200
    assert (await second.json())['message'] == "Duplicate notification"
    assert len(transactions_repo.rows) == 1


async def test_payment_id_from_personal_info(client, make_payment, payments_repo):
    payment = await make_payment()
    
    resp = await client.post(WEBHOOK, json=moneyfusion_body(paymentId=payment['id'], userId="user-1", plan="pro"))
    
    assert resp.status == 200
    assert payments_repo.rows[payment['id']]['status'] == "approved"


async def test_payment_found_by_token(client, make_payment, payments_repo):
    payment = await make_payment()
    await payments_repo.attach_correlation_token(payment['id'], "tok-1")
    
    resp = await client.post(WEBHOOK, json=moneyfusion_body())
    
    assert resp.status == 200
    assert payments_repo.rows[payment['id']]['status'] == "approved"


async def test_missing_token_is_400(client, make_payment, payments_repo):
    payment = await make_payment()
    body = moneyfusion_body()
    del body['tokenPay']
    
    resp = await client.post(WEBHOOK, params={'paymentId': payment['id']}, json=body)
    
    assert resp.status == 400
    assert payments_repo.rows[payment['id']]['status'] == "processing"


async def test_foreign_token_is_404(client, make_payment, payments_repo, subscriptions_repo):
    payment = await make_payment()
    await payments_repo.attach_correlation_token(payment['id'], "tok-real")
    body = moneyfusion_body()
    body['tokenPay'] = "tok-forged"
    
    resp = await client.post(WEBHOOK, params={'paymentId': payment['id']}, json=body)
    
    assert resp.status == 404
    assert payments_repo.rows[payment['id']]['status'] == "processing"
    assert subscriptions_repo.rows == {}


async def test_garbled_payment_id_falls_back_to_token(client, make_payment, payments_repo):
    payment = await make_payment()
    await payments_repo.attach_correlation_token(payment['id'], "tok-1")
    
    resp = await client.post(WEBHOOK, params={'paymentId': "not-a-uuid"}, json=moneyfusion_body())
    
    assert resp.status == 200
    assert payments_repo.rows[payment['id']]['status'] == "approved"


async def test_malformed_body_is_400(client):
    resp = await client.post(WEBHOOK, data="not json", headers={'Content-Type': 'application/json'})
    assert resp.status == 400
    
    body = moneyfusion_body()
    del body['event']
    resp = await client.post(WEBHOOK, json=body)
    assert resp.status == 400


async def test_unknown_payment_is_404(client):
    resp = await client.post(
        WEBHOOK,
        params={'paymentId': "7d9f8a0e-0000-4000-8000-000000000000"},
        json=moneyfusion_body()
    )
    
    assert resp.status == 404


async def test_unmapped_event_is_acknowledged(client, make_payment, payments_repo):
    payment = await make_payment()
    
    resp = await client.post(WEBHOOK, params={'paymentId': payment['id']}, json=moneyfusion_body("payin.session.refunded"))
    
    assert resp.status == 200
    assert payments_repo.rows[payment['id']]['status'] == "processing"


async def test_persistence_failure_is_500(client, make_payment, payments_repo):
    payment = await make_payment()
    payments_repo.fail_transition = True
    
    resp = await client.post(WEBHOOK, params={'paymentId': payment['id']}, json=moneyfusion_body())
    
    assert resp.status == 500
    assert payments_repo.rows[payment['id']]['status'] == "processing"


async def test_partial_failure_is_500(client, make_payment, subscriptions_repo):
    payment = await make_payment()
    subscriptions_repo.fail_upsert = True
    
    resp = await client.post(WEBHOOK, params={'paymentId': payment['id']}, json=moneyfusion_body())
    
    assert resp.status == 500
    assert await resp.json() == {'error': 'Subscription activation failed'}


async def test_initiate_endpoint(client, payments_repo, gateway):
    resp = await client.post('/api/payment/moneyfusion/initiate', json={
        'userId': "user-1",
        'amount': 79,
        'plan': "pro",
        'phoneNumber': "+2250701020304",
        'customerName': "Jean",
    })
    
    assert resp.status == 200
    data = await resp.json()
    assert data['success'] is True
    assert data['paymentUrl'] == "https://pay.moneyfusion.test/checkout/1"
    assert data['token'] == "tok-1"
    assert payments_repo.rows[data['paymentId']]['status'] == "processing"
    assert gateway.calls[0]['webhook_url'].startswith("https://fixedpronos.test/api/webhooks/moneyfusion?")


async def test_initiate_endpoint_missing_fields(client, payments_repo):
    resp = await client.post('/api/payment/moneyfusion/initiate', json={'userId': "user-1"})
    
    assert resp.status == 400
    assert payments_repo.rows == {}


async def test_initiate_endpoint_hides_gateway_details(client, gateway):
    gateway.error = GatewayError("Provider responded with HTTP 503")
    
    resp = await client.post('/api/payment/moneyfusion/initiate', json={
        'userId': "user-1",
        'amount': "79",
        'plan': "pro",
        'phoneNumber': "+2250701020304",
        'customerName': "Jean",
    })
    
    assert resp.status == 502
    assert await resp.json() == {'success': False, 'error': 'Failed to initiate payment'}


async def test_status_endpoint_proxies_provider(client):
    resp = await client.get('/api/payment/moneyfusion/status/tok-9')
    
    assert resp.status == 200
    assert (await resp.json())['data']['tokenPay'] == "tok-9"


async def test_return_page_shows_status(client, make_payment):
    payment = await make_payment()
    
    resp = await client.get('/payment/callback', params={'paymentId': payment['id']})
    assert resp.status == 200
    assert "en cours" in await resp.text()
    
    resp = await client.get('/payment/callback', params={'paymentId': "nope"})
    assert resp.status == 404


async def test_health(client):
    resp = await client.get('/health')
    assert resp.status == 200
    assert await resp.json() == {'status': 'ok'}
