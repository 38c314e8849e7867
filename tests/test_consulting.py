"""
Consulting payment link tests
"""
import pytest

from helpers import OTHER_USER_ID, USER_ID, auth_headers


def _request(**overrides):
    body = {
        "optionId": "individual",
        "userId": USER_ID,
        "amount": 12500,
        "description": "One hour of recipe development",
    }
    body.update(overrides)
    return body


async def test_options_listed(client):
    response = await client.get("/api/consulting/options")

    assert response.status_code == 200
    ids = [option["id"] for option in response.json()["options"]]
    assert ids == ["individual", "group"]


async def test_requires_authentication(client, stripe_service):
    response = await client.post("/api/consulting/create-payment", json=_request())

    assert response.status_code == 401
    assert stripe_service.calls == []


async def test_malformed_bearer_token(client, stripe_service):
    response = await client.post(
        "/api/consulting/create-payment",
        json=_request(),
        headers={"Authorization": "Bearer not-a-jwt"},
    )

    assert response.status_code == 401
    assert stripe_service.calls == []


@pytest.mark.parametrize("missing", ["optionId", "userId", "amount", "description"])
async def test_missing_fields_rejected(client, stripe_service, missing):
    body = _request()
    del body[missing]

    response = await client.post("/api/consulting/create-payment", json=body, headers=auth_headers())

    assert response.status_code == 400
    assert stripe_service.calls == []


async def test_unknown_option_rejected(client, stripe_service):
    response = await client.post(
        "/api/consulting/create-payment", json=_request(optionId="platinum"), headers=auth_headers()
    )

    assert response.status_code == 400
    assert stripe_service.calls == []


async def test_negative_amount_rejected(client, stripe_service):
    response = await client.post(
        "/api/consulting/create-payment", json=_request(amount=-100), headers=auth_headers()
    )

    assert response.status_code == 400
    assert stripe_service.calls == []


@pytest.mark.parametrize("option_id,amount", [("individual", 1), ("group", 12500)])
async def test_amount_must_match_option_price(client, stripe_service, option_id, amount):
    response = await client.post(
        "/api/consulting/create-payment",
        json=_request(optionId=option_id, amount=amount),
        headers=auth_headers(),
    )

    assert response.status_code == 400
    assert stripe_service.calls == []


async def test_cannot_pay_on_behalf_of_another_user(client, stripe_service):
    response = await client.post(
        "/api/consulting/create-payment", json=_request(userId=OTHER_USER_ID), headers=auth_headers()
    )

    assert response.status_code == 403
    assert stripe_service.calls == []


async def test_returns_payment_url(client, stripe_service):
    response = await client.post("/api/consulting/create-payment", json=_request(), headers=auth_headers())

    assert response.status_code == 200
    assert response.json() == {"paymentUrl": "https://buy.stripe.com/test_link"}
    name, kwargs = stripe_service.calls[0]
    assert name == "create_consulting_payment_link"
    assert kwargs["user_id"] == USER_ID
    assert kwargs["option_id"] == "individual"
    assert kwargs["product_name"] == "Individual Recipe Consulting"
    assert kwargs["amount"] == 12500


async def test_provider_failure_is_500(client, stripe_service):
    stripe_service.error = RuntimeError("stripe down")

    response = await client.post("/api/consulting/create-payment", json=_request(), headers=auth_headers())

    assert response.status_code == 500
