from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient

from foodhub_api.core.settings import settings
from foodhub_api.models.promotion import Promotion, PromotionTypeEnum
from foodhub_api.services.loyalty import LoyaltyLedger
from foodhub_api.services.wallet import WalletLedger
from foodhub_api.workers import RateLimitSweeper


def _client(app) -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


async def _seed_save100(session_factory, **overrides) -> None:
    now = datetime.now(timezone.utc)
    values = {
        "code": "SAVE100",
        "name": "100 THB off",
        "promotion_type": PromotionTypeEnum.FIXED_AMOUNT,
        "discount_value": Decimal("100"),
        "minimum_order": Decimal("500"),
        "start_date": now - timedelta(days=1),
        "end_date": now + timedelta(days=14),
    }
    values.update(overrides)
    async with session_factory() as session:
        session.add(Promotion(**values))
        await session.commit()


@pytest.mark.asyncio
async def test_healthz_reports_service_metadata(app_with_db) -> None:
    app, _ = app_with_db

    async with _client(app) as client:
        response = await client.get("/healthz")
        versioned = await client.get("/api/v1/healthz")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert versioned.status_code == 404


@pytest.mark.asyncio
async def test_readyz_reports_component_statuses(app_with_db) -> None:
    app, _ = app_with_db

    async with _client(app) as client:
        without_sweeper = await client.get("/api/v1/readyz")

        sweeper = RateLimitSweeper(app.state.rate_limiters.store, interval_seconds=3600)
        sweeper.start()
        app.state.rate_limit_sweeper = sweeper
        try:
            with_sweeper = await client.get("/api/v1/readyz")
        finally:
            await sweeper.stop()

    assert without_sweeper.status_code == 200
    payload = without_sweeper.json()
    assert payload["status"] == "degraded"
    assert payload["components"]["database"]["status"] == "ready"
    assert payload["components"]["rate_limiter"]["detail"] == "InMemoryRateLimitStore backend"
    assert payload["components"]["rate_limit_sweeper"]["status"] == "starting"

    assert with_sweeper.json()["status"] == "ready"
    assert with_sweeper.json()["components"]["rate_limit_sweeper"]["status"] == "ready"


@pytest.mark.asyncio
async def test_openapi_documents_error_envelope(app_with_db) -> None:
    app, _ = app_with_db

    async with _client(app) as client:
        response = await client.get("/openapi.json")

    schema = response.json()
    assert "ErrorEnvelope" in schema["components"]["schemas"]
    redeem_responses = schema["paths"]["/api/v1/loyalty/redeem"]["post"]["responses"]
    assert redeem_responses["429"]["content"]["application/json"]["schema"]["$ref"].endswith("/ErrorEnvelope")


@pytest.mark.asyncio
async def test_validate_promotion_quotes_discount(app_with_db) -> None:
    app, session_factory = app_with_db
    await _seed_save100(session_factory)

    async with _client(app) as client:
        response = await client.post(
            "/api/v1/promotions/validate",
            json={"code": "save100", "subtotal": 500, "restaurantId": "r-1"},
        )

    assert response.status_code == 200
    payload = response.json()
    assert payload["success"] is True
    assert payload["data"]["discount"] == 100.0
    assert payload["data"]["promotionCode"] == "SAVE100"
    assert payload["data"]["freeDelivery"] is False
    assert response.headers["X-RateLimit-Limit"] == "60"
    assert response.headers["X-RateLimit-Remaining"] == "59"


@pytest.mark.asyncio
async def test_validate_promotion_rejection_is_400(app_with_db) -> None:
    app, session_factory = app_with_db
    await _seed_save100(session_factory)

    async with _client(app) as client:
        below_minimum = await client.post("/api/v1/promotions/validate", json={"code": "SAVE100", "subtotal": 50})
        unknown = await client.post("/api/v1/promotions/validate", json={"code": "NOPE", "subtotal": 50})

    assert below_minimum.status_code == 400
    assert below_minimum.json() == {
        "success": False,
        "error": "Minimum order of 500 THB required for this promotion",
        "code": "PROMOTION_REJECTED",
    }
    assert unknown.status_code == 400
    assert unknown.json()["error"] == "Invalid promo code"


@pytest.mark.asyncio
async def test_list_promotions_filters_and_sorts(app_with_db) -> None:
    app, session_factory = app_with_db
    await _seed_save100(session_factory)
    await _seed_save100(
        session_factory,
        code="FREEDEL",
        name="Free delivery",
        promotion_type=PromotionTypeEnum.FREE_DELIVERY,
        discount_value=Decimal("0"),
        minimum_order=Decimal("0"),
    )

    async with _client(app) as client:
        everything = await client.get("/api/v1/promotions", params={"sort": "minimumOrder"})
        affordable = await client.get("/api/v1/promotions", params={"applicableTo": "100"})
        invalid = await client.get("/api/v1/promotions", params={"type": "bogus"})

    assert everything.status_code == 200
    assert [item["code"] for item in everything.json()["data"]] == ["FREEDEL", "SAVE100"]
    assert everything.json()["data"][1]["type"] == "FIXED_AMOUNT"
    assert [item["code"] for item in affordable.json()["data"]] == ["FREEDEL"]
    assert invalid.status_code == 400
    assert invalid.json()["success"] is False


@pytest.mark.asyncio
async def test_list_promotions_seeds_demo_catalogue_when_enabled(app_with_db, monkeypatch) -> None:
    app, _ = app_with_db
    monkeypatch.setattr(settings, "promotion_demo_seed_enabled", True)

    async with _client(app) as client:
        response = await client.get("/api/v1/promotions")

    assert response.status_code == 200
    codes = {item["code"] for item in response.json()["data"]}
    assert codes == {"WELCOME50", "FREEDEL", "SAVE100", "LUNCH15", "WEEKEND20"}


@pytest.mark.asyncio
async def test_loyalty_overview_creates_account(app_with_db) -> None:
    app, session_factory = app_with_db
    async with session_factory() as session:
        await LoyaltyLedger(session).earn("member-1", Decimal("250"), order_id="ORD-1")

    async with _client(app) as client:
        existing = await client.get("/api/v1/loyalty", params={"userId": "member-1"})
        fresh = await client.get("/api/v1/loyalty", params={"userId": "member-2"})

    assert existing.status_code == 200
    data = existing.json()["data"]
    assert data["points"] == 25
    assert data["tier"] == "BRONZE"
    assert data["benefits"] == {"discount": 0, "pointMultiplier": 1.0, "freeDelivery": False}
    assert [entry["type"] for entry in data["transactions"]] == ["EARNED"]

    assert fresh.status_code == 200
    assert fresh.json()["data"]["points"] == 0
    assert fresh.json()["data"]["transactions"] == []


@pytest.mark.asyncio
async def test_loyalty_redeem_flow(app_with_db) -> None:
    app, session_factory = app_with_db
    async with session_factory() as session:
        ledger = LoyaltyLedger(session)
        await ledger.earn("member-3", Decimal("1000"))
        await ledger.ensure_account("member-4")

    async with _client(app) as client:
        redeemed = await client.post("/api/v1/loyalty/redeem", json={"userId": "member-3", "points": 90})
        insufficient = await client.post("/api/v1/loyalty/redeem", json={"userId": "member-4", "points": 10})
        missing = await client.post("/api/v1/loyalty/redeem", json={"userId": "ghost", "points": 10})
        malformed = await client.post("/api/v1/loyalty/redeem", json={"userId": "member-3"})

    assert redeemed.status_code == 200
    assert redeemed.json()["data"] == {"pointsRedeemed": 90, "discountAmount": 9.0, "remainingPoints": 10}
    assert insufficient.status_code == 400
    assert insufficient.json()["error"] == "Insufficient points"
    assert missing.status_code == 404
    assert missing.json()["error"] == "Loyalty account not found"
    assert malformed.status_code == 400
    assert malformed.json()["success"] is False
    assert "points" in malformed.json()["error"]


@pytest.mark.asyncio
async def test_wallet_top_up_returns_recent_history(app_with_db) -> None:
    app, session_factory = app_with_db
    async with session_factory() as session:
        ledger = WalletLedger(session)
        for _ in range(12):
            await ledger.top_up("wallet-1", Decimal("5"))

    async with _client(app) as client:
        response = await client.post(
            "/api/v1/wallet",
            json={"userId": "wallet-1", "amount": 40, "gatewayTxnId": "pp_1", "gatewayProvider": "promptpay"},
        )
        overview = await client.get("/api/v1/wallet", params={"userId": "wallet-1"})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["newBalance"] == 100.0
    assert data["transaction"]["type"] == "TOP_UP"
    assert data["transaction"]["gatewayTxnId"] == "pp_1"
    assert data["wallet"]["balance"] == 100.0
    assert len(data["wallet"]["transactions"]) == 10

    assert overview.status_code == 200
    assert len(overview.json()["data"]["transactions"]) == 13


@pytest.mark.asyncio
async def test_wallet_top_up_rejects_non_positive_amount(app_with_db) -> None:
    app, _ = app_with_db

    async with _client(app) as client:
        response = await client.post("/api/v1/wallet", json={"userId": "wallet-2", "amount": 0})
        malformed = await client.post(
            "/api/v1/wallet",
            content="not json",
            headers={"Content-Type": "application/json"},
        )

    assert response.status_code == 400
    assert response.json()["error"] == "Amount must be greater than 0"
    assert malformed.status_code == 400
    assert malformed.json()["success"] is False


@pytest.mark.asyncio
async def test_strict_rate_limit_blocks_eleventh_request(app_with_db) -> None:
    app, _ = app_with_db

    async with _client(app) as client:
        statuses = []
        for _ in range(10):
            response = await client.post("/api/v1/loyalty/redeem", json={"userId": "ghost", "points": 1})
            statuses.append(response.status_code)
        blocked = await client.post("/api/v1/loyalty/redeem", json={"userId": "ghost", "points": 1})
        other_client = await client.post(
            "/api/v1/loyalty/redeem",
            json={"userId": "ghost", "points": 1},
            headers={"X-Forwarded-For": "198.51.100.9"},
        )

    assert statuses == [404] * 10
    assert blocked.status_code == 429
    assert blocked.json()["error"] == "Too many requests. Please try again later."
    assert blocked.headers["X-RateLimit-Limit"] == "10"
    assert blocked.headers["X-RateLimit-Remaining"] == "0"
    assert "X-RateLimit-Reset" in blocked.headers
    assert 0 < int(blocked.headers["Retry-After"]) <= 60
    assert other_client.status_code == 404


@pytest.mark.asyncio
async def test_checkout_quote_and_settle(app_with_db) -> None:
    app, session_factory = app_with_db
    await _seed_save100(session_factory)
    async with session_factory() as session:
        await WalletLedger(session).top_up("diner-1", Decimal("700"))

    async with _client(app) as client:
        quote = await client.post(
            "/api/v1/checkout/quote",
            json={"subtotal": 550, "deliveryFee": 25, "promoCode": "SAVE100"},
        )
        settled = await client.post(
            "/api/v1/checkout/settle",
            json={
                "userId": "diner-1",
                "orderId": "ORD-77",
                "subtotal": 550,
                "deliveryFee": 25,
                "promoCode": "SAVE100",
                "paymentMethod": "wallet",
            },
        )
        broke = await client.post(
            "/api/v1/checkout/settle",
            json={
                "userId": "diner-1",
                "orderId": "ORD-78",
                "subtotal": 550,
                "paymentMethod": "wallet",
            },
        )

    assert quote.status_code == 200
    assert quote.json()["data"]["total"] == 475.0
    assert quote.json()["data"]["discount"] == 100.0

    assert settled.status_code == 200
    data = settled.json()["data"]
    assert data["walletBalance"] == 225.0
    assert data["pointsEarned"] == 47
    assert data["quote"]["promotionCode"] == "SAVE100"

    assert broke.status_code == 400
    assert broke.json()["error"] == "Insufficient wallet balance"
