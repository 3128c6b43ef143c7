"""HTTP-level tests: identity policies, guest session headers and error mapping.

A lightweight FastAPI app mounts the production routers with the database
dependency overridden, so no engine is created.
"""
import uuid
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from vintage_shop.api.dependencies.database import get_db
from vintage_shop.api.routes import cart, health, orders, session
from vintage_shop.api.routes.admin import orders as admin_orders
from vintage_shop.core.exceptions import ProductUnavailableError
from vintage_shop.core.identity import Authenticated, Guest
from vintage_shop.core.security import create_access_token
from vintage_shop.main import create_app
from vintage_shop.mappers.cart import empty_cart_view
from tests.conftest import TEST_SECRET
from tests.factories import make_result, make_snapshot, make_user

HEADER = "X-Guest-Session-Id"

CHECKOUT_BODY = {
    "shipping_first_name": "Anna",
    "shipping_last_name": "Nowak",
    "shipping_address_line1": "ul. Prosta 1",
    "shipping_city": "Kraków",
    "shipping_postal_code": "30-001",
    "shipping_country": "Poland",
    "shipping_phone": "+48 600 000 000",
    "payment_method": "transfer",
}


def _bearer(user_id=None, role="customer") -> dict:
    token = create_access_token(str(user_id or uuid.uuid4()), role, secret_key=TEST_SECRET)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def app(mock_db, settings, user_repo_mock):
    user_repo_mock.get_by_id.return_value = make_user()
    _app = FastAPI()
    _app.state.settings = settings
    _app.include_router(health.router, prefix="/api")
    _app.include_router(session.router, prefix="/api")
    _app.include_router(cart.router, prefix="/api")
    _app.include_router(orders.router, prefix="/api")
    _app.include_router(admin_orders.router, prefix="/api/admin")

    async def _override_db():
        yield mock_db

    _app.dependency_overrides[get_db] = _override_db
    yield _app
    _app.dependency_overrides.clear()


@pytest.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


class TestCartRoutes:
    @pytest.mark.asyncio
    async def test_anonymous_view_is_empty(self, client, mock_db):
        resp = await client.get("/api/cart")
        assert resp.status_code == 200
        assert resp.json()["items"] == []
        assert HEADER not in resp.headers
        mock_db.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_first_add_starts_a_guest_session(self, client):
        with patch.object(cart.cart_service, "add_to_cart", new_callable=AsyncMock) as add:
            add.return_value = empty_cart_view()
            resp = await client.post("/api/cart/items", json={"product_id": str(uuid.uuid4())})

        assert resp.status_code == 200
        identity = add.await_args.args[1]
        assert isinstance(identity, Guest)
        assert resp.headers[HEADER] == str(identity.session_id)

    @pytest.mark.asyncio
    async def test_add_keeps_existing_guest_session(self, client):
        session_id = uuid.uuid4()
        with patch.object(cart.cart_service, "add_to_cart", new_callable=AsyncMock) as add:
            add.return_value = empty_cart_view()
            resp = await client.post(
                "/api/cart/items",
                json={"product_id": str(uuid.uuid4())},
                headers={HEADER: str(session_id)},
            )
        assert add.await_args.args[1] == Guest(session_id)
        assert resp.headers[HEADER] == str(session_id)

    @pytest.mark.asyncio
    async def test_unavailable_product_is_409(self, client):
        with patch.object(cart.cart_service, "add_to_cart", new_callable=AsyncMock) as add:
            add.side_effect = ProductUnavailableError(uuid.uuid4(), "Brass lamp", "sold")
            resp = await client.post(
                "/api/cart/items", json={"product_id": str(uuid.uuid4())}, headers=_bearer()
            )
        assert resp.status_code == 409
        assert "Brass lamp" in resp.json()["detail"]

    @pytest.mark.asyncio
    async def test_remove_requires_an_owner(self, client):
        resp = await client.delete(f"/api/cart/items/{uuid.uuid4()}")
        assert resp.status_code == 401

    @pytest.mark.asyncio
    async def test_invalid_product_id_is_422(self, client):
        resp = await client.post("/api/cart/items", json={"product_id": "nope"}, headers=_bearer())
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_token_of_unknown_user_is_401(self, client, user_repo_mock):
        user_repo_mock.get_by_id.return_value = None
        with patch.object(cart.cart_service, "add_to_cart", new_callable=AsyncMock) as add:
            resp = await client.post(
                "/api/cart/items", json={"product_id": str(uuid.uuid4())}, headers=_bearer()
            )
        assert resp.status_code == 401
        add.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_guest_add_skips_user_lookup(self, client, user_repo_mock):
        with patch.object(cart.cart_service, "add_to_cart", new_callable=AsyncMock) as add:
            add.return_value = empty_cart_view()
            await client.post(
                "/api/cart/items",
                json={"product_id": str(uuid.uuid4())},
                headers={HEADER: str(uuid.uuid4())},
            )
        user_repo_mock.get_by_id.assert_not_awaited()


class TestMergeRoute:
    @pytest.mark.asyncio
    async def test_requires_login(self, client):
        resp = await client.post("/api/cart/merge", headers={HEADER: str(uuid.uuid4())})
        assert resp.status_code == 401

    @pytest.mark.asyncio
    async def test_invalid_token_is_rejected(self, client):
        resp = await client.post("/api/cart/merge", headers={"Authorization": "Bearer junk"})
        assert resp.status_code == 401

    @pytest.mark.asyncio
    async def test_requires_guest_session(self, client):
        resp = await client.post("/api/cart/merge", headers=_bearer())
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_token_of_unknown_user_is_401(self, client, user_repo_mock):
        user_repo_mock.get_by_id.return_value = None
        with patch.object(cart.cart_merge_service, "merge_guest_cart", new_callable=AsyncMock) as merge:
            resp = await client.post(
                "/api/cart/merge", headers={**_bearer(), HEADER: str(uuid.uuid4())}
            )
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Unknown user"
        merge.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_session_from_header(self, client):
        user_id, session_id = uuid.uuid4(), uuid.uuid4()
        with patch.object(cart.cart_merge_service, "merge_guest_cart", new_callable=AsyncMock) as merge:
            merge.return_value = {
                "cart": empty_cart_view(),
                "guest_cart_found": False,
                "merged_count": 0,
                "skipped_count": 0,
            }
            resp = await client.post(
                "/api/cart/merge", headers={**_bearer(user_id), HEADER: str(session_id)}
            )
        assert resp.status_code == 200
        user, merged_session = merge.await_args.args[1:]
        assert user == Authenticated(user_id, "customer")
        assert merged_session == session_id

    @pytest.mark.asyncio
    async def test_body_wins_over_header(self, client):
        body_session = uuid.uuid4()
        with patch.object(cart.cart_merge_service, "merge_guest_cart", new_callable=AsyncMock) as merge:
            merge.return_value = {
                "cart": empty_cart_view(),
                "guest_cart_found": True,
                "merged_count": 2,
                "skipped_count": 1,
            }
            resp = await client.post(
                "/api/cart/merge",
                json={"guest_session_id": str(body_session)},
                headers={**_bearer(), HEADER: str(uuid.uuid4())},
            )
        assert resp.json()["merged_count"] == 2
        assert merge.await_args.args[2] == body_session


class TestCheckoutRoute:
    @pytest.mark.asyncio
    async def test_anonymous_is_401(self, client):
        resp = await client.post("/api/orders", json=CHECKOUT_BODY)
        assert resp.status_code == 401

    @pytest.mark.asyncio
    async def test_unknown_payment_method_is_422(self, client):
        resp = await client.post(
            "/api/orders", json={**CHECKOUT_BODY, "payment_method": "cash"}, headers=_bearer()
        )
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_blank_name_is_422(self, client):
        resp = await client.post(
            "/api/orders", json={**CHECKOUT_BODY, "shipping_first_name": "   "}, headers=_bearer()
        )
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_guest_without_email_is_422(self, client, mock_db):
        resp = await client.post(
            "/api/orders", json=CHECKOUT_BODY, headers={HEADER: str(uuid.uuid4())}
        )
        assert resp.status_code == 422
        mock_db.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_order_placed_and_confirmation_scheduled(self, client, settings):
        snapshot = make_snapshot()
        with patch.object(orders.checkout_service, "place_order", new_callable=AsyncMock) as place, \
                patch.object(orders, "notify_order_placed", new=MagicMock()) as notify, \
                patch.object(orders, "create_background_task") as schedule:
            place.return_value = snapshot
            resp = await client.post("/api/orders", json=CHECKOUT_BODY, headers=_bearer())

        assert resp.status_code == 201
        body = resp.json()
        assert body["id"] == str(snapshot.id)
        assert body["total_price"] == snapshot.total_price
        assert body["status"] == "pending"
        assert len(body["items"]) == 1
        assert place.await_args.kwargs["shipping_surcharge"] == settings.shipping_surcharge
        notify.assert_called_once_with(snapshot, settings)
        schedule.assert_called_once()


class TestOrderRoutes:
    @pytest.mark.asyncio
    async def test_checkout_with_token_of_unknown_user_is_401(self, client, user_repo_mock):
        user_repo_mock.get_by_id.return_value = None
        with patch.object(orders.checkout_service, "place_order", new_callable=AsyncMock) as place:
            resp = await client.post("/api/orders", json=CHECKOUT_BODY, headers=_bearer())
        assert resp.status_code == 401
        place.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_admin_lists_every_order(self, client):
        listing = {"items": [], "total": 0}
        with patch.object(admin_orders.order_service, "list_all_orders", new_callable=AsyncMock) as list_all:
            list_all.return_value = listing
            resp = await client.get("/api/admin/orders", headers=_bearer(role="admin"))
        assert resp.status_code == 200
        assert resp.json() == listing
        list_all.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_customer_cannot_list_every_order(self, client):
        resp = await client.get("/api/admin/orders", headers=_bearer(role="customer"))
        assert resp.status_code == 403

    @pytest.mark.asyncio
    async def test_list_requires_login(self, client):
        resp = await client.get("/api/orders", headers={HEADER: str(uuid.uuid4())})
        assert resp.status_code == 401

    @pytest.mark.asyncio
    async def test_admin_transition_requires_admin(self, client):
        resp = await client.patch(
            f"/api/admin/orders/{uuid.uuid4()}/status",
            json={"status": "processing"},
            headers=_bearer(role="customer"),
        )
        assert resp.status_code == 403

    @pytest.mark.asyncio
    async def test_admin_unknown_status_is_422(self, client):
        resp = await client.patch(
            f"/api/admin/orders/{uuid.uuid4()}/status",
            json={"status": "lost"},
            headers=_bearer(role="admin"),
        )
        assert resp.status_code == 422


class TestSessionAndHealth:
    @pytest.mark.asyncio
    async def test_guest_session_is_issued(self, client):
        resp = await client.post("/api/session/guest")
        assert resp.status_code == 201
        session_id = resp.json()["guest_session_id"]
        assert resp.headers[HEADER] == session_id
        uuid.UUID(session_id)

    @pytest.mark.asyncio
    async def test_health(self, client, mock_db):
        mock_db.execute.return_value = make_result()
        resp = await client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "healthy"


class TestCreateApp:
    def test_default_secrets_refuse_to_start(self, settings):
        with pytest.raises(SystemExit):
            create_app(settings.model_copy(update={"debug": False, "jwt_secret_key": "CHANGE_ME"}))

    @pytest.mark.asyncio
    async def test_unhandled_errors_become_500(self, settings):
        app = create_app(settings)
        failing_db = AsyncMock()
        failing_db.execute.side_effect = RuntimeError("boom")

        async def _override_db():
            yield failing_db

        app.dependency_overrides[get_db] = _override_db
        transport = ASGITransport(app=app, raise_app_exceptions=False)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            resp = await ac.get("/api/health")

        assert resp.status_code == 500
        assert resp.json() == {"detail": "Internal server error"}
