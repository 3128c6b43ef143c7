from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from vintage_shop.core.config import Settings
from vintage_shop.repositories import cart_repo, order_repo, product_repo, user_repo

TEST_SECRET = "test-secret-key-for-unit-tests-0123456789"


class _Savepoint:
    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        jwt_secret_key=TEST_SECRET,
        db_password="test",
        shipping_surcharge=1500,
        shipping_method_name="Courier",
        smtp_host="",
        debug=True,
    )


@pytest.fixture
def mock_db():
    """Create a mock async database session."""
    db = AsyncMock()
    db.flush = AsyncMock()
    db.add = MagicMock()
    db.execute = AsyncMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    db.refresh = AsyncMock()
    db.begin_nested = MagicMock(side_effect=lambda: _Savepoint())
    return db


def _patch_module(module, names):
    return patch.multiple(module, **{name: AsyncMock() for name in names})


@pytest.fixture
def cart_repo_mock():
    names = [
        "find_cart", "find_or_create_cart", "add_item", "remove_item",
        "delete_items", "clear_items", "touch", "list_items",
        "list_items_with_products", "delete_cart", "detach_guest_session",
    ]
    with _patch_module(cart_repo, names):
        cart_repo.list_items_with_products.return_value = []
        cart_repo.list_items.return_value = []
        yield cart_repo


@pytest.fixture
def product_repo_mock():
    with _patch_module(product_repo, ["get_product", "lock_products", "set_status", "mark_products_sold"]):
        yield product_repo


@pytest.fixture
def user_repo_mock():
    with _patch_module(user_repo, ["get_by_id"]):
        yield user_repo


@pytest.fixture
def order_repo_mock():
    with _patch_module(order_repo, ["get_by_id", "get_items_with_names", "list_for_user", "list_all"]):
        yield order_repo
