import uuid
from datetime import timedelta

import pytest

from vintage_shop.core.identity import Authenticated
from vintage_shop.services.cart_merge_service import merge_guest_cart
from tests.factories import NOW, make_cart, make_cart_item


@pytest.fixture
def user():
    return Authenticated(uuid.uuid4(), "customer")


class TestMergeGuestCart:
    @pytest.mark.asyncio
    async def test_no_guest_cart_is_a_noop(self, mock_db, cart_repo_mock, user):
        user_cart = make_cart(user_id=user.user_id)
        cart_repo_mock.find_or_create_cart.return_value = user_cart
        cart_repo_mock.find_cart.return_value = None

        result = await merge_guest_cart(mock_db, user, uuid.uuid4())

        assert result["guest_cart_found"] is False
        assert result["merged_count"] == 0
        cart_repo_mock.add_item.assert_not_awaited()
        cart_repo_mock.delete_cart.assert_not_awaited()
        cart_repo_mock.touch.assert_awaited()

    @pytest.mark.asyncio
    async def test_moves_missing_items_with_original_timestamps(self, mock_db, cart_repo_mock, user):
        session_id = uuid.uuid4()
        user_cart = make_cart(user_id=user.user_id)
        guest_cart = make_cart(guest_session_id=session_id)
        shared, only_guest = uuid.uuid4(), uuid.uuid4()
        added_at = NOW - timedelta(days=3)

        cart_repo_mock.find_or_create_cart.return_value = user_cart
        cart_repo_mock.find_cart.return_value = guest_cart
        cart_repo_mock.list_items.side_effect = [
            [
                make_cart_item(cart_id=guest_cart.id, product_id=shared),
                make_cart_item(cart_id=guest_cart.id, product_id=only_guest, added_at=added_at),
            ],
            [make_cart_item(cart_id=user_cart.id, product_id=shared)],
        ]
        cart_repo_mock.add_item.return_value = True

        result = await merge_guest_cart(mock_db, user, session_id)

        assert result["guest_cart_found"] is True
        assert result["merged_count"] == 1
        assert result["skipped_count"] == 1
        cart_repo_mock.add_item.assert_awaited_once_with(
            mock_db, user_cart.id, only_guest, added_at=added_at
        )
        cart_repo_mock.clear_items.assert_awaited_once_with(mock_db, guest_cart.id)
        cart_repo_mock.delete_cart.assert_awaited_once_with(mock_db, guest_cart.id)

    @pytest.mark.asyncio
    async def test_guest_cart_is_locked(self, mock_db, cart_repo_mock, user):
        session_id = uuid.uuid4()
        cart_repo_mock.find_or_create_cart.return_value = make_cart(user_id=user.user_id)
        cart_repo_mock.find_cart.return_value = None

        await merge_guest_cart(mock_db, user, session_id)

        args, kwargs = cart_repo_mock.find_cart.await_args
        assert args[1].session_id == session_id
        assert kwargs == {"for_update": True}

    @pytest.mark.asyncio
    async def test_concurrent_insert_counts_as_skipped(self, mock_db, cart_repo_mock, user):
        guest_cart = make_cart(guest_session_id=uuid.uuid4())
        user_cart = make_cart(user_id=user.user_id)
        cart_repo_mock.find_or_create_cart.return_value = user_cart
        cart_repo_mock.find_cart.return_value = guest_cart
        cart_repo_mock.list_items.side_effect = [
            [make_cart_item(cart_id=guest_cart.id, product_id=uuid.uuid4())],
            [],
        ]
        cart_repo_mock.add_item.return_value = False

        result = await merge_guest_cart(mock_db, user, guest_cart.guest_session_id)

        assert result["merged_count"] == 0
        assert result["skipped_count"] == 1
        cart_repo_mock.delete_cart.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_same_cart_only_detaches_session(self, mock_db, cart_repo_mock, user):
        cart = make_cart(user_id=user.user_id)
        cart_repo_mock.find_or_create_cart.return_value = cart
        cart_repo_mock.find_cart.return_value = cart

        result = await merge_guest_cart(mock_db, user, uuid.uuid4())

        assert result["guest_cart_found"] is True
        cart_repo_mock.detach_guest_session.assert_awaited_once_with(mock_db, cart.id)
        cart_repo_mock.delete_cart.assert_not_awaited()
        cart_repo_mock.clear_items.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_result_includes_cart_view(self, mock_db, cart_repo_mock, user):
        user_cart = make_cart(user_id=user.user_id)
        cart_repo_mock.find_or_create_cart.return_value = user_cart
        cart_repo_mock.find_cart.return_value = None
        cart_repo_mock.touch.return_value = NOW

        result = await merge_guest_cart(mock_db, user, uuid.uuid4())
        assert result["cart"]["cart_id"] == user_cart.id
        assert result["cart"]["user_id"] == user.user_id
