"""
Unit Tests: OrderStateMachine
"""

import pytest

from enums.order_status import OrderStatus
from utils.order_state_machine import OrderStateMachine


class TestValidTransitions:

    @pytest.mark.parametrize("from_status,to_status", [
        (OrderStatus.PENDING, OrderStatus.PAYMENT_PENDING),
        (OrderStatus.PENDING, OrderStatus.COMPLETED),
        (OrderStatus.PAYMENT_PENDING, OrderStatus.COMPLETED),
        (OrderStatus.PAYMENT_PENDING, OrderStatus.CANCELLED),
        (OrderStatus.PAID, OrderStatus.PROCESSING),
        (OrderStatus.PROCESSING, OrderStatus.COMPLETED),
        (OrderStatus.COMPLETED, OrderStatus.REFUNDED),
    ])
    def test_allowed(self, from_status, to_status):
        assert OrderStateMachine.is_valid_transition(from_status, to_status) is True

    @pytest.mark.parametrize("from_status,to_status", [
        (OrderStatus.CANCELLED, OrderStatus.PENDING),
        (OrderStatus.CANCELLED, OrderStatus.COMPLETED),
        (OrderStatus.REFUNDED, OrderStatus.COMPLETED),
        (OrderStatus.COMPLETED, OrderStatus.CANCELLED),
        (OrderStatus.PENDING, OrderStatus.REFUNDED),
        (OrderStatus.PAYMENT_PENDING, OrderStatus.PENDING),
    ])
    def test_rejected(self, from_status, to_status):
        assert OrderStateMachine.is_valid_transition(from_status, to_status) is False

    @pytest.mark.parametrize("status", list(OrderStatus))
    def test_same_status_is_not_a_transition(self, status):
        assert OrderStateMachine.is_valid_transition(status, status) is False

    @pytest.mark.parametrize("status", [OrderStatus.CANCELLED, OrderStatus.REFUNDED])
    def test_terminal_statuses_have_no_exits(self, status):
        assert OrderStateMachine.is_final_status(status)
        assert OrderStateMachine.get_valid_transitions(status) == []


class TestAdminAndSources:

    def test_cancelling_paid_order_requires_admin(self):
        assert OrderStateMachine.requires_admin(OrderStatus.PAID, OrderStatus.CANCELLED)
        assert not OrderStateMachine.requires_admin(OrderStatus.PAYMENT_PENDING, OrderStatus.CANCELLED)

    def test_validate_and_log_respects_admin_flag(self):
        assert OrderStateMachine.validate_and_log_transition(
            1, OrderStatus.PAID, OrderStatus.CANCELLED) is False
        assert OrderStateMachine.validate_and_log_transition(
            1, OrderStatus.PAID, OrderStatus.CANCELLED, is_admin=True, actor="admin:7") is True

    def test_completion_sources_match_completable_statuses(self):
        """Webhook completion guard and the state machine agree"""
        assert set(OrderStateMachine.sources_for(OrderStatus.COMPLETED)) == set(OrderStatus.completable())

    def test_refund_sources(self):
        assert set(OrderStateMachine.sources_for(OrderStatus.REFUNDED)) == {
            OrderStatus.PAID, OrderStatus.PROCESSING, OrderStatus.COMPLETED
        }

    def test_provider_cancel_sources_exclude_admin_transitions(self):
        """Payment failure may only cancel orders that were never paid"""
        assert set(OrderStateMachine.sources_for(OrderStatus.CANCELLED, include_admin=False)) == {
            OrderStatus.PENDING, OrderStatus.PAYMENT_PENDING
        }
        assert OrderStatus.PAID in OrderStateMachine.sources_for(OrderStatus.CANCELLED)
