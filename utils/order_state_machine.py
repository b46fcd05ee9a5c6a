"""
Order State Machine for validating order status transitions.

Happy path: pending -> payment_pending -> paid -> processing -> completed.
A payment confirmation completes an order directly from any unpaid or
in-progress state. cancelled and refunded are terminal side branches.
"""

import logging
from typing import Dict, List, Set

from enums.order_status import OrderStatus

logger = logging.getLogger(__name__)


class OrderStatusTransition:
    """Represents a valid status transition with metadata"""

    def __init__(self, from_status: OrderStatus, to_status: OrderStatus, requires_admin: bool = False,
                 description: str = ""):
        self.from_status = from_status
        self.to_status = to_status
        self.requires_admin = requires_admin
        self.description = description

    def __repr__(self):
        admin_flag = " (Admin)" if self.requires_admin else ""
        return f"{self.from_status.value} -> {self.to_status.value}{admin_flag}"


class OrderStateMachine:
    """
    Finite state machine for order status transitions with audit logging.

    Invalid transitions (will be rejected):
    - CANCELLED -> any status (final state)
    - REFUNDED -> any status (final state)
    - COMPLETED -> anything but REFUNDED
    """

    VALID_TRANSITIONS: List[OrderStatusTransition] = [
        # From PENDING
        OrderStatusTransition(OrderStatus.PENDING, OrderStatus.PAYMENT_PENDING,
                              description="Payment session created and linked"),
        OrderStatusTransition(OrderStatus.PENDING, OrderStatus.COMPLETED,
                              description="Payment confirmed by provider"),
        OrderStatusTransition(OrderStatus.PENDING, OrderStatus.CANCELLED,
                              description="Abandoned before a payment session existed"),

        # From PAYMENT_PENDING
        OrderStatusTransition(OrderStatus.PAYMENT_PENDING, OrderStatus.PAID,
                              description="Payment captured"),
        OrderStatusTransition(OrderStatus.PAYMENT_PENDING, OrderStatus.COMPLETED,
                              description="Payment confirmed by provider"),
        OrderStatusTransition(OrderStatus.PAYMENT_PENDING, OrderStatus.CANCELLED,
                              description="Payment failed or session expired"),

        # From PAID
        OrderStatusTransition(OrderStatus.PAID, OrderStatus.PROCESSING,
                              description="Fulfilment started"),
        OrderStatusTransition(OrderStatus.PAID, OrderStatus.COMPLETED,
                              description="Fulfilled"),
        OrderStatusTransition(OrderStatus.PAID, OrderStatus.CANCELLED, requires_admin=True,
                              description="Paid order cancelled by admin"),
        OrderStatusTransition(OrderStatus.PAID, OrderStatus.REFUNDED,
                              description="Payment refunded"),

        # From PROCESSING
        OrderStatusTransition(OrderStatus.PROCESSING, OrderStatus.COMPLETED,
                              description="Fulfilled"),
        OrderStatusTransition(OrderStatus.PROCESSING, OrderStatus.CANCELLED, requires_admin=True,
                              description="Order cancelled by admin during fulfilment"),
        OrderStatusTransition(OrderStatus.PROCESSING, OrderStatus.REFUNDED,
                              description="Payment refunded"),

        # From COMPLETED
        OrderStatusTransition(OrderStatus.COMPLETED, OrderStatus.REFUNDED,
                              description="Payment refunded, access revoked"),
    ]

    # Build transition map for fast lookup
    _transition_map: Dict[OrderStatus, Set[OrderStatus]] = {}
    _admin_required_transitions: Set[tuple] = set()
    _transition_descriptions: Dict[tuple, str] = {}

    @classmethod
    def _build_transition_map(cls):
        """Build internal transition maps for performance"""
        if cls._transition_map:
            return  # Already built

        for transition in cls.VALID_TRANSITIONS:
            cls._transition_map.setdefault(transition.from_status, set()).add(transition.to_status)
            if transition.requires_admin:
                cls._admin_required_transitions.add((transition.from_status, transition.to_status))
            cls._transition_descriptions[(transition.from_status, transition.to_status)] = transition.description

    @classmethod
    def is_valid_transition(cls, from_status: OrderStatus, to_status: OrderStatus) -> bool:
        """
        Check if a status transition is valid according to the state machine.

        Staying in the same status is not a transition and returns False.
        """
        cls._build_transition_map()
        return to_status in cls._transition_map.get(from_status, set())

    @classmethod
    def requires_admin(cls, from_status: OrderStatus, to_status: OrderStatus) -> bool:
        cls._build_transition_map()
        return (from_status, to_status) in cls._admin_required_transitions

    @classmethod
    def get_valid_transitions(cls, from_status: OrderStatus) -> List[OrderStatus]:
        cls._build_transition_map()
        return sorted(cls._transition_map.get(from_status, set()), key=lambda status: status.value)

    @classmethod
    def sources_for(cls, to_status: OrderStatus, include_admin: bool = True) -> List[OrderStatus]:
        """
        All statuses from which to_status can be reached (used as UPDATE guards).

        With include_admin=False, transitions reserved for admins are left out.
        """
        cls._build_transition_map()
        return [from_status for from_status, targets in cls._transition_map.items()
                if to_status in targets
                and (include_admin or (from_status, to_status) not in cls._admin_required_transitions)]

    @classmethod
    def is_final_status(cls, status: OrderStatus) -> bool:
        return status in OrderStatus.terminal()

    @classmethod
    def validate_and_log_transition(cls, order_id: int, from_status: OrderStatus, to_status: OrderStatus,
                                    is_admin: bool = False, actor: str = "system") -> bool:
        """
        Validate a status transition and write an audit log line.

        Returns:
            True if transition is valid and logged, False otherwise
        """
        if not cls.is_valid_transition(from_status, to_status):
            logger.error(f"Invalid status transition for order {order_id}: {from_status.value} -> {to_status.value}")
            return False

        if cls.requires_admin(from_status, to_status) and not is_admin:
            logger.error(f"Admin required for transition {from_status.value} -> {to_status.value} on order {order_id}")
            return False

        description = cls._transition_descriptions.get((from_status, to_status), "")
        logger.info(f"ORDER_STATUS_TRANSITION: Order {order_id} {from_status.value} -> {to_status.value} "
                    f"by {actor}: {description}")
        return True
