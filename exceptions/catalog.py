"""
Catalog-related exceptions.
"""

from .base import NotFoundException, ConflictException


class CatalogItemNotFoundException(NotFoundException):
    """Raised when a course, event or digital product is missing, deleted or unpublished."""

    def __init__(self, item_type: str, item_id: int):
        super().__init__(
            f"{item_type.replace('_', ' ').capitalize()} {item_id} not found",
            details={'item_type': item_type, 'item_id': item_id}
        )
        self.item_type = item_type
        self.item_id = item_id


class InsufficientCapacityException(ConflictException):
    """Raised when an event has fewer available spots than requested."""

    def __init__(self, event_id: int, requested: int):
        super().__init__(
            f"Not enough spots left for event {event_id} (requested {requested})",
            details={'event_id': event_id, 'requested': requested}
        )
        self.event_id = event_id
        self.requested = requested
