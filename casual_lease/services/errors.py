"""Domain errors raised by the booking workflows.

Routes translate these into HTTP errors; background jobs log them.
"""


class NotFoundError(Exception):
    """A referenced entity does not exist (data integrity failure, HTTP 404)."""

    def __init__(self, entity: str, entity_id: int | str | None = None) -> None:
        self.entity = entity
        self.entity_id = entity_id
        detail = f"{entity} not found" if entity_id is None else f"{entity} {entity_id} not found"
        super().__init__(detail)


class BookingConflictError(Exception):
    """The booking changed status underneath us (concurrent writer, HTTP 409)."""


class InvoiceDispatchError(Exception):
    """An invoice could not be delivered; the outbox will retry it."""
