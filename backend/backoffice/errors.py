# Overview: Domain exception hierarchy shared by services and the HTTP error boundary.

from __future__ import annotations


class BackofficeError(Exception):
    """Base class for every expected (client-visible) failure."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(BackofficeError, ValueError):
    """400-level input problem: missing/invalid field, bad enum value."""


class SchemaValidationError(ValidationError):
    """422-level payload rejected by the column-driven schema policy."""

    status_code = 422

    def __init__(self, errors: list[dict]):
        message = "; ".join(f"{e['field']}: {e['message']}" for e in errors) or "Invalid payload"
        super().__init__(message)
        self.errors = errors


class NotFoundError(BackofficeError):
    """Referenced record is absent or soft-deleted."""

    status_code = 404


class StateError(BackofficeError):
    """Operation not permitted in the document's current status."""


class ConflictError(BackofficeError):
    """Business rule conflict (duplicate code, already allocated, ...)."""


class InsufficientStockError(StateError):
    """A movement or reservation would drive available quantity (on hand minus reserved) below zero."""

    def __init__(self, item_id: int, store_id: int, available, requested):
        super().__init__(
            f"Insufficient stock for item {item_id} at store {store_id}. "
            f"Available: {available}, requested: {requested}"
        )
        self.item_id = item_id
        self.store_id = store_id
        self.available = available
        self.requested = requested
