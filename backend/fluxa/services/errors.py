# Overview: Domain error taxonomy shared by the stock ledger and sale processing.

from __future__ import annotations


class ServiceError(Exception):
    """Base for domain failures; carries a caller-facing message and structured details."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class NotFoundError(ServiceError):
    """A referenced entity does not exist."""


class ProductUnavailableError(ServiceError):
    """Product status forbids selling it."""


class InsufficientStockError(ServiceError):
    """Requested quantity exceeds what is on hand."""

    def __init__(self, *, product_id: int, title: str, available: int, requested: int):
        super().__init__(
            f'Insufficient stock for "{title}". Available: {available}, requested: {requested}.',
            details={
                "product_id": product_id,
                "title": title,
                "available": available,
                "requested": requested,
            },
        )


class PersistenceError(ServiceError):
    """Storage or transaction failure. The message is safe to show; the cause is logged."""
