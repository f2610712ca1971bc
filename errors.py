"""
Domain errors raised by the storage and service layers.

The API layer maps each class to an HTTP status; nothing below api.py
knows about HTTP.
"""


class StoreError(Exception):
    """Base class for every error the storefront raises on purpose."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(StoreError):
    status_code = 404


class InvalidOrderError(StoreError):
    status_code = 400


class InsufficientStockError(StoreError):
    status_code = 400

    def __init__(self, product_id: int):
        super().__init__(f"Insufficient stock: {product_id}")
        self.product_id = product_id


class ConflictError(StoreError):
    status_code = 409


class AdminAlreadySetUpError(ConflictError):
    status_code = 400

    def __init__(self):
        super().__init__("Admin already set up")


class ShippingNotConfiguredError(StoreError):
    status_code = 400

    def __init__(self):
        super().__init__("Shipping API is not configured")
