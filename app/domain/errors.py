# app/domain/errors.py
"""
Wyjatki domenowe.

Dziedzicza po wbudowanych typach, ktore routery mapuja na kody HTTP:
LookupError -> 404, ValueError -> 400, PermissionError -> 403.
"""


class ProductNotFound(LookupError):
    def __init__(self, product_id: int):
        super().__init__(f"Product {product_id} not found")
        self.product_id = product_id


class OutOfStock(ValueError):
    def __init__(self, product_id: int, detail: str | None = None):
        super().__init__(detail or f"Product {product_id} is out of stock")
        self.product_id = product_id


class InvalidQuantity(ValueError):
    pass


class EmptyCart(ValueError):
    def __init__(self):
        super().__init__("Cart is empty")


class InvalidState(ValueError):
    pass


class NotFound(LookupError):
    pass


class Forbidden(PermissionError):
    pass


class PaymentLinkCreationFailed(RuntimeError):
    def __init__(self, detail: str = "Failed to create payment link"):
        super().__init__(detail)


class GatewayUnavailable(RuntimeError):
    pass


# bledy webhooka - nie wychodza do klienta HTTP, zamieniane na {success, message}
class WebhookRejected(Exception):
    message = "Webhook rejected"

    def __init__(self, detail: str | None = None):
        super().__init__(detail or self.message)


class InvalidSignature(WebhookRejected):
    message = "Invalid signature"


class InvalidPayload(WebhookRejected):
    message = "Invalid payload"


class BillNotFound(WebhookRejected):
    message = "Bill not found"


class AmountMismatch(WebhookRejected):
    message = "Amount mismatch"


class InvalidCursor(ValueError):
    def __init__(self, cursor: int):
        super().__init__(f"Invalid cursor {cursor}")
        self.cursor = cursor
