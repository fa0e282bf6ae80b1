# storefront/errors.py
"""
User-facing failures raised by the cart, promo, loyalty and checkout services.

Every class carries a human readable ``message``; routes flash it and redirect.
Nothing here ever reaches the client as a traceback.
"""
from __future__ import annotations


class ShopError(Exception):
    message = "Something went wrong. Please try again."

    def __init__(self, message: str | None = None):
        if message:
            self.message = message
        super().__init__(self.message)


class NotFound(ShopError):
    message = "Not found."


# ---- checkout form / cart --------------------------------------------------

class ValidationError(ShopError):
    message = "Please correct the highlighted delivery details."

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or None)


class EmptyCart(ShopError):
    message = "Your cart is empty."


class OutOfStock(ShopError):
    def __init__(self, product_name: str):
        self.product_name = product_name
        super().__init__(f'Sorry, "{product_name}" is out of stock.')


class Unavailable(ShopError):
    def __init__(self, product_name: str):
        self.product_name = product_name
        super().__init__(f'Unable to add "{product_name}" - no stock available.')


class InsufficientStock(ShopError):
    def __init__(self, product_name: str, available: int | None = None, product_id: int | None = None):
        self.product_name = product_name
        self.available = available
        self.product_id = product_id
        if available is None:
            msg = f"Insufficient stock for {product_name}."
        else:
            msg = (f"Cannot set quantity above stock. Only {available} units of "
                   f'"{product_name}" are available.')
        super().__init__(msg)


class InvalidQuantity(ShopError):
    message = "Please enter a quantity of at least 1."


# ---- promo -----------------------------------------------------------------

class PromoInvalid(ShopError):
    message = "Promo code not found or inactive"

    @property
    def reason(self) -> str:
        return self.message


# ---- loyalty ---------------------------------------------------------------

class LoyaltyError(ShopError):
    message = "Unable to redeem points right now."


class InvalidAmount(LoyaltyError):
    message = "Please enter a valid number of points."


class NotMultipleOfGranularity(LoyaltyError):
    def __init__(self, step: int):
        self.step = step
        super().__init__(f"Please redeem points in multiples of {step}.")


class LoyaltyInsufficientBalance(LoyaltyError):
    message = "You do not have enough points to redeem that amount."


class SchemaMissing(ShopError):
    message = "Loyalty points are not available right now."


# ---- storage ---------------------------------------------------------------

class StoreFailure(ShopError):
    message = "Unable to complete checkout. Please try again."
