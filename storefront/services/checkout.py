# storefront/services/checkout.py
"""
Checkout orchestration.

    IDLE -> VALIDATING -> COMMITTING -> COMMITTED
    IDLE -> VALIDATING -> ABORTED      (COMMITTING may also end here)

Validation (empty cart, delivery form) happens before any write. Everything
from the order header to the promo counters runs in one store transaction;
any failure rolls it back and leaves the session untouched so the shopper
can retry. Loyalty accrual is best-effort: a store without the loyalty
column skips it and the order still completes.
"""
import enum
import logging
import re
from dataclasses import dataclass
from datetime import date, datetime

from sqlalchemy.exc import SQLAlchemyError

from ..errors import EmptyCart, InsufficientStock, ShopError, StoreFailure, ValidationError
from ..utils.money import ZERO
from .pricing import PriceBreakdown, compute_breakdown
from .promo_service import still_redeemable

logger = logging.getLogger(__name__)

CONTACT_RE = re.compile(r"^\+?\d{8,15}$")
POSTAL_RE = re.compile(r"^\d{6}$")

DELIVERY_FIELDS = (
    "customer_name",
    "customer_contact",
    "delivery_address",
    "postal_code",
    "payment_method",
    "delivery_date",
    "delivery_time",
    "order_notes",
)


class CheckoutState(enum.Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    COMMITTING = "committing"
    COMMITTED = "committed"
    ABORTED = "aborted"


@dataclass(frozen=True)
class DeliveryDetails:
    customer_name: str
    customer_contact: str
    delivery_address: str
    postal_code: str
    payment_method: str
    delivery_date: date
    delivery_time: str
    order_notes: str | None = None

    def as_columns(self):
        return {
            "customer_name": self.customer_name,
            "customer_contact": self.customer_contact,
            "delivery_address": self.delivery_address,
            "postal_code": self.postal_code,
            "payment_method": self.payment_method,
            "delivery_date": self.delivery_date,
            "delivery_time": self.delivery_time,
            "order_notes": self.order_notes,
        }


def delivery_draft_from(form) -> dict:
    return {k: (form.get(k) or "").strip() for k in DELIVERY_FIELDS}


def validate_delivery(form, today: date, time_slots, payment_methods) -> DeliveryDetails:
    """Collect every problem with the delivery form, then raise once."""
    draft = delivery_draft_from(form)
    errors = []

    if not draft["customer_name"]:
        errors.append("Name is required.")
    contact = draft["customer_contact"].replace(" ", "")
    if not contact:
        errors.append("Contact number is required.")
    elif not CONTACT_RE.match(contact):
        errors.append("Contact number must be 8 to 15 digits.")
    if not draft["delivery_address"]:
        errors.append("Delivery address is required.")
    if not draft["postal_code"]:
        errors.append("Postal code is required.")
    elif not POSTAL_RE.match(draft["postal_code"]):
        errors.append("Postal code must be 6 digits.")
    if draft["payment_method"] not in payment_methods:
        errors.append("Please select a payment method.")

    delivery_date = None
    if not draft["delivery_date"]:
        errors.append("Delivery date is required.")
    else:
        try:
            delivery_date = date.fromisoformat(draft["delivery_date"])
        except ValueError:
            errors.append("Delivery date is invalid.")
        else:
            if delivery_date < today:
                errors.append("Delivery date cannot be in the past.")
    if draft["delivery_time"] not in time_slots:
        errors.append("Please select a delivery time slot.")

    if errors:
        raise ValidationError(errors)

    return DeliveryDetails(
        customer_name=draft["customer_name"],
        customer_contact=contact,
        delivery_address=draft["delivery_address"],
        postal_code=draft["postal_code"],
        payment_method=draft["payment_method"],
        delivery_date=delivery_date,
        delivery_time=draft["delivery_time"],
        order_notes=draft["order_notes"] or None,
    )


def format_invoice_number(order_id: int, base: int = 108000) -> str:
    return f"#{base + int(order_id)}"


@dataclass
class CheckoutResult:
    order_id: int
    invoice_id: int
    invoice_number: str
    breakdown: PriceBreakdown
    points_earned: int | None
    promo_counted: bool = False


class CheckoutOrchestrator:
    def __init__(self, store, ledger, validator, invoice_base=108000,
                 time_slots=(), payment_methods=(), clock=datetime.utcnow):
        self.store = store
        self.ledger = ledger
        self.validator = validator
        self.invoice_base = invoice_base
        self.time_slots = tuple(time_slots)
        self.payment_methods = tuple(payment_methods)
        self.clock = clock
        self.state = CheckoutState.IDLE

    def price(self, shop) -> PriceBreakdown:
        """Breakdown from the cart snapshot plus the locked promo and pending redemption."""
        lines = shop.cart_lines
        applied = shop.applied_promo
        pending = shop.loyalty_redemption
        subtotal = compute_breakdown(lines).subtotal
        promo_discount = min(applied.discount, subtotal) if applied else ZERO
        loyalty_discount = pending.discount if pending else ZERO
        return compute_breakdown(lines, promo_discount, loyalty_discount)

    def review(self, shop, user_id):
        """Checkout page view. Returns ``(breakdown, dropped_reason)``; an invalid applied promo is dropped first."""
        self.ledger.release_foreign(shop, user_id)
        _, reason = self.validator.revalidate_applied(shop, user_id)
        return self.price(shop), reason

    def checkout(self, shop, user_id: int, form) -> CheckoutResult:
        self.state = CheckoutState.VALIDATING
        lines = shop.cart_lines
        if not lines:
            self.state = CheckoutState.ABORTED
            raise EmptyCart()
        try:
            details = validate_delivery(form, self.clock().date(), self.time_slots, self.payment_methods)
        except ValidationError:
            shop.delivery_draft = delivery_draft_from(form)
            self.state = CheckoutState.ABORTED
            raise

        self.ledger.release_foreign(shop, user_id)
        breakdown = self.price(shop)
        applied = shop.applied_promo
        pending = shop.loyalty_redemption

        points_earned = breakdown.earned_points if self.ledger.enabled else None

        self.state = CheckoutState.COMMITTING
        step = "order"
        try:
            with self.store.transaction():
                header = details.as_columns()
                header.update(
                    user_id=user_id,
                    subtotal=breakdown.subtotal,
                    promo_code=applied.code if applied else None,
                    promo_discount=breakdown.promo_discount,
                    loyalty_points_redeemed=pending.points if pending else 0,
                    loyalty_discount=breakdown.loyalty_discount,
                    final_total=breakdown.final_total,
                    points_earned=points_earned or 0,
                )
                order_id = self.store.insert_order(header)

                for line in lines:
                    step = f"stock:{line.product_id}"
                    self.store.insert_order_item(order_id, line)
                    if self.store.decrement_stock_if_available(line.product_id, line.quantity) == 0:
                        raise InsufficientStock(line.product_name, product_id=line.product_id)

                step = "invoice"
                invoice_number = format_invoice_number(order_id, self.invoice_base)
                invoice_id = self.store.insert_invoice(
                    order_id, user_id, invoice_number, breakdown.subtotal, breakdown.final_total
                )

                step = "loyalty"
                self.ledger.earn(user_id, breakdown.final_total, order_id=order_id)

                step = "promo"
                promo_counted = self._count_promo(applied, user_id)
        except ShopError as e:
            self.state = CheckoutState.ABORTED
            logger.info("checkout aborted user_id=%s step=%s reason=%s", user_id, step, e.message)
            raise
        except SQLAlchemyError:
            self.state = CheckoutState.ABORTED
            logger.exception("checkout store failure user_id=%s step=%s", user_id, step)
            raise StoreFailure() from None
        except Exception:
            self.state = CheckoutState.ABORTED
            logger.exception("checkout failed user_id=%s step=%s", user_id, step)
            raise

        self.state = CheckoutState.COMMITTED
        shop.clear_checkout_state()
        logger.info(
            "checkout committed user_id=%s order_id=%s invoice=%s final_total=%s",
            user_id, order_id, invoice_number, breakdown.final_total,
        )
        return CheckoutResult(
            order_id=order_id,
            invoice_id=invoice_id,
            invoice_number=invoice_number,
            breakdown=breakdown,
            points_earned=points_earned,
            promo_counted=promo_counted,
        )

    def _count_promo(self, applied, user_id) -> bool:
        """Bump usage counters. An invalidated promo keeps its locked discount but is not counted."""
        if applied is None:
            return False
        promo = self.store.get_promo(promo_id=applied.promo_id)
        reason = still_redeemable(
            promo, user_id, self.store.get_user_promo_redemption_count, now=self.clock()
        )
        if reason:
            logger.warning("promo %s not counted at commit: %s", applied.code, reason)
            return False
        if self.store.increment_promo_usage(promo.id) == 0:
            logger.warning("promo %s not counted at commit: usage cap reached", applied.code)
            return False
        if user_id is not None:
            self.store.upsert_user_promo_redemption(promo.id, user_id)
        return True
