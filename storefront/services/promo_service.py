# storefront/services/promo_service.py
"""
Promo code rules.

``evaluate`` is the single decision function behind apply, preview, confirm
and checkout-page revalidation. A passing evaluation yields a *locked*
discount that travels in the session untouched until the order commits.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import func

from ..errors import EmptyCart, PromoInvalid, ValidationError
from ..extensions import db
from ..model import Promo
from ..utils.money import D, ZERO, Money, fmt_dollars, round_money, to_string_money
from .pricing import PROMO_KINDS, cart_subtotal, promo_discount_amount

logger = logging.getLogger(__name__)

NOT_FOUND = "Promo code not found or inactive"
NOT_STARTED = "Promo not yet active"
EXPIRED = "Promo has expired"
MAX_USES = "Promo has reached its maximum uses"
PER_USER = "Promo already used by this account"


def normalize_code(code) -> str:
    return (code or "").strip().upper()


@dataclass(frozen=True)
class PromoDecision:
    ok: bool
    discount: Money = ZERO
    reason: str | None = None


@dataclass(frozen=True)
class LockedPromo:
    promo_id: int
    code: str
    discount: Money

    def to_session(self):
        return {"id": self.promo_id, "code": self.code, "discount": to_string_money(self.discount)}

    @classmethod
    def from_session(cls, raw):
        if not raw:
            return None
        return cls(promo_id=int(raw["id"]), code=raw.get("code") or "", discount=D(raw.get("discount")))

    def as_api(self):
        return self.to_session()


def within_window(promo, now) -> str | None:
    """Checks that need no cart or user. Returns the failure reason or None."""
    if promo is None or not promo.active:
        return NOT_FOUND
    if promo.starts_at and promo.starts_at > now:
        return NOT_STARTED
    if promo.expires_at and promo.expires_at < now:
        return EXPIRED
    return None


def usage_cap_reason(promo, user_id=None, redemption_lookup=None) -> str | None:
    if promo.max_uses is not None and (promo.uses or 0) >= promo.max_uses:
        return MAX_USES
    if promo.per_user_limit is not None and user_id is not None and redemption_lookup is not None:
        if redemption_lookup(promo.id, user_id) >= promo.per_user_limit:
            return PER_USER
    return None


def still_redeemable(promo, user_id=None, redemption_lookup=None, now=None) -> str | None:
    """Commit-time recheck: window and usage caps, no minimum-spend test."""
    now = now or datetime.utcnow()
    return within_window(promo, now) or usage_cap_reason(promo, user_id, redemption_lookup)


def evaluate(promo, subtotal, user_id=None, redemption_lookup=None, now=None) -> PromoDecision:
    now = now or datetime.utcnow()
    subtotal = round_money(subtotal)

    reason = within_window(promo, now)
    if reason:
        return PromoDecision(ok=False, reason=reason)

    if promo.min_total is not None and D(promo.min_total) > subtotal:
        return PromoDecision(ok=False, reason=f"Promo requires minimum spend of {fmt_dollars(promo.min_total)}")

    reason = usage_cap_reason(promo, user_id, redemption_lookup)
    if reason:
        return PromoDecision(ok=False, reason=reason)

    return PromoDecision(ok=True, discount=promo_discount_amount(promo.kind, promo.amount, subtotal))


class PromoValidator:
    def __init__(self, store, clock=datetime.utcnow):
        self.store = store
        self.clock = clock

    def _evaluate(self, promo, shop, user_id) -> PromoDecision:
        return evaluate(
            promo,
            cart_subtotal(shop.cart_lines),
            user_id=user_id,
            redemption_lookup=self.store.get_user_promo_redemption_count,
            now=self.clock(),
        )

    def _lock(self, shop, user_id, code) -> LockedPromo:
        code = normalize_code(code)
        if not code:
            raise PromoInvalid("Please provide a promo code")
        if not shop.cart_lines:
            raise EmptyCart()
        promo = self.store.get_promo(code=code)
        decision = self._evaluate(promo, shop, user_id)
        if not decision.ok:
            raise PromoInvalid(decision.reason)
        return LockedPromo(promo_id=promo.id, code=promo.code, discount=decision.discount)

    def apply(self, shop, user_id, code) -> LockedPromo:
        locked = self._lock(shop, user_id, code)
        shop.applied_promo = locked
        shop.preview_promo = None
        return locked

    def preview(self, shop, user_id, code) -> LockedPromo:
        locked = self._lock(shop, user_id, code)
        shop.preview_promo = locked
        return locked

    def confirm(self, shop, user_id) -> LockedPromo:
        pending = shop.preview_promo
        if pending is None:
            raise PromoInvalid("No promo preview to confirm")
        # the cart may have changed since the preview was shown
        promo = self.store.get_promo(promo_id=pending.promo_id)
        decision = self._evaluate(promo, shop, user_id)
        if not decision.ok:
            shop.preview_promo = None
            raise PromoInvalid(decision.reason)
        locked = LockedPromo(promo_id=promo.id, code=promo.code, discount=decision.discount)
        shop.applied_promo = locked
        shop.preview_promo = None
        return locked

    def revalidate_applied(self, shop, user_id):
        """Returns ``(locked, reason)``. An invalid promo is dropped from the session."""
        locked = shop.applied_promo
        if locked is None:
            return None, None
        promo = self.store.get_promo(promo_id=locked.promo_id)
        decision = self._evaluate(promo, shop, user_id)
        if not decision.ok:
            logger.info("applied promo %s dropped: %s", locked.code, decision.reason)
            shop.applied_promo = None
            return None, decision.reason
        return locked, None

    def cancel_preview(self, shop) -> LockedPromo | None:
        pending = shop.preview_promo
        if pending is not None:
            shop.preview_promo = None
        return pending

    def remove_applied(self, shop) -> LockedPromo | None:
        locked = shop.applied_promo
        if locked is not None:
            shop.applied_promo = None
        return locked


def active_promos(now=None):
    now = now or datetime.utcnow()
    q = Promo.query.filter(Promo.active.is_(True))
    q = q.filter((Promo.starts_at.is_(None)) | (Promo.starts_at <= now))
    q = q.filter((Promo.expires_at.is_(None)) | (Promo.expires_at >= now))
    return q.order_by(Promo.code.asc()).all()


# ---- admin ----

def _parse_iso8601(s):
    if not s: return None
    s = s.strip()
    if not s: return None
    if s.endswith("Z"): s = s[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(s)
    except ValueError:
        return None
    if dt.tzinfo:
        return dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt

def _blank(v):
    return v is None or str(v).strip() == ""

def _truthy(v):
    return str(v).strip().lower() in {"1", "true", "yes", "on"}

def _positive_int(v):
    try:
        n = int(str(v).strip())
    except ValueError:
        return None
    return n if n > 0 else None

def parse_promo_payload(data) -> tuple[dict, list[str]]:
    """Clean an admin form. Returns ``(fields, errors)``; every error is collected."""
    errors = []
    fields = {}

    code = normalize_code(data.get("code"))
    if not code:
        errors.append("Code is required")
    fields["code"] = code
    fields["description"] = (data.get("description") or "").strip() or None

    kind = (data.get("type") or "").strip().lower()
    fields["kind"] = kind if kind in PROMO_KINDS else "fixed"

    try:
        amount = D(str(data.get("amount") or "").strip() or "0")
    except ArithmeticError:
        amount = None
    if amount is None or not amount.is_finite() or amount <= 0:
        errors.append("Amount must be a positive number")
    elif fields["kind"] == "percent" and amount > 100:
        errors.append("Percent amount cannot exceed 100")
    else:
        fields["amount"] = round_money(amount)

    fields["min_total"] = None
    if not _blank(data.get("min_total")):
        try:
            min_total = D(str(data.get("min_total")).strip())
        except ArithmeticError:
            min_total = None
        if min_total is None or not min_total.is_finite() or min_total < 0:
            errors.append("Min total must be a non-negative number")
        else:
            fields["min_total"] = round_money(min_total)

    fields["per_user_limit"] = None
    if not _blank(data.get("per_user_limit")):
        fields["per_user_limit"] = _positive_int(data.get("per_user_limit"))
        if fields["per_user_limit"] is None:
            errors.append("Per-user limit must be a positive integer")

    fields["max_uses"] = None
    if not _blank(data.get("max_uses")):
        fields["max_uses"] = _positive_int(data.get("max_uses"))
        if fields["max_uses"] is None:
            errors.append("Max uses must be a positive integer")

    fields["starts_at"] = _parse_iso8601(data.get("starts_at"))
    if not _blank(data.get("starts_at")) and fields["starts_at"] is None:
        errors.append("Invalid starts_at datetime")
    fields["expires_at"] = _parse_iso8601(data.get("expires_at"))
    if not _blank(data.get("expires_at")) and fields["expires_at"] is None:
        errors.append("Invalid expires_at datetime")
    if fields["starts_at"] and fields["expires_at"] and fields["starts_at"] >= fields["expires_at"]:
        errors.append("starts_at must be before expires_at")

    fields["active"] = _truthy(data.get("active", "on"))
    return fields, errors

def code_taken(code: str, exclude_id: int | None = None) -> bool:
    q = Promo.query.filter(func.upper(Promo.code) == code.upper())
    if exclude_id is not None:
        q = q.filter(Promo.id != exclude_id)
    return db.session.query(q.exists()).scalar()

def create_promo(data) -> Promo:
    fields, errors = parse_promo_payload(data)
    if fields["code"] and code_taken(fields["code"]):
        errors.append("Promo code already exists")
    if errors:
        raise ValidationError(errors)
    p = Promo(uses=0, **fields)
    db.session.add(p)
    db.session.commit()
    logger.info("promo %s created", p.code)
    return p

def update_promo(promo: Promo, data) -> Promo:
    fields, errors = parse_promo_payload(data)
    if fields["code"] and code_taken(fields["code"], exclude_id=promo.id):
        errors.append("Promo code already used by another promo")
    if errors:
        raise ValidationError(errors)
    for k, v in fields.items():
        setattr(promo, k, v)
    db.session.commit()
    logger.info("promo %s updated", promo.code)
    return promo

def delete_promo(promo: Promo) -> None:
    code = promo.code
    db.session.delete(promo)
    db.session.commit()
    logger.info("promo %s deleted", code)
