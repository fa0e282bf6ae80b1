# storefront/services/session_state.py
"""
Per-visitor shopping state kept in the signed session cookie.

``ShopSession`` wraps any dict-like mapping (``flask.session`` in requests, a
plain dict in unit tests) and exposes typed slots. Values are JSON-safe
primitives; money travels as decimal strings.
"""

from .cart_service import CartLine
from .loyalty import PendingRedemption
from .promo_service import LockedPromo

CART_KEY = "cart"
WISHLIST_KEY = "wishlist"
APPLIED_PROMO_KEY = "applied_promo"
PREVIEW_PROMO_KEY = "promo_preview"
LOYALTY_KEY = "loyalty_redemption"
DELIVERY_DRAFT_KEY = "delivery_draft"


class ShopSession:
    def __init__(self, mapping=None):
        self._data = mapping if mapping is not None else {}

    def _get(self, key):
        return self._data.get(key)

    def _set(self, key, value):
        if value is None:
            self._data.pop(key, None)
        else:
            self._data[key] = value
        # flask.session only notices top-level assignment
        if hasattr(self._data, "modified"):
            self._data.modified = True

    # ---- cart ----
    @property
    def cart_lines(self) -> list:
        return [CartLine.from_session(raw) for raw in (self._get(CART_KEY) or [])]

    @cart_lines.setter
    def cart_lines(self, lines):
        self._set(CART_KEY, [line.to_session() for line in lines] or None)

    # ---- wishlist ----
    @property
    def wishlist(self) -> list:
        return list(self._get(WISHLIST_KEY) or [])

    @wishlist.setter
    def wishlist(self, items):
        self._set(WISHLIST_KEY, list(items) or None)

    # ---- promo slots ----
    @property
    def applied_promo(self):
        return LockedPromo.from_session(self._get(APPLIED_PROMO_KEY))

    @applied_promo.setter
    def applied_promo(self, locked):
        self._set(APPLIED_PROMO_KEY, locked.to_session() if locked else None)

    @property
    def preview_promo(self):
        return LockedPromo.from_session(self._get(PREVIEW_PROMO_KEY))

    @preview_promo.setter
    def preview_promo(self, locked):
        self._set(PREVIEW_PROMO_KEY, locked.to_session() if locked else None)

    # ---- loyalty ----
    @property
    def loyalty_redemption(self):
        return PendingRedemption.from_session(self._get(LOYALTY_KEY))

    @loyalty_redemption.setter
    def loyalty_redemption(self, pending):
        self._set(LOYALTY_KEY, pending.to_session() if pending else None)

    # ---- delivery draft ----
    @property
    def delivery_draft(self) -> dict:
        return dict(self._get(DELIVERY_DRAFT_KEY) or {})

    @delivery_draft.setter
    def delivery_draft(self, draft):
        self._set(DELIVERY_DRAFT_KEY, dict(draft) if draft else None)

    def clear_checkout_state(self):
        """Drop everything a committed order consumed."""
        for key in (CART_KEY, APPLIED_PROMO_KEY, PREVIEW_PROMO_KEY, LOYALTY_KEY, DELIVERY_DRAFT_KEY):
            self._set(key, None)
