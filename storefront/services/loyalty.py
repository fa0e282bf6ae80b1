# storefront/services/loyalty.py
"""
Single loyalty ledger over ``users.loyalty_points``.

Redemption is two-phase: points leave the balance as soon as the shopper
redeems them (committed right away) and the pending redemption rides in the
session until checkout consumes it or the shopper cancels and the points are
credited back. The reservation remembers whose balance it came from. Earning
happens inside the checkout transaction and does not commit on its own.

Every balance movement also writes a ``LoyaltyTransaction`` row in the same
unit of work.
"""
import logging
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError

from ..errors import (
    InvalidAmount,
    LoyaltyError,
    LoyaltyInsufficientBalance,
    NotMultipleOfGranularity,
    SchemaMissing,
    StoreFailure,
)
from ..utils.money import D, Money, floor_int, to_string_money
from .pricing import points_to_dollars

logger = logging.getLogger(__name__)

DEFAULT_TIERS = (("Gold", 600), ("Silver", 200), ("Basic", 0))


def tier_for(balance: int, tiers=DEFAULT_TIERS) -> str:
    """Highest threshold <= balance wins; falls back to the lowest tier."""
    ordered = sorted(tiers, key=lambda t: t[1], reverse=True)
    for name, threshold in ordered:
        if balance >= threshold:
            return name
    return ordered[-1][0]


@dataclass(frozen=True)
class PendingRedemption:
    points: int
    discount: Money
    user_id: int | None = None

    def to_session(self):
        return {
            "points": self.points,
            "discount": to_string_money(self.discount),
            "user_id": self.user_id,
        }

    @classmethod
    def from_session(cls, raw):
        if not raw:
            return None
        uid = raw.get("user_id")
        return cls(
            points=int(raw.get("points") or 0),
            discount=D(raw.get("discount")),
            user_id=int(uid) if uid is not None else None,
        )

    def belongs_to(self, user_id) -> bool:
        return self.user_id is None or self.user_id == user_id

    def as_api(self):
        return self.to_session()


def _parse_points(value) -> int:
    if isinstance(value, bool):
        raise InvalidAmount()
    try:
        points = int(str(value).strip())
    except (TypeError, ValueError):
        raise InvalidAmount() from None
    if points <= 0:
        raise InvalidAmount()
    return points


class LoyaltyLedger:
    def __init__(self, store, point_value="0.05", step=100, tiers=DEFAULT_TIERS):
        self.store = store
        self.point_value = D(point_value)
        self.step = int(step)
        self.tiers = tuple(tiers)

    @property
    def enabled(self) -> bool:
        return self.store.supports_loyalty

    def tier_for(self, balance: int) -> str:
        return tier_for(balance or 0, self.tiers)

    def balance(self, user_id: int) -> int | None:
        return self.store.get_loyalty_balance(user_id)

    def history(self, user_id: int, limit: int = 20) -> list:
        if not self.enabled:
            return []
        return self.store.get_loyalty_history(user_id, limit)

    def _retier(self, user_id: int, balance: int) -> None:
        self.store.set_membership_tier(user_id, self.tier_for(balance))

    def _move(self, user_id: int, delta: int, kind: str, description=None, order_id=None) -> int:
        new_balance = self.store.adjust_loyalty_balance(user_id, delta)
        self.store.record_loyalty_transaction(user_id, delta, kind, description, order_id)
        self._retier(user_id, new_balance)
        return new_balance

    def redeem(self, shop, user_id: int, points) -> PendingRedemption:
        points = _parse_points(points)
        if points % self.step:
            raise NotMultipleOfGranularity(self.step)
        self.release_foreign(shop, user_id)
        if shop.loyalty_redemption is not None:
            raise LoyaltyError("You already have a pending redemption. Cancel it first to change the amount.")
        if not self.enabled:
            raise SchemaMissing()

        balance = self.balance(user_id) or 0
        if points > balance:
            raise LoyaltyInsufficientBalance()

        try:
            # the store guard rejects the debit if a concurrent redeem got there first
            new_balance = self._move(user_id, -points, "redeem", f"Redeemed {points} points at checkout")
            self.store.commit()
        except LoyaltyError:
            self.store.rollback()
            raise
        except SQLAlchemyError:
            self.store.rollback()
            logger.exception("loyalty debit failed user_id=%s points=%s", user_id, points)
            raise StoreFailure("Unable to redeem points right now. Please try again.") from None

        pending = PendingRedemption(
            points=points,
            discount=points_to_dollars(points, self.point_value),
            user_id=user_id,
        )
        shop.loyalty_redemption = pending
        logger.info("loyalty redeem user_id=%s points=%s balance=%s", user_id, points, new_balance)
        return pending

    def cancel_redemption(self, shop, user_id: int) -> PendingRedemption | None:
        """Credit a pending redemption back to whoever it was debited from."""
        pending = shop.loyalty_redemption
        if pending is None:
            return None
        if not self.enabled:
            # nothing was ever debited from a missing column
            shop.loyalty_redemption = None
            return pending
        owner = pending.user_id if pending.user_id is not None else user_id
        try:
            new_balance = self._move(owner, pending.points, "restore", "Cancelled redemption")
            self.store.commit()
        except SQLAlchemyError:
            self.store.rollback()
            logger.exception("loyalty restore failed user_id=%s points=%s", owner, pending.points)
            raise StoreFailure("Unable to restore points right now. Please try again.") from None

        shop.loyalty_redemption = None
        logger.info("loyalty restore user_id=%s points=%s balance=%s", owner, pending.points, new_balance)
        return pending

    def release_foreign(self, shop, user_id: int) -> PendingRedemption | None:
        """Hand back a redemption reserved by a different user on this session."""
        pending = shop.loyalty_redemption
        if pending is None or pending.belongs_to(user_id):
            return None
        logger.warning("loyalty redemption of user_id=%s released for user_id=%s", pending.user_id, user_id)
        return self.cancel_redemption(shop, user_id)

    def earn(self, user_id: int, dollars, order_id: int | None = None) -> int | None:
        """Credit floor(dollars) points inside the caller's transaction. None when unsupported."""
        if not self.enabled:
            logger.warning("loyalty accrual skipped user_id=%s: loyalty schema missing", user_id)
            return None
        points = max(0, floor_int(dollars))
        if points == 0:
            return self.balance(user_id)
        description = f"Earned on order {order_id}" if order_id is not None else "Earned on purchase"
        return self._move(user_id, points, "earn", description, order_id)

    def set_balance(self, user_id: int, points) -> int:
        try:
            points = int(str(points).strip())
        except (TypeError, ValueError):
            points = -1
        if points < 0:
            raise InvalidAmount("Loyalty points must be a non-negative integer.")
        if not self.enabled:
            raise SchemaMissing()
        delta = points - (self.balance(user_id) or 0)
        self.store.set_loyalty_balance(user_id, points)
        if delta:
            self.store.record_loyalty_transaction(user_id, delta, "adjust", "Balance set by admin")
        self._retier(user_id, points)
        self.store.commit()
        return points
