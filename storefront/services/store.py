# storefront/services/store.py
"""
Relational store used by the checkout engine.

Every mutation of shared rows (stock, promo usage, loyalty balance) is a single
conditional ``UPDATE ... WHERE`` statement. The caller reads ``rowcount`` to
learn whether the guard held; nothing here does read-then-write.
"""
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime

from flask import current_app
from sqlalchemy import case, func, inspect, or_, select, update

from ..errors import LoyaltyInsufficientBalance, NotFound, SchemaMissing
from ..extensions import db
from ..model import Invoice, LoyaltyTransaction, Order, OrderItem, Product, Promo, PromoRedemption, User
from ..utils.money import D, round_money

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StockInfo:
    product_id: int
    name: str
    price: object
    quantity: int
    image: str | None = None


class SqlStore:
    def __init__(self, session=None, supports_loyalty: bool | None = None):
        self._session = session
        self._supports_loyalty = supports_loyalty

    @property
    def session(self):
        return self._session if self._session is not None else db.session

    # ---- transaction control ----
    @contextmanager
    def transaction(self):
        try:
            yield self
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

    def commit(self):
        self.session.commit()

    def rollback(self):
        self.session.rollback()

    # ---- stock ----
    def get_product_stock(self, product_id: int) -> StockInfo | None:
        row = self.session.execute(
            select(Product.id, Product.name, Product.price, Product.quantity, Product.image)
            .where(Product.id == product_id)
        ).first()
        if row is None:
            return None
        return StockInfo(product_id=row.id, name=row.name, price=D(row.price),
                         quantity=int(row.quantity or 0), image=row.image)

    def decrement_stock_if_available(self, product_id: int, amount: int) -> int:
        res = self.session.execute(
            update(Product)
            .where(Product.id == product_id, Product.quantity >= amount)
            .values(quantity=Product.quantity - amount)
            .execution_options(synchronize_session=False)
        )
        return res.rowcount

    # ---- orders / invoices ----
    def insert_order(self, header: dict) -> int:
        order = Order(**header)
        self.session.add(order)
        self.session.flush()
        return order.id

    def insert_order_item(self, order_id: int, line) -> None:
        self.session.add(OrderItem(
            order_id=order_id,
            product_id=line.product_id,
            product_name=line.product_name,
            unit_price=round_money(line.unit_price),
            quantity=line.quantity,
            line_total=round_money(line.line_total),
        ))
        self.session.flush()

    def insert_invoice(self, order_id: int, user_id, invoice_number: str, subtotal, final_total) -> int:
        inv = Invoice(
            order_id=order_id,
            user_id=user_id,
            invoice_number=invoice_number,
            subtotal=round_money(subtotal),
            final_total=round_money(final_total),
        )
        self.session.add(inv)
        self.session.flush()
        return inv.id

    # ---- promos ----
    def get_promo(self, promo_id: int | None = None, code: str | None = None) -> Promo | None:
        stmt = select(Promo)
        if promo_id is not None:
            stmt = stmt.where(Promo.id == promo_id)
        elif code:
            stmt = stmt.where(func.upper(Promo.code) == code.strip().upper())
        else:
            return None
        # counters are bumped with bulk UPDATEs, so never trust the identity map here
        return self.session.execute(
            stmt.execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def get_user_promo_redemption_count(self, promo_id: int, user_id: int) -> int:
        uses = self.session.execute(
            select(PromoRedemption.uses)
            .where(PromoRedemption.promo_id == promo_id, PromoRedemption.user_id == user_id)
        ).scalar()
        return int(uses or 0)

    def increment_promo_usage(self, promo_id: int) -> int:
        res = self.session.execute(
            update(Promo)
            .where(Promo.id == promo_id, or_(Promo.max_uses.is_(None), Promo.uses < Promo.max_uses))
            .values(uses=Promo.uses + 1)
            .execution_options(synchronize_session=False)
        )
        return res.rowcount

    def upsert_user_promo_redemption(self, promo_id: int, user_id: int) -> None:
        res = self.session.execute(
            update(PromoRedemption)
            .where(PromoRedemption.promo_id == promo_id, PromoRedemption.user_id == user_id)
            .values(uses=PromoRedemption.uses + 1, last_used=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        if res.rowcount == 0:
            self.session.add(PromoRedemption(promo_id=promo_id, user_id=user_id, uses=1,
                                             last_used=datetime.utcnow()))
            self.session.flush()

    # ---- loyalty ----
    @property
    def supports_loyalty(self) -> bool:
        if self._supports_loyalty is None:
            enabled = bool(current_app.config.get("LOYALTY_ENABLED", True))
            if enabled:
                cols = inspect(self.session.connection()).get_columns(User.__tablename__)
                enabled = any(c["name"] == "loyalty_points" for c in cols)
                if not enabled:
                    logger.warning("users.loyalty_points column missing; loyalty disabled")
            self._supports_loyalty = enabled
        return self._supports_loyalty

    def get_loyalty_balance(self, user_id: int) -> int | None:
        if not self.supports_loyalty:
            return None
        return self.session.execute(
            select(User.loyalty_points).where(User.id == user_id)
        ).scalar()

    def adjust_loyalty_balance(self, user_id: int, delta: int) -> int:
        """Add ``delta`` points. A debit only lands while the balance covers it."""
        if not self.supports_loyalty:
            raise SchemaMissing()
        stmt = update(User).where(User.id == user_id)
        if delta < 0:
            stmt = stmt.where(User.loyalty_points >= -delta)
        res = self.session.execute(
            stmt.values(loyalty_points=User.loyalty_points + delta)
            .execution_options(synchronize_session=False)
        )
        if res.rowcount == 0:
            if delta < 0 and self.get_loyalty_balance(user_id) is not None:
                raise LoyaltyInsufficientBalance()
            raise NotFound("User not found.")
        return self.get_loyalty_balance(user_id)

    def set_loyalty_balance(self, user_id: int, points: int) -> None:
        if not self.supports_loyalty:
            raise SchemaMissing()
        res = self.session.execute(
            update(User).where(User.id == user_id)
            .values(loyalty_points=points)
            .execution_options(synchronize_session=False)
        )
        if res.rowcount == 0:
            raise NotFound("User not found.")

    def set_membership_tier(self, user_id: int, tier: str) -> None:
        self.session.execute(
            update(User).where(User.id == user_id)
            .values(membership_tier=tier)
            .execution_options(synchronize_session=False)
        )

    def record_loyalty_transaction(self, user_id: int, points: int, kind: str,
                                   description: str | None = None, order_id: int | None = None) -> None:
        """History row for a balance movement; lands in the caller's transaction."""
        self.session.add(LoyaltyTransaction(
            user_id=user_id, points=points, kind=kind,
            description=description, order_id=order_id,
        ))
        self.session.flush()

    def get_loyalty_history(self, user_id: int, limit: int = 20) -> list:
        return list(self.session.execute(
            select(LoyaltyTransaction)
            .where(LoyaltyTransaction.user_id == user_id)
            .order_by(LoyaltyTransaction.created_at.desc(), LoyaltyTransaction.id.desc())
            .limit(limit)
        ).scalars())

    def get_loyalty_totals(self) -> dict:
        """``{user_id: (total_earned, total_redeemed)}``. Restores net out of redeemed; admin adjustments count in neither."""
        rows = self.session.execute(
            select(
                LoyaltyTransaction.user_id,
                func.coalesce(func.sum(case((LoyaltyTransaction.kind == "earn", LoyaltyTransaction.points), else_=0)), 0),
                func.coalesce(func.sum(case((LoyaltyTransaction.kind.in_(("redeem", "restore")), -LoyaltyTransaction.points), else_=0)), 0),
            ).group_by(LoyaltyTransaction.user_id)
        ).all()
        return {uid: (int(earned), int(redeemed)) for uid, earned, redeemed in rows}
