# storefront/services/cart_service.py
from dataclasses import dataclass

from ..errors import InsufficientStock, InvalidQuantity, NotFound, OutOfStock, Unavailable
from ..utils.money import D, Money, round_money, to_string_money
from .pricing import cart_subtotal


@dataclass
class CartLine:
    product_id: int
    product_name: str
    unit_price: Money
    quantity: int
    image_ref: str | None = None

    @property
    def line_total(self) -> Money:
        return round_money(self.unit_price * self.quantity)

    def to_session(self):
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "unit_price": to_string_money(self.unit_price),
            "quantity": self.quantity,
            "image_ref": self.image_ref,
        }

    @classmethod
    def from_session(cls, raw):
        return cls(
            product_id=int(raw["product_id"]),
            product_name=raw.get("product_name") or "",
            unit_price=D(raw.get("unit_price")),
            quantity=int(raw.get("quantity") or 0),
            image_ref=raw.get("image_ref"),
        )

    def as_api(self):
        data = self.to_session()
        data["line_total"] = to_string_money(self.line_total)
        return data


@dataclass(frozen=True)
class CartChange:
    line: CartLine | None
    adjusted: bool = False
    message: str | None = None


def _to_qty(value, default=1):
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return default


class CartStore:
    """Session cart with advisory stock checks. The commit step re-checks stock atomically."""

    def __init__(self, shop, store):
        self.shop = shop
        self.store = store

    def list(self):
        return self.shop.cart_lines

    def subtotal(self) -> Money:
        return cart_subtotal(self.shop.cart_lines)

    def _stock(self, product_id):
        info = self.store.get_product_stock(product_id)
        if info is None:
            raise NotFound("Product not found.")
        return info

    def add(self, product_id: int, qty=1) -> CartChange:
        requested = _to_qty(qty, default=0)
        if requested <= 0:
            raise InvalidQuantity()
        info = self._stock(product_id)
        if info.quantity <= 0:
            raise OutOfStock(info.name)

        lines = self.shop.cart_lines
        existing = next((l for l in lines if l.product_id == product_id), None)
        current = existing.quantity if existing else 0

        desired = current + requested
        allowed = min(desired, info.quantity)
        adjusted = allowed < desired
        # cart already holds every unit in stock
        if allowed <= current:
            raise Unavailable(info.name)

        if existing:
            existing.quantity = allowed
            line = existing
        else:
            line = CartLine(
                product_id=info.product_id,
                product_name=info.name,
                unit_price=round_money(info.price),
                quantity=allowed,
                image_ref=info.image,
            )
            lines.append(line)
        self.shop.cart_lines = lines

        msg = None
        if adjusted:
            msg = (f'Only {info.quantity} units of "{info.name}" are available. '
                   "Cart quantity has been adjusted.")
        return CartChange(line=line, adjusted=adjusted, message=msg)

    def set_quantity(self, product_id: int, qty) -> CartChange:
        target = _to_qty(qty, default=0)
        lines = self.shop.cart_lines
        existing = next((l for l in lines if l.product_id == product_id), None)
        if existing is None:
            return CartChange(line=None)

        if target <= 0:
            self.remove(product_id)
            return CartChange(line=None)

        info = self._stock(product_id)
        if target > info.quantity:
            raise InsufficientStock(info.name, available=info.quantity, product_id=product_id)

        existing.quantity = target
        self.shop.cart_lines = lines
        return CartChange(line=existing)

    def remove(self, product_id: int) -> None:
        lines = self.shop.cart_lines
        kept = [l for l in lines if l.product_id != product_id]
        if len(kept) != len(lines):
            self.shop.cart_lines = kept

    def clear(self) -> None:
        self.shop.cart_lines = []
