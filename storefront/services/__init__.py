# storefront/services/__init__.py
from dataclasses import dataclass

from flask import current_app, g, session

from .cart_service import CartStore
from .checkout import CheckoutOrchestrator
from .loyalty import LoyaltyLedger
from .promo_service import PromoValidator
from .session_state import ShopSession
from .store import SqlStore


@dataclass
class ShopServices:
    shop: ShopSession
    store: SqlStore
    cart: CartStore
    promos: PromoValidator
    loyalty: LoyaltyLedger
    checkout: CheckoutOrchestrator


def build_services(session_mapping, config=None, store=None) -> ShopServices:
    """Wire the checkout engine for one request."""
    config = config if config is not None else current_app.config
    store = store if store is not None else SqlStore()
    shop = ShopSession(session_mapping)
    promos = PromoValidator(store)
    ledger = LoyaltyLedger(
        store,
        point_value=config["LOYALTY_POINT_VALUE"],
        step=config["LOYALTY_REDEMPTION_STEP"],
        tiers=config["LOYALTY_TIERS"],
    )
    orchestrator = CheckoutOrchestrator(
        store,
        ledger,
        promos,
        invoice_base=config["INVOICE_NUMBER_BASE"],
        time_slots=config["DELIVERY_TIME_SLOTS"],
        payment_methods=config["PAYMENT_METHODS"],
    )
    return ShopServices(
        shop=shop,
        store=store,
        cart=CartStore(shop, store),
        promos=promos,
        loyalty=ledger,
        checkout=orchestrator,
    )


def current_services() -> ShopServices:
    if "shop_services" not in g:
        g.shop_services = build_services(session)
    return g.shop_services
