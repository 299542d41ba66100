# app/services/pricing.py
"""
Order pricing rules.

Pure functions: no session, no FastAPI. Both driver-assignment paths
(manual claim and implicit claim on pickup) go through
`driver_earnings_for`, so they can never disagree on the formula.
"""
from dataclasses import dataclass

from app.core.config import Settings
from app.core.errors import ValidationError
from app.models.order import Order
from app.models.product import Product
from app.models.store import Store


@dataclass(frozen=True)
class PricedLine:
    product: Product
    quantity: int
    line_total: float


@dataclass(frozen=True)
class PriceBreakdown:
    lines: list[PricedLine]
    subtotal: float
    delivery_fee: float
    service_fee: float
    commission: float
    total: float


def price_cart(
    lines: list[tuple[Product, int]],
    store: Store,
    settings: Settings,
) -> PriceBreakdown:
    """
    Price a validated cart against the store.

    Uses the product's current price. Raises ValidationError with the
    store minimum and the computed subtotal when the cart is too small.
    """
    if not lines:
        raise ValidationError("Order must contain at least one item")

    priced: list[PricedLine] = []
    subtotal = 0.0
    for product, quantity in lines:
        line_total = round(product.price * quantity, 2)
        subtotal += line_total
        priced.append(PricedLine(product=product, quantity=quantity, line_total=line_total))
    subtotal = round(subtotal, 2)

    if subtotal < store.min_order:
        raise ValidationError(
            f"Minimum order for this store is {store.min_order:.2f}",
            minOrder=store.min_order,
            currentTotal=subtotal,
        )

    delivery_fee = store.delivery_fee
    service_fee = settings.SERVICE_FEE
    commission = round(subtotal * settings.COMMISSION_RATE, 2)
    total = round(subtotal + delivery_fee + service_fee, 2)

    return PriceBreakdown(
        lines=priced,
        subtotal=subtotal,
        delivery_fee=delivery_fee,
        service_fee=service_fee,
        commission=commission,
        total=total,
    )


def driver_earnings(delivery_fee: float, distance: float, settings: Settings) -> float:
    return round(
        delivery_fee * settings.DRIVER_FEE_SHARE + distance * settings.DRIVER_RATE_PER_KM,
        2,
    )


def driver_earnings_for(order: Order, settings: Settings) -> float:
    """Earnings for whoever delivers `order`; unknown distance uses the default."""
    distance = order.distance if order.distance is not None else settings.DEFAULT_DISTANCE_KM
    return driver_earnings(order.delivery_fee, distance, settings)


def platform_earnings_for(order: Order) -> float:
    return round(order.commission + order.service_fee, 2)
