"""Unit prices and the bulk discount rule.

Calls and predictions are priced by price class; exports are priced per
row by output format. The bulk discount is applied when a cycle is
aggregated, never to an individual ledger entry.
"""

from typing import Dict, Optional

from keygate.plans.config import ExportFormat, OperationKind, PriceClass

PRICE_CLASS_COSTS: Dict[PriceClass, float] = {
    PriceClass.BASIC: 0.01,
    PriceClass.ADVANCED: 0.05,
    PriceClass.INSTITUTIONAL: 0.10,
}

EXPORT_UNIT_COSTS: Dict[ExportFormat, float] = {
    ExportFormat.CSV: 0.001,
    ExportFormat.JSON: 0.002,
    ExportFormat.XML: 0.0015,
    ExportFormat.EXCEL: 0.003,
}

BULK_DISCOUNT_THRESHOLD = 10_000
BULK_DISCOUNT_RATE = 0.20


def unit_cost(
    kind: OperationKind,
    price_class: PriceClass = PriceClass.BASIC,
    export_format: Optional[ExportFormat] = None,
) -> float:
    """Price of one unit of ``kind``."""
    if kind == OperationKind.EXPORT:
        return EXPORT_UNIT_COSTS[export_format or ExportFormat.CSV]
    return PRICE_CLASS_COSTS[price_class]


def total_cost(unit_price: float, quantity: int) -> float:
    return round(unit_price * quantity, 4)


def apply_bulk_discount(cost: float, quantity: int) -> float:
    """Discount a kind's cycle cost once its cycle quantity passes the threshold."""
    if quantity > BULK_DISCOUNT_THRESHOLD:
        return round(cost * (1.0 - BULK_DISCOUNT_RATE), 4)
    return round(cost, 4)
