"""
shipping/weights.py

Shipping weight of cart and order lines. Couriers price by gram, while
customers buy in sak, batang, lembar and so on.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from products.units import UnitConversionError, convert_quantity

# kg per supplier unit when the product has no ``weight_kg`` attribute
CATEGORY_DEFAULT_WEIGHTS = {
    "Semen": Decimal("50"),
    "Besi": Decimal("7.4"),
    "Pipa": Decimal("2"),
    "Triplek": Decimal("10"),
    "Tangki Air": Decimal("5"),
    "Kawat": Decimal("25"),
    "Paku": Decimal("1"),
    "Baut": Decimal("1"),
    "Aspal": Decimal("1"),
}

UNIT_TO_KG = {
    "Semen": {"sak": Decimal("50"), "kg": Decimal("1"), "zak": Decimal("40"), "ton": Decimal("1000")},
    "Besi": {"batang": Decimal("7.4"), "kg": Decimal("1"), "ton": Decimal("1000")},
    "Pipa": {"batang": Decimal("2"), "meter": Decimal("0.5"), "pcs": Decimal("2")},
    "Triplek": {"lembar": Decimal("10"), "kg": Decimal("1")},
    "Tangki Air": {"unit": Decimal("5"), "pcs": Decimal("5")},
    "Kawat": {"gulung": Decimal("25"), "kg": Decimal("1")},
    "Paku": {"kg": Decimal("1"), "pcs": Decimal("0.01")},
    "Baut": {"kg": Decimal("1"), "pcs": Decimal("0.02"), "set": Decimal("0.5")},
    "Aspal": {"liter": Decimal("1"), "galon": Decimal("20")},
}


def base_weight_kg(product) -> Decimal:
    """Weight of one supplier unit: attributes.weight_kg, else the category default"""
    raw = (product.attributes or {}).get("weight_kg")
    if isinstance(raw, (int, float)) and not isinstance(raw, bool) and raw > 0:
        return Decimal(str(raw))
    return CATEGORY_DEFAULT_WEIGHTS.get(product.category.name, Decimal("1"))


def item_weight_kg(product, quantity, unit: str) -> Decimal:
    quantity = Decimal(str(quantity))
    unit = (unit or "").lower()
    table = UNIT_TO_KG.get(product.category.name, {})

    if unit == "kg" or table.get(unit) == Decimal("1"):
        return quantity
    if unit == "ton":
        return quantity * Decimal("1000")

    category_units = {u.get("value") for u in product.category.available_units or []}
    if "kg" in category_units:
        try:
            return convert_quantity(product, quantity, unit, "kg")
        except UnitConversionError:
            pass

    if unit in table:
        return quantity * table[unit]
    return quantity * base_weight_kg(product)


def item_weight_grams(product, quantity, unit: str) -> int:
    grams = item_weight_kg(product, quantity, unit) * Decimal("1000")
    return int(grams.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def total_weight_grams(lines: Iterable) -> int:
    """Sum over ``(product, quantity, unit)`` tuples"""
    return sum(item_weight_grams(product, quantity, unit) for product, quantity, unit in lines)


def format_weight(grams) -> str:
    kg = Decimal(str(grams)) / Decimal("1000")
    if kg >= 1000:
        return f"{kg / Decimal('1000'):.2f} ton"
    if kg >= 1:
        return f"{kg:.2f} kg"
    return f"{Decimal(str(grams)):.0f} gram"
