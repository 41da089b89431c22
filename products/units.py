"""
products/units.py

Unit conversion between the units a category is sold in.

Every category unit carries a ``conversion_rate`` into the category's base
unit, so converting is ``quantity * rate(from) / rate(to)``. Rebar (Besi) and
wire (Kawat) rates depend on the individual product's weight.
"""

from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional

MIN_CONVERSION_RATE = Decimal("0.001")
DEFAULT_REBAR_LENGTH_METER = Decimal("12")


class UnitConversionError(ValueError):
    pass


def _to_decimal(value) -> Optional[Decimal]:
    try:
        result = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        return None
    return result if result.is_finite() else None


def _format(value: Decimal) -> str:
    return format(value.normalize(), "f")


def validate_units(units) -> List[Dict]:
    """Validate and normalize a category's ``available_units`` list"""
    if not isinstance(units, list):
        raise UnitConversionError("available_units must be a list")

    normalized = []
    seen = set()
    for unit in units:
        if not isinstance(unit, dict):
            raise UnitConversionError("Each unit must be an object")

        value = str(unit.get("value", "")).strip().lower()
        label = str(unit.get("label", "")).strip()
        rate = _to_decimal(unit.get("conversion_rate"))

        if not value or not label:
            raise UnitConversionError("Each unit needs a value and a label")
        if rate is None or rate < MIN_CONVERSION_RATE:
            raise UnitConversionError(
                f"Conversion rate for '{value}' must be at least {MIN_CONVERSION_RATE}"
            )
        if value in seen:
            raise UnitConversionError(f"Duplicate unit '{value}'")

        seen.add(value)
        normalized.append({"value": value, "label": label, "conversion_rate": float(rate)})

    return normalized


def product_units(product) -> List[Dict]:
    """
    The category units as they apply to one product, with weight-dependent
    rates and labels resolved from the product attributes.
    """
    category = product.category
    units = [dict(unit) for unit in category.available_units or []]
    attributes = product.attributes or {}
    weight_kg = _to_decimal(attributes.get("weight_kg"))

    if not weight_kg or weight_kg <= 0:
        return units

    if category.name == "Besi":
        length = _to_decimal(attributes.get("length_meter")) or DEFAULT_REBAR_LENGTH_METER
        for unit in units:
            if unit["value"] == "batang":
                unit["label"] = f"Batang ({_format(weight_kg)}kg)"
                unit["conversion_rate"] = float(weight_kg)
            elif unit["value"] == "lonjor":
                unit["label"] = f"Lonjor ({_format(length)}m)"
                unit["conversion_rate"] = float(weight_kg * (length / Decimal("12")))
    elif category.name == "Kawat":
        for unit in units:
            if unit["value"] == "gulung":
                unit["label"] = f"Gulung ({_format(weight_kg)}kg)"
                unit["conversion_rate"] = float(weight_kg)

    return units


def conversion_rate(product, unit_value: str) -> Decimal:
    value = (unit_value or "").lower()
    for unit in product_units(product):
        if unit["value"] == value:
            return Decimal(str(unit["conversion_rate"]))
    raise UnitConversionError(f"Unit '{unit_value}' is not available for {product.name}")


def convert_quantity(product, quantity, from_unit: str, to_unit: str) -> Decimal:
    """Convert ``quantity`` of ``product`` from one unit into another"""
    quantity = _to_decimal(quantity)
    if quantity is None:
        raise UnitConversionError("Quantity must be a number")

    if (from_unit or "").lower() == (to_unit or "").lower():
        if (from_unit or "").lower() != (product.unit or "").lower():
            conversion_rate(product, from_unit)
        return quantity

    base = quantity * conversion_rate(product, from_unit)
    return base / conversion_rate(product, to_unit)


def to_product_unit(product, quantity, unit: str) -> Decimal:
    """Quantity expressed in the product's own stock/price unit"""
    return convert_quantity(product, quantity, unit, product.unit)


def price_in_unit(product, unit: str) -> Decimal:
    """Current (discounted) price of one ``unit`` of the product"""
    per_product_unit = product.final_price
    if (unit or "").lower() == (product.unit or "").lower():
        return per_product_unit
    factor = convert_quantity(product, 1, unit, product.unit)
    return (per_product_unit * factor).quantize(Decimal("0.01"))
