import logging
import math
from dataclasses import asdict
from typing import Any

from gemledger.errors import InvalidSpecError
from gemledger.models import (
    METAL_TYPES,
    CostBreakdown,
    ItemSpec,
    MetalComponent,
    OverridePrice,
    Priced,
    RateTable,
    normalize_karat,
)

logger = logging.getLogger(__name__)

_NON_NEGATIVE_FIELDS = (
    "wastage_percentage",
    "making_charges",
    "diamond_charges",
    "stone_weight_grams",
    "stone_charges",
    "misc_charges",
)


def round_money(value: float) -> float:
    return round(value, 2)


def round_grams(value: float) -> float:
    return round(value, 3)


def _metal_rate(metal_type: str, karat: str | int | None, rates: RateTable) -> float:
    if metal_type not in METAL_TYPES:
        raise InvalidSpecError(f"Unknown metal type: {metal_type!r}")
    if metal_type == "gold":
        if normalize_karat(karat) is None:
            raise InvalidSpecError(f"Gold requires a supported karat, got {karat!r}")
        return rates.gold_rate(karat)
    # Karat is meaningless outside gold; callers often pass a default anyway.
    return rates.flat_rate(metal_type)


def _is_positive(value: float) -> bool:
    return math.isfinite(value) and value > 0


def _is_non_negative(value: float) -> bool:
    return math.isfinite(value) and value >= 0


def _component_cost(component: MetalComponent, rates: RateTable) -> float:
    if not _is_positive(component.weight_grams):
        raise InvalidSpecError(
            f"Secondary metal weight must be positive, got {component.weight_grams}"
        )
    return component.weight_grams * _metal_rate(component.metal_type, component.karat, rates)


def validate_spec(item: ItemSpec) -> None:
    if not _is_positive(item.metal_weight_grams):
        raise InvalidSpecError(f"Metal weight must be positive, got {item.metal_weight_grams}")
    for name in _NON_NEGATIVE_FIELDS:
        value = getattr(item, name)
        if not _is_non_negative(value):
            raise InvalidSpecError(f"{name} must be non-negative, got {value}")
    if item.stone_weight_grams > item.metal_weight_grams:
        raise InvalidSpecError(
            f"Stone weight {item.stone_weight_grams}g exceeds metal weight {item.metal_weight_grams}g"
        )


def compute(priced: Priced, rates: RateTable) -> CostBreakdown:
    """
    Prices an item against the given rate table.

    No intermediate rounding is applied. Presentation rounding belongs to the
    caller (see round_money / round_grams) so running sums do not drift.
    """
    if isinstance(priced, OverridePrice):
        if not _is_non_negative(priced.amount):
            raise InvalidSpecError(f"Override price must be non-negative, got {priced.amount}")
        return CostBreakdown(
            metal_cost=0.0,
            wastage_cost=0.0,
            making_charges=0.0,
            diamond_charges=0.0,
            stone_charges=0.0,
            misc_charges=0.0,
            total_price=priced.amount,
        )

    item = priced
    validate_spec(item)

    metal_cost = item.metal_weight_grams * _metal_rate(item.metal_type, item.karat, rates)
    if item.secondary_metal is not None:
        metal_cost += _component_cost(item.secondary_metal, rates)

    # Wastage covers the combined metal cost, not each component separately.
    wastage_cost = metal_cost * (item.wastage_percentage / 100)
    diamond_charges = item.diamond_charges if item.has_diamonds else 0.0
    stone_charges = item.stone_charges if item.has_stones else 0.0

    total_price = (
        metal_cost
        + wastage_cost
        + item.making_charges
        + diamond_charges
        + stone_charges
        + item.misc_charges
    )
    logger.debug("Priced %s item at %s", item.metal_type, total_price)

    return CostBreakdown(
        metal_cost=metal_cost,
        wastage_cost=wastage_cost,
        making_charges=item.making_charges,
        diamond_charges=diamond_charges,
        stone_charges=stone_charges,
        misc_charges=item.misc_charges,
        total_price=total_price,
    )


def priced_from_record(record: dict[str, Any]) -> Priced:
    """
    Builds the pricing variant from a product/order record.

    Records coming from forms and storage still carry the `is_custom_price`
    flag; it is resolved here so nothing downstream has to short-circuit.
    """
    if record.get("is_custom_price"):
        raw_amount = record.get("custom_price")
        if raw_amount is None or str(raw_amount).strip() == "":
            raise InvalidSpecError("Custom-priced record is missing its custom_price.")
        try:
            amount = float(raw_amount)
        except ValueError:
            raise InvalidSpecError(f"Custom price is not a number: {raw_amount!r}") from None
        return OverridePrice(amount=amount)

    secondary_raw = record.get("secondary_metal")
    secondary = None
    if secondary_raw:
        secondary = MetalComponent(
            metal_type=str(secondary_raw["metal_type"]),
            weight_grams=float(secondary_raw["weight_grams"]),
            karat=secondary_raw.get("karat"),
        )

    return ItemSpec(
        metal_type=str(record.get("metal_type", "gold")),
        metal_weight_grams=float(record.get("metal_weight_grams") or 0.0),
        karat=record.get("karat"),
        wastage_percentage=float(record.get("wastage_percentage") or 0.0),
        making_charges=float(record.get("making_charges") or 0.0),
        has_diamonds=bool(record.get("has_diamonds", False)),
        diamond_charges=float(record.get("diamond_charges") or 0.0),
        has_stones=bool(record.get("has_stones", False)),
        stone_weight_grams=float(record.get("stone_weight_grams") or 0.0),
        stone_charges=float(record.get("stone_charges") or 0.0),
        misc_charges=float(record.get("misc_charges") or 0.0),
        secondary_metal=secondary,
    )


def priced_to_record(priced: Priced) -> dict[str, Any]:
    if isinstance(priced, OverridePrice):
        return {"is_custom_price": True, "custom_price": priced.amount}
    record = asdict(priced)
    record["is_custom_price"] = False
    return record
