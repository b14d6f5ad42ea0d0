from dataclasses import dataclass
from datetime import datetime
from typing import Union

from gemledger.errors import InvalidRateError, InvalidSpecError

METAL_TYPES = ("gold", "palladium", "platinum", "silver")
ENTITY_TYPES = ("customer", "karigar")

KARAT_PURITY: dict[str, float] = {
    "18k": 18 / 24,
    "21k": 21 / 24,
    "22k": 22 / 24,
    "24k": 24 / 24,
}


def normalize_karat(karat: str | int | None) -> str | None:
    """Returns the canonical '21k' form, or None when the value is not a supported karat."""
    if karat is None:
        return None
    cleaned = str(karat).strip().lower().removesuffix("k")
    if not cleaned.isdigit():
        return None
    label = f"{int(cleaned)}k"
    return label if label in KARAT_PURITY else None


@dataclass(frozen=True)
class RateTable:
    """Per-gram metal rates. Karat overrides left as None derive from the 24k rate."""

    gold_rate_24k: float
    palladium_rate: float = 0.0
    platinum_rate: float = 0.0
    silver_rate: float = 0.0
    gold_rate_22k: float | None = None
    gold_rate_21k: float | None = None
    gold_rate_18k: float | None = None

    def __post_init__(self) -> None:
        for name in (
            "gold_rate_24k",
            "palladium_rate",
            "platinum_rate",
            "silver_rate",
            "gold_rate_22k",
            "gold_rate_21k",
            "gold_rate_18k",
        ):
            value = getattr(self, name)
            if value is not None and value < 0:
                raise InvalidRateError(f"{name} must be non-negative, got {value}")

    def gold_rate(self, karat: str | int | None) -> float:
        label = normalize_karat(karat)
        if label is None:
            raise InvalidSpecError(f"Unsupported gold karat: {karat!r}")
        override = {
            "22k": self.gold_rate_22k,
            "21k": self.gold_rate_21k,
            "18k": self.gold_rate_18k,
        }.get(label)
        if override is not None:
            return override
        return self.gold_rate_24k * KARAT_PURITY[label]

    def flat_rate(self, metal_type: str) -> float:
        rates = {
            "palladium": self.palladium_rate,
            "platinum": self.platinum_rate,
            "silver": self.silver_rate,
        }
        if metal_type not in rates:
            raise InvalidSpecError(f"No flat rate for metal type: {metal_type!r}")
        return rates[metal_type]

    @classmethod
    def from_settings(cls, settings: dict) -> "RateTable":
        # Blank or zero karat overrides are treated as not configured.
        def override(key: str) -> float | None:
            value = settings.get(key)
            return float(value) if value else None

        return cls(
            gold_rate_24k=float(settings.get("gold_rate_24k") or 0.0),
            palladium_rate=float(settings.get("palladium_rate") or 0.0),
            platinum_rate=float(settings.get("platinum_rate") or 0.0),
            silver_rate=float(settings.get("silver_rate") or 0.0),
            gold_rate_22k=override("gold_rate_22k"),
            gold_rate_21k=override("gold_rate_21k"),
            gold_rate_18k=override("gold_rate_18k"),
        )


@dataclass(frozen=True)
class MetalComponent:
    metal_type: str
    weight_grams: float
    karat: str | None = None


@dataclass(frozen=True)
class ItemSpec:
    metal_type: str
    metal_weight_grams: float
    karat: str | None = None
    wastage_percentage: float = 0.0
    making_charges: float = 0.0
    has_diamonds: bool = False
    diamond_charges: float = 0.0
    has_stones: bool = False
    stone_weight_grams: float = 0.0
    stone_charges: float = 0.0
    misc_charges: float = 0.0
    secondary_metal: MetalComponent | None = None


@dataclass(frozen=True)
class OverridePrice:
    """A negotiated flat price that bypasses the cost formula."""

    amount: float


Priced = Union[ItemSpec, OverridePrice]


@dataclass(frozen=True)
class CostBreakdown:
    metal_cost: float
    wastage_cost: float
    making_charges: float
    diamond_charges: float
    stone_charges: float
    misc_charges: float
    total_price: float


@dataclass(frozen=True)
class LedgerEntry:
    """One hisaab line. Debit means the entity owes more, credit means it owes less."""

    id: int | None
    entity_id: str
    entity_type: str
    entity_name: str
    date: datetime
    description: str
    cash_debit: float = 0.0
    cash_credit: float = 0.0
    gold_debit_grams: float = 0.0
    gold_credit_grams: float = 0.0
    source_ref: str | None = None


@dataclass(frozen=True)
class BalancedEntry:
    entry: LedgerEntry
    running_cash_balance: float
    running_gold_balance: float


@dataclass(frozen=True)
class AccountSummary:
    entity_id: str
    entity_name: str
    entity_type: str
    cash_balance: float
    gold_balance: float


@dataclass(frozen=True)
class LedgerTotals:
    cash_receivable: float
    cash_payable: float
    gold_receivable: float
    gold_payable: float


@dataclass(frozen=True)
class ActivityLogEntry:
    id: int | None
    event_type: str
    entity_id: str
    timestamp: datetime
    description: str
    reverted_at: datetime | None = None

    @property
    def is_reverted(self) -> bool:
        return self.reverted_at is not None


@dataclass(frozen=True)
class Party:
    """The customer or karigar an invoice, order or ledger line belongs to."""

    entity_id: str
    entity_type: str
    name: str


@dataclass(frozen=True)
class Product:
    sku: str
    name: str
    priced: Priced
    category: str = ""
    is_sold: bool = False


@dataclass(frozen=True)
class InvoiceLine:
    sku: str
    name: str
    priced: Priced
    quantity: int = 1


@dataclass(frozen=True)
class InvoiceItem:
    sku: str
    name: str
    quantity: int
    unit_price: float
    item_total: float
    breakdown: CostBreakdown


@dataclass(frozen=True)
class Invoice:
    id: str
    items: tuple[InvoiceItem, ...]
    subtotal: float
    discount_amount: float
    grand_total: float
    created_at: datetime
    rates: RateTable
    customer: Party | None = None


@dataclass(frozen=True)
class OrderItem:
    description: str
    priced: Priced
    breakdown: CostBreakdown


@dataclass(frozen=True)
class Order:
    id: str
    items: tuple[OrderItem, ...]
    subtotal: float
    advance_payment: float
    advance_in_exchange_value: float
    grand_total: float
    created_at: datetime
    rates: RateTable
    customer: Party | None = None
    advance_in_exchange_description: str = ""
    status: str = "pending"

    @property
    def total_advance(self) -> float:
        return self.advance_payment + self.advance_in_exchange_value


@dataclass(frozen=True)
class Expense:
    id: str
    date: datetime
    category: str
    description: str
    amount: float
    notes: str = ""
