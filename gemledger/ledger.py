"""
Hisaab balance aggregation over plain ledger entries.

Aggregation never raises on individual entries: an entry whose entity was
deleted or whose amounts are zero still counts, using its own denormalized
name. Validation happens at write time through `validate_entry`.
"""

from collections.abc import Callable, Iterable
from datetime import datetime, timezone

from gemledger.errors import InvalidEntryError
from gemledger.models import (
    ENTITY_TYPES,
    AccountSummary,
    BalancedEntry,
    LedgerEntry,
    LedgerTotals,
)

SETTLED_TOLERANCE = 0.001

_AMOUNT_FIELDS = ("cash_debit", "cash_credit", "gold_debit_grams", "gold_credit_grams")


def validate_entry(entry: LedgerEntry) -> None:
    if not entry.entity_id:
        raise InvalidEntryError("Ledger entry needs an entity id.")
    if entry.entity_type not in ENTITY_TYPES:
        raise InvalidEntryError(f"Unknown entity type: {entry.entity_type!r}")
    for name in _AMOUNT_FIELDS:
        value = getattr(entry, name)
        if value < 0:
            raise InvalidEntryError(f"{name} must be non-negative, got {value}")


def _sort_key(order_field: str) -> Callable[[LedgerEntry], object]:
    def key(entry: LedgerEntry) -> object:
        value = getattr(entry, order_field)
        # Naive timestamps are stored as UTC.
        if isinstance(value, datetime) and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    return key


def running_balances(
    entries: Iterable[LedgerEntry],
    order_field: str = "date",
    newest_first: bool = False,
) -> list[BalancedEntry]:
    """
    Attaches the post-entry cash and gold balance to every entry.

    Accumulation always runs ascending by `order_field`; ties keep their input
    order. `newest_first` only flips the returned list for display.
    """
    ordered = sorted(entries, key=_sort_key(order_field))
    cash_totals: dict[str, float] = {}
    gold_totals: dict[str, float] = {}

    balanced: list[BalancedEntry] = []
    for entry in ordered:
        cash = cash_totals.get(entry.entity_id, 0.0) + (entry.cash_debit - entry.cash_credit)
        gold = gold_totals.get(entry.entity_id, 0.0) + (
            entry.gold_debit_grams - entry.gold_credit_grams
        )
        cash_totals[entry.entity_id] = cash
        gold_totals[entry.entity_id] = gold
        balanced.append(
            BalancedEntry(entry=entry, running_cash_balance=cash, running_gold_balance=gold)
        )

    if newest_first:
        balanced.reverse()
    return balanced


def is_settled(cash_balance: float, gold_balance: float) -> bool:
    return abs(cash_balance) < SETTLED_TOLERANCE and abs(gold_balance) < SETTLED_TOLERANCE


def account_summaries(entries: Iterable[LedgerEntry]) -> list[AccountSummary]:
    latest: dict[str, BalancedEntry] = {}
    for line in running_balances(entries):
        latest[line.entry.entity_id] = line

    summaries = [
        AccountSummary(
            entity_id=entity_id,
            entity_name=line.entry.entity_name,
            entity_type=line.entry.entity_type,
            cash_balance=line.running_cash_balance,
            gold_balance=line.running_gold_balance,
        )
        for entity_id, line in latest.items()
        if not is_settled(line.running_cash_balance, line.running_gold_balance)
    ]
    summaries.sort(key=lambda summary: (summary.entity_name.lower(), summary.entity_id))
    return summaries


def ledger_totals(summaries: Iterable[AccountSummary]) -> LedgerTotals:
    cash_receivable = 0.0
    cash_payable = 0.0
    gold_receivable = 0.0
    gold_payable = 0.0
    for summary in summaries:
        cash_receivable += max(0.0, summary.cash_balance)
        cash_payable += max(0.0, -summary.cash_balance)
        gold_receivable += max(0.0, summary.gold_balance)
        gold_payable += max(0.0, -summary.gold_balance)
    return LedgerTotals(
        cash_receivable=cash_receivable,
        cash_payable=cash_payable,
        gold_receivable=gold_receivable,
        gold_payable=gold_payable,
    )
