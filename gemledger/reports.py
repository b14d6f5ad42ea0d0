from collections.abc import Iterable
from datetime import datetime, timezone

import pandas as pd

from gemledger.errors import ImportFormatError
from gemledger.models import AccountSummary, BalancedEntry, LedgerEntry, Party
from gemledger.pricing import round_grams, round_money

STATEMENT_COLUMNS = [
    "id",
    "date",
    "description",
    "cash_debit",
    "cash_credit",
    "gold_debit_grams",
    "gold_credit_grams",
    "running_cash_balance",
    "running_gold_balance",
    "source_ref",
]

SUMMARY_COLUMNS = [
    "entity_id",
    "entity_name",
    "entity_type",
    "cash_balance",
    "cash_status",
    "gold_balance",
    "gold_status",
]

KHATA_COLUMNS = ["Date", "Details", "Cash IN", "Cash OUT"]
KHATA_DATE_FORMATS = ["%d-%b-%y", "%d/%m/%Y", "%m/%d/%Y", "%Y-%m-%d", "%d-%m-%Y"]


def _balance_status(value: float) -> str:
    if value > 0:
        return "Receivable"
    if value < 0:
        return "Payable"
    return "Settled"


def statement_frame(lines: Iterable[BalancedEntry]) -> pd.DataFrame:
    rows = [
        {
            "id": line.entry.id,
            "date": line.entry.date,
            "description": line.entry.description,
            "cash_debit": round_money(line.entry.cash_debit),
            "cash_credit": round_money(line.entry.cash_credit),
            "gold_debit_grams": round_grams(line.entry.gold_debit_grams),
            "gold_credit_grams": round_grams(line.entry.gold_credit_grams),
            "running_cash_balance": round_money(line.running_cash_balance),
            "running_gold_balance": round_grams(line.running_gold_balance),
            "source_ref": line.entry.source_ref,
        }
        for line in lines
    ]
    return pd.DataFrame(rows, columns=STATEMENT_COLUMNS)


def summaries_frame(summaries: Iterable[AccountSummary]) -> pd.DataFrame:
    rows = [
        {
            "entity_id": summary.entity_id,
            "entity_name": summary.entity_name,
            "entity_type": summary.entity_type,
            "cash_balance": round_money(summary.cash_balance),
            "cash_status": _balance_status(round_money(summary.cash_balance)),
            "gold_balance": round_grams(summary.gold_balance),
            "gold_status": _balance_status(round_grams(summary.gold_balance)),
        }
        for summary in summaries
    ]
    return pd.DataFrame(rows, columns=SUMMARY_COLUMNS)


def frame_to_csv_bytes(df: pd.DataFrame) -> bytes:
    return df.to_csv(index=False).encode("utf-8")


def _parse_khata_date(value: object) -> datetime | None:
    text = "" if pd.isna(value) else str(value).strip()
    for date_format in KHATA_DATE_FORMATS:
        try:
            return datetime.strptime(text, date_format).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    return None


def _parse_khata_amount(value: object) -> float:
    if pd.isna(value):
        return 0.0
    text = str(value).replace(",", "").strip()
    if not text:
        return 0.0
    try:
        return float(text)
    except ValueError:
        return 0.0


def entries_from_khata_frame(df: pd.DataFrame, party: Party) -> list[LedgerEntry]:
    """
    Converts an Easy Khata style export into ledger entries for one party.

    'Cash IN' is money the shop received, so it credits the party; 'Cash OUT'
    is money the shop paid, so it debits the party. The whole file is rejected
    if any row has an unreadable date or no amount.
    """
    missing = [column for column in KHATA_COLUMNS if column not in df.columns]
    if missing:
        raise ImportFormatError(f"Missing required columns: {', '.join(missing)}")

    entries: list[LedgerEntry] = []
    bad_rows: list[int] = []
    for index, row in df.iterrows():
        date = _parse_khata_date(row["Date"])
        cash_in = _parse_khata_amount(row["Cash IN"])
        cash_out = _parse_khata_amount(row["Cash OUT"])
        if date is None or (cash_in == 0 and cash_out == 0) or cash_in < 0 or cash_out < 0:
            bad_rows.append(int(index) + 1)
            continue
        entries.append(
            LedgerEntry(
                id=None,
                entity_id=party.entity_id,
                entity_type=party.entity_type,
                entity_name=party.name,
                date=date,
                description="" if pd.isna(row["Details"]) else str(row["Details"]).strip(),
                cash_debit=cash_out,
                cash_credit=cash_in,
            )
        )

    if bad_rows:
        raise ImportFormatError(
            f"{len(bad_rows)} rows have invalid dates or zero amounts: "
            + ", ".join(str(row_number) for row_number in bad_rows)
        )
    return entries
