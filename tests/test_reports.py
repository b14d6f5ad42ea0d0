"""
Tests for statement and summary exports and the Easy Khata import.
"""

import pandas as pd
import pytest

from gemledger.db import add_ledger_entries, list_ledger_entries
from gemledger.errors import ImportFormatError, InvalidEntryError
from gemledger.ledger import account_summaries, running_balances
from gemledger.reports import (
    STATEMENT_COLUMNS,
    SUMMARY_COLUMNS,
    entries_from_khata_frame,
    frame_to_csv_bytes,
    statement_frame,
    summaries_frame,
)
from tests.conftest import make_entry


class TestStatementFrame:
    def test_columns_and_rounding(self):
        entries = [
            make_entry(0, cash_debit=1234.5678, gold_debit_grams=1.23456),
            make_entry(1, cash_credit=0.004),
        ]

        df = statement_frame(running_balances(entries))

        assert list(df.columns) == STATEMENT_COLUMNS
        assert df.loc[0, "cash_debit"] == 1234.57
        assert df.loc[0, "gold_debit_grams"] == 1.235
        assert df.loc[1, "running_cash_balance"] == 1234.56

    def test_empty_statement_keeps_header(self):
        df = statement_frame([])

        assert df.empty
        assert frame_to_csv_bytes(df).decode("utf-8").strip() == ",".join(STATEMENT_COLUMNS)


class TestSummariesFrame:
    def test_status_follows_sign(self):
        entries = [
            make_entry(0, cash_debit=12000, gold_credit_grams=2),
            make_entry(0, entity_id="kar-1", entity_name="Zafar", entity_type="karigar", cash_credit=500),
        ]

        df = summaries_frame(account_summaries(entries))

        assert list(df.columns) == SUMMARY_COLUMNS
        assert list(df["cash_status"]) == ["Receivable", "Payable"]
        assert list(df["gold_status"]) == ["Payable", "Settled"]

    def test_csv_bytes(self):
        df = summaries_frame(account_summaries([make_entry(0, cash_debit=800)]))

        lines = frame_to_csv_bytes(df).decode("utf-8").splitlines()

        assert lines[0] == ",".join(SUMMARY_COLUMNS)
        assert lines[1].startswith("cust-1,Ayesha Khan,customer,800.0,Receivable")


class TestKhataImport:
    def test_cash_in_credits_and_cash_out_debits(self, customer):
        df = pd.DataFrame(
            {
                "Date": ["05-Mar-24", "2024-03-07"],
                "Details": ["Payment received", "Refund for broken clasp"],
                "Cash IN": ["1,500", None],
                "Cash OUT": [None, 250],
            }
        )

        entries = entries_from_khata_frame(df, customer)

        assert [entry.cash_credit for entry in entries] == [1500, 0]
        assert [entry.cash_debit for entry in entries] == [0, 250]
        assert entries[0].date.day == 5
        assert entries[1].description == "Refund for broken clasp"
        assert all(entry.entity_id == "cust-1" for entry in entries)

    def test_missing_columns_rejected(self, customer):
        df = pd.DataFrame({"Date": ["05-Mar-24"], "Cash IN": [100]})

        with pytest.raises(ImportFormatError, match="Details"):
            entries_from_khata_frame(df, customer)

    def test_bad_rows_are_listed(self, customer):
        df = pd.DataFrame(
            {
                "Date": ["05-Mar-24", "not a date", "06-Mar-24"],
                "Details": ["ok", "bad date", "no amount"],
                "Cash IN": [100, 200, None],
                "Cash OUT": [None, None, None],
            }
        )

        with pytest.raises(ImportFormatError, match="2, 3"):
            entries_from_khata_frame(df, customer)


class TestBulkInsert:
    def test_imported_entries_stored_together(self, conn, customer):
        df = pd.DataFrame(
            {
                "Date": ["01/03/2024", "02/03/2024"],
                "Details": ["Opening balance", "Part payment"],
                "Cash IN": [None, 4000],
                "Cash OUT": [10000, None],
            }
        )

        add_ledger_entries(conn, entries_from_khata_frame(df, customer))

        lines = running_balances(list_ledger_entries(conn, "cust-1"))
        assert lines[-1].running_cash_balance == 6000

    def test_invalid_entry_rolls_back_whole_batch(self, conn):
        entries = [make_entry(0, cash_debit=100), make_entry(1, cash_credit=-5)]

        with pytest.raises(InvalidEntryError):
            add_ledger_entries(conn, entries)

        assert list_ledger_entries(conn) == []
