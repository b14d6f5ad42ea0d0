import pytest

from gemledger.db import (
    add_ledger_entry,
    add_product,
    delete_ledger_entries_by_source,
    delete_ledger_entry,
    delete_product,
    get_activity_log_entry,
    get_all_settings,
    get_invoice,
    get_order,
    get_product,
    get_rate_table,
    init_db,
    list_activity_log,
    list_expenses,
    list_ledger_entries,
    list_products,
    next_document_id,
    save_expense,
    save_invoice,
    save_order,
    save_rate_table,
    save_settings,
)
from gemledger.errors import InvoiceError
from gemledger.invoicing import build_invoice, build_order, invoice_ledger_entries
from gemledger.models import Expense, InvoiceLine, ItemSpec, OverridePrice, Product, RateTable
from tests.conftest import BASE_DATE, make_entry

RING = ItemSpec(metal_type="gold", karat="21k", metal_weight_grams=10, making_charges=5000)


class TestSettings:
    def test_defaults_seeded_and_init_is_idempotent(self, conn):
        init_db(conn)
        settings = get_all_settings(conn)

        assert settings["currency"] == "PKR"
        assert settings["gold_rate_24k"] == 20000
        assert settings["gold_rate_21k"] is None

    def test_rate_table_round_trip(self, conn):
        save_rate_table(conn, RateTable(gold_rate_24k=24000, gold_rate_22k=21500, silver_rate=300))

        rates = get_rate_table(conn)

        assert rates.gold_rate("22k") == 21500
        assert rates.gold_rate("18k") == 18000
        assert rates.silver_rate == 300
        assert rates.gold_rate_21k is None

    def test_unknown_setting_rejected(self, conn):
        with pytest.raises(KeyError):
            save_settings(conn, {"vat_rate_pct": 20})

    def test_document_numbers_increment(self, conn):
        assert next_document_id(conn, "INV") == "INV-000001"
        assert next_document_id(conn, "INV") == "INV-000002"
        assert next_document_id(conn, "ORD") == "ORD-000001"


class TestLedgerStore:
    def test_entries_listed_in_insertion_order(self, conn):
        add_ledger_entry(conn, make_entry(3, cash_debit=100))
        add_ledger_entry(conn, make_entry(1, cash_credit=40))
        add_ledger_entry(conn, make_entry(0, entity_id="cust-9", entity_name="Other", cash_debit=5))

        entries = list_ledger_entries(conn, entity_id="cust-1")

        assert [entry.cash_debit for entry in entries] == [100, 0]
        assert entries[0].date == BASE_DATE.replace(day=4)
        assert len(list_ledger_entries(conn)) == 3

    def test_delete_by_source_only_touches_that_source(self, conn):
        add_ledger_entry(conn, make_entry(0, cash_debit=100, source_ref="invoice:INV-1"))
        add_ledger_entry(conn, make_entry(0, cash_credit=20, source_ref="invoice:INV-1"))
        add_ledger_entry(conn, make_entry(0, cash_debit=7, source_ref="invoice:INV-2"))

        removed = delete_ledger_entries_by_source(conn, "invoice:INV-1")

        assert removed == 2
        assert [entry.source_ref for entry in list_ledger_entries(conn)] == ["invoice:INV-2"]


class TestSaveInvoice:
    def test_invoice_sale_is_recorded_in_one_step(self, conn, rates, customer):
        add_product(conn, Product(sku="RNG-001", name="Ring", priced=RING))
        add_product(conn, Product(sku="SET-002", name="Set", priced=OverridePrice(amount=88000)))
        invoice = build_invoice(
            "INV-000001",
            [InvoiceLine(sku="RNG-001", name="Ring", priced=RING)],
            rates,
            customer=customer,
        )

        log_id = save_invoice(conn, invoice, invoice_ledger_entries(invoice, amount_paid=1000))

        assert get_product(conn, "RNG-001").is_sold is True
        assert [product.sku for product in list_products(conn)] == ["SET-002"]
        assert len(list_ledger_entries(conn, "cust-1")) == 2
        log_entry = get_activity_log_entry(conn, log_id)
        assert log_entry.event_type == "invoice.create"
        assert log_entry.entity_id == "INV-000001"
        assert log_entry.is_reverted is False

    def test_stored_invoice_reloads_unchanged(self, conn, rates, customer):
        add_product(conn, Product(sku="RNG-001", name="Ring", priced=RING))
        invoice = build_invoice(
            "INV-000002",
            [InvoiceLine(sku="RNG-001", name="Ring", priced=RING, quantity=2)],
            rates,
            discount_amount=500,
            customer=customer,
        )
        save_invoice(conn, invoice, [])

        assert get_invoice(conn, "INV-000002") == invoice

    def test_product_priced_as_override_reloads(self, conn):
        add_product(conn, Product(sku="SET-002", name="Set", priced=OverridePrice(amount=88000)))

        assert get_product(conn, "SET-002").priced == OverridePrice(amount=88000)

    def test_item_cannot_be_sold_twice(self, conn, rates, customer):
        add_product(conn, Product(sku="RNG-001", name="Ring", priced=RING))
        lines = [InvoiceLine(sku="RNG-001", name="Ring", priced=RING)]
        first = build_invoice("INV-000001", lines, rates, customer=customer)
        second = build_invoice("INV-000002", lines, rates, customer=customer)
        save_invoice(conn, first, invoice_ledger_entries(first))

        with pytest.raises(InvoiceError, match="RNG-001"):
            save_invoice(conn, second, invoice_ledger_entries(second))

        assert get_invoice(conn, "INV-000002") is None
        assert len(list_ledger_entries(conn, "cust-1")) == 1
        assert [entry.entity_id for entry in list_activity_log(conn)] == ["INV-000001"]

    def test_unknown_product_rejected(self, conn, rates):
        invoice = build_invoice("INV-000003", [InvoiceLine(sku="GHOST", name="Ghost", priced=RING)], rates)

        with pytest.raises(InvoiceError, match="GHOST"):
            save_invoice(conn, invoice, [])

        assert get_invoice(conn, "INV-000003") is None

    @pytest.mark.parametrize("source_ref", [None, "invoice:INV-000009", "order:INV-000004"])
    def test_entries_must_reference_the_invoice(self, conn, rates, customer, source_ref):
        add_product(conn, Product(sku="RNG-001", name="Ring", priced=RING))
        invoice = build_invoice(
            "INV-000004", [InvoiceLine(sku="RNG-001", name="Ring", priced=RING)], rates, customer=customer
        )
        stray = make_entry(0, cash_debit=invoice.grand_total, source_ref=source_ref)

        with pytest.raises(InvoiceError, match="invoice:INV-000004"):
            save_invoice(conn, invoice, [stray])

        assert list_ledger_entries(conn) == []
        assert get_product(conn, "RNG-001").is_sold is False


class TestSaveOrder:
    def test_order_with_advance_posts_credit(self, conn, rates, customer):
        order = build_order("ORD-000001", [("Ring", RING)], rates, advance_payment=15000, customer=customer)

        save_order(conn, order)

        entries = list_ledger_entries(conn, "cust-1")
        assert [entry.cash_credit for entry in entries] == [15000]
        assert get_order(conn, "ORD-000001") == order
        assert list_activity_log(conn)[0].event_type == "order.create"

    def test_walk_in_order_posts_no_entries(self, conn, rates):
        order = build_order("ORD-000002", [("Ring", RING)], rates, advance_payment=5000)

        save_order(conn, order)

        assert list_ledger_entries(conn) == []
        assert get_order(conn, "ORD-000002").advance_payment == 5000


class TestRecordHousekeeping:
    def test_manual_entry_can_be_deleted(self, conn):
        entry_id = add_ledger_entry(conn, make_entry(0, cash_debit=100))
        add_ledger_entry(conn, make_entry(1, cash_credit=30))

        delete_ledger_entry(conn, entry_id)

        assert [entry.cash_credit for entry in list_ledger_entries(conn)] == [30]

    def test_deleted_product_is_gone(self, conn):
        add_product(conn, Product(sku="RNG-001", name="Ring", priced=RING))

        delete_product(conn, "RNG-001")

        assert get_product(conn, "RNG-001") is None

    def test_expenses_listed_newest_first(self, conn):
        for day, amount in ((1, 5000), (3, 1200)):
            save_expense(
                conn,
                Expense(
                    id=f"EXP-00000{day}",
                    date=BASE_DATE.replace(day=day),
                    category="Shop",
                    description="Tea and cleaning",
                    amount=amount,
                ),
            )

        expenses = list_expenses(conn)

        assert [expense.amount for expense in expenses] == [1200, 5000]
        assert list_activity_log(conn)[0].event_type == "expense.create"
