import json
import os
import sqlite3
from dataclasses import asdict
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from gemledger.errors import InvoiceError
from gemledger.invoicing import format_document_id, invoice_source_ref, order_ledger_entries
from gemledger.ledger import validate_entry
from gemledger.models import (
    ActivityLogEntry,
    CostBreakdown,
    Expense,
    Invoice,
    InvoiceItem,
    LedgerEntry,
    Order,
    OrderItem,
    Party,
    Product,
    RateTable,
)
from gemledger.pricing import priced_from_record, priced_to_record

DATA_DIR = Path(__file__).resolve().parents[1] / "data"
DB_PATH = DATA_DIR / "gemledger.db"

DEFAULT_SETTINGS: dict[str, str] = {
    "currency": "PKR",
    "gold_rate_24k": "20000",
    "gold_rate_22k": "",
    "gold_rate_21k": "",
    "gold_rate_18k": "",
    "palladium_rate": "22000",
    "platinum_rate": "25000",
    "silver_rate": "250",
    "troy_oz_to_grams": "31.1034768",
    "price_cache_ttl_minutes": "60",
    "last_invoice_number": "0",
    "last_order_number": "0",
    "last_expense_number": "0",
}

RATE_SETTING_KEYS = (
    "gold_rate_24k",
    "gold_rate_22k",
    "gold_rate_21k",
    "gold_rate_18k",
    "palladium_rate",
    "platinum_rate",
    "silver_rate",
)

DOCUMENT_COUNTERS = {
    "INV": "last_invoice_number",
    "ORD": "last_order_number",
    "EXP": "last_expense_number",
}


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _to_iso(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def get_connection(db_path: Path | None = None) -> sqlite3.Connection:
    target = db_path or Path(os.getenv("GEMLEDGER_DB_PATH", "") or DB_PATH)
    target.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(target)
    conn.row_factory = sqlite3.Row
    return conn


def init_db(conn: sqlite3.Connection) -> None:
    cursor = conn.cursor()

    cursor.execute(
        """
        CREATE TABLE IF NOT EXISTS settings (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
        """
    )

    cursor.execute(
        """
        CREATE TABLE IF NOT EXISTS metal_prices (
            symbol TEXT PRIMARY KEY,
            price_per_oz REAL NOT NULL,
            currency TEXT NOT NULL,
            fetched_at TEXT NOT NULL,
            provider TEXT NOT NULL
        )
        """
    )

    cursor.execute(
        """
        CREATE TABLE IF NOT EXISTS products (
            sku TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            category TEXT NOT NULL DEFAULT '',
            spec_json TEXT NOT NULL,
            is_sold INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
        """
    )

    cursor.execute(
        """
        CREATE TABLE IF NOT EXISTS invoices (
            id TEXT PRIMARY KEY,
            customer_id TEXT,
            customer_type TEXT,
            customer_name TEXT,
            items_json TEXT NOT NULL,
            rates_json TEXT NOT NULL,
            subtotal REAL NOT NULL,
            discount_amount REAL NOT NULL,
            grand_total REAL NOT NULL,
            created_at TEXT NOT NULL
        )
        """
    )

    cursor.execute(
        """
        CREATE TABLE IF NOT EXISTS orders (
            id TEXT PRIMARY KEY,
            customer_id TEXT,
            customer_type TEXT,
            customer_name TEXT,
            items_json TEXT NOT NULL,
            rates_json TEXT NOT NULL,
            subtotal REAL NOT NULL,
            advance_payment REAL NOT NULL,
            advance_in_exchange_value REAL NOT NULL,
            advance_in_exchange_description TEXT NOT NULL DEFAULT '',
            grand_total REAL NOT NULL,
            status TEXT NOT NULL DEFAULT 'pending',
            created_at TEXT NOT NULL
        )
        """
    )

    cursor.execute(
        """
        CREATE TABLE IF NOT EXISTS expenses (
            id TEXT PRIMARY KEY,
            date TEXT NOT NULL,
            category TEXT NOT NULL,
            description TEXT NOT NULL,
            amount REAL NOT NULL,
            notes TEXT,
            created_at TEXT NOT NULL
        )
        """
    )

    cursor.execute(
        """
        CREATE TABLE IF NOT EXISTS ledger_entries (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            entity_id TEXT NOT NULL,
            entity_type TEXT NOT NULL,
            entity_name TEXT NOT NULL,
            date TEXT NOT NULL,
            description TEXT NOT NULL,
            cash_debit REAL NOT NULL DEFAULT 0,
            cash_credit REAL NOT NULL DEFAULT 0,
            gold_debit_grams REAL NOT NULL DEFAULT 0,
            gold_credit_grams REAL NOT NULL DEFAULT 0,
            source_ref TEXT,
            created_at TEXT NOT NULL
        )
        """
    )

    ledger_columns = [
        row["name"] for row in conn.execute("PRAGMA table_info(ledger_entries)").fetchall()
    ]
    if "source_ref" not in ledger_columns:
        cursor.execute("ALTER TABLE ledger_entries ADD COLUMN source_ref TEXT")

    cursor.execute(
        "CREATE INDEX IF NOT EXISTS idx_ledger_entries_entity ON ledger_entries(entity_id)"
    )
    cursor.execute(
        "CREATE INDEX IF NOT EXISTS idx_ledger_entries_source ON ledger_entries(source_ref)"
    )

    cursor.execute(
        """
        CREATE TABLE IF NOT EXISTS activity_log (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            event_type TEXT NOT NULL,
            entity_id TEXT NOT NULL,
            description TEXT NOT NULL,
            timestamp TEXT NOT NULL,
            reverted_at TEXT
        )
        """
    )

    for key, value in DEFAULT_SETTINGS.items():
        cursor.execute(
            """
            INSERT OR IGNORE INTO settings (key, value, updated_at)
            VALUES (?, ?, ?)
            """,
            (key, value, utc_now_iso()),
        )

    conn.commit()


def get_all_settings(conn: sqlite3.Connection) -> dict[str, Any]:
    rows = conn.execute("SELECT key, value FROM settings").fetchall()
    raw = {row["key"]: row["value"] for row in rows}

    def get_float(key: str) -> float:
        try:
            return float(raw.get(key, DEFAULT_SETTINGS[key]))
        except (TypeError, ValueError):
            return float(DEFAULT_SETTINGS[key] or 0)

    def get_optional_float(key: str) -> float | None:
        value = raw.get(key, DEFAULT_SETTINGS[key]).strip()
        if not value:
            return None
        try:
            return float(value)
        except ValueError:
            return None

    return {
        "currency": raw.get("currency", DEFAULT_SETTINGS["currency"]).upper(),
        "gold_rate_24k": get_float("gold_rate_24k"),
        "gold_rate_22k": get_optional_float("gold_rate_22k"),
        "gold_rate_21k": get_optional_float("gold_rate_21k"),
        "gold_rate_18k": get_optional_float("gold_rate_18k"),
        "palladium_rate": get_float("palladium_rate"),
        "platinum_rate": get_float("platinum_rate"),
        "silver_rate": get_float("silver_rate"),
        "troy_oz_to_grams": get_float("troy_oz_to_grams"),
        "price_cache_ttl_minutes": int(get_float("price_cache_ttl_minutes")),
    }


def save_settings(conn: sqlite3.Connection, settings: dict[str, Any]) -> None:
    now = utc_now_iso()
    payload: dict[str, str] = {}
    for key, value in settings.items():
        if key not in DEFAULT_SETTINGS:
            raise KeyError(f"Unknown setting: {key}")
        payload[key] = "" if value is None else str(value)

    for key, value in payload.items():
        conn.execute(
            """
            INSERT INTO settings (key, value, updated_at)
            VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
            """,
            (key, value, now),
        )
    conn.commit()


def get_rate_table(conn: sqlite3.Connection) -> RateTable:
    return RateTable.from_settings(get_all_settings(conn))


def save_rate_table(conn: sqlite3.Connection, rates: RateTable) -> None:
    save_settings(conn, {key: getattr(rates, key) for key in RATE_SETTING_KEYS})


def next_document_id(conn: sqlite3.Connection, prefix: str) -> str:
    """Allocates the next INV-/ORD-/EXP- number. Numbers are never reused."""
    counter_key = DOCUMENT_COUNTERS[prefix]
    with conn:
        row = conn.execute("SELECT value FROM settings WHERE key = ?", (counter_key,)).fetchone()
        number = int(row["value"] if row is not None else 0) + 1
        conn.execute(
            """
            INSERT INTO settings (key, value, updated_at)
            VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
            """,
            (counter_key, str(number), utc_now_iso()),
        )
    return format_document_id(prefix, number)


def get_cached_prices(conn: sqlite3.Connection, symbols: list[str]) -> dict[str, sqlite3.Row]:
    placeholders = ",".join("?" for _ in symbols)
    rows = conn.execute(
        f"SELECT symbol, price_per_oz, currency, fetched_at, provider FROM metal_prices WHERE symbol IN ({placeholders})",
        symbols,
    ).fetchall()
    return {row["symbol"]: row for row in rows}


def save_price(
    conn: sqlite3.Connection,
    symbol: str,
    price_per_oz: float,
    currency: str,
    provider: str,
) -> None:
    conn.execute(
        """
        INSERT INTO metal_prices (symbol, price_per_oz, currency, fetched_at, provider)
        VALUES (?, ?, ?, ?, ?)
        ON CONFLICT(symbol)
        DO UPDATE SET
            price_per_oz = excluded.price_per_oz,
            currency = excluded.currency,
            fetched_at = excluded.fetched_at,
            provider = excluded.provider
        """,
        (symbol, price_per_oz, currency, utc_now_iso(), provider),
    )
    conn.commit()


def is_price_fresh(fetched_at_iso: str, max_age_minutes: int) -> bool:
    try:
        fetched_at = _parse_timestamp(fetched_at_iso)
    except ValueError:
        return False
    if fetched_at is None:
        return False
    return datetime.now(timezone.utc) - fetched_at <= timedelta(minutes=max_age_minutes)


def _row_to_product(row: sqlite3.Row) -> Product:
    return Product(
        sku=row["sku"],
        name=row["name"],
        category=row["category"],
        priced=priced_from_record(json.loads(row["spec_json"])),
        is_sold=bool(row["is_sold"]),
    )


def add_product(conn: sqlite3.Connection, product: Product) -> None:
    now = utc_now_iso()
    conn.execute(
        """
        INSERT INTO products (sku, name, category, spec_json, is_sold, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?, ?)
        """,
        (
            product.sku,
            product.name,
            product.category,
            json.dumps(priced_to_record(product.priced)),
            int(product.is_sold),
            now,
            now,
        ),
    )
    conn.commit()


def get_product(conn: sqlite3.Connection, sku: str) -> Product | None:
    row = conn.execute("SELECT * FROM products WHERE sku = ?", (sku,)).fetchone()
    return _row_to_product(row) if row is not None else None


def list_products(conn: sqlite3.Connection, include_sold: bool = False) -> list[Product]:
    query = "SELECT * FROM products"
    if not include_sold:
        query += " WHERE is_sold = 0"
    rows = conn.execute(query + " ORDER BY name, sku").fetchall()
    return [_row_to_product(row) for row in rows]


def set_product_sold(
    conn: sqlite3.Connection, sku: str, is_sold: bool, commit: bool = True
) -> bool:
    cursor = conn.execute(
        "UPDATE products SET is_sold = ?, updated_at = ? WHERE sku = ?",
        (int(is_sold), utc_now_iso(), sku),
    )
    if commit:
        conn.commit()
    return cursor.rowcount > 0


def delete_product(conn: sqlite3.Connection, sku: str) -> None:
    conn.execute("DELETE FROM products WHERE sku = ?", (sku,))
    conn.commit()


def _row_to_ledger_entry(row: sqlite3.Row) -> LedgerEntry:
    return LedgerEntry(
        id=int(row["id"]),
        entity_id=row["entity_id"],
        entity_type=row["entity_type"],
        entity_name=row["entity_name"],
        date=_parse_timestamp(row["date"]),
        description=row["description"],
        cash_debit=float(row["cash_debit"]),
        cash_credit=float(row["cash_credit"]),
        gold_debit_grams=float(row["gold_debit_grams"]),
        gold_credit_grams=float(row["gold_credit_grams"]),
        source_ref=row["source_ref"],
    )


def add_ledger_entry(conn: sqlite3.Connection, entry: LedgerEntry, commit: bool = True) -> int:
    validate_entry(entry)
    cursor = conn.execute(
        """
        INSERT INTO ledger_entries
        (entity_id, entity_type, entity_name, date, description, cash_debit, cash_credit,
         gold_debit_grams, gold_credit_grams, source_ref, created_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            entry.entity_id,
            entry.entity_type,
            entry.entity_name,
            _to_iso(entry.date),
            entry.description,
            entry.cash_debit,
            entry.cash_credit,
            entry.gold_debit_grams,
            entry.gold_credit_grams,
            entry.source_ref,
            utc_now_iso(),
        ),
    )
    if commit:
        conn.commit()
    return int(cursor.lastrowid)


def add_ledger_entries(conn: sqlite3.Connection, entries: list[LedgerEntry]) -> int:
    """Appends a batch (e.g. an imported khata) atomically. Returns the count inserted."""
    for entry in entries:
        validate_entry(entry)
    with conn:
        for entry in entries:
            add_ledger_entry(conn, entry, commit=False)
    return len(entries)


def list_ledger_entries(conn: sqlite3.Connection, entity_id: str | None = None) -> list[LedgerEntry]:
    """Returns entries in insertion order, which breaks ties between equal dates."""
    if entity_id is None:
        rows = conn.execute("SELECT * FROM ledger_entries ORDER BY id ASC").fetchall()
    else:
        rows = conn.execute(
            "SELECT * FROM ledger_entries WHERE entity_id = ? ORDER BY id ASC",
            (entity_id,),
        ).fetchall()
    return [_row_to_ledger_entry(row) for row in rows]


def delete_ledger_entry(conn: sqlite3.Connection, entry_id: int) -> None:
    conn.execute("DELETE FROM ledger_entries WHERE id = ?", (entry_id,))
    conn.commit()


def delete_ledger_entries_by_source(
    conn: sqlite3.Connection, source_ref: str, commit: bool = True
) -> int:
    cursor = conn.execute("DELETE FROM ledger_entries WHERE source_ref = ?", (source_ref,))
    if commit:
        conn.commit()
    return cursor.rowcount


def _row_to_activity(row: sqlite3.Row) -> ActivityLogEntry:
    return ActivityLogEntry(
        id=int(row["id"]),
        event_type=row["event_type"],
        entity_id=row["entity_id"],
        timestamp=_parse_timestamp(row["timestamp"]),
        description=row["description"],
        reverted_at=_parse_timestamp(row["reverted_at"]),
    )


def log_activity(
    conn: sqlite3.Connection,
    event_type: str,
    entity_id: str,
    description: str,
    commit: bool = True,
) -> int:
    cursor = conn.execute(
        """
        INSERT INTO activity_log (event_type, entity_id, description, timestamp)
        VALUES (?, ?, ?, ?)
        """,
        (event_type, entity_id, description, utc_now_iso()),
    )
    if commit:
        conn.commit()
    return int(cursor.lastrowid)


def get_activity_log_entry(conn: sqlite3.Connection, log_id: int) -> ActivityLogEntry | None:
    row = conn.execute("SELECT * FROM activity_log WHERE id = ?", (log_id,)).fetchone()
    return _row_to_activity(row) if row is not None else None


def list_activity_log(conn: sqlite3.Connection, limit: int = 100) -> list[ActivityLogEntry]:
    rows = conn.execute(
        "SELECT * FROM activity_log ORDER BY id DESC LIMIT ?",
        (limit,),
    ).fetchall()
    return [_row_to_activity(row) for row in rows]


def mark_activity_reverted(conn: sqlite3.Connection, log_id: int, commit: bool = True) -> bool:
    """Returns False when the entry was already reverted."""
    cursor = conn.execute(
        "UPDATE activity_log SET reverted_at = ? WHERE id = ? AND reverted_at IS NULL",
        (utc_now_iso(), log_id),
    )
    if commit:
        conn.commit()
    return cursor.rowcount == 1


def _party_columns(party: Party | None) -> tuple[str | None, str | None, str | None]:
    if party is None:
        return None, None, None
    return party.entity_id, party.entity_type, party.name


def _row_to_party(row: sqlite3.Row) -> Party | None:
    if row["customer_id"] is None:
        return None
    return Party(
        entity_id=row["customer_id"],
        entity_type=row["customer_type"],
        name=row["customer_name"],
    )


def save_invoice(
    conn: sqlite3.Connection,
    invoice: Invoice,
    ledger_entries: list[LedgerEntry],
) -> int:
    """
    Stores the invoice, marks its products sold, appends its ledger entries and
    logs `invoice.create`, all in one transaction. Returns the activity log id.

    Every product must exist and still be in stock, and every ledger entry must
    carry the invoice's source reference so a revert can find it again.
    Otherwise InvoiceError is raised and nothing is stored.
    """
    source_ref = invoice_source_ref(invoice.id)
    for entry in ledger_entries:
        validate_entry(entry)
        if entry.source_ref != source_ref:
            raise InvoiceError(
                f"Ledger entry for {invoice.id} must reference {source_ref!r}, got {entry.source_ref!r}"
            )

    items_payload = [
        {
            "sku": item.sku,
            "name": item.name,
            "quantity": item.quantity,
            "unit_price": item.unit_price,
            "item_total": item.item_total,
            "breakdown": asdict(item.breakdown),
        }
        for item in invoice.items
    ]
    customer_id, customer_type, customer_name = _party_columns(invoice.customer)

    with conn:
        conn.execute(
            """
            INSERT INTO invoices
            (id, customer_id, customer_type, customer_name, items_json, rates_json,
             subtotal, discount_amount, grand_total, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                invoice.id,
                customer_id,
                customer_type,
                customer_name,
                json.dumps(items_payload),
                json.dumps(asdict(invoice.rates)),
                invoice.subtotal,
                invoice.discount_amount,
                invoice.grand_total,
                _to_iso(invoice.created_at),
            ),
        )
        for sku in dict.fromkeys(item.sku for item in invoice.items):
            cursor = conn.execute(
                "UPDATE products SET is_sold = 1, updated_at = ? WHERE sku = ? AND is_sold = 0",
                (utc_now_iso(), sku),
            )
            if cursor.rowcount != 1:
                raise InvoiceError(f"Product {sku} is unknown or already sold.")
        for entry in ledger_entries:
            add_ledger_entry(conn, entry, commit=False)
        log_id = log_activity(
            conn,
            "invoice.create",
            invoice.id,
            f"Created invoice {invoice.id} for {customer_name or 'walk-in customer'}",
            commit=False,
        )
    return log_id


def get_invoice(conn: sqlite3.Connection, invoice_id: str) -> Invoice | None:
    row = conn.execute("SELECT * FROM invoices WHERE id = ?", (invoice_id,)).fetchone()
    if row is None:
        return None
    items = tuple(
        InvoiceItem(
            sku=item["sku"],
            name=item["name"],
            quantity=int(item["quantity"]),
            unit_price=float(item["unit_price"]),
            item_total=float(item["item_total"]),
            breakdown=CostBreakdown(**item["breakdown"]),
        )
        for item in json.loads(row["items_json"])
    )
    return Invoice(
        id=row["id"],
        items=items,
        subtotal=float(row["subtotal"]),
        discount_amount=float(row["discount_amount"]),
        grand_total=float(row["grand_total"]),
        created_at=_parse_timestamp(row["created_at"]),
        rates=RateTable(**json.loads(row["rates_json"])),
        customer=_row_to_party(row),
    )


def delete_invoice(conn: sqlite3.Connection, invoice_id: str, commit: bool = True) -> None:
    conn.execute("DELETE FROM invoices WHERE id = ?", (invoice_id,))
    if commit:
        conn.commit()


def save_order(conn: sqlite3.Connection, order: Order) -> int:
    # Revert re-derives this same set from the stored order.
    ledger_entries = order_ledger_entries(order)

    items_payload = [
        {
            "description": item.description,
            "priced": priced_to_record(item.priced),
            "breakdown": asdict(item.breakdown),
        }
        for item in order.items
    ]
    customer_id, customer_type, customer_name = _party_columns(order.customer)

    with conn:
        conn.execute(
            """
            INSERT INTO orders
            (id, customer_id, customer_type, customer_name, items_json, rates_json, subtotal,
             advance_payment, advance_in_exchange_value, advance_in_exchange_description,
             grand_total, status, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                order.id,
                customer_id,
                customer_type,
                customer_name,
                json.dumps(items_payload),
                json.dumps(asdict(order.rates)),
                order.subtotal,
                order.advance_payment,
                order.advance_in_exchange_value,
                order.advance_in_exchange_description,
                order.grand_total,
                order.status,
                _to_iso(order.created_at),
            ),
        )
        for entry in ledger_entries:
            add_ledger_entry(conn, entry, commit=False)
        log_id = log_activity(
            conn,
            "order.create",
            order.id,
            f"Created order {order.id} for {customer_name or 'walk-in customer'}",
            commit=False,
        )
    return log_id


def get_order(conn: sqlite3.Connection, order_id: str) -> Order | None:
    row = conn.execute("SELECT * FROM orders WHERE id = ?", (order_id,)).fetchone()
    if row is None:
        return None
    items = tuple(
        OrderItem(
            description=item["description"],
            priced=priced_from_record(item["priced"]),
            breakdown=CostBreakdown(**item["breakdown"]),
        )
        for item in json.loads(row["items_json"])
    )
    return Order(
        id=row["id"],
        items=items,
        subtotal=float(row["subtotal"]),
        advance_payment=float(row["advance_payment"]),
        advance_in_exchange_value=float(row["advance_in_exchange_value"]),
        advance_in_exchange_description=row["advance_in_exchange_description"],
        grand_total=float(row["grand_total"]),
        created_at=_parse_timestamp(row["created_at"]),
        rates=RateTable(**json.loads(row["rates_json"])),
        customer=_row_to_party(row),
        status=row["status"],
    )


def delete_order(conn: sqlite3.Connection, order_id: str, commit: bool = True) -> None:
    conn.execute("DELETE FROM orders WHERE id = ?", (order_id,))
    if commit:
        conn.commit()


def save_expense(conn: sqlite3.Connection, expense: Expense) -> int:
    with conn:
        conn.execute(
            """
            INSERT INTO expenses (id, date, category, description, amount, notes, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                expense.id,
                _to_iso(expense.date),
                expense.category,
                expense.description,
                expense.amount,
                expense.notes,
                utc_now_iso(),
            ),
        )
        log_id = log_activity(
            conn,
            "expense.create",
            expense.id,
            f"Recorded expense {expense.id}: {expense.description}",
            commit=False,
        )
    return log_id


def _row_to_expense(row: sqlite3.Row) -> Expense:
    return Expense(
        id=row["id"],
        date=_parse_timestamp(row["date"]),
        category=row["category"],
        description=row["description"],
        amount=float(row["amount"]),
        notes=row["notes"] or "",
    )


def get_expense(conn: sqlite3.Connection, expense_id: str) -> Expense | None:
    row = conn.execute("SELECT * FROM expenses WHERE id = ?", (expense_id,)).fetchone()
    return _row_to_expense(row) if row is not None else None


def list_expenses(conn: sqlite3.Connection, limit: int = 100) -> list[Expense]:
    rows = conn.execute("SELECT * FROM expenses ORDER BY date DESC LIMIT ?", (limit,)).fetchall()
    return [_row_to_expense(row) for row in rows]


def delete_expense(conn: sqlite3.Connection, expense_id: str, commit: bool = True) -> None:
    conn.execute("DELETE FROM expenses WHERE id = ?", (expense_id,))
    if commit:
        conn.commit()
