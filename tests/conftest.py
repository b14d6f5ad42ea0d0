from datetime import datetime, timedelta, timezone

import pytest

from gemledger.db import get_connection, init_db
from gemledger.models import LedgerEntry, Party, RateTable

BASE_DATE = datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)


@pytest.fixture
def conn(tmp_path):
    connection = get_connection(tmp_path / "gemledger-test.db")
    init_db(connection)
    yield connection
    connection.close()


@pytest.fixture
def rates():
    return RateTable(
        gold_rate_24k=20000.0,
        palladium_rate=22000.0,
        platinum_rate=25000.0,
        silver_rate=250.0,
    )


@pytest.fixture
def customer():
    return Party(entity_id="cust-1", entity_type="customer", name="Ayesha Khan")


def make_entry(
    day: int = 0,
    entity_id: str = "cust-1",
    entity_name: str = "Ayesha Khan",
    entity_type: str = "customer",
    **amounts,
) -> LedgerEntry:
    return LedgerEntry(
        id=None,
        entity_id=entity_id,
        entity_type=entity_type,
        entity_name=entity_name,
        date=BASE_DATE + timedelta(days=day),
        description=amounts.pop("description", f"Entry on day {day}"),
        **amounts,
    )
