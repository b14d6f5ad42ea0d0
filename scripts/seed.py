"""
Initialises the local SQLite database and ensures default settings exist.
Run this once before first use, or anytime to repair missing tables.

Pass --refresh-rates to pull current spot prices into the rate settings.
"""

import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from gemledger.db import get_connection, init_db
from gemledger.providers import refresh_rate_table

# Load environment variables from local .env file.
load_dotenv(dotenv_path=Path(__file__).resolve().parents[1] / ".env")


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    conn = get_connection()
    init_db(conn)
    print("Database initialised successfully.")

    if "--refresh-rates" in sys.argv[1:]:
        rates, warning = refresh_rate_table(conn, force_refresh=True)
        if warning:
            print(warning)
        print(f"Gold 24k rate per gram: {rates.gold_rate_24k:,.2f}")


if __name__ == "__main__":
    main()
