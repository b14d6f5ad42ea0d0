from . import db, invoicing, ledger, models, pricing, reports, repository, revert

__all__ = [
    "db",
    "invoicing",
    "ledger",
    "models",
    "pricing",
    "reports",
    "repository",
    "revert",
]
