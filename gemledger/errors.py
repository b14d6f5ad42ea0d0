class GemLedgerError(Exception):
    """Base class for every error raised by the engine."""


class InvalidSpecError(GemLedgerError, ValueError):
    """An item description cannot be priced."""


class InvalidRateError(GemLedgerError, ValueError):
    """A rate table holds a negative or unusable rate."""


class InvalidEntryError(GemLedgerError, ValueError):
    """A ledger entry failed write-time validation."""


class InvoiceError(GemLedgerError, ValueError):
    """An invoice or order cannot be built from the given lines."""


class ImportFormatError(GemLedgerError, ValueError):
    """An imported ledger file is missing columns or holds bad rows."""


class RevertError(GemLedgerError):
    """Base class for activity log revert failures."""

    def __init__(self, log_id: int | None, message: str):
        super().__init__(message)
        self.log_id = log_id


class NotRevertableError(RevertError):
    def __init__(self, log_id: int | None, event_type: str):
        super().__init__(log_id, f"Event type '{event_type}' cannot be reverted.")
        self.event_type = event_type


class AlreadyRevertedError(RevertError):
    def __init__(self, log_id: int | None):
        super().__init__(log_id, f"Activity log entry {log_id} has already been reverted.")


class RevertTargetNotFoundError(RevertError):
    def __init__(self, log_id: int | None, record_kind: str, record_id: str):
        super().__init__(log_id, f"{record_kind.capitalize()} {record_id} no longer exists.")
        self.record_kind = record_kind
        self.record_id = record_id
