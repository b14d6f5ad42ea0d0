"""
Audited undo of creation events recorded in the activity log.

Each revertable event type maps to a pure planner that turns the stored record
into an UndoPlan. The engine applies a plan inside one repository transaction,
always in the same order:

    restock inventory -> delete ledger entries -> delete record -> mark log reverted

If a store cannot make that sequence atomic, a crash part-way leaves stock
restored and the log entry still active, so the revert can be retried.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass

from gemledger.errors import (
    AlreadyRevertedError,
    NotRevertableError,
    RevertError,
    RevertTargetNotFoundError,
)
from gemledger.invoicing import invoice_source_ref, order_ledger_entries, order_source_ref
from gemledger.models import ActivityLogEntry, Expense, Invoice, Order
from gemledger.repository import Repository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UndoPlan:
    record_kind: str
    record_id: str
    restock_skus: tuple[str, ...] = ()
    ledger_sources: tuple[str, ...] = ()


def plan_invoice_revert(log_entry: ActivityLogEntry, invoice: Invoice) -> UndoPlan:
    return UndoPlan(
        record_kind="invoice",
        record_id=invoice.id,
        restock_skus=tuple(dict.fromkeys(item.sku for item in invoice.items)),
        ledger_sources=(invoice_source_ref(invoice.id),),
    )


def plan_order_revert(log_entry: ActivityLogEntry, order: Order) -> UndoPlan:
    # Mirror creation exactly: only orders that posted an advance have entries to remove.
    sources = (order_source_ref(order.id),) if order_ledger_entries(order) else ()
    return UndoPlan(record_kind="order", record_id=order.id, ledger_sources=sources)


def plan_expense_revert(log_entry: ActivityLogEntry, expense: Expense) -> UndoPlan:
    return UndoPlan(record_kind="expense", record_id=expense.id)


Planner = Callable[[ActivityLogEntry, object], UndoPlan]

UNDO_PLANNERS: dict[str, tuple[str, Planner]] = {
    "invoice.create": ("invoice", plan_invoice_revert),
    "order.create": ("order", plan_order_revert),
    "expense.create": ("expense", plan_expense_revert),
}

REVERTABLE_EVENTS = tuple(UNDO_PLANNERS)


def is_revertable(log_entry: ActivityLogEntry) -> bool:
    return log_entry.event_type in UNDO_PLANNERS and not log_entry.is_reverted


class RevertEngine:
    def __init__(
        self,
        repository: Repository,
        planners: dict[str, tuple[str, Planner]] | None = None,
    ):
        self.repository = repository
        self.planners = planners if planners is not None else UNDO_PLANNERS

    def plan(self, log_entry: ActivityLogEntry) -> UndoPlan:
        if log_entry.event_type not in self.planners:
            raise NotRevertableError(log_entry.id, log_entry.event_type)
        if log_entry.is_reverted:
            raise AlreadyRevertedError(log_entry.id)

        record_kind, planner = self.planners[log_entry.event_type]
        record = self.repository.get_record(record_kind, log_entry.entity_id)
        if record is None:
            raise RevertTargetNotFoundError(log_entry.id, record_kind, log_entry.entity_id)
        return planner(log_entry, record)

    def revert(self, log_entry: ActivityLogEntry) -> UndoPlan:
        if log_entry.id is None:
            raise RevertError(None, "Cannot revert an activity log entry that was never stored.")

        with self.repository.transaction():
            # The caller's copy may be stale; the stored entry decides whether it was consumed.
            current = self.repository.get_activity_log_entry(log_entry.id) or log_entry
            plan = self.plan(current)

            restocked = sum(1 for sku in plan.restock_skus if self.repository.restock_product(sku))
            removed = sum(
                self.repository.delete_ledger_entries_by_source(source)
                for source in plan.ledger_sources
            )
            self.repository.delete_record(plan.record_kind, plan.record_id)
            if not self.repository.mark_reverted(log_entry.id):
                raise AlreadyRevertedError(log_entry.id)

        logger.info(
            "Reverted %s %s: restocked %d products, removed %d ledger entries",
            plan.record_kind,
            plan.record_id,
            restocked,
            removed,
        )
        return plan
