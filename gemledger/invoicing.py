from collections.abc import Iterable
from datetime import datetime, timezone

from gemledger.errors import InvoiceError
from gemledger.models import (
    Invoice,
    InvoiceItem,
    InvoiceLine,
    LedgerEntry,
    Order,
    OrderItem,
    Party,
    Priced,
    RateTable,
)
from gemledger.pricing import compute


def format_document_id(prefix: str, number: int) -> str:
    return f"{prefix}-{number:06d}"


def invoice_source_ref(invoice_id: str) -> str:
    return f"invoice:{invoice_id}"


def order_source_ref(order_id: str) -> str:
    return f"order:{order_id}"


def build_invoice(
    invoice_id: str,
    lines: Iterable[InvoiceLine],
    rates: RateTable,
    discount_amount: float = 0.0,
    customer: Party | None = None,
    created_at: datetime | None = None,
) -> Invoice:
    items: list[InvoiceItem] = []
    subtotal = 0.0
    for line in lines:
        if line.quantity < 1:
            raise InvoiceError(f"Quantity for {line.sku} must be at least 1, got {line.quantity}")
        breakdown = compute(line.priced, rates)
        item_total = breakdown.total_price * line.quantity
        subtotal += item_total
        items.append(
            InvoiceItem(
                sku=line.sku,
                name=line.name,
                quantity=line.quantity,
                unit_price=breakdown.total_price,
                item_total=item_total,
                breakdown=breakdown,
            )
        )

    if not items:
        raise InvoiceError("Cannot build an invoice without items.")

    discount = max(0.0, min(subtotal, discount_amount))
    return Invoice(
        id=invoice_id,
        items=tuple(items),
        subtotal=subtotal,
        discount_amount=discount,
        grand_total=subtotal - discount,
        created_at=created_at or datetime.now(timezone.utc),
        rates=rates,
        customer=customer,
    )


def invoice_ledger_entries(invoice: Invoice, amount_paid: float = 0.0) -> list[LedgerEntry]:
    """Walk-in invoices have no account to post to and produce no entries."""
    if invoice.customer is None:
        return []
    if amount_paid < 0:
        raise InvoiceError(f"Amount paid must be non-negative, got {amount_paid}")

    customer = invoice.customer
    source_ref = invoice_source_ref(invoice.id)
    entries = [
        LedgerEntry(
            id=None,
            entity_id=customer.entity_id,
            entity_type=customer.entity_type,
            entity_name=customer.name,
            date=invoice.created_at,
            description=f"Invoice {invoice.id}",
            cash_debit=invoice.grand_total,
            source_ref=source_ref,
        )
    ]
    if amount_paid > 0:
        entries.append(
            LedgerEntry(
                id=None,
                entity_id=customer.entity_id,
                entity_type=customer.entity_type,
                entity_name=customer.name,
                date=invoice.created_at,
                description=f"Payment received for invoice {invoice.id}",
                cash_credit=amount_paid,
                source_ref=source_ref,
            )
        )
    return entries


def build_order(
    order_id: str,
    items: Iterable[tuple[str, Priced]],
    rates: RateTable,
    advance_payment: float = 0.0,
    advance_in_exchange_value: float = 0.0,
    advance_in_exchange_description: str = "",
    customer: Party | None = None,
    created_at: datetime | None = None,
) -> Order:
    if advance_payment < 0 or advance_in_exchange_value < 0:
        raise InvoiceError("Advance amounts must be non-negative.")

    order_items = [
        OrderItem(description=description, priced=priced, breakdown=compute(priced, rates))
        for description, priced in items
    ]
    if not order_items:
        raise InvoiceError("Cannot build an order without items.")

    subtotal = sum(item.breakdown.total_price for item in order_items)
    total_advance = advance_payment + advance_in_exchange_value
    return Order(
        id=order_id,
        items=tuple(order_items),
        subtotal=subtotal,
        advance_payment=advance_payment,
        advance_in_exchange_value=advance_in_exchange_value,
        advance_in_exchange_description=advance_in_exchange_description,
        grand_total=subtotal - total_advance,
        created_at=created_at or datetime.now(timezone.utc),
        rates=rates,
        customer=customer,
    )


def order_ledger_entries(order: Order) -> list[LedgerEntry]:
    """
    The only ledger side effect of creating an order is its advance.

    Cash and exchanged goods are both credited to the customer, since the shop
    holds them against the order until it is invoiced.
    """
    if order.customer is None or order.total_advance <= 0:
        return []

    customer = order.customer
    description = f"Advance for order {order.id}"
    if order.advance_in_exchange_value > 0 and order.advance_in_exchange_description:
        description += f" (incl. exchange: {order.advance_in_exchange_description})"
    return [
        LedgerEntry(
            id=None,
            entity_id=customer.entity_id,
            entity_type=customer.entity_type,
            entity_name=customer.name,
            date=order.created_at,
            description=description,
            cash_credit=order.total_advance,
            source_ref=order_source_ref(order.id),
        )
    ]
