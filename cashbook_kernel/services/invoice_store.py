"""
InvoiceStore -- invoices and the partial payments received against them.

The paid flag is recomputed on every payment change: an invoice is paid
once the received amount reaches its total.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from uuid import uuid4

from cashbook_kernel.domain.amounts import ZERO, clean_text, parse_timestamp, positive_amount, to_amount
from cashbook_kernel.domain.records import Invoice, InvoicePayment
from cashbook_kernel.exceptions import DocumentNotFoundError, InvoiceNotFoundError, PaymentNotFoundError
from cashbook_kernel.logging_config import get_logger
from cashbook_kernel.services.base import BaseService

logger = get_logger("services.invoice_store")

INVOICES_COLLECTION = "invoices"


class InvoiceStore(BaseService):

    def create_invoice(
        self,
        *,
        invoice_number: str,
        party_name: str,
        total_amount: Decimal | int | str,
        order_ids: Sequence[str] = (),
        due_date: datetime | str | None = None,
    ) -> Invoice:
        invoice = Invoice(
            id="",
            invoice_number=invoice_number,
            party_name=party_name,
            total_amount=to_amount(total_amount),
            order_ids=tuple(order_ids),
            due_date=parse_timestamp(due_date),
            created_at=self.clock.now(),
        )
        invoice_id = self.store.create(INVOICES_COLLECTION, invoice.to_record())
        logger.info(
            "invoice_created",
            extra={"invoice_id": invoice_id, "invoice_number": invoice_number},
        )
        return replace(invoice, id=invoice_id)

    def get_invoice(self, invoice_id: str) -> Invoice:
        document = self.store.get(INVOICES_COLLECTION, invoice_id)
        if document is None:
            raise InvoiceNotFoundError(invoice_id)
        return Invoice.from_record(document.id, document.data)

    def get_all_invoices(self) -> list[Invoice]:
        return [
            Invoice.from_record(d.id, d.data)
            for d in self.store.query(INVOICES_COLLECTION)
        ]

    def _save_payments(
        self,
        invoice: Invoice,
        payments: tuple[InvoicePayment, ...],
    ) -> Invoice:
        paid_amount = sum((p.amount for p in payments), ZERO)
        updated = replace(
            invoice,
            partial_payments=payments,
            paid_amount=paid_amount,
            paid=paid_amount >= invoice.total_amount,
        )
        record = updated.to_record()
        try:
            self.store.update(
                INVOICES_COLLECTION,
                invoice.id,
                {
                    "partial_payments": record["partial_payments"],
                    "paid_amount": record["paid_amount"],
                    "paid": record["paid"],
                },
            )
        except DocumentNotFoundError:
            raise InvoiceNotFoundError(invoice.id) from None
        return updated

    def add_payment(
        self,
        invoice_id: str,
        amount: Decimal | int | str,
        date: datetime | str | None = None,
        note: str | None = None,
    ) -> Invoice:
        invoice = self.get_invoice(invoice_id)
        now = self.clock.now()
        payment = InvoicePayment(
            id=str(uuid4()),
            amount=positive_amount(amount),
            date=parse_timestamp(date) or now,
            note=clean_text(note),
            created_at=now,
        )
        updated = self._save_payments(invoice, invoice.partial_payments + (payment,))
        logger.info(
            "invoice_payment_added",
            extra={
                "invoice_id": invoice_id,
                "payment_id": payment.id,
                "amount": str(payment.amount),
                "paid": updated.paid,
            },
        )
        return updated

    def remove_payment(self, invoice_id: str, payment_id: str) -> Invoice:
        invoice = self.get_invoice(invoice_id)
        remaining = tuple(p for p in invoice.partial_payments if p.id != payment_id)
        if len(remaining) == len(invoice.partial_payments):
            raise PaymentNotFoundError(invoice_id, payment_id)
        updated = self._save_payments(invoice, remaining)
        logger.info(
            "invoice_payment_removed",
            extra={"invoice_id": invoice_id, "payment_id": payment_id},
        )
        return updated
