"""
InvestmentStore -- the owner's capital investment and its history.

There is one investment record.  Setting it creates the record the first
time and updates it afterwards; each effective change appends an
InvestmentActivity with the previous amount, which the cash timeline turns
into capital-added / capital-reduced movements.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import uuid4

from cashbook_kernel.domain.amounts import clean_text, parse_timestamp, to_amount, to_iso
from cashbook_kernel.domain.records import ActivityType, InvestmentActivity, InvestmentRecord
from cashbook_kernel.exceptions import InvalidAmountError
from cashbook_kernel.logging_config import get_logger
from cashbook_kernel.services.base import BaseService
from cashbook_kernel.store.base import DELETE_FIELD, OrderBy

logger = get_logger("services.investment_store")

INVESTMENT_COLLECTION = "investment"
INVESTMENT_ACTIVITY_COLLECTION = "investment_activity"
INVESTMENT_ID = "current"


class InvestmentStore(BaseService):

    def get_investment(self) -> InvestmentRecord | None:
        document = self.store.get(INVESTMENT_COLLECTION, INVESTMENT_ID)
        if document is None:
            return None
        return InvestmentRecord.from_record(document.id, document.data)

    def set_investment(
        self,
        amount: Decimal | int | str,
        date: datetime | str | None = None,
        note: str | None = None,
    ) -> InvestmentRecord:
        """Create or update the investment.  A no-op when nothing changes."""
        value = to_amount(amount)
        if value < 0:
            raise InvalidAmountError(amount, reason="investment cannot be negative")
        now = self.clock.now()
        when = parse_timestamp(date) or now
        text = clean_text(note)
        current = self.get_investment()

        if current is None:
            record = InvestmentRecord(
                id=INVESTMENT_ID,
                amount=value,
                date=when,
                note=text,
                created_at=now,
                updated_at=now,
            )
            self.store.create(INVESTMENT_COLLECTION, record.to_record(), doc_id=INVESTMENT_ID)
            self._log_activity(ActivityType.CREATED, record, previous=None)
            logger.info("investment_created", extra={"amount": str(value)})
            return record

        if current.amount == value and current.note == text and date is None:
            logger.debug("investment_unchanged", extra={"amount": str(value)})
            return current

        record = InvestmentRecord(
            id=INVESTMENT_ID,
            amount=value,
            date=when,
            note=text,
            created_at=current.created_at,
            updated_at=now,
        )
        self.store.update(
            INVESTMENT_COLLECTION,
            INVESTMENT_ID,
            {
                "amount": str(value),
                "date": to_iso(when),
                "note": text if text is not None else DELETE_FIELD,
                "updated_at": to_iso(now),
            },
        )
        self._log_activity(ActivityType.UPDATED, record, previous=current)
        logger.info(
            "investment_updated",
            extra={"amount": str(value), "previous_amount": str(current.amount)},
        )
        return record

    def _log_activity(
        self,
        activity_type: ActivityType,
        record: InvestmentRecord,
        previous: InvestmentRecord | None,
    ) -> None:
        activity = InvestmentActivity(
            id=str(uuid4()),
            activity_type=activity_type,
            amount=record.amount,
            date=record.date,
            timestamp=self.clock.now(),
            previous_amount=None if previous is None else previous.amount,
            note=record.note,
            previous_note=None if previous is None else previous.note,
        )
        self.store.create(
            INVESTMENT_ACTIVITY_COLLECTION, activity.to_record(), doc_id=activity.id
        )

    def get_activity_log(self) -> list[InvestmentActivity]:
        """Investment activities, oldest first."""
        documents = self.store.query(
            INVESTMENT_ACTIVITY_COLLECTION, order_by=OrderBy("timestamp")
        )
        return [InvestmentActivity.from_record(d.id, d.data) for d in documents]
