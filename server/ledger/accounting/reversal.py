"""Storno: the compensating mirror of a posted entry.

The mirror copies every line with its side flipped and is born posted. Flipping
every side of a balanced entry keeps it balanced, so it skips the draft stage.
Persisting the mirror and flipping the original happen in
``ledger.accounting.journal.reverse_entry`` inside one transaction.
"""

from datetime import date, datetime
from typing import Optional

from ledger.models import ENTRY_POSTED, SIDE_CREDIT, SIDE_DEBIT, JournalEntry, JournalLine

STORNO_PREFIX = "STORNO"


def flip_side(side: str) -> str:
    return SIDE_CREDIT if side == SIDE_DEBIT else SIDE_DEBIT


def storno_description(entry: JournalEntry) -> str:
    return f"{STORNO_PREFIX}: {entry.description} (original document {entry.number})"


def build_reversal(
    entry: JournalEntry,
    *,
    number: str,
    reversal_date: date,
    fiscal_year: int,
    user_id: Optional[int] = None,
    posted_at: Optional[datetime] = None,
) -> JournalEntry:
    posted_at = posted_at or datetime.utcnow()
    mirror = JournalEntry(
        company_id=entry.company_id,
        number=number,
        document_type=entry.document_type,
        fiscal_year=fiscal_year,
        entry_date=reversal_date,
        description=storno_description(entry),
        status=ENTRY_POSTED,
        # Sides swap, so the totals swap with them.
        total_debit=entry.total_credit,
        total_credit=entry.total_debit,
        source_document_type=entry.source_document_type,
        source_document_id=entry.source_document_id,
        reversal_of_id=entry.id,
        created_by=user_id,
        posted_by=user_id,
        posted_at=posted_at,
    )
    mirror.lines = [
        JournalLine(
            position=line.position,
            account_id=line.account_id,
            account_label=line.account_label,
            side=flip_side(line.side),
            amount=line.amount,
            amount_currency=line.amount_currency,
            currency=line.currency,
            exchange_rate=line.exchange_rate,
            cost_center=line.cost_center,
            project=line.project,
            description=f"{STORNO_PREFIX}: {line.description}" if line.description else STORNO_PREFIX,
        )
        for line in entry.lines
    ]
    return mirror
