import hashlib
import json
from typing import Optional

from sqlalchemy.orm import Session

from ledger.models import AuditEvent, JournalEntry


def entry_fingerprint(entry: Optional[JournalEntry]) -> Optional[str]:
    """Stable hash of an entry header and its lines."""
    if entry is None:
        return None
    payload = {
        "number": entry.number,
        "document_type": entry.document_type,
        "entry_date": str(entry.entry_date),
        "description": entry.description,
        "status": entry.status,
        "total_debit": str(entry.total_debit),
        "total_credit": str(entry.total_credit),
        "lines": [
            [line.position, line.account_id, line.side, str(line.amount), line.currency, str(line.amount_currency)]
            for line in entry.lines
        ],
    }
    return hashlib.sha256(json.dumps(payload, sort_keys=True).encode("utf-8")).hexdigest()


def record_entry_event(
    db: Session,
    entry: JournalEntry,
    action: str,
    *,
    user_id: Optional[int] = None,
    before_hash: Optional[str] = None,
    metadata: Optional[str] = None,
) -> AuditEvent:
    event = AuditEvent(
        company_id=entry.company_id,
        user_id=user_id,
        entity_type="journal_entry",
        entity_id=entry.id,
        action=action,
        before_hash=before_hash,
        after_hash=entry_fingerprint(entry) if action != "DELETE" else None,
        event_metadata=metadata,
    )
    db.add(event)
    return event


def list_entry_events(db: Session, company_id: int, entry_id: int) -> list[AuditEvent]:
    return (
        db.query(AuditEvent)
        .filter(
            AuditEvent.company_id == company_id,
            AuditEvent.entity_type == "journal_entry",
            AuditEvent.entity_id == entry_id,
        )
        .order_by(AuditEvent.id.asc())
        .all()
    )
