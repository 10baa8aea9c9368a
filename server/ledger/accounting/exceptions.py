"""Domain errors raised by the posting engine.

Every error carries a stable machine-readable ``code`` and the HTTP status the
API layer answers with. Validation errors also subclass ``ValueError`` so that
callers which only know about plain value errors keep working.
"""

from datetime import date
from decimal import Decimal
from typing import Any


class LedgerError(Exception):
    code: str = "LEDGER_ERROR"
    http_status: int = 500

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        payload = {"code": self.code, "message": self.message}
        for key, value in self.details.items():
            if isinstance(value, (Decimal, date)):
                value = str(value)
            payload[key] = value
        return payload


# Validation: user-correctable input problems.


class LedgerValidationError(LedgerError, ValueError):
    code = "VALIDATION_ERROR"
    http_status = 400


class UnbalancedEntryError(LedgerValidationError):
    code = "UNBALANCED_ENTRY"

    def __init__(self, debit_total: Decimal, credit_total: Decimal):
        self.debit_total = debit_total
        self.credit_total = credit_total
        self.difference = debit_total - credit_total
        super().__init__(
            f"Journal entry is unbalanced: debits={debit_total} credits={credit_total}",
            debit_total=debit_total,
            credit_total=credit_total,
            difference=self.difference,
        )


class EmptyEntryError(LedgerValidationError):
    code = "EMPTY_ENTRY"

    def __init__(self):
        super().__init__("Journal entry has no lines.")


class UnknownAccountError(LedgerValidationError):
    code = "UNKNOWN_ACCOUNT"

    def __init__(self, position: int, account_id: int | None, reason: str = "unknown"):
        self.position = position
        self.account_id = account_id
        self.reason = reason
        if account_id is None:
            message = f"Line {position} has no account."
        else:
            message = f"Line {position} references {reason} account {account_id}."
        super().__init__(message, position=position, account_id=account_id, reason=reason)


class InvalidAmountError(LedgerValidationError):
    code = "INVALID_AMOUNT"

    def __init__(self, position: int, amount: Decimal):
        self.position = position
        self.amount = amount
        super().__init__(f"Line {position} amount must be greater than zero, got {amount}.", position=position, amount=amount)


class IncompleteCurrencyError(LedgerValidationError):
    code = "INCOMPLETE_CURRENCY"

    def __init__(self, position: int):
        self.position = position
        super().__init__(
            f"Line {position} must set foreign amount, currency and exchange rate together or not at all.",
            position=position,
        )


class InvalidAccountCodeError(LedgerValidationError):
    code = "INVALID_ACCOUNT_CODE"


class InvalidDocumentTypeError(LedgerValidationError):
    code = "INVALID_DOCUMENT_TYPE"

    def __init__(self, document_type: str):
        self.document_type = document_type
        super().__init__(f"Unknown document type '{document_type}'.", document_type=document_type)


# State: the operation is not allowed in the current lifecycle state.


class LedgerStateError(LedgerError):
    code = "STATE_ERROR"
    http_status = 409


class PostingStateError(LedgerStateError):
    code = "INVALID_STATE"

    def __init__(self, message: str, entry_id: int | None = None, status: str | None = None):
        self.entry_id = entry_id
        self.status = status
        super().__init__(message, entry_id=entry_id, status=status)


class AlreadyReversedError(PostingStateError):
    code = "ALREADY_REVERSED"

    def __init__(self, entry_id: int, reversed_by_id: int | None = None):
        self.reversed_by_id = reversed_by_id
        super().__init__(f"Journal entry {entry_id} has already been reversed.", entry_id=entry_id, status="reversed")
        self.details["reversed_by_id"] = reversed_by_id


class DuplicateAccountError(LedgerStateError):
    code = "DUPLICATE_ACCOUNT"

    def __init__(self, code: str, analytic: str = ""):
        full_code = f"{code}.{analytic}" if analytic else code
        super().__init__(f"Account {full_code} already exists.", account_code=full_code)


class AccountInUseError(LedgerStateError):
    code = "ACCOUNT_IN_USE"


class PeriodLockedError(LedgerStateError):
    code = "PERIOD_LOCKED"

    def __init__(self, entry_date: date, period_start: date, period_end: date):
        self.entry_date = entry_date
        super().__init__(
            f"Period {period_start} to {period_end} is locked; {entry_date} cannot be changed.",
            entry_date=entry_date,
            period_start=period_start,
            period_end=period_end,
        )


class ConcurrentModificationError(LedgerStateError):
    code = "CONCURRENT_MODIFICATION"

    def __init__(self, entry_id: int | None = None, message: str | None = None):
        self.entry_id = entry_id
        super().__init__(message or f"Journal entry {entry_id} was modified concurrently.", entry_id=entry_id)


# Not found.


class LedgerNotFoundError(LedgerError):
    code = "NOT_FOUND"
    http_status = 404


class EntryNotFoundError(LedgerNotFoundError):
    code = "ENTRY_NOT_FOUND"

    def __init__(self, entry_id: int):
        super().__init__(f"Journal entry {entry_id} not found.", entry_id=entry_id)


class AccountNotFoundError(LedgerNotFoundError):
    code = "ACCOUNT_NOT_FOUND"

    def __init__(self, account_id: int):
        super().__init__(f"Account {account_id} not found.", account_id=account_id)


class TemplateNotFoundError(LedgerNotFoundError):
    code = "TEMPLATE_NOT_FOUND"

    def __init__(self, template_id: int):
        super().__init__(f"Posting template {template_id} not found.", template_id=template_id)


# Integrity: the stored ledger contradicts itself. Never user-correctable.


class LedgerIntegrityError(LedgerError):
    code = "INTEGRITY_ERROR"
    http_status = 500


class LedgerOutOfBalanceError(LedgerIntegrityError):
    code = "LEDGER_OUT_OF_BALANCE"
