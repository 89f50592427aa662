from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from datetime import datetime

from money import Money, ZERO


ClientId = Annotated[int, Field(ge=0, le=65535, description="Client identifier (u16)")]
TransactionId = Annotated[int, Field(ge=0, le=4294967295, description="Transaction identifier (u32)")]


class TransactionType(str, Enum):
    deposit = "deposit"
    withdrawal = "withdrawal"
    dispute = "dispute"
    resolve = "resolve"
    chargeback = "chargeback"


class DuplicatePolicy(str, Enum):
    """What to do when a deposit/withdrawal reuses a recorded transaction id."""

    overwrite = "overwrite"
    keep_first = "keep_first"
    reject = "reject"
    error = "error"


class OutcomeStatus(str, Enum):
    applied = "applied"
    ignored = "ignored"


class IgnoreReason(str, Enum):
    account_locked = "account_locked"
    insufficient_funds = "insufficient_funds"
    unknown_transaction = "unknown_transaction"
    already_disputed = "already_disputed"
    not_disputed = "not_disputed"
    duplicate_transaction = "duplicate_transaction"


# Input records

class _RecordBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    client: ClientId
    tx: TransactionId

    @property
    def transaction_type(self) -> TransactionType:
        return TransactionType(self.type)


class DepositRecord(_RecordBase):
    type: Literal["deposit"] = "deposit"
    amount: Money = Field(..., description="Amount credited to the client")


class WithdrawalRecord(_RecordBase):
    type: Literal["withdrawal"] = "withdrawal"
    amount: Money = Field(..., description="Amount debited from the client")


class DisputeRecord(_RecordBase):
    type: Literal["dispute"] = "dispute"


class ResolveRecord(_RecordBase):
    type: Literal["resolve"] = "resolve"


class ChargebackRecord(_RecordBase):
    type: Literal["chargeback"] = "chargeback"


Record = Annotated[
    Union[DepositRecord, WithdrawalRecord, DisputeRecord, ResolveRecord, ChargebackRecord],
    Field(discriminator="type"),
]

_record_adapter = TypeAdapter(Record)


def parse_record(data: Dict[str, Any]) -> Record:
    """Validate a mapping into the matching record variant.

    Raises ``pydantic.ValidationError`` for unknown types, missing fields or
    out-of-range identifiers.
    """
    return _record_adapter.validate_python(data)


# Ledger state

class AccountSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    client: ClientId
    available: Money
    held: Money
    total: Money
    locked: bool


class Account(BaseModel):
    client: ClientId
    available: Money = ZERO
    held: Money = ZERO
    total: Money = ZERO
    locked: bool = False

    def deposit(self, amount: Money) -> None:
        if self.locked:
            return
        self.available += amount
        self.total += amount

    def withdraw(self, amount: Money) -> bool:
        if self.locked or self.available < amount:
            return False
        self.available -= amount
        self.total -= amount
        return True

    def hold(self, amount: Money) -> Money:
        """Move up to ``amount`` from available to held; returns what moved."""
        if self.locked:
            return ZERO
        moved = Money.min(amount, self.available)
        self.available -= moved
        self.held += moved
        return moved

    def release(self, amount: Money) -> Money:
        """Move up to ``amount`` from held back to available; returns what moved."""
        if self.locked:
            return ZERO
        moved = Money.min(amount, self.held)
        self.held -= moved
        self.available += moved
        return moved

    def chargeback(self, amount: Money) -> Money:
        """Remove up to ``amount`` of held funds and lock the account.

        The account is locked even when nothing was held.
        """
        if self.locked:
            return ZERO
        removed = Money.min(amount, self.held)
        self.held -= removed
        self.total -= removed
        self.locked = True
        return removed

    def snapshot(self) -> AccountSnapshot:
        return AccountSnapshot(
            client=self.client,
            available=self.available,
            held=self.held,
            total=self.total,
            locked=self.locked,
        )


class LedgerEntry(BaseModel):
    client: ClientId
    amount: Money
    disputed: bool = False


# Processing results

class ProcessOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: TransactionType
    client: ClientId = Field(..., description="Client whose account the record acted on")
    tx: TransactionId
    status: OutcomeStatus
    reason: Optional[IgnoreReason] = None
    replaced_entry: bool = Field(False, description="An existing ledger entry was overwritten")

    @property
    def applied(self) -> bool:
        return self.status == OutcomeStatus.applied


class ProcessingSummary(BaseModel):
    processed: int = 0
    applied: int = 0
    ignored: int = 0
    ignored_by_reason: Dict[IgnoreReason, int] = Field(default_factory=dict)

    def add(self, outcome: ProcessOutcome) -> None:
        self.processed += 1
        if outcome.applied:
            self.applied += 1
        else:
            self.ignored += 1
            self.ignored_by_reason[outcome.reason] = self.ignored_by_reason.get(outcome.reason, 0) + 1


# HTTP payloads

class BatchResponse(BaseModel):
    accounts: List[AccountSnapshot] = Field(..., description="Final state of every referenced account")
    summary: ProcessingSummary = Field(..., description="Counts of applied and ignored records")


class ErrorResponse(BaseModel):
    detail: str = Field(..., description="Error description")
    error_code: str = Field(..., description="Machine-readable error code")
    timestamp: datetime = Field(default_factory=datetime.now, description="Error timestamp")


class HealthResponse(BaseModel):
    status: str = Field(..., description="Service health status")
    timestamp: datetime = Field(default_factory=datetime.now)
    version: str = Field(..., description="Service version")
    duplicate_tx_policy: DuplicatePolicy = Field(..., description="Active duplicate transaction policy")
