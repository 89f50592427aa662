from typing import Callable, Dict, Iterable, List, Optional
import structlog

from config import Settings, get_settings
from exceptions import DuplicateTransactionError
from models import (
    AccountSnapshot,
    ChargebackRecord,
    DepositRecord,
    DisputeRecord,
    DuplicatePolicy,
    IgnoreReason,
    LedgerEntry,
    OutcomeStatus,
    ProcessingSummary,
    ProcessOutcome,
    Record,
    ResolveRecord,
    TransactionType,
    WithdrawalRecord,
)
from repositories import (
    AccountRepository,
    InMemoryAccountRepository,
    InMemoryLedgerRepository,
    LedgerRepository,
)

logger = structlog.get_logger()

OutcomeObserver = Callable[[ProcessOutcome], None]


class PaymentEngine:
    """Applies transaction records, in arrival order, to client accounts.

    The engine exclusively owns the account store and the ledger of
    disputable transactions. ``process`` never raises for records that
    cannot be applied; it reports them as ignored outcomes instead. The only
    exception is ``DuplicatePolicy.error``, which aborts on a reused id.
    """

    def __init__(
        self,
        account_repo: Optional[AccountRepository] = None,
        ledger_repo: Optional[LedgerRepository] = None,
        duplicate_policy: DuplicatePolicy = DuplicatePolicy.overwrite,
    ):
        self.account_repo = account_repo if account_repo is not None else InMemoryAccountRepository()
        self.ledger_repo = ledger_repo if ledger_repo is not None else InMemoryLedgerRepository()
        self.duplicate_policy = DuplicatePolicy(duplicate_policy)

        self._handlers: Dict[TransactionType, Callable[[Record], ProcessOutcome]] = {
            TransactionType.deposit: self._process_deposit,
            TransactionType.withdrawal: self._process_withdrawal,
            TransactionType.dispute: self._process_dispute,
            TransactionType.resolve: self._process_resolve,
            TransactionType.chargeback: self._process_chargeback,
        }
        missing = set(TransactionType) - set(self._handlers)
        if missing:
            raise RuntimeError(f"No handler for transaction types: {sorted(t.value for t in missing)}")

    def process(self, record: Record) -> ProcessOutcome:
        """Apply a single record and report what happened to it."""
        # Any reference to a client creates its account
        self.account_repo.get_or_create(record.client)
        handler = self._handlers[record.transaction_type]
        return handler(record)

    def process_all(
        self,
        records: Iterable[Record],
        observer: Optional[OutcomeObserver] = None,
    ) -> ProcessingSummary:
        summary = ProcessingSummary()
        for record in records:
            outcome = self.process(record)
            if observer is not None:
                observer(outcome)
            summary.add(outcome)
        return summary

    def snapshots(self) -> List[AccountSnapshot]:
        accounts = sorted(self.account_repo.all(), key=lambda account: account.client)
        return [account.snapshot() for account in accounts]

    def get_account(self, client: int) -> Optional[AccountSnapshot]:
        account = self.account_repo.get(client)
        return account.snapshot() if account is not None else None

    def get_entry(self, tx: int) -> Optional[LedgerEntry]:
        return self.ledger_repo.lookup(tx)

    # Deposits and withdrawals

    def _process_deposit(self, record: DepositRecord) -> ProcessOutcome:
        account = self.account_repo.get_or_create(record.client)
        if account.locked:
            return self._ignored(record, IgnoreReason.account_locked)

        duplicate = record.tx in self.ledger_repo
        if duplicate and self._reject_duplicate(record):
            return self._ignored(record, IgnoreReason.duplicate_transaction)

        account.deposit(record.amount)
        replaced = self._record_entry(record, duplicate)
        return self._applied(record, replaced_entry=replaced)

    def _process_withdrawal(self, record: WithdrawalRecord) -> ProcessOutcome:
        account = self.account_repo.get_or_create(record.client)
        if account.locked:
            return self._ignored(record, IgnoreReason.account_locked)

        duplicate = record.tx in self.ledger_repo
        if duplicate and self._reject_duplicate(record):
            return self._ignored(record, IgnoreReason.duplicate_transaction)

        if not account.withdraw(record.amount):
            return self._ignored(record, IgnoreReason.insufficient_funds)

        replaced = self._record_entry(record, duplicate)
        return self._applied(record, replaced_entry=replaced)

    def _reject_duplicate(self, record: Record) -> bool:
        if self.duplicate_policy == DuplicatePolicy.error:
            raise DuplicateTransactionError(record.tx, record.client)
        return self.duplicate_policy == DuplicatePolicy.reject

    def _record_entry(self, record: Record, duplicate: bool) -> bool:
        if duplicate and self.duplicate_policy == DuplicatePolicy.keep_first:
            return False
        return self.ledger_repo.record(record.tx, record.client, record.amount)

    # Dispute lifecycle

    def _process_dispute(self, record: DisputeRecord) -> ProcessOutcome:
        entry = self.ledger_repo.lookup(record.tx)
        if entry is None:
            return self._ignored(record, IgnoreReason.unknown_transaction)
        if entry.disputed:
            return self._ignored(record, IgnoreReason.already_disputed, client=entry.client)

        self.ledger_repo.mark_disputed(record.tx)
        account = self.account_repo.get_or_create(entry.client)
        if account.locked:
            return self._ignored(record, IgnoreReason.account_locked, client=entry.client)

        account.hold(entry.amount)
        return self._applied(record, client=entry.client)

    def _process_resolve(self, record: ResolveRecord) -> ProcessOutcome:
        entry = self.ledger_repo.lookup(record.tx)
        if entry is None:
            return self._ignored(record, IgnoreReason.unknown_transaction)
        if not entry.disputed:
            return self._ignored(record, IgnoreReason.not_disputed, client=entry.client)

        self.ledger_repo.mark_undisputed(record.tx)
        account = self.account_repo.get_or_create(entry.client)
        if account.locked:
            return self._ignored(record, IgnoreReason.account_locked, client=entry.client)

        account.release(entry.amount)
        return self._applied(record, client=entry.client)

    def _process_chargeback(self, record: ChargebackRecord) -> ProcessOutcome:
        entry = self.ledger_repo.lookup(record.tx)
        if entry is None:
            return self._ignored(record, IgnoreReason.unknown_transaction)
        if not entry.disputed:
            return self._ignored(record, IgnoreReason.not_disputed, client=entry.client)

        # The entry stays disputed; the lock makes it inert.
        account = self.account_repo.get_or_create(entry.client)
        if account.locked:
            return self._ignored(record, IgnoreReason.account_locked, client=entry.client)

        account.chargeback(entry.amount)
        return self._applied(record, client=entry.client)

    # Outcomes

    @staticmethod
    def _applied(record: Record, client: Optional[int] = None, replaced_entry: bool = False) -> ProcessOutcome:
        return ProcessOutcome(
            type=record.transaction_type,
            client=record.client if client is None else client,
            tx=record.tx,
            status=OutcomeStatus.applied,
            replaced_entry=replaced_entry,
        )

    @staticmethod
    def _ignored(record: Record, reason: IgnoreReason, client: Optional[int] = None) -> ProcessOutcome:
        return ProcessOutcome(
            type=record.transaction_type,
            client=record.client if client is None else client,
            tx=record.tx,
            status=OutcomeStatus.ignored,
            reason=reason,
        )


def log_outcome(outcome: ProcessOutcome) -> None:
    """Render a processing outcome through the structured logger."""
    context = dict(type=outcome.type.value, client=outcome.client, tx=outcome.tx)

    if outcome.applied:
        if outcome.replaced_entry:
            logger.warning("Duplicate transaction id, ledger entry overwritten", **context)
        else:
            logger.debug("Record applied", **context)
        return

    if outcome.reason in (IgnoreReason.unknown_transaction, IgnoreReason.insufficient_funds):
        logger.debug("Record ignored", reason=outcome.reason.value, **context)
    elif outcome.reason == IgnoreReason.account_locked:
        logger.info("Record ignored, account is locked", reason=outcome.reason.value, **context)
    else:
        logger.warning("Record ignored", reason=outcome.reason.value, **context)


# Factory function for dependency injection
def get_payment_engine(settings: Optional[Settings] = None) -> PaymentEngine:
    settings = settings or get_settings()
    return PaymentEngine(duplicate_policy=settings.duplicate_tx_policy)
