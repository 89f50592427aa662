from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from models import Account, LedgerEntry
from money import Money


class AccountRepository(ABC):
    @abstractmethod
    def get(self, client: int) -> Optional[Account]:
        """Get an account. Returns None if the client was never referenced."""
        pass

    @abstractmethod
    def get_or_create(self, client: int) -> Account:
        """Get an account, creating a zeroed, unlocked one on first reference."""
        pass

    @abstractmethod
    def all(self) -> List[Account]:
        """Get every account."""
        pass

    @abstractmethod
    def count(self) -> int:
        """Get total number of accounts."""
        pass


class LedgerRepository(ABC):
    @abstractmethod
    def record(self, tx: int, client: int, amount: Money) -> bool:
        """Store an undisputed entry for ``tx``. Returns True if one was replaced."""
        pass

    @abstractmethod
    def lookup(self, tx: int) -> Optional[LedgerEntry]:
        """Get a copy of the entry for ``tx``."""
        pass

    @abstractmethod
    def mark_disputed(self, tx: int) -> None:
        pass

    @abstractmethod
    def mark_undisputed(self, tx: int) -> None:
        pass

    @abstractmethod
    def __contains__(self, tx: int) -> bool:
        pass

    @abstractmethod
    def count(self) -> int:
        """Get total number of recorded entries."""
        pass


class InMemoryAccountRepository(AccountRepository):
    def __init__(self):
        self.accounts: Dict[int, Account] = {}

    def get(self, client: int) -> Optional[Account]:
        return self.accounts.get(client)

    def get_or_create(self, client: int) -> Account:
        account = self.accounts.get(client)
        if account is None:
            account = Account(client=client)
            self.accounts[client] = account
        return account

    def all(self) -> List[Account]:
        return list(self.accounts.values())

    def count(self) -> int:
        return len(self.accounts)


class InMemoryLedgerRepository(LedgerRepository):
    def __init__(self):
        self.entries: Dict[int, LedgerEntry] = {}

    def record(self, tx: int, client: int, amount: Money) -> bool:
        replaced = tx in self.entries
        self.entries[tx] = LedgerEntry(client=client, amount=amount)
        return replaced

    def lookup(self, tx: int) -> Optional[LedgerEntry]:
        entry = self.entries.get(tx)
        return entry.model_copy() if entry is not None else None

    def mark_disputed(self, tx: int) -> None:
        self._set_disputed(tx, True)

    def mark_undisputed(self, tx: int) -> None:
        self._set_disputed(tx, False)

    def _set_disputed(self, tx: int, disputed: bool) -> None:
        entry = self.entries.get(tx)
        if entry is not None:
            entry.disputed = disputed

    def __contains__(self, tx: int) -> bool:
        return tx in self.entries

    def count(self) -> int:
        return len(self.entries)
