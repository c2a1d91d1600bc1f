from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Set

from models import Account, DepositRecord


class AccountRepository(ABC):
    @abstractmethod
    def get_or_create(self, client: int) -> Account:
        """Get account for client, creating an empty unlocked one on first use."""
        pass

    @abstractmethod
    def get_account(self, client: int) -> Optional[Account]:
        """Get account. Returns None if the client was never referenced."""
        pass

    @abstractmethod
    def list_accounts(self) -> List[Account]:
        """List all accounts ordered by client id."""
        pass

    @abstractmethod
    def get_accounts_count(self) -> int:
        """Get total number of accounts."""
        pass


class DepositRepository(ABC):
    @abstractmethod
    def get_deposit(self, tx: int) -> Optional[DepositRecord]:
        """Get deposit by transaction id."""
        pass

    @abstractmethod
    def store_deposit(self, tx: int, record: DepositRecord) -> None:
        """Store deposit, replacing any previous deposit with the same id."""
        pass

    @abstractmethod
    def open_dispute(self, tx: int) -> None:
        """Mark transaction as disputed."""
        pass

    @abstractmethod
    def close_dispute(self, tx: int) -> bool:
        """Remove transaction from the disputed set. Returns whether it was there."""
        pass

    @abstractmethod
    def is_disputed(self, tx: int) -> bool:
        pass

    @abstractmethod
    def get_deposits_count(self) -> int:
        pass

    @abstractmethod
    def get_disputes_count(self) -> int:
        pass


class InMemoryAccountRepository(AccountRepository):
    def __init__(self):
        self.accounts: Dict[int, Account] = {}

    def get_or_create(self, client: int) -> Account:
        account = self.accounts.get(client)
        if account is None:
            account = self.accounts[client] = Account(client=client)
        return account

    def get_account(self, client: int) -> Optional[Account]:
        return self.accounts.get(client)

    def list_accounts(self) -> List[Account]:
        return [self.accounts[client] for client in sorted(self.accounts)]

    def get_accounts_count(self) -> int:
        return len(self.accounts)


class InMemoryDepositRepository(DepositRepository):
    def __init__(self):
        self.deposits: Dict[int, DepositRecord] = {}
        self.disputes: Set[int] = set()

    def get_deposit(self, tx: int) -> Optional[DepositRecord]:
        return self.deposits.get(tx)

    def store_deposit(self, tx: int, record: DepositRecord) -> None:
        self.deposits[tx] = record

    def open_dispute(self, tx: int) -> None:
        self.disputes.add(tx)

    def close_dispute(self, tx: int) -> bool:
        if tx in self.disputes:
            self.disputes.remove(tx)
            return True
        return False

    def is_disputed(self, tx: int) -> bool:
        return tx in self.disputes

    def get_deposits_count(self) -> int:
        return len(self.deposits)

    def get_disputes_count(self) -> int:
        return len(self.disputes)
