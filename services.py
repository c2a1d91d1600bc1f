from decimal import Inexact, localcontext
from typing import Iterable, List, Optional
import structlog

from errors import AmountOverflowError
from models import LEDGER_CONTEXT, Account, AccountBalance, DepositRecord, TransactionRecord, TransactionType
from repositories import (
    AccountRepository,
    DepositRepository,
    InMemoryAccountRepository,
    InMemoryDepositRepository,
)

logger = structlog.get_logger()


class Ledger:
    """Owns every account, the deposit index and the disputed set.

    Records are applied strictly in the order given. A record that cannot be
    honoured (unknown transaction, client mismatch, insufficient funds, locked
    account) leaves state untouched and is only logged. Only a balance that
    outgrows the supported precision raises, as AmountOverflowError.
    """

    def __init__(
        self,
        account_repo: Optional[AccountRepository] = None,
        deposit_repo: Optional[DepositRepository] = None,
        detailed_logging: bool = True,
    ):
        self.account_repo = account_repo or InMemoryAccountRepository()
        self.deposit_repo = deposit_repo or InMemoryDepositRepository()
        self.detailed_logging = detailed_logging

    def apply(self, record: TransactionRecord) -> None:
        """Apply one transaction record to the ledger."""
        account = self.account_repo.get_or_create(record.client)

        if account.locked:
            self._ignored(record, "Account is locked")
            return

        handlers = {
            TransactionType.deposit: self._apply_deposit,
            TransactionType.withdrawal: self._apply_withdrawal,
            TransactionType.dispute: self._apply_dispute,
            TransactionType.resolve: self._apply_resolve,
            TransactionType.chargeback: self._apply_chargeback,
        }
        try:
            with localcontext(LEDGER_CONTEXT):
                handlers[record.type](account, record)
        except Inexact as e:
            raise AmountOverflowError(
                f"{record.type.value} of tx {record.tx} exceeds supported precision"
            ) from e

    def process(self, records: Iterable[TransactionRecord]) -> int:
        """Apply records in order. Returns the number of records consumed."""
        count = 0
        for record in records:
            self.apply(record)
            count += 1

        logger.info(
            "Transaction stream processed",
            records=count,
            accounts=self.account_repo.get_accounts_count(),
            deposits=self.deposit_repo.get_deposits_count(),
            open_disputes=self.deposit_repo.get_disputes_count()
        )
        return count

    def accounts(self) -> List[Account]:
        return self.account_repo.list_accounts()

    def balances(self) -> List[AccountBalance]:
        return [AccountBalance.from_account(account) for account in self.accounts()]

    def is_disputed(self, tx: int) -> bool:
        return self.deposit_repo.is_disputed(tx)

    def _apply_deposit(self, account: Account, record: TransactionRecord) -> None:
        account.available += record.amount
        # Duplicate ids are credited again; the index keeps the latest deposit
        self.deposit_repo.store_deposit(
            record.tx, DepositRecord(client=record.client, amount=record.amount)
        )

    def _apply_withdrawal(self, account: Account, record: TransactionRecord) -> None:
        if record.amount > account.available:
            self._ignored(
                record,
                "Insufficient funds for withdrawal",
                available=str(account.available),
                requested_amount=str(record.amount)
            )
            return

        account.available -= record.amount

    def _apply_dispute(self, account: Account, record: TransactionRecord) -> None:
        deposit = self._find_deposit(record)
        if deposit is None:
            return

        # An id already under dispute is held a second time
        # TODO: decide with upstream whether a repeated dispute should be ignored
        account.available, account.held = (
            account.available - deposit.amount, account.held + deposit.amount
        )
        self.deposit_repo.open_dispute(record.tx)

    def _apply_resolve(self, account: Account, record: TransactionRecord) -> None:
        if not self.deposit_repo.close_dispute(record.tx):
            self._ignored(record, "Transaction is not under dispute")
            return

        deposit = self._find_deposit(record)
        if deposit is None:
            return

        account.held, account.available = (
            account.held - deposit.amount, account.available + deposit.amount
        )

    def _apply_chargeback(self, account: Account, record: TransactionRecord) -> None:
        if not self.deposit_repo.close_dispute(record.tx):
            self._ignored(record, "Transaction is not under dispute")
            return

        deposit = self._find_deposit(record)
        if deposit is None:
            return

        account.held -= deposit.amount
        account.locked = True

        logger.info(
            "Account locked after chargeback",
            client=record.client,
            tx=record.tx,
            amount=str(deposit.amount)
        )

    def _find_deposit(self, record: TransactionRecord) -> Optional[DepositRecord]:
        """Deposit referenced by record, or None if missing or owned by another client."""
        deposit = self.deposit_repo.get_deposit(record.tx)
        if deposit is None:
            self._ignored(record, "Referenced deposit not found")
            return None

        if deposit.client != record.client:
            self._ignored(record, "Client does not own referenced deposit", owner=deposit.client)
            return None

        return deposit

    def _ignored(self, record: TransactionRecord, reason: str, **details) -> None:
        if not self.detailed_logging:
            return

        logger.debug(
            "Transaction ignored",
            reason=reason,
            type=record.type.value,
            client=record.client,
            tx=record.tx,
            **details
        )


# Factory function for dependency injection
def get_ledger(
    account_repo: Optional[AccountRepository] = None,
    deposit_repo: Optional[DepositRepository] = None,
    detailed_logging: bool = True,
) -> Ledger:
    return Ledger(account_repo, deposit_repo, detailed_logging)
