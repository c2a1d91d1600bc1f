from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from enum import Enum
from typing import Optional
from decimal import Context, Decimal, Inexact, InvalidOperation, ROUND_DOWN, localcontext

from errors import AmountOverflowError


# Amounts carry exactly four fractional digits
AMOUNT_PRECISION = Decimal("0.0001")

# Balances are kept exactly; a result that needs more digits is an overflow
DECIMAL_CONTEXT = Context(prec=50, rounding=ROUND_DOWN)
LEDGER_CONTEXT = DECIMAL_CONTEXT.copy()
LEDGER_CONTEXT.traps[Inexact] = True

MAX_CLIENT_ID = 2**16 - 1
MAX_TRANSACTION_ID = 2**32 - 1


def quantize_amount(value: Decimal) -> Decimal:
    """Truncate toward zero to four decimal places."""
    try:
        return value.quantize(AMOUNT_PRECISION, rounding=ROUND_DOWN, context=DECIMAL_CONTEXT)
    except InvalidOperation as e:
        raise ValueError(f"Amount {value} cannot be represented with four decimal places") from e


def format_amount(value: Decimal) -> str:
    try:
        return str(quantize_amount(value))
    except ValueError as e:
        raise AmountOverflowError(str(e)) from e


class TransactionType(str, Enum):
    deposit = "deposit"
    withdrawal = "withdrawal"
    dispute = "dispute"
    resolve = "resolve"
    chargeback = "chargeback"

    @property
    def requires_amount(self) -> bool:
        return self in (TransactionType.deposit, TransactionType.withdrawal)


class TransactionRecord(BaseModel):
    """One validated input row. Immutable once built."""

    model_config = ConfigDict(frozen=True)

    type: TransactionType = Field(..., description="Transaction kind")
    client: int = Field(..., ge=0, le=MAX_CLIENT_ID, description="Client identifier")
    tx: int = Field(..., ge=0, le=MAX_TRANSACTION_ID, description="Global transaction identifier")
    amount: Optional[Decimal] = Field(
        default=None,
        allow_inf_nan=False,
        description="Monetary amount, only for deposits and withdrawals"
    )

    @model_validator(mode='before')
    @classmethod
    def drop_unused_amount(cls, data):
        if isinstance(data, dict):
            try:
                kind = TransactionType(data.get('type'))
            except ValueError:
                return data
            if not kind.requires_amount and data.get('amount') is not None:
                data = {**data, 'amount': None}
        return data

    @field_validator('amount')
    @classmethod
    def truncate_amount(cls, v):
        if v is None:
            return v
        return quantize_amount(v)

    @model_validator(mode='after')
    def validate_amount_presence(self):
        if self.type.requires_amount and self.amount is None:
            raise ValueError(f'{self.type.value} transactions must have an amount')
        return self

    @property
    def requires_amount(self) -> bool:
        return self.type.requires_amount


class DepositRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    client: int = Field(..., description="Client that owns the deposit")
    amount: Decimal = Field(..., description="Originally deposited amount")


class Account(BaseModel):
    client: int = Field(..., ge=0, le=MAX_CLIENT_ID, description="Client identifier")
    available: Decimal = Field(default=Decimal("0"), description="Funds available for withdrawal")
    held: Decimal = Field(default=Decimal("0"), description="Funds held by open disputes")
    locked: bool = Field(default=False, description="Set after a chargeback")

    @property
    def total(self) -> Decimal:
        try:
            with localcontext(LEDGER_CONTEXT):
                return self.available + self.held
        except Inexact as e:
            raise AmountOverflowError(f"Total of client {self.client} exceeds supported precision") from e


class AccountBalance(BaseModel):
    client: int = Field(..., description="Client identifier")
    available: str = Field(..., description="Available funds, four decimal places")
    held: str = Field(..., description="Held funds, four decimal places")
    total: str = Field(..., description="Available plus held, four decimal places")
    locked: bool = Field(..., description="Whether the account is locked")

    @classmethod
    def from_account(cls, account: Account) -> "AccountBalance":
        return cls(
            client=account.client,
            available=format_amount(account.available),
            held=format_amount(account.held),
            total=format_amount(account.total),
            locked=account.locked,
        )
