import threading
from collections import Counter
from dataclasses import dataclass, field
from decimal import Decimal, DecimalException
from enum import Enum
from typing import Dict, Optional


class InvalidAmountError(ValueError):
    pass


@dataclass(frozen=True, order=True)
class Amount:
    """
    Exact fixed-point money value with 4 decimal places.
    Stored as integer units of 0.0001 so sums never drift.
    """

    units: int = 0

    SCALE = 10_000
    PLACES = 4
    MAX_WHOLE_DIGITS = 28

    @classmethod
    def parse(cls, text: str) -> "Amount":
        """
        Parse decimal text exactly. Never rounds: anything that does not fit
        4 decimal places and MAX_WHOLE_DIGITS whole digits is rejected.
        """
        try:
            value = Decimal(text.strip())
        except DecimalException:
            raise InvalidAmountError(f"not a number: {text!r}")
        if not value.is_finite():
            raise InvalidAmountError(f"not a finite number: {text!r}")

        # Work on the digit tuple; Decimal arithmetic would round at 28 digits.
        sign, digit_tuple, exponent = value.as_tuple()
        if not any(digit_tuple):
            return cls(0)
        digits = list(digit_tuple)
        while exponent < -cls.PLACES and digits and digits[-1] == 0:
            digits.pop()
            exponent += 1
        if exponent < -cls.PLACES:
            raise InvalidAmountError(f"more than {cls.PLACES} decimal places: {text!r}")

        units = int("".join(map(str, digits)))
        if len(digits) + exponent > cls.MAX_WHOLE_DIGITS:
            raise InvalidAmountError(f"more than {cls.MAX_WHOLE_DIGITS} whole digits: {text!r}")

        units *= 10 ** (exponent + cls.PLACES)
        return cls(-units if sign else units)

    def __add__(self, other: "Amount") -> "Amount":
        return Amount(self.units + other.units)

    def __sub__(self, other: "Amount") -> "Amount":
        return Amount(self.units - other.units)

    def __neg__(self) -> "Amount":
        return Amount(-self.units)

    def __bool__(self) -> bool:
        return self.units != 0

    def __str__(self) -> str:
        """Up to 4 decimal places, trailing zeros removed."""
        sign = "-" if self.units < 0 else ""
        whole, fraction = divmod(abs(self.units), self.SCALE)
        fraction_text = f"{fraction:0{self.PLACES}d}".rstrip("0")
        if fraction_text:
            return f"{sign}{whole}.{fraction_text}"
        return f"{sign}{whole}"


ZERO = Amount(0)


class TransactionType(Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    DISPUTE = "dispute"
    RESOLVE = "resolve"
    CHARGEBACK = "chargeback"


class DisputeStatus(Enum):
    NORMAL = "normal"
    DISPUTED = "disputed"
    CHARGED_BACK = "charged_back"


class ProcessingResult(Enum):
    SUCCESS = "success"
    INVALID_AMOUNT = "invalid_amount"
    ACCOUNT_LOCKED = "account_locked"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    DUPLICATE_TRANSACTION = "duplicate_transaction"
    TRANSACTION_NOT_FOUND = "transaction_not_found"
    CLIENT_MISMATCH = "client_mismatch"
    INVALID_DISPUTE_STATE = "invalid_dispute_state"
    MALFORMED_RECORD = "malformed_record"

    @property
    def is_success(self) -> bool:
        return self is ProcessingResult.SUCCESS


@dataclass
class Transaction:
    transaction_type: TransactionType
    client_id: int
    transaction_id: int
    amount: Optional[Amount] = None

    def __repr__(self) -> str:
        return f"Transaction({self.transaction_type.value}, client={self.client_id}, tx={self.transaction_id}, amount={self.amount})"


@dataclass
class TransactionRecord:
    """A deposit or withdrawal that was applied, kept for later disputes."""

    transaction_id: int
    client_id: int
    amount: Amount
    kind: TransactionType
    dispute_status: DisputeStatus = DisputeStatus.NORMAL


@dataclass
class ClientAccount:
    client_id: int
    available: Amount = ZERO
    held: Amount = ZERO
    locked: bool = False

    @property
    def total(self) -> Amount:
        return self.available + self.held

    def credit(self, amount: Amount) -> None:
        self.available += amount

    def debit(self, amount: Amount) -> None:
        self.available -= amount

    def hold(self, amount: Amount) -> None:
        self.available -= amount
        self.held += amount

    def release_hold(self, amount: Amount) -> None:
        self.held -= amount
        self.available += amount

    def remove_held(self, amount: Amount) -> None:
        self.held -= amount


@dataclass
class ProcessingStats:
    """Thread-safe counters for tracking processing statistics."""

    processed: int = 0
    failed: int = 0
    by_result: Counter = field(default_factory=Counter)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def record(self, result: ProcessingResult) -> None:
        with self._lock:
            if result.is_success:
                self.processed += 1
            else:
                self.failed += 1
            self.by_result[result] += 1

    def rejections(self) -> Dict[ProcessingResult, int]:
        with self._lock:
            return {result: count for result, count in self.by_result.items() if not result.is_success}
