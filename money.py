from decimal import Context, Decimal, InvalidOperation, ROUND_HALF_EVEN
from functools import total_ordering
from typing import Any, Union

from pydantic_core import core_schema

FRACTIONAL_DIGITS = 4
_QUANTUM = Decimal(1).scaleb(-FRACTIONAL_DIGITS)

# Sums of in-range amounts stay far below this many significant digits.
MAX_DIGITS = 1000
_CONTEXT = Context(prec=MAX_DIGITS, rounding=ROUND_HALF_EVEN)

MoneyLike = Union["Money", Decimal, int, str, float]


@total_ordering
class Money:
    """Fixed-point amount with exactly four fractional digits.

    Backed by ``Decimal``; floats are converted through ``str`` so that
    ``Money(1.1)`` is ``1.1000`` and not the nearest binary fraction.
    """

    __slots__ = ("_amount",)

    def __init__(self, amount: MoneyLike = 0):
        if isinstance(amount, Money):
            value = amount.amount
        elif isinstance(amount, bool):
            raise TypeError("Money cannot be built from a bool")
        elif isinstance(amount, (Decimal, int)):
            value = Decimal(amount)
        elif isinstance(amount, float):
            value = Decimal(str(amount))
        elif isinstance(amount, str):
            try:
                value = Decimal(amount.strip())
            except InvalidOperation:
                raise ValueError(f"Invalid monetary amount: {amount!r}") from None
        else:
            raise TypeError(f"Unsupported monetary amount type: {type(amount).__name__}")

        if not value.is_finite():
            raise ValueError(f"Monetary amount must be finite, got {amount!r}")

        try:
            value = value.quantize(_QUANTUM, context=_CONTEXT)
        except InvalidOperation:
            raise ValueError(f"Monetary amount out of range: {amount!r}") from None

        # -0.0000 renders badly in reports
        if value.is_zero():
            value = value.copy_abs()
        self._amount = value

    @property
    def amount(self) -> Decimal:
        return self._amount

    @staticmethod
    def min(first: "Money", second: "Money") -> "Money":
        return first if first <= second else second

    def is_zero(self) -> bool:
        return self._amount.is_zero()

    def __add__(self, other: "Money") -> "Money":
        if not isinstance(other, Money):
            return NotImplemented
        return Money(_CONTEXT.add(self._amount, other._amount))

    def __sub__(self, other: "Money") -> "Money":
        if not isinstance(other, Money):
            return NotImplemented
        return Money(_CONTEXT.subtract(self._amount, other._amount))

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        return self._amount == other._amount

    def __lt__(self, other: "Money") -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        return self._amount < other._amount

    def __hash__(self) -> int:
        return hash(self._amount)

    def __str__(self) -> str:
        return format(self._amount, "f")

    def __repr__(self) -> str:
        return f"Money('{self}')"

    @classmethod
    def _validate(cls, value: Any) -> "Money":
        # pydantic only turns ValueError into a validation error
        try:
            return cls(value)
        except TypeError as exc:
            raise ValueError(str(exc)) from exc

    @classmethod
    def __get_pydantic_core_schema__(cls, source_type: Any, handler: Any) -> core_schema.CoreSchema:
        return core_schema.no_info_plain_validator_function(
            cls._validate,
            serialization=core_schema.plain_serializer_function_ser_schema(str, when_used="json"),
        )

    @classmethod
    def __get_pydantic_json_schema__(cls, schema: Any, handler: Any) -> dict:
        return {
            "type": "string",
            "pattern": r"^-?\d+(\.\d+)?$",
            "examples": ["1.5000"],
            "description": f"Decimal amount with {FRACTIONAL_DIGITS} fractional digits",
        }


ZERO = Money(0)
