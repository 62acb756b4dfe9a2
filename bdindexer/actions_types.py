"""Payloads, responses and context of the actions served over HTTP."""

from __future__ import annotations

import base64
from dataclasses import dataclass, field, fields, is_dataclass
from datetime import datetime, timedelta, timezone
from decimal import ROUND_DOWN, Decimal
from typing import Any, Iterable, Mapping, Optional

_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1
_UINT64_MAX = 2**64 - 1
_DEC_QUANTUM = Decimal("1e-18")


def _read(data: Mapping[str, Any], name: str, kind: type, default: Any) -> Any:
    value = data.get(name)
    if value is None:
        return default
    if kind is int and (isinstance(value, bool) or not isinstance(value, int)):
        raise ValueError(f"invalid value for {name}: {value!r}")
    if kind is not int and not isinstance(value, kind):
        raise ValueError(f"invalid value for {name}: {value!r}")
    return value


def _check_range(name: str, value: int, low: int, high: int) -> int:
    if not low <= value <= high:
        raise ValueError(f"value for {name} out of range: {value}")
    return value


@dataclass(frozen=True)
class PageRequest:
    """Pagination of a chain query."""

    key: bytes = b""
    offset: int = 0
    limit: int = 0
    count_total: bool = False
    reverse: bool = False


@dataclass(frozen=True)
class PayloadArgs:
    """The input arguments of an action."""

    address: str = ""
    height: int = 0
    offset: int = 0
    limit: int = 0
    count_total: bool = False


@dataclass(frozen=True)
class Payload:
    """The body of an action request."""

    session_variables: Mapping[str, Any] = field(default_factory=dict)
    input: PayloadArgs = field(default_factory=PayloadArgs)

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "Payload":
        """Build a payload from decoded JSON, raising ValueError on mistyped fields."""
        if data is None:
            return cls()
        if not isinstance(data, Mapping):
            raise ValueError("the payload must be a JSON object")

        session = data.get("session_variables")
        if session is None:
            session = {}
        elif not isinstance(session, Mapping):
            raise ValueError("session_variables must be a JSON object")

        raw_input = data.get("input")
        if raw_input is None:
            raw_input = {}
        elif not isinstance(raw_input, Mapping):
            raise ValueError("input must be a JSON object")

        args = PayloadArgs(
            address=_read(raw_input, "address", str, ""),
            height=_check_range(
                "height", _read(raw_input, "height", int, 0), _INT64_MIN, _INT64_MAX
            ),
            offset=_check_range("offset", _read(raw_input, "offset", int, 0), 0, _UINT64_MAX),
            limit=_check_range("limit", _read(raw_input, "limit", int, 0), 0, _UINT64_MAX),
            count_total=_read(raw_input, "count_total", bool, False),
        )
        return cls(session_variables=dict(session), input=args)

    def address(self) -> str:
        """Return the address the action is about, if any."""
        return self.input.address

    def pagination(self) -> PageRequest:
        """Return the pagination asked for by the action."""
        return PageRequest(
            offset=self.input.offset,
            limit=self.input.limit,
            count_total=self.input.count_total,
        )


@dataclass(frozen=True)
class Coin:
    """A coin as returned by an action."""

    amount: str
    denom: str


def _int_string(amount: Any) -> str:
    if isinstance(amount, Decimal):
        if amount != amount.to_integral_value():
            raise ValueError(f"not an integer amount: {amount}")
        amount = int(amount)
    return str(int(amount))


def _dec_string(amount: Any) -> str:
    if isinstance(amount, float):
        amount = str(amount)
    value = Decimal(amount).quantize(_DEC_QUANTUM, rounding=ROUND_DOWN)
    return format(value, ".18f")


def convert_coins(coins: Iterable[Any]) -> list[Coin]:
    """Convert coins with an integer amount into action coins."""
    return [Coin(amount=_int_string(coin.amount), denom=coin.denom) for coin in coins]


def convert_dec_coins(coins: Iterable[Any]) -> list[Coin]:
    """Convert coins with a decimal amount into action coins, with 18 decimal places."""
    return [Coin(amount=_dec_string(coin.amount), denom=coin.denom) for coin in coins]


@dataclass(frozen=True)
class Address:
    """An address returned by an action."""

    address: str


@dataclass(frozen=True)
class Balance:
    """A list of coins returned by an action."""

    coins: list[Coin]


@dataclass(frozen=True)
class Delegation:
    """A delegation from a delegator to a validator."""

    delegator_address: str
    validator_address: str
    coins: list[Coin]


@dataclass(frozen=True)
class DelegationResponse:
    """A page of delegations."""

    delegations: list[Delegation]
    pagination: Optional[Any] = None


@dataclass(frozen=True)
class DelegationReward:
    """The rewards a delegator earned from a validator."""

    coins: list[Coin]
    validator_address: str


@dataclass(frozen=True)
class ValidatorCommissionAmount:
    """The commission a validator earned."""

    coins: list[Coin]


@dataclass(frozen=True)
class UnbondingDelegation:
    """A delegation being unbonded, with its entries."""

    delegator_address: str
    validator_address: str
    entries: list[Any]


@dataclass(frozen=True)
class UnbondingDelegationResponse:
    """A page of unbonding delegations."""

    unbonding_delegations: list[UnbondingDelegation]
    pagination: Optional[Any] = None


@dataclass(frozen=True)
class RedelegationEntry:
    """One entry of a redelegation; the balance is written as a JSON string."""

    completion_time: datetime
    balance: int = field(metadata={"json_string": True})


@dataclass(frozen=True)
class Redelegation:
    """A redelegation from one validator to another."""

    delegator_address: str
    validator_src_address: str
    validator_dst_address: str
    entries: list[RedelegationEntry] = field(default_factory=list)


@dataclass(frozen=True)
class RedelegationResponse:
    """A page of redelegations."""

    redelegations: list[Redelegation]
    pagination: Optional[Any] = None


@dataclass(frozen=True)
class GraphQLError:
    """The body returned when an action fails."""

    message: str


def _format_time(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    text = value.strftime("%Y-%m-%dT%H:%M:%S")
    if value.microsecond:
        text += "." + f"{value.microsecond:06d}".rstrip("0")
    offset = value.utcoffset() or timedelta(0)
    if offset == timedelta(0):
        return text + "Z"
    total = int(offset.total_seconds())
    sign = "+" if total >= 0 else "-"
    total = abs(total)
    return f"{text}{sign}{total // 3600:02d}:{total % 3600 // 60:02d}"


def to_json_value(obj: Any) -> Any:
    """Turn a response into values the json module can write."""
    if obj is None or isinstance(obj, (bool, int, float, str)):
        return obj
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, datetime):
        return _format_time(obj)
    if isinstance(obj, (bytes, bytearray, memoryview)):
        return base64.b64encode(bytes(obj)).decode("ascii")
    if is_dataclass(obj) and not isinstance(obj, type):
        result = {}
        for item in fields(obj):
            value = getattr(obj, item.name)
            if item.metadata.get("json_string") and value is not None:
                result[item.name] = str(value)
            else:
                result[item.name] = to_json_value(value)
        return result
    if isinstance(obj, Mapping):
        return {str(key): to_json_value(value) for key, value in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [to_json_value(value) for value in obj]
    if isinstance(obj, BaseException):
        # An error value carries no exported fields.
        return {}
    raise TypeError(f"cannot convert {type(obj).__name__} to JSON")


@dataclass
class ActionContext:
    """What an action handler works with.

    ``node`` must have a ``latest_height()`` method; ``sources`` holds the
    data sources the handlers query.
    """

    node: Any
    sources: Any = None

    def get_height(self, payload: Optional[Payload] = None) -> int:
        """Return the height asked for, or the node's latest height when none is."""
        if payload is None or payload.input.height == 0:
            try:
                return self.node.latest_height()
            except Exception as err:
                raise RuntimeError(
                    f"error while getting chain latest block height: {err}"
                ) from err
        return payload.input.height