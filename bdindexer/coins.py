"""Coin values and simple rows as they are stored in the database."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence, Union

Source = Union[bytes, bytearray, memoryview, str]

_STRIPPED_CHARS = ('"', "{", "}", "(", ")")


def to_string(value: Optional[str]) -> str:
    """Return the value of a nullable text column, or an empty string for NULL."""
    return "" if value is None else value


def to_null_string(value: str) -> Optional[str]:
    """Trim the value and map an empty result to NULL (None)."""
    value = value.strip()
    return value or None


def remove_empty(items: Iterable[str]) -> list[str]:
    """Return the items that are not empty strings, keeping their order."""
    return [item for item in items if item != ""]


def _as_text(src: Source) -> str:
    if isinstance(src, (bytes, bytearray, memoryview)):
        return bytes(src).decode("utf-8")
    if isinstance(src, str):
        return src
    raise TypeError(f"cannot read a coin from {type(src).__name__}")


def _split_pair(text: str) -> tuple[str, str]:
    values = text.split(",")
    if len(values) < 2:
        raise ValueError(f"invalid coin value: {text!r}")
    return values[0], values[1]


def _single_pair(src: Source) -> tuple[str, str]:
    text = _as_text(src)
    for char in _STRIPPED_CHARS:
        text = text.replace(char, "")
    return _split_pair(text)


def _many_pairs(src: Source) -> list[tuple[str, str]]:
    text = _as_text(src)
    for char in ('"', "{", "}"):
        text = text.replace(char, "")
    text = text.replace("),(", ") (")
    for char in ("(", ")"):
        text = text.replace(char, "")
    return [_split_pair(value) for value in remove_empty(text.split(" "))]


@dataclass(frozen=True)
class DbCoin:
    """A single coin with an integer amount, as stored in a coin column."""

    denom: str
    amount: str

    def sql_value(self) -> str:
        """Return the composite literal used to store this coin."""
        return f"({self.denom},{self.amount})"


@dataclass(frozen=True)
class DbDecCoin:
    """A single coin with a decimal amount, as stored in a coin column."""

    denom: str
    amount: str

    def sql_value(self) -> str:
        """Return the composite literal used to store this coin."""
        return f"({self.denom},{self.amount})"


def parse_db_coin(src: Source) -> DbCoin:
    """Read a single coin from its stored text form."""
    denom, amount = _single_pair(src)
    return DbCoin(denom, amount)


def parse_db_coins(src: Source) -> list[DbCoin]:
    """Read an array of coins from its stored text form."""
    return [DbCoin(denom, amount) for denom, amount in _many_pairs(src)]


def parse_db_dec_coin(src: Source) -> DbDecCoin:
    """Read a single decimal coin from its stored text form."""
    denom, amount = _single_pair(src)
    return DbDecCoin(denom, amount)


def parse_db_dec_coins(src: Source) -> list[DbDecCoin]:
    """Read an array of decimal coins from its stored text form."""
    return [DbDecCoin(denom, amount) for denom, amount in _many_pairs(src)]


@dataclass(frozen=True)
class AccountRow:
    """A row of the account table."""

    address: str


@dataclass(frozen=True)
class SupplyRow:
    """The single row of the supply table."""

    coins: Sequence[DbCoin]
    height: int
    one_row_id: bool = field(default=True, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "coins", tuple(self.coins))


@dataclass(frozen=True)
class CommunityPoolRow:
    """The single row of the community_pool table."""

    coins: Sequence[DbDecCoin]
    height: int
    one_row_id: bool = field(default=True, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "coins", tuple(self.coins))


@dataclass(frozen=True)
class DistributionParamsRow:
    """The single row of the distribution_params table."""

    params: str
    height: int
    one_row_id: bool = field(default=True, compare=False)


@dataclass(frozen=True)
class ModuleRow:
    """A row of the modules table."""

    module: str


def new_module_rows(names: Iterable[str]) -> list[ModuleRow]:
    """Build one module row for each name, keeping their order."""
    return [ModuleRow(name) for name in names]