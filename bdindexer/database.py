"""Storage of validator data and enabled modules in a SQLite database."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass, fields
from decimal import Decimal
from typing import Any, Iterable, Optional, Sequence, TypeVar, Union

from bdindexer.coins import to_null_string, to_string
from bdindexer.validator_rows import ValidatorCommissionRow, ValidatorData

MAX_POSTGRESQL_PARAMS = 65535
DO_NOT_MODIFY_DESCRIPTION = "[do-not-modify]"

_DESCRIPTION_LIMITS = (
    ("moniker", "moniker", 70),
    ("identity", "identity", 3000),
    ("website", "website", 140),
    ("security_contact", "security contact", 140),
    ("details", "details", 280),
)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS account (
    address TEXT NOT NULL PRIMARY KEY
);

CREATE TABLE IF NOT EXISTS validator (
    consensus_address TEXT NOT NULL PRIMARY KEY,
    consensus_pubkey  TEXT NOT NULL UNIQUE
);

CREATE TABLE IF NOT EXISTS validator_info (
    consensus_address     TEXT    NOT NULL UNIQUE PRIMARY KEY REFERENCES validator (consensus_address),
    operator_address      TEXT    NOT NULL,
    self_delegate_address TEXT REFERENCES account (address),
    max_change_rate       TEXT    NOT NULL,
    max_rate              TEXT    NOT NULL,
    height                INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS validator_description (
    validator_address TEXT    NOT NULL PRIMARY KEY REFERENCES validator (consensus_address),
    moniker           TEXT,
    identity          TEXT,
    avatar_url        TEXT,
    website           TEXT,
    security_contact  TEXT,
    details           TEXT,
    height            INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS validator_commission (
    validator_address   TEXT    NOT NULL PRIMARY KEY REFERENCES validator (consensus_address),
    commission          TEXT,
    min_self_delegation TEXT,
    height              INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS validator_voting_power (
    validator_address TEXT    NOT NULL PRIMARY KEY REFERENCES validator (consensus_address),
    voting_power      INTEGER NOT NULL,
    height            INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS validator_status (
    validator_address TEXT    NOT NULL PRIMARY KEY REFERENCES validator (consensus_address),
    status            INTEGER NOT NULL,
    jailed            BOOLEAN NOT NULL,
    height            INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS double_sign_vote (
    id                INTEGER PRIMARY KEY AUTOINCREMENT,
    type              INTEGER NOT NULL,
    height            INTEGER NOT NULL,
    round             INTEGER NOT NULL,
    block_id          TEXT    NOT NULL,
    validator_address TEXT    NOT NULL REFERENCES validator (consensus_address),
    validator_index   INTEGER NOT NULL,
    signature         TEXT    NOT NULL,
    UNIQUE (type, height, round, block_id, validator_address)
);

CREATE TABLE IF NOT EXISTS double_sign_evidence (
    height    INTEGER NOT NULL,
    vote_a_id INTEGER NOT NULL REFERENCES double_sign_vote (id),
    vote_b_id INTEGER NOT NULL REFERENCES double_sign_vote (id),
    UNIQUE (vote_a_id, vote_b_id)
);

CREATE TABLE IF NOT EXISTS modules (
    module_name TEXT NOT NULL UNIQUE PRIMARY KEY
);
"""

_VALIDATOR_SELECT = """
SELECT validator.consensus_address,
       validator.consensus_pubkey,
       validator_info.operator_address,
       validator_info.self_delegate_address,
       validator_info.max_rate,
       validator_info.max_change_rate,
       validator_info.height
FROM validator
INNER JOIN validator_info ON validator.consensus_address = validator_info.consensus_address"""

T = TypeVar("T")


class DatabaseError(Exception):
    """Raised when data cannot be stored or cannot be found."""


def split_accounts(accounts: Iterable[T], params_number: int) -> list[list[T]]:
    """Split accounts into slices small enough for one bulk statement each."""
    if params_number <= 0:
        raise ValueError("the number of parameters per account must be positive")
    per_slice = MAX_POSTGRESQL_PARAMS // params_number
    if per_slice < 2:
        raise ValueError(f"too many parameters per account: {params_number}")

    items = list(accounts)
    slices: list[list[T]] = [[] for _ in range(len(items) // per_slice + 1)]
    current = 0
    for index, account in enumerate(items):
        if current == len(slices):
            slices.append([])
        slices[current].append(account)
        if index > 0 and index % (per_slice - 1) == 0:
            current += 1
    return slices


def _dec_string(value: Union[Decimal, int, str, float]) -> str:
    if isinstance(value, float):
        value = str(value)
    return format(Decimal(value), ".18f")


def _placeholders(count: int, width: int) -> str:
    group = "(" + ",".join("?" * width) + ")"
    return ",".join([group] * count)


@dataclass(frozen=True)
class Description:
    """The public description of a validator."""

    moniker: str = ""
    identity: str = ""
    website: str = ""
    security_contact: str = ""
    details: str = ""

    def ensure_length(self) -> "Description":
        """Return this description, or raise ValueError if a field is too long."""
        for name, label, limit in _DESCRIPTION_LIMITS:
            length = len(getattr(self, name))
            if length > limit:
                raise ValueError(f"invalid {label} length; got: {length}, max: {limit}")
        return self

    def update(self, other: "Description") -> "Description":
        """Return this description with the fields of other that are not marked as unmodified."""
        values = {}
        for item in fields(self):
            new_value = getattr(other, item.name)
            values[item.name] = (
                getattr(self, item.name) if new_value == DO_NOT_MODIFY_DESCRIPTION else new_value
            )
        return Description(**values).ensure_length()


@dataclass(frozen=True)
class ValidatorDescription:
    """A validator description at a given height."""

    operator_address: str
    description: Description
    avatar_url: str
    height: int


@dataclass(frozen=True)
class ValidatorCommission:
    """A validator's commission and minimum self delegation; either may be missing."""

    validator_address: str
    commission: Optional[Decimal]
    min_self_delegation: Optional[int]
    height: int


@dataclass(frozen=True)
class ValidatorVotingPower:
    """The voting power of a validator at a given height."""

    consensus_address: str
    voting_power: int
    height: int


@dataclass(frozen=True)
class ValidatorStatus:
    """The status and jailing of a validator at a given height."""

    consensus_address: str
    consensus_pubkey: str
    status: int
    jailed: bool
    height: int


@dataclass(frozen=True)
class DoubleSignVote:
    """One of the two conflicting votes of a double sign evidence."""

    type: int
    height: int
    round: int
    block_id: str
    validator_address: str
    validator_index: int
    signature: str


@dataclass(frozen=True)
class DoubleSignEvidence:
    """Evidence of a validator signing two conflicting votes."""

    height: int
    vote_a: DoubleSignVote
    vote_b: DoubleSignVote


class Database:
    """A SQLite database holding the indexed validator data."""

    def __init__(self, path: str = ":memory:") -> None:
        self.connection = sqlite3.connect(path)
        self.connection.execute("PRAGMA foreign_keys = ON")

    def close(self) -> None:
        """Close the underlying connection."""
        self.connection.close()

    def __enter__(self) -> "Database":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def create_schema(self) -> None:
        """Create the tables if they do not exist yet."""
        with self.connection:
            self.connection.executescript(_SCHEMA)

    def _execute(self, action: str, stmt: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
        try:
            with self.connection:
                return self.connection.execute(stmt, params)
        except sqlite3.Error as err:
            raise DatabaseError(f"error while {action}: {err}") from err

    def _select(self, stmt: str, params: Sequence[Any] = ()) -> list[tuple]:
        try:
            return self.connection.execute(stmt, params).fetchall()
        except sqlite3.Error as err:
            raise DatabaseError(str(err)) from err

    # ---------------------------------------------------------------- validators

    def save_validator_data(self, validator: ValidatorData) -> None:
        """Store the data of a single validator."""
        self.save_validators_data([validator])

    def save_validators_data(self, validators: Iterable[ValidatorData]) -> None:
        """Store the data of many validators at once."""
        validators = list(validators)
        if not validators:
            return

        account_params = [v.self_delegate_address for v in validators]
        validator_params: list[Any] = []
        info_params: list[Any] = []
        for v in validators:
            validator_params += [v.consensus_address, v.consensus_pubkey]
            info_params += [
                v.consensus_address,
                v.operator_address,
                v.self_delegate_address,
                _dec_string(v.max_change_rate_value()),
                _dec_string(v.max_rate_value()),
                v.height,
            ]

        count = len(validators)
        self._execute(
            "storing accounts",
            f"INSERT INTO account (address) VALUES {_placeholders(count, 1)} ON CONFLICT DO NOTHING",
            account_params,
        )
        self._execute(
            "storing validators",
            "INSERT INTO validator (consensus_address, consensus_pubkey) "
            f"VALUES {_placeholders(count, 2)} ON CONFLICT DO NOTHING",
            validator_params,
        )
        self._execute(
            "storing validator infos",
            "INSERT INTO validator_info (consensus_address, operator_address, self_delegate_address, "
            f"max_change_rate, max_rate, height) VALUES {_placeholders(count, 6)}"
            """
ON CONFLICT (consensus_address) DO UPDATE
    SET consensus_address = excluded.consensus_address,
        operator_address = excluded.operator_address,
        self_delegate_address = excluded.self_delegate_address,
        max_change_rate = excluded.max_change_rate,
        max_rate = excluded.max_rate,
        height = excluded.height
WHERE validator_info.height <= excluded.height""",
            info_params,
        )

    def get_validator_consensus_address(self, operator_address: str) -> str:
        """Return the consensus address of the validator with the given operator address."""
        rows = self._select(
            "SELECT consensus_address FROM validator_info WHERE operator_address = ?",
            (operator_address,),
        )
        if not rows:
            raise DatabaseError(
                "cannot find the consensus address of validator having operator address "
                f"{operator_address}"
            )
        return rows[0][0]

    def get_validator_operator_address(self, consensus_address: str) -> str:
        """Return the operator address of the validator with the given consensus address."""
        rows = self._select(
            "SELECT operator_address FROM validator_info WHERE consensus_address = ?",
            (consensus_address,),
        )
        if not rows:
            raise DatabaseError(
                "cannot find the operator address of validator having consensus address "
                f"{consensus_address}"
            )
        return rows[0][0]

    @staticmethod
    def _to_validator(row: tuple) -> ValidatorData:
        cons, pubkey, operator, self_delegate, max_rate, max_change_rate, height = row
        return ValidatorData(
            consensus_address=cons,
            operator_address=operator,
            consensus_pubkey=pubkey,
            self_delegate_address=self_delegate,
            max_rate=max_rate,
            max_change_rate=max_change_rate,
            height=height,
        )

    def get_validator(self, operator_address: str) -> ValidatorData:
        """Return the validator with the given operator address."""
        rows = self._select(
            _VALIDATOR_SELECT + "\nWHERE validator_info.operator_address = ?", (operator_address,)
        )
        if not rows:
            raise DatabaseError(
                f"no validator with validator address {operator_address} could be found"
            )
        return self._to_validator(rows[0])

    def get_validators(self) -> list[ValidatorData]:
        """Return every stored validator, ordered by consensus address."""
        rows = self._select(_VALIDATOR_SELECT + "\nORDER BY validator.consensus_address")
        seen: set[str] = set()
        result = []
        for row in rows:
            if row[0] in seen:
                continue
            seen.add(row[0])
            result.append(self._to_validator(row))
        return result

    def get_validator_by_self_delegate_address(self, address: str) -> ValidatorData:
        """Return the validator whose self delegate address is the given one."""
        rows = self._select(
            _VALIDATOR_SELECT + "\nWHERE validator_info.self_delegate_address = ?", (address,)
        )
        if not rows:
            raise DatabaseError(f"no validator with self delegate address {address} could be found")
        return self._to_validator(rows[0])

    # --------------------------------------------------------------- description

    def _get_validator_description(self, consensus_address: str) -> Optional[ValidatorDescription]:
        try:
            rows = self._select(
                "SELECT validator_address, moniker, identity, avatar_url, website, "
                "security_contact, details, height FROM validator_description "
                "WHERE validator_address = ?",
                (consensus_address,),
            )
        except DatabaseError:
            return None
        if not rows:
            return None
        address, moniker, identity, avatar, website, contact, details, height = rows[0]
        return ValidatorDescription(
            operator_address=address,
            description=Description(
                to_string(moniker),
                to_string(identity),
                to_string(website),
                to_string(contact),
                to_string(details),
            ),
            avatar_url=to_string(avatar),
            height=height,
        )

    def save_validator_description(self, description: ValidatorDescription) -> None:
        """Store a validator description, merging it with the stored one if any."""
        cons_addr = self.get_validator_consensus_address(description.operator_address)
        des = description.description.ensure_length()

        avatar_url = description.avatar_url
        existing = self._get_validator_description(cons_addr)
        if existing is not None:
            des = existing.description.update(des)
            if description.avatar_url == DO_NOT_MODIFY_DESCRIPTION:
                avatar_url = existing.avatar_url

        self._execute(
            "storing validator description",
            """
INSERT INTO validator_description (
    validator_address, moniker, identity, avatar_url, website, security_contact, details, height
)
VALUES (?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT (validator_address) DO UPDATE
    SET moniker = excluded.moniker,
        identity = excluded.identity,
        avatar_url = excluded.avatar_url,
        website = excluded.website,
        security_contact = excluded.security_contact,
        details = excluded.details,
        height = excluded.height
WHERE validator_description.height <= excluded.height""",
            (
                to_null_string(cons_addr),
                to_null_string(des.moniker),
                to_null_string(des.identity),
                to_null_string(avatar_url),
                to_null_string(des.website),
                to_null_string(des.security_contact),
                to_null_string(des.details),
                description.height,
            ),
        )

    # ---------------------------------------------------------------- commission

    def _get_validator_commission(self, consensus_address: str) -> Optional[ValidatorCommissionRow]:
        try:
            rows = self._select(
                "SELECT validator_address, commission, min_self_delegation, height "
                "FROM validator_commission WHERE validator_address = ?",
                (consensus_address,),
            )
        except DatabaseError:
            return None
        if not rows:
            return None
        return ValidatorCommissionRow(*rows[0])

    def save_validator_commission(self, data: ValidatorCommission) -> None:
        """Store a validator commission, keeping stored values that are not given."""
        if data.commission is None and data.min_self_delegation is None:
            return

        cons_addr = self.get_validator_consensus_address(data.validator_address)

        commission = ""
        min_self_delegation = ""
        existing = self._get_validator_commission(cons_addr)
        if existing is not None:
            if existing.commission is not None:
                commission = existing.commission
            if existing.min_self_delegation is not None:
                min_self_delegation = existing.min_self_delegation

        if data.commission is not None:
            commission = _dec_string(data.commission)
        if data.min_self_delegation is not None:
            min_self_delegation = str(data.min_self_delegation)

        self._execute(
            "storing validator commission",
            """
INSERT INTO validator_commission (validator_address, commission, min_self_delegation, height)
VALUES (?, ?, ?, ?)
ON CONFLICT (validator_address) DO UPDATE
    SET commission = excluded.commission,
        min_self_delegation = excluded.min_self_delegation,
        height = excluded.height
WHERE validator_commission.height <= excluded.height""",
            (cons_addr, commission, min_self_delegation, data.height),
        )

    # ------------------------------------------------------- voting power, status

    def save_validators_voting_powers(self, entries: Iterable[ValidatorVotingPower]) -> None:
        """Store the voting powers of many validators at once."""
        entries = list(entries)
        if not entries:
            return
        params: list[Any] = []
        for entry in entries:
            params += [entry.consensus_address, entry.voting_power, entry.height]
        self._execute(
            "storing validators voting power",
            "INSERT INTO validator_voting_power (validator_address, voting_power, height) "
            f"VALUES {_placeholders(len(entries), 3)}"
            """
ON CONFLICT (validator_address) DO UPDATE
    SET voting_power = excluded.voting_power,
        height = excluded.height
WHERE validator_voting_power.height <= excluded.height""",
            params,
        )

    def save_validators_statuses(self, statuses: Iterable[ValidatorStatus]) -> None:
        """Store the statuses of many validators at once."""
        statuses = list(statuses)
        if not statuses:
            return
        validator_params: list[Any] = []
        status_params: list[Any] = []
        for status in statuses:
            validator_params += [status.consensus_address, status.consensus_pubkey]
            status_params += [
                status.consensus_address,
                status.status,
                bool(status.jailed),
                status.height,
            ]
        count = len(statuses)
        self._execute(
            "storing validators",
            "INSERT INTO validator (consensus_address, consensus_pubkey) "
            f"VALUES {_placeholders(count, 2)} ON CONFLICT DO NOTHING",
            validator_params,
        )
        self._execute(
            "storing validators statuses",
            "INSERT INTO validator_status (validator_address, status, jailed, height) "
            f"VALUES {_placeholders(count, 4)}"
            """
ON CONFLICT (validator_address) DO UPDATE
    SET status = excluded.status,
        jailed = excluded.jailed,
        height = excluded.height
WHERE validator_status.height <= excluded.height""",
            status_params,
        )

    # --------------------------------------------------------------- double sign

    def _save_double_sign_vote(self, vote: DoubleSignVote) -> int:
        cursor = self._execute(
            "storing double sign vote",
            """
INSERT INTO double_sign_vote
    (type, height, round, block_id, validator_address, validator_index, signature)
VALUES (?, ?, ?, ?, ?, ?, ?) ON CONFLICT DO NOTHING""",
            (
                vote.type,
                vote.height,
                vote.round,
                vote.block_id,
                vote.validator_address,
                vote.validator_index,
                vote.signature,
            ),
        )
        if cursor.rowcount == 0:
            raise DatabaseError("error while storing double sign vote: no rows in result set")
        return cursor.lastrowid

    def save_double_sign_evidence(self, evidence: DoubleSignEvidence) -> None:
        """Store both votes of the evidence, then the evidence itself."""
        vote_a = self._save_double_sign_vote(evidence.vote_a)
        vote_b = self._save_double_sign_vote(evidence.vote_b)
        self._execute(
            "storing double sign evidence",
            "INSERT INTO double_sign_evidence (height, vote_a_id, vote_b_id) "
            "VALUES (?, ?, ?) ON CONFLICT DO NOTHING",
            (evidence.height, vote_a, vote_b),
        )

    # ------------------------------------------------------------------- modules

    def insert_enabled_modules(self, modules: Iterable[str]) -> None:
        """Replace the stored list of enabled modules with the given one."""
        modules = list(modules)
        if not modules:
            return
        self._execute("deleting modules", "DELETE FROM modules WHERE TRUE")
        self._execute(
            "storing modules",
            f"INSERT INTO modules (module_name) VALUES {_placeholders(len(modules), 1)} "
            "ON CONFLICT DO NOTHING",
            modules,
        )