"""Rows of the governance and price feed tables."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Sequence

from bdindexer.coins import DbCoin


@dataclass(frozen=True)
class GovParamsRow:
    """The single row of the gov_params table."""

    deposit_params: str
    voting_params: str
    tally_params: str
    height: int
    one_row_id: bool = field(default=True, compare=False)


@dataclass(frozen=True)
class ProposalRow:
    """A row of the proposal table.

    Two rows are equal when everything but the stored content matches.
    """

    id: int
    proposal_route: str
    proposal_type: str
    title: str
    description: str
    content: str = field(compare=False)
    submit_time: datetime
    deposit_end_time: datetime
    voting_start_time: datetime
    voting_end_time: datetime
    proposer_address: str
    status: str


@dataclass(frozen=True)
class TallyResultRow:
    """A row of the proposal_tally_result table."""

    proposal_id: int
    yes: str
    abstain: str
    no: str
    no_with_veto: str
    height: int


@dataclass(frozen=True)
class VoteRow:
    """A row of the proposal_vote table."""

    proposal_id: int
    voter_address: str
    option: str
    height: int


@dataclass(frozen=True)
class DepositRow:
    """A row of the proposal_deposit table."""

    proposal_id: int
    depositor_address: str
    amount: Sequence[DbCoin]
    height: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", tuple(self.amount))


@dataclass(frozen=True)
class ProposalStakingPoolSnapshotRow:
    """The staking pool as it was when a proposal's voting ended."""

    proposal_id: int
    bonded_tokens: int
    not_bonded_tokens: int
    height: int


@dataclass(frozen=True)
class ProposalValidatorVotingPowerSnapshotRow:
    """A validator's voting power as it was when a proposal's voting ended."""

    id: int
    proposal_id: int
    validator_address: str
    voting_power: int
    status: int
    jailed: bool
    height: int


@dataclass(frozen=True)
class TokenUnitRow:
    """A row of the token_unit table."""

    token_name: str
    denom: str
    exponent: int
    aliases: Sequence[str] = ()
    price_id: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "aliases", tuple(self.aliases))


@dataclass(frozen=True)
class TokenRow:
    """A row of the token table."""

    name: str
    traded_unit: str


@dataclass(frozen=True)
class TokenPriceRow:
    """A row of the token_price table.

    The row id is not part of equality.
    """

    unit_name: str
    price: float
    market_cap: int
    timestamp: datetime
    id: str = field(default="", compare=False)