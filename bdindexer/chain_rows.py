"""Rows of the chain-level tables: consensus, blocks, mint, slashing, staking and more."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class GenesisRow:
    """The single row of the genesis table."""

    chain_id: str
    time: datetime
    initial_height: int
    one_row_id: bool = field(default=True, compare=False)


@dataclass(frozen=True)
class ConsensusRow:
    """The single row of the consensus table."""

    height: int
    round: int
    step: str
    one_row_id: bool = field(default=True, compare=False)


@dataclass(frozen=True)
class AverageTimeRow:
    """The average block time over a minute, hour, day or since genesis."""

    average_time: float
    height: int
    one_row_id: bool = field(default=True, compare=False)


@dataclass(frozen=True)
class BlockRow:
    """A row of the block table."""

    height: int
    hash: str
    num_txs: int
    total_gas: int
    proposer_address: Optional[str]
    pre_commits: int
    timestamp: datetime


@dataclass(frozen=True)
class InflationRow:
    """The single row of the inflation table."""

    value: float
    height: int
    one_row_id: bool = field(default=True, compare=False)


@dataclass(frozen=True)
class MintParamsRow:
    """The single row of the mint_params table."""

    params: str
    height: int
    one_row_id: bool = field(default=True, compare=False)


@dataclass(frozen=True)
class ValidatorSigningInfoRow:
    """A row of the validator_signing_info table."""

    validator_address: str
    start_height: int
    index_offset: int
    jailed_until: datetime
    tombstoned: bool
    missed_blocks_counter: int
    height: int


@dataclass(frozen=True)
class SlashingParamsRow:
    """The single row of the slashing_params table."""

    params: str
    height: int
    one_row_id: bool = field(default=True, compare=False)


@dataclass(frozen=True)
class StakingParamsRow:
    """The single row of the staking_params table."""

    params: str
    height: int
    one_row_id: bool = field(default=True, compare=False)


@dataclass(frozen=True)
class StakingPoolRow:
    """The single row of the staking_pool table."""

    bonded_tokens: int
    not_bonded_tokens: int
    unbonding_tokens: int
    staked_not_bonded_tokens: int
    height: int
    one_row_id: bool = field(default=True, compare=False)


@dataclass(frozen=True)
class SoftwareUpgradePlanRow:
    """A row of the software_upgrade_plan table."""

    proposal_id: int
    plan_name: str
    upgrade_height: int
    info: str
    height: int


@dataclass(frozen=True)
class FeeAllowanceRow:
    """A row of the fee_grant_allowance table."""

    id: int
    grantee: str
    granter: str
    allowance: str
    height: int