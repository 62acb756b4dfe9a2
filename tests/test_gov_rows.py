from datetime import datetime, timedelta, timezone

from bdindexer.coins import DbCoin
from bdindexer.gov_rows import (
    DepositRow,
    GovParamsRow,
    ProposalRow,
    ProposalValidatorVotingPowerSnapshotRow,
    TallyResultRow,
    TokenPriceRow,
    TokenUnitRow,
    VoteRow,
)

UTC = timezone.utc
T0 = datetime(2021, 1, 1, 12, 0, tzinfo=UTC)


def _proposal(**changes):
    values = dict(
        id=1,
        proposal_route="gov",
        proposal_type="TextProposal",
        title="title",
        description="description",
        content="{}",
        submit_time=T0,
        deposit_end_time=T0 + timedelta(days=1),
        voting_start_time=T0 + timedelta(days=1),
        voting_end_time=T0 + timedelta(days=2),
        proposer_address="cosmos1proposer",
        status="PROPOSAL_STATUS_VOTING_PERIOD",
    )
    values.update(changes)
    return ProposalRow(**values)


def test_proposal_equality_ignores_content():
    assert _proposal(content="a") == _proposal(content="b")


def test_proposal_equality_checks_title():
    assert (_proposal(title="one") == _proposal(title="two")) is False


def test_proposal_times_compare_as_instants():
    other_zone = timezone(timedelta(hours=2))
    shifted = _proposal(submit_time=T0.astimezone(other_zone))
    assert shifted == _proposal()


def test_deposit_amount_stored_as_tuple():
    row = DepositRow(1, "cosmos1depositor", [DbCoin("uatom", "10")], 5)
    assert row.amount == (DbCoin("uatom", "10"),)
    assert row == DepositRow(1, "cosmos1depositor", (DbCoin("uatom", "10"),), 5)


def test_deposit_amount_order_matters():
    a = DepositRow(1, "d", [DbCoin("a", "1"), DbCoin("b", "2")], 5)
    b = DepositRow(1, "d", [DbCoin("b", "2"), DbCoin("a", "1")], 5)
    assert (a == b) is False


def test_gov_params_ignores_one_row_id():
    a = GovParamsRow("{}", "{}", "{}", 3)
    b = GovParamsRow("{}", "{}", "{}", 3, one_row_id=False)
    assert a == b
    assert a.one_row_id is True


def test_tally_and_vote_rows_compare_all_fields():
    assert TallyResultRow(1, "1", "2", "3", "4", 10) == TallyResultRow(1, "1", "2", "3", "4", 10)
    assert (VoteRow(1, "voter", "yes", 10) == VoteRow(1, "voter", "no", 10)) is False


def test_token_price_equality_ignores_id():
    a = TokenPriceRow("atom", 1.5, 100, T0, id="first")
    b = TokenPriceRow("atom", 1.5, 100, T0, id="second")
    assert a == b
    assert a.id == "first"


def test_token_unit_defaults():
    row = TokenUnitRow("Atom", "uatom", 6, ["microatom"])
    assert row.aliases == ("microatom",)
    assert row.price_id is None


def test_voting_power_snapshot_fields():
    row = ProposalValidatorVotingPowerSnapshotRow(7, 2, "cosmosvalcons1x", 1000, 3, True, 10)
    assert (row.proposal_id, row.voting_power, row.jailed) == (2, 1000, True)