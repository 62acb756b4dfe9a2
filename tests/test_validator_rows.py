from decimal import Decimal

import pytest

from bdindexer.validator_rows import (
    DoubleSignEvidenceRow,
    DoubleSignVoteRow,
    ValidatorData,
    ValidatorInfoRow,
    ValidatorStatusRow,
    new_validator_commission_row,
    new_validator_description_row,
)

CONS = "cosmosvalcons1qqqqrezrl53hujmpdch6d805ac75n220ku09rl"
OPER = "cosmosvaloper1rcp29q3hpd246n6qak7jluqep4v006cdsc2kkl"
PUBKEY = "cosmosvalconspub1zcjduepq7mft6gfls57a0a42d7uhx656cckhfvtrlmw744jv4q0mvlv0dypskehfk8"
SELF = "cosmos1z4hfrxvlgl4s8u4n5ngjcw8kdqrcv43599amxs"


def _validator(max_rate="1", max_change_rate="2"):
    return ValidatorData(CONS, OPER, PUBKEY, SELF, max_rate, max_change_rate, 1)


def test_rates_parse_as_whole_numbers():
    validator = _validator()
    assert validator.max_rate_value() == Decimal(1)
    assert validator.max_change_rate_value() == Decimal(2)


def test_negative_and_signed_rates_accepted():
    assert _validator(max_rate="-5").max_rate_value() == Decimal(-5)
    assert _validator(max_change_rate="+7").max_change_rate_value() == Decimal(7)


@pytest.mark.parametrize("text", ["abc", "1.5", "", " 1", "1_000", "9223372036854775808"])
def test_invalid_rates_raise(text):
    with pytest.raises(ValueError):
        _validator(max_rate=text).max_rate_value()
    with pytest.raises(ValueError):
        _validator(max_change_rate=text).max_change_rate_value()


def test_validator_data_equality():
    assert _validator() == _validator()
    assert (_validator() == _validator(max_rate="3")) is False


def test_info_row_positional_order():
    row = ValidatorInfoRow(CONS, OPER, SELF, "1", "2", 10)
    assert (row.max_rate, row.max_change_rate) == ("1", "2")


def test_description_row_blank_values_are_null():
    row = new_validator_description_row(CONS, "moniker", "identity", "avatar-url", "", "  ", "details", 10)
    assert row.website is None
    assert row.security_contact is None
    assert row.moniker == "moniker"


def test_description_row_values_are_trimmed():
    row = new_validator_description_row(CONS, "  moniker ", "", "", "", "", "", 10)
    assert row.moniker == "moniker"


def test_description_equals_ignores_avatar():
    a = new_validator_description_row(CONS, "moniker", "", "avatar-url", "", "", "", 10)
    b = new_validator_description_row(CONS, "moniker", "", "new-avatar-url", "", "", "", 10)
    assert a.equals(b)
    assert (a == b) is False


def test_description_equals_checks_height():
    a = new_validator_description_row(CONS, "moniker", "", "", "", "", "", 10)
    b = new_validator_description_row(CONS, "moniker", "", "", "", "", "", 11)
    assert a.equals(b) is False


def test_commission_row():
    row = new_validator_commission_row(CONS, "0.011000000000000000", "12", 10)
    assert row.commission == "0.011000000000000000"
    assert row.min_self_delegation == "12"
    assert new_validator_commission_row(CONS, "", "", 10).commission is None


def test_status_row_equality():
    assert ValidatorStatusRow(1, False, CONS, 10) == ValidatorStatusRow(1, False, CONS, 10)
    assert (ValidatorStatusRow(1, False, CONS, 10) == ValidatorStatusRow(3, True, CONS, 11)) is False


def test_double_sign_rows():
    vote = DoubleSignVoteRow(
        1, 1, 10, 1,
        "A42C9492F5DE01BFA6117137102C3EF909F1A46C2F56915F542D12AC2D0A5BCA",
        CONS, 1, "signature",
    )
    assert vote.type == 1
    assert vote.block_id.startswith("A42C")
    assert DoubleSignEvidenceRow(10, 1, 2) == DoubleSignEvidenceRow(10, 1, 2)