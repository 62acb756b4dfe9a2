import json
from datetime import datetime, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest

from bdindexer.actions_handlers import (
    account_balance_handler,
    delegation_handler,
    delegation_reward_handler,
    delegator_withdraw_address_handler,
    redelegation_handler,
    register_handlers,
    total_delegation_amount_handler,
    unbonding_delegations_handler,
    unbonding_delegations_total_handler,
    validator_commission_amount_handler,
    validator_delegation_handler,
    validator_redelegations_from_handler,
    validator_unbonding_delegations_handler,
)
from bdindexer.actions_types import ActionContext, Coin, Payload, to_json_value
from bdindexer.actions_worker import ActionsWorker

DELEGATOR = "cosmos1z4hfrxvlgl4s8u4n5ngjcw8kdqrcv43599amxs"
VALIDATOR = "cosmosvaloper1rcp29q3hpd246n6qak7jluqep4v006cdsc2kkl"
OTHER_VALIDATOR = "cosmosvaloper1000ya26q2cmh399q4c5aaacd9lmmdqp90kw2jn"


class FakeNode:
    def __init__(self, height=500):
        self.height = height

    def latest_height(self):
        return self.height


class BrokenNode:
    def latest_height(self):
        raise OSError("node down")


class Recorder:
    """A source whose methods record their arguments and return canned values."""

    def __init__(self, **results):
        self.calls = []
        self._results = results

    def __getattr__(self, name):
        if name.startswith("_"):
            raise AttributeError(name)
        result = self._results[name]

        def method(*args, **kwargs):
            self.calls.append((name, args, kwargs))
            if isinstance(result, Exception):
                raise result
            return result

        return method


def coin(denom, amount):
    return SimpleNamespace(denom=denom, amount=amount)


def make_ctx(node=None, **sources):
    return ActionContext(node=node or FakeNode(), sources=SimpleNamespace(**sources))


def payload(address=DELEGATOR, height=0, **extra):
    return Payload.from_dict({"input": {"address": address, "height": height, **extra}})


def delegation_item(delegator, validator, denom, amount):
    return SimpleNamespace(
        delegation=SimpleNamespace(delegator_address=delegator, validator_address=validator),
        balance=coin(denom, amount),
    )


def test_account_balance_uses_payload_height():
    bank = Recorder(get_account_balance=[coin("udsm", 100)])
    result = account_balance_handler(make_ctx(bank_source=bank), payload(height=42))
    assert result.coins == [Coin(amount="100", denom="udsm")]
    assert bank.calls == [("get_account_balance", (DELEGATOR, 42), {})]


def test_account_balance_uses_latest_height_when_none_given():
    bank = Recorder(get_account_balance=[])
    account_balance_handler(make_ctx(node=FakeNode(77), bank_source=bank), payload())
    assert bank.calls[0][1] == (DELEGATOR, 77)


def test_account_balance_wraps_source_error():
    bank = Recorder(get_account_balance=ValueError("boom"))
    with pytest.raises(RuntimeError, match="error while getting account balance: boom"):
        account_balance_handler(make_ctx(bank_source=bank), payload(height=1))


def test_height_error_propagates():
    bank = Recorder(get_account_balance=[])
    with pytest.raises(RuntimeError, match="error while getting chain latest block height"):
        account_balance_handler(make_ctx(node=BrokenNode(), bank_source=bank), payload())
    assert bank.calls == []


def test_delegation_handler_builds_delegations_and_passes_pagination():
    page = SimpleNamespace(next_key=b"", total=1)
    res = SimpleNamespace(
        delegation_responses=[delegation_item(DELEGATOR, VALIDATOR, "udsm", 25)],
        pagination=page,
    )
    staking = Recorder(get_delegations_with_pagination=res)
    pl = payload(height=3, offset=2, limit=10, count_total=True)
    result = delegation_handler(make_ctx(staking_source=staking), pl)

    assert result.pagination is page
    assert len(result.delegations) == 1
    delegation = result.delegations[0]
    assert delegation.delegator_address == DELEGATOR
    assert delegation.validator_address == VALIDATOR
    assert delegation.coins == [Coin(amount="25", denom="udsm")]
    assert staking.calls[0][1] == (3, DELEGATOR, pl.pagination())


def test_delegation_not_found_returns_error_as_result():
    err = LookupError("rpc error: code = NotFound desc = no delegation")
    staking = Recorder(get_delegations_with_pagination=err)
    result = delegation_handler(make_ctx(staking_source=staking), payload(height=3))
    assert result is err
    assert to_json_value(result) == {}


def test_delegation_other_error_raises():
    staking = Recorder(get_delegations_with_pagination=ValueError("boom"))
    with pytest.raises(RuntimeError, match="error while getting delegator delegations: boom"):
        delegation_handler(make_ctx(staking_source=staking), payload(height=3))


def test_total_delegation_sums_same_denom():
    res = SimpleNamespace(
        delegation_responses=[
            delegation_item(DELEGATOR, VALIDATOR, "udsm", 10),
            delegation_item(DELEGATOR, OTHER_VALIDATOR, "udsm", 5),
        ],
        pagination=None,
    )
    staking = Recorder(get_delegations_with_pagination=res)
    result = total_delegation_amount_handler(make_ctx(staking_source=staking), payload(height=8))
    assert result.coins == [Coin(amount="15", denom="udsm")]
    assert staking.calls[0][1] == (8, DELEGATOR, None)


def test_total_delegation_keeps_denoms_in_order():
    res = SimpleNamespace(
        delegation_responses=[
            delegation_item(DELEGATOR, VALIDATOR, "udsm", 10),
            delegation_item(DELEGATOR, OTHER_VALIDATOR, "uatom", 7),
        ],
        pagination=None,
    )
    staking = Recorder(get_delegations_with_pagination=res)
    result = total_delegation_amount_handler(make_ctx(staking_source=staking), payload(height=8))
    assert [c.denom for c in result.coins] == ["udsm", "uatom"]
    assert [c.amount for c in result.coins] == ["10", "7"]


def test_total_delegation_not_found_returns_error():
    err = LookupError("code = NotFound")
    staking = Recorder(get_delegations_with_pagination=err)
    assert total_delegation_amount_handler(make_ctx(staking_source=staking), payload()) is err


def test_delegation_reward_handler():
    rewards = [
        SimpleNamespace(validator_address=VALIDATOR, reward=[coin("udsm", Decimal("1.5"))]),
    ]
    distr = Recorder(delegator_total_rewards=rewards)
    result = delegation_reward_handler(make_ctx(distr_source=distr), payload(height=9))
    assert len(result) == 1
    assert result[0].validator_address == VALIDATOR
    assert result[0].coins == [Coin(amount="1.500000000000000000", denom="udsm")]
    assert distr.calls[0][1] == (DELEGATOR, 9)


def test_withdraw_address_always_uses_latest_height():
    distr = Recorder(delegator_withdraw_address=OTHER_VALIDATOR)
    result = delegator_withdraw_address_handler(
        make_ctx(node=FakeNode(321), distr_source=distr), payload(height=5)
    )
    assert result.address == OTHER_VALIDATOR
    assert distr.calls[0][1] == (DELEGATOR, 321)


def _redelegation_result():
    when = datetime(2022, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    item = SimpleNamespace(
        redelegation=SimpleNamespace(
            delegator_address=DELEGATOR,
            validator_src_address=VALIDATOR,
            validator_dst_address=OTHER_VALIDATOR,
        ),
        entries=[
            SimpleNamespace(
                redelegation_entry=SimpleNamespace(completion_time=when), balance=40
            )
        ],
    )
    return SimpleNamespace(redelegation_responses=[item], pagination=None), when


def test_redelegation_handler_asks_by_delegator():
    res, when = _redelegation_result()
    staking = Recorder(get_redelegations=res)
    pl = payload(height=4)
    result = redelegation_handler(make_ctx(staking_source=staking), pl)

    redelegation = result.redelegations[0]
    assert redelegation.validator_src_address == VALIDATOR
    assert redelegation.validator_dst_address == OTHER_VALIDATOR
    assert redelegation.entries[0].completion_time == when
    assert redelegation.entries[0].balance == 40
    assert staking.calls[0][1] == (4,)
    assert staking.calls[0][2] == {"delegator_address": DELEGATOR, "pagination": pl.pagination()}


def test_validator_redelegations_from_asks_by_source_validator():
    res, _ = _redelegation_result()
    staking = Recorder(get_redelegations=res)
    pl = payload(address=VALIDATOR, height=4)
    result = validator_redelegations_from_handler(make_ctx(staking_source=staking), pl)
    assert result.redelegations[0].delegator_address == DELEGATOR
    assert staking.calls[0][2] == {"src_validator_address": VALIDATOR, "pagination": pl.pagination()}


def test_redelegation_error_wrapped():
    staking = Recorder(get_redelegations=ValueError("boom"))
    with pytest.raises(RuntimeError, match="error while getting delegator redelegations: boom"):
        redelegation_handler(make_ctx(staking_source=staking), payload(height=1))


def _unbonding_result():
    entries = [SimpleNamespace(balance=3), SimpleNamespace(balance=4)]
    item = SimpleNamespace(
        delegator_address=DELEGATOR, validator_address=VALIDATOR, entries=entries
    )
    return SimpleNamespace(unbonding_responses=[item], pagination=None), entries


def test_unbonding_total_uses_bond_denom():
    res, entries = _unbonding_result()
    staking = Recorder(
        get_unbonding_delegations=res, get_params=SimpleNamespace(bond_denom="udsm")
    )
    result = unbonding_delegations_total_handler(make_ctx(staking_source=staking), payload(height=2))
    assert len(result.coins) == 1
    assert result.coins[0].denom == "udsm"
    assert int(result.coins[0].amount) == sum(e.balance for e in entries)


def test_unbonding_total_params_error():
    res, _ = _unbonding_result()
    staking = Recorder(get_unbonding_delegations=res, get_params=ValueError("boom"))
    with pytest.raises(RuntimeError, match="error while getting bond denom type: boom"):
        unbonding_delegations_total_handler(make_ctx(staking_source=staking), payload(height=2))


def test_unbonding_delegations_handler_passes_entries():
    res, entries = _unbonding_result()
    staking = Recorder(get_unbonding_delegations=res)
    pl = payload(height=2, limit=5)
    result = unbonding_delegations_handler(make_ctx(staking_source=staking), pl)
    assert result.unbonding_delegations[0].entries == entries
    assert result.unbonding_delegations[0].validator_address == VALIDATOR
    assert staking.calls[0][1] == (2, DELEGATOR, pl.pagination())


def test_validator_unbonding_error_names_address():
    staking = Recorder(get_unbonding_delegations_from_validator=ValueError("boom"))
    with pytest.raises(RuntimeError) as info:
        validator_unbonding_delegations_handler(
            make_ctx(staking_source=staking), payload(address=VALIDATOR, height=2)
        )
    assert str(info.value) == (
        f"error while getting all unbonding delegations from validator {VALIDATOR}: boom"
    )


def test_validator_commission_uses_latest_height():
    distr = Recorder(validator_commission=[coin("udsm", Decimal("2"))])
    result = validator_commission_amount_handler(
        make_ctx(node=FakeNode(88), distr_source=distr), payload(address=VALIDATOR, height=3)
    )
    assert [c.denom for c in result.coins] == ["udsm"]
    assert Decimal(result.coins[0].amount) == Decimal("2")
    assert distr.calls[0][1] == (VALIDATOR, 88)


def test_validator_delegation_handler():
    res = SimpleNamespace(
        delegation_responses=[delegation_item(DELEGATOR, VALIDATOR, "udsm", 9)],
        pagination=None,
    )
    staking = Recorder(get_validator_delegations_with_pagination=res)
    result = validator_delegation_handler(
        make_ctx(staking_source=staking), payload(address=VALIDATOR, height=6)
    )
    assert result.delegations[0].delegator_address == DELEGATOR
    assert result.delegations[0].coins == [Coin(amount="9", denom="udsm")]
    assert staking.calls[0][1][:2] == (6, VALIDATOR)


def test_register_handlers_serves_account_balance():
    bank = Recorder(get_account_balance=[coin("udsm", 100)])
    worker = ActionsWorker(make_ctx(bank_source=bank))
    register_handlers(worker)
    body = json.dumps({"input": {"address": DELEGATOR, "height": 10}}).encode()
    status, content_type, data = worker.handle("/account_balance", body)
    assert status == 200
    assert content_type == "application/json"
    assert json.loads(data) == {"coins": [{"amount": "100", "denom": "udsm"}]}


def test_register_handlers_twice_is_rejected():
    worker = ActionsWorker(make_ctx())
    register_handlers(worker)
    with pytest.raises(ValueError):
        register_handlers(worker)