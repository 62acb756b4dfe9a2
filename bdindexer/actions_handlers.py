"""Action handlers that answer queries about balances, delegations and rewards.

Handlers read from ``ctx.sources``, which holds three data sources:

``bank_source``
    ``get_account_balance(address, height)`` returns coins.

``distr_source``
    ``delegator_total_rewards(delegator, height)`` returns rewards with
    ``validator_address`` and ``reward``. ``delegator_withdraw_address(delegator, height)``
    returns a string. ``validator_commission(operator, height)`` returns decimal coins.

``staking_source``
    ``get_delegations_with_pagination(height, delegator, pagination)`` and
    ``get_validator_delegations_with_pagination(height, validator, pagination)``
    return an object with ``delegation_responses`` and ``pagination``.
    ``get_redelegations(height, **request)`` is called with ``delegator_address``
    or ``src_validator_address`` plus ``pagination``, and returns an object with
    ``redelegation_responses`` and ``pagination``.
    ``get_unbonding_delegations(height, delegator, pagination)`` and
    ``get_unbonding_delegations_from_validator(height, validator, pagination)``
    return an object with ``unbonding_responses`` and ``pagination``.
    ``get_params(height)`` returns an object with ``bond_denom``.

Coins are objects with ``denom`` and ``amount`` attributes.
"""

from __future__ import annotations

import logging
import signal
import threading
from dataclasses import dataclass
from typing import Any, Optional

from bdindexer.actions_config import ActionsConfig
from bdindexer.actions_types import (
    ActionContext,
    Address,
    Balance,
    Coin,
    Delegation,
    DelegationResponse,
    DelegationReward,
    Payload,
    Redelegation,
    RedelegationEntry,
    RedelegationResponse,
    UnbondingDelegation,
    UnbondingDelegationResponse,
    ValidatorCommissionAmount,
    convert_coins,
    convert_dec_coins,
)
from bdindexer.actions_worker import ActionsWorker

_log = logging.getLogger(__name__)

_NOT_FOUND = "NotFound"


@dataclass
class _SummedCoin:
    denom: str
    amount: int


def _is_not_found(err: Exception) -> bool:
    return _NOT_FOUND in str(err)


def _delegations(res: Any) -> DelegationResponse:
    delegations = [
        Delegation(
            delegator_address=item.delegation.delegator_address,
            validator_address=item.delegation.validator_address,
            coins=convert_coins([item.balance]),
        )
        for item in res.delegation_responses
    ]
    return DelegationResponse(delegations=delegations, pagination=res.pagination)


def _redelegations(res: Any) -> RedelegationResponse:
    redelegations = [
        Redelegation(
            delegator_address=item.redelegation.delegator_address,
            validator_src_address=item.redelegation.validator_src_address,
            validator_dst_address=item.redelegation.validator_dst_address,
            entries=[
                RedelegationEntry(
                    completion_time=entry.redelegation_entry.completion_time,
                    balance=entry.balance,
                )
                for entry in item.entries
            ],
        )
        for item in res.redelegation_responses
    ]
    return RedelegationResponse(redelegations=redelegations, pagination=res.pagination)


def _unbondings(res: Any) -> UnbondingDelegationResponse:
    unbondings = [
        UnbondingDelegation(
            delegator_address=item.delegator_address,
            validator_address=item.validator_address,
            entries=list(item.entries),
        )
        for item in res.unbonding_responses
    ]
    return UnbondingDelegationResponse(unbonding_delegations=unbondings, pagination=res.pagination)


def account_balance_handler(ctx: ActionContext, payload: Payload) -> Balance:
    """Return the balance of the payload's account."""
    _log.debug("executing account balance action for %s", payload.address())
    height = ctx.get_height(payload)
    try:
        balance = ctx.sources.bank_source.get_account_balance(payload.address(), height)
    except Exception as err:
        raise RuntimeError(f"error while getting account balance: {err}") from err
    return Balance(coins=convert_coins(balance))


def delegation_handler(ctx: ActionContext, payload: Payload) -> Any:
    """Return a page of the delegator's delegations.

    When the chain has no delegations for the delegator, the error is returned
    as the result instead of being raised.
    """
    _log.debug("executing delegations action for %s", payload.address())
    height = ctx.get_height(payload)
    try:
        res = ctx.sources.staking_source.get_delegations_with_pagination(
            height, payload.address(), payload.pagination()
        )
    except Exception as err:
        if _is_not_found(err):
            return err
        raise RuntimeError(f"error while getting delegator delegations: {err}") from err
    return _delegations(res)


def total_delegation_amount_handler(ctx: ActionContext, payload: Payload) -> Any:
    """Return the delegator's delegated amounts added up by denomination."""
    _log.debug("executing total delegation amount action for %s", payload.address())
    height = ctx.get_height(payload)
    try:
        res = ctx.sources.staking_source.get_delegations_with_pagination(
            height, payload.address(), None
        )
    except Exception as err:
        if _is_not_found(err):
            return err
        raise RuntimeError(f"error while getting delegator delegations: {err}") from err

    totals: list[_SummedCoin] = []
    for item in res.delegation_responses:
        balance = item.balance
        amount = int(balance.amount)
        for coin in list(totals):
            if coin.denom == balance.denom:
                coin.amount += amount
            else:
                totals.append(_SummedCoin(balance.denom, amount))
        if not totals:
            totals.append(_SummedCoin(balance.denom, amount))

    return Balance(coins=convert_coins(totals))


def delegation_reward_handler(ctx: ActionContext, payload: Payload) -> list[DelegationReward]:
    """Return the rewards the delegator earned from each validator."""
    _log.debug("executing delegation rewards action for %s", payload.address())
    height = ctx.get_height(payload)
    try:
        rewards = ctx.sources.distr_source.delegator_total_rewards(payload.address(), height)
    except Exception as err:
        raise RuntimeError(f"error while getting delegator total rewards: {err}") from err
    return [
        DelegationReward(
            coins=convert_dec_coins(reward.reward),
            validator_address=reward.validator_address,
        )
        for reward in rewards
    ]


def delegator_withdraw_address_handler(ctx: ActionContext, payload: Payload) -> Address:
    """Return the delegator's withdraw address at the latest height."""
    _log.debug("executing delegator withdraw address action for %s", payload.address())
    height = ctx.get_height(None)
    try:
        address = ctx.sources.distr_source.delegator_withdraw_address(payload.address(), height)
    except Exception as err:
        raise RuntimeError(f"error while getting delegator withdraw address: {err}") from err
    return Address(address=address)


def redelegation_handler(ctx: ActionContext, payload: Payload) -> RedelegationResponse:
    """Return a page of the delegator's redelegations."""
    _log.debug("executing redelegations action for %s", payload.address())
    height = ctx.get_height(payload)
    try:
        res = ctx.sources.staking_source.get_redelegations(
            height, delegator_address=payload.address(), pagination=payload.pagination()
        )
    except Exception as err:
        raise RuntimeError(f"error while getting delegator redelegations: {err}") from err
    return _redelegations(res)


def unbonding_delegations_total_handler(ctx: ActionContext, payload: Payload) -> Balance:
    """Return the total amount the delegator is unbonding, in the bond denomination."""
    _log.debug("executing unbonding delegation total action for %s", payload.address())
    height = ctx.get_height(payload)
    staking = ctx.sources.staking_source
    try:
        res = staking.get_unbonding_delegations(height, payload.address(), None)
    except Exception as err:
        raise RuntimeError(f"error while getting delegator unbonding delegations: {err}") from err
    try:
        params = staking.get_params(height)
    except Exception as err:
        raise RuntimeError(f"error while getting bond denom type: {err}") from err

    total = sum(
        (int(entry.balance) for item in res.unbonding_responses for entry in item.entries), 0
    )
    return Balance(coins=[Coin(amount=str(total), denom=params.bond_denom)])


def unbonding_delegations_handler(
    ctx: ActionContext, payload: Payload
) -> UnbondingDelegationResponse:
    """Return a page of the delegator's unbonding delegations."""
    _log.debug("executing unbonding delegations action for %s", payload.address())
    height = ctx.get_height(payload)
    try:
        res = ctx.sources.staking_source.get_unbonding_delegations(
            height, payload.address(), payload.pagination()
        )
    except Exception as err:
        raise RuntimeError(f"error while getting delegator unbonding delegations: {err}") from err
    return _unbondings(res)


def validator_commission_amount_handler(
    ctx: ActionContext, payload: Payload
) -> ValidatorCommissionAmount:
    """Return the commission the validator earned, at the latest height."""
    _log.debug("executing validator commission action for %s", payload.address())
    height = ctx.get_height(None)
    try:
        commission = ctx.sources.distr_source.validator_commission(payload.address(), height)
    except Exception as err:
        raise RuntimeError(f"error while getting validator commission: {err}") from err
    return ValidatorCommissionAmount(coins=convert_dec_coins(commission))


def validator_delegation_handler(ctx: ActionContext, payload: Payload) -> DelegationResponse:
    """Return a page of the delegations made to the validator."""
    _log.debug("executing validator delegation action for %s", payload.address())
    height = ctx.get_height(payload)
    try:
        res = ctx.sources.staking_source.get_validator_delegations_with_pagination(
            height, payload.address(), payload.pagination()
        )
    except Exception as err:
        raise RuntimeError(f"error while getting validator delegations: {err}") from err
    return _delegations(res)


def validator_redelegations_from_handler(
    ctx: ActionContext, payload: Payload
) -> RedelegationResponse:
    """Return a page of the redelegations away from the validator."""
    _log.debug("executing validator redelegation action for %s", payload.address())
    height = ctx.get_height(payload)
    try:
        res = ctx.sources.staking_source.get_redelegations(
            height, src_validator_address=payload.address(), pagination=payload.pagination()
        )
    except Exception as err:
        raise RuntimeError(f"error while getting redelegations from validator: {err}") from err
    return _redelegations(res)


def validator_unbonding_delegations_handler(
    ctx: ActionContext, payload: Payload
) -> UnbondingDelegationResponse:
    """Return a page of the delegations being unbonded from the validator."""
    _log.debug("executing validator unbonding delegations action for %s", payload.address())
    height = ctx.get_height(payload)
    try:
        res = ctx.sources.staking_source.get_unbonding_delegations_from_validator(
            height, payload.address(), payload.pagination()
        )
    except Exception as err:
        raise RuntimeError(
            "error while getting all unbonding delegations from validator "
            f"{payload.address()}: {err}"
        ) from err
    return _unbondings(res)


_ROUTES = (
    ("/account_balance", account_balance_handler),
    ("/delegation_reward", delegation_reward_handler),
    ("/delegator_withdraw_address", delegator_withdraw_address_handler),
    ("/validator_commission_amount", validator_commission_amount_handler),
    ("/delegation", delegation_handler),
    ("/delegation_total", total_delegation_amount_handler),
    ("/unbonding_delegation", unbonding_delegations_handler),
    ("/unbonding_delegation_total", unbonding_delegations_total_handler),
    ("/redelegation", redelegation_handler),
    ("/validator_delegations", validator_delegation_handler),
    ("/validator_redelegations_from", validator_redelegations_from_handler),
    ("/validator_unbonding_delegations", validator_unbonding_delegations_handler),
)


def register_handlers(worker: ActionsWorker) -> None:
    """Register every action on its path."""
    for path, handler in _ROUTES:
        worker.register_handler(path, handler)


def run_actions(config: Optional[ActionsConfig], node: Any, sources: Any) -> None:
    """Serve the actions until SIGINT or SIGTERM, then stop the node.

    Must be called from the main thread, where signals are delivered.
    """
    port = (config or ActionsConfig()).port
    worker = ActionsWorker(ActionContext(node=node, sources=sources))
    register_handlers(worker)

    stop = threading.Event()

    def _trap(signum: int, frame: Any) -> None:
        stop.set()

    previous = {sig: signal.signal(sig, _trap) for sig in (signal.SIGTERM, signal.SIGINT)}
    server = worker.make_server(port)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        while not stop.wait(0.5):
            pass
    finally:
        server.shutdown()
        server.server_close()
        for sig, handler in previous.items():
            signal.signal(sig, handler)
        stopper = getattr(node, "stop", None)
        if callable(stopper):
            stopper()