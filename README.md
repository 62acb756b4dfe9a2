# bdindexer

Row types and validator storage for an indexer of a Cosmos SDK chain, and a
small JSON-over-HTTP service that answers query actions about balances,
delegations and rewards.

## Modules

| Module | Contents |
| --- | --- |
| `bdindexer.coins` | `DbCoin`, `DbDecCoin` and their parsers (`parse_db_coin`, `parse_db_coins`, `parse_db_dec_coin`, `parse_db_dec_coins`), nullable string helpers (`to_string`, `to_null_string`, `remove_empty`), `AccountRow`, `SupplyRow`, `CommunityPoolRow`, `DistributionParamsRow`, `ModuleRow`, `new_module_rows` |
| `bdindexer.chain_rows` | Genesis, consensus, average time, block, inflation, mint, slashing, staking params, staking pool, software upgrade and fee allowance rows |
| `bdindexer.gov_rows` | Governance rows (params, proposals, tally results, votes, deposits, snapshots) and price feed rows (token units, tokens, token prices) |
| `bdindexer.validator_rows` | `ValidatorData` and the rows of the validator tables |
| `bdindexer.database` | `Database` (SQLite), the validator domain types, `split_accounts` and `DatabaseError` |
| `bdindexer.actions_config` | `ActionsConfig`, `default_config`, `parse_config` |
| `bdindexer.actions_types` | `Payload`, `PayloadArgs`, `PageRequest`, the response types, `to_json_value` and `ActionContext` |
| `bdindexer.actions_metrics` | `CounterVec`, `HistogramVec` and the counters kept about executed actions |
| `bdindexer.actions_worker` | `ActionsWorker`, which dispatches action requests to handlers and serves them over HTTP |
| `bdindexer.actions_handlers` | One handler per action, `register_handlers` and `run_actions` |

All row types are frozen dataclasses and compare by value. Rows that hold a
single table row (`one_row_id`) leave that flag out of comparisons;
`ProposalRow` leaves out `content`, `TokenPriceRow` leaves out `id`, and
`ValidatorDescriptionRow.equals` leaves out the avatar URL.

## Coins

Coin lists are stored as arrays of `(denom,amount)` tuples. The parsers read
that text form (as `bytes` or `str`) back into coin objects, and
`sql_value()` gives the text form of a single coin:

```python
from bdindexer.coins import DbCoin, parse_db_coins, to_null_string, to_string

DbCoin(denom="uatom", amount="100").sql_value()   # "(uatom,100)"
parse_db_coins(b'{"(uatom,100)","(stake,5)"}')     # [DbCoin("uatom", "100"), DbCoin("stake", "5")]

to_string(to_null_string("  "))                     # "": blank strings are stored as NULL
```

## Validator storage

`Database` keeps validator data in SQLite (in memory unless a path is given).
`create_schema()` creates the tables it uses: `account`, `validator`,
`validator_info`, `validator_description`, `validator_commission`,
`validator_voting_power`, `validator_status`, `double_sign_vote`,
`double_sign_evidence` and `modules`.

```python
from bdindexer.database import Database
from bdindexer.validator_rows import ValidatorData

with Database() as db:
    db.create_schema()
    db.save_validator_data(ValidatorData(
        consensus_address="cosmosvalcons1...",
        operator_address="cosmosvaloper1...",
        consensus_pubkey="cosmosvalconspub1...",
        self_delegate_address="cosmos1...",
        max_rate="1",
        max_change_rate="2",
        height=10,
    ))
    db.get_validator("cosmosvaloper1...")
```

- `save_validators_data`, `save_validators_voting_powers` and
  `save_validators_statuses` write many rows in one statement. Updates only
  take effect when the new height is at least the stored one, so data
  arriving out of order never replaces newer data.
- `max_rate` and `max_change_rate` of a `ValidatorData` must be whole
  numbers; they are stored with 18 decimal places.
- `save_validator_description` merges a `ValidatorDescription` with the
  stored one: fields given as `"[do-not-modify]"` keep their stored value.
  `Description.ensure_length` raises `ValueError` for over-long fields.
- `save_validator_commission` keeps the stored commission or minimum self
  delegation when the new `ValidatorCommission` leaves it as `None`, and
  does nothing when both are `None`.
- `save_double_sign_evidence` stores both votes, then the evidence.
- `insert_enabled_modules` replaces the stored list of enabled modules.
- Lookups that find nothing, and failed writes, raise `DatabaseError`.

`split_accounts(accounts, params_number)` splits a list into slices small
enough for one bulk statement of at most 65535 parameters each.

## Actions service

`parse_config` reads the `actions` section of a YAML document and returns
`None` when there is none; inside the section, a missing `port` reads as 0.
`default_config()` and `ActionsConfig()` use port 3000.

```python
from bdindexer.actions_config import parse_config

config = parse_config(b"actions:\n  port: 3000\n")
```

`register_handlers(worker)` attaches every handler to its path:
`/account_balance`, `/delegation_reward`, `/delegator_withdraw_address`,
`/validator_commission_amount`, `/delegation`, `/delegation_total`,
`/unbonding_delegation`, `/unbonding_delegation_total`, `/redelegation`,
`/validator_delegations`, `/validator_redelegations_from` and
`/validator_unbonding_delegations`. A request body is a JSON object such as

```json
{"input": {"address": "cosmos1...", "height": 0, "offset": 0, "limit": 10, "count_total": false}}
```

A height of `0` means the node's latest height; the withdraw address and
validator commission actions always use the latest height.

`ActionsWorker.handle(path, body)` returns the status, content type and body
of the response, so actions can be run without a server. Over HTTP
(`make_server(port)`, `start(port)`, or `run_actions(config, node, sources)`,
which serves until SIGINT or SIGTERM and then calls the node's `stop()`):

- a result is answered with status 200 and its JSON form;
- a handler error is answered with status 400 and `{"message": "..."}`;
- a body that is not a valid payload is answered with status 500;
- an unknown path is answered with status 404.

Each action is counted in `ACTION_COUNTER` or `ACTION_ERROR_COUNTER`, and
the time of successful ones is recorded in `ACTION_RESPONSE_TIME`
(`bdindexer.actions_metrics`).

## What the package does not do

- It does not talk to a chain. `ActionContext` needs a `node` with a
  `latest_height()` method and `sources` holding `bank_source`,
  `distr_source` and `staking_source` objects; the methods they must have
  are listed in the docstring of `bdindexer.actions_handlers`.
- `Database` stores only validator data and the list of enabled modules.
  The other row types describe tables but nothing here reads or writes them.
- There is no command-line program; the service is started from Python with
  `run_actions` or `ActionsWorker.start`.
- Metrics are kept in memory and are not exported over HTTP.

## Tests

The test suite uses pytest, installed with the `test` extra:

```
pip install -e .[test]
pytest
```