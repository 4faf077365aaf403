"""
Deterministic scenario replay.

A scenario is a plain mapping (usually loaded from YAML) describing a ledger
deployment and an ordered list of operations, each optionally pinned to a
tick::

    config:
      emission_per_tick: 10_000_000_000_000_000_000
      base_ratio: 64
    start_tick: 0
    owner: "0xowner"
    ledger: "0xledger"
    reward_token: {name: Reward, symbol: RWD}
    tokens:
      - {name: LP Token, symbol: LP0}
    balances:
      LP0: {"0xalice": 1000}
    operations:
      - {tick: 1, op: add_pool, caller: "0xowner", asset: LP0, weight: 100}
      - {tick: 2, op: deposit_lp, participant: "0xalice", pool_id: 0, amount: 1000}
      - {tick: 6, op: claim_lp, participant: "0xalice", pool_id: 0}

Token fields accept a symbol or an address. Deposits approve the ledger for
the deposited amount first unless the step sets ``approve: false``.
Replaying the same scenario always produces the same ``to_dict()`` output.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional

import yaml

from .clock import ManualClock
from .config import LedgerConfig
from .contracts.erc20 import ERC20Factory, ERC20Token
from .defi.events import LedgerEvent
from .defi.reward_distributor import RewardDistributor
from .exceptions import ConfigurationError, LedgerError, get_error_context

logger = logging.getLogger(__name__)

DEFAULT_OWNER = "0xowner"
DEFAULT_LEDGER = "0xrewardledger"


def _as_int(value: Any, name: str) -> int:
    if isinstance(value, bool):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.replace("_", "").strip())
        except ValueError as exc:
            raise ConfigurationError(f"{name} must be an integer, got {value!r}") from exc
    raise ConfigurationError(f"{name} must be an integer, got {value!r}")


def load_scenario(path: str | Path) -> Dict[str, Any]:
    """Load a YAML scenario file into a mapping."""
    path = Path(path)
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Scenario {path} must contain a mapping")
    return data


@dataclass
class StepResult:
    """Outcome of one scenario operation."""

    index: int
    op: str
    tick: int
    ok: bool
    result: Any = None
    error: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "index": self.index,
            "op": self.op,
            "tick": self.tick,
            "ok": self.ok,
        }
        if self.ok:
            data["result"] = self.result
        else:
            data["error"] = self.error
        return data


@dataclass
class ScenarioRun:
    """Ledger, tokens and step outcomes after a replay."""

    distributor: RewardDistributor
    clock: ManualClock
    factory: ERC20Factory
    reward_token: ERC20Token
    steps: List[StepResult] = field(default_factory=list)

    @property
    def failures(self) -> List[StepResult]:
        return [step for step in self.steps if not step.ok]

    def token_balances(self) -> Dict[str, Dict[str, int]]:
        return {
            token.symbol: dict(sorted(token.balances.items()))
            for token in self.factory.deployed_tokens.values()
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "final_tick": self.clock.now(),
            "steps": [step.to_dict() for step in self.steps],
            "ledger": self.distributor.to_dict(),
            "balances": self.token_balances(),
        }


class ScenarioRunner:
    """
    Builds a fresh ledger from a scenario and replays its operations.

    With ``strict=True`` the first failing operation aborts the replay and
    its exception propagates; otherwise failures are recorded per step.
    """

    def __init__(self, scenario: Mapping[str, Any], strict: bool = False):
        if not isinstance(scenario, Mapping):
            raise ConfigurationError("Scenario must be a mapping")
        self.scenario = scenario
        self.strict = strict
        self._handlers: Dict[str, Callable[[RewardDistributor, Mapping[str, Any]], Any]] = {
            "add_pool": self._add_pool,
            "set_pool_weight": self._set_pool_weight,
            "set_base_ratio": self._set_base_ratio,
            "deposit": self._deposit,
            "deposit_lp": self._deposit_lp,
            "withdraw": self._withdraw,
            "withdraw_lp": self._withdraw_lp,
            "claim": self._claim,
            "claim_lp": self._claim_lp,
            "update_pools": self._update_pools,
            "pending": self._pending,
        }
        self._factory: Optional[ERC20Factory] = None

    # ==================== Setup ====================

    def build(self) -> ScenarioRun:
        config = LedgerConfig.from_mapping(self.scenario.get("config"))
        owner = str(self.scenario.get("owner", DEFAULT_OWNER))
        ledger_address = str(self.scenario.get("ledger", DEFAULT_LEDGER))
        clock = ManualClock(_as_int(self.scenario.get("start_tick", 0), "start_tick"))

        factory = ERC20Factory()
        self._factory = factory

        reward_def = self.scenario.get("reward_token") or {"name": "Reward", "symbol": "RWD"}
        reward_token = self._create_token(factory, owner, reward_def)
        for token_def in self.scenario.get("tokens") or []:
            self._create_token(factory, owner, token_def)

        balances = self.scenario.get("balances") or {}
        if not isinstance(balances, Mapping):
            raise ConfigurationError("Scenario balances must be a mapping of token -> holders")
        for token_ref, holders in balances.items():
            token = self._token(token_ref)
            for holder, amount in (holders or {}).items():
                token.mint(owner, str(holder), _as_int(amount, f"balances.{token_ref}"))

        # Initial balances are minted by the owner; from here on only the ledger mints
        reward_token.set_minter(owner, ledger_address)

        distributor = RewardDistributor.from_tokens(
            address=ledger_address,
            owner=owner,
            reward_token=reward_token,
            tokens=factory,
            tick_provider=clock.now,
            config=config,
        )
        return ScenarioRun(
            distributor=distributor,
            clock=clock,
            factory=factory,
            reward_token=reward_token,
        )

    def _create_token(self, factory: ERC20Factory, owner: str, token_def: Any) -> ERC20Token:
        if not isinstance(token_def, Mapping) or "symbol" not in token_def:
            raise ConfigurationError(f"Token definition needs at least a symbol: {token_def!r}")
        return factory.create_token(
            creator=owner,
            name=str(token_def.get("name", token_def["symbol"])),
            symbol=str(token_def["symbol"]),
            decimals=_as_int(token_def.get("decimals", 18), "decimals"),
        )

    def _token(self, ref: Any) -> ERC20Token:
        ref = str(ref)
        token = self._factory.get_token_by_symbol(ref) or self._factory.get_token(ref)
        if token is None:
            raise ConfigurationError(f"Unknown token {ref!r} in scenario")
        return token

    # ==================== Replay ====================

    def run(self) -> ScenarioRun:
        run = self.build()
        operations = self.scenario.get("operations") or []
        if not isinstance(operations, list):
            raise ConfigurationError("Scenario operations must be a list")

        for index, step in enumerate(operations):
            run.steps.append(self._run_step(run, index, step))

        logger.info(
            "Scenario replayed",
            extra={
                "event": "replay.completed",
                "steps": len(run.steps),
                "failures": len(run.failures),
                "final_tick": run.clock.now(),
            },
        )
        return run

    def _run_step(self, run: ScenarioRun, index: int, step: Any) -> StepResult:
        if not isinstance(step, Mapping) or "op" not in step:
            raise ConfigurationError(f"Operation #{index} must be a mapping with an 'op' key")
        op = str(step["op"])
        handler = self._handlers.get(op)
        if handler is None:
            raise ConfigurationError(f"Operation #{index}: unknown op {op!r}")

        if "tick" in step:
            tick = _as_int(step["tick"], f"operations[{index}].tick")
            if tick < run.clock.now():
                raise ConfigurationError(
                    f"Operation #{index}: tick {tick} is before tick {run.clock.now()}"
                )
            run.clock.set(tick)
        tick = run.clock.now()

        try:
            result = handler(run.distributor, step)
        except KeyError as exc:
            raise ConfigurationError(f"Operation #{index} ({op}) is missing field {exc}") from exc
        except ConfigurationError:
            raise
        except LedgerError as exc:
            logger.warning(
                "Scenario step failed",
                extra={"event": "replay.step_failed", "index": index, "op": op, **get_error_context(exc)},
            )
            if self.strict:
                raise
            return StepResult(index=index, op=op, tick=tick, ok=False, error=get_error_context(exc))

        if isinstance(result, LedgerEvent):
            result = result.to_dict()
        return StepResult(index=index, op=op, tick=tick, ok=True, result=result)

    # ==================== Operation handlers ====================

    def _approve(self, distributor: RewardDistributor, step: Mapping[str, Any], asset: str, amount: int) -> None:
        if step.get("approve", True):
            self._token(asset).approve(str(step["participant"]), distributor.address, amount)

    def _add_pool(self, distributor: RewardDistributor, step: Mapping[str, Any]) -> int:
        asset = self._token(step["asset"]).address
        return distributor.add_pool(str(step["caller"]), asset, _as_int(step["weight"], "weight"))

    def _set_pool_weight(self, distributor: RewardDistributor, step: Mapping[str, Any]) -> int:
        return distributor.set_pool_weight(
            str(step["caller"]),
            _as_int(step["pool_id"], "pool_id"),
            _as_int(step["weight"], "weight"),
        )

    def _set_base_ratio(self, distributor: RewardDistributor, step: Mapping[str, Any]) -> int:
        return distributor.set_base_ratio(str(step["caller"]), _as_int(step["ratio"], "ratio"))

    def _deposit(self, distributor: RewardDistributor, step: Mapping[str, Any]) -> LedgerEvent:
        amount = _as_int(step["amount"], "amount")
        self._approve(distributor, step, distributor.registry.reward_asset, amount)
        return distributor.deposit(str(step["participant"]), amount)

    def _deposit_lp(self, distributor: RewardDistributor, step: Mapping[str, Any]) -> LedgerEvent:
        amount = _as_int(step["amount"], "amount")
        pool = distributor.get_pool(_as_int(step["pool_id"], "pool_id"))
        self._approve(distributor, step, pool.staked_asset, amount)
        return distributor.deposit_lp(str(step["participant"]), pool.pool_id, amount)

    def _withdraw(self, distributor: RewardDistributor, step: Mapping[str, Any]) -> LedgerEvent:
        return distributor.withdraw(str(step["participant"]), _as_int(step["amount"], "amount"))

    def _withdraw_lp(self, distributor: RewardDistributor, step: Mapping[str, Any]) -> LedgerEvent:
        return distributor.withdraw_lp(
            str(step["participant"]),
            _as_int(step["pool_id"], "pool_id"),
            _as_int(step["amount"], "amount"),
        )

    def _claim(self, distributor: RewardDistributor, step: Mapping[str, Any]) -> LedgerEvent:
        return distributor.claim(str(step["participant"]))

    def _claim_lp(self, distributor: RewardDistributor, step: Mapping[str, Any]) -> LedgerEvent:
        return distributor.claim_lp(str(step["participant"]), _as_int(step["pool_id"], "pool_id"))

    def _update_pools(self, distributor: RewardDistributor, step: Mapping[str, Any]) -> None:
        distributor.update_pools()

    def _pending(self, distributor: RewardDistributor, step: Mapping[str, Any]) -> int:
        pool_id = step.get("pool_id")
        return distributor.pending_reward(
            str(step["participant"]),
            None if pool_id is None else _as_int(pool_id, "pool_id"),
        )


def replay(scenario: Mapping[str, Any], strict: bool = False) -> ScenarioRun:
    """Replay ``scenario`` against a fresh ledger."""
    return ScenarioRunner(scenario, strict=strict).run()
