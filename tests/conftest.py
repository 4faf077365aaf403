"""
Test configuration and fixtures
"""
import logging
import sys
from pathlib import Path

# Add project root and src to Python path
project_root = Path(__file__).parent.parent
src_path = project_root / "src"

sys.path.insert(0, str(project_root))
sys.path.insert(0, str(src_path))

import pytest

from rewardledger.core.clock import ManualClock
from rewardledger.core.config import LedgerConfig
from rewardledger.core.contracts.erc20 import ERC20Factory
from rewardledger.core.defi.reward_distributor import RewardDistributor

OWNER = "0xOwner"
LEDGER = "0xLedger"
PARTICIPANTS = ("0xAlice", "0xBob", "0xCarol")

START_TICK = 100
STARTING_BALANCE = 10_000 * 10**18


@pytest.fixture
def ledger_config():
    """Pinned parameters so tests never depend on REWARDLEDGER_* env vars."""
    return LedgerConfig(
        emission_per_tick=10 * 10**18,
        base_ratio=64,
        ratio_denominator=256,
        acc_precision=10**12,
    )


@pytest.fixture
def clock():
    return ManualClock(start_tick=START_TICK)


@pytest.fixture
def factory():
    return ERC20Factory()


@pytest.fixture
def reward_token(factory):
    return factory.create_token(OWNER, "Reward", "RWD")


@pytest.fixture
def lp_tokens(factory):
    return [factory.create_token(OWNER, f"LP Token {i}", f"LP{i}") for i in range(3)]


@pytest.fixture
def distributor(clock, factory, reward_token, lp_tokens, ledger_config):
    """
    Ledger at tick 100 with no pools.

    Every participant holds 10k of each token and has given the ledger an
    unlimited allowance; the ledger is the reward token's minter.
    """
    for token in [reward_token, *lp_tokens]:
        for participant in PARTICIPANTS:
            token.mint(OWNER, participant, STARTING_BALANCE)
            token.approve(participant, LEDGER, token.UINT256_MAX)
    reward_token.set_minter(OWNER, LEDGER)

    return RewardDistributor.from_tokens(
        address=LEDGER,
        owner=OWNER,
        reward_token=reward_token,
        tokens=factory,
        tick_provider=clock.now,
        config=ledger_config,
    )


@pytest.fixture
def reset_package_logger():
    """Drop handlers the CLI installs on the package logger."""
    yield
    package_logger = logging.getLogger("rewardledger")
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
    package_logger.setLevel(logging.NOTSET)
