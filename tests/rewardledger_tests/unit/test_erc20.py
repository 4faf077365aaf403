"""
Tests for the ERC20 token collaborator and the custody / minting adapters.
"""
import pytest

from rewardledger.core.contracts.erc20 import ZERO_ADDRESS, ERC20Factory
from rewardledger.core.defi.collaborators import (
    BalanceTransfer,
    RewardMinter,
    TokenCustody,
    TokenMinter,
)
from rewardledger.core.exceptions import TokenError

OWNER = "0xOwner"
LEDGER = "0xLedger"
ALICE = "0xAlice"


@pytest.fixture
def token():
    factory = ERC20Factory()
    return factory.create_token(OWNER, "Token", "TKN", initial_supply=1000, mint_to=ALICE)


class TestERC20Token:
    def test_initial_supply(self, token):
        assert token.total_supply == 1000
        assert token.balance_of(ALICE.upper()) == 1000
        assert token.events[0].from_address == ZERO_ADDRESS

    def test_transfer_and_balance_checks(self, token):
        token.transfer(ALICE, OWNER, 300)
        assert token.balance_of(OWNER) == 300

        with pytest.raises(TokenError):
            token.transfer(ALICE, OWNER, 701)
        with pytest.raises(TokenError):
            token.transfer(ALICE, ZERO_ADDRESS, 1)

    def test_transfer_from_needs_allowance(self, token):
        with pytest.raises(TokenError):
            token.transfer_from(LEDGER, ALICE, LEDGER, 10)

        token.approve(ALICE, LEDGER, 50)
        token.transfer_from(LEDGER, ALICE, LEDGER, 10)

        assert token.allowance(ALICE, LEDGER) == 40
        assert token.balance_of(LEDGER) == 10

    def test_unlimited_allowance_not_decremented(self, token):
        token.approve(ALICE, LEDGER, token.UINT256_MAX)
        token.transfer_from(LEDGER, ALICE, LEDGER, 10)
        assert token.allowance(ALICE, LEDGER) == token.UINT256_MAX

    def test_only_minter_mints(self, token):
        with pytest.raises(TokenError):
            token.mint(ALICE, ALICE, 1)

        token.set_minter(OWNER, LEDGER)
        assert token.is_minter(LEDGER)
        with pytest.raises(TokenError):
            token.mint(OWNER, ALICE, 1)
        token.mint(LEDGER, ALICE, 5)
        assert token.total_supply == 1005

    def test_only_owner_sets_minter(self, token):
        with pytest.raises(TokenError):
            token.set_minter(ALICE, ALICE)

    def test_pause_blocks_everything(self, token):
        token.pause(OWNER)
        with pytest.raises(TokenError) as exc_info:
            token.transfer(ALICE, OWNER, 1)
        assert exc_info.value.recoverable
        with pytest.raises(TokenError):
            token.require_mintable(OWNER, ALICE, 1)

        token.unpause(OWNER)
        token.transfer(ALICE, OWNER, 1)

    def test_burn(self, token):
        token.burn(ALICE, 100)
        assert token.total_supply == 900
        with pytest.raises(TokenError):
            token.burn(ALICE, 901)


class TestERC20Factory:
    def test_lookup_by_address_and_symbol(self):
        factory = ERC20Factory()
        created = factory.create_token(OWNER, "Other", "OTH")

        assert factory.get_token(created.address.upper()) is created
        assert factory.get_token_by_symbol("OTH") is created
        assert factory.list_tokens()[0]["symbol"] == "OTH"

    def test_duplicate_symbol_rejected(self):
        factory = ERC20Factory()
        factory.create_token(OWNER, "Token", "TKN")
        with pytest.raises(TokenError):
            factory.create_token(OWNER, "Token Again", "TKN")

    def test_addresses_are_deterministic(self):
        first = ERC20Factory().create_token(OWNER, "Token", "TKN")
        second = ERC20Factory().create_token(OWNER, "Token", "TKN")
        assert first.address == second.address


class TestAdapters:
    def test_custody_moves_tokens(self, token):
        factory = ERC20Factory()
        factory.deployed_tokens[token.address] = token
        custody = TokenCustody(LEDGER, factory)
        token.approve(ALICE, LEDGER, 100)

        custody.transfer_in(token.address, ALICE, 60)
        assert custody.held(token.address) == 60

        custody.transfer_out(token.address, ALICE, 20)
        assert custody.held(token.address) == 40
        assert token.balance_of(ALICE) == 960
        assert isinstance(custody, BalanceTransfer)

    def test_custody_accepts_mapping(self, token):
        custody = TokenCustody(LEDGER, {token.address: token})
        assert custody.token(token.address.upper()) is token
        with pytest.raises(TokenError):
            custody.token("0xmissing")

    def test_minter_checks_before_minting(self, token):
        minter = TokenMinter(LEDGER, token)
        assert isinstance(minter, RewardMinter)

        with pytest.raises(TokenError):
            minter.check_mint(ALICE, 1)

        token.set_minter(OWNER, LEDGER)
        minter.check_mint(ALICE, 1)
        minter.mint(ALICE, 7)
        assert token.balance_of(ALICE) == 1007
