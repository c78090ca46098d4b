"""
test_engine_operations.py - Unit tests for the CollateralDebtEngine facade

Tests:
- Construction validation
- deposit / withdraw with custody moving through the asset ledger
- issue_credit / retire_credit and the health factor guard
- deposit_and_issue / withdraw_and_retire
- Read-only queries
- Operation log and verbose output
"""

import pytest

from debt_engine import (
    AssetLedger, CollateralDebtEngine, StaticPriceFeed, RiskParameters,
    AccountInformation, AccountStatus, OperationRecord,
    CollateralDeposited, CollateralRedeemed, CreditIssued, CreditRetired,
    PRECISION, MAX_HEALTH_FACTOR, MIN_HEALTH_FACTOR,
    LengthMismatch, NeedsMoreThanZero, TokenNotAllowed, BreaksHealthFactor,
    InsufficientCollateral, InsufficientDebt, InsufficientAllowance,
    StalePrice, Unauthorized,
)
from tests.fakes import build_system, fund, approve_credit, ETHER, BTC, USD


class TestConstruction:

    def test_length_mismatch(self):
        chain = AssetLedger("chain")
        weth = chain.register_unit("WETH", "Wrapped Ether", 18)
        credit = chain.register_credit_unit("DSC", "Stable Credit", owner="engine")
        with pytest.raises(LengthMismatch):
            CollateralDebtEngine([weth], [], credit)

    def test_blank_address(self):
        chain = AssetLedger("chain")
        weth = chain.register_unit("WETH", "Wrapped Ether", 18)
        credit = chain.register_credit_unit("DSC", "Stable Credit", owner="engine")
        with pytest.raises(ValueError):
            CollateralDebtEngine([weth], [StaticPriceFeed(1)], credit, address=" ")

    def test_queries(self, engine, eth_feed, credit):
        assert engine.list_assets() == ("WETH", "WBTC")
        assert engine.price_feed("WETH") is eth_feed
        assert engine.credit_token is credit
        assert engine.precision == PRECISION
        assert engine.min_health_factor == MIN_HEALTH_FACTOR
        assert engine.liquidation_threshold == 50
        assert engine.liquidation_bonus == 10

    def test_custom_parameters(self):
        system = build_system(parameters=RiskParameters(liquidation_threshold=80, liquidation_bonus=5))
        assert system.engine.liquidation_threshold == 80
        assert system.engine.calculate_health_factor(80 * USD, 100 * USD) == PRECISION


class TestDeposit:

    def test_deposit_moves_custody(self, engine, weth, alice):
        engine.deposit(alice, "WETH", 5 * ETHER)
        assert engine.collateral_balance(alice, "WETH") == 5 * ETHER
        assert weth.balance_of(alice) == 5 * ETHER
        assert weth.balance_of(engine.address) == 5 * ETHER
        assert engine.collateral_value_usd(alice) == 10_000 * USD

    def test_deposit_eight_decimal_asset(self, engine, alice):
        engine.deposit(alice, "WBTC", BTC)
        assert engine.collateral_value_usd(alice) == 1_000 * USD

    def test_zero_deposit_changes_nothing(self, engine, weth, chain, alice):
        before = chain.savepoint()
        with pytest.raises(NeedsMoreThanZero):
            engine.deposit(alice, "WETH", 0)
        assert engine.collateral_balance(alice, "WETH") == 0
        assert chain.savepoint() == before
        assert engine.operation_log == []

    def test_unknown_asset(self, engine, alice):
        with pytest.raises(TokenNotAllowed):
            engine.deposit(alice, "DOGE", ETHER)

    def test_without_approval(self, engine, weth):
        weth.mint("bob", ETHER)
        with pytest.raises(InsufficientAllowance):
            engine.deposit("bob", "WETH", ETHER)
        assert engine.collateral_balance("bob", "WETH") == 0
        assert weth.balance_of("bob") == ETHER

    def test_event_and_record(self, engine, alice):
        engine.deposit(alice, "WETH", ETHER)
        assert engine.operation_log == [
            OperationRecord(0, "deposit", alice, (CollateralDeposited(alice, "WETH", ETHER),))
        ]


class TestIssueCredit:

    def test_over_issuance_rejected(self, engine, credit, alice):
        """$20,000 collateral cannot back $15,000 of credit."""
        engine.deposit(alice, "WETH", 10 * ETHER)
        with pytest.raises(BreaksHealthFactor) as exc_info:
            engine.issue_credit(alice, 15_000 * USD)
        assert exc_info.value.health_factor == PRECISION * 2 // 3
        assert engine.account_information(alice).total_debt == 0
        assert credit.balance_of(alice) == 0

    def test_boundary_accepted(self, engine, credit, alice):
        """A health factor of exactly 1.0 is allowed."""
        engine.deposit(alice, "WETH", 10 * ETHER)
        engine.issue_credit(alice, 10_000 * USD)
        assert engine.health_factor(alice) == MIN_HEALTH_FACTOR
        assert credit.balance_of(alice) == 10_000 * USD
        assert engine.account_information(alice) == AccountInformation(10_000 * USD, 20_000 * USD)

    def test_without_collateral(self, engine):
        with pytest.raises(BreaksHealthFactor) as exc_info:
            engine.issue_credit("bob", USD)
        assert exc_info.value.health_factor == 0

    def test_zero_rejected(self, engine, alice):
        with pytest.raises(NeedsMoreThanZero):
            engine.issue_credit(alice, 0)

    def test_stale_price_blocks_issuance(self, engine, eth_feed, alice):
        engine.deposit(alice, "WETH", ETHER)
        eth_feed.stale = True
        with pytest.raises(StalePrice):
            engine.issue_credit(alice, USD)
        assert engine.total_debt() == 0

    def test_engine_must_own_credit_token(self):
        system = build_system()
        system.credit.transfer_ownership(system.engine.address, "someone_else")
        fund(system.weth, system.engine, "alice", ETHER)
        system.engine.deposit("alice", "WETH", ETHER)
        with pytest.raises(Unauthorized):
            system.engine.issue_credit("alice", USD)
        assert system.engine.total_debt() == 0


class TestWithdraw:

    def test_without_debt(self, engine, weth, alice):
        engine.deposit(alice, "WETH", 4 * ETHER)
        engine.withdraw(alice, "WETH", 4 * ETHER)
        assert engine.collateral_balance(alice, "WETH") == 0
        assert weth.balance_of(alice) == 10 * ETHER
        assert engine.account_status(alice) == AccountStatus.EMPTY

    def test_more_than_deposited(self, engine, alice):
        engine.deposit(alice, "WETH", ETHER)
        with pytest.raises(InsufficientCollateral):
            engine.withdraw(alice, "WETH", 2 * ETHER)

    def test_breaking_health_factor(self, engine, weth, alice):
        engine.deposit(alice, "WETH", 10 * ETHER)
        engine.issue_credit(alice, 5_000 * USD)
        with pytest.raises(BreaksHealthFactor):
            engine.withdraw(alice, "WETH", 6 * ETHER)
        assert engine.collateral_balance(alice, "WETH") == 10 * ETHER
        assert weth.balance_of(engine.address) == 10 * ETHER

    def test_within_health_factor(self, engine, alice):
        engine.deposit(alice, "WETH", 10 * ETHER)
        engine.issue_credit(alice, 5_000 * USD)
        engine.withdraw(alice, "WETH", 5 * ETHER)
        assert engine.health_factor(alice) == PRECISION
        assert engine.events[-1] == CollateralRedeemed(alice, alice, "WETH", 5 * ETHER)


class TestRetireCredit:

    def test_retire(self, system, engine, credit, alice):
        engine.deposit_and_issue(alice, "WETH", 10 * ETHER, 4_000 * USD)
        approve_credit(system, alice, 1_000 * USD)
        engine.retire_credit(alice, 1_000 * USD)
        assert engine.total_debt() == 3_000 * USD
        assert credit.balance_of(alice) == 3_000 * USD
        assert credit.total_supply() == 3_000 * USD
        assert credit.balance_of(engine.address) == 0
        assert engine.events[-1] == CreditRetired(alice, alice, 1_000 * USD)

    def test_more_than_owed(self, system, engine, alice):
        engine.deposit_and_issue(alice, "WETH", ETHER, 100 * USD)
        approve_credit(system, alice, 200 * USD)
        with pytest.raises(InsufficientDebt):
            engine.retire_credit(alice, 101 * USD)

    def test_without_approval_restores_debt(self, engine, credit, alice):
        engine.deposit_and_issue(alice, "WETH", ETHER, 100 * USD)
        with pytest.raises(InsufficientAllowance):
            engine.retire_credit(alice, 100 * USD)
        assert engine.account_information(alice).total_debt == 100 * USD
        assert credit.balance_of(alice) == 100 * USD

    def test_full_repayment_restores_infinite_health(self, system, engine, alice):
        engine.deposit_and_issue(alice, "WETH", ETHER, 100 * USD)
        approve_credit(system, alice, 100 * USD)
        engine.retire_credit(alice, 100 * USD)
        assert engine.health_factor(alice) == MAX_HEALTH_FACTOR
        assert engine.account_status(alice) == AccountStatus.COLLATERALIZED


class TestCombinedOperations:

    def test_deposit_and_issue(self, engine, credit, alice):
        engine.deposit_and_issue(alice, "WETH", 10 * ETHER, 5_000 * USD)
        assert engine.health_factor(alice) == 2 * PRECISION
        assert credit.balance_of(alice) == 5_000 * USD
        record = engine.operation_log[-1]
        assert record.operation == "deposit_and_issue"
        assert record.events == (
            CollateralDeposited(alice, "WETH", 10 * ETHER),
            CreditIssued(alice, 5_000 * USD),
        )

    def test_deposit_and_issue_is_atomic(self, engine, weth, alice):
        with pytest.raises(BreaksHealthFactor):
            engine.deposit_and_issue(alice, "WETH", 10 * ETHER, 10_001 * USD)
        assert engine.collateral_balance(alice, "WETH") == 0
        assert weth.balance_of(alice) == 10 * ETHER
        assert weth.allowance(alice, engine.address) == 10 * ETHER

    def test_withdraw_and_retire_full_exit(self, system, engine, weth, alice):
        engine.deposit_and_issue(alice, "WETH", 10 * ETHER, 5_000 * USD)
        approve_credit(system, alice, 5_000 * USD)
        engine.withdraw_and_retire(alice, "WETH", 10 * ETHER, 5_000 * USD)
        assert engine.account_status(alice) == AccountStatus.EMPTY
        assert weth.balance_of(alice) == 10 * ETHER
        assert engine.verify_solvency()["valid"]

    def test_withdraw_and_retire_checks_reduced_debt(self, system, engine, alice):
        engine.deposit_and_issue(alice, "WETH", 10 * ETHER, 5_000 * USD)
        approve_credit(system, alice, 2_500 * USD)
        # 2.5 ETH left backs $2,500 exactly
        engine.withdraw_and_retire(alice, "WETH", 75 * ETHER // 10, 2_500 * USD)
        assert engine.health_factor(alice) == PRECISION


class TestQueries:

    def test_conversions(self, engine):
        assert engine.usd_value("WETH", 15 * ETHER) == 30_000 * USD
        assert engine.usd_to_native_amount("WBTC", 1_000 * USD) == BTC

    def test_account_with_no_activity(self, engine):
        assert engine.health_factor("nobody") == MAX_HEALTH_FACTOR
        assert engine.account_information("nobody") == AccountInformation(0, 0)
        assert engine.account_status("nobody") == AccountStatus.EMPTY

    def test_totals(self, engine, alice):
        engine.deposit_and_issue(alice, "WETH", 2 * ETHER, 1_000 * USD)
        engine.deposit(alice, "WBTC", BTC)
        assert engine.total_debt() == 1_000 * USD
        assert engine.total_collateral_value_usd() == 5_000 * USD
        assert engine.users() == [alice]


class TestVerbose:

    def test_prints_applied_and_rejected(self, capsys):
        system = build_system(verbose=True)
        fund(system.weth, system.engine, "alice", ETHER)
        system.engine.deposit("alice", "WETH", ETHER)
        with pytest.raises(BreaksHealthFactor):
            system.engine.issue_credit("alice", 2_000 * USD)
        out = capsys.readouterr().out
        assert "✓ APPLIED: Operation(#0 deposit by alice, 1 events)" in out
        assert "✗ REJECTED: issue_credit by alice: BreaksHealthFactor" in out
