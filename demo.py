#!/usr/bin/env python3
"""
demo.py - Walkthrough: a collateralized position from deposit to liquidation

Each step builds on the previous one. Press Enter to advance.

WHAT YOU'LL SEE:
  1-2: Setup        - Tokens, price feeds, handing the credit token to the engine
  3-4: Borrowing    - Deposit, draw credit, the health factor guard
  5-6: Market crash - Price drop, liquidation with a 10% bonus
  7:   Audit        - Operation log and solvency report

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

import sys

from debt_engine import (
    AssetLedger, StaticPriceFeed, CollateralDebtEngine,
    BreaksHealthFactor, to_fixed, format_usd, format_health_factor, from_fixed,
)


QUICK = "--quick" in sys.argv


def wait_for_enter():
    if not QUICK:
        input("\n  [Enter] to continue...")


def step_header(number: int, title: str):
    print()
    print("=" * 70)
    print(f"  STEP {number}: {title}")
    print("=" * 70)


def show_account(engine: CollateralDebtEngine, user: str):
    info = engine.account_information(user)
    print(f"  {user:<10} collateral {format_usd(info.collateral_value_usd):>12}   "
          f"debt {format_usd(info.total_debt):>12}   "
          f"health {format_health_factor(engine.health_factor(user)):>8}   "
          f"[{engine.account_status(user).value}]")


def main():
    step_header(1, "Collateral tokens and price feeds")
    chain = AssetLedger("chain", test_mode=True)
    weth = chain.register_unit("WETH", "Wrapped Ether", 18)
    wbtc = chain.register_unit("WBTC", "Wrapped Bitcoin", 8)
    credit = chain.register_credit_unit("DSC", "Stable Credit", owner="deployer")
    eth_feed = StaticPriceFeed(to_fixed("2000", 8))
    btc_feed = StaticPriceFeed(to_fixed("30000", 8))
    print("  WETH @ $2,000 (18 decimals), WBTC @ $30,000 (8 decimals)")
    wait_for_enter()

    step_header(2, "The engine takes over credit issuance")
    engine = CollateralDebtEngine([weth, wbtc], [eth_feed, btc_feed], credit, verbose=True)
    credit.transfer_ownership("deployer", engine.address)
    print(f"  {engine!r}")
    print(f"  credit owner: {credit.owner}")
    wait_for_enter()

    step_header(3, "alice deposits 10 WETH and draws $8,000")
    weth.mint("alice", to_fixed("10"))
    weth.approve("alice", engine.address, to_fixed("10"))
    engine.deposit_and_issue("alice", "WETH", to_fixed("10"), to_fixed("8000"))
    show_account(engine, "alice")
    wait_for_enter()

    step_header(4, "Asking for more than half the collateral value is refused")
    try:
        engine.issue_credit("alice", to_fixed("2500"))
    except BreaksHealthFactor as e:
        print(f"  refused: health factor would be {format_health_factor(e.health_factor)}")
    show_account(engine, "alice")
    wait_for_enter()

    step_header(5, "ETH falls to $1,500")
    eth_feed.update_answer(to_fixed("1500", 8))
    show_account(engine, "alice")

    wbtc.mint("keeper", to_fixed("1", 8))
    wbtc.approve("keeper", engine.address, to_fixed("1", 8))
    engine.deposit_and_issue("keeper", "WBTC", to_fixed("1", 8), to_fixed("5000"))
    show_account(engine, "keeper")
    wait_for_enter()

    step_header(6, "keeper repays $5,000 of alice's debt")
    credit.approve("keeper", engine.address, to_fixed("5000"))
    plan = engine.liquidate("keeper", "WETH", "alice", to_fixed("5000"))
    print(f"  seized {from_fixed(plan.seized_native)} WETH + bonus {from_fixed(plan.bonus_native)} WETH")
    print(f"  keeper now holds {from_fixed(weth.balance_of('keeper'))} WETH "
          f"(worth {format_usd(engine.usd_value('WETH', weth.balance_of('keeper')))})")
    show_account(engine, "alice")
    wait_for_enter()

    step_header(7, "Audit trail")
    for record in engine.operation_log:
        print(f"  {record!r}")
    report = engine.verify_solvency()
    print(f"  solvent: {report['valid']}   collateral {format_usd(report['total_collateral_value_usd'])}"
          f"   debt {format_usd(report['total_debt'])}   credit supply {format_usd(report['credit_supply'])}")


if __name__ == "__main__":
    main()
