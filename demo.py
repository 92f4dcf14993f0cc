#!/usr/bin/env python3
"""
demo.py - Interactive Tutorial: Borrowing Against Collateral Step by Step

A walk through the stablecoin engine. Each step builds on the previous one.
Press Enter to advance.

WHAT YOU'LL LEARN:
  1-3:  Setup        - Token ledger, collateral tokens, feeds, the engine
  4-6:  Borrowing    - Deposit, mint, the solvency guard
  7-8:  Liquidation  - A price drop, a liquidator stepping in
  9:    Accounting   - Custody, backing and conservation checks

Run:
    python demo.py             # Interactive mode (press Enter for each step)
    python demo.py --quick     # Run all steps without pausing
    python demo.py --verbose   # Also show the engine's log output
"""

from dataclasses import dataclass
from decimal import Decimal
import logging
import sys

from stablecoin import (
    Engine, TokenLedger, StaticPriceFeed,
    create_collateral_token, create_debt_token,
    to_wei, from_wei,
    BreaksHealthFactor, MAX_HEALTH_FACTOR,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the tutorial. Modify these to experiment."""
    eth_price: int = 2000
    btc_price: int = 1000
    crashed_eth_price: int = 1000

    alice_collateral: Decimal = Decimal("10")
    alice_debt: Decimal = Decimal("8000")
    alice_extra_debt: Decimal = Decimal("3000")

    liquidator_collateral: Decimal = Decimal("20")
    debt_to_cover: Decimal = Decimal("4000")


CONFIG = DemoConfig()

QUICK_MODE = "--quick" in sys.argv
ENGINE = "dsc-engine"


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def section_header(text: str):
    print(f"\n--- {text} ---\n")


def fmt_hf(health_factor: int) -> str:
    if health_factor == MAX_HEALTH_FACTOR:
        return "max (no debt)"
    return f"{from_wei(health_factor):.4f}"


def show_account(engine: Engine, user: str):
    snapshot = engine.get_account_snapshot(user)
    collateral = ", ".join(f"{from_wei(v)} {k}" for k, v in snapshot.collateral.items() if v)
    print(f"  {user:<11} collateral: {collateral or '-'}")
    print(f"  {'':<11} value:      ${from_wei(snapshot.collateral_value_usd):,.2f}")
    print(f"  {'':<11} debt:       {from_wei(snapshot.debt_minted):,.2f} DSC")
    print(f"  {'':<11} health:     {fmt_hf(snapshot.health_factor)}")


# ============================================================================
# PHASE 1: SETUP (Steps 1-3)
# ============================================================================

def step_01_token_ledger():
    step_header(1, "The Token Ledger",
        "See where token balances live and how new tokens enter circulation.")

    print("""
    Every token in this demo is a view over one TokenLedger. New tokens are
    moved out of the SYSTEM wallet, so for each token the balances across
    all wallets always sum to zero.
    """)
    chain = TokenLedger("demo")
    weth = create_collateral_token(chain, "WETH", "Wrapped Ether")
    wbtc = create_collateral_token(chain, "WBTC", "Wrapped Bitcoin")
    dsc = create_debt_token(chain, owner="deployer")
    print(f">>> {chain}")
    print(f"    units: {chain.list_units()}")
    return chain, weth, wbtc, dsc


def step_02_price_feeds():
    step_header(2, "Price Feeds",
        "Feeds report USD prices with 8 decimals; the engine lifts them to 18.")
    eth_feed = StaticPriceFeed(8, CONFIG.eth_price * 10**8)
    btc_feed = StaticPriceFeed(8, CONFIG.btc_price * 10**8)
    print(f">>> {eth_feed}")
    print(f">>> {btc_feed}")
    return eth_feed, btc_feed


def step_03_engine(weth, wbtc, dsc, eth_feed, btc_feed):
    step_header(3, "The Engine",
        "Register collateral and hand the debt token over to the engine.")
    engine = Engine([weth, wbtc], [eth_feed, btc_feed], dsc, address=ENGINE)
    dsc.transfer_ownership("deployer", ENGINE)

    print(f">>> {engine}")
    print(f"    liquidation threshold: {engine.get_liquidation_threshold()}%  (200% backing)")
    print(f"    liquidation bonus:     {engine.get_liquidation_bonus()}%")
    print(f"    feed precision lift:   x{engine.get_additional_feed_precision('WETH')}")
    print(f"    debt token owner:      {dsc.owner}")
    return engine


# ============================================================================
# PHASE 2: BORROWING (Steps 4-6)
# ============================================================================

def step_04_deposit(engine, weth):
    step_header(4, "Deposit Collateral",
        "Approve the engine, then deposit. The tokens move into custody.")
    amount = to_wei(CONFIG.alice_collateral)
    weth.mint("alice", amount)
    weth.approve("alice", ENGINE, amount)
    engine.deposit_collateral("alice", "WETH", amount)

    show_account(engine, "alice")
    print(f"\n  engine custody: {from_wei(weth.balance_of(ENGINE))} WETH")


def step_05_mint(engine):
    step_header(5, "Mint Stablecoins",
        "Borrow against the deposit while staying above health factor 1.0.")
    engine.mint("alice", to_wei(CONFIG.alice_debt))
    show_account(engine, "alice")
    print("""
    health = (collateral value x 50%) / debt
           = (20,000 x 0.5) / 8,000 = 1.25
    """)


def step_06_solvency_guard(engine):
    step_header(6, "The Solvency Guard",
        "A mint that would push the health factor below 1.0 is rejected whole.")
    try:
        engine.mint("alice", to_wei(CONFIG.alice_extra_debt))
    except BreaksHealthFactor as e:
        print(f"  REJECTED: health factor would be {fmt_hf(e.health_factor)}")
    show_account(engine, "alice")


# ============================================================================
# PHASE 3: LIQUIDATION (Steps 7-8)
# ============================================================================

def step_07_price_drop(engine, eth_feed):
    step_header(7, "Price Drop",
        "When collateral loses value, the account becomes liquidatable.")
    eth_feed.update_answer(CONFIG.crashed_eth_price * 10**8)
    print(f"  WETH: ${CONFIG.eth_price} -> ${CONFIG.crashed_eth_price}\n")
    show_account(engine, "alice")
    print(f"\n  liquidatable: {engine.health.is_liquidatable('alice')}")


def step_08_liquidation(engine, weth, dsc):
    step_header(8, "Liquidation",
        "A third party repays debt and takes collateral plus a 10% bonus.")
    amount = to_wei(CONFIG.liquidator_collateral)
    cover = to_wei(CONFIG.debt_to_cover)
    weth.mint("liquidator", amount)
    weth.approve("liquidator", ENGINE, amount)
    engine.deposit_collateral_and_mint("liquidator", "WETH", amount, cover)
    dsc.approve("liquidator", ENGINE, cover)

    result = engine.liquidate("liquidator", "WETH", "alice", cover)

    section_header("Result")
    print(f"  debt covered:      {from_wei(result.debt_covered):,.2f} DSC")
    print(f"  collateral seized: {from_wei(result.collateral_seized)} WETH "
          f"(bonus {from_wei(result.bonus_collateral)})")
    print(f"  health factor:     {fmt_hf(result.starting_health_factor)} -> "
          f"{fmt_hf(result.ending_health_factor)}\n")
    show_account(engine, "alice")
    show_account(engine, "liquidator")


# ============================================================================
# PHASE 4: ACCOUNTING (Step 9)
# ============================================================================

def step_09_accounting(engine, chain, weth, dsc):
    step_header(9, "Accounting Checks",
        "Custody matches deposits, supply matches debt, every token conserves.")
    report = chain.verify_conservation()
    print(f"  WETH in custody:      {from_wei(weth.balance_of(ENGINE))}")
    print(f"  WETH deposited:       {from_wei(engine.collateral.total_deposited('WETH'))}")
    print(f"  DSC supply:           {from_wei(dsc.total_supply()):,.2f}")
    print(f"  DSC debt recorded:    {from_wei(engine.debt.total_debt()):,.2f}")
    print(f"  conservation valid:   {report['valid']}")
    print(f"  ledger transactions:  {len(chain.transaction_log)}")
    print(f"  engine events:        {len(engine.events)}")


def main():
    if "--verbose" in sys.argv:
        logging.basicConfig(level=logging.INFO, format="  [%(name)s] %(message)s")

    print("=" * 70)
    print("       STABLECOIN ENGINE - INTERACTIVE TUTORIAL")
    print("=" * 70)

    if QUICK_MODE:
        print("Running in QUICK mode (no pauses)")
    else:
        print("Running in INTERACTIVE mode (press Enter to advance)")
    wait_for_enter()

    chain, weth, wbtc, dsc = step_01_token_ledger()
    wait_for_enter()
    eth_feed, btc_feed = step_02_price_feeds()
    wait_for_enter()
    engine = step_03_engine(weth, wbtc, dsc, eth_feed, btc_feed)
    wait_for_enter()

    step_04_deposit(engine, weth)
    wait_for_enter()
    step_05_mint(engine)
    wait_for_enter()
    step_06_solvency_guard(engine)
    wait_for_enter()

    step_07_price_drop(engine, eth_feed)
    wait_for_enter()
    step_08_liquidation(engine, weth, dsc)
    wait_for_enter()

    step_09_accounting(engine, chain, weth, dsc)

    print("""
    Next steps:
      - See stablecoin/engine.py for the operation set and guard order
      - Run tests: pytest tests/
    """)


if __name__ == "__main__":
    main()
