#!/usr/bin/env python3
"""CLI entrypoint for the simulated stock-trading session.

Usage::

    python run_trading.py
    python run_trading.py --config config/demo.yaml --log-level DEBUG
    python run_trading.py --no-persist

Prices tick in the background while commands are read from stdin. Type
``help`` at the prompt for the command list.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from models.config import AppConfig
from models.market import ChartPeriod
from simulation.errors import TradeRejected, UnknownInstrument
from simulation.session import TradingSession, build_session

logger = logging.getLogger(__name__)

_HELP = """\
Commands:
  list                 instruments passing the sector filter
  sectors              available sectors
  sector <name|all>    filter the instrument list
  select <id>          focus an instrument (fetches AI commentary)
  period <name>        chart period: {periods}
  chart                print the chart bars for the focused instrument
  qty <lots>           set the trade quantity (1 lot = 100 shares)
  buy | sell           trade the focused instrument
  portfolio            balance, holdings and unrealized profit
  flash                market flash feed
  tip                  AI commentary for the focused instrument
  reset                restore the starting balance and clear holdings
  quit
""".format(periods=", ".join(p.value for p in ChartPeriod))


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Run an interactive simulated stock-trading session.",
    )
    parser.add_argument(
        "--config",
        default=None,
        type=str,
        help="Path to the YAML configuration file (default: built-in defaults).",
    )
    parser.add_argument(
        "--no-persist",
        action="store_true",
        help="Keep the account in memory only.",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity (default: WARNING).",
    )
    return parser.parse_args()


def _setup_logging(level: str) -> None:
    """Configure root logger with a clean format."""
    logging.basicConfig(
        level=getattr(logging, level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )


def _print_instrument_list(session: TradingSession) -> None:
    for inst in session.visible_instruments():
        marker = "*" if inst.id == session.selected_id else " "
        print(
            f"{marker} {inst.id:<10} {inst.code} {inst.name:<36} "
            f"{inst.price:>9.2f} {inst.change_percent:>+7.2f}%  {inst.sector}"
        )


def _print_portfolio(session: TradingSession) -> None:
    valuation = session.valuation()
    print(f"Balance: {valuation.balance:,.2f}   Market value: {valuation.market_value:,.2f}")
    if not valuation.holdings:
        print("No holdings yet.")
        return
    for h in valuation.holdings:
        print(
            f"  {h.name} ({h.code})  qty {h.quantity}  cost {h.average_cost:.2f}  "
            f"price {h.current_price:.2f}  P&L {h.profit:+,.2f} ({h.profit_percent:+.2f}%)"
        )


def _print_chart(session: TradingSession) -> None:
    bars = session.chart()
    if not bars:
        print(f"No {session.chart_period.value} data yet.")
        return
    for bar in bars:
        print(
            f"  {bar.time}  O {bar.open:.2f}  H {bar.high:.2f}  "
            f"L {bar.low:.2f}  C {bar.close:.2f}  V {bar.volume}"
        )


def _handle(session: TradingSession, command: str, arg: str) -> bool:
    """Execute one command. Returns ``False`` when the session should end."""
    if command in ("quit", "exit"):
        return False
    if command == "help":
        print(_HELP)
    elif command == "list":
        _print_instrument_list(session)
    elif command == "sectors":
        print(", ".join(session.sectors()))
    elif command == "sector":
        session.select_sector(None if arg in ("", "all") else arg)
    elif command == "select":
        session.select_instrument(arg)
        inst = session.selected_instrument()
        print(f"Selected {inst.name} ({inst.code}) at {inst.price:.2f}")
    elif command == "period":
        session.select_chart_period(arg)
    elif command == "chart":
        _print_chart(session)
    elif command == "qty":
        session.set_trade_quantity(arg)
        amount = session.estimated_amount()
        if amount is not None:
            print(f"Estimated amount: {amount:,.2f}")
    elif command in ("buy", "sell"):
        receipt = session.buy() if command == "buy" else session.sell()
        print(
            f"{receipt.side.title()} {receipt.shares} shares at {receipt.price:.2f} "
            f"({receipt.amount:,.2f}). Balance: {receipt.balance_after:,.2f}"
        )
    elif command == "portfolio":
        _print_portfolio(session)
    elif command == "flash":
        for item in session.market_flash():
            print(f"  {item.name} {item.headline} ({item.change_percent:+.2f}%)")
    elif command == "tip":
        print(f'"{session.commentary}"')
    elif command == "reset":
        state = session.reset_account()
        print(f"Account reset. Balance: {state.balance:,.2f}")
    else:
        print(f"Unknown command '{command}'. Type 'help' for the list.")
    return True


def _run_command(session: TradingSession, line: str) -> bool:
    """Parse and execute one input line, reporting failures without ending the session."""
    command, _, arg = line.strip().partition(" ")
    if not command:
        return True
    try:
        return _handle(session, command.lower(), arg.strip())
    except (TradeRejected, UnknownInstrument, ValueError) as exc:
        print(f"Rejected: {exc}")
    except OSError as exc:
        logger.error("Could not save the account record: %s", exc)
        print(f"Rejected: could not save the account ({exc}).")
    return True


async def _main() -> None:
    args = _parse_args()
    _setup_logging(args.log_level)

    config = AppConfig.from_yaml(args.config) if args.config else AppConfig()
    if args.no_persist:
        config.storage.enabled = False
    logger.info("Config loaded: %d instruments, provider '%s'.",
                config.market.num_instruments, config.commentary.llm_provider)

    session = build_session(config)
    await session.start()
    print(_HELP)
    loop = asyncio.get_running_loop()
    try:
        while True:
            try:
                line = await loop.run_in_executor(None, input, "> ")
            except EOFError:
                break
            if not _run_command(session, line):
                break
    finally:
        await session.aclose()


def main() -> None:
    asyncio.run(_main())


if __name__ == "__main__":
    main()
