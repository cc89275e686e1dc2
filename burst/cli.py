"""
burst-dispatch command line.

  burst-dispatch burst --symbol REDUSDT --side BUY --price 0.9 --quantity 100 --at 18:00
  burst-dispatch burst --symbol REDUSDT --price 0.9 --quantity 100 --in 30
  burst-dispatch sequential --symbol REDUSDT --price 0.6 --quantity 10 --count 10 --cancel-after
  burst-dispatch time
  burst-dispatch orders --symbol REDUSDT [--account 0]
  burst-dispatch cancel --symbol REDUSDT
  burst-dispatch balances --assets RED,USDT
"""

import argparse
import asyncio
import json
import logging
import math
import sys
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

from .accounts import load_accounts
from .clock import ClockSync, format_instant
from .config import BurstConfig, parse_lead_seconds
from .errors import AccountConfigError, BurstError, ClockSyncFailed
from .models import OrderIntent, OrderType, Side, TimeInForce
from .runner import RelativeTarget, Target, TargetTime, run_scheduled_burst, run_sequential_test
from .venue.rest import SignedRestClient

logger = logging.getLogger(__name__)


def _hhmm(value: str):
    try:
        hour, minute = (int(p) for p in value.split(":"))
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected HH:MM, got {value!r}")
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise argparse.ArgumentTypeError(f"invalid time of day {value!r}")
    return hour, minute


def _non_negative(kind):
    def parse(value: str):
        try:
            number = kind(value)
        except ValueError:
            raise argparse.ArgumentTypeError(f"expected a number, got {value!r}")
        if not math.isfinite(number) or number < 0:
            raise argparse.ArgumentTypeError(f"must be a finite non-negative number, got {value}")
        return number
    return parse


def _positive_int(value: str) -> int:
    number = _non_negative(int)(value)
    if number == 0:
        raise argparse.ArgumentTypeError("must be at least 1")
    return number


def _add_order_arguments(parser: argparse.ArgumentParser):
    parser.add_argument("--symbol", required=True)
    parser.add_argument("--side", choices=[s.value for s in Side], default=Side.BUY.value)
    parser.add_argument("--price", required=True)
    parser.add_argument("--quantity", required=True)
    parser.add_argument("--type", dest="order_type", choices=[t.value for t in OrderType], default=OrderType.LIMIT.value)
    parser.add_argument("--tif", choices=[t.value for t in TimeInForce], default=TimeInForce.GTC.value)


def _add_target_arguments(parser: argparse.ArgumentParser, required: bool):
    when = parser.add_mutually_exclusive_group(required=required)
    when.add_argument("--at", type=_hhmm, metavar="HH:MM", help="target time of day")
    when.add_argument("--in", dest="in_seconds", type=_non_negative(float), metavar="SECONDS",
                      help="target this many seconds after the venue clock's now")
    parser.add_argument("--day-offset", type=_non_negative(int), default=0,
                        help="0 = today (or tomorrow if passed), 1 = tomorrow, ...")
    parser.add_argument("--tz-offset", type=int, default=None, help="target timezone as minutes east of UTC (480 = UTC+8)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="burst-dispatch", description="Time-synchronised multi-account order burst")
    parser.add_argument("--env-file", type=Path, default=None, help=".env file with BURST_* settings")
    parser.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING (default from BURST_LOG_LEVEL)")
    parser.add_argument("--accounts", default=None, help="credential JSON file (default from BURST_ACCOUNTS_FILE)")
    parser.add_argument("--account", type=int, default=None, help="use only the account at this index")
    sub = parser.add_subparsers(dest="command", required=True)

    burst = sub.add_parser("burst", help="flood orders around a target time")
    _add_order_arguments(burst)
    _add_target_arguments(burst, required=True)
    burst.add_argument("--start-offset-ms", type=_non_negative(int), default=None)
    burst.add_argument("--duration-ms", type=_non_negative(int), default=None)
    burst.add_argument("--prewarm", default=None, help="lead seconds, e.g. 30,15,5")
    burst.add_argument("--no-prewarm", action="store_true")
    burst.add_argument("--drain-timeout", type=_non_negative(float), default=None,
                       help="seconds to wait for in-flight requests")
    burst.add_argument("--cancel-first", action="store_true", help="cancel open orders for the symbol before the burst")

    sequential = sub.add_parser("sequential", help="place awaited orders one at a time from one account and time them")
    _add_order_arguments(sequential)
    _add_target_arguments(sequential, required=False)
    sequential.add_argument("--count", type=_positive_int, default=10)
    sequential.add_argument("--cancel-after", action="store_true", help="cancel open orders for the symbol afterwards")

    sub.add_parser("time", help="probe the venue clock and print the offset")

    orders = sub.add_parser("orders", help="list open orders")
    orders.add_argument("--symbol", required=True)

    cancel = sub.add_parser("cancel", help="cancel all open orders for a symbol")
    cancel.add_argument("--symbol", required=True)

    balances = sub.add_parser("balances", help="show account balances")
    balances.add_argument("--assets", default="", help="comma-separated assets, default all")

    return parser


def apply_overrides(config: BurstConfig, args: argparse.Namespace) -> BurstConfig:
    if args.accounts:
        config.accounts_file = args.accounts
    if args.log_level:
        config.log_level = args.log_level.upper()
    if args.command != "burst":
        return config

    dispatch = config.dispatch
    if args.start_offset_ms is not None:
        dispatch = replace(dispatch, start_offset_ms=args.start_offset_ms)
    if args.duration_ms is not None:
        dispatch = replace(dispatch, duration_ms=args.duration_ms)
    if args.prewarm:
        dispatch = replace(dispatch, prewarm_lead_seconds=parse_lead_seconds(args.prewarm))
    if args.no_prewarm:
        dispatch = replace(dispatch, prewarm_enabled=False)
    if args.drain_timeout is not None:
        dispatch = replace(dispatch, drain_timeout_s=args.drain_timeout)
    config.dispatch = dispatch
    return config


def _intent(args: argparse.Namespace) -> OrderIntent:
    return OrderIntent(
        symbol=args.symbol.upper(),
        side=Side(args.side),
        price=args.price,
        quantity=args.quantity,
        order_type=OrderType(args.order_type),
        time_in_force=TimeInForce(args.tif),
    )


def _target(args: argparse.Namespace) -> Optional[Target]:
    if args.at is not None:
        hour, minute = args.at
        return TargetTime(hour, minute, args.day_offset, args.tz_offset)
    if args.in_seconds is not None:
        return RelativeTarget(args.in_seconds)
    return None


async def _burst(config: BurstConfig, args: argparse.Namespace) -> int:
    accounts = load_accounts(config.accounts_file, args.account)
    result = await run_scheduled_burst(
        config, accounts, _intent(args), _target(args), cancel_open_first=args.cancel_first,
    )
    print(json.dumps(result.to_dict(), indent=2))
    return 0 if result.results or not accounts else 1


async def _sequential(config: BurstConfig, args: argparse.Namespace) -> int:
    accounts = load_accounts(config.accounts_file, args.account)
    if not accounts:
        raise AccountConfigError(f"no accounts in {config.accounts_file}")
    account = accounts[0]
    report = await run_sequential_test(
        config, account, _intent(args), args.count, _target(args), cancel_after=args.cancel_after,
    )
    print(json.dumps(report.to_dict(), indent=2))
    return 0 if report.succeeded else 1


async def _time(config: BurstConfig) -> int:
    async with SignedRestClient(config.venue) as client:
        clock = ClockSync(client, display_tz_minutes=config.schedule.tz_offset_minutes)
        offset = await clock.sync()
        print(json.dumps({
            "offset_ms": offset.offset_ms,
            "round_trip_ms": offset.round_trip_ms,
            "adjusted_now": format_instant(clock.adjusted_now(), config.schedule.tz_offset_minutes),
        }, indent=2))
    return 0


async def _account_command(config: BurstConfig, args: argparse.Namespace) -> int:
    accounts = load_accounts(config.accounts_file, args.account)
    async with SignedRestClient(config.venue) as client:
        clock = ClockSync(client)
        await clock.sync()
        client.bind_clock(clock)

        report = {}
        for account in accounts:
            try:
                if args.command == "orders":
                    report[account.name] = await client.open_orders(account, args.symbol.upper())
                elif args.command == "cancel":
                    report[account.name] = await client.cancel_open_orders(account, args.symbol.upper())
                else:
                    assets = [a.strip() for a in args.assets.split(",") if a.strip()]
                    report[account.name] = await client.balances(account, assets or None)
            except BurstError as e:
                logger.error(f"[CLI] {account.name}: {args.command} failed: {e}")
                report[account.name] = {"error": str(e)}
        print(json.dumps(report, indent=2))
    return 0


async def _dispatch(config: BurstConfig, args: argparse.Namespace) -> int:
    if args.command == "burst":
        return await _burst(config, args)
    if args.command == "sequential":
        return await _sequential(config, args)
    if args.command == "time":
        return await _time(config)
    return await _account_command(config, args)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    config = apply_overrides(BurstConfig.from_env(args.env_file), args)

    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )

    try:
        return asyncio.run(_dispatch(config, args))
    except ClockSyncFailed as e:
        logger.error(f"[CLI] clock sync failed, nothing was sent: {e}")
        return 1
    except AccountConfigError as e:
        logger.error(f"[CLI] {e}")
        return 1
    except ValueError as e:
        logger.error(f"[CLI] invalid settings: {e}")
        return 1
    except KeyboardInterrupt:
        logger.warning("[CLI] interrupted, in-flight requests abandoned")
        return 130


if __name__ == "__main__":
    sys.exit(main())
