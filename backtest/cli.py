"""Command line entry point for block-strategy backtests.

Usage:
  # preset strategy on a US ticker
  python -m backtest.cli backtest --symbol AAPL --preset dip_buyer --start 2023-01-01 --end 2023-12-31

  # YAML config (``backtest:`` + ``strategy:`` sections), flags override
  python -m backtest.cli --config configs/backtest.yaml backtest --initial 50000

  # offline data
  python -m backtest.cli backtest --symbol TEST --preset rsi_reversion --data-csv prices.csv

  # only check the strategy
  python -m backtest.cli --config configs/backtest.yaml validate
"""
from __future__ import annotations

import argparse
import csv
import json
import os
import sys
from typing import Any, Dict, List, Optional

import yaml

from blocks.models import Block
from blocks.presets import PRESET_STRATEGIES, get_preset_blocks, list_presets
from blocks.validator import get_validation_summary, validate_strategy
from util.config_loader import ConfigLoader
from util.logger import get_logger, setup_logging
from util.market_data_handler import MarketDataHandler, load_csv
from .backtester import order_status_counts
from .engine import BacktestEngine, run_experiments
from .errors import BacktestError
from .models import BacktestConfig, BacktestResult

logger = get_logger(__name__)

DEFAULT_INITIAL = 10_000.0

_PERCENT_METRICS = {'total_return_percent', 'max_drawdown_percent', 'win_rate'}


def fail(message: str) -> None:
    print(f"Error: {message}")
    sys.exit(1)


def load_yaml_config(config_path: str, loader: Optional[ConfigLoader] = None) -> Dict[str, Any]:
    """Load the YAML config or exit with status 1."""
    loader = loader or ConfigLoader()
    try:
        config = loader.load_yaml(config_path)
    except FileNotFoundError:
        fail(f"config file not found: {config_path}")
    except yaml.YAMLError as e:
        fail(f"cannot parse YAML config: {e}")
    if not isinstance(config, dict):
        fail(f"config root must be a mapping: {config_path}")
    return config


def _provided_flags(argv: Optional[List[str]]) -> set:
    argv = sys.argv[1:] if argv is None else argv
    provided = set()
    for arg in argv:
        if arg.startswith('--'):
            provided.add(arg[2:].split('=', 1)[0].replace('-', '_'))
    return provided


def merge_config_and_args(config: Dict[str, Any], args: argparse.Namespace,
                          section: str = 'backtest', argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Fill ``args`` from ``config[section]``; flags given on the command line win."""
    section_cfg = config.get(section) or {}
    if not section_cfg:
        return args

    provided = _provided_flags(argv)
    for key, value in section_cfg.items():
        attr = key.replace('-', '_')
        if attr in provided or not hasattr(args, attr):
            continue
        current = getattr(args, attr)
        if isinstance(current, list):
            setattr(args, attr, value if isinstance(value, list) else [value])
        elif current is None or isinstance(current, (int, float, str, bool)):
            setattr(args, attr, value)
    return args


def build_blocks(config: Dict[str, Any], args: argparse.Namespace) -> List[Block]:
    """Blocks from ``--preset`` (highest priority), ``strategy.preset`` or ``strategy.blocks``."""
    strategy_cfg = config.get('strategy') or {}
    preset = getattr(args, 'preset', None) or strategy_cfg.get('preset')
    if preset:
        logger.info("Using preset strategy %s", preset)
        return get_preset_blocks(preset, args.symbol or '')

    raw_blocks = strategy_cfg.get('blocks')
    if not raw_blocks:
        fail("no strategy given: use --preset or a 'strategy:' section in the config")
    return [Block.from_dict(raw, index=i) for i, raw in enumerate(raw_blocks)]


def _load_config(args: argparse.Namespace, section: str) -> Dict[str, Any]:
    config: Dict[str, Any] = {}
    if args.config:
        config = load_yaml_config(args.config)
        args = merge_config_and_args(config, args, section, argv=args.argv)
    return config


def _make_engine(args: argparse.Namespace, validate: bool = True) -> BacktestEngine:
    settings = ConfigLoader().load_backtest_settings()
    handler = MarketDataHandler(disable_proxies=settings.disable_proxies, use_cache=settings.data_cache)
    return BacktestEngine(data_handler=handler, validate=validate,
                          allow_gap_fills=bool(getattr(args, 'gap_fills', False)))


def print_metrics(result: BacktestResult) -> None:
    print("\n" + "=" * 70)
    print("Backtest metrics")
    print("=" * 70)
    for k, v in result.metrics.as_dict().items():
        if k in _PERCENT_METRICS:
            print(f"  {k:<25}: {v:>10.2f}%")
        elif isinstance(v, float):
            print(f"  {k:<25}: {v:>10.4f}")
        else:
            print(f"  {k:<25}: {v}")

    counts = order_status_counts(result.orders)
    if counts:
        print("\n  orders: " + ", ".join(f"{status}={n}" for status, n in sorted(counts.items())))


def export_result(result: BacktestResult, config: BacktestConfig, out_dir: str, suffix: str = '') -> None:
    os.makedirs(out_dir, exist_ok=True)
    result.history_frame().to_csv(os.path.join(out_dir, f"history{suffix}.csv"), index=False, encoding='utf-8-sig')
    result.trades_frame().to_csv(os.path.join(out_dir, f"trades{suffix}.csv"), index=False, encoding='utf-8-sig')

    with open(os.path.join(out_dir, f"metrics{suffix}.csv"), 'w', newline='', encoding='utf-8-sig') as f:
        w = csv.writer(f)
        w.writerow(['metric', 'value'])
        for k, v in result.metrics.as_dict().items():
            w.writerow([k, v])

    with open(os.path.join(out_dir, f"strategy{suffix}.json"), 'w', encoding='utf-8') as f:
        json.dump(config.as_dict(), f, ensure_ascii=False, indent=2, default=str)


def cmd_backtest(args: argparse.Namespace) -> None:
    config = _load_config(args, 'backtest')
    if not args.symbol and not args.data_csv:
        fail("--symbol is required")
    if not args.data_csv and (not args.start or not args.end):
        fail("--start and --end are required unless --data-csv is given")

    try:
        blocks = build_blocks(config, args)
        bars = load_csv(args.data_csv) if args.data_csv else None
        if bars is not None:
            if not bars:
                fail(f"no bars in {args.data_csv}")
            args.start = args.start or str(bars[0].date.date())
            args.end = args.end or str(bars[-1].date.date())
        bt_config = BacktestConfig(symbol=args.symbol or 'CSV', start_date=args.start, end_date=args.end,
                                   initial_capital=float(args.initial if args.initial is not None else DEFAULT_INITIAL),
                                   blocks=blocks)
        engine = _make_engine(args, validate=not args.no_validate)
        result = engine.run(bt_config, bars=bars)
    except (BacktestError, ValueError) as e:
        fail(str(e))

    print_metrics(result)

    if args.plot:
        from .visualize import plot_equity
        save_path = os.path.join(args.export, 'equity.png') if args.export else None
        plot_equity(result.history_frame(), save_path=save_path, title=f"{bt_config.symbol} equity")

    if args.export:
        export_result(result, bt_config, args.export)
        print(f"\nExported to {args.export}")


def cmd_validate(args: argparse.Namespace) -> None:
    config = _load_config(args, 'backtest')
    try:
        blocks = build_blocks(config, args)
    except ValueError as e:
        fail(str(e))

    result = validate_strategy(blocks)
    print(get_validation_summary(result))
    for issue in result.errors:
        print(f"  ERROR   [{issue.block_id} {issue.block_type}] {issue.message}")
    for issue in result.warnings:
        print(f"  WARNING [{issue.block_id} {issue.block_type}] {issue.message}")
    if not result.valid:
        sys.exit(1)


def cmd_list_presets(_args: argparse.Namespace) -> None:
    print("\nAvailable preset strategies:")
    print("=" * 70)
    for name in list_presets():
        print(f"  {name:<20}: {PRESET_STRATEGIES[name]['description']}")
    print()


def cmd_experiments(args: argparse.Namespace) -> None:
    _load_config(args, 'experiments')
    if not args.symbol or not args.start or not args.end or not args.presets:
        fail("--symbol, --start, --end and --presets are required")

    names = [s.strip() for s in args.presets.split(',') if s.strip()]
    initial = float(args.initial if args.initial is not None else DEFAULT_INITIAL)
    try:
        configs = [BacktestConfig(symbol=args.symbol, start_date=args.start, end_date=args.end,
                                  initial_capital=initial, blocks=get_preset_blocks(name, args.symbol))
                   for name in names]
        settings = ConfigLoader().load_backtest_settings()
        handler = MarketDataHandler(disable_proxies=settings.disable_proxies, use_cache=settings.data_cache)
        runs = run_experiments(configs, data_handler=handler, allow_gap_fills=args.gap_fills)
    except (BacktestError, ValueError) as e:
        fail(str(e))

    print("\n" + "=" * 70)
    print("Experiment summary")
    print("=" * 70)
    for name, run in zip(names, runs):
        m = run['result'].metrics
        print(f"  {name:<16}: return {m.total_return_percent:>8.2f}% | Sharpe {m.sharpe_ratio:>6.2f} "
              f"| MDD {m.max_drawdown_percent:>6.2f}% | trades {m.total_trades}")

    if args.plot:
        from .visualize import compare_equity
        save_path = os.path.join(args.export, 'equity_compare.png') if args.export else None
        compare_equity([{'label': name, 'history': run['result'].history_frame()}
                        for name, run in zip(names, runs)], save_path=save_path)

    if args.export:
        for name, run in zip(names, runs):
            export_result(run['result'], run['config'], args.export, suffix=f"_{name}")
        print(f"\nExported to {args.export}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Block strategy backtester",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument('--config', type=str, help='YAML config file (optional)')
    parser.add_argument('--log-level', type=str, default=None, help='DEBUG / INFO / WARNING / ERROR')
    parser.add_argument('--log-file', type=str, default=None, help='also log to this file')

    sub = parser.add_subparsers(dest="command", required=True)

    def add_strategy_args(p: argparse.ArgumentParser) -> None:
        p.add_argument('--symbol', type=str, help='ticker; six digits means an A-share code')
        p.add_argument('--preset', type=str, help='preset strategy (overrides the config strategy)')

    # ---------- backtest ----------
    p_bt = sub.add_parser("backtest", help="run a backtest")
    add_strategy_args(p_bt)
    p_bt.add_argument('--start', type=str, help='start date YYYY-MM-DD')
    p_bt.add_argument('--end', type=str, help='end date YYYY-MM-DD')
    p_bt.add_argument('--initial', type=float, default=None, help=f'initial capital (default {DEFAULT_INITIAL:g})')
    p_bt.add_argument('--data-csv', type=str, help='read bars from a CSV instead of akshare')
    p_bt.add_argument('--gap-fills', action='store_true', help='fill gapped stop/limit orders at the open')
    p_bt.add_argument('--no-validate', action='store_true', help='skip strategy validation')
    p_bt.add_argument('--plot', action='store_true', help='plot the equity curve')
    p_bt.add_argument('--export', nargs='?', const='results/backtest', help='export directory')
    p_bt.set_defaults(func=cmd_backtest)

    # ---------- validate ----------
    p_val = sub.add_parser("validate", help="validate a strategy without running it")
    add_strategy_args(p_val)
    p_val.set_defaults(func=cmd_validate)

    # ---------- experiments ----------
    p_exp = sub.add_parser("experiments", help="compare several presets on one symbol")
    p_exp.add_argument('--symbol', type=str)
    p_exp.add_argument('--start', type=str)
    p_exp.add_argument('--end', type=str)
    p_exp.add_argument('--presets', type=str, help='comma separated preset names')
    p_exp.add_argument('--initial', type=float, default=None)
    p_exp.add_argument('--gap-fills', action='store_true')
    p_exp.add_argument('--plot', action='store_true')
    p_exp.add_argument('--export', nargs='?', const='results/experiments')
    p_exp.set_defaults(func=cmd_experiments)

    # ---------- list-presets ----------
    p_list = sub.add_parser("list-presets", help="list bundled preset strategies")
    p_list.set_defaults(func=cmd_list_presets)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    args.argv = sys.argv[1:] if argv is None else list(argv)

    settings = ConfigLoader().load_backtest_settings()
    setup_logging(level=args.log_level or settings.log_level, log_file=args.log_file or settings.log_file)
    args.func(args)


if __name__ == '__main__':
    main()
