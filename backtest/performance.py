from __future__ import annotations

"""Performance metrics for a completed backtest.

Pure functions of the trade list and the equity curve. Standard deviation
is the population one (ddof=0); daily returns are in percent.
"""

from typing import List, Sequence, Tuple

import numpy as np

from .models import EquityPoint, OrderSide, PerformanceMetrics, Trade

TRADING_DAYS_PER_YEAR = 252
# below this the return series is treated as constant
STD_TOLERANCE = 1e-12


def compute_max_drawdown(equity_curve: Sequence[EquityPoint], initial_capital: float) -> Tuple[float, float]:
    """Largest peak-to-trough gap (currency, percent of that peak).

    The running peak starts at ``initial_capital``; the percent reported is
    the one observed at the largest absolute drawdown.
    """
    max_dd = 0.0
    max_dd_pct = 0.0
    peak = float(initial_capital)
    for point in equity_curve:
        if point.equity > peak:
            peak = point.equity
        drawdown = peak - point.equity
        if drawdown > max_dd:
            max_dd = drawdown
            max_dd_pct = drawdown / peak * 100 if peak else 0.0
    return max_dd, max_dd_pct


def compute_sharpe_ratio(daily_returns: Sequence[float],
                         trading_days_per_year: int = TRADING_DAYS_PER_YEAR) -> float:
    if len(daily_returns) == 0:
        return 0.0
    returns = np.asarray(daily_returns, dtype=float)
    std = returns.std()
    if std < STD_TOLERANCE:
        return 0.0
    return float(returns.mean() / std * np.sqrt(trading_days_per_year))


def compute_trade_metrics(trades: Sequence[Trade]) -> Tuple[float, float, int]:
    """(win rate %, profit factor, closed trade count) over SELL trades with a pnl."""
    closed: List[float] = [t.pnl for t in trades if t.side is OrderSide.SELL and t.pnl is not None]
    if not closed:
        return 0.0, 0.0, 0
    wins = [p for p in closed if p > 0]
    losses = [p for p in closed if p < 0]
    win_rate = len(wins) / len(closed) * 100
    gross_loss = abs(sum(losses))
    profit_factor = sum(wins) / gross_loss if gross_loss > 0 else 0.0
    return win_rate, profit_factor, len(closed)


def compute_performance_metrics(
    trades: Sequence[Trade],
    equity_curve: Sequence[EquityPoint],
    daily_returns: Sequence[float],
    initial_capital: float,
) -> PerformanceMetrics:
    final_equity = equity_curve[-1].equity if equity_curve else float(initial_capital)
    total_return = final_equity - initial_capital
    max_dd, max_dd_pct = compute_max_drawdown(equity_curve, initial_capital)
    win_rate, profit_factor, closed = compute_trade_metrics(trades)

    return PerformanceMetrics(
        total_return=total_return,
        total_return_percent=total_return / initial_capital * 100,
        sharpe_ratio=compute_sharpe_ratio(daily_returns),
        max_drawdown=max_dd,
        max_drawdown_percent=max_dd_pct,
        win_rate=win_rate,
        total_trades=len(trades),
        profit_factor=profit_factor,
        final_equity=final_equity,
        closed_trades=closed,
    )


__all__ = [
    'TRADING_DAYS_PER_YEAR',
    'compute_max_drawdown',
    'compute_sharpe_ratio',
    'compute_trade_metrics',
    'compute_performance_metrics',
]
