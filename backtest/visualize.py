from __future__ import annotations

from typing import Any, Dict, List

import matplotlib.pyplot as plt
import pandas as pd

from util.logger import get_logger

logger = get_logger(__name__)


def _finish(fig, save_path: str | None, what: str) -> None:
    if save_path:
        fig.savefig(save_path, dpi=300, bbox_inches='tight')
        plt.close(fig)
        logger.info('%s saved: %s', what, save_path)
    else:
        plt.show()


def plot_equity(history: pd.DataFrame, save_path: str | None = None, title: str = 'Equity Curve'):  # pragma: no cover
    """Equity curve plus drawdown from ``BacktestResult.history_frame()``."""
    if history.empty:
        logger.warning('Empty history, nothing to plot')
        return
    fig, (ax, ax_dd) = plt.subplots(2, 1, figsize=(10, 6), sharex=True,
                                    gridspec_kw={'height_ratios': [3, 1]})
    ax.plot(history['date'], history['equity'], label='Equity')
    ax.set_title(title)
    ax.grid(alpha=0.3)
    ax.legend()

    running_peak = history['equity'].cummax()
    drawdown = (history['equity'] / running_peak - 1) * 100
    ax_dd.fill_between(history['date'], drawdown, 0, color='tab:red', alpha=0.3)
    ax_dd.set_ylabel('Drawdown %')
    ax_dd.grid(alpha=0.3)
    fig.autofmt_xdate()
    _finish(fig, save_path, 'Equity chart')


def compare_equity(experiments: List[Dict[str, Any]], save_path: str | None = None):  # pragma: no cover
    """Overlay several runs; each item needs ``label`` and ``history`` (DataFrame)."""
    fig, ax = plt.subplots(figsize=(12, 6))
    for res in experiments:
        hist = res['history']
        if hist.empty:
            continue
        ax.plot(hist['date'], hist['equity'], label=res['label'])
    ax.set_title('Equity Comparison')
    ax.grid(alpha=0.3)
    ax.legend()
    fig.autofmt_xdate()
    _finish(fig, save_path, 'Comparison chart')


__all__ = ['plot_equity', 'compare_equity']
