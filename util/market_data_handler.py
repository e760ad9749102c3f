import os
from contextlib import contextmanager
from typing import Dict, List, Optional

import akshare as ak
import pandas as pd

from backtest.errors import DataSourceError
from backtest.models import Bar
from util.logger import get_logger

logger = get_logger(__name__)

_PROXY_VARS = ('HTTP_PROXY', 'HTTPS_PROXY', 'http_proxy', 'https_proxy')

# akshare A-share column names
_A_SHARE_COLUMNS = {
    '日期': 'date',
    '开盘': 'open',
    '收盘': 'close',
    '最高': 'high',
    '最低': 'low',
    '成交量': 'volume',
}


def frame_to_bars(df: pd.DataFrame) -> List[Bar]:
    """Convert an OHLCV DataFrame into time-ordered ``Bar`` objects.

    Accepts the date either as a ``date`` / ``trade_date`` column or as the
    index. Rows with a missing price are dropped.
    """
    if df is None or df.empty:
        return []
    frame = df.copy()
    if 'date' not in frame.columns:
        if 'trade_date' in frame.columns:
            frame = frame.rename(columns={'trade_date': 'date'})
        else:
            frame = frame.rename_axis('date').reset_index()
    if 'volume' not in frame.columns:
        frame['volume'] = 0.0
    frame['volume'] = frame['volume'].fillna(0)

    missing = {'open', 'high', 'low', 'close'} - set(frame.columns)
    if missing:
        raise DataSourceError(f"Price data missing columns: {sorted(missing)}")

    frame['date'] = pd.to_datetime(frame['date'])
    frame = frame.dropna(subset=['open', 'high', 'low', 'close'])
    frame = frame.sort_values('date').drop_duplicates(subset='date', keep='last')
    return [
        Bar(date=row.date, open=float(row.open), high=float(row.high), low=float(row.low),
            close=float(row.close), volume=float(row.volume))
        for row in frame.itertuples(index=False)
    ]


def load_csv(path: str) -> List[Bar]:
    """Read bars from a CSV with ``date, open, high, low, close[, volume]`` columns."""
    try:
        df = pd.read_csv(path)
    except (OSError, pd.errors.ParserError) as e:
        logger.exception("Failed to read price CSV %s", path)
        raise DataSourceError(f"Cannot read {path}: {e}") from e
    df.columns = [str(c).strip().lower() for c in df.columns]
    return frame_to_bars(df)


class MarketDataHandler:
    """
    Historical bar source backed by akshare, with an in-memory cache.

    Six-digit codes are treated as A-shares (``stock_zh_a_hist``, forward
    adjusted); anything else goes through ``stock_us_daily``.
    """

    def __init__(self, disable_proxies: bool = True, use_cache: bool = True):
        self.disable_proxies = disable_proxies
        self.use_cache = use_cache
        self.historical_data: Dict[str, List[Bar]] = {}

    @contextmanager
    def _no_proxy(self):
        """Temporarily blank proxy variables; akshare endpoints fail behind most proxies."""
        if not self.disable_proxies:
            yield
            return
        original = {k: os.environ.get(k) for k in _PROXY_VARS}
        for k in _PROXY_VARS:
            os.environ[k] = ''
        try:
            yield
        finally:
            for k, v in original.items():
                if v is None:
                    os.environ.pop(k, None)
                else:
                    os.environ[k] = v

    @staticmethod
    def is_a_share(symbol: str) -> bool:
        return len(symbol) == 6 and symbol.isdigit()

    def _fetch_frame(self, symbol: str, start: pd.Timestamp, end: pd.Timestamp) -> pd.DataFrame:
        if self.is_a_share(symbol):
            df = ak.stock_zh_a_hist(symbol=symbol, period="daily",
                                    start_date=start.strftime('%Y%m%d'),
                                    end_date=end.strftime('%Y%m%d'),
                                    adjust="qfq")
            if df is None or df.empty:
                return pd.DataFrame()
            return df.rename(columns=_A_SHARE_COLUMNS)

        df = ak.stock_us_daily(symbol=symbol.upper(), adjust="qfq")
        if df is None or df.empty:
            return pd.DataFrame()
        df['date'] = pd.to_datetime(df['date'])
        return df[(df['date'] >= start) & (df['date'] <= end)]

    def get_bars(self, symbol: str, start_date: str, end_date: str) -> List[Bar]:
        """Daily bars for ``symbol`` in ``[start_date, end_date]``; may be empty."""
        cache_key = f"{symbol}_{start_date}_{end_date}"
        if self.use_cache and cache_key in self.historical_data:
            return self.historical_data[cache_key]

        start, end = pd.to_datetime(start_date), pd.to_datetime(end_date)
        try:
            with self._no_proxy():
                logger.info("Fetching %s bars %s -> %s from akshare", symbol, start.date(), end.date())
                df = self._fetch_frame(symbol, start, end)
        except Exception as e:
            logger.exception("Failed to fetch data for %s", symbol)
            raise DataSourceError(f"Data source failed for {symbol}: {e}") from e

        bars = frame_to_bars(df)
        logger.info("Loaded %d bars for %s", len(bars), symbol)
        if self.use_cache:
            self.historical_data[cache_key] = bars
        return bars

    def clear_cache(self, symbol: Optional[str] = None) -> None:
        if symbol is None:
            self.historical_data.clear()
            return
        for key in [k for k in self.historical_data if k.startswith(f"{symbol}_")]:
            del self.historical_data[key]


__all__ = ['MarketDataHandler', 'frame_to_bars', 'load_csv']
