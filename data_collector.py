"""
Data Collection Module
======================

Loads Bitcoin price history for the dashboard:
- Daily or weekly samples from the CoinGecko market_chart endpoint
- Normalization into PricePoint records (local calendar date, whole-unit price)
- Deterministic synthetic fallback when the API is unreachable

Data Sources:
- Price: CoinGecko (JPY)
"""

from dataclasses import dataclass
from datetime import date, timedelta
from typing import List, Optional
import logging

import numpy as np
import pandas as pd
import requests

from config import Config

logger = logging.getLogger(__name__)


class FetchError(Exception):
    """Network failure or malformed response body from the price API"""


class InvalidWindowError(ValueError):
    """A window length outside its inclusive bounds"""


@dataclass(frozen=True)
class PricePoint:
    """One (date, price) sample of the displayed series"""
    day: date
    price: int
    is_forecast: bool = False

    @property
    def date(self) -> str:
        return format_display_date(self.day)

    def to_dict(self) -> dict:
        return {'date': self.date, 'price': self.price, 'is_forecast': self.is_forecast}


@dataclass(frozen=True)
class HistoryResult:
    """Outcome of a history load: the points plus where they came from"""
    points: List[PricePoint]
    source: str  # 'CoinGecko' or 'Fallback'
    interval: str
    error: Optional[str] = None

    @property
    def is_fallback(self) -> bool:
        return self.source == 'Fallback'


def format_display_date(day: date) -> str:
    """ja-JP short date: 2026/10/9 (no zero padding)"""
    return f"{day.year}/{day.month}/{day.day}"


def round_price(value: float) -> int:
    """Round half up to a whole currency unit"""
    return int(np.floor(float(value) + 0.5))


def local_today(tz: str = None) -> date:
    """Today's calendar date in the dashboard timezone"""
    return pd.Timestamp.now(tz=tz or Config.DATA_COLLECTION['timezone']).date()


def validate_days(value, lower: int, upper: int, name: str) -> int:
    """Reject window lengths outside [lower, upper]"""
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
        raise InvalidWindowError(f"{name} must be an integer, got {value!r}")
    if not lower <= value <= upper:
        raise InvalidWindowError(f"{name} must be in [{lower}, {upper}], got {value}")
    return int(value)


def validate_historical_days(historical_days) -> int:
    return validate_days(
        historical_days,
        Config.WINDOW['historical_min'],
        Config.WINDOW['historical_max'],
        'historical_days'
    )


def resolve_interval(historical_days: int) -> str:
    """Weekly samples beyond the daily threshold, daily otherwise"""
    if historical_days > Config.DATA_COLLECTION['weekly_threshold_days']:
        return 'weekly'
    return 'daily'


def parse_market_chart(payload, historical_days: int, tz: str = None) -> List[PricePoint]:
    """
    Convert a market_chart body into historical PricePoints

    The body is treated as a whole: any malformed pair fails the response.

    Args:
        payload: Decoded JSON body ({'prices': [[timestamp_ms, price], ...]})
        historical_days: Maximum number of (most recent) samples to keep
        tz: Timezone used to derive calendar dates

    Returns:
        Time-ascending list of PricePoint with is_forecast=False
    """
    if not isinstance(payload, dict) or not isinstance(payload.get('prices'), list):
        raise FetchError("Response body has no 'prices' list")

    rows = payload['prices']
    if len(rows) == 0:
        raise FetchError("Response contained no price samples")

    try:
        df = pd.DataFrame({
            'timestamp': [x[0] for x in rows],
            'price': [x[1] for x in rows]
        })
    except (TypeError, IndexError, KeyError) as e:
        raise FetchError(f"Malformed price pair: {e}") from e

    try:
        for c in ['timestamp', 'price']:
            df[c] = pd.to_numeric(df[c], errors='coerce')
        values = df[['timestamp', 'price']].to_numpy(dtype=float)
    except (TypeError, ValueError) as e:
        raise FetchError(f"Malformed price pair: {e}") from e

    if not np.isfinite(values).all():
        raise FetchError("Non-numeric timestamp or price in response")
    if (df['price'] < 0).any():
        raise FetchError("Negative price in response")

    df = df.sort_values('timestamp', kind='mergesort').tail(historical_days)
    try:
        days = (
            pd.to_datetime(df['timestamp'], unit='ms', utc=True)
            .dt.tz_convert(tz or Config.DATA_COLLECTION['timezone'])
            .dt.date
        )
    except (ValueError, OverflowError, pd.errors.OutOfBoundsDatetime) as e:
        raise FetchError(f"Timestamp out of range: {e}") from e

    points = [
        PricePoint(day=d, price=round_price(p), is_forecast=False)
        for d, p in zip(days, df['price'])
    ]

    # The latest price anchors the forecast, so it must be positive
    if points[-1].price <= 0:
        raise FetchError(f"Latest price rounds to {points[-1].price}")
    return points


def fallback_series(historical_days: int, today: date = None) -> List[PricePoint]:
    """
    Deterministic synthetic history: base price + sine oscillation + bounded noise

    Prices depend only on historical_days; the last point is dated yesterday.
    """
    historical_days = validate_historical_days(historical_days)
    today = today or local_today()
    params = Config.FALLBACK

    rng = np.random.default_rng([params['seed'], historical_days])
    i = np.arange(historical_days)
    noise = rng.random(historical_days) * params['noise']
    prices = params['base_price'] + np.sin(i * params['frequency']) * params['amplitude'] + noise

    return [
        PricePoint(
            day=today - timedelta(days=historical_days - k),
            price=round_price(prices[k]),
            is_forecast=False
        )
        for k in range(historical_days)
    ]


class PriceHistoryCollector:
    """Collect Bitcoin price history from CoinGecko with a synthetic fallback"""

    def __init__(self, base_url: str = None, vs_currency: str = None, timeout: float = None):
        self.base_url = base_url or Config.API['base_url']
        self.coin_id = Config.API['coin_id']
        self.vs_currency = vs_currency or Config.API['vs_currency']
        self.timeout = timeout or Config.API['timeout_seconds']

    def fetch_history(self, historical_days: int) -> List[PricePoint]:
        """
        Fetch historical prices from CoinGecko

        Args:
            historical_days: Lookback window in days (1-365)

        Returns:
            Time-ascending list of historical PricePoint

        Raises:
            FetchError: On network failure or malformed body
        """
        historical_days = validate_historical_days(historical_days)
        url = f"{self.base_url}/coins/{self.coin_id}/market_chart"
        params = {
            'vs_currency': self.vs_currency,
            'days': historical_days,
            'interval': resolve_interval(historical_days)
        }

        try:
            response = requests.get(
                url,
                params=params,
                timeout=self.timeout,
                headers={'User-Agent': Config.API['user_agent']}
            )
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as e:
            raise FetchError(f"CoinGecko request failed: {e}") from e
        except ValueError as e:
            raise FetchError(f"CoinGecko returned invalid JSON: {e}") from e

        points = parse_market_chart(payload, historical_days)
        logger.info(f"Collected {len(points)} price records from CoinGecko ({params['interval']})")
        return points

    def load(self, historical_days: int, today: date = None) -> HistoryResult:
        """
        Load history, substituting the fallback series on any FetchError

        Window violations are not masked and propagate as InvalidWindowError.
        """
        historical_days = validate_historical_days(historical_days)
        interval = resolve_interval(historical_days)

        try:
            points = self.fetch_history(historical_days)
            return HistoryResult(points=points, source='CoinGecko', interval=interval)
        except FetchError as e:
            logger.warning(f"Price history unavailable, using fallback series: {e}")
            return HistoryResult(
                points=fallback_series(historical_days, today=today),
                source='Fallback',
                interval=interval,
                error=str(e)
            )


def load(historical_days: int) -> HistoryResult:
    """Load history with the default collector"""
    return PriceHistoryCollector().load(historical_days)
