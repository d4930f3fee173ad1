"""
Dashboard State
===============

Immutable dashboard state, the single recompute step that builds it from a
request window, the derived display figures, and the generation guard that
keeps a stale response from replacing a newer one.
"""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from datetime import date
from typing import Iterable, List, Optional, Sequence, Tuple
import logging
import threading

import pandas as pd

from config import Config
from data_collector import (
    PriceHistoryCollector,
    PricePoint,
    round_price,
    validate_historical_days,
)
from price_predictor import ForecastGenerator, validate_forecast_days

logger = logging.getLogger(__name__)


def _clamp(value, lower: int, upper: int) -> int:
    return max(lower, min(upper, int(value)))


@dataclass(frozen=True)
class RequestWindow:
    """Historical lookback and forecast horizon, both in days"""
    historical_days: int
    forecast_days: int

    def __post_init__(self):
        validate_historical_days(self.historical_days)
        validate_forecast_days(self.forecast_days)

    @classmethod
    def clamped(cls, historical_days, forecast_days) -> "RequestWindow":
        """Build a window from UI input, pulling values into range"""
        w = Config.WINDOW
        return cls(
            historical_days=_clamp(historical_days, w['historical_min'], w['historical_max']),
            forecast_days=_clamp(forecast_days, w['forecast_min'], w['forecast_max'])
        )

    @classmethod
    def default(cls) -> "RequestWindow":
        return cls(Config.WINDOW['default_historical_days'], Config.WINDOW['default_forecast_days'])


@dataclass(frozen=True)
class DashboardState:
    """Everything the page renders for one request window"""
    window: RequestWindow
    history: Tuple[PricePoint, ...]
    forecast: Tuple[PricePoint, ...]
    source: str
    generation: int = 0

    @property
    def series(self) -> List[PricePoint]:
        """Historical prefix followed by the forecast suffix"""
        return list(self.history) + list(self.forecast)

    @property
    def current_price(self) -> int:
        return self.history[-1].price

    @property
    def change_24h_pct(self) -> float:
        return price_change_24h(self.history)

    @property
    def is_fallback(self) -> bool:
        return self.source == 'Fallback'


def recompute(
    window: RequestWindow,
    collector: PriceHistoryCollector = None,
    generator: ForecastGenerator = None,
    rng=None,
    today: date = None,
    generation: int = 0
) -> DashboardState:
    """
    Rebuild the full series from scratch for `window`

    Args:
        window: Request window
        collector: History loader (default collector if None)
        generator: Forecast generator (configured constants if None)
        rng: Random source for the forecast
        today: Reference date for fallback and forecast dates
        generation: Request token recorded on the resulting state

    Returns:
        New DashboardState
    """
    collector = collector or PriceHistoryCollector()
    generator = generator or ForecastGenerator()

    result = collector.load(window.historical_days, today=today)
    last_price = result.points[-1].price
    forecast = generator.predict(last_price, window.forecast_days, rng=rng, today=today)

    return DashboardState(
        window=window,
        history=tuple(result.points),
        forecast=tuple(forecast),
        source=result.source,
        generation=generation
    )


def percent_change(new: float, old: float) -> float:
    if not old:
        return 0.0
    return (new - old) / old * 100


def price_change_24h(history: Sequence[PricePoint]) -> float:
    """Percent change between the last two historical points (0 if fewer)"""
    if len(history) < 2:
        return 0.0
    return percent_change(history[-1].price, history[-2].price)


def format_currency(value: float) -> str:
    """¥15,030,015 (grouped, no decimals)"""
    amount = round_price(value)
    sign = '-' if amount < 0 else ''
    return f"{sign}{Config.DISPLAY['currency_symbol']}{abs(amount):,}"


def format_change(pct: float) -> str:
    return f"{'+' if pct >= 0 else ''}{pct:.2f}%"


def forecast_table(current_price: float, forecast: Iterable[PricePoint]) -> pd.DataFrame:
    """
    Forecast rows with the change against the previous point

    The first forecast step is compared with `current_price`.
    """
    rows = []
    previous = current_price
    for point in forecast:
        change = percent_change(point.price, previous)
        rows.append({
            'date': point.date,
            'price': point.price,
            'formatted_price': format_currency(point.price),
            'change_pct': change,
            'formatted_change': format_change(change)
        })
        previous = point.price

    return pd.DataFrame(
        rows,
        columns=['date', 'price', 'formatted_price', 'change_pct', 'formatted_change']
    )


def series_frame(state: DashboardState) -> pd.DataFrame:
    """Combined series for the chart"""
    return pd.DataFrame(
        [p.to_dict() for p in state.series],
        columns=['date', 'price', 'is_forecast']
    )


class RefreshCoordinator:
    """
    Only the most recently issued request may update the visible state

    Each request takes a generation ticket; a completion carrying an older
    ticket is discarded.
    """

    def __init__(
        self,
        collector: PriceHistoryCollector = None,
        generator: ForecastGenerator = None,
        max_workers: int = 2
    ):
        self.collector = collector or PriceHistoryCollector()
        self.generator = generator or ForecastGenerator()
        self.max_workers = max_workers

        self._lock = threading.Lock()
        self._generation = 0
        self._state: Optional[DashboardState] = None
        self._executor: Optional[ThreadPoolExecutor] = None

    @property
    def state(self) -> Optional[DashboardState]:
        with self._lock:
            return self._state

    @property
    def latest_generation(self) -> int:
        with self._lock:
            return self._generation

    def begin(self, window: RequestWindow) -> int:
        """Issue a new ticket; every earlier ticket becomes stale"""
        with self._lock:
            self._generation += 1
            ticket = self._generation
        logger.debug(f"Request #{ticket} issued for {window}")
        return ticket

    def complete(self, ticket: int, state: DashboardState) -> bool:
        """Apply `state` if `ticket` is still the latest; return whether it was applied"""
        with self._lock:
            if ticket != self._generation:
                logger.debug(f"Dropping stale response #{ticket} (latest #{self._generation})")
                return False
            self._state = state
            return True

    def refresh(self, window: RequestWindow, rng=None, today: date = None) -> Optional[DashboardState]:
        """Recompute synchronously and return the visible state afterwards"""
        ticket = self.begin(window)
        state = recompute(
            window,
            collector=self.collector,
            generator=self.generator,
            rng=rng,
            today=today,
            generation=ticket
        )
        self.complete(ticket, state)
        return self.state

    def submit(self, window: RequestWindow, rng=None, today: date = None) -> Future:
        """Recompute in the background; the future resolves to whether the result was applied"""
        ticket = self.begin(window)
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=self.max_workers)
            executor = self._executor

        def _run() -> bool:
            state = recompute(
                window,
                collector=self.collector,
                generator=self.generator,
                rng=rng,
                today=today,
                generation=ticket
            )
            return self.complete(ticket, state)

        return executor.submit(_run)

    def shutdown(self):
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
