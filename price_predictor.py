"""
Price Predictor
===============

Short-horizon Bitcoin forecast using a bounded random walk with a small
upward bias. Every step perturbs the same anchor price (the walk does not
compound on previous forecast values) and is scaled by an exponential trend.

The random source is injected so forecasts can be reproduced in tests:
anything exposing random() -> float in [0, 1) works (numpy Generator,
random.Random).
"""

from datetime import date, timedelta
from typing import List
import logging

import numpy as np

from config import Config
from data_collector import PricePoint, local_today, round_price, validate_days

logger = logging.getLogger(__name__)


def validate_forecast_days(forecast_days) -> int:
    return validate_days(
        forecast_days,
        Config.WINDOW['forecast_min'],
        Config.WINDOW['forecast_max'],
        'forecast_days'
    )


class ForecastGenerator:
    """
    Random-walk forecaster around the last observed price
    """

    def __init__(
        self,
        volatility: float = None,
        daily_trend: float = None,
        growth_per_step: float = None
    ):
        """
        Args:
            volatility: Full width of the uniform noise band (0.03 = ±1.5%)
            daily_trend: Constant upward bias added to every step
            growth_per_step: Exponential trend base applied as base**i
        """
        self.volatility = Config.FORECAST['volatility'] if volatility is None else volatility
        self.daily_trend = Config.FORECAST['daily_trend'] if daily_trend is None else daily_trend
        self.growth_per_step = (
            Config.FORECAST['growth_per_step'] if growth_per_step is None else growth_per_step
        )

    def step_price(self, last_price: float, step: int, uniform: float) -> int:
        """Price for forecast step `step` (1-based) given one U(0,1) draw"""
        random_factor = (uniform - 0.5) * self.volatility
        price = last_price * (1 + self.daily_trend + random_factor) * self.growth_per_step ** step
        return round_price(price)

    def predict(
        self,
        last_price: float,
        forecast_days: int,
        rng=None,
        today: date = None
    ) -> List[PricePoint]:
        """
        Generate forecast points for the next `forecast_days` days

        Args:
            last_price: Anchor price (last historical close), must be > 0
            forecast_days: Horizon in days (1-90)
            rng: Random source with random(); unseeded numpy Generator if None
            today: Reference date; the first point is today + 1 day

        Returns:
            List of PricePoint with is_forecast=True, one per day
        """
        if (
            isinstance(last_price, bool)
            or not isinstance(last_price, (int, float, np.number))
            or not np.isfinite(last_price)
            or last_price <= 0
        ):
            raise ValueError(f"last_price must be a positive number, got {last_price!r}")
        forecast_days = validate_forecast_days(forecast_days)

        rng = rng if rng is not None else np.random.default_rng()
        today = today or local_today()

        forecast = [
            PricePoint(
                day=today + timedelta(days=i),
                price=self.step_price(last_price, i, float(rng.random())),
                is_forecast=True
            )
            for i in range(1, forecast_days + 1)
        ]

        logger.debug(f"Generated {len(forecast)} forecast points from anchor {last_price:,.0f}")
        return forecast


def generate_forecast(last_price: float, forecast_days: int, rng=None, today: date = None) -> List[PricePoint]:
    """Forecast with the configured volatility/trend constants"""
    return ForecastGenerator().predict(last_price, forecast_days, rng=rng, today=today)
