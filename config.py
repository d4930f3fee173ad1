"""
Configuration Management
========================

Centralized configuration for the Bitcoin price dashboard
"""

import json
import logging


class Config:
    """Main configuration class"""

    # Upstream price API (fixed, not read from the environment)
    API = {
        'base_url': 'https://api.coingecko.com/api/v3',
        'coin_id': 'bitcoin',
        'vs_currency': 'jpy',
        'timeout_seconds': 10,
        'user_agent': 'Mozilla/5.0'
    }

    # Data Collection Settings
    DATA_COLLECTION = {
        'weekly_threshold_days': 90,  # Above this, request weekly samples
        'timezone': 'Asia/Tokyo'  # Calendar dates are taken in this zone
    }

    # Request window bounds (inclusive)
    WINDOW = {
        'historical_min': 1,
        'historical_max': 365,
        'forecast_min': 1,
        'forecast_max': 90,
        'default_historical_days': 30,
        'default_forecast_days': 7
    }

    # Forecast heuristic
    FORECAST = {
        'volatility': 0.03,  # ±1.5% around the anchor
        'daily_trend': 0.001,
        'growth_per_step': 1.001
    }

    # Synthetic series used when the API is unreachable
    FALLBACK = {
        'base_price': 15000000,  # ~$100,000 in JPY
        'amplitude': 500000,
        'frequency': 0.2,
        'noise': 200000,
        'seed': 20240101
    }

    # Display Settings
    DISPLAY = {
        'currency_symbol': '¥',
        'historical_presets': [7, 30, 90, 365],
        'forecast_presets': [3, 7, 14, 30],
        'historical_color': '#3b82f6',
        'forecast_color': '#f97316'
    }

    # Logging Settings
    LOGGING = {
        'level': 'INFO',  # DEBUG, INFO, WARNING, ERROR
        'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    }

    @classmethod
    def load_from_file(cls, filepath: str):
        """Load configuration from JSON file"""
        with open(filepath, 'r', encoding='utf-8') as f:
            config_data = json.load(f)

        for key, value in config_data.items():
            if hasattr(cls, key):
                setattr(cls, key, value)

    @classmethod
    def save_to_file(cls, filepath: str):
        """Save configuration to JSON file"""
        config_data = {}
        for key in dir(cls):
            if not key.startswith('_') and key.isupper():
                config_data[key] = getattr(cls, key)

        with open(filepath, 'w', encoding='utf-8') as f:
            json.dump(config_data, f, indent=2, ensure_ascii=False)


def setup_logging(level: str = None):
    """Configure root logging from Config.LOGGING (console only)"""
    logging.basicConfig(
        level=getattr(logging, (level or Config.LOGGING['level']).upper()),
        format=Config.LOGGING['format'],
        handlers=[logging.StreamHandler()]
    )
