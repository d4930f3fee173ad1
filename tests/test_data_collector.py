from datetime import date, timedelta

import pandas as pd
import pytest
import requests

import data_collector
from config import Config
from data_collector import (
    FetchError,
    InvalidWindowError,
    PriceHistoryCollector,
    PricePoint,
    fallback_series,
    format_display_date,
    parse_market_chart,
    resolve_interval,
)

TODAY = date(2026, 10, 19)


def _ms(ts: str) -> int:
    return pd.Timestamp(ts, tz="UTC").value // 10**6


class FakeResponse:
    def __init__(self, payload=None, status_code=200, json_error=None):
        self._payload = payload
        self.status_code = status_code
        self._json_error = json_error

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")

    def json(self):
        if self._json_error is not None:
            raise self._json_error
        return self._payload


def _patch_get(monkeypatch, response=None, exc=None, calls=None):
    def fake_get(url, params=None, **kwargs):
        if calls is not None:
            calls.append((url, params))
        if exc is not None:
            raise exc
        return response

    monkeypatch.setattr(data_collector.requests, "get", fake_get)


def test_resolve_interval_boundary():
    assert resolve_interval(1) == "daily"
    assert resolve_interval(90) == "daily"
    assert resolve_interval(91) == "weekly"
    assert resolve_interval(365) == "weekly"


def test_format_display_date_has_no_zero_padding():
    assert format_display_date(date(2026, 1, 5)) == "2026/1/5"
    assert PricePoint(day=date(2026, 10, 19), price=1).date == "2026/10/19"


def test_fetch_history_requests_market_chart(monkeypatch):
    calls = []
    payload = {"prices": [[_ms("2026-10-01"), 15000000.4]]}
    _patch_get(monkeypatch, FakeResponse(payload), calls=calls)

    PriceHistoryCollector().fetch_history(91)

    url, params = calls[0]
    assert url == f"{Config.API['base_url']}/coins/bitcoin/market_chart"
    assert params == {"vs_currency": "jpy", "days": 91, "interval": "weekly"}


def test_parse_market_chart_rounds_and_localizes():
    payload = {"prices": [
        [_ms("2026-10-01 00:00"), 15000000.4],
        [_ms("2026-10-01 16:00"), 15000000.5],
    ]}

    points = parse_market_chart(payload, historical_days=30)

    # 16:00 UTC is already the next day in Tokyo
    assert [p.date for p in points] == ["2026/10/1", "2026/10/2"]
    assert [p.price for p in points] == [15000000, 15000001]
    assert not any(p.is_forecast for p in points)


def test_parse_market_chart_sorts_and_keeps_most_recent():
    payload = {"prices": [
        [_ms("2026-10-03"), 300.0],
        [_ms("2026-10-01"), 100.0],
        [_ms("2026-10-02"), 200.0],
    ]}

    points = parse_market_chart(payload, historical_days=2)

    assert [p.price for p in points] == [200, 300]


def test_one_day_window_yields_one_point(monkeypatch):
    payload = {"prices": [[_ms("2026-10-18"), 100.0], [_ms("2026-10-19"), 110.0]]}
    _patch_get(monkeypatch, FakeResponse(payload))

    result = PriceHistoryCollector().load(1)

    assert result.source == "CoinGecko"
    assert [p.price for p in result.points] == [110]


@pytest.mark.parametrize("payload", [
    {},
    {"prices": None},
    {"prices": []},
    {"prices": [[1]]},
    {"prices": [[_ms("2026-10-01"), "abc"]]},
    {"prices": [[_ms("2026-10-01"), -5.0]]},
    ["not", "a", "dict"],
    {"prices": [[1e20, 5.0]]},
    {"prices": [[_ms("2026-10-01"), 0.2]]},
])
def test_parse_market_chart_rejects_malformed_body(payload):
    with pytest.raises(FetchError):
        parse_market_chart(payload, historical_days=7)


def test_load_falls_back_on_network_error(monkeypatch):
    _patch_get(monkeypatch, exc=requests.ConnectionError("offline"))

    result = PriceHistoryCollector().load(30, today=TODAY)

    assert result.is_fallback
    assert result.interval == "daily"
    assert "offline" in result.error
    assert len(result.points) == 30
    assert result.points == fallback_series(30, today=TODAY)


def test_load_falls_back_on_http_error(monkeypatch):
    _patch_get(monkeypatch, FakeResponse(status_code=429))

    result = PriceHistoryCollector().load(7, today=TODAY)

    assert result.is_fallback
    assert len(result.points) == 7


def test_load_falls_back_on_invalid_json(monkeypatch):
    _patch_get(monkeypatch, FakeResponse(json_error=ValueError("Expecting value")))

    result = PriceHistoryCollector().load(7, today=TODAY)

    assert result.is_fallback


@pytest.mark.parametrize("days", [1, 90, 91, 365])
def test_load_returns_ordered_history(monkeypatch, days):
    _patch_get(monkeypatch, exc=requests.Timeout("slow"))

    points = PriceHistoryCollector().load(days, today=TODAY).points

    assert len(points) >= 1
    assert all(not p.is_forecast for p in points)
    assert all(a.day <= b.day for a, b in zip(points, points[1:]))


def test_fallback_series_is_deterministic():
    first = fallback_series(60, today=TODAY)
    second = fallback_series(60, today=TODAY)
    later = fallback_series(60, today=TODAY + timedelta(days=3))

    assert first == second
    assert [p.price for p in first] == [p.price for p in later]


def test_fallback_series_shape():
    points = fallback_series(10, today=TODAY)
    base = Config.FALLBACK["base_price"]
    amplitude = Config.FALLBACK["amplitude"]
    noise = Config.FALLBACK["noise"]

    assert len(points) == 10
    assert points[0].day == TODAY - timedelta(days=10)
    assert points[-1].day == TODAY - timedelta(days=1)
    assert all(b.day - a.day == timedelta(days=1) for a, b in zip(points, points[1:]))
    assert all(base - amplitude <= p.price <= base + amplitude + noise for p in points)


def test_fallback_single_day():
    assert len(fallback_series(1, today=TODAY)) == 1


@pytest.mark.parametrize("days", [0, 366, -1, True, 30.0, "30"])
def test_out_of_range_window_is_rejected(days):
    with pytest.raises(InvalidWindowError):
        PriceHistoryCollector().load(days)


def test_invalid_window_is_not_masked_by_fallback(monkeypatch):
    calls = []
    _patch_get(monkeypatch, exc=requests.ConnectionError("offline"), calls=calls)

    with pytest.raises(InvalidWindowError):
        PriceHistoryCollector().load(366)
    assert calls == []


def test_zero_price_before_the_latest_sample_is_kept():
    payload = {"prices": [[_ms("2026-10-01"), 0.2], [_ms("2026-10-02"), 100.0]]}

    points = parse_market_chart(payload, historical_days=7)

    assert [p.price for p in points] == [0, 100]


@pytest.mark.parametrize("payload", [
    {"prices": [[1e20, 5.0]]},
    {"prices": [[_ms("2026-10-01"), 0.2]]},
])
def test_load_falls_back_on_unusable_samples(monkeypatch, payload):
    _patch_get(monkeypatch, FakeResponse(payload))

    result = PriceHistoryCollector().load(7, today=TODAY)

    assert result.is_fallback
    assert result.points == fallback_series(7, today=TODAY)
