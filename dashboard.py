"""
Bitcoin Price Forecast Dashboard
Historical JPY prices from CoinGecko plus a short random-walk forecast
"""

from __future__ import annotations

import logging

import plotly.graph_objects as go
import streamlit as st

from config import Config, setup_logging
from dashboard_state import (
    DashboardState,
    RefreshCoordinator,
    RequestWindow,
    format_change,
    format_currency,
    forecast_table,
    series_frame,
)

setup_logging()
logger = logging.getLogger(__name__)

st.set_page_config(
    page_title="Bitcoin Price Forecast",
    layout="wide",
    initial_sidebar_state="collapsed",
)


def _coordinator() -> RefreshCoordinator:
    """One coordinator per browser session"""
    if "coordinator" not in st.session_state:
        st.session_state.coordinator = RefreshCoordinator()
    return st.session_state.coordinator


def _init_window_state() -> None:
    if "historical_days" not in st.session_state:
        st.session_state.historical_days = Config.WINDOW['default_historical_days']
    if "forecast_days" not in st.session_state:
        st.session_state.forecast_days = Config.WINDOW['default_forecast_days']


def _set_days(key: str, days: int) -> None:
    st.session_state[key] = days


def build_price_chart(state: DashboardState) -> go.Figure:
    """Single line over history + forecast; forecast points marked in orange"""
    df = series_frame(state)
    colors = [
        Config.DISPLAY['forecast_color'] if f else Config.DISPLAY['historical_color']
        for f in df['is_forecast']
    ]
    sizes = [8 if f else 6 for f in df['is_forecast']]
    labels = ['Forecast' if f else 'Actual' for f in df['is_forecast']]

    fig = go.Figure()
    fig.add_trace(go.Scatter(
        x=df['date'],
        y=df['price'],
        mode='lines+markers',
        name='Bitcoin Price (JPY)',
        line=dict(color=Config.DISPLAY['historical_color'], width=2),
        marker=dict(size=sizes, color=colors),
        customdata=labels,
        hovertemplate='<b>%{x}</b><br>Price: ¥%{y:,.0f}<br>%{customdata}<extra></extra>'
    ))

    fig.update_layout(
        xaxis_title="Date",
        yaxis_title="Price (JPY)",
        hovermode='x unified',
        height=420,
        margin=dict(t=30, b=40, l=60, r=30),
        xaxis=dict(type='category', nticks=12, gridcolor='#f0f0f0'),
        yaxis=dict(tickprefix='¥', tickformat=',.0f', gridcolor='#f0f0f0'),
        showlegend=True,
    )
    return fig


def _render_window_selector(title: str, key: str, presets: list[int], lower: int, upper: int) -> None:
    st.subheader(title)
    cols = st.columns(len(presets))
    for col, days in zip(cols, presets):
        with col:
            st.button(
                f"{days} days",
                key=f"{key}_preset_{days}",
                on_click=_set_days,
                args=(key, days),
                type="primary" if st.session_state[key] == days else "secondary",
                width='stretch',
            )
    st.slider(f"Custom range ({lower}-{upper} days)", min_value=lower, max_value=upper, key=key)


def main():
    _init_window_state()
    window_cfg = Config.WINDOW

    st.title("Bitcoin Price Forecast")
    st.caption(
        f"Last {st.session_state.historical_days} days of prices and a "
        f"{st.session_state.forecast_days}-day forecast"
    )

    col_hist, col_fc = st.columns(2, gap="large")
    with col_hist:
        _render_window_selector(
            "Historical Period",
            "historical_days",
            Config.DISPLAY['historical_presets'],
            window_cfg['historical_min'],
            window_cfg['historical_max'],
        )
    with col_fc:
        _render_window_selector(
            "Forecast Period",
            "forecast_days",
            Config.DISPLAY['forecast_presets'],
            window_cfg['forecast_min'],
            window_cfg['forecast_max'],
        )

    window = RequestWindow.clamped(st.session_state.historical_days, st.session_state.forecast_days)

    with st.spinner("Loading Bitcoin price data..."):
        state = _coordinator().refresh(window)

    if state is None:
        st.warning("Price data is being refreshed. Please wait a moment.")
        st.stop()

    if state.is_fallback:
        logger.info("Rendering synthetic fallback series")

    # Stat cards
    change = state.change_24h_pct
    met_cols = st.columns(3)
    with met_cols[0]:
        st.metric("Current Price", format_currency(state.current_price))
    with met_cols[1]:
        st.metric("24h Change", format_change(change))
    with met_cols[2]:
        st.metric("Forecast Horizon", f"{state.window.forecast_days} days")

    st.subheader("Price Chart")
    st.plotly_chart(build_price_chart(state), width='stretch')

    st.subheader(f"Forecast for the next {state.window.forecast_days} days")
    table = forecast_table(state.current_price, state.forecast)
    st.dataframe(
        table[['date', 'formatted_price', 'formatted_change']].rename(columns={
            'date': 'Date',
            'formatted_price': 'Forecast Price',
            'formatted_change': 'Change',
        }),
        hide_index=True,
        width='stretch',
    )

    st.warning(
        "**Note:** This forecast comes from a simple statistical heuristic applied to past prices. "
        "Actual prices can move sharply for many reasons. Make investment decisions carefully."
    )


if __name__ == "__main__":
    main()
