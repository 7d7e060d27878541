from datetime import datetime, timedelta
from typing import List

import plotly.graph_objects as go
import streamlit as st

from iot_dashboard.client import FetchError, TelemetryClient
from iot_dashboard.config import Settings, load_settings
from iot_dashboard.export import CSV_FILENAME, to_csv
from iot_dashboard.models import SENSORS, SENSORS_BY_KEY, AlertLevel, ForecastPoint, Reading, ThresholdSet
from iot_dashboard.poller import Poller, session_poller, stop_session_poller
from iot_dashboard.report import REPORT_FILENAME, generate_pdf_report
from iot_dashboard.stats import TimeRange, filter_window, readings_frame, summarize
from iot_dashboard.store import make_store
from iot_dashboard.thresholds import ThresholdStore
from iot_dashboard.trends import TrendLabel, forecast, trend

CHART_CONFIG = {
    "scrollZoom": False,
    "displaylogo": False,
    "modeBarButtonsToRemove": ["zoom2d", "zoomIn2d", "zoomOut2d", "select2d", "lasso2d", "pan2d"],
}

_RANGE_LABELS = {
    TimeRange.ALL: "All",
    TimeRange.ONE_HOUR: "1h",
    TimeRange.ONE_DAY: "24h",
    TimeRange.SEVEN_DAYS: "7d",
    TimeRange.THIRTY_DAYS: "30d",
}


@st.cache_resource
def _settings() -> Settings:
    return load_settings()


@st.cache_resource
def _threshold_store() -> ThresholdStore:
    return ThresholdStore(make_store(_settings()))


def _make_poller() -> Poller:
    settings = _settings()
    client = TelemetryClient(settings.telemetry_url, timeout=settings.request_timeout_secs)
    return Poller(
        fetch=lambda: client.fetch(settings.device_id, settings.dashboard_limit),
        interval_secs=settings.poll_interval_secs,
        # Stops on its own a few ticks after the browser tab goes away
        idle_timeout_secs=settings.poll_interval_secs * 3,
    )


@st.cache_data(show_spinner=False, ttl=60)
def _load_history(device_id: str, limit: int) -> List[Reading]:
    settings = _settings()
    client = TelemetryClient(settings.telemetry_url, timeout=settings.request_timeout_secs)
    return client.fetch(device_id, limit)


def _thresholds() -> ThresholdSet:
    # Loaded once per session, edited in place afterwards
    if "thresholds" not in st.session_state:
        st.session_state.thresholds = _threshold_store().load()
    return st.session_state.thresholds


def _line_chart(frame, lines: List[tuple[str, str]], height: int = 280) -> go.Figure:
    fig = go.Figure()
    for key, name in lines:
        if key in frame.columns:
            fig.add_trace(go.Scatter(x=frame["time"], y=frame[key], mode="lines", name=name, connectgaps=False))
    fig.update_layout(
        legend=dict(orientation="h", yanchor="bottom", y=1.02, xanchor="left", x=0),
        margin=dict(l=40, r=20, t=30, b=40),
        height=height,
    )
    return fig


def _forecast_chart(points: List[ForecastPoint], actual_name: str, predicted_name: str) -> go.Figure:
    x_vals = [p.ts for p in points]
    fig = go.Figure()
    fig.add_trace(go.Scatter(x=x_vals, y=[p.actual for p in points], mode="lines", name=actual_name))
    fig.add_trace(
        go.Scatter(x=x_vals, y=[p.predicted for p in points], mode="lines", name=predicted_name, line=dict(dash="dot"))
    )
    fig.update_layout(
        legend=dict(orientation="h", yanchor="bottom", y=1.02, xanchor="left", x=0),
        margin=dict(l=40, r=20, t=30, b=40),
        height=300,
    )
    return fig


def _render_alert(level: AlertLevel, title: str, message: str, category: str, value_label: str | None) -> None:
    body = f"**{category} · {title}**  \n{message}"
    if value_label:
        body += f"  \nCurrent: **{value_label}**"
    if level == AlertLevel.DANGER:
        st.error(body)
    elif level == AlertLevel.WARNING:
        st.warning(body)
    else:
        st.info(body)


def dashboard_page() -> None:
    settings = _settings()
    st.title("📊 IoT Dashboard")
    st.caption(f"Device: `{settings.device_id}`")

    @st.fragment(run_every=timedelta(milliseconds=settings.poll_interval_ms))
    def live() -> None:
        # Restarts the poller if it went idle
        state = session_poller(st.session_state, _make_poller).state
        status, err = st.columns([1, 3])
        if state.loading:
            status.info("Fetching…")
        else:
            updated = datetime.fromtimestamp(state.updated_at).strftime("%H:%M:%S") if state.updated_at else "--"
            status.success(f"🟢 Live · {settings.poll_interval_secs:g}s refresh · updated {updated}")
        if state.error:
            err.error(state.error)

        alerts = state.alerts(_thresholds())
        if alerts:
            for a in alerts:
                _render_alert(a.level, f"{a.emoji} {a.title}", a.message, a.category, a.value_label)
        else:
            _render_alert(AlertLevel.INFO, "All readings normal", "No abnormal sensor readings detected.", "Status", None)

        cols = st.columns(3)
        for idx, sensor in enumerate(SENSORS):
            value = state.latest.value(sensor.key)
            text = sensor.format(value)
            cols[idx % 3].metric(f"{sensor.emoji} {sensor.label}", f"{text} {sensor.unit}".strip())

        frame = readings_frame(state.history)
        c1, c2 = st.columns(2)
        with c1:
            st.subheader("🌡️ Temperature & 💧 Humidity")
            st.plotly_chart(
                _line_chart(frame, [("temperature", "Temperature (°F)"), ("humidity", "Humidity (%)")]),
                use_container_width=True,
                config=CHART_CONFIG,
            )
        with c2:
            st.subheader("🌫️ AQI · 🫁 CO₂ · 💡 Luminosity")
            st.plotly_chart(
                _line_chart(
                    frame,
                    [("airQuality", "Air Quality (AQI)"), ("co2", "CO₂ (ppm)"), ("luminosity", "Luminosity (lx)")],
                ),
                use_container_width=True,
                config=CHART_CONFIG,
            )

        st.subheader("📈 Temperature: Actual vs Predicted")
        if state.forecast:
            st.plotly_chart(
                _forecast_chart(list(state.forecast), "Actual Temperature (°F)", "Predicted Temperature (°F)"),
                use_container_width=True,
                config=CHART_CONFIG,
            )
        else:
            st.caption("Not enough data yet to generate predictions.")

    live()


def _threshold_editor() -> None:
    thresholds = _thresholds()
    store = _threshold_store()
    with st.sidebar.expander("⚙️ Alert Thresholds"):
        st.caption("These values control alerts on the main Dashboard.")
        for key in ThresholdSet.keys():
            current = float(getattr(thresholds, key))
            value = st.number_input(key, value=current, key=f"threshold-{key}")
            if value != current:
                store.update(thresholds, key, value)


def _trend_caption(label: TrendLabel) -> str:
    return f"Trend: {label.display()}"


def analytics_page() -> None:
    settings = _settings()
    st.title("📈 Advanced Analytics")
    st.caption(f"Deep insights for `{settings.device_id}`")

    _threshold_editor()

    time_range = st.radio(
        "Range",
        options=list(TimeRange),
        format_func=lambda r: _RANGE_LABELS[r],
        horizontal=True,
    )

    try:
        history = _load_history(settings.device_id, settings.analytics_limit)
    except FetchError as exc:
        st.error(f"Error loading analytics: {exc.message}")
        history = []

    window = filter_window(history, time_range)

    exp1, exp2, _ = st.columns([1, 1, 4])
    exp1.download_button(
        "📤 CSV",
        data=to_csv(window),
        file_name=CSV_FILENAME,
        mime="text/csv",
        disabled=not window,
    )
    exp2.download_button(
        "🖨️ PDF",
        data=generate_pdf_report(window, settings.device_id),
        file_name=REPORT_FILENAME,
        mime="application/pdf",
    )

    cols = st.columns(3)
    shown = 0
    for sensor in SENSORS:
        stats = summarize(window, sensor.key)
        if stats is None:
            continue
        with cols[shown % 3]:
            st.metric(f"{sensor.emoji} {sensor.label}", f"{sensor.format(stats['latest'])} {sensor.unit}".strip())
            st.caption(
                f"Min {sensor.format(stats['min'], 1)} · Max {sensor.format(stats['max'], 1)} · "
                f"Avg {sensor.format(stats['avg'], 1)}"
            )
            st.caption(_trend_caption(trend(window, sensor.key)))
        shown += 1

    frame = readings_frame(window)
    keys = [s.key for s in SENSORS]
    c1, c2 = st.columns(2)
    with c1:
        st.subheader("⚖️ Compare sensors side-by-side")
        left_key = st.selectbox("Left", keys, index=0, format_func=lambda k: SENSORS_BY_KEY[k].label)
        right_key = st.selectbox("Right", keys, index=1, format_func=lambda k: SENSORS_BY_KEY[k].label)
        lines = []
        for k in dict.fromkeys([left_key, right_key]):
            meta = SENSORS_BY_KEY[k]
            lines.append((k, f"{meta.label} ({meta.unit})" if meta.unit else meta.label))
        st.plotly_chart(_line_chart(frame, lines), use_container_width=True, config=CHART_CONFIG)
    with c2:
        st.subheader("🫁 CO₂ & 💡 Luminosity")
        st.plotly_chart(
            _line_chart(frame, [("co2", "CO₂ (ppm)"), ("luminosity", "Luminosity (lx)")]),
            use_container_width=True,
            config=CHART_CONFIG,
        )

    prediction_key = st.selectbox(
        "Prediction sensor", keys, index=0, format_func=lambda k: f"{SENSORS_BY_KEY[k].emoji} {SENSORS_BY_KEY[k].label}"
    )
    meta = SENSORS_BY_KEY[prediction_key]
    st.subheader(f"🤖 ML-style predictions ({meta.emoji} {meta.label})")
    st.caption(
        "This chart uses the recent trend + small noise to create a forward-looking predicted curve. "
        "Later you can swap this with a real ML API."
    )
    points = forecast(window, prediction_key)
    if points:
        st.plotly_chart(_forecast_chart(points, "Actual", "Predicted"), use_container_width=True, config=CHART_CONFIG)
    else:
        st.caption("Not enough data yet to generate predictions.")


def main() -> None:
    st.set_page_config(page_title="IoT Dashboard", layout="wide")
    try:
        _settings()
    except RuntimeError as exc:
        st.error(str(exc))
        return

    page = st.sidebar.radio("Page", ["Dashboard", "Analytics"])
    if page == "Analytics":
        stop_session_poller(st.session_state)
        analytics_page()
    else:
        dashboard_page()


if __name__ == "__main__":
    main()
