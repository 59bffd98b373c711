"""
Log Display UI Component

Session-scoped processing log for the dashboard: which scorecards loaded,
which fell back to defaults and why.
"""

import streamlit as st
from typing import List, Dict

from core.models.results import MetricResult
from utils.formatting import resolve_now

LEVEL_MARKERS = {
    "success": "🟢",
    "warning": "🟡",
    "error": "🔴",
    "info": "🔵",
}


class LogCollector:
    """Collects dashboard messages in Streamlit session state."""

    def __init__(self, session_key: str = "portal_logs", max_entries: int = 200):
        self.session_key = session_key
        self.max_entries = max_entries
        if session_key not in st.session_state:
            st.session_state[session_key] = []

    def add_info(self, message: str):
        self._add_log("info", message)

    def add_success(self, message: str):
        self._add_log("success", message)

    def add_warning(self, message: str):
        self._add_log("warning", message)

    def add_error(self, message: str):
        self._add_log("error", message)

    def add_result(self, label: str, result: MetricResult):
        """Record the outcome of a scorecard call."""
        if result.ok:
            self.add_success(f"{label} loaded")
        else:
            self.add_error(f"{label} unavailable, showing defaults: {result.error}")

    def _add_log(self, level: str, message: str):
        entries = st.session_state[self.session_key]
        entries.append({
            "timestamp": resolve_now().strftime("%H:%M:%S"),
            "level": level,
            "message": message,
        })
        # Oldest entries drop off first
        del entries[:-self.max_entries]

    def clear(self):
        st.session_state[self.session_key] = []

    def get_logs(self) -> List[Dict]:
        return st.session_state.get(self.session_key, [])

    @property
    def error_count(self) -> int:
        return sum(1 for log in self.get_logs() if log["level"] == "error")


def render_compact_log_area(log_collector: LogCollector):
    """
    Render a collapsible log area, newest messages first.

    Args:
        log_collector: LogCollector instance with messages
    """
    logs = log_collector.get_logs()

    if not logs:
        return

    title = f"📋 Processing Log ({len(logs)} messages"
    if log_collector.error_count:
        title += f", {log_collector.error_count} errors"
    title += ")"

    with st.expander(title, expanded=log_collector.error_count > 0):
        for log in reversed(logs):
            marker = LEVEL_MARKERS.get(log.get("level"), "⚪")
            st.markdown(f"{marker} `[{log.get('timestamp', '')}]` {log.get('message', '')}")

        if st.button("Clear Log", key="clear_log_button"):
            log_collector.clear()
            st.rerun()
