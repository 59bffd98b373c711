"""
Plant Operations Portal - Main Application

Operational scorecards for a modular-construction plant:
- Project health and PM capacity
- Plant OEE, crew utilization, cross-training and the load board
- Defect fix cycles and the kaizen leaderboard
- Sales pipeline forecast
"""

import io
import logging
from dataclasses import asdict

import pandas as pd
import streamlit as st

from config import Config
from utils.config import get_app_config, load_config, validate_config

# Load configuration
load_config()

# Configure logging
logging.basicConfig(
    level=Config.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

from core.analysis import scorecards
from core.calculations.capacity import SORT_KEYS
from core.db.pool import close_all_pools, get_pool, get_pool_stats
from ui.date_range_selector import render_date_range_selector
from ui.log_display import LogCollector, render_compact_log_area
from utils.formatting import convert_all_datetime_to_str
from ui.metrics_display import (
    display_cross_training,
    display_defects,
    display_kaizen_leaderboard,
    display_load_board,
    display_oee,
    display_pipeline,
    display_portfolio_health,
    display_team_capacity,
    display_utilization,
)

# Streamlit page config
st.set_page_config(
    page_title="Plant Operations Portal",
    layout="wide",
    initial_sidebar_state="expanded"
)

st.title("🏭 Plant Operations Portal")

# Validate configuration
config_errors = validate_config()
if config_errors:
    st.error("❌ Configuration errors detected:")
    for error in config_errors:
        st.error(error)
    st.stop()

app_config = get_app_config()
log_collector = LogCollector("portal_logs")

with st.sidebar:
    st.header("⚙️ Settings")
    factory_id = st.text_input("Factory ID", key="factory_id")
    factory_name = st.text_input("Factory name (projects and sales)", key="factory_name") or None
    include_backup = st.checkbox("Count backup PM assignments", value=True)
    sort_by = st.selectbox("Sort PM capacity by", options=list(SORT_KEYS.keys()))
    st.caption(f"Plant timezone: {app_config['timezone']}")

    with st.expander("🔌 Record store"):
        if st.button("Check connection"):
            if get_pool().health_check():
                st.success("Record store reachable")
            else:
                st.error("Record store unreachable")
        st.json(get_pool_stats())

if st.button("🔄 Refresh", type="primary"):
    log_collector.clear()
    # Drop pooled connections so a restarted store is picked up
    close_all_pools()
    st.rerun()

health_tab, floor_tab, quality_tab, team_tab, sales_tab = st.tabs(
    ["Project Health", "Factory Floor", "Quality", "Team", "Sales"]
)

with health_tab:
    portfolio = scorecards.get_portfolio_health(factory_name)
    log_collector.add_result("Portfolio health", portfolio)
    display_portfolio_health(portfolio.data)

with floor_tab:
    if not factory_id:
        st.info("Enter a factory ID in the sidebar to load floor metrics")
    else:
        date_range = render_date_range_selector("oee_range")
        if date_range is not None:
            oee = scorecards.get_oee(factory_id, date_range)
            log_collector.add_result("OEE", oee)
            display_oee(oee.data)

            export_df = pd.DataFrame([oee.data.to_percentage_dict()])
            csv_buffer = io.StringIO()
            export_df.to_csv(csv_buffer, index=False)
            st.download_button(
                label="📥 Download OEE (CSV)",
                data=csv_buffer.getvalue(),
                file_name="oee.csv",
                mime="text/csv"
            )

        st.divider()
        board = scorecards.get_load_board(factory_id)
        log_collector.add_result("Load board", board)
        display_load_board(board.data)

        st.divider()
        day = st.date_input("Utilization day", key="utilization_day")
        utilization = scorecards.get_utilization_matrix(factory_id, day)
        log_collector.add_result("Crew utilization", utilization)
        display_utilization(utilization.data)

        st.divider()
        training = scorecards.get_cross_training_matrix(factory_id)
        log_collector.add_result("Cross-training", training)
        display_cross_training(training.data)

with quality_tab:
    if not factory_id:
        st.info("Enter a factory ID in the sidebar to load quality metrics")
    else:
        defect_range = render_date_range_selector("defect_range", default="Last 30 days")
        if defect_range is not None:
            cycles = scorecards.get_defect_cycles(factory_id, start=defect_range.start, end=defect_range.end)
            stats = scorecards.get_defect_stats(factory_id, start=defect_range.start, end=defect_range.end)
            log_collector.add_result("Defect cycles", cycles)
            display_defects(cycles.data, stats.data)

            if cycles.data:
                export_df = convert_all_datetime_to_str(pd.DataFrame([asdict(c) for c in cycles.data]))
                st.download_button(
                    label="📥 Download defect cycles (CSV)",
                    data=export_df.to_csv(index=False),
                    file_name="defect_cycles.csv",
                    mime="text/csv"
                )

        st.divider()
        kaizen = scorecards.get_kaizen_leaderboard(factory_id)
        log_collector.add_result("Kaizen leaderboard", kaizen)
        display_kaizen_leaderboard(kaizen.data)

with team_tab:
    capacity = scorecards.get_team_capacity(include_backup=include_backup, sort_by=sort_by)
    log_collector.add_result("PM capacity", capacity)
    display_team_capacity(capacity.data)

with sales_tab:
    forecast = scorecards.get_pipeline_forecast(factory_name)
    reps = scorecards.get_rep_performance(factory_name)
    log_collector.add_result("Sales pipeline", forecast)
    log_collector.add_result("Rep performance", reps)
    display_pipeline(forecast.data, reps.data)

st.divider()
render_compact_log_area(log_collector)
