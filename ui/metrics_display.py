"""
Metrics Display Functions

UI components for the plant portal scorecards: project health, OEE, crew
utilization, cross-training, the load board, defect fix cycles, kaizen,
PM capacity and the sales pipeline.
"""

import streamlit as st
import pandas as pd
import plotly.graph_objects as go
import logging
from typing import List

from core.calculations.capacity import CapacityScore
from core.calculations.cross_training import CrossTrainingMatrix, summarize_station_flex
from core.calculations.defects import DefectCycle, DefectFixStats
from core.calculations.health import PortfolioHealth
from core.calculations.kaizen import LeaderboardEntry
from core.calculations.load_board import LoadBoardSnapshot
from core.calculations.oee import OEEResult, OEE_ACCEPTABLE, OEE_GOOD, OEE_POOR, OEE_WORLD_CLASS
from core.calculations.pipeline import PipelineForecast, RepPerformance
from core.calculations.utilization import UtilizationMatrix, summarize_utilization
from utils.formatting import format_currency, format_duration_hours, format_timestamp

logger = logging.getLogger(__name__)

HEALTH_COLORS = {
    'on-track': '#28a745',  # Green
    'at-risk': '#ffc107',   # Yellow
    'critical': '#dc3545',  # Red
}

BAND_COLORS = {
    'good': '#28a745',
    'warning': '#ffc107',
    'critical': '#dc3545',
}

PACE_ICONS = {
    'on-track': '🟢',
    'behind': '🟡',
    'at-risk': '🔴',
    'unknown': '⚪',
}


# ============================================================
# PROJECT HEALTH
# ============================================================

def display_portfolio_health(portfolio: PortfolioHealth):
    """
    Display the portfolio health roll-up.

    Shows:
    - Active project count, overdue items and on-time delivery rate
    - Donut of projects per health state
    - Critical projects, upcoming deadlines and deliveries
    """
    st.subheader("🏗️ Project Health")

    col1, col2, col3, col4 = st.columns(4)
    with col1:
        st.metric("Active Projects", portfolio.active_projects)
    with col2:
        st.metric("Critical", portfolio.health_counts.get('critical', 0))
    with col3:
        st.metric("Overdue Items", portfolio.total_overdue)
    with col4:
        st.metric("On-Time Delivery", f"{portfolio.on_time_rate}%")

    if portfolio.active_projects:
        labels = list(HEALTH_COLORS.keys())
        fig = go.Figure(go.Pie(
            labels=labels,
            values=[portfolio.health_counts.get(label, 0) for label in labels],
            hole=0.5,
            marker=dict(colors=[HEALTH_COLORS[label] for label in labels]),
            sort=False
        ))
        fig.update_layout(height=300, margin=dict(t=20, b=20))
        st.plotly_chart(fig, use_container_width=True)

    if portfolio.critical_projects:
        st.error(f"🔴 **{len(portfolio.critical_projects)} critical projects**")
        st.dataframe(
            pd.DataFrame([a.to_dict() for a in portfolio.critical_projects])[
                ['project_name', 'overdue_tasks', 'overdue_rfis', 'overdue_submittals', 'days_until_deadline']
            ],
            use_container_width=True,
            hide_index=True
        )

    col1, col2 = st.columns(2)
    with col1:
        st.markdown("**Due in the next 7 days**")
        if portfolio.upcoming_deadlines:
            st.dataframe(pd.DataFrame(portfolio.upcoming_deadlines), use_container_width=True, hide_index=True)
        else:
            st.caption("Nothing due")
    with col2:
        st.markdown("**Deliveries in the next 60 days**")
        if portfolio.upcoming_deliveries:
            st.dataframe(pd.DataFrame(portfolio.upcoming_deliveries), use_container_width=True, hide_index=True)
        else:
            st.caption("No scheduled deliveries")

    if portfolio.factory_breakdown:
        with st.expander("By factory"):
            st.dataframe(pd.DataFrame(portfolio.factory_breakdown).T, use_container_width=True)


# ============================================================
# PRODUCTION EFFICIENCY
# ============================================================

def display_oee(result: OEEResult):
    """Display OEE as a gauge with its three factors."""
    st.subheader("⚙️ Overall Equipment Effectiveness")

    percent = result.to_percentage_dict()

    fig = go.Figure(go.Indicator(
        mode="gauge+number",
        value=percent['oee'],
        number={'suffix': '%'},
        title={'text': result.label},
        gauge={
            'axis': {'range': [0, 100]},
            'bar': {'color': '#1f77b4'},
            'steps': [
                {'range': [0, OEE_POOR], 'color': '#f8d7da'},
                {'range': [OEE_POOR, OEE_ACCEPTABLE], 'color': '#fff3cd'},
                {'range': [OEE_ACCEPTABLE, OEE_GOOD], 'color': '#e2e3e5'},
                {'range': [OEE_GOOD, OEE_WORLD_CLASS], 'color': '#d1e7dd'},
                {'range': [OEE_WORLD_CLASS, 100], 'color': '#a3cfbb'},
            ],
        }
    ))
    fig.update_layout(height=280, margin=dict(t=40, b=10))
    st.plotly_chart(fig, use_container_width=True)

    col1, col2, col3 = st.columns(3)
    with col1:
        st.metric("Availability", f"{percent['availability']:.1f}%")
    with col2:
        st.metric("Performance", f"{percent['performance']:.1f}%")
    with col3:
        st.metric("Quality", f"{percent['quality']:.1f}%")

    if result.breakdown:
        with st.expander("Calculation inputs"):
            st.json(result.breakdown)


def display_utilization(utilization: UtilizationMatrix):
    """Display minutes per worker per station as a heatmap."""
    st.subheader(f"👷 Crew Utilization ({utilization.date.isoformat()})")

    summary = summarize_utilization(utilization)
    col1, col2, col3, col4 = st.columns(4)
    with col1:
        st.metric("Crew", summary.total_workers)
    with col2:
        st.metric("Active", summary.active_workers)
    with col3:
        st.metric("Idle", summary.idle_workers)
    with col4:
        st.metric("Avg Utilization", f"{summary.avg_utilization}%")

    if not utilization.workers or not utilization.stations:
        st.info("No crew or stations to display")
        return

    z = [
        [utilization.cell(w.id, s.id)['minutes'] for s in utilization.stations]
        for w in utilization.workers
    ]
    fig = go.Figure(go.Heatmap(
        z=z,
        x=[s.name for s in utilization.stations],
        y=[w.full_name for w in utilization.workers],
        colorscale='Greens',
        hovertemplate='%{y} @ %{x}<br>%{z} min<extra></extra>'
    ))
    fig.update_layout(
        height=max(300, 28 * len(utilization.workers)),
        xaxis_title='Station',
        yaxis=dict(autorange='reversed')
    )
    st.plotly_chart(fig, use_container_width=True)


def display_cross_training(matrix: CrossTrainingMatrix):
    """Display certifications per worker and station plus station flex."""
    st.subheader("🎓 Cross-Training Matrix")

    flex = summarize_station_flex(matrix)
    col1, col2, col3 = st.columns(3)
    with col1:
        st.metric("Certifications", matrix.total_certifications)
    with col2:
        st.metric("Avg Station Flex", f"{flex.avg_flex}%")
    with col3:
        st.metric("Low-Flex Stations", flex.low_flex_count)

    if not matrix.workers or not matrix.stations:
        st.info("No crew or stations to display")
        return

    z = [
        [1 if matrix.is_certified(w.id, s.id) else 0 for s in matrix.stations]
        for w in matrix.workers
    ]
    fig = go.Figure(go.Heatmap(
        z=z,
        x=[s.code or s.name for s in matrix.stations],
        y=[w.full_name for w in matrix.workers],
        colorscale=[[0, '#f1f3f5'], [1, '#28a745']],
        showscale=False,
        xgap=2,
        ygap=2
    ))
    fig.update_layout(height=max(300, 28 * len(matrix.workers)), yaxis=dict(autorange='reversed'))
    st.plotly_chart(fig, use_container_width=True)

    if flex.low_flex_stations:
        st.warning(f"⚠️ **Low flex (< 30% certified):** {', '.join(flex.low_flex_stations)}")


def display_load_board(board: LoadBoardSnapshot):
    """Display station queues and shift pace."""
    st.subheader("📦 Load Board")

    col1, col2, col3, col4 = st.columns(4)
    with col1:
        st.metric("In Flight", board.totals.get('in_flight', 0))
    with col2:
        st.metric("Completed Today", board.actual_completed)
    with col3:
        st.metric("Expected By Now", board.expected_by_now)
    with col4:
        icon = PACE_ICONS.get(board.pace_status, '⚪')
        st.metric("Pace", f"{icon} {board.pace_percent}%")

    if board.queues:
        queues = list(board.queues.values())
        names = [q['name'] for q in queues]
        fig = go.Figure()
        fig.add_trace(go.Bar(x=names, y=[q['waiting'] for q in queues], name='Waiting', marker_color='#6c757d'))
        fig.add_trace(go.Bar(x=names, y=[q['in_progress'] for q in queues], name='In Progress', marker_color='#1f77b4'))
        fig.add_trace(go.Bar(x=names, y=[q['on_hold'] for q in queues], name='QC Hold', marker_color='#dc3545'))
        fig.update_layout(
            barmode='stack',
            xaxis_title='Station',
            yaxis_title='Modules',
            height=350,
            legend=dict(orientation="h", yanchor="bottom", y=1.02, xanchor="right", x=1)
        )
        st.plotly_chart(fig, use_container_width=True)

    if board.next_up:
        st.markdown("**Next up**")
        st.dataframe(pd.DataFrame(board.next_up), use_container_width=True, hide_index=True)


def display_defects(cycles: List[DefectCycle], stats: DefectFixStats):
    """Display defect fix statistics and recent hold/pass cycles."""
    st.subheader("🛠️ Defect Fix Cycles")

    col1, col2, col3, col4 = st.columns(4)
    with col1:
        st.metric("Defects", stats.total)
    with col2:
        st.metric("Ongoing", stats.ongoing)
    with col3:
        st.metric("Avg Fix Time", format_duration_hours(stats.avg_duration_hours))
    with col4:
        st.metric("Avg Weighted", format_duration_hours(stats.avg_weighted_hours))

    if stats.by_station:
        by_station = pd.DataFrame(stats.by_station).T
        fig = go.Figure(go.Bar(
            x=by_station['name'] if 'name' in by_station else by_station.index,
            y=by_station['avg_hours'],
            marker_color='#ffc107'
        ))
        fig.update_layout(xaxis_title='Station', yaxis_title='Avg fix hours', height=300)
        st.plotly_chart(fig, use_container_width=True)

    if not cycles:
        st.info("No defect cycles in this range")
        return

    rows = []
    for cycle in cycles:
        rows.append({
            'Station': cycle.station_name,
            'Module': cycle.module_id,
            'Category': cycle.building_category,
            'Held': format_timestamp(cycle.hold_at),
            'Passed': format_timestamp(cycle.pass_at) or 'ongoing',
            'Hours': cycle.duration_hours,
            'Weighted': cycle.weighted_hours,
            'Band': cycle.band,
        })
    df = pd.DataFrame(rows)
    st.dataframe(
        df.style.map(lambda band: f"color: {BAND_COLORS.get(band, 'inherit')}", subset=['Band']),
        use_container_width=True,
        hide_index=True
    )


def display_kaizen_leaderboard(entries: List[LeaderboardEntry]):
    st.subheader("💡 Kaizen Leaderboard")
    if not entries:
        st.info("No approved suggestions yet")
        return
    df = pd.DataFrame([e.to_dict() for e in entries])
    df.insert(0, 'rank', range(1, len(df) + 1))
    st.dataframe(df[['rank', 'name', 'approved_count']], use_container_width=True, hide_index=True)


# ============================================================
# TEAM AND SALES
# ============================================================

def display_team_capacity(scores: List[CapacityScore]):
    """Display PM capacity scores as bars colored by label."""
    st.subheader("🧭 PM Capacity")
    if not scores:
        st.info("No project managers found")
        return

    colors = {'Available': '#28a745', 'Busy': '#ffc107', 'Overloaded': '#dc3545'}
    fig = go.Figure(go.Bar(
        x=[s.score for s in scores],
        y=[s.full_name for s in scores],
        orientation='h',
        marker_color=[colors.get(s.label, '#6c757d') for s in scores],
        text=[s.label for s in scores],
        hovertemplate='%{y}<br>Score %{x}<extra></extra>'
    ))
    fig.update_layout(
        xaxis=dict(range=[0, 100], title='Capacity score'),
        yaxis=dict(autorange='reversed'),
        height=max(250, 36 * len(scores))
    )
    st.plotly_chart(fig, use_container_width=True)

    st.dataframe(pd.DataFrame([s.to_dict() for s in scores]), use_container_width=True, hide_index=True)


def display_pipeline(forecast: PipelineForecast, reps: List[RepPerformance]):
    """Display pipeline value, forecast buckets and per-rep figures."""
    st.subheader("💼 Sales Pipeline")

    col1, col2, col3, col4 = st.columns(4)
    with col1:
        st.metric("Pipeline", format_currency(forecast.pipeline_value), f"{forecast.pipeline_count} quotes")
    with col2:
        st.metric("Weighted", format_currency(forecast.weighted_pipeline_value))
    with col3:
        st.metric("Win Rate", f"{forecast.win_rate}%")
    with col4:
        st.metric("Stale Quotes", forecast.stale_count)

    fig = go.Figure(go.Bar(
        x=['Next 30 days', 'Next 60 days', 'Next 90 days'],
        y=[forecast.forecast.get(b, 0.0) for b in ('next30', 'next60', 'next90')],
        marker_color='#1f77b4',
        hovertemplate='%{x}<br>$%{y:,.0f}<extra></extra>'
    ))
    fig.update_layout(yaxis_title='Weighted value ($)', height=300)
    st.plotly_chart(fig, use_container_width=True)

    if forecast.unbucketed_count:
        st.caption(
            f"{forecast.unbucketed_count} quotes ({format_currency(forecast.unbucketed_value)} weighted) "
            f"have no expected close date"
        )

    if forecast.building_types:
        with st.expander("Building types by factory"):
            st.dataframe(pd.DataFrame(forecast.building_types).T, use_container_width=True)

    if forecast.recently_converted:
        with st.expander(f"Converted in the last 30 days ({len(forecast.recently_converted)})"):
            st.dataframe(pd.DataFrame(forecast.recently_converted), use_container_width=True, hide_index=True)

    if forecast.pm_flagged:
        with st.expander(f"Flagged for PM review ({forecast.pm_flagged_count})"):
            st.dataframe(pd.DataFrame(forecast.pm_flagged), use_container_width=True, hide_index=True)

    if forecast.stale_quotes:
        with st.expander(f"Stale quotes ({forecast.stale_count})"):
            st.dataframe(pd.DataFrame(forecast.stale_quotes), use_container_width=True, hide_index=True)

    if reps:
        st.markdown("**By sales rep**")
        st.dataframe(pd.DataFrame([r.to_dict() for r in reps]), use_container_width=True, hide_index=True)
