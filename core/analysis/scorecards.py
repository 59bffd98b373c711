"""
Metric Scorecards

Composes record-store fetches with the pure scoring functions. Every
scorecard returns a MetricResult; when a fetch fails the result carries the
zeroed or empty default metric and the error instead of raising.
"""

import logging
from datetime import date, datetime
from typing import List, Optional

from config import Config
from core.calculations.capacity import CapacityScore, CapacityWeights, score_team_capacity
from core.calculations.cross_training import CrossTrainingMatrix, build_cross_training_matrix
from core.calculations.defects import DefectCycle, DefectFixStats, build_defect_cycles, get_defect_fix_stats
from core.calculations.health import HealthAssessment, PortfolioHealth, assess_project_health, summarize_portfolio
from core.calculations.kaizen import LeaderboardEntry, build_kaizen_leaderboard
from core.calculations.load_board import IN_FLIGHT_STATUSES, LoadBoardSnapshot, build_load_board
from core.calculations.oee import OEEResult, calculate_oee
from core.calculations.pipeline import PipelineForecast, RepPerformance, forecast_pipeline, summarize_rep_performance
from core.calculations.thresholds import HealthState
from core.calculations.utilization import UtilizationMatrix, build_utilization_matrix
from core.db import fetchers
from core.models.records import (
    CertificationRecord,
    KaizenSuggestion,
    Module,
    Project,
    QCRecord,
    SalesQuote,
    ShiftRecord,
    Station,
    StationAssignment,
    TaktEvent,
    TeamMember,
    WorkItem,
    Worker,
    records_from_dataframe,
)
from core.models.results import MetricResult, RecordFetchError
from core.time_windows.models import DateRange, ShiftSchedule, day_bounds
from utils.config import get_plant_defaults
from utils.formatting import resolve_now, to_float

logger = logging.getLogger(__name__)


def _load_schedule(factory_id: str) -> ShiftSchedule:
    plant = fetchers.fetch_plant_config(factory_id)
    return ShiftSchedule.from_settings(plant.get("time_settings"), get_plant_defaults())


def _load_target_throughput(factory_id: str) -> float:
    plant = fetchers.fetch_plant_config(factory_id)
    defaults = plant.get("line_sim_defaults") or {}
    return to_float(defaults.get("target_throughput_per_day"), None) or Config.DEFAULT_TARGET_THROUGHPUT


# ============================================================
# PROJECT HEALTH
# ============================================================

def get_project_health(project_id: str, now: Optional[datetime] = None) -> MetricResult[Optional[HealthAssessment]]:
    """Health of a single project; data is None when the project does not exist."""
    now = resolve_now(now)
    try:
        projects = records_from_dataframe(fetchers.fetch_projects(), Project)
        project = next((p for p in projects if p.id == str(project_id)), None)
        if project is None:
            logger.warning(f"Project {project_id} not found")
            return MetricResult(None)
        items = records_from_dataframe(fetchers.fetch_all_work_items([project.id]), WorkItem)
    except RecordFetchError as e:
        logger.error(f"Project health unavailable for {project_id}: {e}")
        return MetricResult(None, e)
    return MetricResult(assess_project_health(project, items, now))


def get_portfolio_health(factory: Optional[str] = None, now: Optional[datetime] = None) -> MetricResult[PortfolioHealth]:
    now = resolve_now(now)
    try:
        projects = records_from_dataframe(fetchers.fetch_projects(factory=factory), Project)
        items = records_from_dataframe(fetchers.fetch_all_work_items([p.id for p in projects]), WorkItem)
    except RecordFetchError as e:
        logger.error(f"Portfolio health unavailable: {e}")
        empty = PortfolioHealth(health_counts={state.value: 0 for state in HealthState})
        return MetricResult(empty, e)
    return MetricResult(summarize_portfolio(projects, items, now))


# ============================================================
# PRODUCTION EFFICIENCY
# ============================================================

def get_oee(factory_id: str, date_range: DateRange) -> MetricResult[OEEResult]:
    """Plant OEE for ``date_range``."""
    try:
        schedule = _load_schedule(factory_id)
        shifts = records_from_dataframe(
            fetchers.fetch_shifts(factory_id, date_range.start, date_range.end, completed_only=True),
            ShiftRecord,
        )
        takt_events = records_from_dataframe(
            fetchers.fetch_takt_events(factory_id, date_range.start, date_range.end), TaktEvent
        )
        inspections = records_from_dataframe(
            fetchers.fetch_qc_inspections(factory_id, date_range.start, date_range.end), QCRecord
        )
    except RecordFetchError as e:
        logger.error(f"OEE unavailable for factory {factory_id}: {e}")
        return MetricResult(OEEResult.empty(date_range), e)
    return MetricResult(calculate_oee(date_range, shifts, schedule, takt_events, inspections))


def get_defect_cycles(
    factory_id: str,
    now: Optional[datetime] = None,
    station_id: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    limit: Optional[int] = None
) -> MetricResult[List[DefectCycle]]:
    now = resolve_now(now)
    try:
        records = records_from_dataframe(fetchers.fetch_defect_records(factory_id, station_id, start, end), QCRecord)
    except RecordFetchError as e:
        logger.error(f"Defect cycles unavailable for factory {factory_id}: {e}")
        return MetricResult([], e)
    return MetricResult(build_defect_cycles(records, now, station_id, start, end, limit))


def get_defect_stats(
    factory_id: str,
    now: Optional[datetime] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None
) -> MetricResult[DefectFixStats]:
    cycles = get_defect_cycles(factory_id, now, start=start, end=end)
    if not cycles.ok:
        return MetricResult(DefectFixStats(), cycles.error)
    return MetricResult(get_defect_fix_stats(cycles.data))


def get_utilization_matrix(
    factory_id: str,
    day: Optional[date] = None,
    now: Optional[datetime] = None
) -> MetricResult[UtilizationMatrix]:
    now = resolve_now(now)
    day = day or now.date()
    start, end = day_bounds(day)
    try:
        workers = records_from_dataframe(fetchers.fetch_workers(factory_id), Worker)
        stations = records_from_dataframe(fetchers.fetch_stations(), Station)
        shifts = records_from_dataframe(fetchers.fetch_shifts(factory_id, start, end), ShiftRecord)
        assignments = records_from_dataframe(
            fetchers.fetch_station_assignments(factory_id, start, end), StationAssignment
        )
    except RecordFetchError as e:
        logger.error(f"Crew utilization unavailable for factory {factory_id}: {e}")
        return MetricResult(UtilizationMatrix.empty(day), e)
    return MetricResult(build_utilization_matrix(workers, stations, shifts, assignments, day, now))


def get_cross_training_matrix(factory_id: str) -> MetricResult[CrossTrainingMatrix]:
    try:
        workers = records_from_dataframe(fetchers.fetch_workers(factory_id), Worker)
        stations = records_from_dataframe(fetchers.fetch_stations(), Station)
        certifications = records_from_dataframe(fetchers.fetch_certifications(factory_id), CertificationRecord)
    except RecordFetchError as e:
        logger.error(f"Cross-training matrix unavailable for factory {factory_id}: {e}")
        return MetricResult(CrossTrainingMatrix.empty(), e)
    return MetricResult(build_cross_training_matrix(workers, stations, certifications))


def get_load_board(factory_id: str, now: Optional[datetime] = None) -> MetricResult[LoadBoardSnapshot]:
    now = resolve_now(now)
    start, end = day_bounds(now.date())
    try:
        target = _load_target_throughput(factory_id)
        stations = records_from_dataframe(fetchers.fetch_stations(), Station)
        modules = records_from_dataframe(fetchers.fetch_modules(factory_id, IN_FLIGHT_STATUSES), Module)
        completed = records_from_dataframe(fetchers.fetch_completed_modules(factory_id, start, end), Module)
    except RecordFetchError as e:
        logger.error(f"Load board unavailable for factory {factory_id}: {e}")
        return MetricResult(LoadBoardSnapshot.empty(), e)
    return MetricResult(build_load_board(stations, modules, completed, now, target))


def get_kaizen_leaderboard(factory_id: str, limit: int = 10) -> MetricResult[List[LeaderboardEntry]]:
    try:
        suggestions = records_from_dataframe(fetchers.fetch_kaizen_suggestions(factory_id), KaizenSuggestion)
    except RecordFetchError as e:
        logger.error(f"Kaizen leaderboard unavailable for factory {factory_id}: {e}")
        return MetricResult([], e)
    return MetricResult(build_kaizen_leaderboard(suggestions, limit))


# ============================================================
# TEAM AND SALES
# ============================================================

def get_team_capacity(
    now: Optional[datetime] = None,
    include_backup: bool = True,
    sort_by: str = "projects",
    weights: Optional[CapacityWeights] = None
) -> MetricResult[List[CapacityScore]]:
    now = resolve_now(now)
    try:
        members = records_from_dataframe(fetchers.fetch_team_members(), TeamMember)
        projects = records_from_dataframe(fetchers.fetch_projects(), Project)
        items = records_from_dataframe(fetchers.fetch_all_work_items(), WorkItem)
    except RecordFetchError as e:
        logger.error(f"Team capacity unavailable: {e}")
        return MetricResult([], e)
    return MetricResult(score_team_capacity(members, projects, items, now, include_backup, weights, sort_by))


def get_pipeline_forecast(factory: Optional[str] = None, now: Optional[datetime] = None) -> MetricResult[PipelineForecast]:
    now = resolve_now(now)
    try:
        quotes = records_from_dataframe(fetchers.fetch_sales_quotes(factory), SalesQuote)
        projects = records_from_dataframe(fetchers.fetch_projects(factory=factory), Project)
    except RecordFetchError as e:
        logger.error(f"Sales pipeline unavailable: {e}")
        return MetricResult(PipelineForecast(), e)
    return MetricResult(forecast_pipeline(quotes, now, projects))


def get_rep_performance(factory: Optional[str] = None) -> MetricResult[List[RepPerformance]]:
    try:
        quotes = records_from_dataframe(fetchers.fetch_sales_quotes(factory), SalesQuote)
        reps = records_from_dataframe(fetchers.fetch_sales_reps(), TeamMember)
    except RecordFetchError as e:
        logger.error(f"Sales rep performance unavailable: {e}")
        return MetricResult([], e)
    return MetricResult(summarize_rep_performance(quotes, reps))
