"""
Sales Pipeline Forecasting

Pipeline value, outlook-weighted value, win rate and the 30/60/90-day close
forecast for the latest version of each quote.

Forecast bucketing uses the structured ``expected_close_date`` when present.
Quotes that only carry the free-text ``expected_close_timeframe`` fall back to
legacy keyword matching, which may place one quote in several buckets.
Quotes with neither are counted as unbucketed.
"""

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

import pandas as pd

from core.models.records import Project, QuoteStatus, SalesQuote, TeamMember
from core.time_windows.models import days_since, days_until
from utils.formatting import resolve_now, round_half_up

logger = logging.getLogger(__name__)

ACTIVE_QUOTE_STATUSES = (
    QuoteStatus.DRAFT.value,
    QuoteStatus.SENT.value,
    QuoteStatus.NEGOTIATING.value,
    QuoteStatus.AWAITING_PO.value,
    QuoteStatus.PO_RECEIVED.value,
)

DEFAULT_OUTLOOK_PERCENT = 50
RECENT_CONVERSION_DAYS = 30

# Quote age thresholds (days since created)
FRESH_QUOTE_DAYS = 15
AGING_QUOTE_DAYS = 25
STALE_QUOTE_DAYS = 30

BUCKETS = ("next30", "next60", "next90")
BUCKET_LIMITS = (("next30", 30), ("next60", 60), ("next90", 90))

# Legacy free-text matching, checked per bucket independently
LEGACY_KEYWORDS = {
    "next30": ("week", "30", "asap", "soon"),
    "next60": ("60", "month", "2 week"),
    "next90": ("90", "quarter", "3 month"),
}

BUILDING_TYPES = ["CUSTOM", "FLEET/STOCK", "GOVERNMENT", "Business", "Unknown"]


@dataclass
class PipelineForecast:
    pipeline_value: float = 0.0
    weighted_pipeline_value: float = 0.0
    pipeline_count: int = 0
    won_count: int = 0
    lost_count: int = 0
    won_value: float = 0.0
    win_rate: int = 0
    pm_flagged: List[Dict] = field(default_factory=list)
    recently_converted: List[Dict] = field(default_factory=list)
    forecast: Dict[str, float] = field(default_factory=lambda: {b: 0.0 for b in BUCKETS})
    unbucketed_count: int = 0
    unbucketed_value: float = 0.0
    stale_quotes: List[Dict] = field(default_factory=list)
    building_types: Dict[str, Dict[str, int]] = field(default_factory=dict)

    @property
    def pm_flagged_count(self) -> int:
        return len(self.pm_flagged)

    @property
    def stale_count(self) -> int:
        return len(self.stale_quotes)

    def to_dict(self) -> Dict:
        result = asdict(self)
        result['pm_flagged_count'] = self.pm_flagged_count
        result['stale_count'] = self.stale_count
        return result


@dataclass
class RepPerformance:
    rep_id: str
    full_name: str
    total_quotes: int
    active_quotes: int
    won_count: int
    lost_count: int
    pipeline_value: float
    weighted_value: float
    won_value: float
    win_rate: int

    def to_dict(self) -> Dict:
        return asdict(self)


def outlook_fraction(quote: SalesQuote) -> float:
    """Outlook as a fraction; 50% when not set. An explicit 0 stays 0."""
    outlook = quote.outlook_percentage
    if outlook is None:
        outlook = DEFAULT_OUTLOOK_PERCENT
    return outlook / 100


def weighted_value(quote: SalesQuote) -> float:
    return quote.total_price * outlook_fraction(quote)


def calculate_win_rate(won_count: int, lost_count: int) -> int:
    closed = won_count + lost_count
    if closed == 0:
        return 0
    return round_half_up(won_count / closed * 100)


def classify_quote_age(days_old: Optional[int]) -> str:
    if days_old is None:
        return "unknown"
    if days_old <= FRESH_QUOTE_DAYS:
        return "fresh"
    if days_old <= AGING_QUOTE_DAYS:
        return "aging"
    return "stale"


def legacy_keyword_buckets(timeframe: Optional[str]) -> Tuple[str, ...]:
    """
    Buckets matched by the free-text close timeframe.

    Legacy fallback only. "2 weeks" matches both next30 and next60.
    """
    if not timeframe:
        return ()
    text = timeframe.lower()
    return tuple(
        bucket for bucket in BUCKETS
        if any(keyword in text for keyword in LEGACY_KEYWORDS[bucket])
    )


def forecast_buckets(quote: SalesQuote, now: datetime) -> Tuple[str, ...]:
    """
    Forecast buckets for one quote.

    A structured close date wins: up to 30 days out (past dates included) is
    next30, 31–60 next60, 61–90 next90, later none.
    """
    if quote.expected_close_date is not None:
        days = days_until(quote.expected_close_date, now, now.tzinfo)
        for bucket, limit in BUCKET_LIMITS:
            if days <= limit:
                return (bucket,)
        return ()
    return legacy_keyword_buckets(quote.expected_close_timeframe)


def _is_bucketable(quote: SalesQuote) -> bool:
    return quote.expected_close_date is not None or bool(legacy_keyword_buckets(quote.expected_close_timeframe))


def _quote_summary(quote: SalesQuote) -> Dict:
    return {
        'id': quote.id,
        'quote_number': quote.quote_number,
        'project_name': quote.project_name,
        'status': quote.status,
        'total_price': quote.total_price,
        'outlook_percentage': quote.outlook_percentage,
    }


def latest_versions(quotes: Iterable[SalesQuote]) -> List[SalesQuote]:
    return [q for q in quotes if q.is_latest_version]


def building_type_breakdown(active_quotes: List[SalesQuote]) -> Dict[str, Dict[str, int]]:
    """Active quote counts per factory and building type."""
    if not active_quotes:
        return {}
    df = pd.DataFrame({
        'factory': [q.factory or 'Unknown' for q in active_quotes],
        'building_type': [q.building_type or 'Unknown' for q in active_quotes],
    })
    table = pd.crosstab(df['factory'], df['building_type'])
    extra = [c for c in table.columns if c not in BUILDING_TYPES]
    table = table.reindex(columns=BUILDING_TYPES + extra, fill_value=0)
    return {
        factory: {btype: int(count) for btype, count in row.items()}
        for factory, row in table.iterrows()
    }


def forecast_pipeline(
    quotes: Iterable[SalesQuote],
    now: Optional[datetime] = None,
    projects: Optional[Iterable[Project]] = None
) -> PipelineForecast:
    """
    Forecast the sales pipeline.

    Only the latest version of each quote is considered. Value and forecast
    figures cover active quotes (draft, sent, negotiating, awaiting_po,
    po_received).

    Args:
        quotes: Sales quotes
        now: Injected current time
        projects: Optional projects used to name recently converted quotes

    Returns:
        PipelineForecast
    """
    now = resolve_now(now)
    quotes = latest_versions(quotes)
    projects_by_id = {p.id: p for p in (projects or [])}

    active = [q for q in quotes if q.status in ACTIVE_QUOTE_STATUSES]
    won = [q for q in quotes if q.status == QuoteStatus.WON.value]
    lost = [q for q in quotes if q.status == QuoteStatus.LOST.value]

    forecast = {bucket: 0.0 for bucket in BUCKETS}
    unbucketed_count = 0
    unbucketed_value = 0.0
    for quote in active:
        value = weighted_value(quote)
        if not _is_bucketable(quote):
            unbucketed_count += 1
            unbucketed_value += value
            continue
        for bucket in forecast_buckets(quote, now):
            forecast[bucket] += value

    if unbucketed_count:
        logger.info(f"{unbucketed_count} active quotes have no close date or recognizable timeframe")

    converted = []
    for quote in quotes:
        if not (quote.converted_to_project_id and quote.converted_at):
            continue
        if now - quote.converted_at > timedelta(days=RECENT_CONVERSION_DAYS):
            continue
        days_ago = days_since(quote.converted_at, now)
        project = projects_by_id.get(quote.converted_to_project_id)
        entry = _quote_summary(quote)
        entry.update({
            'converted_at': quote.converted_at.isoformat(),
            'converted_to_project_id': quote.converted_to_project_id,
            'project_name_converted': project.name if project else None,
            'days_ago': days_ago,
        })
        converted.append((quote.converted_at, entry))
    converted.sort(key=lambda pair: pair[0], reverse=True)
    recently_converted = [entry for _, entry in converted]

    stale = []
    for quote in active:
        days_old = days_since(quote.created_at, now)
        if days_old is not None and days_old >= STALE_QUOTE_DAYS:
            entry = _quote_summary(quote)
            entry['days_old'] = days_old
            entry['age'] = classify_quote_age(days_old)
            stale.append(entry)
    stale.sort(key=lambda e: e['days_old'], reverse=True)

    return PipelineForecast(
        pipeline_value=sum(q.total_price for q in active),
        weighted_pipeline_value=sum(weighted_value(q) for q in active),
        pipeline_count=len(active),
        won_count=len(won),
        lost_count=len(lost),
        won_value=sum(q.total_price for q in won),
        win_rate=calculate_win_rate(len(won), len(lost)),
        pm_flagged=[_quote_summary(q) for q in active if q.pm_flagged],
        recently_converted=recently_converted,
        forecast=forecast,
        unbucketed_count=unbucketed_count,
        unbucketed_value=unbucketed_value,
        stale_quotes=stale,
        building_types=building_type_breakdown(active),
    )


def summarize_rep_performance(
    quotes: Iterable[SalesQuote],
    reps: Iterable[TeamMember]
) -> List[RepPerformance]:
    """Per-rep pipeline figures, largest pipeline first."""
    quotes = latest_versions(quotes)
    performance = []
    for rep in reps:
        own = [q for q in quotes if q.assigned_to == rep.id]
        active = [q for q in own if q.status in ACTIVE_QUOTE_STATUSES]
        won = [q for q in own if q.status == QuoteStatus.WON.value]
        lost = [q for q in own if q.status == QuoteStatus.LOST.value]
        performance.append(RepPerformance(
            rep_id=rep.id,
            full_name=rep.full_name,
            total_quotes=len(own),
            active_quotes=len(active),
            won_count=len(won),
            lost_count=len(lost),
            pipeline_value=sum(q.total_price for q in active),
            weighted_value=sum(weighted_value(q) for q in active),
            won_value=sum(q.total_price for q in won),
            win_rate=calculate_win_rate(len(won), len(lost)),
        ))
    performance.sort(key=lambda r: r.pipeline_value, reverse=True)
    return performance
