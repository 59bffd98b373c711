"""
Kaizen suggestion leaderboard.
"""

import logging
from collections import Counter
from dataclasses import asdict, dataclass
from typing import Dict, Iterable, List, Optional

from core.models.records import KaizenSuggestion

logger = logging.getLogger(__name__)

APPROVED_STATUS = "Approved"
DEFAULT_LEADERBOARD_LIMIT = 10


@dataclass
class LeaderboardEntry:
    submitter_id: str
    name: Optional[str]
    approved_count: int

    def to_dict(self) -> Dict:
        return asdict(self)


def build_kaizen_leaderboard(
    suggestions: Iterable[KaizenSuggestion],
    limit: int = DEFAULT_LEADERBOARD_LIMIT
) -> List[LeaderboardEntry]:
    """Approved, non-anonymous suggestions counted per submitter, top ``limit``."""
    counts: Counter = Counter()
    names: Dict[str, Optional[str]] = {}
    for suggestion in suggestions:
        if suggestion.status != APPROVED_STATUS or suggestion.is_anonymous:
            continue
        submitter = suggestion.worker_id or suggestion.user_id
        if submitter is None:
            continue
        counts[submitter] += 1
        names.setdefault(submitter, suggestion.submitter_name or "Unknown")

    ranked = sorted(counts.items(), key=lambda pair: (-pair[1], names.get(pair[0]) or "", pair[0]))
    return [
        LeaderboardEntry(submitter_id=sid, name=names.get(sid), approved_count=count)
        for sid, count in ranked[:limit]
    ]
