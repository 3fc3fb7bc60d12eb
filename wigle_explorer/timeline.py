"""
Temporal range tracking and point-in-time snapshots.

Network records are timed by `last_seen`, observations by `time`; both are
epoch milliseconds and values <= 0 mean "no timestamp".
"""

import math
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Tuple, Any

from wigle_explorer.models import NO_TIMESTAMP, TimeRange, NetworkRecord, ObservationRecord

logger = logging.getLogger(__name__)


def compute_range(networks: Sequence[NetworkRecord], observations: Sequence[ObservationRecord]) -> TimeRange:
    """Min/max of all strictly positive timestamps across both sets"""
    times = [n.last_seen for n in networks if n.last_seen > 0]
    times.extend(o.time for o in observations if o.time > 0)
    if not times:
        return TimeRange(NO_TIMESTAMP, NO_TIMESTAMP)
    return TimeRange(min(times), max(times))


def filter_by_cutoff(records: Sequence, cutoff: float) -> list:
    """Keep records whose timestamp is at or before `cutoff`"""
    return [r for r in records if r.timestamp <= cutoff]


def cutoff_at(time_range: TimeRange, percent: float) -> float:
    """Timestamp at `percent` (0-100) of the way through the range"""
    percent = min(100.0, max(0.0, float(percent)))
    return time_range.min + time_range.span_ms * percent / 100.0


def snapshot(networks: Sequence[NetworkRecord], observations: Sequence[ObservationRecord],
             cutoff: float) -> Tuple[List[NetworkRecord], List[ObservationRecord]]:
    return filter_by_cutoff(networks, cutoff), filter_by_cutoff(observations, cutoff)


def _format_date(ms: float) -> str:
    return datetime.fromtimestamp(ms / 1000.0, tz=timezone.utc).strftime('%Y-%m-%d')


def time_insight(time_range: TimeRange, network_count: int) -> Optional[str]:
    """One-sentence discovery rate summary, or None without timestamps"""
    if time_range.is_empty:
        return None

    duration = time_range.duration_days
    if duration < 1:
        return f"Discovered {network_count} networks in one session"

    per_day = network_count / duration
    if duration < 7:
        return f"{per_day:.1f} networks/day over {round(duration)} days of scanning"
    return f"Long-term data: {round(duration)} days, {per_day:.1f} networks/day average"


def timeline_info(time_range: TimeRange, network_count: int) -> Dict[str, Any]:
    """Date range, whole-day duration and discovery rate for the timeline panel"""
    if time_range.is_empty:
        return {'available': False, 'message': 'No timestamp data available'}

    duration_days = math.ceil(time_range.duration_days)
    return {
        'available': True,
        'start': _format_date(time_range.min),
        'end': _format_date(time_range.max),
        'duration_days': duration_days,
        'networks_per_day': round(network_count / duration_days, 1) if duration_days else float(network_count)
    }
