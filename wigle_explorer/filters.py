"""
Filter engine: evaluates a FilterCriteria snapshot against network records.
"""

from typing import Iterable, List, Sequence

from wigle_explorer.classifier import classify_security, is_hidden_ssid
from wigle_explorer.models import FilterCriteria, NetworkRecord, NetworkType


def matches(record: NetworkRecord, criteria: FilterCriteria) -> bool:
    """
    True when `record` passes every predicate of `criteria`.

    Order: type, minimum signal, search text (ssid or bssid), then the
    security/hidden gate which only applies to Wi-Fi.
    """
    if record.type not in criteria.active_types:
        return False

    if record.level < criteria.min_signal:
        return False

    if criteria.search_text:
        needle = criteria.search_text.lower()
        if needle not in record.ssid.lower() and needle not in record.bssid.lower():
            return False

    if record.type == NetworkType.WIFI.value:
        if is_hidden_ssid(record.ssid):
            return criteria.security.hidden
        return criteria.security.allows(classify_security(record.capabilities))

    return True


def filter_networks(records: Sequence[NetworkRecord], criteria: FilterCriteria) -> List[NetworkRecord]:
    """Subset of `records` matching `criteria`, in input order"""
    return [r for r in records if matches(r, criteria)]


def filter_by_types(records: Iterable, active_types: Iterable[str]) -> list:
    """Type-only filter, usable for networks and observations alike"""
    types = frozenset(active_types)
    return [r for r in records if r.type in types]
