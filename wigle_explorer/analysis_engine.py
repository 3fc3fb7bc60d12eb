"""
Wardriving Analysis Engine
Handles grouping, ranking, sighting matching and heuristic insights over
ingested network and observation records.
"""

import logging
import math
import re
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Any

import numpy as np

from wigle_explorer.classifier import (
    classify_frequency_band, classify_security, is_hidden_ssid, signal_quality
)
from wigle_explorer.config import ExplorerConfig
from wigle_explorer.models import (
    BLUETOOTH_TYPES, CELLULAR_TYPES, FrequencyBand, NetworkRecord, NetworkType,
    ObservationRecord, SecurityClass, SightingAggregate, TimeRange
)
from wigle_explorer.spatial import GridIndex
from wigle_explorer.timeline import time_insight

logger = logging.getLogger(__name__)

KM_PER_DEGREE = 111.0
MIN_NETWORKS_FOR_COVERAGE = 10

# (upper bound in km², label)
COVERAGE_LABELS = (
    (1.0, 'neighborhood'),
    (10.0, 'district'),
    (100.0, 'city area'),
)

COMMON_NAMES = ['FRITZ!Box', 'Vodafone', 'Telekom', 'eduroam', 'Guest']

OPEN_NETWORK_THRESHOLD = 5
BLUETOOTH_ACTIVITY_THRESHOLD = 50
LOW_DIVERSITY_RATIO = 0.3
HIGH_DIVERSITY_RATIO = 0.8
COMMON_NAME_THRESHOLD = 2
MAX_PATTERN_EXAMPLES = 5


def _percent(count: int, total: int) -> int:
    """Whole percentage rounded half up; 0 when there is nothing to divide by"""
    if total <= 0:
        return 0
    return int(math.floor(count / total * 100 + 0.5))


@dataclass
class GroupStat:
    count: int
    percentage: int
    label: str = ""
    insight: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            'count': self.count,
            'percentage': self.percentage,
            'label': self.label,
            'insight': self.insight
        }


@dataclass
class NamePattern:
    """A labeled group of networks whose names match one rule"""
    name: str
    description: str
    count: int
    examples: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'description': self.description,
            'count': self.count,
            'examples': self.examples
        }


@dataclass
class Finding:
    """One threshold-triggered observation about the dataset"""
    kind: str
    text: str
    action: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {'kind': self.kind, 'text': self.text, 'action': self.action}


@dataclass
class PatternRule:
    name: str
    description: str
    predicate: Callable[[str], bool]


def _contains_any(*needles: str) -> Callable[[str], bool]:
    def check(ssid: str) -> bool:
        lower = ssid.lower()
        return any(n in lower for n in needles)
    return check


_CORPORATE_NAME = re.compile(r'^[A-Z]{2,}-[A-Z0-9]+$')
_DEFAULT_NAMES = (
    re.compile(r'^WiFi-[A-F0-9]+$', re.IGNORECASE),
    re.compile(r'^Network-[0-9]+$', re.IGNORECASE),
    re.compile(r'^Router[0-9]*$', re.IGNORECASE),
)


def _is_business(ssid: str) -> bool:
    return _contains_any('office', 'corp', 'company', 'store')(ssid) or bool(_CORPORATE_NAME.match(ssid))


def _is_default_name(ssid: str) -> bool:
    return any(p.match(ssid) for p in _DEFAULT_NAMES) or ssid.lower() in ('wifi', 'internet')


PATTERN_RULES = [
    PatternRule(
        'FRITZ!Box Routers',
        'Popular German home routers by AVM. Commonly found in residential areas across Germany and Europe.',
        lambda ssid: 'FRITZ!Box' in ssid
    ),
    PatternRule(
        'Vodafone Networks',
        'Vodafone ISP infrastructure including home routers and public hotspots. Major European telecom provider.',
        _contains_any('vodafone')
    ),
    PatternRule(
        'Educational Networks',
        'University and educational institution networks. Eduroam provides international academic access.',
        _contains_any('eduroam', 'campus', 'university', 'up-')
    ),
    PatternRule(
        'Guest & Public Networks',
        'Open or guest access networks for visitors. Often found in businesses, hotels, and public spaces.',
        _contains_any('guest', 'public', 'free', 'hotspot')
    ),
    PatternRule(
        'Business Networks',
        'Corporate and business networks with structured naming conventions.',
        _is_business
    ),
    PatternRule(
        'Carrier Networks',
        'Mobile carrier infrastructure and LTE/5G networks providing cellular data services.',
        _contains_any('telekom', 'o2', 'lte', '4g', '5g')
    ),
    PatternRule(
        'Default Router Names',
        'Networks using default or generic router names, often indicating basic home setups.',
        _is_default_name
    ),
]


@dataclass
class AnalysisSummary:
    """Everything the analysis panel shows for one dataset"""
    total_networks: int = 0
    total_observations: int = 0
    wifi_networks: int = 0
    bluetooth_devices: int = 0
    cellular_networks: int = 0
    unique_ssids: int = 0
    open_networks: int = 0
    open_percentage: int = 0
    coverage_area: str = 'small area'
    network_types: Dict[str, GroupStat] = field(default_factory=dict)
    wifi_security: Dict[str, GroupStat] = field(default_factory=dict)
    frequency_bands: Dict[str, GroupStat] = field(default_factory=dict)
    signal_distribution: Dict[str, int] = field(default_factory=dict)
    signal_quality: str = 'Unknown'
    top_signal: List[NetworkRecord] = field(default_factory=list)
    top_sightings: List[SightingAggregate] = field(default_factory=list)
    patterns: List[NamePattern] = field(default_factory=list)
    findings: List[Finding] = field(default_factory=list)
    time_insight: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization"""
        return {
            'total_networks': self.total_networks,
            'total_observations': self.total_observations,
            'wifi_networks': self.wifi_networks,
            'bluetooth_devices': self.bluetooth_devices,
            'cellular_networks': self.cellular_networks,
            'unique_ssids': self.unique_ssids,
            'open_networks': self.open_networks,
            'open_percentage': self.open_percentage,
            'coverage_area': self.coverage_area,
            'network_types': {k: v.to_dict() for k, v in self.network_types.items()},
            'wifi_security': {k: v.to_dict() for k, v in self.wifi_security.items()},
            'frequency_bands': {k: v.to_dict() for k, v in self.frequency_bands.items()},
            'signal_distribution': self.signal_distribution,
            'signal_quality': self.signal_quality,
            'top_signal': [n.to_dict() for n in self.top_signal],
            'top_sightings': [s.to_dict() for s in self.top_sightings],
            'patterns': [p.to_dict() for p in self.patterns],
            'findings': [f.to_dict() for f in self.findings],
            'time_insight': self.time_insight
        }


class AnalysisEngine:
    """Main analysis engine for wardriving data"""

    def __init__(self, config: Optional[ExplorerConfig] = None):
        self.config = config or ExplorerConfig()

    # ----- grouping -----

    @staticmethod
    def type_breakdown(networks: Sequence[NetworkRecord]) -> Dict[str, GroupStat]:
        """Count and share per network type; only types that occur are listed"""
        counts: Dict[str, int] = defaultdict(int)
        for n in networks:
            counts[n.type] += 1

        known = NetworkType.codes()
        ordered = [t for t in known if t in counts] + [t for t in counts if t not in known]

        total = len(networks)
        result = {}
        for code in ordered:
            network_type = NetworkType.from_code(code)
            result[code] = GroupStat(
                count=counts[code],
                percentage=_percent(counts[code], total),
                label=network_type.name_friendly if network_type else code,
                insight=network_type.description if network_type else 'Unknown network type'
            )
        return result

    @staticmethod
    def security_breakdown(networks: Sequence[NetworkRecord]) -> Dict[str, GroupStat]:
        """Count and share per security class, Wi-Fi only, in order of first occurrence"""
        wifi = [n for n in networks if n.type == NetworkType.WIFI.value]
        counts: Dict[SecurityClass, int] = {}
        for n in wifi:
            security = classify_security(n.capabilities)
            counts[security] = counts.get(security, 0) + 1

        return {
            security.value: GroupStat(
                count=count,
                percentage=_percent(count, len(wifi)),
                label=security.value,
                insight=security.insight
            )
            for security, count in counts.items()
        }

    @staticmethod
    def frequency_breakdown(networks: Sequence[NetworkRecord]) -> Dict[str, GroupStat]:
        """Band split of Wi-Fi networks that report a frequency"""
        wifi = [n for n in networks if n.type == NetworkType.WIFI.value and n.frequency]
        counts: Dict[str, int] = {}
        for n in wifi:
            band = classify_frequency_band(n.frequency).value
            counts[band] = counts.get(band, 0) + 1
        order = [b.value for b in FrequencyBand]
        return {
            band: GroupStat(count=counts[band], percentage=_percent(counts[band], len(wifi)), label=band)
            for band in order if band in counts
        }

    @staticmethod
    def signal_distribution(networks: Sequence[NetworkRecord]) -> Dict[str, int]:
        distribution = {'excellent': 0, 'good': 0, 'fair': 0, 'poor': 0}
        for n in networks:
            distribution[signal_quality(n.level)] += 1
        return distribution

    @staticmethod
    def overall_signal_quality(distribution: Dict[str, int]) -> str:
        total = sum(distribution.values())
        if total == 0:
            return 'Unknown'

        excellent = distribution['excellent'] / total * 100
        good = distribution['good'] / total * 100
        if excellent > 30:
            return 'Excellent'
        if excellent + good > 60:
            return 'Good'
        if distribution['poor'] / total < 0.5:
            return 'Fair'
        return 'Poor'

    # ----- rankings -----

    @staticmethod
    def top_signal(networks: Sequence[NetworkRecord], count: int = 10) -> List[NetworkRecord]:
        """Strongest named networks; equal levels keep ingestion order"""
        named = [n for n in networks if not is_hidden_ssid(n.ssid)]
        return sorted(named, key=lambda n: n.level, reverse=True)[:count]

    def top_sightings(self, networks: Sequence[NetworkRecord], observations: Sequence[ObservationRecord],
                      count: Optional[int] = None, epsilon: Optional[float] = None) -> List[SightingAggregate]:
        """
        Rank networks by how many observations fall next to them.

        An observation matches the earliest network in `networks` of the same
        type whose coordinates differ by less than `epsilon` on both axes.
        Matches against hidden networks are not tallied. Ties in the ranking
        keep the order in which networks were first matched.
        """
        count = self.config.top_sightings_count if count is None else count
        epsilon = self.config.sighting_epsilon_deg if epsilon is None else epsilon

        by_type: Dict[str, List[NetworkRecord]] = defaultdict(list)
        for n in networks:
            by_type[n.type].append(n)
        indexes = {t: GridIndex(records, epsilon) for t, records in by_type.items()}

        tallies: Dict[str, SightingAggregate] = {}
        matched = 0
        for obs in observations:
            index = indexes.get(obs.type)
            if index is None:
                continue
            position = index.first_within(obs.lat, obs.lon, epsilon)
            if position is None:
                continue
            network = index.records[position]
            if is_hidden_ssid(network.ssid):
                continue
            aggregate = tallies.get(network.bssid)
            if aggregate is None:
                aggregate = SightingAggregate(
                    bssid=network.bssid,
                    ssid=network.ssid,
                    type=network.type,
                    capabilities=network.capabilities
                )
                tallies[network.bssid] = aggregate
            aggregate.sighting_count += 1
            matched += 1

        logger.debug(f"Matched {matched} of {len(observations)} observations to {len(tallies)} networks")
        return sorted(tallies.values(), key=lambda a: a.sighting_count, reverse=True)[:count]

    # ----- heuristics -----

    @staticmethod
    def coverage_area(networks: Sequence[NetworkRecord]) -> str:
        """Qualitative size of the bounding box around all networks"""
        if len(networks) < MIN_NETWORKS_FOR_COVERAGE:
            return 'small area'

        locs = np.array([(n.lat, n.lon) for n in networks], dtype=float)
        area_km2 = float(np.ptp(locs[:, 0]) * np.ptp(locs[:, 1]) * KM_PER_DEGREE * KM_PER_DEGREE)
        for upper, label in COVERAGE_LABELS:
            if area_km2 < upper:
                return label
        return 'large region'

    def analyze_common_networks(self, networks: Sequence[NetworkRecord]) -> List[NamePattern]:
        """Group named Wi-Fi networks by naming rules; one network may match several"""
        wifi = [n for n in networks if n.type == NetworkType.WIFI.value and not is_hidden_ssid(n.ssid)]

        patterns = []
        for rule in PATTERN_RULES:
            hits = [n.ssid for n in wifi if rule.predicate(n.ssid)]
            if not hits:
                continue
            examples = list(dict.fromkeys(hits))[:MAX_PATTERN_EXAMPLES]
            patterns.append(NamePattern(rule.name, rule.description, len(hits), examples))

        patterns.sort(key=lambda p: p.count, reverse=True)
        return patterns[:self.config.max_patterns]

    def generate_findings(self, networks: Sequence[NetworkRecord], unique_ssids: int) -> List[Finding]:
        wifi = [n for n in networks if n.type == NetworkType.WIFI.value]
        bluetooth = [n for n in networks if n.type in BLUETOOTH_TYPES]
        security = [classify_security(n.capabilities) for n in wifi]
        findings = []

        open_count = security.count(SecurityClass.OPEN)
        if open_count > OPEN_NETWORK_THRESHOLD:
            findings.append(Finding(
                'open_networks',
                f"{open_count} open Wi-Fi networks detected - potential security risks",
                action='show_open_networks'
            ))

        wep_count = security.count(SecurityClass.WEP)
        if wep_count > 0:
            findings.append(Finding(
                'wep_networks',
                f"{wep_count} WEP networks found - easily hackable, recommend avoiding"
            ))

        wpa3_count = security.count(SecurityClass.WPA3)
        if wpa3_count > 0:
            findings.append(Finding(
                'wpa3_networks',
                f"{wpa3_count} WPA3 networks found - latest security standard in use"
            ))

        if len(bluetooth) > BLUETOOTH_ACTIVITY_THRESHOLD:
            findings.append(Finding(
                'bluetooth_activity',
                f"High Bluetooth activity: {len(bluetooth)} devices discovered"
            ))

        if wifi:
            diversity = unique_ssids / len(wifi)
            if diversity < LOW_DIVERSITY_RATIO:
                findings.append(Finding(
                    'low_diversity',
                    "Low network diversity detected - suggests corporate/institutional area"
                ))
            elif diversity > HIGH_DIVERSITY_RATIO:
                findings.append(Finding(
                    'high_diversity',
                    "High network diversity - typical residential area pattern"
                ))

        found_common = [name for name in COMMON_NAMES if any(name in n.ssid for n in wifi)]
        if len(found_common) > COMMON_NAME_THRESHOLD:
            findings.append(Finding(
                'common_names',
                f"Common network patterns detected: {', '.join(found_common)}"
            ))

        return findings[:self.config.max_findings]

    # ----- summary -----

    def analyze(self, networks: Sequence[NetworkRecord], observations: Sequence[ObservationRecord],
                time_range: Optional[TimeRange] = None) -> AnalysisSummary:
        """Build the full summary from the unfiltered record sets"""
        wifi = [n for n in networks if n.type == NetworkType.WIFI.value]
        unique_ssids = len({n.ssid for n in wifi if not is_hidden_ssid(n.ssid)})

        wifi_security = self.security_breakdown(networks)
        open_stat = wifi_security.get(SecurityClass.OPEN.value)
        distribution = self.signal_distribution(networks)

        summary = AnalysisSummary(
            total_networks=len(networks),
            total_observations=len(observations),
            wifi_networks=len(wifi),
            bluetooth_devices=sum(1 for n in networks if n.type in BLUETOOTH_TYPES),
            cellular_networks=sum(1 for n in networks if n.type in CELLULAR_TYPES),
            unique_ssids=unique_ssids,
            open_networks=open_stat.count if open_stat else 0,
            open_percentage=open_stat.percentage if open_stat else 0,
            coverage_area=self.coverage_area(networks),
            network_types=self.type_breakdown(networks),
            wifi_security=wifi_security,
            frequency_bands=self.frequency_breakdown(networks),
            signal_distribution=distribution,
            signal_quality=self.overall_signal_quality(distribution),
            top_signal=self.top_signal(networks, self.config.top_signal_count),
            top_sightings=self.top_sightings(networks, observations),
            patterns=self.analyze_common_networks(networks),
            findings=self.generate_findings(networks, unique_ssids),
            time_insight=time_insight(time_range, len(networks)) if time_range else None
        )

        logger.info(
            f"Analysis complete: {summary.total_networks} networks, {summary.wifi_networks} Wi-Fi, "
            f"{len(summary.top_sightings)} sighted, {len(summary.findings)} findings"
        )
        return summary
