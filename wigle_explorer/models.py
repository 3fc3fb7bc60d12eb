"""
Wigle Explorer - Data Models and Types

Defines the record structures produced by ingestion and the derived
enumerations used by filtering and analysis.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List, Dict, Any, FrozenSet, Iterable

HIDDEN_SSID = "Hidden Network"
NO_TIMESTAMP = 0

MS_PER_DAY = 1000 * 60 * 60 * 24


class NetworkType(Enum):
    """Radio technology of a sighted network"""
    WIFI = "W"
    BT_CLASSIC = "B"
    BT_LE = "E"
    GSM = "G"
    LTE = "L"
    CDMA = "C"

    @classmethod
    def codes(cls) -> List[str]:
        """Type codes in display order"""
        return [t.value for t in cls]

    @classmethod
    def from_code(cls, code: str) -> Optional['NetworkType']:
        for network_type in cls:
            if network_type.value == code:
                return network_type
        return None

    @property
    def name_friendly(self) -> str:
        """Human-readable name"""
        names = {
            "W": "Wi-Fi",
            "B": "Bluetooth Classic",
            "E": "Bluetooth LE",
            "G": "GSM/UMTS",
            "L": "LTE/NR",
            "C": "CDMA"
        }
        return names.get(self.value, "Unknown")

    @property
    def description(self) -> str:
        descriptions = {
            "W": "Wi-Fi access points and routers",
            "B": "Bluetooth Classic devices (older standard)",
            "E": "Bluetooth Low Energy devices (modern)",
            "G": "GSM/UMTS cellular towers",
            "L": "LTE/5G cellular infrastructure",
            "C": "CDMA cellular networks"
        }
        return descriptions.get(self.value, "Unknown network type")


BLUETOOTH_TYPES = frozenset({NetworkType.BT_CLASSIC.value, NetworkType.BT_LE.value})
CELLULAR_TYPES = frozenset({NetworkType.GSM.value, NetworkType.LTE.value, NetworkType.CDMA.value})


class SecurityClass(Enum):
    """Wi-Fi security class derived from a capabilities string"""
    OPEN = "Open"
    WEP = "WEP"
    WPA = "WPA"
    WPA2 = "WPA2"
    WPA3 = "WPA3"

    @property
    def insight(self) -> str:
        insights = {
            "WPA3": "Latest security standard - excellent protection",
            "WPA2": "Strong security - widely compatible",
            "WPA": "Older standard - consider upgrading",
            "WEP": "Deprecated - easily crackable",
            "Open": "No encryption - avoid for sensitive data"
        }
        return insights[self.value]


class FrequencyBand(Enum):
    """Named radio band derived from a frequency in MHz"""
    BAND_2_4GHZ = "2.4GHz"
    BAND_5GHZ = "5GHz"
    BAND_6GHZ = "6GHz"
    BAND_900MHZ = "900MHz"
    BAND_1800MHZ = "1800MHz"
    OTHER = "Other"


@dataclass
class NetworkRecord:
    """A single network with its last known position"""
    type: str
    lat: float
    lon: float
    level: int
    ssid: str
    bssid: str
    last_seen: int = NO_TIMESTAMP  # epoch ms
    frequency: Optional[int] = None  # MHz
    capabilities: str = ""

    @property
    def timestamp(self) -> int:
        return self.last_seen

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization"""
        return {
            'type': self.type,
            'lat': self.lat,
            'lon': self.lon,
            'level': self.level,
            'ssid': self.ssid,
            'bssid': self.bssid,
            'last_seen': self.last_seen,
            'frequency': self.frequency,
            'capabilities': self.capabilities
        }


@dataclass
class ObservationRecord:
    """One sighting event: where and how strong a signal was heard"""
    lat: float
    lon: float
    level: int
    type: str
    time: int = NO_TIMESTAMP  # epoch ms

    @property
    def timestamp(self) -> int:
        return self.time

    def to_dict(self) -> Dict[str, Any]:
        return {
            'lat': self.lat,
            'lon': self.lon,
            'level': self.level,
            'type': self.type,
            'time': self.time
        }


@dataclass(frozen=True)
class TimeRange:
    """Inclusive timestamp range; (0, 0) means no temporal data"""
    min: int = NO_TIMESTAMP
    max: int = NO_TIMESTAMP

    def __post_init__(self):
        if not self.is_empty and self.min > self.max:
            raise ValueError(f"TimeRange min {self.min} is after max {self.max}")

    @property
    def is_empty(self) -> bool:
        return self.min == NO_TIMESTAMP and self.max == NO_TIMESTAMP

    @property
    def span_ms(self) -> int:
        return self.max - self.min

    @property
    def duration_days(self) -> float:
        return self.span_ms / MS_PER_DAY

    def to_dict(self) -> Dict[str, Any]:
        return {'min': self.min, 'max': self.max, 'empty': self.is_empty}


@dataclass(frozen=True)
class SecurityFlags:
    """Which Wi-Fi security classes a view lets through"""
    open: bool = True
    wep: bool = True
    wpa: bool = True
    wpa3: bool = True
    hidden: bool = True

    def allows(self, security: SecurityClass) -> bool:
        """WPA and WPA2 share one flag"""
        if security is SecurityClass.OPEN:
            return self.open
        if security is SecurityClass.WEP:
            return self.wep
        if security in (SecurityClass.WPA, SecurityClass.WPA2):
            return self.wpa
        return self.wpa3


def _parse_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ('1', 'true', 't', 'yes', 'y', 'on')


@dataclass(frozen=True)
class FilterCriteria:
    """Immutable snapshot of the marker-view filter controls"""
    active_types: FrozenSet[str] = field(default_factory=lambda: frozenset(NetworkType.codes()))
    min_signal: int = -100
    search_text: str = ""
    security: SecurityFlags = field(default_factory=SecurityFlags)

    @classmethod
    def build(cls, active_types: Optional[Iterable[str]] = None, min_signal: int = -100,
              search_text: str = "", security: Optional[SecurityFlags] = None) -> 'FilterCriteria':
        types = NetworkType.codes() if active_types is None else active_types
        return cls(
            active_types=frozenset(types),
            min_signal=int(min_signal),
            search_text=(search_text or "").strip(),
            security=security or SecurityFlags()
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FilterCriteria':
        """Create from request parameters.

        `types` may be a list or a comma separated string of type codes.
        """
        types = data.get('types')
        if isinstance(types, str):
            types = [t.strip().upper() for t in types.split(',') if t.strip()]
        try:
            min_signal = int(data.get('min_signal', -100))
        except (TypeError, ValueError):
            min_signal = -100
        security = SecurityFlags(
            open=_parse_bool(data.get('open'), True),
            wep=_parse_bool(data.get('wep'), True),
            wpa=_parse_bool(data.get('wpa'), True),
            wpa3=_parse_bool(data.get('wpa3'), True),
            hidden=_parse_bool(data.get('hidden'), True)
        )
        return cls.build(types, min_signal, str(data.get('search', '') or ''), security)


@dataclass
class SightingAggregate:
    """How often one network was matched by observations"""
    bssid: str
    ssid: str
    type: str
    capabilities: str
    sighting_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'bssid': self.bssid,
            'ssid': self.ssid,
            'type': self.type,
            'capabilities': self.capabilities,
            'sightings': self.sighting_count
        }


@dataclass
class FilteredView:
    """Networks matching a FilterCriteria, capped for display"""
    networks: List[NetworkRecord] = field(default_factory=list)
    total_matches: int = 0

    @property
    def truncated(self) -> bool:
        return self.total_matches > len(self.networks)


@dataclass
class SamplePlan:
    """Decimation plan for the observation stream"""
    stride: int
    limit: int

    @property
    def is_sampled(self) -> bool:
        return self.stride > 1


@dataclass
class IngestResult:
    """Record sets produced by one load operation"""
    networks: List[NetworkRecord] = field(default_factory=list)
    observations: List[ObservationRecord] = field(default_factory=list)
    time_range: TimeRange = field(default_factory=TimeRange)
    cancelled: bool = False
    sample_plan: Optional[SamplePlan] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'networks': len(self.networks),
            'observations': len(self.observations),
            'time_range': self.time_range.to_dict(),
            'cancelled': self.cancelled,
            'sampled': bool(self.sample_plan and self.sample_plan.is_sampled)
        }
