"""
Capability and frequency classification for sighted networks.
"""

from typing import Optional, Union

from wigle_explorer.models import HIDDEN_SSID, FrequencyBand, SecurityClass

# Precedence matters: "WPA2" also contains "WPA".
_SECURITY_ORDER = (
    ('WPA3', SecurityClass.WPA3),
    ('WPA2', SecurityClass.WPA2),
    ('WPA', SecurityClass.WPA),
    ('WEP', SecurityClass.WEP),
)

# Inclusive MHz ranges, checked in order. 6000 falls into 5GHz.
_BAND_RANGES = (
    (2400, 2500, FrequencyBand.BAND_2_4GHZ),
    (5000, 6000, FrequencyBand.BAND_5GHZ),
    (6000, 7000, FrequencyBand.BAND_6GHZ),
    (900, 1000, FrequencyBand.BAND_900MHZ),
    (1800, 2000, FrequencyBand.BAND_1800MHZ),
)

SIGNAL_BUCKETS = (
    ('excellent', -50),
    ('good', -70),
    ('fair', -85),
)


def classify_security(capabilities: Optional[str]) -> SecurityClass:
    """Map a raw capabilities descriptor (e.g. "[WPA2-PSK-CCMP][ESS]") to a SecurityClass"""
    if not capabilities:
        return SecurityClass.OPEN
    for token, security in _SECURITY_ORDER:
        if token in capabilities:
            return security
    return SecurityClass.OPEN


def classify_frequency_band(frequency: Optional[Union[int, float]]) -> FrequencyBand:
    """Map a frequency in MHz to a named band; anything unrecognized is Other"""
    try:
        freq = float(frequency)
    except (TypeError, ValueError):
        return FrequencyBand.OTHER
    for low, high, band in _BAND_RANGES:
        if low <= freq <= high:
            return band
    return FrequencyBand.OTHER


def is_hidden_ssid(ssid: Optional[str]) -> bool:
    return not ssid or ssid == HIDDEN_SSID


def signal_quality(level: int) -> str:
    """Bucket a dBm level into excellent/good/fair/poor"""
    for name, threshold in SIGNAL_BUCKETS:
        if level >= threshold:
            return name
    return 'poor'
