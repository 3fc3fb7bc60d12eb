"""Shared fixtures: synthetic WiGLE databases and in-memory sources."""

import sqlite3
import threading

import pytest

from wigle_explorer.data_sources import MemorySource
from wigle_explorer.models import NetworkRecord, ObservationRecord

DAY_MS = 24 * 60 * 60 * 1000
T0 = 1_700_000_000_000


def make_network(bssid, ssid="Net", type="W", lat=52.52, lon=13.40, level=-60,
                 last_seen=T0, frequency=2437, capabilities="[WPA2-PSK-CCMP][ESS]"):
    return NetworkRecord(
        type=type, lat=lat, lon=lon, level=level, ssid=ssid, bssid=bssid,
        last_seen=last_seen, frequency=frequency, capabilities=capabilities
    )


def make_observation(lat=52.52, lon=13.40, level=-70, type="W", time=T0):
    return ObservationRecord(lat=lat, lon=lon, level=level, type=type, time=time)


def network_row(bssid, **overrides):
    row = make_network(bssid).to_dict()
    row.update(overrides)
    return row


def observation_row(**overrides):
    row = make_observation().to_dict()
    row.update(overrides)
    return row


class BlockingSource(MemorySource):
    """Memory source whose network query waits for `release`"""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.entered = threading.Event()
        self.release = threading.Event()

    def fetch_networks(self):
        self.entered.set()
        self.release.wait(5)
        return super().fetch_networks()


def create_wigle_db(path, networks, locations):
    """
    Write a minimal WiGLE Android export.

    networks: dicts with network table columns
    locations: dicts with bssid, level, lat, lon, time
    """
    conn = sqlite3.connect(str(path))
    conn.executescript("""
        CREATE TABLE network (
            bssid TEXT PRIMARY KEY, ssid TEXT, frequency INTEGER, capabilities TEXT,
            lasttime INTEGER, lastlat REAL, lastlon REAL, type TEXT, bestlevel INTEGER
        );
        CREATE TABLE location (
            _id INTEGER PRIMARY KEY AUTOINCREMENT, bssid TEXT, level INTEGER,
            lat REAL, lon REAL, time INTEGER
        );
    """)
    conn.executemany(
        "INSERT INTO network (bssid, ssid, frequency, capabilities, lasttime, lastlat, lastlon, type, bestlevel) "
        "VALUES (:bssid, :ssid, :frequency, :capabilities, :lasttime, :lastlat, :lastlon, :type, :bestlevel)",
        networks
    )
    conn.executemany(
        "INSERT INTO location (bssid, level, lat, lon, time) VALUES (:bssid, :level, :lat, :lon, :time)",
        locations
    )
    conn.commit()
    conn.close()
    return path


@pytest.fixture
def wigle_db(tmp_path):
    """Small export: three located networks, one without a fix, five observations"""
    networks = [
        {'bssid': 'aa:00:00:00:00:01', 'ssid': 'HomeNet', 'frequency': 2412,
         'capabilities': '[WPA2-PSK-CCMP][ESS]', 'lasttime': T0 + DAY_MS, 'lastlat': 52.5200,
         'lastlon': 13.4050, 'type': 'W', 'bestlevel': -45},
        {'bssid': 'aa:00:00:00:00:02', 'ssid': '', 'frequency': 5180,
         'capabilities': '[ESS]', 'lasttime': T0, 'lastlat': 52.5210,
         'lastlon': 13.4060, 'type': 'W', 'bestlevel': -80},
        {'bssid': 'bb:00:00:00:00:01', 'ssid': 'Headphones', 'frequency': 0,
         'capabilities': 'Misc', 'lasttime': T0 + 2 * DAY_MS, 'lastlat': 52.5300,
         'lastlon': 13.4100, 'type': 'E', 'bestlevel': -70},
        {'bssid': 'cc:00:00:00:00:01', 'ssid': 'NoFix', 'frequency': 2437,
         'capabilities': '[WEP]', 'lasttime': T0, 'lastlat': 0,
         'lastlon': 0, 'type': 'W', 'bestlevel': -60},
    ]
    locations = [
        {'bssid': 'aa:00:00:00:00:01', 'level': -50, 'lat': 52.5200, 'lon': 13.4050, 'time': T0},
        {'bssid': 'aa:00:00:00:00:01', 'level': -55, 'lat': 52.5201, 'lon': 13.4051, 'time': T0 + 1000},
        {'bssid': 'aa:00:00:00:00:02', 'level': -80, 'lat': 52.5210, 'lon': 13.4060, 'time': T0 + 2000},
        {'bssid': 'bb:00:00:00:00:01', 'level': -70, 'lat': 52.5300, 'lon': 13.4100, 'time': T0 + 3000},
        {'bssid': 'aa:00:00:00:00:01', 'level': -60, 'lat': 0, 'lon': 0, 'time': T0 + 4000},
    ]
    return create_wigle_db(tmp_path / 'wigle.sqlite', networks, locations)


@pytest.fixture
def memory_source():
    networks = [
        network_row('aa:01', ssid='CafeWiFi', level=-40, last_seen=T0 + DAY_MS),
        network_row('aa:02', ssid='Office', level=-75, last_seen=T0, capabilities='[ESS]'),
        network_row('bb:01', ssid='Watch', type='E', level=-65, last_seen=T0 + 2 * DAY_MS,
                    frequency=None, capabilities=''),
    ]
    observations = [
        observation_row(level=-45, time=T0),
        observation_row(level=-65, type='E', time=T0 + DAY_MS),
        observation_row(level=-80, time=T0 + 2 * DAY_MS),
    ]
    return MemorySource(networks=networks, observations=observations, name='fixture')
