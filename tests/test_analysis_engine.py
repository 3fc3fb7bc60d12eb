"""Tests for grouping, rankings, sighting matching and findings."""

import pytest

from wigle_explorer.analysis_engine import AnalysisEngine, _percent
from wigle_explorer.config import ExplorerConfig
from wigle_explorer.models import HIDDEN_SSID, NetworkType, TimeRange

from conftest import DAY_MS, T0, make_network, make_observation


@pytest.fixture
def engine():
    return AnalysisEngine(ExplorerConfig())


class TestPercent:

    def test_rounds_half_up(self):
        assert _percent(1, 8) == 13
        assert _percent(1, 3) == 33
        assert _percent(2, 3) == 67

    def test_zero_total(self):
        assert _percent(0, 0) == 0


class TestBreakdowns:

    def test_type_breakdown_lists_present_types_in_order(self, engine):
        networks = [make_network('1', type='E'), make_network('2', type='W'), make_network('3', type='W')]
        breakdown = engine.type_breakdown(networks)

        assert list(breakdown) == ['W', 'E']
        assert breakdown['W'].count == 2
        assert breakdown['W'].percentage == 67
        assert breakdown['E'].label == NetworkType.BT_LE.name_friendly

    def test_security_breakdown_is_wifi_only(self, engine):
        networks = [
            make_network('1', capabilities='WPA2-WPA-PSK'),
            make_network('2', capabilities='[ESS]'),
            make_network('3', capabilities='[WPA2-PSK]'),
            make_network('4', type='E', capabilities=''),
        ]
        breakdown = engine.security_breakdown(networks)

        assert list(breakdown) == ['WPA2', 'Open']
        assert breakdown['WPA2'].count == 2
        assert breakdown['WPA2'].percentage == 67
        assert breakdown['Open'].insight.startswith('No encryption')

    def test_frequency_breakdown_skips_missing_frequency(self, engine):
        networks = [
            make_network('1', frequency=2412),
            make_network('2', frequency=5180),
            make_network('3', frequency=6000),
            make_network('4', frequency=None),
            make_network('5', type='E', frequency=2402),
        ]
        breakdown = engine.frequency_breakdown(networks)

        assert {band: stat.count for band, stat in breakdown.items()} == {'2.4GHz': 1, '5GHz': 2}

    def test_percentages_sum_to_100_on_large_input(self, engine):
        codes = NetworkType.codes()
        caps = ['[WPA2-PSK]', '[ESS]', '[WEP]', '[WPA3-SAE]', '[WPA-PSK]', '[WPA2-PSK]', '[ESS]']
        freqs = [2412, 5180, 6115, 2437, 5500]
        networks = [
            make_network(
                str(i), type=codes[(i * 7) % 11 % len(codes)],
                capabilities=caps[i % len(caps)], frequency=freqs[(i * 3) % len(freqs)]
            )
            for i in range(10000)
        ]

        for breakdown in (
            engine.type_breakdown(networks),
            engine.security_breakdown(networks),
            engine.frequency_breakdown(networks),
        ):
            total = sum(stat.percentage for stat in breakdown.values())
            assert abs(total - 100) <= len(breakdown)

    def test_empty_input(self, engine):
        assert engine.type_breakdown([]) == {}
        assert engine.security_breakdown([]) == {}
        assert engine.frequency_breakdown([]) == {}


class TestSignal:

    def test_distribution(self, engine):
        networks = [make_network(str(i), level=level) for i, level in enumerate((-40, -60, -80, -95, -99))]
        assert engine.signal_distribution(networks) == {'excellent': 1, 'good': 1, 'fair': 1, 'poor': 2}

    @pytest.mark.parametrize("distribution,expected", [
        ({'excellent': 4, 'good': 0, 'fair': 0, 'poor': 6}, 'Excellent'),
        ({'excellent': 1, 'good': 6, 'fair': 2, 'poor': 1}, 'Good'),
        ({'excellent': 0, 'good': 2, 'fair': 5, 'poor': 3}, 'Fair'),
        ({'excellent': 0, 'good': 2, 'fair': 2, 'poor': 6}, 'Poor'),
        ({'excellent': 0, 'good': 0, 'fair': 0, 'poor': 0}, 'Unknown'),
    ])
    def test_overall_quality(self, engine, distribution, expected):
        assert engine.overall_signal_quality(distribution) == expected

    def test_top_signal_excludes_hidden_and_keeps_order_on_ties(self, engine):
        networks = [
            make_network('1', ssid=HIDDEN_SSID, level=-30),
            make_network('2', ssid='A', level=-60),
            make_network('3', ssid='B', level=-40),
            make_network('4', ssid='C', level=-60),
        ]
        assert [n.bssid for n in engine.top_signal(networks, 3)] == ['3', '2', '4']


class TestTopSightings:

    def test_observations_counted_against_nearby_network(self, engine):
        networks = [
            make_network('aa:01', ssid='CoffeeShop', lat=52.5200, lon=13.4000),
            make_network('aa:02', ssid='Elsewhere', lat=48.1000, lon=11.5000),
        ]
        observations = [
            make_observation(lat=52.5202, lon=13.4003),
            make_observation(lat=52.5198, lon=13.3996),
            make_observation(lat=52.5200, lon=13.4000, type='E'),
            make_observation(lat=40.0, lon=5.0),
        ]
        ranked = engine.top_sightings(networks, observations)

        assert len(ranked) == 1
        assert ranked[0].ssid == 'CoffeeShop'
        assert ranked[0].sighting_count == 2

    def test_earliest_network_wins(self, engine):
        networks = [
            make_network('first', ssid='First', lat=50.0, lon=8.0),
            make_network('second', ssid='Second', lat=50.0, lon=8.0),
        ]
        ranked = engine.top_sightings(networks, [make_observation(lat=50.0, lon=8.0)])
        assert [a.bssid for a in ranked] == ['first']

    def test_hidden_match_is_not_tallied(self, engine):
        networks = [
            make_network('hidden', ssid=HIDDEN_SSID, lat=50.0, lon=8.0),
            make_network('named', ssid='Named', lat=50.0, lon=8.0),
        ]
        assert engine.top_sightings(networks, [make_observation(lat=50.0, lon=8.0)]) == []

    def test_ties_keep_first_tallied_order(self, engine):
        networks = [
            make_network('a', ssid='A', lat=50.0, lon=8.0),
            make_network('b', ssid='B', lat=51.0, lon=9.0),
        ]
        observations = [
            make_observation(lat=51.0, lon=9.0),
            make_observation(lat=50.0, lon=8.0),
            make_observation(lat=50.0, lon=8.0),
            make_observation(lat=51.0, lon=9.0),
        ]
        assert [a.bssid for a in engine.top_sightings(networks, observations)] == ['b', 'a']

    def test_count_limit(self, engine):
        networks = [make_network(str(i), ssid=f'N{i}', lat=50.0 + i, lon=8.0) for i in range(12)]
        observations = [make_observation(lat=50.0 + i, lon=8.0) for i in range(12)]
        assert len(engine.top_sightings(networks, observations)) == 8
        assert len(engine.top_sightings(networks, observations, count=3)) == 3

    def test_to_dict(self, engine):
        networks = [make_network('aa:01', ssid='Cafe', lat=50.0, lon=8.0)]
        ranked = engine.top_sightings(networks, [make_observation(lat=50.0, lon=8.0)])
        assert ranked[0].to_dict()['sightings'] == 1


class TestHeuristics:

    @pytest.mark.parametrize("spread,expected", [
        (0.005, 'neighborhood'),
        (0.02, 'district'),
        (0.05, 'city area'),
        (1.0, 'large region'),
    ])
    def test_coverage_area(self, engine, spread, expected):
        networks = [make_network(str(i), lat=50.0 + spread * i / 9, lon=8.0 + spread * i / 9) for i in range(10)]
        assert engine.coverage_area(networks) == expected

    def test_coverage_needs_ten_networks(self, engine):
        networks = [make_network(str(i), lat=50.0 + i, lon=8.0 + i) for i in range(9)]
        assert engine.coverage_area(networks) == 'small area'

    def test_name_patterns(self, engine):
        networks = [
            make_network('1', ssid='FRITZ!Box 7530 AB'),
            make_network('2', ssid='FRITZ!Box 7590 CD'),
            make_network('3', ssid='FRITZ!Box 7530 AB'),
            make_network('4', ssid='Vodafone-1234'),
            make_network('5', ssid='eduroam'),
            make_network('6', ssid=HIDDEN_SSID),
            make_network('7', ssid='FRITZ!Box Headset', type='E'),
        ]
        patterns = engine.analyze_common_networks(networks)

        assert [p.name for p in patterns] == ['FRITZ!Box Routers', 'Vodafone Networks', 'Educational Networks']
        assert patterns[0].count == 3
        assert patterns[0].examples == ['FRITZ!Box 7530 AB', 'FRITZ!Box 7590 CD']

    def test_default_and_business_names(self, engine):
        networks = [
            make_network('1', ssid='WiFi-3A4B'),
            make_network('2', ssid='Router2'),
            make_network('3', ssid='ACME-GUEST1'),
            make_network('4', ssid='Main Office'),
        ]
        patterns = {p.name: p.count for p in engine.analyze_common_networks(networks)}
        assert patterns['Default Router Names'] == 2
        assert patterns['Business Networks'] == 2

    def test_findings_are_capped(self, engine):
        wifi = [
            make_network(f'o{i}', ssid=name, capabilities='[ESS]')
            for i, name in enumerate(['FRITZ!Box A', 'Vodafone B', 'Telekom C', 'Open1', 'Open2', 'Open3'])
        ]
        wifi.append(make_network('wep', ssid='Old', capabilities='[WEP]'))
        wifi.append(make_network('wpa3', ssid='New', capabilities='[WPA3-SAE]'))
        bluetooth = [make_network(f'bt{i}', ssid=f'bt{i}', type='E') for i in range(51)]

        findings = engine.generate_findings(wifi + bluetooth, unique_ssids=8)

        assert [f.kind for f in findings] == [
            'open_networks', 'wep_networks', 'wpa3_networks', 'bluetooth_activity', 'high_diversity'
        ]
        assert findings[0].action == 'show_open_networks'
        assert findings[0].text.startswith('6 open Wi-Fi networks')

    def test_low_diversity(self, engine):
        networks = [make_network(str(i), ssid='Corp') for i in range(10)]
        assert [f.kind for f in engine.generate_findings(networks, unique_ssids=1)] == ['low_diversity']

    def test_common_names(self, engine):
        networks = [
            make_network('1', ssid='FRITZ!Box 1'),
            make_network('2', ssid='Telekom_FON'),
            make_network('3', ssid='eduroam'),
            make_network('4', ssid='x'),
            make_network('5', ssid='y'),
        ]
        findings = engine.generate_findings(networks, unique_ssids=3)
        assert [f.kind for f in findings] == ['common_names']
        assert 'FRITZ!Box, Telekom, eduroam' in findings[0].text


class TestAnalyze:

    def test_summary(self, engine):
        networks = [
            make_network('w1', ssid='Home', capabilities='[ESS]', level=-45),
            make_network('w2', ssid='Home', capabilities='[WPA2-PSK]', level=-65),
            make_network('e1', ssid='Watch', type='E', level=-70),
            make_network('g1', ssid='', type='G', level=-90),
        ]
        observations = [make_observation(), make_observation(type='E')]
        summary = engine.analyze(networks, observations, TimeRange(T0, T0 + 3 * DAY_MS))

        assert summary.total_networks == 4
        assert summary.total_observations == 2
        assert summary.wifi_networks == 2
        assert summary.bluetooth_devices == 1
        assert summary.cellular_networks == 1
        assert summary.unique_ssids == 1
        assert summary.open_networks == 1
        assert summary.open_percentage == 50
        assert summary.coverage_area == 'small area'
        assert summary.time_insight == "1.3 networks/day over 3 days of scanning"

        data = summary.to_dict()
        assert data['network_types']['W']['count'] == 2
        assert data['top_signal'][0]['bssid'] == 'w1'

    def test_empty_dataset(self, engine):
        summary = engine.analyze([], [])
        assert summary.total_networks == 0
        assert summary.signal_quality == 'Unknown'
        assert summary.findings == []
        assert summary.time_insight is None
