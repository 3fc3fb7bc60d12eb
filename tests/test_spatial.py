"""Tests for density centering, the grid index and heat points."""

import pytest

from wigle_explorer.spatial import (
    GridIndex, build_heat_points, find_density_center, quantize
)

from conftest import make_network, make_observation


class TestDensityCenter:

    def test_densest_cell_wins(self):
        records = [
            make_network('a', lat=52.5201, lon=13.4001),
            make_network('b', lat=52.5199, lon=13.3999),
            make_network('c', lat=52.5204, lon=13.4004),
            make_network('d', lat=48.1371, lon=11.5754),
        ]
        lat, lon = find_density_center(records, 0.01)
        assert lat == pytest.approx(52.52)
        assert lon == pytest.approx(13.40)

    def test_majority_cluster_is_chosen(self):
        records = [make_network(f'a{i}', lat=52.001, lon=13.001) for i in range(3)]
        records += [make_network(f'b{i}', lat=52.5, lon=13.5) for i in range(2)]
        lat, lon = find_density_center(records, 0.01)
        assert lat == pytest.approx(52.00)
        assert lon == pytest.approx(13.00)

    def test_empty(self):
        assert find_density_center([]) is None

    def test_tie_goes_to_first_seen_cell(self):
        records = [
            make_network('a', lat=10.0, lon=10.0),
            make_network('b', lat=20.0, lon=20.0),
            make_network('c', lat=20.0, lon=20.0),
            make_network('d', lat=10.0, lon=10.0),
        ]
        lat, lon = find_density_center(records, 0.01)
        assert (lat, lon) == (pytest.approx(10.0), pytest.approx(10.0))

    def test_quantize_rounds_half_up(self):
        records = [make_network('a', lat=0.25, lon=-0.25)]
        cells = quantize(records, 0.5)
        assert cells.tolist() == [[1, 0]]


class TestGridIndex:

    def test_first_within_picks_lowest_index(self):
        records = [
            make_network('far', lat=1.0, lon=1.0),
            make_network('near1', lat=50.0004, lon=8.0),
            make_network('near2', lat=50.0, lon=8.0),
        ]
        index = GridIndex(records, 0.001)
        assert index.first_within(50.0, 8.0, 0.001) == 1

    def test_neighbor_cells_are_searched(self):
        # The record and the query point straddle a cell boundary
        records = [make_network('a', lat=50.0009, lon=8.0009)]
        index = GridIndex(records, 0.001)
        assert index.cell_of(50.0009, 8.0009) != index.cell_of(50.0011, 8.0011)
        assert index.first_within(50.0011, 8.0011, 0.001) == 0

    def test_distance_is_strict(self):
        records = [make_network('a', lat=50.0, lon=8.0)]
        index = GridIndex(records, 0.001)
        assert index.first_within(50.002, 8.0, 0.001) is None
        assert index.first_within(50.0, 8.0015, 0.001) is None

    def test_both_axes_must_be_close(self):
        records = [make_network('a', lat=50.0, lon=8.0)]
        index = GridIndex(records, 0.001)
        assert index.first_within(50.0005, 8.0005, 0.001) == 0
        assert index.first_within(50.0005, 8.01, 0.001) is None

    def test_invalid_cell_size(self):
        with pytest.raises(ValueError):
            GridIndex([], 0)

    def test_empty(self):
        index = GridIndex([], 0.001)
        assert len(index) == 0
        assert index.first_within(0.0, 0.0, 0.001) is None


class TestHeatPoints:

    def test_no_active_types(self):
        assert build_heat_points([make_network('a')], [make_observation()], []) == []

    def test_weights(self):
        networks = [make_network('a', lat=1.0, lon=2.0)]
        observations = [
            make_observation(level=-100),
            make_observation(level=-30),
            make_observation(level=-65),
        ]
        points = build_heat_points(networks, observations, ['W'])

        assert points[0] == [1.0, 2.0, pytest.approx(0.8)]
        assert [p[2] for p in points[1:]] == [pytest.approx(0.1), pytest.approx(1.0), pytest.approx(0.5)]

    def test_intensity_scales_weights(self):
        points = build_heat_points([make_network('a')], [], ['W'], intensity=0.5)
        assert points[0][2] == pytest.approx(0.4)

    def test_type_filter_applies_to_both_sets(self):
        networks = [make_network('a', type='W'), make_network('b', type='E')]
        observations = [make_observation(type='W'), make_observation(type='E')]
        assert len(build_heat_points(networks, observations, ['E'])) == 2

    def test_budget_split(self):
        networks = [make_network(str(i)) for i in range(20)]
        observations = [make_observation() for _ in range(20)]
        points = build_heat_points(networks, observations, ['W'], max_points=10)

        # 30% budget -> every 7th network, 70% -> every 3rd observation
        assert len(points) == 3 + 7
        assert len(points) <= 10
