"""Tests for great-circle distance over waypoint lists."""

import pytest

from routeplanner.routes.distance import haversine_km, total_distance_km


class TestHaversine:
    def test_same_point_is_zero(self):
        assert haversine_km((48.85, 2.35), (48.85, 2.35)) == 0.0

    def test_one_degree_of_longitude_on_equator(self):
        assert haversine_km((0.0, 0.0), (0.0, 1.0)) == pytest.approx(111.195, abs=0.01)

    def test_symmetric(self):
        a, b = (40.4168, -3.7038), (41.3874, 2.1686)
        assert haversine_km(a, b) == pytest.approx(haversine_km(b, a))

    def test_madrid_to_barcelona(self):
        assert haversine_km((40.4168, -3.7038), (41.3874, 2.1686)) == pytest.approx(505, abs=5)


class TestTotalDistance:
    def test_empty_is_zero(self):
        assert total_distance_km([]) == 0.0

    def test_single_point_is_zero(self):
        assert total_distance_km([(10.0, 10.0)]) == 0.0

    def test_three_points_along_equator(self):
        assert total_distance_km([(0, 0), (0, 1), (0, 2)]) == 222.39

    def test_rounded_to_two_decimals(self):
        total = total_distance_km([(40.0, -3.0), (40.1, -3.1), (40.2, -3.05)])
        assert total == round(total, 2)

    def test_accepts_generator(self):
        points = ((0.0, float(i)) for i in range(3))
        assert total_distance_km(points) == 222.39
