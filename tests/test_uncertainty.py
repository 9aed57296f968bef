"""Tests for p68/p95/max radius estimation"""

import unittest

from geoprec.geo_core.config import EngineConfig
from geoprec.geo_core.models import IspType
from geoprec.geo_engine.uncertainty import estimate_uncertainty

from factories import membership, observation


def members(distances_km, weights=None):
    weights = weights or [1.0] * len(distances_km)
    return [
        membership(observation(f's{i}'), 1.0, in_cluster=True,
                   distance_to_centroid_km=d, effective_weight=w)
        for i, (d, w) in enumerate(zip(distances_km, weights))
    ]


class TestUncertainty(unittest.TestCase):
    """Test percentile radii, floors, fallback band and penalties"""

    def test_weighted_percentiles(self):
        result = estimate_uncertainty(members([0.1, 0.2, 0.3, 2.0]), True, IspType.FIXED)
        self.assertEqual((result.p68_m, result.p95_m, result.max_m), (300.0, 2000.0, 2000.0))
        self.assertFalse(result.fallback)
        self.assertEqual(result.estimated_accuracy_m, 300.0)

    def test_effective_weights_shift_percentiles(self):
        result = estimate_uncertainty(members([0.1, 0.2, 0.3, 2.0], [1.0, 1.0, 1.0, 0.01]),
                                      True, IspType.FIXED)
        self.assertEqual(result.p68_m, 300.0)
        self.assertEqual(result.p95_m, 300.0)
        self.assertEqual(result.max_m, 2000.0)

    def test_floors(self):
        result = estimate_uncertainty(members([0.001, 0.002, 0.003]), True, IspType.FIXED)
        self.assertEqual((result.p68_m, result.p95_m, result.max_m), (50.0, 80.0, 80.0))

    def test_fallback_band_for_single_member(self):
        result = estimate_uncertainty(members([0.0]), True, IspType.FIXED)
        self.assertTrue(result.fallback)
        self.assertEqual((result.p68_m, result.p95_m, result.max_m), (10000.0, 25000.0, 50000.0))

    def test_fallback_band_without_cluster(self):
        outsiders = [membership(observation('a'), 1.0), membership(observation('b'), 1.0)]
        result = estimate_uncertainty(outsiders, False, IspType.FIXED)
        self.assertTrue(result.fallback)
        self.assertEqual(result.p68_m, 15000.0)

    def test_penalties(self):
        cases = [
            (True, IspType.FIXED, 300.0),
            (False, IspType.FIXED, 450.0),
            (True, IspType.MOBILE, 450.0),
            (False, IspType.MOBILE, 675.0),
        ]
        for zip_confirmed, isp_type, expected in cases:
            with self.subTest(zip_confirmed=zip_confirmed, isp_type=isp_type):
                result = estimate_uncertainty(members([0.1, 0.2, 0.3, 2.0]), zip_confirmed, isp_type)
                self.assertEqual(result.p68_m, expected)

    def test_radii_are_ordered(self):
        samples = [[0.05], [0.2, 0.1], [5.0, 0.01, 0.02], [0.3, 0.3, 0.3, 0.3], [12.0, 0.4, 3.3, 0.9, 7.1]]
        for distances in samples:
            for zip_confirmed in (True, False):
                with self.subTest(distances=distances, zip_confirmed=zip_confirmed):
                    r = estimate_uncertainty(members(distances), zip_confirmed, IspType.MOBILE)
                    self.assertLessEqual(r.p68_m, r.p95_m)
                    self.assertLessEqual(r.p95_m, r.max_m)

    def test_configurable_band(self):
        config = EngineConfig(fallback_p68_m=5000.0, fallback_p95_m=6000.0, fallback_max_m=7000.0,
                              no_zip_penalty=1.0)
        result = estimate_uncertainty(members([0.0]), False, IspType.FIXED, config)
        self.assertEqual((result.p68_m, result.p95_m, result.max_m), (5000.0, 6000.0, 7000.0))


if __name__ == '__main__':
    unittest.main()
