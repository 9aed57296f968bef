"""Tests for Iterative Weighted Centroid Refinement"""

import dataclasses
import unittest

from geoprec.geo_core.config import EngineConfig
from geoprec.geo_core.utils import haversine_km
from geoprec.geo_engine.refinement import outlier_priors, refine, round_limit, weighted_centroid

from factories import SAO_PAULO, membership, near, observation, tight_cluster


def cluster(observations, weight=0.8):
    return [membership(o, weight, in_cluster=True) for o in observations]


class TestRefinement(unittest.TestCase):
    """Test IWCR rounds, weights and snapshots"""

    def setUp(self):
        self.config = EngineConfig()

    def test_single_member_yields_no_rounds(self):
        self.assertEqual(refine(cluster([observation('only')]), self.config), [])

    def test_pair_gets_one_round(self):
        history = refine(cluster(tight_cluster(2)), self.config)
        self.assertEqual(len(history), 1)
        self.assertEqual(history[0].round, 1)

    def test_round_limit(self):
        self.assertEqual(round_limit(1, self.config), 0)
        self.assertEqual(round_limit(2, self.config), 1)
        self.assertEqual(round_limit(3, self.config), 5)
        self.assertEqual(round_limit(7, EngineConfig(max_rounds=2)), 2)

    def test_converges_within_round_cap(self):
        history = refine(cluster(tight_cluster(5)), self.config)
        self.assertTrue(1 <= len(history) <= 5)
        self.assertEqual([s.round for s in history], list(range(1, len(history) + 1)))
        final = history[-1]
        self.assertTrue(final.delta_m < self.config.convergence_threshold_m or len(history) == 5)
        self.assertLess(haversine_km(final.lat, final.lon, *SAO_PAULO), 0.5)

    def test_effective_weight_never_exceeds_weight(self):
        members = cluster(tight_cluster(4, spread_km=3.0))
        for state in refine(members, self.config):
            for m in state.memberships:
                with self.subTest(round=state.round, source=m.source):
                    self.assertLessEqual(m.effective_weight, m.weight)

    def test_distant_member_loses_influence(self):
        core = tight_cluster(4, spread_km=0.2)
        stray = observation('geoplugin.net', *near(SAO_PAULO, north_km=20), city='São Paulo')
        members = cluster(core + [stray])

        history = refine(members, self.config)
        final = {m.source: m for m in history[-1].memberships}

        self.assertTrue(final['geoplugin.net'].refined)
        self.assertLess(final['geoplugin.net'].effective_weight, final['ip-api.com'].effective_weight)
        plain_mean = weighted_centroid(members, [1.0] * len(members))
        self.assertLess(haversine_km(history[-1].lat, history[-1].lon, *SAO_PAULO),
                        haversine_km(plain_mean[0], plain_mean[1], *SAO_PAULO))

    def test_refined_flag_is_never_cleared(self):
        config = EngineConfig(convergence_threshold_m=0.0)
        members = cluster(tight_cluster(5, spread_km=1.5))
        history = refine(members, config)
        self.assertEqual(len(history), config.max_rounds)

        for i, member in enumerate(members):
            flags = [state.memberships[i].refined for state in history]
            with self.subTest(source=member.source):
                self.assertEqual(flags, sorted(flags))

    def test_refined_member_stays_refined(self):
        members = cluster(tight_cluster(3, spread_km=0.01))
        members[0] = dataclasses.replace(members[0], refined=True)
        for state in refine(members, self.config):
            with self.subTest(round=state.round):
                self.assertTrue(state.memberships[0].refined)
                self.assertFalse(state.memberships[1].refined)

    def test_outlier_prepass_demotes_far_member(self):
        core = tight_cluster(4, spread_km=0.2)
        stray = observation('geoplugin.net', *near(SAO_PAULO, north_km=20))
        priors = outlier_priors(cluster(core + [stray], weight=1.0))
        self.assertEqual(priors[:4], [1.0] * 4)
        self.assertAlmostEqual(priors[4], 0.4)

    def test_members_outside_cluster_are_untouched(self):
        members = cluster(tight_cluster(3))
        outsider = membership(observation('far', *near(SAO_PAULO, north_km=500)), 0.5, effective_weight=0.0)
        history = refine(members + [outsider], self.config)
        self.assertIs(history[-1].memberships[-1], outsider)

    def test_snapshots_are_immutable(self):
        state = refine(cluster(tight_cluster(3)), self.config)[0]
        with self.assertRaises(dataclasses.FrozenInstanceError):
            state.round = 7
        with self.assertRaises(dataclasses.FrozenInstanceError):
            state.memberships[0].weight = 1.0


if __name__ == '__main__':
    unittest.main()
