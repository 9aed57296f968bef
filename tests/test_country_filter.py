"""Tests for the country consistency filter"""

import unittest

from geoprec.geo_engine.country_filter import filter_by_country, majority_country

from factories import FAR_SOUTH, membership, observation


def filtered_sources(memberships):
    return [m.source for m in memberships if m.country_filtered]


class TestCountryFilter(unittest.TestCase):
    """Test majority country detection and filtering"""

    def setUp(self):
        self.memberships = [
            membership(observation('ip-api.com', response_ms=100)),
            membership(observation('ipwho.is', response_ms=120)),
            membership(observation('ipapi.co', response_ms=140)),
            membership(observation('geoplugin.net', FAR_SOUTH[0], FAR_SOUTH[1], city='Rosario',
                                   country='Argentina', country_code='AR', response_ms=90)),
        ]

    def test_minority_country_is_filtered(self):
        result = filter_by_country(self.memberships)
        self.assertEqual(majority_country(self.memberships), 'BR')
        self.assertEqual(filtered_sources(result), ['geoplugin.net'])
        self.assertEqual(len(result), len(self.memberships))

    def test_filter_is_idempotent(self):
        once = filter_by_country(self.memberships)
        twice = filter_by_country(once)
        self.assertEqual(once, twice)

    def test_input_is_not_mutated(self):
        filter_by_country(self.memberships)
        self.assertEqual(filtered_sources(self.memberships), [])

    def test_tie_goes_to_earliest_responder(self):
        memberships = [
            membership(observation('a', country_code='BR', response_ms=300)),
            membership(observation('b', country_code='BR', response_ms=400)),
            membership(observation('c', country_code='AR', response_ms=100)),
            membership(observation('d', country_code='AR', response_ms=500)),
        ]
        self.assertEqual(majority_country(memberships), 'AR')
        self.assertEqual(filtered_sources(filter_by_country(memberships)), ['a', 'b'])

    def test_all_distinct_countries_skip_filtering(self):
        memberships = [
            membership(observation('a', country_code='BR')),
            membership(observation('b', country_code='AR')),
            membership(observation('c', country_code='UY')),
        ]
        self.assertIsNone(majority_country(memberships))
        self.assertEqual(filtered_sources(filter_by_country(memberships)), [])

    def test_missing_country_is_never_filtered(self):
        memberships = self.memberships + [membership(observation('freeipapi.com', country='', country_code=''))]
        result = filter_by_country(memberships)
        self.assertNotIn('freeipapi.com', filtered_sources(result))

    def test_country_name_fallback_is_case_insensitive(self):
        memberships = [
            membership(observation('a', country='Brazil', country_code='')),
            membership(observation('b', country='BRAZIL', country_code='')),
            membership(observation('c', country='Argentina', country_code='')),
        ]
        self.assertEqual(filtered_sources(filter_by_country(memberships)), ['c'])

    def test_empty_input(self):
        self.assertEqual(filter_by_country([]), [])


if __name__ == '__main__':
    unittest.main()
