"""Tests for postal code cross-validation"""

import unittest

from geoprec.geo_engine.zip_validation import ZipValidation, validate_zip

from factories import membership, observation


def member(source, zip_code, response_ms=100.0, in_cluster=True):
    return membership(observation(source, zip=zip_code, response_ms=response_ms), in_cluster=in_cluster)


class TestZipValidation(unittest.TestCase):
    """Test zip confirmation rules"""

    def test_two_matching_zips_confirm(self):
        result = validate_zip([member('a', '01310-100'), member('b', '01310100'), member('c', '04538-133')])
        self.assertEqual(result, ZipValidation(confirmed=True, zip_code='01310100', votes=2))

    def test_single_report_does_not_confirm(self):
        result = validate_zip([member('a', '01310-100'), member('b', '04538-133')])
        self.assertFalse(result.confirmed)
        self.assertIsNone(result.zip_code)

    def test_short_and_empty_zips_are_ignored(self):
        result = validate_zip([member('a', '013'), member('b', '013'), member('c', '')])
        self.assertFalse(result.confirmed)
        self.assertEqual(result.votes, 0)

    def test_only_in_cluster_members_count(self):
        result = validate_zip([member('a', '01310-100'), member('b', '01310-100', in_cluster=False)])
        self.assertFalse(result.confirmed)

    def test_most_reported_zip_wins(self):
        result = validate_zip([
            member('a', '11111', response_ms=10), member('b', '22222', response_ms=20),
            member('c', '22222', response_ms=30), member('d', '11111', response_ms=40),
            member('e', '22222', response_ms=50),
        ])
        self.assertEqual(result.zip_code, '22222')
        self.assertEqual(result.votes, 3)

    def test_tie_goes_to_earliest_responder(self):
        result = validate_zip([
            member('a', '22222', response_ms=300), member('b', '11111', response_ms=100),
            member('c', '22222', response_ms=400), member('d', '11111', response_ms=200),
        ])
        self.assertEqual(result.zip_code, '11111')


if __name__ == '__main__':
    unittest.main()
