"""Tests for the geoprec command line interface"""

import json
import os
import shutil
import tempfile
import unittest
from unittest.mock import patch

import yaml
from click.testing import CliRunner

from geoprec.geo_cli.cli import cli, read_observations
from geoprec.geo_cli.cli_exceptions import GeoCLIError, InputFileError, to_cli_error
from geoprec.geo_core.exceptions import ConfigurationError, InvalidIPAddressError, NoProvidersRespondedError

from factories import failed, tight_cluster


class CLITestCase(unittest.TestCase):
    """Runs commands against a throwaway configuration directory"""

    def setUp(self):
        self.runner = CliRunner()
        self.temp_dir = tempfile.mkdtemp()
        self.config_path = os.path.join(self.temp_dir, 'config.yaml')
        with open(self.config_path, 'w') as f:
            f.write("# empty configuration, defaults apply\n")

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def invoke(self, *args):
        return self.runner.invoke(cli, list(args) + ['-c', self.config_path])

    def write_capture(self, payload, name='capture.json'):
        path = os.path.join(self.temp_dir, name)
        with open(path, 'w', encoding='utf-8') as f:
            f.write(payload if isinstance(payload, str) else json.dumps(payload))
        return path


class TestFuseCommand(CLITestCase):

    def test_fuse_json(self):
        observations = [o.to_dict() for o in tight_cluster(5)] + [failed('iplocate.io').to_dict()]
        path = self.write_capture({'ip': '177.10.10.10', 'observations': observations})

        result = self.invoke('fuse', path, '--json')

        self.assertEqual(result.exit_code, 0, result.output)
        data = json.loads(result.stdout)
        self.assertEqual(data['requestedIp'], '177.10.10.10')
        self.assertEqual(data['sourcesAgree'], 5)
        self.assertEqual(data['sourcesQueried'], 6)
        self.assertEqual(data['unavailableSources'], ['iplocate.io'])
        self.assertEqual(data['accuracyLabel'], 'multi-triangulado')

    def test_fuse_bare_list_with_ip_option(self):
        path = self.write_capture([o.to_dict() for o in tight_cluster(3)])
        result = self.invoke('fuse', path, '-j', '-i', '200.1.2.3')
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertEqual(json.loads(result.stdout)['requestedIp'], '200.1.2.3')

    def test_fuse_table_output(self):
        path = self.write_capture([o.to_dict() for o in tight_cluster(3)])
        result = self.invoke('fuse', path)
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn('Sources', result.output)

    def test_fuse_rejects_malformed_file(self):
        cases = ['{"foo": 1}', 'not json at all', '[1, 2, 3]']
        for payload in cases:
            with self.subTest(payload=payload):
                path = self.write_capture(payload)
                result = self.invoke('fuse', path)
                self.assertEqual(result.exit_code, 2)

    def test_fuse_ignores_impossible_coordinates(self):
        observations = [o.to_dict() for o in tight_cluster(3)] + [
            {'source': 'freeipapi.com', 'lat': 'nan', 'lon': -46.6},
            {'source': 'geoplugin.net', 'lat': 95, 'lon': -46.6},
            {'source': 'iplocate.io', 'lat': 0, 'lon': 0},
        ]
        path = self.write_capture({'ip': '177.10.10.10', 'observations': observations})

        result = self.invoke('fuse', path, '--json')

        self.assertEqual(result.exit_code, 0, result.output)
        self.assertNotIn('NaN', result.stdout)
        data = json.loads(result.stdout)
        self.assertEqual(data['sourcesSucceeded'], 3)
        self.assertEqual(data['sourcesAgree'], 3)
        self.assertEqual(data['unavailableSources'], ['freeipapi.com', 'geoplugin.net', 'iplocate.io'])
        self.assertTrue(-90 <= data['lat'] <= 90 and -180 <= data['lon'] <= 180)

    def test_read_observations_object_form(self):
        path = self.write_capture({'requestedIp': '1.2.3.4', 'sourcesQueried': 8,
                                   'observations': [o.to_dict() for o in tight_cluster(2)]})
        capture = read_observations(path)
        self.assertEqual(capture['ip'], '1.2.3.4')
        self.assertEqual(capture['sources_queried'], 8)
        self.assertEqual([o.source for o in capture['observations']], ['ip-api.com', 'ipwho.is'])


class TestLookupCommand(CLITestCase):

    def test_unknown_provider(self):
        result = self.invoke('lookup', '8.8.8.8', '-p', 'nope.example')
        self.assertEqual(result.exit_code, 1)

    def test_invalid_ip(self):
        result = self.invoke('lookup', 'not-an-ip')
        self.assertEqual(result.exit_code, 2)

    def test_invalid_ip_among_several_fails_before_any_lookup(self):
        with patch('geoprec.geo_engine.precision_engine.SourceAdapter.collect') as collect:
            result = self.invoke('lookup', '8.8.8.8', 'bad', '--json')
        self.assertEqual(result.exit_code, 2)
        collect.assert_not_called()

    def test_private_address_json(self):
        result = self.invoke('lookup', '192.168.0.1', '--json')
        self.assertEqual(result.exit_code, 0, result.output)
        data = json.loads(result.stdout)
        self.assertFalse(data['available'])
        self.assertEqual(data['unavailableReason'], 'private-address')
        self.assertEqual(data['sourcesQueried'], 0)

    def test_several_ips_give_a_list(self):
        result = self.invoke('lookup', '10.0.0.1', '127.0.0.1', '--json')
        self.assertEqual(result.exit_code, 0, result.output)
        data = json.loads(result.stdout)
        self.assertEqual([d['requestedIp'] for d in data], ['10.0.0.1', '127.0.0.1'])

    def test_missing_config_file(self):
        result = self.runner.invoke(cli, ['lookup', '10.0.0.1', '-c', os.path.join(self.temp_dir, 'missing.yaml')])
        self.assertEqual(result.exit_code, 1)


class TestProvidersAndConfig(CLITestCase):

    def test_providers_lists_registry(self):
        result = self.invoke('providers')
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn('ip-api.com', result.output)
        self.assertIn('maxmind', result.output)

    def test_show_config(self):
        result = self.invoke('config')
        self.assertEqual(result.exit_code, 0, result.output)
        first_line, _, body = result.stdout.partition('\n')
        self.assertEqual(first_line, f"# {self.config_path}")
        data = yaml.safe_load(body)
        self.assertIn('providers', data)

    def test_config_init(self):
        target = os.path.join(self.temp_dir, 'new', 'geoprec.yaml')

        result = self.invoke('config', '--init', target)
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertTrue(os.path.exists(target))

        result = self.invoke('config', '--init', target)
        self.assertEqual(result.exit_code, 1)

        result = self.invoke('config', '--init', target, '--force')
        self.assertEqual(result.exit_code, 0, result.output)

    def test_version(self):
        result = self.runner.invoke(cli, ['--version'])
        self.assertEqual(result.exit_code, 0)
        self.assertIn('geoprec', result.output)


class TestErrorMapping(unittest.TestCase):

    def test_engine_errors_map_to_exit_codes(self):
        cases = [
            (ConfigurationError("bad"), "CONFIG_ERROR", 1),
            (InvalidIPAddressError("x.y"), "INVALID_IP", 2),
            (NoProvidersRespondedError("8.8.8.8", ['ip-api.com']), "NO_PROVIDERS", 3),
        ]
        for error, code, exit_code in cases:
            with self.subTest(code=code):
                cli_error = to_cli_error(error)
                self.assertEqual(cli_error.error_code, code)
                self.assertEqual(cli_error.exit_code, exit_code)

    def test_error_to_dict(self):
        error = InputFileError("broken", '/tmp/x.json')
        data = error.to_dict()
        self.assertEqual(data['error_code'], 'INPUT_ERROR')
        self.assertEqual(data['context'], {'path': '/tmp/x.json'})
        self.assertIsInstance(error, GeoCLIError)


if __name__ == '__main__':
    unittest.main()
