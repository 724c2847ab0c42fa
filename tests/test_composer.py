"""Tests for the Composer package manager checks."""

from unittest.mock import patch

import pytest

from preflight.composer import PackageManagerEvaluator
from preflight.config import ComposerRequirements

CHECK_ORDER = [
    'runtime_version',
    'archive_support',
    'deprecated_accelerator',
    'http_client',
    'legacy_cache',
    'restricted_execution_policy',
    'url_fopen',
    'create_files',
]


class TestPackageManagerEvaluator:
    """Test the evaluation as a whole."""

    def test_available_before_run(self, make_probe, snapshot):
        evaluator = PackageManagerEvaluator(make_probe(snapshot))
        assert evaluator.is_available() is True
        assert evaluator.results == []

    def test_all_checks_pass(self, make_probe, snapshot):
        evaluator = PackageManagerEvaluator(make_probe(snapshot))
        report = evaluator.run()

        assert evaluator.is_available() is True
        assert [name for name, _ in report.pairs()] == CHECK_ORDER
        assert all(passed for _, passed in report.pairs())

    def test_deprecated_accelerator_detected(self, make_probe, snapshot):
        snapshot['extensions'].append('XCache')
        evaluator = PackageManagerEvaluator(make_probe(snapshot))
        report = evaluator.run()

        assert evaluator.is_available() is False
        assert len(report.results) == 8
        assert sum(r.passed for r in report.results) == 7
        assert report.result('deprecated_accelerator').passed is False
        assert report.result('deprecated_accelerator').value is True

    def test_failing_check_does_not_stop_later_checks(self, make_probe, snapshot):
        evaluator = PackageManagerEvaluator(make_probe(snapshot))

        with patch.object(evaluator, 'has_deprecated_accelerator', return_value=True), \
                patch.object(evaluator, 'has_url_fopen_enabled', return_value=True) as url_fopen:
            report = evaluator.run()

        url_fopen.assert_called_once()
        assert report.result('url_fopen').passed is True
        assert evaluator.is_available() is False

    def test_every_failure_is_reported(self, make_probe, snapshot):
        snapshot['version'] = '5.2.17'
        snapshot['extensions'] = ['apc']
        snapshot['functions'] = []
        snapshot['ini']['allow_url_fopen'] = '0'
        snapshot['ini']['suhosin.executor.include.whitelist'] = 'json'
        report = PackageManagerEvaluator(make_probe(snapshot)).run()

        failed = {r.name for r in report.failed}
        assert failed == {
            'runtime_version',
            'archive_support',
            'http_client',
            'legacy_cache',
            'restricted_execution_policy',
            'url_fopen',
        }
        assert len(report.results) == 8

    def test_informational_checks(self, make_probe, snapshot):
        snapshot['ini']['disable_functions'] = 'proc_open'
        report = PackageManagerEvaluator(make_probe(snapshot)).run()

        info = {r.name: r.value for r in report.informational}
        assert info == {'shell_execution': True, 'process_spawning': False}
        assert report.verdict is True

    def test_raising_probe_fails_the_check_only(self, make_probe, snapshot):
        evaluator = PackageManagerEvaluator(make_probe(snapshot))

        with patch.object(evaluator, 'has_http_client', side_effect=RuntimeError("broken")):
            report = evaluator.run()

        assert report.result('http_client').error == "broken"
        assert len(report.results) == 8
        assert report.verdict is False

    def test_rerun_starts_fresh(self, make_probe, snapshot):
        evaluator = PackageManagerEvaluator(make_probe(snapshot))

        with patch.object(evaluator, 'has_archive_support', return_value=False):
            evaluator.run()
        assert evaluator.is_available() is False

        evaluator.run()
        assert evaluator.is_available() is True


class TestComposerChecks:
    """Test individual checks."""

    @pytest.mark.parametrize("version,expected", [
        ('5.3.4', True), ('5.2.9', False), ('5.10.0', True), ('', False),
    ])
    def test_runtime_version(self, make_probe, snapshot, version, expected):
        snapshot['version'] = version
        assert PackageManagerEvaluator(make_probe(snapshot)).has_runtime_version() is expected

    def test_custom_minimum_version(self, make_probe, snapshot):
        requirements = ComposerRequirements(min_php_version='8.0')
        assert PackageManagerEvaluator(make_probe(snapshot), requirements).has_runtime_version() is False

    def test_missing_phar(self, make_probe, snapshot):
        snapshot['extensions'].remove('Phar')
        assert PackageManagerEvaluator(make_probe(snapshot)).has_archive_support() is False

    def test_missing_curl(self, make_probe, snapshot):
        snapshot['functions'].remove('curl_init')
        assert PackageManagerEvaluator(make_probe(snapshot)).has_http_client() is False

    @pytest.mark.parametrize("extensions,detected", [
        (['apc'], True),
        (['apc', 'apcu'], False),
        (['apcu'], False),
        ([], False),
    ])
    def test_legacy_cache(self, make_probe, snapshot, extensions, detected):
        snapshot['extensions'] += extensions
        evaluator = PackageManagerEvaluator(make_probe(snapshot))
        assert evaluator.has_legacy_cache() is detected
        evaluator.run()
        assert evaluator.is_available() is not detected

    @pytest.mark.parametrize("policy,restricted", [
        (None, False),
        ('phar, json', False),
        ('phar://, xml', False),
        ('json,phar', False),
        ('json', True),
        ('phar., json', True),
        ('pharx', True),
        ('', True),
    ])
    def test_execution_policy(self, make_probe, snapshot, policy, restricted):
        snapshot['ini']['suhosin.executor.include.whitelist'] = policy
        evaluator = PackageManagerEvaluator(make_probe(snapshot))

        assert evaluator.has_restricted_execution_policy() is restricted
        evaluator.run()
        assert evaluator.is_available() is not restricted

    def test_url_fopen_disabled(self, make_probe, snapshot):
        snapshot['ini']['allow_url_fopen'] = ''
        assert PackageManagerEvaluator(make_probe(snapshot)).has_url_fopen_enabled() is False

    def test_safe_mode_blocks_file_creation(self, make_probe, snapshot):
        snapshot['ini']['safe_mode'] = '1'
        evaluator = PackageManagerEvaluator(make_probe(snapshot))
        report = evaluator.run()

        assert report.result('create_files').passed is False
        assert evaluator.is_available() is False

    def test_file_permissions_probed_once_per_run(self, make_probe, snapshot):
        evaluator = PackageManagerEvaluator(make_probe(snapshot))

        with patch('preflight.composer.FilePermissionProbe') as mock_cls:
            mock_cls.return_value.check_file_permissions.return_value = True
            report = evaluator.run()

        mock_cls.return_value.check_file_permissions.assert_called_once()
        assert report.result('create_files').passed is False

    def test_can_create_files_without_run(self, make_probe, snapshot):
        assert PackageManagerEvaluator(make_probe(snapshot)).can_create_files() is True


class TestFilePermissionsOutsideRun:
    """Direct calls to can_create_files always reflect the current filesystem."""

    def test_direct_calls_are_not_cached(self, make_probe, snapshot):
        evaluator = PackageManagerEvaluator(make_probe(snapshot))

        with patch('preflight.composer.FilePermissionProbe') as mock_cls:
            mock_cls.return_value.check_file_permissions.side_effect = [False, True]

            assert evaluator.can_create_files() is True
            assert evaluator.can_create_files() is False

    def test_run_result_is_not_reused_afterwards(self, make_probe, snapshot):
        evaluator = PackageManagerEvaluator(make_probe(snapshot))

        with patch('preflight.composer.FilePermissionProbe') as mock_cls:
            mock_cls.return_value.check_file_permissions.side_effect = [True, False]

            assert evaluator.run().result('create_files').passed is False
            assert evaluator.can_create_files() is True


class TestSinglePolicyToken:
    def test_single_token_matches_whole_entry(self, make_probe, snapshot):
        snapshot['ini']['suhosin.executor.include.whitelist'] = 'phar'
        evaluator = PackageManagerEvaluator(make_probe(snapshot), ComposerRequirements(archive_policy_tokens='phar'))

        assert evaluator.requirements.archive_policy_tokens == ('phar',)
        assert evaluator.has_restricted_execution_policy() is False

    def test_single_token_does_not_match_its_letters(self, make_probe, snapshot):
        snapshot['ini']['suhosin.executor.include.whitelist'] = 'p,h'
        evaluator = PackageManagerEvaluator(make_probe(snapshot), ComposerRequirements(archive_policy_tokens='phar'))

        assert evaluator.has_restricted_execution_policy() is True
