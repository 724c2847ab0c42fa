import pytest

from preflight.probe import SnapshotProbe


def passing_snapshot(temp_dir: str) -> dict:
    """Snapshot of a PHP runtime that meets every requirement."""
    return {
        'version': '7.4.33',
        'extensions': ['Core', 'Phar', 'curl', 'dom', 'intl', 'xmlreader', 'gd'],
        'functions': ['curl_init', 'shell_exec', 'proc_open', 'posix_getpwuid', 'gd_info', 'symlink'],
        'classes': [],
        'ini': {
            'safe_mode': None,
            'allow_url_fopen': '1',
            'disable_functions': '',
            'suhosin.executor.include.whitelist': None,
            'suhosin.executor.func.blacklist': None,
        },
        'constants': {'GD_VERSION': '2.2.5'},
        'temp_dir': temp_dir,
    }


@pytest.fixture
def snapshot(tmp_path):
    return passing_snapshot(str(tmp_path))


@pytest.fixture
def make_probe(tmp_path):
    """Build a SnapshotProbe working in tmp_path from a snapshot."""
    def _make(snapshot):
        return SnapshotProbe(snapshot, work_dir=tmp_path)
    return _make
