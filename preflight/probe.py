"""
Capability probes for the hosting PHP runtime.

The evaluators only talk to the CapabilityProbe interface. PhpRuntimeProbe
asks a local ``php`` binary for a snapshot of its configuration, SnapshotProbe
answers from a snapshot captured elsewhere. Both run filesystem probes on the
local machine, inside the installation directory.

Probes never raise for "could not determine": they return the conservative
answer (False, None or an empty value) instead.
"""

import json
import logging
import os
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Protocol, Union

import yaml

logger = logging.getLogger(__name__)

# Functions and classes whose presence the checks ask about. function_exists()
# and class_exists() only answer for names we ask for, so the snapshot script
# needs the list up front.
PROBED_FUNCTIONS = (
    'curl_init',
    'shell_exec',
    'proc_open',
    'posix_getpwuid',
    'gd_info',
    'symlink',
)

PROBED_CLASSES = (
    'Imagick',
    'Gmagick',
)

PROBED_SETTINGS = (
    'safe_mode',
    'allow_url_fopen',
    'disable_functions',
    'suhosin.executor.include.whitelist',
    'suhosin.executor.func.blacklist',
)

PROBED_CONSTANTS = (
    'GD_VERSION',
)

SNAPSHOT_SCRIPT = """
$functions = json_decode($argv[1], true);
$classes = json_decode($argv[2], true);
$settings = json_decode($argv[3], true);
$constants = json_decode($argv[4], true);
$ini = array();
foreach ($settings as $name) {
    $value = ini_get($name);
    $ini[$name] = ($value === false) ? null : (string) $value;
}
$defined = array();
foreach ($constants as $name) {
    $defined[$name] = defined($name) ? (string) constant($name) : null;
}
echo json_encode(array(
    'version' => PHP_VERSION,
    'extensions' => array_map('strtolower', get_loaded_extensions()),
    'functions' => array_values(array_filter($functions, 'function_exists')),
    'classes' => array_values(array_filter($classes, 'class_exists')),
    'ini' => $ini,
    'constants' => $defined,
    'temp_dir' => sys_get_temp_dir(),
));
"""

_TRUTHY_INI = ('1', 'on', 'yes', 'true')


class SnapshotError(RuntimeError):
    """Raised when a runtime snapshot cannot be obtained or parsed."""


class CapabilityProbe(Protocol):
    """Boolean queries against the host runtime and filesystem."""

    def runtime_version(self) -> str: ...

    def extension_loaded(self, name: str) -> bool: ...

    def function_callable(self, name: str) -> bool: ...

    def function_disabled(self, name: str) -> bool: ...

    def class_available(self, name: str) -> bool: ...

    def constant(self, name: str) -> Optional[str]: ...

    def config_value(self, name: str) -> Optional[str]: ...

    def config_flag(self, name: str) -> bool: ...

    def temp_dir(self) -> str: ...

    def path_writable(self, path: str) -> bool: ...

    def create_temp_folder(self) -> bool: ...

    def create_temp_file(self) -> bool: ...

    def create_symlink(self, target: str, link: str) -> bool: ...

    def remove(self, path: str) -> None: ...


def _split_list(value: Optional[str]) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(',') if item.strip()]


class LocalFilesystemProbe:
    """Filesystem probes run against the local installation directory."""

    def __init__(self, work_dir: Union[str, Path] = '.'):
        self.work_dir = Path(work_dir)

    def path_writable(self, path: str) -> bool:
        return bool(path) and os.path.isdir(path) and os.access(path, os.W_OK)

    def create_temp_folder(self) -> bool:
        try:
            folder = tempfile.mkdtemp(prefix='.preflight-', dir=self.work_dir)
        except OSError as e:
            logger.debug("Cannot create folder in %s: %s", self.work_dir, e)
            return False

        shutil.rmtree(folder, ignore_errors=True)
        return True

    def create_temp_file(self) -> bool:
        try:
            with tempfile.NamedTemporaryFile('w', prefix='.preflight-', dir=self.work_dir) as fh:
                fh.write('preflight')
        except OSError as e:
            logger.debug("Cannot create file in %s: %s", self.work_dir, e)
            return False

        return True

    def create_symlink(self, target: str, link: str) -> bool:
        try:
            os.symlink(target, self.work_dir / link)
        except (OSError, NotImplementedError) as e:
            logger.debug("Cannot create symlink %s: %s", link, e)
            return False

        return True

    def remove(self, path: str) -> None:
        os.unlink(self.work_dir / path)


class SnapshotProbe(LocalFilesystemProbe):
    """
    Answers runtime queries from a snapshot mapping.

    The snapshot has the keys ``version``, ``extensions``, ``functions``,
    ``classes``, ``ini``, ``constants`` and ``temp_dir``; missing keys are
    treated as empty.
    """

    def __init__(self, snapshot: Optional[Dict[str, Any]] = None, work_dir: Union[str, Path] = '.'):
        super().__init__(work_dir)
        self._snapshot = snapshot

    @classmethod
    def from_file(cls, path: Union[str, Path], work_dir: Union[str, Path] = '.') -> 'SnapshotProbe':
        """Load a snapshot from a YAML or JSON file.

        Raises:
            SnapshotError: If the file cannot be read or is not a mapping
        """
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise SnapshotError(f"Cannot read snapshot {path}: {e}") from e

        if not isinstance(data, dict):
            raise SnapshotError(f"Snapshot {path} is not a mapping")

        return cls(data, work_dir=work_dir)

    @property
    def snapshot(self) -> Dict[str, Any]:
        if self._snapshot is None:
            self._snapshot = self._load_snapshot()
        return self._snapshot

    def _load_snapshot(self) -> Dict[str, Any]:
        return {}

    def _names(self, key: str) -> set[str]:
        values: Iterable[str] = self.snapshot.get(key) or ()
        return {str(v).lower() for v in values}

    def runtime_version(self) -> str:
        return str(self.snapshot.get('version') or '')

    def extension_loaded(self, name: str) -> bool:
        return name.lower() in self._names('extensions')

    def function_disabled(self, name: str) -> bool:
        disabled = _split_list(self.config_value('disable_functions'))
        disabled += _split_list(self.config_value('suhosin.executor.func.blacklist'))
        return name.lower() in {d.lower() for d in disabled}

    def function_callable(self, name: str) -> bool:
        return name.lower() in self._names('functions') and not self.function_disabled(name)

    def class_available(self, name: str) -> bool:
        return name.lower() in self._names('classes')

    def constant(self, name: str) -> Optional[str]:
        value = (self.snapshot.get('constants') or {}).get(name)
        return None if value is None else str(value)

    def config_value(self, name: str) -> Optional[str]:
        ini = self.snapshot.get('ini') or {}
        if name not in ini or ini[name] is None:
            return None
        value = ini[name]
        # YAML snapshots may carry real booleans
        if isinstance(value, bool):
            return '1' if value else ''
        return str(value)

    def config_flag(self, name: str) -> bool:
        value = self.config_value(name)
        return value is not None and value.strip().lower() in _TRUTHY_INI

    def temp_dir(self) -> str:
        return str(self.snapshot.get('temp_dir') or '')


class PhpRuntimeProbe(SnapshotProbe):
    """Queries a local PHP binary once and answers from the snapshot it prints."""

    def __init__(self, php_binary: str = 'php', work_dir: Union[str, Path] = '.', timeout: float = 10.0):
        super().__init__(None, work_dir=work_dir)
        self.php_binary = php_binary
        self.timeout = timeout

    def _load_snapshot(self) -> Dict[str, Any]:
        try:
            return self.fetch_snapshot()
        except SnapshotError as e:
            logger.warning("Could not query PHP runtime: %s", e)
            return {}

    def fetch_snapshot(self) -> Dict[str, Any]:
        """
        Run the PHP binary and parse the snapshot it prints.

        Raises:
            SnapshotError: If the binary is missing, fails or prints invalid JSON
        """
        binary = shutil.which(self.php_binary)
        if binary is None:
            raise SnapshotError(f"PHP binary {self.php_binary!r} not found")

        cmd = [
            binary, '-r', SNAPSHOT_SCRIPT, '--',
            json.dumps(PROBED_FUNCTIONS),
            json.dumps(PROBED_CLASSES),
            json.dumps(PROBED_SETTINGS),
            json.dumps(PROBED_CONSTANTS),
        ]

        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                cwd=self.work_dir,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise SnapshotError(f"{binary} did not run: {e}") from e

        if result.returncode != 0:
            raise SnapshotError(f"{binary} exited with {result.returncode}: {result.stderr.strip()}")

        try:
            data = json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise SnapshotError(f"{binary} printed invalid JSON: {e}") from e

        if not isinstance(data, dict):
            raise SnapshotError(f"{binary} printed unexpected output")

        logger.debug("PHP %s snapshot: %d extensions", data.get('version'), len(data.get('extensions') or ()))
        return data
