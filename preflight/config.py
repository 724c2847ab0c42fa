"""
Configuration for the pre-flight checks.

Requirement profiles are plain dataclasses with the defaults of the current
Contao and Composer releases. PreflightConfig.load() layers, in order: the
defaults, a YAML file, and PREFLIGHT_* environment variables (a ``.env`` file
in the working directory is read first).
"""

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, ClassVar, Dict, Optional, Tuple, Union

import yaml
from dotenv import find_dotenv, load_dotenv

from preflight.versions import parse_version

OUTPUT_FORMATS = ('rich', 'plain', 'json')

ENV_PREFIX = 'PREFLIGHT_'


class ConfigError(ValueError):
    """Raised for invalid configuration values."""


def _check_version(label: str, value: str) -> None:
    if parse_version(value) is None:
        raise ConfigError(f"{label} is not a valid version: {value!r}")


def _names(label: str, value: Any) -> Tuple[str, ...]:
    # A single YAML scalar would otherwise be split into characters
    if isinstance(value, str):
        return (value,)
    if not isinstance(value, (list, tuple)) or not all(isinstance(v, str) for v in value):
        raise ConfigError(f"{label} must be a list of names, got {value!r}")
    return tuple(value)


@dataclass
class ComposerRequirements:
    """Requirements for installing through the Composer package manager."""
    min_php_version: str = '5.3.4'
    archive_extension: str = 'phar'
    accelerator_extension: str = 'xcache'
    http_client_function: str = 'curl_init'
    legacy_cache_extension: str = 'apc'
    legacy_cache_successor: str = 'apcu'
    execution_policy_setting: str = 'suhosin.executor.include.whitelist'
    archive_policy_tokens: Tuple[str, ...] = ('phar', 'phar://')
    url_fopen_setting: str = 'allow_url_fopen'
    shell_function: str = 'shell_exec'
    process_function: str = 'proc_open'

    def __post_init__(self):
        _check_version('min_php_version', self.min_php_version)
        self.archive_policy_tokens = _names('archive_policy_tokens', self.archive_policy_tokens)
        if not self.archive_policy_tokens:
            raise ConfigError("archive_policy_tokens must not be empty")


@dataclass
class RuntimeRequirements:
    """Requirements for running Contao 4.x."""
    min_php_version: str = '5.6.0'
    min_gd_version: str = '2.0.1'
    gd_function: str = 'gd_info'
    gd_version_constant: str = 'GD_VERSION'
    image_classes: Tuple[str, ...] = ('Imagick', 'Gmagick')
    dom_extension: str = 'dom'
    intl_extension: str = 'intl'
    xmlreader_extension: str = 'xmlreader'
    symlink_function: str = 'symlink'
    symlink_name: str = '.preflight-symlink'

    def __post_init__(self):
        _check_version('min_php_version', self.min_php_version)
        _check_version('min_gd_version', self.min_gd_version)
        self.image_classes = _names('image_classes', self.image_classes)
        if not self.symlink_name or os.sep in self.symlink_name:
            raise ConfigError(f"symlink_name must be a plain file name: {self.symlink_name!r}")


@dataclass
class PreflightConfig:
    """
    Top-level configuration.

    Attributes:
        php_binary: PHP executable to query
        install_dir: Directory the installation will write to; filesystem
            probes run here
        snapshot_file: Evaluate a captured snapshot instead of querying PHP
        check_composer: Run the Composer evaluation
        check_runtime: Run the Contao runtime evaluation
        output: Report format (rich, plain or json)
        log_level: Root logger level
        probe_timeout: Seconds to wait for the PHP binary
    """
    php_binary: str = 'php'
    install_dir: str = '.'
    snapshot_file: Optional[str] = None
    check_composer: bool = True
    check_runtime: bool = True
    output: str = 'rich'
    log_level: str = 'WARNING'
    probe_timeout: float = 10.0
    composer: ComposerRequirements = field(default_factory=ComposerRequirements)
    runtime: RuntimeRequirements = field(default_factory=RuntimeRequirements)

    # Set by load() when a YAML file was read
    config_file: ClassVar[Optional[str]] = None

    def __post_init__(self):
        if self.output not in OUTPUT_FORMATS:
            raise ConfigError(f"output must be one of {', '.join(OUTPUT_FORMATS)}, got {self.output!r}")
        if not isinstance(self.log_level, str) or not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise ConfigError(f"Unknown log level: {self.log_level!r}")
        if isinstance(self.probe_timeout, bool) or not isinstance(self.probe_timeout, (int, float)):
            raise ConfigError(f"probe_timeout must be a number, got {self.probe_timeout!r}")
        if self.probe_timeout <= 0:
            raise ConfigError("probe_timeout must be positive")
        if not (self.check_composer or self.check_runtime):
            raise ConfigError("At least one of check_composer and check_runtime must be enabled")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PreflightConfig':
        """Create a configuration from a mapping, e.g. a parsed YAML file."""
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")

        values = dict(data)
        try:
            if 'composer' in values:
                values['composer'] = ComposerRequirements(**(values['composer'] or {}))
            if 'runtime' in values:
                values['runtime'] = RuntimeRequirements(**(values['runtime'] or {}))
        except TypeError as e:
            raise ConfigError(f"Invalid requirements: {e}") from e

        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'php_binary': self.php_binary,
            'install_dir': self.install_dir,
            'snapshot_file': self.snapshot_file,
            'check_composer': self.check_composer,
            'check_runtime': self.check_runtime,
            'output': self.output,
            'log_level': self.log_level,
            'probe_timeout': self.probe_timeout,
            'composer': {f.name: getattr(self.composer, f.name) for f in fields(self.composer)},
            'runtime': {f.name: getattr(self.runtime, f.name) for f in fields(self.runtime)},
        }

    @classmethod
    def load(cls, path: Optional[Union[str, Path]] = None,
             environ: Optional[Dict[str, str]] = None) -> 'PreflightConfig':
        """
        Load configuration from a YAML file and the environment.

        Args:
            path: YAML file to read (defaults to $PREFLIGHT_CONFIG if set)
            environ: Environment mapping (defaults to os.environ after
                reading ``.env``)

        Returns:
            PreflightConfig

        Raises:
            ConfigError: If the file or any value is invalid
        """
        if environ is None:
            dotenv_file = find_dotenv(usecwd=True)
            if dotenv_file:
                load_dotenv(dotenv_file)
            environ = dict(os.environ)

        path = path or environ.get(f'{ENV_PREFIX}CONFIG')
        data: Dict[str, Any] = {}

        if path:
            try:
                with open(path, 'r', encoding='utf-8') as f:
                    data = yaml.safe_load(f) or {}
            except (OSError, yaml.YAMLError) as e:
                raise ConfigError(f"Cannot read configuration {path}: {e}") from e
            if not isinstance(data, dict):
                raise ConfigError(f"Configuration {path} must be a mapping")

        data.update(_environment_overrides(environ))
        config = cls.from_dict(data)
        config.config_file = str(path) if path else None
        return config


def _parse_bool(name: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ('1', 'true', 'yes', 'on'):
        return True
    if lowered in ('0', 'false', 'no', 'off', ''):
        return False
    raise ConfigError(f"{name} must be a boolean, got {value!r}")


def _environment_overrides(environ: Dict[str, str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}

    for key in ('php_binary', 'install_dir', 'output', 'log_level'):
        value = environ.get(f'{ENV_PREFIX}{key.upper()}')
        if value:
            overrides[key] = value

    snapshot = environ.get(f'{ENV_PREFIX}SNAPSHOT')
    if snapshot:
        overrides['snapshot_file'] = snapshot

    for key in ('check_composer', 'check_runtime'):
        name = f'{ENV_PREFIX}{key.upper()}'
        if name in environ:
            overrides[key] = _parse_bool(name, environ[name])

    timeout = environ.get(f'{ENV_PREFIX}PROBE_TIMEOUT')
    if timeout:
        try:
            overrides['probe_timeout'] = float(timeout)
        except ValueError as e:
            raise ConfigError(f"{ENV_PREFIX}PROBE_TIMEOUT must be a number, got {timeout!r}") from e

    return overrides
