"""
Composer package manager requirements.

All checks run on every evaluation, even after a failure, so the report
lists every unmet requirement at once.
"""

import logging
from typing import List, Optional

from preflight.config import ComposerRequirements
from preflight.engine import Check, CheckResult, EvaluationReport, FoldPolicy, evaluate
from preflight.file_permissions import FilePermissionProbe
from preflight.probe import CapabilityProbe
from preflight.versions import version_at_least

logger = logging.getLogger(__name__)


class PackageManagerEvaluator:
    """Checks whether the Composer package manager can be used."""

    def __init__(self, probe: CapabilityProbe, requirements: Optional[ComposerRequirements] = None):
        self.probe = probe
        self.requirements = requirements or ComposerRequirements()
        self.report: Optional[EvaluationReport] = None
        self._file_permissions_blocked: Optional[bool] = None
        self._running = False

    def run(self) -> EvaluationReport:
        """Execute all checks and return the report."""
        # Probed once per run and shared by the checks of that run only
        self._file_permissions_blocked = None
        self._running = True
        try:
            self.report = evaluate(
                self.checks(),
                FoldPolicy.ACCUMULATE_ALL,
                informational=self.informational_checks(),
            )
        finally:
            self._running = False
            self._file_permissions_blocked = None

        logger.info("Composer available: %s", self.report.verdict)
        return self.report

    def is_available(self) -> bool:
        """Return True if the Composer package manager can be used."""
        return True if self.report is None else self.report.verdict

    @property
    def results(self) -> List[CheckResult]:
        return [] if self.report is None else self.report.results

    def checks(self) -> List[Check]:
        req = self.requirements
        return [
            Check('runtime_version', self.has_runtime_version,
                  description=f"PHP version {req.min_php_version} or higher"),
            Check('archive_support', self.has_archive_support,
                  description=f"PHP {req.archive_extension} extension"),
            Check('deprecated_accelerator', self.has_deprecated_accelerator, fails_when=True,
                  description=f"No {req.accelerator_extension} extension"),
            Check('http_client', self.has_http_client,
                  description=f"PHP function {req.http_client_function}()"),
            Check('legacy_cache', self.has_legacy_cache, fails_when=True,
                  description=f"No {req.legacy_cache_extension} without {req.legacy_cache_successor}"),
            Check('restricted_execution_policy', self.has_restricted_execution_policy, fails_when=True,
                  description=f"{req.execution_policy_setting} allows {req.archive_extension}"),
            Check('url_fopen', self.has_url_fopen_enabled,
                  description=f"{req.url_fopen_setting} enabled"),
            Check('create_files', self.can_create_files,
                  description="PHP process can create files"),
        ]

    def informational_checks(self) -> List[Check]:
        req = self.requirements
        return [
            Check('shell_execution', self.has_shell_execution,
                  description=f"PHP function {req.shell_function}()"),
            Check('process_spawning', self.has_process_spawning,
                  description=f"PHP function {req.process_function}()"),
        ]

    def has_runtime_version(self) -> bool:
        return version_at_least(self.probe.runtime_version(), self.requirements.min_php_version)

    def has_archive_support(self) -> bool:
        return self.probe.extension_loaded(self.requirements.archive_extension)

    def has_deprecated_accelerator(self) -> bool:
        """Return True if the deprecated opcode cache is loaded (a failure)."""
        return self.probe.extension_loaded(self.requirements.accelerator_extension)

    def has_http_client(self) -> bool:
        return self.probe.function_callable(self.requirements.http_client_function)

    def has_legacy_cache(self) -> bool:
        """Return True if the legacy cache is loaded without its successor (a failure)."""
        req = self.requirements
        return (self.probe.extension_loaded(req.legacy_cache_extension)
                and not self.probe.extension_loaded(req.legacy_cache_successor))

    def has_restricted_execution_policy(self) -> bool:
        """
        Check whether the include whitelist blocks phar archives.

        Returns:
            True if a whitelist is configured and does not allow phar
            archives (a failure), False otherwise
        """
        policy = self.probe.config_value(self.requirements.execution_policy_setting)

        if policy is None:
            return False

        allowed = [item.strip() for item in policy.split(',')]

        # Compare whole entries; substring matching would accept e.g. "phar."
        if any(token in allowed for token in self.requirements.archive_policy_tokens):
            return False

        return True

    def has_url_fopen_enabled(self) -> bool:
        return self.probe.config_flag(self.requirements.url_fopen_setting)

    def can_create_files(self) -> bool:
        if not self._running:
            return not FilePermissionProbe(self.probe).check_file_permissions()

        if self._file_permissions_blocked is None:
            self._file_permissions_blocked = FilePermissionProbe(self.probe).check_file_permissions()
        return not self._file_permissions_blocked

    def has_shell_execution(self) -> bool:
        return self.probe.function_callable(self.requirements.shell_function)

    def has_process_spawning(self) -> bool:
        return self.probe.function_callable(self.requirements.process_function)
