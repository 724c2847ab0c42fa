"""
Contao 4.x runtime requirements.

The checks form a chain that stops at the first failure: there is no point
in looking for extensions when the PHP version itself is too old.
"""

import contextlib
import logging
import os
from typing import List, Optional

from preflight.config import RuntimeRequirements
from preflight.engine import Check, CheckResult, EvaluationReport, FoldPolicy, evaluate
from preflight.probe import CapabilityProbe
from preflight.versions import version_above, version_at_least

logger = logging.getLogger(__name__)

# Existing file the test symlink points at
SYMLINK_TARGET = os.path.abspath(__file__)


class RuntimeEvaluator:
    """Checks whether Contao 4.x can run in the environment."""

    def __init__(self, probe: CapabilityProbe, requirements: Optional[RuntimeRequirements] = None):
        self.probe = probe
        self.requirements = requirements or RuntimeRequirements()
        self.report: Optional[EvaluationReport] = None

    def check_compatibility(self) -> bool:
        """
        Execute the compatibility checks in order.

        Returns:
            True if Contao 4.x can be run
        """
        self.report = evaluate(self.checks(), FoldPolicy.FAIL_FAST)

        if self.report.failed:
            logger.info("Contao 4 incompatible: %s failed", self.report.failed[0].name)

        return self.report.verdict

    def is_compatible(self) -> bool:
        """Return the Contao 4.x compatibility of the environment."""
        return True if self.report is None else self.report.verdict

    @property
    def results(self) -> List[CheckResult]:
        return [] if self.report is None else self.report.results

    def checks(self) -> List[Check]:
        req = self.requirements
        return [
            Check('runtime_version', self.has_runtime_version,
                  description=f"PHP version {req.min_php_version} or higher"),
            Check('graphics_capability', self.has_graphics_capability,
                  description=f"GD > {req.min_gd_version}, {' or '.join(req.image_classes)}"),
            Check('dom_support', self.has_dom_support,
                  description=f"PHP {req.dom_extension} extension"),
            Check('internationalization', self.has_internationalization,
                  description=f"PHP {req.intl_extension} extension"),
            Check('temp_directory', self.can_write_temp_directory,
                  description="System temp directory is writable"),
            Check('symlink_function', self.can_use_symlink_function,
                  description=f"PHP function {req.symlink_function}()"),
            Check('create_symlink', self.can_actually_create_symlink,
                  description="Symlinks can be created"),
            Check('xml_stream_reader', self.has_xml_stream_reader,
                  description=f"PHP {req.xmlreader_extension} extension"),
        ]

    def has_runtime_version(self) -> bool:
        return version_at_least(self.probe.runtime_version(), self.requirements.min_php_version)

    def has_graphics_capability(self) -> bool:
        """Check whether any of the supported graphics libraries is available."""
        req = self.requirements

        if self.probe.function_callable(req.gd_function):
            if version_above(self.probe.constant(req.gd_version_constant), req.min_gd_version):
                return True

        return any(self.probe.class_available(name) for name in req.image_classes)

    def has_dom_support(self) -> bool:
        return self.probe.extension_loaded(self.requirements.dom_extension)

    def has_internationalization(self) -> bool:
        return self.probe.extension_loaded(self.requirements.intl_extension)

    def can_write_temp_directory(self) -> bool:
        return self.probe.path_writable(self.probe.temp_dir())

    def can_use_symlink_function(self) -> bool:
        return self.probe.function_callable(self.requirements.symlink_function)

    def can_actually_create_symlink(self) -> bool:
        """Create and remove a symlink in the installation directory."""
        link = self.requirements.symlink_name

        # The link usually does not exist
        with contextlib.suppress(OSError):
            self.probe.remove(link)

        created = self.probe.create_symlink(SYMLINK_TARGET, link)

        with contextlib.suppress(OSError):
            self.probe.remove(link)

        return created is True

    def has_xml_stream_reader(self) -> bool:
        return self.probe.extension_loaded(self.requirements.xmlreader_extension)
