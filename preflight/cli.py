"""
Front end for the pre-flight checks.

Configuration comes from a YAML file and PREFLIGHT_* environment variables,
see preflight.config. Exit codes: 0 if every enabled evaluation succeeded,
1 if one failed, 2 if the configuration is invalid.
"""

import logging
import sys
from typing import Dict, Optional

from rich.console import Console

from preflight.composer import PackageManagerEvaluator
from preflight.config import ConfigError, PreflightConfig
from preflight.engine import EvaluationReport
from preflight.probe import CapabilityProbe, PhpRuntimeProbe, SnapshotError, SnapshotProbe
from preflight.report import render
from preflight.runtime import RuntimeEvaluator

logger = logging.getLogger(__name__)


def build_probe(config: PreflightConfig) -> CapabilityProbe:
    """Create the probe described by the configuration.

    Raises:
        ConfigError: If the snapshot file cannot be loaded
    """
    if config.snapshot_file:
        try:
            return SnapshotProbe.from_file(config.snapshot_file, work_dir=config.install_dir)
        except SnapshotError as e:
            raise ConfigError(str(e)) from e

    return PhpRuntimeProbe(
        php_binary=config.php_binary,
        work_dir=config.install_dir,
        timeout=config.probe_timeout,
    )


def run_checks(config: PreflightConfig,
               probe: Optional[CapabilityProbe] = None) -> Dict[str, EvaluationReport]:
    """
    Run the enabled evaluations.

    Returns:
        Reports keyed by evaluation name, in evaluation order
    """
    probe = probe or build_probe(config)
    reports: Dict[str, EvaluationReport] = {}

    if config.check_composer:
        reports['composer'] = PackageManagerEvaluator(probe, config.composer).run()

    if config.check_runtime:
        evaluator = RuntimeEvaluator(probe, config.runtime)
        evaluator.check_compatibility()
        reports['contao4'] = evaluator.report

    return reports


def main() -> int:
    """CLI entry point."""
    try:
        config = PreflightConfig.load()
    except ConfigError as e:
        Console(stderr=True).print(f"[red]❌ Invalid configuration: {e}[/red]")
        return 2

    level = config.log_level.upper()
    logging.basicConfig(level=level)
    logging.getLogger().setLevel(level)
    if config.config_file:
        logger.debug("Loaded configuration from %s", config.config_file)

    try:
        reports = run_checks(config)
    except ConfigError as e:
        Console(stderr=True).print(f"[red]❌ {e}[/red]")
        return 2

    render(reports, config.output)

    if all(report.verdict for report in reports.values()):
        return 0

    if config.output != 'json':
        Console().print("[red]❌ Cannot proceed: environment does not meet the requirements[/red]\n")
    return 1


if __name__ == '__main__':
    sys.exit(main())
