# npm_reports/runner.py
"""
Runs npm and hands its output to the decoders.

The decoders never start processes themselves; everything here goes through
an NpmInvoker so callers (and tests) can supply canned output instead of a
real npm.
"""

import logging
import subprocess
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence

from .audit import AuditReport
from .config import ParserConfig
from .decoder import as_text, decode_audit_report, decode_outdated_report
from .errors import InvocationError
from .models import IndicatedUpdateRequirement
from .outdated import FreshnessReport
from .version import detect_report_schema

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandOutput:
    stdout: bytes
    stderr: bytes
    exit_status: int

    @property
    def success(self) -> bool:
        return self.exit_status == 0


class NpmInvoker(Protocol):
    def invoke(self, args: Sequence[str]) -> CommandOutput:
        ...


class SubprocessInvoker:
    """Runs the real npm executable and captures its output."""

    def __init__(self, executable: str = "npm", working_directory: Optional[str] = None):
        self.executable = executable
        self.working_directory = working_directory

    @classmethod
    def from_config(cls, config: ParserConfig) -> "SubprocessInvoker":
        return cls(config.npm_executable, config.working_directory)

    def invoke(self, args: Sequence[str]) -> CommandOutput:
        command = [self.executable, *args]
        logger.debug(f"Executing npm command: {' '.join(command)}")
        try:
            completed = subprocess.run(command, cwd=self.working_directory, capture_output=True, check=False)
        except OSError as e:
            raise InvocationError(command, e) from e
        return CommandOutput(stdout=completed.stdout, stderr=completed.stderr, exit_status=completed.returncode)


def _log_unsuccessful(description: str, output: CommandOutput) -> None:
    if output.success:
        return
    logger.warning(f"{description} did not return with a successful exit code: {output.exit_status}")
    logger.debug(f"stdout:\n{as_text(output.stdout, 'stdout')}")
    if output.stderr:
        logger.warning(f"stderr:\n{as_text(output.stderr, 'stderr')}")


def _resolve(invoker: Optional[NpmInvoker], config: Optional[ParserConfig]) -> tuple[NpmInvoker, ParserConfig]:
    config = config or ParserConfig()
    return invoker or SubprocessInvoker.from_config(config), config


def npm_version(invoker: NpmInvoker) -> str:
    """Returns the trimmed output of `npm --version`."""
    output = invoker.invoke(["--version"])
    return as_text(output.stdout, "stdout").strip()


def audit(invoker: Optional[NpmInvoker] = None,
          config: Optional[ParserConfig] = None) -> tuple[IndicatedUpdateRequirement, AuditReport]:
    """
    Runs `npm audit --json` and decodes its report.

    The report format is chosen from `npm --version`. npm audit exits
    non-zero when it found vulnerabilities; that is reported as
    UPDATE_REQUIRED, not raised.
    """
    invoker, config = _resolve(invoker, config)
    schema = detect_report_schema(npm_version(invoker))
    logger.debug(f"Using {schema}")

    output = invoker.invoke(config.audit_args)
    _log_unsuccessful("npm audit", output)
    update_requirement = IndicatedUpdateRequirement.from_exit_status(output.exit_status)
    report = decode_audit_report(as_text(output.stdout, "stdout"), schema)
    return update_requirement, report


def outdated(invoker: Optional[NpmInvoker] = None,
             config: Optional[ParserConfig] = None) -> tuple[IndicatedUpdateRequirement, FreshnessReport]:
    """Runs `npm outdated --json --long` and decodes its report."""
    invoker, config = _resolve(invoker, config)
    output = invoker.invoke(config.outdated_args)
    _log_unsuccessful("npm outdated", output)
    update_requirement = IndicatedUpdateRequirement.from_exit_status(output.exit_status)
    report = decode_outdated_report(as_text(output.stdout, "stdout"))
    return update_requirement, report
