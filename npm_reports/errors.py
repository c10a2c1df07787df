# npm_reports/errors.py
"""Exceptions raised while running npm or decoding its JSON output."""

from typing import Any, Optional, Sequence, Union

from .codecs import format_json_path


class NpmReportError(Exception):
    """Base class for every error raised by npm_reports."""


class ReportDecodeError(NpmReportError):
    """The JSON text did not match the expected report shape.

    ``path`` is the chain of object keys and array indices from the document
    root to the place where decoding diverged; it is empty when the text is
    not JSON at all. ``variants`` names the union members chosen on the way
    there (e.g. ('install',) for an 'install' action).
    """

    def __init__(self, report_kind: str, path: Sequence[Union[str, int]], message: str,
                 errors: Optional[list[dict[str, Any]]] = None, variants: Sequence[str] = ()):
        self.report_kind = report_kind
        self.path = tuple(path)
        self.location = format_json_path(self.path)
        self.message = message
        self.errors = errors or []
        self.variants = tuple(variants)
        super().__init__(f"Error parsing {report_kind} JSON at '{self.location}': {message}")


class OutputEncodingError(NpmReportError):
    """Captured process output was not valid UTF-8."""

    def __init__(self, stream: str, cause: UnicodeDecodeError):
        self.stream = stream
        self.cause = cause
        super().__init__(f"Error interpreting {stream} as UTF-8: {cause}")


class InvocationError(NpmReportError):
    """npm could not be started at all (a non-zero exit is not this)."""

    def __init__(self, command: Sequence[str], cause: OSError):
        self.command = list(command)
        self.cause = cause
        super().__init__(f"Could not execute '{' '.join(self.command)}': {cause}")


class ConfigError(NpmReportError):
    """An explicitly requested configuration file could not be used."""
