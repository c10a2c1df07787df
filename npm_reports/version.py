# npm_reports/version.py
import logging

from packaging.version import InvalidVersion, Version

from .models import ReportSchema

logger = logging.getLogger(__name__)

# npm 7 rewrote npm audit and switched to report format 2
AUDIT_REPORT_CHANGE = Version("7.0.0")


def detect_report_schema(version_output: str) -> ReportSchema:
    """
    Decides which audit report format to expect from the output of `npm --version`.

    An unparseable version string selects format 2: npm audit only appeared
    in npm 6, so anything we cannot read is more likely a newer npm than an
    older one.
    """
    version_string = (version_output or "").strip()
    logger.debug(f"Got version string '{version_string}' from npm --version")
    try:
        version = Version(version_string)
    except InvalidVersion:
        logger.debug("Could not parse npm version, defaulting to report format 2")
        return ReportSchema.V2

    if version < AUDIT_REPORT_CHANGE:
        logger.debug(f"Dealing with npm before version {AUDIT_REPORT_CHANGE}, using report format 1")
        return ReportSchema.V1
    logger.debug(f"Dealing with npm version {AUDIT_REPORT_CHANGE} or above, using report format 2")
    return ReportSchema.V2
