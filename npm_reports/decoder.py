# npm_reports/decoder.py
"""
Turns the raw JSON text written by npm into the report models.

Every decode is a pure function of its input. When the text does not match
the expected shape a ReportDecodeError is raised that names the location
(object keys and array indices from the document root) where decoding
diverged; a partially decoded report is never returned.
"""

import json
import logging
from typing import Union

from pydantic import BaseModel, ValidationError

from .audit import AuditReport, AuditReportV1, AuditReportV2
from .codecs import split_variants
from .errors import OutputEncodingError, ReportDecodeError
from .models import ReportSchema
from .outdated import FreshnessReport

logger = logging.getLogger(__name__)

RawOutput = Union[str, bytes]

AUDIT_MODELS = {
    ReportSchema.V1: AuditReportV1,
    ReportSchema.V2: AuditReportV2,
}


def as_text(raw: RawOutput, stream: str = "npm output") -> str:
    """Returns ``raw`` as text, decoding bytes strictly as UTF-8."""
    if isinstance(raw, str):
        return raw
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise OutputEncodingError(stream, e) from e


def _document_errors(error: ValidationError) -> list[dict]:
    """pydantic errors with 'loc' rewritten to the document path and the chosen union variants split out."""
    errors = []
    for entry in error.errors(include_url=False):
        path, variants = split_variants(entry["loc"])
        errors.append(dict(entry, loc=path, variants=variants))
    return errors


def _decode_error(report_kind: str, error: ValidationError) -> ReportDecodeError:
    errors = _document_errors(error)
    first = errors[0] if errors else {"loc": (), "msg": str(error), "variants": ()}
    return ReportDecodeError(report_kind, first["loc"], first["msg"], errors, first["variants"])


def _validate(model: type[BaseModel], text: str, report_kind: str):
    try:
        return model.model_validate_json(text)
    except ValidationError as e:
        raise _decode_error(report_kind, e) from e


def decode_audit_report(raw: RawOutput, schema: ReportSchema) -> AuditReport:
    """
    Decodes `npm audit --json` output against exactly the given report format.

    The schema is authoritative: a report that does not match it is an
    error, it is not retried as the other format.
    """
    text = as_text(raw)
    model = AUDIT_MODELS[schema]
    logger.debug(f"Decoding npm audit output using {schema}")
    return _validate(model, text, f"npm audit ({schema})")


def decode_audit_report_any(raw: RawOutput) -> AuditReport:
    """
    Decodes `npm audit --json` output when the npm version is not known.

    Report format 1 is tried first (it needs 'actions' and 'advisories'),
    then report format 2 (it needs 'vulnerabilities' and 'metadata'). Each
    attempt starts from the raw text, so nothing decoded by a failed attempt
    leaks into the next. If neither matches, the error reports where format
    2 diverged and keeps the errors of both attempts.
    """
    text = as_text(raw)
    failures = []
    for schema in (ReportSchema.V1, ReportSchema.V2):
        try:
            report = AUDIT_MODELS[schema].model_validate_json(text)
        except ValidationError as e:
            logger.debug(f"npm audit output does not match {schema}: {e.error_count()} error(s)")
            failures.append((schema, e))
            continue
        logger.debug(f"npm audit output matches {schema}")
        return report

    last_schema, last_error = failures[-1]
    decode_error = _decode_error(f"npm audit ({last_schema})", last_error)
    decode_error.errors = [
        dict(error, schema=schema.name)
        for schema, failure in failures
        for error in _document_errors(failure)
    ]
    raise decode_error from last_error


def decode_outdated_report(raw: RawOutput) -> FreshnessReport:
    """Decodes `npm outdated --json --long` output."""
    return _validate(FreshnessReport, as_text(raw), "npm outdated")


def encode_report(report: Union[AuditReport, FreshnessReport], indent: int = 2) -> str:
    """Serializes a decoded report back to npm's JSON property names."""
    return json.dumps(report.model_dump(mode="json", by_alias=True), indent=indent)
