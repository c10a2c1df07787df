# npm_reports/audit.py
"""
Schema models for the output of `npm audit --json`.

npm 6 and below write report format 1 (advisories keyed by id plus a list of
remediation actions); npm 7 and above write report format 2 (vulnerable
packages keyed by name). The two shapes share nothing but Severity, so they
are modelled as two independent trees. See
https://docs.npmjs.com/cli/v7/commands/npm-audit
"""

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .codecs import (
    ModulePath,
    OptionalTimestamp,
    ShapeVariant,
    Timestamp,
    frozen_mapping,
    is_json_bool,
    is_json_string,
    tagged_union,
    untagged_union,
)
from .models import ReportSchema, Severity

Count = Annotated[int, Field(ge=0)]


class NpmModel(BaseModel):
    """Base for every decoded npm structure: immutable, strict, lowerCamelCase in JSON."""
    model_config = ConfigDict(
        frozen=True,
        strict=True,
        alias_generator=to_camel,
        extra="ignore",
    )


# --- Report format 1 ---

class Finding(NpmModel):
    # dependency version found
    version: str
    # paths from the current module to the dependency
    paths: tuple[ModulePath, ...]


class Advisory(NpmModel):
    """
    Advisory in report format 1.

    npm also writes a 'metadata' field here whose structure is undocumented
    (it has always been null in practice); it is not decoded.
    """
    id: Count
    title: str
    findings: tuple[Finding, ...]
    vulnerable_versions: Optional[str] = None
    module_name: Optional[str] = None
    severity: Severity
    github_advisory_id: Optional[str] = None
    cves: Optional[tuple[str, ...]] = None
    access: str
    patched_versions: Optional[str] = None
    recommendation: str
    cwe: Optional[str] = None
    found_by: Optional[str] = None
    reported_by: Optional[str] = None
    created: Timestamp
    updated: OptionalTimestamp = None
    deleted: OptionalTimestamp = None
    # external references, all in one string separated by newlines
    references: Optional[str] = None
    npm_advisory_id: Optional[str] = None
    overview: str
    url: str


class Resolves(NpmModel):
    """Which advisory an action resolves, and through which dependency path."""
    id: Count
    path: ModulePath
    dev: bool
    optional: bool
    bundled: bool


class InstallAction(NpmModel):
    action: Literal["install"]
    resolves: tuple[Resolves, ...]
    module: str
    depth: Optional[Count] = None
    target: str
    is_major: bool


class UpdateAction(NpmModel):
    action: Literal["update"]
    resolves: tuple[Resolves, ...]
    module: str
    depth: Optional[Count] = None
    target: str


class ReviewAction(NpmModel):
    action: Literal["review"]
    resolves: tuple[Resolves, ...]
    module: str
    depth: Optional[Count] = None


RemediationAction = tagged_union("action", {
    "install": InstallAction,
    "update": UpdateAction,
    "review": ReviewAction,
})


class VulnerabilityCountsV1(NpmModel):
    info: Count
    low: Count
    moderate: Count
    high: Count
    critical: Count


class MetadataV1(NpmModel):
    vulnerabilities: VulnerabilityCountsV1
    dependencies: Count
    dev_dependencies: Count
    optional_dependencies: Count
    total_dependencies: Count


AdvisoryMap = frozen_mapping(Advisory)


class AuditReportV1(NpmModel):
    # UUID of the npm audit run, only written by some npm versions
    run_id: Optional[str] = None
    actions: tuple[RemediationAction, ...]
    advisories: AdvisoryMap
    # only written by some npm versions
    muted: Optional[tuple[str, ...]] = None
    metadata: Optional[MetadataV1] = None

    @property
    def report_schema(self) -> ReportSchema:
        return ReportSchema.V1

    def advisories_by_severity(self) -> list[tuple[str, Advisory]]:
        """Advisories, most severe first; ties keep report order."""
        return sorted(self.advisories.items(), key=lambda item: item[1].severity, reverse=True)


# --- Report format 2 ---

class VulnerabilityRecord(NpmModel):
    """Full entry of a 'via' list."""
    # numeric id of the advisory source
    source: Count
    # name of the vulnerability, or of the vulnerable package if there is none
    name: str
    dependency: str
    title: str
    url: str
    severity: Severity
    range: str


# A 'via' entry is either just the name of another vulnerable package or a full record
Vulnerability = untagged_union(
    ShapeVariant("name", str, is_json_string),
    ShapeVariant("record", VulnerabilityRecord),
)


class FixRecord(NpmModel):
    name: str
    version: str
    is_sem_ver_major: bool


# 'fixAvailable' is either a plain flag or the details of the fix
Fix = untagged_union(
    ShapeVariant("flag", bool, is_json_bool),
    ShapeVariant("record", FixRecord),
)


class VulnerablePackage(NpmModel):
    name: str
    severity: Severity
    is_direct: bool
    via: tuple[Vulnerability, ...]
    effects: tuple[str, ...]
    range: str
    nodes: tuple[str, ...]
    fix_available: Fix


class VulnerabilityCountsV2(NpmModel):
    total: Count
    info: Count
    low: Count
    moderate: Count
    high: Count
    critical: Count


class DependencyCounts(NpmModel):
    total: Count
    prod: Count
    dev: Count
    optional: Count
    peer: Count
    peer_optional: Count


class MetadataV2(NpmModel):
    vulnerabilities: VulnerabilityCountsV2
    dependencies: DependencyCounts


VulnerablePackageMap = frozen_mapping(VulnerablePackage)


class AuditReportV2(NpmModel):
    # not written by every npm version
    audit_report_version: Optional[int] = None
    vulnerabilities: VulnerablePackageMap
    metadata: MetadataV2

    @property
    def report_schema(self) -> ReportSchema:
        return ReportSchema.V2

    def packages_by_severity(self) -> list[VulnerablePackage]:
        """Vulnerable packages, most severe first; ties keep report order."""
        return sorted(self.vulnerabilities.values(), key=lambda package: package.severity, reverse=True)


AuditReport = Union[AuditReportV1, AuditReportV2]
