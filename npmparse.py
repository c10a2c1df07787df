#!/usr/bin/env python3
import logging
import sys

import click

from npm_reports.audit import AuditReportV1
from npm_reports.config import load_config
from npm_reports.decoder import decode_audit_report, decode_audit_report_any, decode_outdated_report, encode_report
from npm_reports.errors import NpmReportError
from npm_reports.models import IndicatedUpdateRequirement
from npm_reports import runner
from npm_reports.version import detect_report_schema

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


# --- Report Printing ---
def _print_audit_summary(report):
    if isinstance(report, AuditReportV1):
        click.echo(f"npm audit report (format 1): {len(report.advisories)} advisories, {len(report.actions)} actions")
        for advisory_id, advisory in report.advisories_by_severity():
            click.echo(f"  - [{advisory.severity.value.upper()}] {advisory_id}: {advisory.title}")
            for finding in advisory.findings:
                for path in finding.paths:
                    click.echo(f"      {finding.version} via {' > '.join(path)}")
        return

    counts = report.metadata.vulnerabilities
    click.echo(f"npm audit report (format 2): {counts.total} vulnerabilities "
               f"({counts.critical} critical, {counts.high} high, {counts.moderate} moderate, "
               f"{counts.low} low, {counts.info} info)")
    for package in report.packages_by_severity():
        fix = package.fix_available
        if isinstance(fix, bool):
            fix_text = "fix available" if fix else "no fix available"
        else:
            fix_text = f"fix: {fix.name}@{fix.version}" + (" (semver major)" if fix.is_sem_ver_major else "")
        direct = " (direct)" if package.is_direct else ""
        click.echo(f"  - [{package.severity.value.upper()}] {package.name} {package.range}{direct}, {fix_text}")


def _print_outdated_summary(report):
    if not len(report):
        click.echo("All packages are up to date.")
        return
    click.echo(f"{len(report)} outdated packages:")
    for name, status in sorted(report.items()):
        dependent = f" (required by {status.dependent})" if status.dependent else ""
        click.echo(f"  - {name}: wanted {status.wanted}, latest {status.latest} [{status.package_type}]{dependent}")


def _emit(report, output_format, printer):
    if output_format == 'json':
        click.echo(encode_report(report))
    else:
        printer(report)


def _finish(update_requirement: IndicatedUpdateRequirement):
    click.secho(f"\nnpm reported: {update_requirement}",
                fg="green" if update_requirement is IndicatedUpdateRequirement.UP_TO_DATE else "yellow", err=True)
    if update_requirement is IndicatedUpdateRequirement.UPDATE_REQUIRED:
        sys.exit(1)


# --- CLI Definition ---
@click.group(context_settings=dict(help_option_names=['-h', '--help']))
@click.option("--config", "config_path", type=click.Path(dir_okay=False), help="YAML configuration file (default: ./npmparse.yaml, then the user config directory).")
@click.option("-v", "--verbose", count=True, help="Log more (-v for INFO, -vv for DEBUG).")
@click.pass_context
def cli(ctx, config_path, verbose):
    """
    npmparse: decodes the JSON output of `npm audit` and `npm outdated`.
    Without --input, npm is run in the current directory (or the configured working_directory).
    """
    try:
        config = load_config(config_path)
    except NpmReportError as e:
        raise click.ClickException(str(e))
    if verbose:
        level = logging.DEBUG if verbose > 1 else logging.INFO
    else:
        level = getattr(logging, config.log_level.upper(), logging.WARNING)
    logging.basicConfig(level=level, format=LOG_FORMAT)
    ctx.obj = config


@cli.command("audit")
@click.option("--input", "input_path", type=click.Path(exists=True, dir_okay=False), help="Decode a saved `npm audit --json` report instead of running npm.")
@click.option("--npm-version", type=str, help="npm version that wrote the saved report. Without it the report format is detected from the report's shape.")
@click.option("--format", "output_format", type=click.Choice(['summary', 'json'], case_sensitive=False), default='summary', show_default=True, help="Output format.")
@click.pass_obj
def audit_command(config, input_path, npm_version, output_format):
    """Runs `npm audit --json` (or reads a saved report) and prints the decoded report."""
    try:
        if input_path:
            with open(input_path, 'rb') as f:
                raw = f.read()
            if npm_version:
                report = decode_audit_report(raw, detect_report_schema(npm_version))
            else:
                report = decode_audit_report_any(raw)
            _emit(report, output_format.lower(), _print_audit_summary)
            return
        update_requirement, report = runner.audit(config=config)
    except NpmReportError as e:
        raise click.ClickException(str(e))
    _emit(report, output_format.lower(), _print_audit_summary)
    _finish(update_requirement)


@cli.command("outdated")
@click.option("--input", "input_path", type=click.Path(exists=True, dir_okay=False), help="Decode a saved `npm outdated --json --long` report instead of running npm.")
@click.option("--format", "output_format", type=click.Choice(['summary', 'json'], case_sensitive=False), default='summary', show_default=True, help="Output format.")
@click.pass_obj
def outdated_command(config, input_path, output_format):
    """Runs `npm outdated --json --long` (or reads a saved report) and prints the decoded report."""
    try:
        if input_path:
            with open(input_path, 'rb') as f:
                report = decode_outdated_report(f.read())
            _emit(report, output_format.lower(), _print_outdated_summary)
            return
        update_requirement, report = runner.outdated(config=config)
    except NpmReportError as e:
        raise click.ClickException(str(e))
    _emit(report, output_format.lower(), _print_outdated_summary)
    _finish(update_requirement)


@cli.command("detect-schema")
@click.argument("version_string", type=str)
def detect_schema_command(version_string):
    """Prints which npm audit report format an npm version writes."""
    click.echo(detect_report_schema(version_string).name)


if __name__ == "__main__":
    cli()
