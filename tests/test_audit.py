import copy
import json
import unittest
from datetime import datetime, timezone

from pydantic import ValidationError

from npm_reports.audit import (
    AuditReportV1,
    AuditReportV2,
    FixRecord,
    InstallAction,
    ReviewAction,
    UpdateAction,
    VulnerabilityRecord,
)
from npm_reports.decoder import decode_audit_report, decode_audit_report_any, encode_report
from npm_reports.errors import OutputEncodingError, ReportDecodeError
from npm_reports.models import ReportSchema, Severity

from helpers import fixture_json, fixture_text


def _v2_package(**overrides):
    package = {
        "name": "lodash",
        "severity": "high",
        "isDirect": True,
        "via": ["lodash"],
        "effects": [],
        "range": "<4.17.21",
        "nodes": ["node_modules/lodash"],
        "fixAvailable": True,
    }
    package.update(overrides)
    return package


def _walk(document, path):
    node = document
    for element in path:
        node = node[element]
    return node


def _v2_report(package):
    report = fixture_json("npm_audit_v2.json")
    report["vulnerabilities"] = {package["name"]: package}
    return json.dumps(report)


class TestAuditReportV1(unittest.TestCase):
    def setUp(self):
        self.report = decode_audit_report(fixture_text("npm_audit_v1.json"), ReportSchema.V1)

    def test_decodes_into_v1_tree(self):
        self.assertIsInstance(self.report, AuditReportV1)
        self.assertIs(self.report.report_schema, ReportSchema.V1)
        self.assertEqual(self.report.run_id, "5d0c7c1e-8a3b-4a1e-9b8e-0f3d2c1b5a77")
        self.assertEqual(self.report.muted, ())
        self.assertEqual(set(self.report.advisories), {"1179", "1523", "812"})
        self.assertEqual(self.report.metadata.total_dependencies, 543)

    def test_advisory_fields(self):
        advisory = self.report.advisories["1523"]
        self.assertEqual(advisory.id, 1523)
        self.assertIs(advisory.severity, Severity.HIGH)
        self.assertEqual(advisory.cves, ("CVE-2020-8203",))
        self.assertEqual(advisory.created, datetime(2020, 7, 15, 19, 15, 1, tzinfo=timezone.utc))
        self.assertIsNone(advisory.deleted)
        self.assertEqual(advisory.findings[0].paths,
                         (("express-app", "body-parser", "lodash"), ("express-app", "lodash")))

    def test_actions_are_resolved_by_tag(self):
        install, update, review = self.report.actions
        self.assertIsInstance(install, InstallAction)
        self.assertTrue(install.is_major)
        self.assertIsNone(install.depth)
        self.assertEqual(install.resolves[0].path, ("mocha", "mkdirp", "minimist"))
        self.assertIsInstance(update, UpdateAction)
        self.assertEqual(update.target, "4.17.21")
        self.assertEqual(len(update.resolves), 2)
        self.assertIsInstance(review, ReviewAction)
        self.assertFalse(hasattr(review, "target"))
        self.assertTrue(review.resolves[0].optional)

    def test_round_trip_reproduces_document(self):
        encoded = encode_report(self.report)
        self.assertEqual(json.loads(encoded), fixture_json("npm_audit_v1.json"))
        self.assertEqual(decode_audit_report(encoded, ReportSchema.V1), self.report)

    def test_advisories_by_severity(self):
        ordered = [advisory_id for advisory_id, _ in self.report.advisories_by_severity()]
        self.assertEqual(ordered, ["1523", "812", "1179"])

    def test_missing_created_reports_its_location(self):
        document = fixture_json("npm_audit_v1.json")
        del document["advisories"]["812"]["created"]
        with self.assertRaises(ReportDecodeError) as raised:
            decode_audit_report(json.dumps(document), ReportSchema.V1)
        error = raised.exception
        self.assertEqual(error.path, ("advisories", "812", "created"))
        self.assertEqual(error.location, "advisories.812.created")
        self.assertIn("advisories.812.created", str(error))

    def test_malformed_timestamp_reports_its_location(self):
        document = fixture_json("npm_audit_v1.json")
        document["advisories"]["1179"]["updated"] = "last tuesday"
        with self.assertRaises(ReportDecodeError) as raised:
            decode_audit_report(json.dumps(document), ReportSchema.V1)
        self.assertEqual(raised.exception.path, ("advisories", "1179", "updated"))

    def test_review_action_without_target_but_install_requires_it(self):
        document = fixture_json("npm_audit_v1.json")
        del document["actions"][0]["target"]
        with self.assertRaises(ReportDecodeError) as raised:
            decode_audit_report(json.dumps(document), ReportSchema.V1)
        error = raised.exception
        self.assertEqual(error.path, ("actions", 0, "target"))
        self.assertEqual(error.variants, ("install",))
        self.assertEqual(error.location, "actions[0].target")
        self.assertNotIn("target", _walk(document, error.path[:-1]))

    def test_every_error_location_is_a_document_path(self):
        document = fixture_json("npm_audit_v1.json")
        del document["actions"][1]["module"]
        del document["advisories"]["1523"]["findings"][0]["version"]
        with self.assertRaises(ReportDecodeError) as raised:
            decode_audit_report(json.dumps(document), ReportSchema.V1)
        locations = {error["loc"] for error in raised.exception.errors}
        self.assertEqual(locations, {("actions", 1, "module"),
                                     ("advisories", "1523", "findings", 0, "version")})
        for location in locations:
            with self.subTest(location=location):
                self.assertIsInstance(_walk(document, location[:-1]), dict)

    def test_unknown_action_is_rejected(self):
        document = fixture_json("npm_audit_v1.json")
        document["actions"][2]["action"] = "uninstall"
        with self.assertRaises(ReportDecodeError) as raised:
            decode_audit_report(json.dumps(document), ReportSchema.V1)
        self.assertEqual(raised.exception.path[:2], ("actions", 2))

    def test_scalar_types_are_not_coerced(self):
        document = fixture_json("npm_audit_v1.json")
        document["advisories"]["812"]["id"] = "812"
        with self.assertRaises(ReportDecodeError) as raised:
            decode_audit_report(json.dumps(document), ReportSchema.V1)
        self.assertEqual(raised.exception.path, ("advisories", "812", "id"))

    def test_report_is_immutable(self):
        with self.assertRaises(ValidationError):
            self.report.run_id = "other"
        with self.assertRaises(TypeError):
            self.report.advisories["1"] = self.report.advisories["812"]
        with self.assertRaises(TypeError):
            del self.report.advisories["812"]
        self.assertFalse(hasattr(self.report.advisories, "clear"))
        self.assertEqual(len(self.report.advisories), 3)

    def test_equal_reports_hash_equal(self):
        again = decode_audit_report(fixture_text("npm_audit_v1.json"), ReportSchema.V1)
        self.assertEqual(hash(again), hash(self.report))
        self.assertEqual(len({again, self.report}), 1)


class TestAuditReportV2(unittest.TestCase):
    def setUp(self):
        self.report = decode_audit_report(fixture_text("npm_audit_v2.json"), ReportSchema.V2)

    def test_decodes_into_v2_tree(self):
        self.assertIsInstance(self.report, AuditReportV2)
        self.assertIs(self.report.report_schema, ReportSchema.V2)
        self.assertEqual(self.report.audit_report_version, 2)
        self.assertEqual(self.report.metadata.vulnerabilities.total, 4)
        self.assertEqual(self.report.metadata.dependencies.peer_optional, 0)

    def test_via_entries_are_resolved_by_shape(self):
        self.assertEqual(self.report.vulnerabilities["body-parser"].via, ("lodash",))
        first, second = self.report.vulnerabilities["lodash"].via
        self.assertIsInstance(first, VulnerabilityRecord)
        self.assertEqual(first.source, 1065036)
        self.assertIs(first.severity, Severity.CRITICAL)
        self.assertEqual(second.title, "Command Injection in lodash")

    def test_fix_available_is_resolved_by_shape(self):
        self.assertIs(self.report.vulnerabilities["body-parser"].fix_available, True)
        self.assertIs(self.report.vulnerabilities["node-sass"].fix_available, False)
        fix = self.report.vulnerabilities["express"].fix_available
        self.assertIsInstance(fix, FixRecord)
        self.assertEqual((fix.name, fix.version, fix.is_sem_ver_major), ("express", "4.18.2", False))

    def test_round_trip(self):
        encoded = encode_report(self.report)
        self.assertEqual(json.loads(encoded), fixture_json("npm_audit_v2.json"))
        self.assertEqual(decode_audit_report(encoded, ReportSchema.V2), self.report)

    def test_vulnerabilities_cannot_be_changed(self):
        with self.assertRaises(TypeError):
            self.report.vulnerabilities["left-pad"] = self.report.vulnerabilities["lodash"]
        with self.assertRaises(TypeError):
            del self.report.vulnerabilities["lodash"]
        self.assertFalse(hasattr(self.report.vulnerabilities, "pop"))
        self.assertEqual(list(self.report.vulnerabilities), ["body-parser", "express", "lodash", "node-sass"])
        self.assertIsInstance(hash(self.report), int)

    def test_packages_by_severity(self):
        names = [package.name for package in self.report.packages_by_severity()]
        self.assertEqual(names, ["lodash", "body-parser", "express", "node-sass"])

    def test_full_via_entry_missing_field_fails_at_that_key(self):
        record = {
            "source": 1,
            "name": "lodash",
            "dependency": "lodash",
            "url": "https://github.com/advisories/GHSA-xxxx",
            "severity": "high",
            "range": "<4.17.21",
        }
        text = _v2_report(_v2_package(via=["lodash", record]))
        with self.assertRaises(ReportDecodeError) as raised:
            decode_audit_report(text, ReportSchema.V2)
        error = raised.exception
        self.assertEqual(error.path, ("vulnerabilities", "lodash", "via", 1, "title"))
        self.assertEqual(error.variants, ("record",))
        self.assertEqual(error.location, "vulnerabilities.lodash.via[1].title")
        self.assertEqual(_walk(json.loads(text), error.path[:-1]), record)

    def test_via_entry_of_unexpected_type(self):
        with self.assertRaises(ReportDecodeError) as raised:
            decode_audit_report(_v2_report(_v2_package(via=[42])), ReportSchema.V2)
        self.assertEqual(raised.exception.path[:4], ("vulnerabilities", "lodash", "via", 0))

    def test_fix_record_missing_field(self):
        fix = {"name": "lodash", "isSemVerMajor": True}
        text = _v2_report(_v2_package(fixAvailable=fix))
        with self.assertRaises(ReportDecodeError) as raised:
            decode_audit_report(text, ReportSchema.V2)
        error = raised.exception
        self.assertEqual(error.path, ("vulnerabilities", "lodash", "fixAvailable", "version"))
        self.assertEqual(error.variants, ("record",))
        self.assertEqual(_walk(json.loads(text), error.path[:-1]), fix)

    def test_fix_available_string_is_not_a_flag(self):
        with self.assertRaises(ReportDecodeError):
            decode_audit_report(_v2_report(_v2_package(fixAvailable="true")), ReportSchema.V2)

    def test_unknown_severity(self):
        with self.assertRaises(ReportDecodeError) as raised:
            decode_audit_report(_v2_report(_v2_package(severity="severe")), ReportSchema.V2)
        self.assertEqual(raised.exception.path, ("vulnerabilities", "lodash", "severity"))


class TestSchemaSelection(unittest.TestCase):
    def test_declared_schema_is_authoritative(self):
        with self.assertRaises(ReportDecodeError) as raised:
            decode_audit_report(fixture_text("npm_audit_v1.json"), ReportSchema.V2)
        self.assertIn(raised.exception.path, {("vulnerabilities",), ("metadata", "vulnerabilities", "total")})

        with self.assertRaises(ReportDecodeError) as raised:
            decode_audit_report(fixture_text("npm_audit_v2.json"), ReportSchema.V1)
        self.assertIn(raised.exception.path, {("actions",), ("advisories",)})

    def test_any_tries_v1_then_v2(self):
        self.assertIsInstance(decode_audit_report_any(fixture_text("npm_audit_v1.json")), AuditReportV1)
        self.assertIsInstance(decode_audit_report_any(fixture_text("npm_audit_v2.json")), AuditReportV2)

    def test_any_reports_both_attempts_when_nothing_matches(self):
        with self.assertRaises(ReportDecodeError) as raised:
            decode_audit_report_any('{"error": {"code": "ENOLOCK"}}')
        error = raised.exception
        self.assertIn(error.path, {("vulnerabilities",), ("metadata",)})
        self.assertEqual({entry["schema"] for entry in error.errors}, {"V1", "V2"})

    def test_any_does_not_mix_shapes(self):
        document = fixture_json("npm_audit_v2.json")
        document["actions"] = []
        document["advisories"] = {"1": {"id": 1}}
        report = decode_audit_report_any(json.dumps(document))
        self.assertIsInstance(report, AuditReportV2)
        self.assertFalse(hasattr(report, "advisories"))

    def test_invalid_json(self):
        with self.assertRaises(ReportDecodeError) as raised:
            decode_audit_report('{"actions": [', ReportSchema.V1)
        self.assertEqual(raised.exception.path, ())
        self.assertEqual(raised.exception.location, ".")

    def test_bytes_must_be_utf8(self):
        report = decode_audit_report(fixture_text("npm_audit_v2.json").encode("utf-8"), ReportSchema.V2)
        self.assertIsInstance(report, AuditReportV2)
        with self.assertRaises(OutputEncodingError):
            decode_audit_report(b'{"vulnerabilities": "\xff"}', ReportSchema.V2)

    def test_decoding_does_not_touch_input(self):
        document = fixture_json("npm_audit_v2.json")
        snapshot = copy.deepcopy(document)
        decode_audit_report(json.dumps(document), ReportSchema.V2)
        self.assertEqual(document, snapshot)


if __name__ == '__main__':
    unittest.main()
