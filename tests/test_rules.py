"""
Tests for appcycle.rules module.

Tests rule translation including:
- Every supported (kind, method) combination for both purposes
- File rule operators and comparison values
- Registry, MSI and PowerShell script rules
- Base requirements (architecture, minimum OS)
- Rejection of unsupported combinations
"""

from __future__ import annotations

import base64

import pytest

from appcycle.exceptions import TranslationError
from appcycle.models import RuleDeclaration
from appcycle.rules import (
    DETECTION_RULES,
    REQUIREMENT_RULES,
    is_supported_rule,
    translate_base_requirements,
    translate_detection_rules,
    translate_requirement_rules,
    translate_rule,
)

GRAPH_TYPES = {
    "MSI": "#microsoft.graph.win32LobAppProductCodeRule",
    "File": "#microsoft.graph.win32LobAppFileSystemRule",
    "Registry": "#microsoft.graph.win32LobAppRegistryRule",
    "Script": "#microsoft.graph.win32LobAppPowerShellScriptRule",
}


def _complete_fields(method: str | None) -> dict:
    """Fields satisfying any builder for the given method."""
    return {
        "ProductCode": "{23170F69-40C1-2702-2301-000001000000}",
        "Path": "C:\\Program Files\\Contoso",
        "FileOrFolder": "tool.exe",
        "VersionValue": "1.5.0",
        "SizeInMBValue": 10,
        "DateTimeValue": "2024-01-01T00:00:00Z",
        "KeyPath": "HKEY_LOCAL_MACHINE\\SOFTWARE\\Contoso",
        "ValueName": "Version",
        "Value": "true" if method == "Boolean" else "1",
        "ScriptContent": "Write-Output 1",
    }


class TestRuleTables:
    """Tests covering every supported combination."""

    @pytest.mark.parametrize(("kind", "method"), sorted(DETECTION_RULES, key=str))
    def test_every_detection_rule_translates(self, kind, method):
        """Test each detection combination yields a tagged Graph rule."""
        rule = RuleDeclaration(kind, method, _complete_fields(method))
        body = translate_rule(rule, "detection")
        assert body["@odata.type"] == GRAPH_TYPES[kind]
        assert body["ruleType"] == "detection"

    @pytest.mark.parametrize(("kind", "method"), sorted(REQUIREMENT_RULES, key=str))
    def test_every_requirement_rule_translates(self, kind, method):
        """Test each requirement combination yields a tagged Graph rule."""
        rule = RuleDeclaration(kind, method, _complete_fields(method))
        body = translate_rule(rule, "requirement")
        assert body["@odata.type"] == GRAPH_TYPES[kind]
        assert body["ruleType"] == "requirement"

    def test_msi_is_detection_only(self):
        """Test MSI product code rules are not requirement rules."""
        assert is_supported_rule("MSI", None, "detection")
        assert not is_supported_rule("MSI", None, "requirement")

    def test_unknown_combination_raises(self):
        """Test an unsupported combination raises TranslationError."""
        rule = RuleDeclaration("File", "Checksum", _complete_fields("Checksum"))
        with pytest.raises(TranslationError, match="Unsupported detection rule"):
            translate_rule(rule, "detection")

    def test_unknown_kind_raises(self):
        """Test an unknown rule kind raises TranslationError."""
        rule = RuleDeclaration("Wmi", None, {})
        with pytest.raises(TranslationError, match="kind='Wmi'"):
            translate_rule(rule, "requirement")


class TestFileRules:
    """Tests for file system rules."""

    def test_size_requirement_in_bytes(self):
        """Test a 10 MB size requirement becomes 10485760 bytes, >=."""
        rule = RuleDeclaration(
            "File",
            "Size",
            {"Path": "C:\\Tools", "FileOrFolder": "tool.exe", "SizeInMBValue": 10},
        )
        body = translate_requirement_rules([rule])[0]
        assert body["operationType"] == "sizeInBytes"
        assert body["operator"] == "greaterThanOrEqual"
        assert body["comparisonValue"] == "10485760"

    def test_size_detection_in_bytes(self):
        """Test a 10 MB size detection rule becomes 10485760 bytes, >=."""
        rule = RuleDeclaration(
            "File",
            "Size",
            {"Path": "C:\\Tools", "FileOrFolder": "tool.exe", "SizeInMBValue": "10"},
        )
        [body] = translate_detection_rules([rule])
        assert body["ruleType"] == "detection"
        assert body["operationType"] == "sizeInBytes"
        assert body["operator"] == "greaterThanOrEqual"
        assert body["comparisonValue"] == "10485760"

    def test_existence_has_no_comparison_value(self):
        """Test existence checks omit the comparison value."""
        rule = RuleDeclaration(
            "File", "Existence", {"Path": "C:\\Tools", "FileOrFolder": "tool.exe"}
        )
        body = translate_rule(rule, "detection")
        assert body["operationType"] == "exists"
        assert body["operator"] == "notConfigured"
        assert "comparisonValue" not in body
        assert body["check32BitOn64System"] is False

    def test_explicit_operator(self):
        """Test a declared operator overrides the default."""
        rule = RuleDeclaration(
            "File",
            "Version",
            {
                "Path": "C:\\Tools",
                "FileOrFolder": "tool.exe",
                "VersionValue": "2.0",
                "Operator": "equal",
                "Check32BitOn64System": "true",
            },
        )
        body = translate_rule(rule, "detection")
        assert body["operator"] == "equal"
        assert body["comparisonValue"] == "2.0"
        assert body["check32BitOn64System"] is True

    def test_missing_path(self):
        """Test a missing Path is reported."""
        rule = RuleDeclaration("File", "Existence", {"FileOrFolder": "tool.exe"})
        with pytest.raises(TranslationError, match="'Path'"):
            translate_rule(rule, "detection")

    def test_bad_size(self):
        """Test a non-numeric size raises TranslationError."""
        rule = RuleDeclaration(
            "File",
            "Size",
            {"Path": "C:\\Tools", "FileOrFolder": "tool.exe", "SizeInMBValue": "big"},
        )
        with pytest.raises(TranslationError, match="size in MB"):
            translate_rule(rule, "requirement")

    @pytest.mark.parametrize("size", ["inf", "-inf", "nan", "1e400"])
    def test_non_finite_size(self, size):
        """Test infinite and NaN sizes raise TranslationError."""
        rule = RuleDeclaration(
            "File",
            "Size",
            {"Path": "C:\\Tools", "FileOrFolder": "tool.exe", "SizeInMBValue": size},
        )
        with pytest.raises(TranslationError, match="size in MB"):
            translate_detection_rules([rule])

    def test_negative_size(self):
        """Test a negative size raises TranslationError."""
        rule = RuleDeclaration(
            "File",
            "Size",
            {"Path": "C:\\Tools", "FileOrFolder": "tool.exe", "SizeInMBValue": -1},
        )
        with pytest.raises(TranslationError, match="negative"):
            translate_rule(rule, "requirement")


class TestRegistryAndMsiRules:
    """Tests for registry and product code rules."""

    def test_registry_string_comparison(self):
        """Test string comparisons default to equal."""
        rule = RuleDeclaration(
            "Registry",
            "StringComparison",
            {
                "KeyPath": "HKEY_LOCAL_MACHINE\\SOFTWARE\\Contoso",
                "ValueName": "Channel",
                "Value": "Stable",
            },
        )
        body = translate_rule(rule, "detection")
        assert body["operationType"] == "string"
        assert body["operator"] == "equal"
        assert body["comparisonValue"] == "Stable"

    def test_registry_integer_rejects_text(self):
        """Test integer comparisons need an integer value."""
        rule = RuleDeclaration(
            "Registry",
            "IntegerComparison",
            {"KeyPath": "HKLM\\SOFTWARE\\Contoso", "ValueName": "Build", "Value": "x"},
        )
        with pytest.raises(TranslationError, match="integer"):
            translate_rule(rule, "detection")

    def test_msi_without_version(self):
        """Test a bare product code rule does not check the version."""
        rule = RuleDeclaration(
            "MSI", None, {"ProductCode": "{23170F69-40C1-2702-2301-000001000000}"}
        )
        body = translate_detection_rules([rule])[0]
        assert body["productVersionOperator"] == "notConfigured"
        assert body["productVersion"] is None

    def test_msi_operator_needs_version(self):
        """Test a version operator without a version is rejected."""
        rule = RuleDeclaration(
            "MSI", None, {"ProductCode": "{X}", "ProductVersionOperator": "equal"}
        )
        with pytest.raises(TranslationError, match="ProductVersion"):
            translate_rule(rule, "detection")


class TestScriptRules:
    """Tests for PowerShell script rules."""

    def test_detection_script_is_base64(self):
        """Test script content is base64 encoded."""
        rule = RuleDeclaration(
            "Script", None, {"ScriptContent": "Test-Path C:\\Tools\\tool.exe"}
        )
        body = translate_rule(rule, "detection")
        decoded = base64.b64decode(body["scriptContent"]).decode("utf-8")
        assert decoded == "Test-Path C:\\Tools\\tool.exe"
        assert body["runAs32Bit"] is False

    def test_boolean_requirement(self):
        """Test boolean script requirements accept only true/false."""
        fields = {"ScriptContent": "$true", "ScriptFile": "check.ps1", "Value": "True"}
        body = translate_rule(RuleDeclaration("Script", "Boolean", fields), "requirement")
        assert body["operationType"] == "boolean"
        assert body["comparisonValue"] == "true"
        assert body["displayName"] == "check.ps1"
        assert body["runAsAccount"] == "system"

        fields["Value"] = "maybe"
        with pytest.raises(TranslationError, match="boolean"):
            translate_rule(RuleDeclaration("Script", "Boolean", fields), "requirement")

    def test_script_detection_is_not_a_requirement(self):
        """Test a script rule without output type is detection only."""
        assert not is_supported_rule("Script", None, "requirement")


class TestRuleLists:
    """Tests for list translation."""

    def test_empty_detection_rules_rejected(self):
        """Test at least one detection rule is required."""
        with pytest.raises(TranslationError, match="At least one detection rule"):
            translate_detection_rules([])

    def test_empty_requirement_rules_allowed(self):
        """Test custom requirement rules are optional."""
        assert translate_requirement_rules([]) == []


class TestBaseRequirements:
    """Tests for translate_base_requirements."""

    def test_x64(self):
        """Test architecture and minimum OS are copied."""
        body = translate_base_requirements(
            {"Architecture": "x64", "MinimumSupportedWindowsRelease": "W10_1809"}
        )
        assert body == {
            "applicableArchitectures": "x64",
            "minimumSupportedWindowsRelease": "W10_1809",
        }

    def test_all_architectures(self):
        """Test "All" expands to both Intel architectures."""
        body = translate_base_requirements(
            {"Architecture": "All", "MinimumSupportedWindowsRelease": "W10_21H2"}
        )
        assert body["applicableArchitectures"] == "x86,x64"

    def test_unknown_architecture(self):
        """Test an unknown architecture is rejected."""
        with pytest.raises(TranslationError, match="architecture"):
            translate_base_requirements(
                {"Architecture": "mips", "MinimumSupportedWindowsRelease": "W10_1809"}
            )
