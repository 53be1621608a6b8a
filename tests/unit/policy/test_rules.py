"""Tests for policy rule parsing."""

import pytest

from tfpolicy.evaluator.engine import Outcome, PolicyEvaluator
from tfpolicy.policy.conditions import AndCondition, AttributeCondition, Operator, OrCondition
from tfpolicy.policy.errors import PolicyConfigError
from tfpolicy.policy.rules import PolicyRule, Severity
from tfpolicy.resources.base import Resource


def _native_rule(**overrides):
    data = {
        "id": "CUSTOM_001",
        "name": "S3 bucket ACL must be private",
        "severity": "HIGH",
        "resource_types": ["aws_s3_bucket"],
        "condition": {"attribute": "acl", "operator": "not_exists"},
    }
    data.update(overrides)
    return data


class TestSeverity:
    """Tests for severity ordering."""

    def test_ordering(self):
        assert Severity.LOW < Severity.MEDIUM < Severity.HIGH < Severity.CRITICAL
        assert Severity.CRITICAL > Severity.LOW
        assert Severity.HIGH >= Severity.HIGH
        assert Severity.MEDIUM <= Severity.HIGH

    def test_sorting(self):
        severities = [Severity.HIGH, Severity.LOW, Severity.CRITICAL, Severity.MEDIUM]
        assert sorted(severities) == [
            Severity.LOW,
            Severity.MEDIUM,
            Severity.HIGH,
            Severity.CRITICAL,
        ]

    def test_parse_case_insensitive(self):
        assert Severity.parse("high") == Severity.HIGH
        assert Severity.parse(" Critical ") == Severity.CRITICAL

    def test_parse_unknown(self):
        with pytest.raises(ValueError, match="Unknown severity"):
            Severity.parse("urgent")


class TestNativeRule:
    """Tests for the native rule layout."""

    def test_parse_basic_rule(self):
        rule = PolicyRule.from_dict(_native_rule(), source="s3.yaml")

        assert rule.id == "CUSTOM_001"
        assert rule.name == "S3 bucket ACL must be private"
        assert rule.severity == Severity.HIGH
        assert rule.resource_types == ("aws_s3_bucket",)
        assert rule.condition == AttributeCondition("acl", Operator.NOT_EXISTS)
        assert rule.source == "s3.yaml"

    def test_name_defaults_to_id(self):
        data = _native_rule()
        del data["name"]
        assert PolicyRule.from_dict(data).name == "CUSTOM_001"

    def test_single_resource_type_string(self):
        rule = PolicyRule.from_dict(_native_rule(resource_types="aws_s3_bucket"))
        assert rule.resource_types == ("aws_s3_bucket",)

    def test_duplicate_resource_types_collapsed(self):
        rule = PolicyRule.from_dict(
            _native_rule(resource_types=["aws_s3_bucket", "aws_instance", "aws_s3_bucket"])
        )
        assert rule.resource_types == ("aws_s3_bucket", "aws_instance")

    def test_applies_to(self):
        rule = PolicyRule.from_dict(_native_rule())
        assert rule.applies_to("aws_s3_bucket")
        assert not rule.applies_to("aws_instance")

    def test_optional_metadata(self):
        rule = PolicyRule.from_dict(
            _native_rule(category="GENERAL_SECURITY", guideline="https://example.com/s3")
        )
        assert rule.category == "GENERAL_SECURITY"
        assert rule.guideline == "https://example.com/s3"

    def test_to_dict(self):
        rule = PolicyRule.from_dict(_native_rule())
        data = rule.to_dict()
        assert data["id"] == "CUSTOM_001"
        assert data["severity"] == "HIGH"
        assert data["resource_types"] == ["aws_s3_bucket"]
        assert data["condition"] == {"attribute": "acl", "operator": "not_exists"}

    @pytest.mark.parametrize(
        "overrides,message",
        [
            ({"id": None}, "missing a string 'id'"),
            ({"id": "  "}, "missing a string 'id'"),
            ({"severity": None}, "missing 'severity'"),
            ({"severity": "SEVERE"}, "Unknown severity"),
            ({"resource_types": []}, "non-empty list of resource_types"),
            ({"resource_types": None}, "non-empty list of resource_types"),
            ({"resource_types": [""]}, "non-empty list of resource_types"),
            ({"condition": None}, "empty condition"),
            ({"condition": {}}, "non-empty mapping"),
            ({"condition": {"and": []}}, "non-empty list"),
            ({"condition": {"attribute": "acl", "operator": "like"}}, "Unknown operator"),
        ],
    )
    def test_malformed_rules_raise(self, overrides, message):
        with pytest.raises(PolicyConfigError, match=message):
            PolicyRule.from_dict(_native_rule(**overrides), source="bad.yaml")

    def test_error_carries_rule_id_and_source(self):
        with pytest.raises(PolicyConfigError) as exc_info:
            PolicyRule.from_dict(
                _native_rule(condition={"attribute": "acl", "operator": "like"}),
                source="bad.yaml",
            )
        assert exc_info.value.rule_id == "CUSTOM_001"
        assert exc_info.value.source == "bad.yaml"
        assert "bad.yaml: rule CUSTOM_001: Unknown operator" in str(exc_info.value)

    def test_non_mapping_rule(self):
        with pytest.raises(PolicyConfigError, match="must be a mapping"):
            PolicyRule.from_dict(["CUSTOM_001"])


class TestCheckovRule:
    """Tests for the Checkov custom policy layout."""

    def test_parse_checkov_rule(self):
        rule = PolicyRule.from_dict(
            {
                "metadata": {
                    "id": "CUSTOM_004",
                    "name": "RDS instances must not be public",
                    "category": "NETWORKING",
                    "severity": "high",
                },
                "definition": {
                    "and": [
                        {
                            "cond_type": "attribute",
                            "resource_types": ["aws_db_instance"],
                            "attribute": "publicly_accessible",
                            "operator": "not_equals",
                            "value": True,
                        },
                        {
                            "or": [
                                {
                                    "cond_type": "attribute",
                                    "resource_types": ["aws_rds_cluster"],
                                    "attribute": "storage_encrypted",
                                    "operator": "equals",
                                    "value": True,
                                },
                                {
                                    "cond_type": "attribute",
                                    "resource_types": ["aws_db_instance"],
                                    "attribute": "kms_key_id",
                                    "operator": "exists",
                                },
                            ]
                        },
                    ]
                },
            }
        )

        assert rule.id == "CUSTOM_004"
        assert rule.severity == Severity.HIGH
        assert rule.category == "NETWORKING"
        assert rule.resource_types == ("aws_db_instance", "aws_rds_cluster")
        assert isinstance(rule.condition, AndCondition)
        assert isinstance(rule.condition.children[1], OrCondition)
        assert rule.condition.children[0] == AttributeCondition(
            "publicly_accessible", Operator.NOT_EQUALS, True, ("aws_db_instance",)
        )

    def test_checkov_rule_without_resource_types(self):
        with pytest.raises(PolicyConfigError, match="resource_types"):
            PolicyRule.from_dict(
                {
                    "metadata": {"id": "CUSTOM_009", "severity": "LOW"},
                    "definition": {"attribute": "acl", "operator": "exists"},
                }
            )

    def test_checkov_rule_without_definition(self):
        with pytest.raises(PolicyConfigError, match="empty condition"):
            PolicyRule.from_dict(
                {
                    "metadata": {"id": "CUSTOM_009", "severity": "LOW"},
                    "resource_types": ["aws_s3_bucket"],
                }
            )

    def test_leaf_types_scope_each_leaf(self):
        rule = PolicyRule.from_dict(
            {
                "metadata": {"id": "CUSTOM_010", "severity": "MEDIUM"},
                "definition": {
                    "or": [
                        {
                            "cond_type": "attribute",
                            "resource_types": ["aws_s3_bucket"],
                            "attribute": "acl",
                            "operator": "equals",
                            "value": "private",
                        },
                        {
                            "cond_type": "attribute",
                            "resource_types": ["aws_instance"],
                            "attribute": "monitoring",
                            "operator": "equals",
                            "value": True,
                        },
                    ]
                },
            }
        )
        evaluator = PolicyEvaluator()
        instance = Resource(
            id="aws_instance.web",
            type="aws_instance",
            attributes={"monitoring": False, "acl": "private"},
        )
        bucket = Resource(
            id="aws_s3_bucket.logs",
            type="aws_s3_bucket",
            attributes={"acl": "private", "monitoring": False},
        )

        verdict = evaluator.evaluate(rule, instance)
        assert verdict.outcome == Outcome.FAIL
        assert [c.attribute for c in verdict.failed_conditions] == ["monitoring"]
        assert evaluator.evaluate(rule, bucket).outcome == Outcome.PASS

    def test_leaf_types_in_and(self):
        rule = PolicyRule.from_dict(
            {
                "metadata": {"id": "CUSTOM_011", "severity": "LOW"},
                "definition": {
                    "and": [
                        {
                            "cond_type": "attribute",
                            "resource_types": ["aws_s3_bucket"],
                            "attribute": "acl",
                            "operator": "exists",
                        },
                        {
                            "cond_type": "attribute",
                            "resource_types": ["aws_instance"],
                            "attribute": "monitoring",
                            "operator": "equals",
                            "value": True,
                        },
                    ]
                },
            }
        )
        instance = Resource(id="aws_instance.web", type="aws_instance", attributes={"monitoring": True})
        assert PolicyEvaluator().evaluate(rule, instance).outcome == Outcome.PASS

    def test_within_operator(self):
        rule = PolicyRule.from_dict(
            {
                "metadata": {"id": "CUSTOM_012", "severity": "LOW"},
                "definition": {
                    "cond_type": "attribute",
                    "resource_types": ["aws_instance"],
                    "attribute": "instance_type",
                    "operator": "within",
                    "value": ["t3.micro", "t3.small"],
                },
            }
        )
        assert rule.condition.operator == Operator.ONE_OF
        assert rule.condition.value == ("t3.micro", "t3.small")

    def test_within_rejected_in_native_layout(self):
        with pytest.raises(PolicyConfigError, match="Unknown operator"):
            PolicyRule.from_dict(
                _native_rule(
                    condition={"attribute": "acl", "operator": "within", "value": ["private"]}
                )
            )
