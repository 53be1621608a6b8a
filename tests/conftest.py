"""Pytest configuration and shared fixtures."""

from pathlib import Path

import pytest

from tfpolicy.policy.rules import PolicyRule
from tfpolicy.resources.base import Resource

REPO_ROOT = Path(__file__).resolve().parent.parent


@pytest.fixture
def policies_dir():
    """Directory holding the bundled policy rules."""
    return REPO_ROOT / "policies"


@pytest.fixture
def sample_config():
    """Sample configuration dictionary."""
    return {
        "policy_dirs": ["policies", "extra-policies"],
        "skip_rules": ["CUSTOM_005"],
        "evaluation": {
            "max_workers": 4,
            "collect_failures": True,
        },
        "reporting": {
            "output": "console",
            "soft_fail": False,
            "hard_fail_on": "MEDIUM",
        },
        "logging": {
            "level": "DEBUG",
        },
    }


@pytest.fixture
def acl_rule():
    """CUSTOM_001: acl must be absent or private."""
    return PolicyRule.from_dict(
        {
            "id": "CUSTOM_001",
            "name": "S3 bucket ACL must be private",
            "severity": "HIGH",
            "resource_types": ["aws_s3_bucket"],
            "condition": {
                "or": [
                    {"attribute": "acl", "operator": "not_exists"},
                    {"attribute": "acl", "operator": "equals", "value": "private"},
                ]
            },
        }
    )


@pytest.fixture
def tags_rule():
    """CUSTOM_003: Environment, Owner and Project tags must exist."""
    return PolicyRule.from_dict(
        {
            "id": "CUSTOM_003",
            "name": "Required tags",
            "severity": "MEDIUM",
            "resource_types": ["aws_s3_bucket", "aws_instance"],
            "condition": {
                "and": [
                    {"attribute": "tags.Environment", "operator": "exists"},
                    {"attribute": "tags.Owner", "operator": "exists"},
                    {"attribute": "tags.Project", "operator": "exists"},
                ]
            },
        }
    )


@pytest.fixture
def sample_resources():
    """A small mix of resources with and without problems."""
    return [
        Resource(
            id="aws_s3_bucket.public",
            type="aws_s3_bucket",
            attributes={"bucket": "public", "acl": "public-read", "tags": {"Environment": "dev"}},
        ),
        Resource(
            id="aws_s3_bucket.logs",
            type="aws_s3_bucket",
            attributes={
                "bucket": "logs",
                "tags": {"Environment": "prod", "Owner": "platform", "Project": "core"},
            },
        ),
        Resource(
            id="aws_instance.web",
            type="aws_instance",
            attributes={
                "instance_type": "t3.micro",
                "root_block_device": [{"encrypted": False, "volume_size": 20}],
                "tags": {"Environment": "prod", "Owner": "web", "Project": "site"},
            },
            suppressions={"CUSTOM_003": "Tagged by the autoscaling group"},
        ),
        Resource(
            id="aws_iam_role.ci",
            type="aws_iam_role",
            attributes={"name": "ci"},
        ),
    ]


@pytest.fixture
def sample_plan():
    """Trimmed ``terraform show -json`` output with a child module."""
    return {
        "format_version": "1.2",
        "terraform_version": "1.6.0",
        "planned_values": {
            "root_module": {
                "resources": [
                    {
                        "address": "aws_s3_bucket.assets",
                        "mode": "managed",
                        "type": "aws_s3_bucket",
                        "name": "assets",
                        "values": {
                            "bucket": "assets",
                            "acl": "public-read",
                            "tags": {"Environment": "prod"},
                        },
                    },
                    {
                        "address": "data.aws_caller_identity.current",
                        "mode": "data",
                        "type": "aws_caller_identity",
                        "name": "current",
                        "values": {},
                    },
                ],
                "child_modules": [
                    {
                        "address": "module.compute",
                        "resources": [
                            {
                                "address": "module.compute.aws_instance.web[0]",
                                "mode": "managed",
                                "type": "aws_instance",
                                "name": "web",
                                "index": 0,
                                "values": {
                                    "instance_type": "t3.micro",
                                    "root_block_device": [{"encrypted": True}],
                                    "tags": None,
                                },
                            }
                        ],
                    }
                ],
            }
        },
    }
