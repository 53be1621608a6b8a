"""Tests for suppression comments in Terraform sources."""

import logging

import pytest

from tfpolicy.resources.base import DEFAULT_SUPPRESSION_REASON, Resource, ResourceLoadError
from tfpolicy.resources.suppressions import apply_suppressions, scan_directory, scan_source

MAIN_TF = '''
resource "aws_s3_bucket" "website" {
  #checkov:skip=CUSTOM_001:Public static website
  # checkov:skip=CUSTOM_003
  bucket = "website-${var.env}"

  tags = {
    Name = "website # not a comment {"
  }
}

resource "aws_instance" "web" {
  // tfpolicy:skip=CUSTOM_002: Ephemeral build host
  ami = "ami-123"
}

resource "aws_s3_bucket" "logs" {}

# checkov:skip=CUSTOM_009:outside any resource block
resource "aws_s3_bucket" "archive" {
  bucket = "archive"
}
'''


class TestScanSource:
    """Tests for scan_source."""

    def test_markers_per_block(self):
        markers = scan_source(MAIN_TF)

        assert markers["aws_s3_bucket.website"] == {
            "CUSTOM_001": "Public static website",
            "CUSTOM_003": DEFAULT_SUPPRESSION_REASON,
        }
        assert markers["aws_instance.web"] == {"CUSTOM_002": "Ephemeral build host"}

    def test_blocks_without_markers_are_omitted(self):
        markers = scan_source(MAIN_TF)
        assert "aws_s3_bucket.logs" not in markers
        assert "aws_s3_bucket.archive" not in markers

    def test_marker_outside_block_is_ignored(self):
        markers = scan_source(MAIN_TF)
        assert all("CUSTOM_009" not in skips for skips in markers.values())

    def test_no_resources(self):
        assert scan_source('variable "env" {}\n') == {}


class TestScanDirectory:
    """Tests for scan_directory."""

    def test_scan_tree(self, tmp_path):
        (tmp_path / "main.tf").write_text(MAIN_TF)
        nested = tmp_path / "modules" / "db"
        nested.mkdir(parents=True)
        (nested / "db.tf").write_text(
            'resource "aws_db_instance" "main" {\n  #checkov:skip=CUSTOM_004:Internal only\n}\n'
        )
        (tmp_path / "README.md").write_text("#checkov:skip=CUSTOM_001:docs")

        markers = scan_directory(tmp_path)
        assert set(markers) == {
            "aws_s3_bucket.website",
            "aws_instance.web",
            "aws_db_instance.main",
        }

    def test_single_file(self, tmp_path):
        path = tmp_path / "main.tf"
        path.write_text(MAIN_TF)
        assert "aws_instance.web" in scan_directory(path)

    def test_missing_path(self, tmp_path):
        with pytest.raises(ResourceLoadError, match="Source path not found"):
            scan_directory(tmp_path / "missing")


class TestApplySuppressions:
    """Tests for apply_suppressions."""

    def test_merge_onto_matching_resources(self):
        resources = [
            Resource(id="module.site.aws_s3_bucket.website", type="aws_s3_bucket"),
            Resource(id="aws_instance.web[0]", type="aws_instance", suppressions={"R": "kept"}),
            Resource(id="aws_s3_bucket.other", type="aws_s3_bucket"),
        ]
        markers = {
            "aws_s3_bucket.website": {"CUSTOM_001": "site"},
            "aws_instance.web": {"CUSTOM_002": "build"},
        }

        updated = apply_suppressions(resources, markers)

        assert updated[0].suppressions == {"CUSTOM_001": "site"}
        assert updated[1].suppressions == {"R": "kept", "CUSTOM_002": "build"}
        assert updated[2].suppressions == {}
        assert resources[0].suppressions == {}

    def test_unmatched_markers_warn(self, caplog):
        with caplog.at_level(logging.WARNING, logger="tfpolicy"):
            apply_suppressions([], {"aws_s3_bucket.gone": {"CUSTOM_001": "x"}})
        assert "aws_s3_bucket.gone" in caplog.text
