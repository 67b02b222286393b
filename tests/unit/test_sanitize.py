"""Tests for utils/sanitize.py."""

from __future__ import annotations

from unittest.mock import patch

from assessor.utils.sanitize import sanitize_error


class TestSanitizeError:
    def test_plain_message_unchanged(self):
        assert sanitize_error("Framework not found: fw-1") == "Framework not found: fw-1"

    def test_empty(self):
        assert sanitize_error("") == ""

    def test_database_url_redacted(self):
        result = sanitize_error("could not connect to postgresql://admin:hunter2@db:5432/app")
        assert "hunter2" not in result
        assert "postgresql://[REDACTED]@db:5432/app" in result

    def test_bearer_token_redacted(self):
        result = sanitize_error("401 for Bearer abc.def.ghi")
        assert "abc.def.ghi" not in result

    def test_assignments_redacted(self):
        result = sanitize_error("password=s3cret api_key: XYZ")
        assert "s3cret" not in result
        assert "XYZ" not in result

    def test_home_path_redacted(self):
        with patch.dict("os.environ", {"HOME": "/home/alice", "USERPROFILE": ""}):
            result = sanitize_error("cannot open /home/alice/frameworks/x.yaml")
        assert result == "cannot open [USER_HOME]/frameworks/x.yaml"

    def test_whitespace_collapsed(self):
        assert sanitize_error("line one\n\n  line two") == "line one line two"

    def test_truncated(self):
        result = sanitize_error("x" * 600)
        assert len(result) == 500
        assert result.endswith("...")

    def test_custom_length(self):
        assert len(sanitize_error("y" * 50, max_length=20)) == 20
