"""Tests for console reporting."""

import io
import json

import pytest

from stowage.errors import NoSuchBucket
from stowage.reporting import ConsoleReporter, ReporterConfig


def _reporter(**config):
    out, err = io.StringIO(), io.StringIO()
    return ConsoleReporter(ReporterConfig(**config), out=out, err=err), out, err


class TestConsoleReporter:
    """Tests for ConsoleReporter."""

    def test_text_info(self):
        reporter, out, _ = _reporter()
        reporter.info("Bucket created successfully ‘b’.", bucket="b")
        assert out.getvalue() == "Bucket created successfully ‘b’.\n"

    def test_json_info(self):
        reporter, out, _ = _reporter(json=True)
        reporter.info("ignored", bucket="b")
        assert json.loads(out.getvalue()) == {"status": "success", "bucket": "b"}

    def test_quiet_suppresses_info_not_errors(self):
        reporter, out, err = _reporter(quiet=True)
        reporter.info("hello")
        reporter.error("Unable to make bucket ‘b’.", NoSuchBucket("b"))
        assert out.getvalue() == ""
        assert "does not exist" in err.getvalue()

    def test_json_error(self):
        reporter, _, err = _reporter(json=True)
        reporter.error("Unable to list ‘b’.", NoSuchBucket("b"), target="b")
        entry = json.loads(err.getvalue())
        assert entry["status"] == "error"
        assert entry["target"] == "b"
        assert entry["error"]["code"] == "NoSuchBucket"

    def test_fatal_exits(self):
        reporter, _, err = _reporter()
        with pytest.raises(SystemExit) as exc_info:
            reporter.fatal("cannot continue")
        assert exc_info.value.code == 1
        assert "cannot continue" in err.getvalue()
