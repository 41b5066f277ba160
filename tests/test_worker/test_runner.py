"""
Tests for the batch runner entry point.
"""

import json
import logging
from pathlib import Path

import pytest
import structlog

from vat_intake.worker import runner


@pytest.fixture
def restore_logging():
    """setup_logging replaces the root handlers; put them back afterwards."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    structlog.reset_defaults()


class TestGuessMimeType:

    def test_known_types(self):
        assert runner.guess_mime_type(Path("a.PDF")) == "application/pdf"
        assert runner.guess_mime_type(Path("a.csv")) == "text/csv"
        assert runner.guess_mime_type(Path("a.txt")) == "text/plain"

    def test_unknown_type(self):
        assert runner.guess_mime_type(Path("a.unknownext")) == "application/octet-stream"


class TestMain:

    def test_processes_files_in_order(self, tmp_path, test_settings, sample_invoice_text, restore_logging, capsys):
        first = tmp_path / "invoice.txt"
        first.write_text(sample_invoice_text, encoding="utf-8")
        second = tmp_path / "invoice_copy.txt"
        second.write_text(sample_invoice_text, encoding="utf-8")

        code = runner.main(
            [str(first), str(second), "--owner", "owner-1", "--category", "PURCHASES"],
            config=test_settings,
        )

        assert code == 0
        captured = capsys.readouterr()
        lines = [json.loads(line) for line in captured.out.splitlines()]
        assert len(lines) == 2
        assert all("extraction" in line and "duplicate" in line for line in lines)
        assert lines[0]["extraction"]["primary_amount"] == "92.00"
        assert lines[0]["compliance"]["vat_number"] == "IE1234567T"
        # Log events go to stderr so stdout stays machine-readable
        assert "runner_started" in captured.err
        assert "runner_batch_complete" in captured.err
        # Fingerprints were written under the configured artifact root
        assert list((Path(test_settings.ARTIFACT_ROOT) / "fingerprints").rglob("*.json"))

    def test_missing_file(self, tmp_path, test_settings, restore_logging, capsys):
        code = runner.main([str(tmp_path / "nope.pdf"), "--owner", "o"], config=test_settings)
        assert code == 2
        captured = capsys.readouterr()
        assert captured.out == ""
        assert "runner_files_missing" in captured.err
