"""
Tests for the structured JSONL logger.
"""

import json

import pytest

from pak_biodiversity.logging_utils import generate_run_id, get_logger, get_versions


def read_records(path):
    with open(path, encoding="utf-8") as f:
        return [json.loads(line) for line in f]


class TestJSONLLogger:
    """Tests for JSONLLogger."""

    def test_writes_jsonl(self, tmp_path):
        with get_logger("02_clean_occurrences", run_id="r1", log_dir=tmp_path) as logger:
            logger.info("hello", extra={"n": 3})
            log_file = logger.log_file

        records = read_records(log_file)
        assert log_file.name == "02_clean_occurrences_r1.jsonl"
        assert all(r["run_id"] == "r1" for r in records)
        assert any(r["message"] == "hello" and r["extra"] == {"n": 3} for r in records)
        assert records[-1]["message"] == "Logger closing"

    def test_cleaning_step_record(self, tmp_path):
        with get_logger("t", log_dir=tmp_path) as logger:
            logger.log_cleaning_step("Duplicates", 1, 2)
            log_file = logger.log_file

        step = [r for r in read_records(log_file) if r["message"] == "Cleaning step applied"]
        assert step[0]["extra"] == {"step": "Duplicates", "records_removed": 1, "records_remaining": 2}

    def test_exception_logged_and_propagated(self, tmp_path):
        with pytest.raises(ValueError):
            with get_logger("t", log_dir=tmp_path) as logger:
                log_file = logger.log_file
                raise ValueError("bad input")

        errors = [r for r in read_records(log_file) if r["level"] == "ERROR"]
        assert "bad input" in errors[0]["message"]

    def test_versions_recorded(self):
        versions = get_versions()
        assert "python" in versions
        assert "pandas" in versions

    def test_run_ids_unique(self):
        assert generate_run_id() != generate_run_id()
