"""
Unit tests for the CSV threshold gate used in CI.
"""

import csv

import pytest

from loadtest import check_thresholds
from loadtest.thresholds import ThresholdSet

pytestmark = pytest.mark.unit

FIELDS = [
    "Type",
    "Name",
    "Request Count",
    "Failure Count",
    "Median Response Time",
    "Average Response Time",
    "Min Response Time",
    "Max Response Time",
    "95%",
    "99%",
]


def _write_stats(path, *, requests=200, failures=2, p95=450, p99=900):
    with path.open("w", encoding="utf-8", newline="") as handle:
        writer = csv.DictWriter(handle, fieldnames=FIELDS)
        writer.writeheader()
        writer.writerow(
            {"Type": "GET", "Name": "/products [GET]", "Request Count": 150, "Failure Count": 0,
             "Median Response Time": 100, "Average Response Time": 120, "Min Response Time": 20,
             "Max Response Time": 600, "95%": 300, "99%": 500}
        )
        writer.writerow(
            {"Type": "", "Name": "Aggregated", "Request Count": requests, "Failure Count": failures,
             "Median Response Time": 150, "Average Response Time": 180.5, "Min Response Time": 20,
             "Max Response Time": 1500, "95%": p95, "99%": p99}
        )
    return path


def _write_thresholds(path, text):
    path.write_text(text, encoding="utf-8")
    return path


def test_load_aggregated_row(tmp_path):
    stats = _write_stats(tmp_path / "run_stats.csv")

    row = check_thresholds.load_aggregated_row(stats)

    assert row["Request Count"] == "200"


def test_missing_aggregated_row_raises(tmp_path):
    stats = tmp_path / "empty_stats.csv"
    stats.write_text("Type,Name\nGET,/products\n", encoding="utf-8")

    with pytest.raises(ValueError, match="Aggregated"):
        check_thresholds.load_aggregated_row(stats)


def test_evaluate_reads_rate_and_percentiles(tmp_path):
    # Arrange
    row = check_thresholds.load_aggregated_row(_write_stats(tmp_path / "s.csv"))
    thresholds = ThresholdSet.from_dict(
        {
            "http_req_failed": ["rate<0.05"],
            "http_req_duration": ["p(95)<500", "p(99)<800", "avg<200"],
            "http_req_duration{test_type:get-list}": ["p(95)<300"],
        }
    )

    # Act
    passed, report = check_thresholds.evaluate(thresholds, row)

    # Assert
    statuses = [status for _rule, _actual, status in report]
    assert statuses == ["PASS", "PASS", "FAIL", "PASS", "SKIPPED"]
    assert report[0][1] == pytest.approx(0.01)
    assert passed is False


def test_zero_requests_is_a_script_error(tmp_path):
    stats = _write_stats(tmp_path / "s.csv", requests=0, failures=0)

    with pytest.raises(ValueError):
        check_thresholds.failure_rate(check_thresholds.load_aggregated_row(stats))


def test_main_exit_codes(tmp_path, capsys):
    stats = _write_stats(tmp_path / "s.csv")
    passing = _write_thresholds(tmp_path / "pass.yml", "http_req_failed:\n  - rate<0.05\nhttp_req_duration:\n  - p(95)<2000\n")
    failing = _write_thresholds(tmp_path / "fail.yml", "http_req_duration: p(95)<100\n")
    broken = _write_thresholds(tmp_path / "broken.yml", "http_req_duration:\n  - p95 under 100\n")

    assert check_thresholds.main(["--stats", str(stats), "--thresholds", str(passing)]) == check_thresholds.EXIT_PASS
    assert "Overall: PASS" in capsys.readouterr().out

    assert check_thresholds.main(["--stats", str(stats), "--thresholds", str(failing)]) == check_thresholds.EXIT_THRESHOLD_BREACH
    assert check_thresholds.main(["--stats", str(stats), "--thresholds", str(broken)]) == check_thresholds.EXIT_SCRIPT_ERROR
    assert check_thresholds.main(["--stats", str(tmp_path / "missing.csv")]) == check_thresholds.EXIT_SCRIPT_ERROR


def test_packaged_default_thresholds_file_parses():
    thresholds = check_thresholds.load_thresholds(check_thresholds.DEFAULT_THRESHOLDS_FILE)

    assert thresholds.to_dict() == {"http_req_failed": ["rate<0.05"], "http_req_duration": ["p(95)<2000"]}
