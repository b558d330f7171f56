from datetime import date

import pytest
import typer

from tp_export.utils.dates import chunk_date_range, parse_date, plan_date_range, validate_date


def test_chunk_date_range() -> None:
    chunks = list(chunk_date_range(date(2026, 1, 1), date(2026, 4, 15), chunk_days=90))
    assert chunks[0][0].isoformat() == "2026-01-01"
    assert chunks[0][1].isoformat() == "2026-03-31"
    assert chunks[1][0].isoformat() == "2026-04-01"
    assert chunks[1][1].isoformat() == "2026-04-15"


def test_chunk_date_range_single_day() -> None:
    assert list(chunk_date_range(date(2026, 1, 1), date(2026, 1, 1))) == [(date(2026, 1, 1), date(2026, 1, 1))]


def test_plan_date_range_uses_plan_dates() -> None:
    start, end = plan_date_range({"startDate": "2026-03-02T00:00:00", "endDate": "2026-04-26T00:00:00"})
    assert start.isoformat() == "2026-03-02"
    assert end.isoformat() == "2026-04-26"


def test_plan_date_range_defaults_to_a_year() -> None:
    start, end = plan_date_range({"startDate": "2026-03-02"})
    assert start.isoformat() == "2026-03-02"
    assert end.isoformat() == "2027-02-28"


def test_plan_date_range_ignores_end_before_start() -> None:
    _, end = plan_date_range({"startDate": "2026-03-02", "endDate": "2026-01-01"})
    assert end.isoformat() == "2027-02-28"


def test_plan_date_range_without_start_uses_today() -> None:
    start, end = plan_date_range({}, today=date(2026, 2, 14))
    assert start.isoformat() == "2026-02-14"
    assert end.isoformat() == "2027-02-12"


def test_parse_date() -> None:
    assert parse_date("2026-02-14") == date(2026, 2, 14)


def test_validate_date_accepts_none_and_iso() -> None:
    assert validate_date(None) is None
    assert validate_date("2026-02-14") == "2026-02-14"


@pytest.mark.parametrize("value", ["2026/02/14", "2026-2-14", "2026-02-30"])
def test_validate_date_rejects_bad_values(value: str) -> None:
    with pytest.raises(typer.BadParameter):
        validate_date(value)
