from datetime import date

import pandas as pd
import pytest

from analytics.bucketing import (
    build_series,
    daily_counts,
    day_label,
    group_by_date,
    group_by_month,
    last_n_days,
    last_n_months,
    month_label,
)


@pytest.mark.parametrize("n", [1, 3, 7, 30, 90])
def test_last_n_days_has_exactly_n_ascending_days_ending_today(n):
    today = date(2024, 5, 15)
    days = last_n_days(n, today)
    assert len(days) == n
    assert days[-1] == today
    assert days == sorted(days)
    assert len(set(days)) == n


def test_last_n_days_crosses_leap_day():
    assert last_n_days(3, date(2024, 3, 1)) == [date(2024, 2, 28), date(2024, 2, 29), date(2024, 3, 1)]


def test_last_n_days_rejects_non_positive_windows():
    assert last_n_days(0, date(2024, 5, 15)) == []


@pytest.mark.parametrize("n", [1, 6, 12, 25])
def test_last_n_months_has_exactly_n_keys_ending_this_month(n):
    months = last_n_months(n, date(2024, 5, 31))
    assert len(months) == n
    assert months[-1] == "2024-05"
    assert months == sorted(months)


def test_last_n_months_crosses_year_boundary():
    assert last_n_months(3, date(2024, 2, 10)) == ["2023-12", "2024-01", "2024-02"]


def test_group_by_date_drops_unparseable_dates():
    records = pd.DataFrame({"admission_date": ["2024-05-14", "garbage", None, "2024-05-14T10:00:00", "2024-05-15"]})
    groups = group_by_date(records, "admission_date")
    assert set(groups) == {date(2024, 5, 14), date(2024, 5, 15)}
    assert len(groups[date(2024, 5, 14)]) == 2
    assert sum(len(g) for g in groups.values()) == 3


def test_group_by_date_on_missing_column_or_empty_frame():
    assert group_by_date(pd.DataFrame({"x": [1]}), "admission_date") == {}
    assert group_by_date(pd.DataFrame(), "admission_date") == {}


def test_group_by_month():
    records = pd.DataFrame({"registration_date": ["2024-01-31", "2024-02-01", "2024-02-29", "bad"]})
    groups = group_by_month(records, "registration_date")
    assert {k: len(v) for k, v in groups.items()} == {"2024-01": 1, "2024-02": 2}


def test_group_by_date_with_repeated_row_labels_keeps_only_parseable_rows():
    records = pd.DataFrame(
        {"admission_date": ["2024-05-15", "not-a-date", "2024-05-14"], "patient": ["a", "b", "c"]},
        index=[5, 5, 7],
    )
    groups = group_by_date(records, "admission_date")
    assert {k: len(v) for k, v in groups.items()} == {date(2024, 5, 14): 1, date(2024, 5, 15): 1}
    assert groups[date(2024, 5, 15)]["patient"].tolist() == ["a"]


def test_group_by_month_with_repeated_row_labels():
    records = pd.concat([
        pd.DataFrame({"registration_date": ["2024-02-01", "bad"]}),
        pd.DataFrame({"registration_date": ["2024-02-20", "2024-03-01"]}),
    ])
    groups = group_by_month(records, "registration_date")
    assert {k: len(v) for k, v in groups.items()} == {"2024-02": 2, "2024-03": 1}


def test_sparse_days_are_zero_filled():
    today = date(2024, 5, 15)
    records = pd.DataFrame({"admission_date": ["2024-05-15T08:00:00"]})
    series = daily_counts(records, "admission_date", last_n_days(3, today))
    assert series.values == [0, 0, 1]
    assert series.labels == ["May 13", "May 14", "May 15"]


def test_build_series_uses_value_function_for_every_key():
    groups = {"a": pd.DataFrame({"v": [1, 2]})}
    series = build_series(["a", "b"], groups, lambda g: int(g["v"].sum()) if "v" in g else 0, str.upper)
    assert series.points == (("A", 3), ("B", 0))


def test_labels():
    assert day_label(date(2024, 5, 3)) == "May 3"
    assert month_label("2024-05") == "May 24"
