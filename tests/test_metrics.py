import pandas as pd
import pytest

from analytics.metrics import (
    ADMISSION_STATUSES,
    HIGH_LOAD,
    OTHER_STATUS,
    WELL_BALANCED,
    appointment_rates,
    average_length_of_stay,
    count_statuses,
    efficiency_score,
    mean_rate,
    percentage,
    round_half_away,
    top_n,
    workload_balance,
)
from analytics.models import DoctorWorkloadSummary


@pytest.mark.parametrize("part, total, expected", [
    (0, 0, 0),
    (5, 0, 0),
    (3, -1, 0),
    (1, 8, 13),
    (1, 3, 33),
    (2, 3, 67),
    (1, 200, 1),
    (2, 20, 10),
    (20, 20, 100),
])
def test_percentage(part, total, expected):
    assert percentage(part, total) == expected


def test_percentage_is_clamped_and_total():
    assert percentage(25, 20) == 100
    assert percentage(-1, 10) == 0
    assert percentage(None, 10) == 0
    assert percentage(float('nan'), 10) == 0


def test_percentage_stays_in_range_for_every_part_up_to_total():
    for total in range(1, 40):
        for part in range(total + 1):
            assert 0 <= percentage(part, total) <= 100


def test_round_half_away_from_zero():
    assert round_half_away(2.5) == 3
    assert round_half_away(-2.5) == -3
    assert round_half_away(1.25, 1) == 1.3


def test_appointment_rates_scenario():
    statuses = ["COMPLETED"] * 6 + ["CANCELLED"] * 2 + ["NO_SHOW", "SCHEDULED"]
    rates = appointment_rates(statuses)
    assert rates.total == 10
    assert rates.completion_rate == 60
    assert rates.cancellation_rate == 20
    assert rates.no_show_rate == 10
    assert rates.efficiency_score == 30


def test_appointment_rates_on_empty_input():
    rates = appointment_rates([])
    assert rates.total == 0
    assert rates.completion_rate == rates.cancellation_rate == rates.no_show_rate == 0
    assert rates.efficiency_score == 0


def test_efficiency_score_can_be_negative():
    assert efficiency_score(10, 30, 20) == -40


def test_average_length_of_stay_ceils_each_stay():
    admissions = pd.DataFrame([
        {"status": "DISCHARGED", "admission_date": "2024-05-01T08:00:00", "discharge_date": "2024-05-03T09:00:00"},
        {"status": "DISCHARGED", "admission_date": "2024-05-01T08:00:00", "discharge_date": "2024-05-02T08:00:00"},
        {"status": "DISCHARGED", "admission_date": "2024-05-04T08:00:00", "discharge_date": "2024-05-04T20:00:00"},
        {"status": "ACTIVE", "admission_date": "2024-04-01T08:00:00", "discharge_date": None},
        {"status": "DISCHARGED", "admission_date": "2024-05-01T08:00:00", "discharge_date": None},
        {"status": "TRANSFERRED", "admission_date": "2024-01-01", "discharge_date": "2024-05-01"},
    ])
    # stays of 3, 1 and 1 days
    assert average_length_of_stay(admissions) == 1.7


def test_average_length_of_stay_is_zero_without_discharges():
    assert average_length_of_stay(pd.DataFrame()) == 0.0
    assert average_length_of_stay(pd.DataFrame([{"status": "ACTIVE", "admission_date": "2024-05-01",
                                                  "discharge_date": None}])) == 0.0


def test_top_n_is_stable_for_ties():
    doctors = [DoctorWorkloadSummary(name=n, total=t) for n, t in [("a", 5), ("b", 7), ("c", 5), ("d", 7)]]
    assert [d.name for d in top_n(doctors, "total", 3)] == ["b", "d", "a"]
    assert [d.name for d in top_n(doctors, lambda d: d.total, 10)] == ["b", "d", "a", "c"]
    assert top_n(doctors, "total", 0) == []


@pytest.mark.parametrize("busy, total, label", [
    (0, 0, WELL_BALANCED),
    (2, 5, WELL_BALANCED),
    (3, 6, HIGH_LOAD),
    (5, 5, HIGH_LOAD),
])
def test_workload_balance(busy, total, label):
    assert workload_balance(busy, total) == label


def test_count_statuses_partitions_input():
    statuses = ["ACTIVE", "DISCHARGED", None, "weird", "active"]
    counts = count_statuses(statuses, ADMISSION_STATUSES)
    assert counts == {"ACTIVE": 2, "DISCHARGED": 1, "TRANSFERRED": 0, OTHER_STATUS: 2}
    assert sum(counts.values()) == len(statuses)


def test_mean_rate():
    assert mean_rate([]) == 0
    assert mean_rate([60, 0, 0]) == 20
    assert mean_rate([50, 51]) == 51
