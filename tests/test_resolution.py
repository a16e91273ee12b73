from datetime import date

import pandas as pd
import pytest

from analytics.resolution import (
    WARD_MATCHERS,
    age_group,
    attribute_admissions,
    derive_age,
    resolve_ward_for_admission,
)

WARDS = [
    {"ward_id": 1, "ward_name": "Ward 1"},
    {"ward_id": 2, "ward_name": "Ward 2"},
    {"ward_id": None, "ward_name": "Surgical Ward A"},
]


def test_id_match_comes_first():
    ward = resolve_ward_for_admission({"ward_id": 2, "ward_name": "Ward 1"}, WARDS)
    assert ward["ward_name"] == "Ward 2"


def test_ids_compare_across_numeric_spellings():
    ward = resolve_ward_for_admission({"ward_id": 1.0}, [{"ward_id": "1", "ward_name": "X"}])
    assert ward["ward_name"] == "X"


def test_exact_name_ignores_case_and_whitespace():
    ward = resolve_ward_for_admission({"ward_name": "  ward   2 "}, WARDS)
    assert ward["ward_name"] == "Ward 2"


def test_exact_name_beats_containment():
    wards = [{"ward_name": "Ward 10"}, {"ward_name": "Ward 1"}]
    ward = resolve_ward_for_admission({"ward_name": "ward 1"}, wards)
    assert ward["ward_name"] == "Ward 1"


def test_containment_in_either_direction():
    assert resolve_ward_for_admission({"ward_name": "surgical"}, WARDS)["ward_name"] == "Surgical Ward A"
    wards = [{"ward_name": "ICU"}]
    assert resolve_ward_for_admission({"ward_name": "ICU - North"}, wards)["ward_name"] == "ICU"


def test_trailing_number_fallback():
    wards = [{"ward_id": 1, "ward_name": "Ward 1"}]
    assert resolve_ward_for_admission({"ward_name": "ward1", "status": "ACTIVE"}, wards) == wards[0]


def test_no_match_and_malformed_fields_return_none():
    assert resolve_ward_for_admission({"ward_name": "Maternity"}, WARDS) is None
    assert resolve_ward_for_admission({"ward_id": float('nan'), "ward_name": None}, WARDS) is None
    assert resolve_ward_for_admission({}, []) is None
    assert resolve_ward_for_admission("not a record", WARDS) is None


def test_resolution_is_deterministic():
    admission = {"ward_name": "ward 2"}
    results = {id(resolve_ward_for_admission(admission, WARDS)) for _ in range(5)}
    assert len(results) == 1


def test_matchers_are_ordered_id_name_contains_number():
    assert [m.__name__ for m in WARD_MATCHERS] == [
        '_match_by_id', '_match_by_exact_name', '_match_by_containment', '_match_by_trailing_number',
    ]


def test_attribute_admissions_counts_each_admission_once():
    wards = pd.DataFrame([{"ward_id": 1, "ward_name": "Ward 1"}, {"ward_id": 11, "ward_name": "Ward 11"}])
    admissions = pd.DataFrame([
        {"admission_id": 1, "ward_id": 1},
        {"admission_id": 2, "ward_name": "Ward 1"},   # exact name, not also Ward 11
        {"admission_id": 3, "ward_name": "ward11"},
        {"admission_id": 4, "ward_name": "Nowhere"},
    ])
    attributed = attribute_admissions(admissions, wards)
    assert sorted(attributed) == [0, 1]
    assert [a["admission_id"] for a in attributed[0]] == [1, 2]
    assert [a["admission_id"] for a in attributed[1]] == [3]
    assert sum(len(v) for v in attributed.values()) == 3


def test_attribute_admissions_with_no_wards():
    assert attribute_admissions([{"ward_name": "Ward 1"}], []) == {}


@pytest.mark.parametrize("dob, as_of, expected", [
    ("2000-05-15", date(2024, 5, 15), 24),
    ("2000-06-01", date(2024, 5, 15), 23),
    ("2000-02-29", date(2023, 2, 28), 22),
    ("2000-02-29", date(2023, 3, 1), 23),
    ("2024-05-15", date(2024, 5, 15), 0),
])
def test_derive_age_is_calendar_aware(dob, as_of, expected):
    assert derive_age(dob, as_of) == expected


@pytest.mark.parametrize("dob", [None, "", "not-a-date", "2030-01-01", float('nan')])
def test_derive_age_rejects_unusable_dates(dob):
    assert derive_age(dob, date(2024, 5, 15)) is None


@pytest.mark.parametrize("age, label", [
    (0, "0-17"), (17, "0-17"), (18, "18-34"), (34, "18-34"), (35, "35-49"),
    (49, "35-49"), (50, "50-64"), (64, "50-64"), (65, "65+"), (104, "65+"),
])
def test_age_group_boundaries(age, label):
    assert age_group(age) == label


def test_age_group_without_age():
    assert age_group(None) is None
    assert age_group(-1) is None


def test_age_group_with_custom_bands():
    bands = [("child", 0), ("adult", 18)]
    assert age_group(10, bands) == "child"
    assert age_group(40, bands) == "adult"
