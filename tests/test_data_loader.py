"""Tests for loading employees, coverage and requests from disk."""
import json
from datetime import date

import pytest

from agents.data_loader import DataLoaderAgent
from models.employee import EmployeeConstraintType
from models.errors import InvalidRequest
from models.request import SearchStrategyType
from models.shift import ShiftType

EMPLOYEES_CSV = """id,name,level,team_id,certifications,pref_day,pref_evening,pref_night,no_night,mentor_id,time_off,fixed_day,max_consecutive
E01,Ana Silva,3,T1,first_aid;forklift,8,5,2,,,,,
E02,Ben Okafor,1,T1,,,,,yes,E01,2025-03-05:2025-03-07,,4
E03,Chen Li,2,T2,,,,,,,2025-03-10,0:D,
"""

COVERAGE_CSV = """date,shift_type,required_count,min_experience_level,allow_shortfall
2025-03-03,day,2,,
2025-03-03,N,1,2,
2025-03-04,evening,1,,true
"""


@pytest.fixture
def loader(bus):
    return DataLoaderAgent(bus)


@pytest.fixture
def write(tmp_path):
    def _write(name, text):
        path = tmp_path / name
        path.write_text(text, encoding="utf-8")
        return path
    return _write


# =============================================================================
# EMPLOYEES
# =============================================================================

def test_load_employees(loader, write):
    employees = loader.load_employees(write("employees.csv", EMPLOYEES_CSV))
    by_id = {e.id: e for e in employees}

    assert [e.id for e in employees] == ["E01", "E02", "E03"]
    assert by_id["E01"].level == 3
    assert by_id["E01"].certifications == {"first_aid", "forklift"}
    assert by_id["E01"].shift_preferences == {ShiftType.DAY: 8, ShiftType.EVENING: 5, ShiftType.NIGHT: 2}
    assert by_id["E02"].mentor_id == "E01"
    assert by_id["E03"].team_id == "T2"


def test_personal_constraints_are_parsed(loader, write):
    by_id = {e.id: e for e in loader.load_employees(write("employees.csv", EMPLOYEES_CSV))}

    kinds = [c.constraint_type for c in by_id["E02"].constraints]
    assert kinds == [
        EmployeeConstraintType.NO_NIGHT,
        EmployeeConstraintType.TIME_OFF,
        EmployeeConstraintType.MAX_CONSECUTIVE,
    ]
    assert by_id["E02"].is_on_leave(date(2025, 3, 6))
    assert not by_id["E02"].is_on_leave(date(2025, 3, 8))
    assert by_id["E02"].max_consecutive_days == 4

    fixed = [c for c in by_id["E03"].constraints if c.constraint_type == EmployeeConstraintType.FIXED_DAY]
    assert fixed[0].value == {"day_of_week": 0, "shift_type": ShiftType.DAY}
    assert by_id["E03"].is_on_leave(date(2025, 3, 10))


def test_minimal_columns_use_defaults(loader, write):
    employees = loader.load_employees(write("employees.csv", "id,name\nA,Alice\nB,\n"))
    assert [(e.id, e.name, e.level, e.team_id) for e in employees] == [
        ("A", "Alice", 1, None),
        ("B", "B", 1, None),
    ]


def test_missing_employee_file(loader, tmp_path):
    with pytest.raises(InvalidRequest) as exc:
        loader.load_employees(tmp_path / "nope.csv")
    assert exc.value.field == "employees_file"


def test_relative_paths_use_data_dir(bus, write, tmp_path):
    write("employees.csv", EMPLOYEES_CSV)
    loader = DataLoaderAgent(bus, data_dir=tmp_path)
    assert len(loader.load_employees("employees.csv")) == 3


@pytest.mark.parametrize("text, message", [
    ("name,level\nAlice,1\n", "missing columns: id"),
    ("id,name\nA,Alice\nA,Again\n", "duplicate employee ids: A"),
    ("id,name,level\nA,Alice,senior\n", "row 2"),
    ("id,name,pref_day\nA,Alice,12\n", "preference"),
])
def test_malformed_employee_files(loader, write, text, message):
    with pytest.raises(InvalidRequest) as exc:
        loader.load_employees(write("employees.csv", text))
    assert message in str(exc.value)


# =============================================================================
# COVERAGE
# =============================================================================

def test_load_coverage(loader, write):
    coverage = loader.load_coverage(write("coverage.csv", COVERAGE_CSV))

    assert [(c.date, c.shift_type, c.required_count) for c in coverage] == [
        (date(2025, 3, 3), ShiftType.DAY, 2),
        (date(2025, 3, 3), ShiftType.NIGHT, 1),
        (date(2025, 3, 4), ShiftType.EVENING, 1),
    ]
    assert coverage[1].min_experience_level == 2
    assert coverage[0].min_experience_level is None
    assert coverage[2].allow_shortfall


def test_bad_shift_type_in_coverage(loader, write):
    with pytest.raises(InvalidRequest) as exc:
        loader.load_coverage(write("coverage.csv", "date,shift_type,required_count\n2025-03-03,brunch,1\n"))
    assert exc.value.field == "coverage_file"


def test_template_coverage(loader):
    weekday = {ShiftType.DAY: 3, ShiftType.EVENING: 2, ShiftType.NIGHT: 1}
    weekend = {ShiftType.DAY: 1, ShiftType.EVENING: 1, ShiftType.NIGHT: 1}
    coverage = loader.template_coverage(
        date(2025, 3, 3), date(2025, 3, 9), weekday, weekend,
        min_level={ShiftType.NIGHT: 2},
    )

    assert len(coverage) == 21
    saturday_day = next(c for c in coverage if c.date == date(2025, 3, 8) and c.shift_type == ShiftType.DAY)
    monday_day = next(c for c in coverage if c.date == date(2025, 3, 3) and c.shift_type == ShiftType.DAY)
    assert saturday_day.required_count == 1
    assert monday_day.required_count == 3
    assert all(c.min_experience_level == 2 for c in coverage if c.shift_type == ShiftType.NIGHT)


def test_template_skips_missing_shift_types(loader):
    coverage = loader.template_coverage(date(2025, 3, 3), date(2025, 3, 4), {ShiftType.DAY: 1})
    assert [c.shift_type for c in coverage] == [ShiftType.DAY, ShiftType.DAY]


# =============================================================================
# REQUESTS
# =============================================================================

REQUEST = {
    "schedule_name": "March",
    "date_range": {"start_date": "2025-03-03", "end_date": "2025-03-04"},
    "team_ids": ["T1"],
    "coverage_requirements": [
        {"date": "2025-03-03", "shift_type": "day", "required_count": 1},
    ],
    "optimization_settings": {"strategy": "TABU_SEARCH", "max_iterations": 10},
}


def test_load_request(loader, write):
    request = loader.load_request(write("request.json", json.dumps(REQUEST)))
    assert request.schedule_name == "March"
    assert request.team_ids == ["T1"]
    assert request.optimization_settings.strategy == SearchStrategyType.TABU_SEARCH
    assert len(request.coverage_requirements) == 1


def test_invalid_json_request(loader, write):
    with pytest.raises(InvalidRequest) as exc:
        loader.load_request(write("request.json", "{not json"))
    assert exc.value.field == "request_file"


def test_execute_replaces_request_coverage(loader, write):
    result = loader.execute(
        request_file=write("request.json", json.dumps(REQUEST)),
        employees_file=write("employees.csv", EMPLOYEES_CSV),
        coverage_file=write("coverage.csv", COVERAGE_CSV),
    )

    assert len(result["employees"]) == 3
    assert len(result["coverage"]) == 3
    assert result["request"].coverage_requirements == result["coverage"]
