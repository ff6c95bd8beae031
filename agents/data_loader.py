"""
Data Loader Agent - Loads the employee directory and coverage plans.
"""
import json
import pandas as pd
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .base_agent import BaseAgent
from communication.message import Message, MessageType
from communication.message_bus import MessageBus
from models.employee import Employee, EmployeeConstraint, EmployeeConstraintType
from models.errors import InvalidRequest
from models.request import CoverageRequirement, ScheduleRequest
from models.shift import ShiftType

PathLike = Union[str, Path]

EMPLOYEE_COLUMNS = ["id", "name"]
COVERAGE_COLUMNS = ["date", "shift_type", "required_count"]

PREFERENCE_COLUMNS = {
    "pref_day": ShiftType.DAY,
    "pref_evening": ShiftType.EVENING,
    "pref_night": ShiftType.NIGHT,
}

TRUE_VALUES = {"1", "true", "yes", "y", "x"}


def _is_true(value: Any) -> bool:
    return str(value).strip().lower() in TRUE_VALUES


def _split_list(value: Any) -> List[str]:
    """Split a ';'-separated cell, dropping blanks."""
    return [part.strip() for part in str(value).split(";") if part.strip()]


class DataLoaderAgent(BaseAgent):
    """
    Agent responsible for reading scheduling inputs from disk.

    Responsibilities:
    - Load the employee directory snapshot (CSV)
    - Load coverage requirements (CSV) or build them from a template
    - Load Generate requests (JSON)
    """

    def __init__(self, message_bus: MessageBus, data_dir: Optional[PathLike] = None):
        super().__init__("DataLoader", message_bus)
        self.data_dir = Path(data_dir) if data_dir else None

        self.employees: List[Employee] = []
        self.coverage: List[CoverageRequirement] = []
        self.request: Optional[ScheduleRequest] = None

    def execute(self, request_file: Optional[PathLike] = None,
                employees_file: Optional[PathLike] = None,
                coverage_file: Optional[PathLike] = None,
                **kwargs) -> Dict[str, Any]:
        """
        Load whichever inputs are given.

        A coverage CSV replaces the coverage requirements of the loaded
        request.

        Returns:
            Dictionary with request, employees and coverage
        """
        self.log("Starting data loading process...")

        if request_file:
            self.load_request(request_file)
        if employees_file:
            self.load_employees(employees_file)
        if coverage_file:
            self.load_coverage(coverage_file)
            if self.request is not None:
                self.request.coverage_requirements = list(self.coverage)

        self.send(
            MessageType.DATA,
            {
                "status": "loaded",
                "employee_count": len(self.employees),
                "coverage_count": len(self.coverage),
                "request": self.request.schedule_name if self.request else None,
            },
            receiver="Coordinator",
        )
        self.log(
            f"Data loading complete: {len(self.employees)} employees, "
            f"{len(self.coverage)} coverage rows",
            "success",
        )
        return {
            "request": self.request,
            "employees": self.employees,
            "coverage": self.coverage,
        }

    def _resolve(self, path: PathLike, field: str) -> Path:
        filepath = Path(path)
        if not filepath.is_absolute() and self.data_dir is not None:
            filepath = self.data_dir / filepath
        if not filepath.exists():
            self.log(f"File not found: {filepath}", "error")
            raise InvalidRequest(f"file not found: {filepath}", field=field)
        return filepath

    def _read_csv(self, path: PathLike, field: str, required: List[str]) -> pd.DataFrame:
        filepath = self._resolve(path, field)
        try:
            df = pd.read_csv(filepath, dtype=str, keep_default_na=False, comment="#")
        except (pd.errors.EmptyDataError, pd.errors.ParserError) as e:
            raise InvalidRequest(f"cannot parse {filepath.name}: {e}", field=field) from e

        df.columns = df.columns.str.strip().str.lower()
        missing = [c for c in required if c not in df.columns]
        if missing:
            raise InvalidRequest(
                f"{filepath.name} is missing columns: {', '.join(missing)}", field=field
            )
        for column in df.columns:
            df[column] = df[column].str.strip()
        return df

    # ==================== Employees ====================

    def load_employees(self, path: PathLike) -> List[Employee]:
        """
        Load the employee directory.

        Columns: id, name, level, team_id, certifications, pref_day,
        pref_evening, pref_night, no_night, mentor_id, time_off and,
        optionally, fixed_day ("weekday:shift") and max_consecutive.
        """
        df = self._read_csv(path, "employees_file", EMPLOYEE_COLUMNS)
        employees = []
        for index, row in df.iterrows():
            if not row["id"]:
                continue
            try:
                employees.append(self._parse_employee(row))
            except InvalidRequest:
                raise
            except (TypeError, ValueError) as e:
                raise InvalidRequest(
                    f"employees row {index + 2} ({row['id']}): {e}", field="employees_file"
                ) from e

        ids = [e.id for e in employees]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            raise InvalidRequest(f"duplicate employee ids: {', '.join(duplicates)}", field="employees_file")

        self.employees = employees
        self.log(f"Loaded {len(employees)} employees")
        return employees

    def _parse_employee(self, row: pd.Series) -> Employee:
        preferences = {
            shift_type: int(row[column])
            for column, shift_type in PREFERENCE_COLUMNS.items()
            if row.get(column)
        }

        constraints = []
        if _is_true(row.get("no_night", "")):
            constraints.append(EmployeeConstraint(EmployeeConstraintType.NO_NIGHT, reason="no nights"))
        for period in _split_list(row.get("time_off", "")):
            start, _, end = period.partition(":")
            constraints.append(EmployeeConstraint(
                EmployeeConstraintType.TIME_OFF,
                {"start_date": date.fromisoformat(start), "end_date": date.fromisoformat(end or start)},
                reason="time off",
            ))
        for fixed in _split_list(row.get("fixed_day", "")):
            weekday, _, shift = fixed.partition(":")
            constraints.append(EmployeeConstraint(
                EmployeeConstraintType.FIXED_DAY,
                {"day_of_week": int(weekday), "shift_type": ShiftType.from_code(shift)},
            ))
        if row.get("max_consecutive"):
            constraints.append(EmployeeConstraint(
                EmployeeConstraintType.MAX_CONSECUTIVE, {"days": int(row["max_consecutive"])}
            ))

        return Employee(
            id=row["id"],
            name=row["name"] or row["id"],
            level=int(row["level"]) if row.get("level") else 1,
            team_id=row.get("team_id") or None,
            certifications=set(_split_list(row.get("certifications", ""))),
            shift_preferences=preferences,
            constraints=constraints,
            mentor_id=row.get("mentor_id") or None,
        )

    # ==================== Coverage ====================

    def load_coverage(self, path: PathLike) -> List[CoverageRequirement]:
        """
        Load coverage requirements.

        Columns: date, shift_type, required_count and, optionally,
        min_experience_level and allow_shortfall.
        """
        df = self._read_csv(path, "coverage_file", COVERAGE_COLUMNS)
        try:
            dates = pd.to_datetime(df["date"]).dt.date
            coverage = [
                CoverageRequirement(
                    date=shift_date,
                    shift_type=ShiftType.from_code(row["shift_type"]),
                    required_count=int(row["required_count"]),
                    min_experience_level=int(row["min_experience_level"])
                    if row.get("min_experience_level") else None,
                    allow_shortfall=_is_true(row.get("allow_shortfall", "")),
                )
                for shift_date, (_, row) in zip(dates, df.iterrows())
            ]
        except (TypeError, ValueError) as e:
            raise InvalidRequest(f"malformed coverage file: {e}", field="coverage_file") from e

        self.coverage = coverage
        self.log(f"Loaded {len(coverage)} coverage requirements")
        return coverage

    def template_coverage(self, start: date, end: date,
                          weekday: Dict[ShiftType, int],
                          weekend: Optional[Dict[ShiftType, int]] = None,
                          min_level: Optional[Dict[ShiftType, int]] = None) -> List[CoverageRequirement]:
        """
        Build coverage from weekday and weekend headcount defaults.

        Args:
            start: First date
            end: Last date (inclusive)
            weekday: Headcount per shift type, Monday to Friday
            weekend: Headcount per shift type on Saturday and Sunday (defaults to weekday)
            min_level: Minimum experience level per shift type

        Returns:
            One CoverageRequirement per (date, shift type)
        """
        weekend = weekend if weekend is not None else weekday
        min_level = min_level or {}

        days = pd.date_range(start, end, freq="D")
        coverage = []
        for day in days:
            counts = weekend if day.dayofweek >= 5 else weekday
            for shift_type in ShiftType:
                if shift_type not in counts:
                    continue
                coverage.append(CoverageRequirement(
                    date=day.date(),
                    shift_type=shift_type,
                    required_count=counts[shift_type],
                    min_experience_level=min_level.get(shift_type),
                ))

        self.coverage = coverage
        self.log(f"Built {len(coverage)} coverage requirements from template")
        return coverage

    # ==================== Requests ====================

    def load_request(self, path: PathLike) -> ScheduleRequest:
        """Load a Generate request from JSON."""
        filepath = self._resolve(path, "request_file")
        try:
            with open(filepath, encoding="utf-8") as f:
                payload = json.load(f)
        except json.JSONDecodeError as e:
            raise InvalidRequest(f"invalid JSON in {filepath.name}: {e}", field="request_file") from e

        self.request = ScheduleRequest.from_dict(payload)
        self.log(f"Loaded request '{self.request.schedule_name}'")
        return self.request

    def _on_request(self, message: Message) -> None:
        """Handle data requests from other agents."""
        request_type = message.content.get("type") if isinstance(message.content, dict) else message.content

        if request_type == "employees":
            self.respond(message, {"employees": self.employees})
        elif request_type == "coverage":
            self.respond(message, {"coverage": self.coverage})
        elif request_type == "all":
            self.respond(message, {
                "request": self.request,
                "employees": self.employees,
                "coverage": self.coverage,
            })
