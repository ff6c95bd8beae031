"""
Shared fixtures for the optimizer test suite.

Most tests run against a small two-week problem: twelve employees and
two heads on every shift, which the forward rotation covers exactly.
"""
from dataclasses import replace
from datetime import date, timedelta

import pytest

from agents.base_agent import BaseAgent
from communication.message_bus import MessageBus
from models.employee import Employee
from models.request import (
    CoverageRequirement,
    GenerationOptions,
    OptimizationSettings,
    ScheduleRequest,
    SearchStrategyType,
)
from models.shift import ShiftType
from optimizer.model import ConstraintModelBuilder

START = date(2025, 3, 3)  # a Monday


@pytest.fixture(autouse=True)
def _no_file_logging():
    """Make sure no test leaves the shared file logger attached."""
    yield
    BaseAgent.close_file_logging()


@pytest.fixture
def bus():
    return MessageBus(verbose=False)


@pytest.fixture
def employee_factory():
    """Build employees with sensible defaults."""
    def _make(employee_id, level=1, team_id="T1", **kwargs):
        return Employee(
            id=employee_id,
            name=kwargs.pop("name", f"Employee {employee_id}"),
            level=level,
            team_id=team_id,
            **kwargs,
        )
    return _make


@pytest.fixture
def roster(employee_factory):
    """Twelve employees across two teams, levels 1-3."""
    return [
        employee_factory(f"E{i:02d}", level=1 + i % 3, team_id=f"T{i % 2 + 1}")
        for i in range(1, 13)
    ]


def coverage_for(start, days, counts, min_levels=None, allow_shortfall=False):
    min_levels = min_levels or {}
    coverage = []
    for offset in range(days):
        day = start + timedelta(days=offset)
        for shift_type, count in zip(ShiftType, counts):
            coverage.append(CoverageRequirement(
                date=day,
                shift_type=shift_type,
                required_count=count,
                min_experience_level=min_levels.get((day, shift_type)),
                allow_shortfall=allow_shortfall,
            ))
    return coverage


@pytest.fixture
def coverage_builder():
    return coverage_for


@pytest.fixture
def request_factory():
    """
    Build a ScheduleRequest.

    Defaults: 14 days from START, two heads per shift, hill climbing with a
    fixed seed, one restart on one worker and a short iteration budget.
    """
    def _make(days=14, counts=(2, 2, 2), start=START, coverage=None,
              options=None, limits=None, team_ids=None, name="Test schedule", **settings):
        defaults = dict(
            strategy=SearchStrategyType.HILL_CLIMBING,
            max_iterations=20,
            stall_window=10,
            random_seed=7,
            restarts=1,
            workers=1,
        )
        defaults.update(settings)
        request = ScheduleRequest(
            schedule_name=name,
            start_date=start,
            end_date=start + timedelta(days=days - 1),
            coverage_requirements=coverage if coverage is not None else coverage_for(start, days, counts),
            team_ids=team_ids,
            generation_options=options or GenerationOptions(),
            optimization_settings=OptimizationSettings(**defaults),
        )
        if limits is not None:
            request.legal_limits = limits
        return request
    return _make


@pytest.fixture
def build_model():
    """Build a ConstraintModel with the default configuration."""
    def _build(request, employees):
        return ConstraintModelBuilder().build(request, employees)
    return _build


@pytest.fixture
def with_settings():
    """Copy a request with some optimization settings replaced."""
    def _with(request, **overrides):
        request.optimization_settings = replace(request.optimization_settings, **overrides)
        return request
    return _with
