"""Tests for the Excel roster export."""
from pathlib import Path

import pytest
from openpyxl import load_workbook

from agents.coordinator import CoordinatorAgent
from agents.roster_exporter import SHEETS


@pytest.fixture
def coordinator(bus, tmp_path):
    return CoordinatorAgent(bus, output_dir=str(tmp_path), log_to_file=False, workers=1)


def test_export_writes_every_sheet(coordinator, request_factory, roster, tmp_path):
    result = coordinator.execute(request_factory(days=7, name="March Week 1"), roster,
                                 output_path=tmp_path, export=True)

    path = Path(coordinator.output_file)
    assert path.parent == tmp_path
    assert path.name == f"roster_march_week_1_2025-03-03_{result.run_metadata.run_id}.xlsx"

    wb = load_workbook(path)
    assert wb.sheetnames == SHEETS


def test_roster_sheet_layout(coordinator, request_factory, roster, tmp_path):
    coordinator.execute(request_factory(days=7), roster, output_path=tmp_path, export=True)
    ws = load_workbook(coordinator.output_file)["Roster"]

    header = [cell.value for cell in ws[1]]
    assert header[:4] == ["ID", "Employee Name", "Level", "Team"]
    assert header[-1] == "Total Hours"
    assert len(header) == 4 + 7 + 1
    assert header[4] == "Mon\n03/03"

    ids = [ws.cell(row=row, column=1).value for row in range(2, 2 + len(roster))]
    assert sorted(ids) == sorted(e.id for e in roster)


def test_explicit_xlsx_path_is_used(coordinator, request_factory, roster, tmp_path):
    target = tmp_path / "nested" / "week.xlsx"
    coordinator.execute(request_factory(days=7), roster, output_path=target, export=True)

    assert coordinator.output_file == str(target)
    assert target.exists()


def test_no_export_by_default(coordinator, request_factory, roster, tmp_path):
    coordinator.execute(request_factory(days=7), roster)
    assert coordinator.output_file is None
    assert list(tmp_path.glob("*.xlsx")) == []


def test_failed_export_still_returns_the_result(coordinator, request_factory, roster, tmp_path):
    """A file where the export directory should be makes the write fail."""
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")

    result = coordinator.execute(request_factory(days=7), roster,
                                 output_path=blocker / "roster.xlsx", export=True)

    assert result.assignments
    assert coordinator.output_file is None
    assert coordinator.roster_exporter.get_metrics()["error_count"] == 1
