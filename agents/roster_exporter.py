"""
Roster Exporter Agent - Exports a finished run to Excel.
"""
import re
from pathlib import Path
from typing import List, Union

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from openpyxl.utils.dataframe import dataframe_to_rows

from .base_agent import BaseAgent
from communication.message import Message, MessageType
from communication.message_bus import MessageBus
from models.constraints import Severity
from models.run import RunState, ScheduleRunResult
from models.shift import DEFAULT_SHIFT_TIMES, ShiftType

SHEETS = ["Roster", "Coverage", "Fairness", "Safety", "Violations"]


def _solid(color: str) -> PatternFill:
    return PatternFill(start_color=color, end_color=color, fill_type="solid")


class RosterExporterAgent(BaseAgent):
    """
    Agent responsible for the Excel export of a ScheduleRunResult.

    Responsibilities:
    - Roster grid (employees x dates), colour-coded by shift type
    - Coverage, fairness, safety and violation sheets
    """

    def __init__(self, message_bus: MessageBus):
        super().__init__("RosterExporter", message_bus)

        self.header_fill = _solid("1F4E79")
        self.header_font = Font(color="FFFFFF", bold=True, size=11)
        self.weekend_fill = _solid("FFF2CC")
        self.off_fill = _solid("D9D9D9")
        self.shift_colors = {
            ShiftType.DAY: _solid("C6EFCE"),      # Green
            ShiftType.EVENING: _solid("FFEB9C"),  # Yellow
            ShiftType.NIGHT: _solid("BDD7EE"),    # Blue
        }
        self.severity_fonts = {
            Severity.CRITICAL: Font(color="8B0000", bold=True),
            Severity.HIGH: Font(color="C00000"),
            Severity.MEDIUM: Font(color="B8860B"),
            Severity.LOW: Font(color="595959"),
        }
        self.thin_border = Border(
            left=Side(style='thin'),
            right=Side(style='thin'),
            top=Side(style='thin'),
            bottom=Side(style='thin')
        )

    def execute(self, result: ScheduleRunResult, model,
                output_path: Union[str, Path] = "output", **kwargs) -> str:
        """
        Write the result to an .xlsx workbook.

        Args:
            result: Finished run result
            model: The run's ConstraintModel (dates, roster, requirements)
            output_path: Directory, or a path ending in .xlsx

        Returns:
            Path to the generated file
        """
        filepath = self._target(result, model, Path(output_path))
        self.log(f"Exporting roster for '{model.schedule_name}'...")

        wb = Workbook()
        self._create_roster_sheet(wb, result, model)
        self._create_coverage_sheet(wb, result, model)
        self._create_fairness_sheet(wb, result)
        self._create_safety_sheet(wb, result)
        self._create_violations_sheet(wb, result)
        wb.save(filepath)

        self.send(
            MessageType.COMPLETE,
            {
                "type": "roster_exported",
                "filepath": str(filepath),
                "sheets": SHEETS,
            },
            receiver="Coordinator",
            correlation_id=result.run_metadata.run_id,
        )
        self.log(f"Roster saved to {filepath}", "success")
        return str(filepath)

    @staticmethod
    def _target(result: ScheduleRunResult, model, output_path: Path) -> Path:
        if output_path.suffix.lower() == ".xlsx":
            output_path.parent.mkdir(parents=True, exist_ok=True)
            return output_path
        output_path.mkdir(parents=True, exist_ok=True)
        slug = re.sub(r"[^A-Za-z0-9]+", "_", model.schedule_name).strip("_").lower() or "schedule"
        start = model.dates[0].isoformat() if model.dates else "empty"
        return output_path / f"roster_{slug}_{start}_{result.run_metadata.run_id}.xlsx"

    def _write_header(self, ws, headers: List[str], row: int = 1) -> None:
        for col, header in enumerate(headers, 1):
            cell = ws.cell(row=row, column=col, value=header)
            cell.fill = self.header_fill
            cell.font = self.header_font
            cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)
            cell.border = self.thin_border

    def _create_roster_sheet(self, wb: Workbook, result: ScheduleRunResult, model) -> None:
        """Create the main roster sheet."""
        ws = wb.active
        ws.title = "Roster"
        dates = model.dates
        assignments = result.assignment_set

        headers = ["ID", "Employee Name", "Level", "Team"] + [
            d.strftime("%a\n%d/%m") for d in dates
        ] + ["Total Hours"]
        self._write_header(ws, headers)

        ws.column_dimensions['A'].width = 10
        ws.column_dimensions['B'].width = 20
        ws.column_dimensions['C'].width = 7
        ws.column_dimensions['D'].width = 10
        for col in range(5, 5 + len(dates)):
            ws.column_dimensions[get_column_letter(col)].width = 7
        ws.freeze_panes = "E2"

        row = 2
        for employee in sorted(model.employees, key=lambda e: (e.team_id or "", e.name)):
            ws.cell(row=row, column=1, value=employee.id).border = self.thin_border
            ws.cell(row=row, column=2, value=employee.name).border = self.thin_border
            ws.cell(row=row, column=3, value=employee.level).border = self.thin_border
            ws.cell(row=row, column=4, value=employee.team_id or "").border = self.thin_border

            schedule = assignments.employee_schedule(employee.id)
            for col, target_date in enumerate(dates, 5):
                slot = schedule.get(target_date)
                if slot is not None:
                    cell = ws.cell(row=row, column=col, value=slot.shift_type.code)
                    cell.fill = self.shift_colors[slot.shift_type]
                else:
                    cell = ws.cell(row=row, column=col, value="/")
                    cell.fill = self.weekend_fill if target_date.weekday() >= 5 else self.off_fill
                cell.alignment = Alignment(horizontal="center")
                cell.border = self.thin_border

            hours_cell = ws.cell(row=row, column=5 + len(dates), value=assignments.hours_for(employee.id))
            hours_cell.alignment = Alignment(horizontal="center")
            hours_cell.border = self.thin_border
            row += 1

        # Legend
        legend_row = row + 2
        ws.cell(row=legend_row, column=1, value="Legend:").font = Font(bold=True)
        for i, shift_type in enumerate(ShiftType):
            start, end = DEFAULT_SHIFT_TIMES[shift_type]
            cell = ws.cell(row=legend_row + 1 + i, column=1, value=shift_type.code)
            cell.fill = self.shift_colors[shift_type]
            cell.alignment = Alignment(horizontal="center")
            ws.cell(row=legend_row + 1 + i, column=2,
                    value=f"{shift_type.value.title()} ({start:%H:%M}-{end:%H:%M})")
        cell = ws.cell(row=legend_row + 4, column=1, value="/")
        cell.fill = self.off_fill
        cell.alignment = Alignment(horizontal="center")
        ws.cell(row=legend_row + 4, column=2, value="Day Off (weekends shaded)")

    def _create_coverage_sheet(self, wb: Workbook, result: ScheduleRunResult, model) -> None:
        """Required vs assigned headcount per slot."""
        ws = wb.create_sheet("Coverage")
        self._write_header(ws, ["Date", "Day", "Shift", "Required", "Assigned", "Min Level", "Status"])

        row = 2
        for slot in model.slots:
            required = model.required[slot]
            assigned = result.assignment_set.headcount(slot)
            if assigned < required:
                status = "❌ Understaffed"
            elif assigned > required:
                status = "⚠️ Overstaffed"
            else:
                status = "✓ Covered"

            requirement = model.requirements[slot]
            data = [
                slot.date.strftime("%Y-%m-%d"),
                slot.date.strftime("%A"),
                slot.shift_type.value,
                required,
                assigned,
                requirement.min_experience_level or "",
                status,
            ]
            for col, value in enumerate(data, 1):
                cell = ws.cell(row=row, column=col, value=value)
                cell.border = self.thin_border
                if slot.date.weekday() >= 5:
                    cell.fill = self.weekend_fill
            row += 1

        for col, width in zip("ABCDEFG", [12, 12, 10, 10, 10, 10, 16]):
            ws.column_dimensions[col].width = width

    def _create_fairness_sheet(self, wb: Workbook, result: ScheduleRunResult) -> None:
        """Summary metrics plus per-employee workload."""
        ws = wb.create_sheet("Fairness")
        report = result.fairness_report

        ws.cell(row=1, column=1, value="FAIRNESS REPORT").font = Font(bold=True, size=14)
        summary = [
            ("Gini (hours)", round(report.gini, 4)),
            ("Target Gini", report.target),
            ("Grade", report.grade),
            ("Fairness Score", round(report.fairness_score, 1)),
            ("Night Gini", round(report.night_gini, 4)),
            ("Weekend Gini", round(report.weekend_gini, 4)),
            ("Shift Distribution Balance", f"{report.shift_distribution_balance:.1f}%"),
            ("Hours (min / mean / max)",
             f"{report.hours_min:.0f} / {report.hours_mean:.1f} / {report.hours_max:.0f}"),
        ]
        for i, (label, value) in enumerate(summary, 3):
            ws.cell(row=i, column=1, value=label).font = Font(bold=True)
            ws.cell(row=i, column=2, value=value)

        workloads = pd.DataFrame([
            {
                "Employee": w.employee_id,
                "Team": w.team_id or "",
                "Hours": w.hours,
                "Day": w.shift_counts.get(ShiftType.DAY, 0),
                "Evening": w.shift_counts.get(ShiftType.EVENING, 0),
                "Night": w.shift_counts.get(ShiftType.NIGHT, 0),
                "Weekend": w.weekend_shifts,
                "Balance": round(w.distribution_balance, 2),
            }
            for w in report.workloads
        ])
        start_row = len(summary) + 5
        for offset, values in enumerate(dataframe_to_rows(workloads, index=False, header=True)):
            if offset == 0:
                self._write_header(ws, list(values), row=start_row)
                continue
            for col, value in enumerate(values, 1):
                ws.cell(row=start_row + offset, column=col, value=value).border = self.thin_border

        ws.column_dimensions['A'].width = 28
        for col in "BCDEFGH":
            ws.column_dimensions[col].width = 11

    def _create_safety_sheet(self, wb: Workbook, result: ScheduleRunResult) -> None:
        """Fleet and per-employee safety scores with every detection."""
        ws = wb.create_sheet("Safety")
        report = result.pattern_safety_report

        ws.cell(row=1, column=1, value="PATTERN SAFETY REPORT").font = Font(bold=True, size=14)
        ws.cell(row=3, column=1, value="Fleet Score:").font = Font(bold=True)
        ws.cell(row=3, column=2, value=f"{report.fleet_score:.1f}/100")
        ws.cell(row=4, column=1, value="Critical Employees:").font = Font(bold=True)
        ws.cell(row=4, column=2, value=", ".join(report.critical_employees()) or "none")

        row = 6
        self._write_header(ws, ["Employee", "Team", "Score", "Risk", "Pattern", "Severity", "Dates", "Description"], row)
        row += 1
        for employee_id in sorted(report.employees):
            safety = report.employees[employee_id]
            base = [employee_id, safety.team_id or "", round(safety.score, 1), safety.risk_level]
            if not safety.detections:
                for col, value in enumerate(base, 1):
                    ws.cell(row=row, column=col, value=value)
                row += 1
                continue
            for detection in safety.detections:
                values = base + [
                    detection.pattern.value,
                    detection.severity.value,
                    ", ".join(d.isoformat() for d in detection.dates),
                    detection.description,
                ]
                for col, value in enumerate(values, 1):
                    cell = ws.cell(row=row, column=col, value=value)
                    if col == 6:
                        cell.font = self.severity_fonts[detection.severity]
                row += 1

        for col, width in zip("ABCDEFGH", [12, 10, 8, 10, 22, 10, 36, 60]):
            ws.column_dimensions[col].width = width

    def _create_violations_sheet(self, wb: Workbook, result: ScheduleRunResult) -> None:
        """Validator outcome, hard violations, soft warnings and explanations."""
        ws = wb.create_sheet("Violations")
        report = result.validator_report

        ws.cell(row=1, column=1, value="VALIDATION REPORT").font = Font(bold=True, size=14)
        ws.cell(row=3, column=1, value="Run State:")
        state_cell = ws.cell(row=3, column=2, value=result.state.value)
        if result.state == RunState.COMPLETED:
            state_cell.font = Font(color="006400", bold=True)
        else:
            state_cell.font = Font(color="8B0000", bold=True)
        ws.cell(row=4, column=1, value="Hard Violations:")
        ws.cell(row=4, column=2, value=len(report.violations))
        ws.cell(row=5, column=1, value="Soft Warnings:")
        ws.cell(row=5, column=2, value=len(report.warnings))

        row = 7
        headers = ["Kind", "Type", "Severity", "Employee", "Date", "Description", "Suggestion"]
        self._write_header(ws, headers, row)
        row += 1
        for kind, items in (("hard", report.violations), ("soft", report.warnings)):
            for v in items:
                values = [
                    kind,
                    v.constraint_type.value,
                    v.severity.value,
                    v.employee_id or "",
                    v.affected_date.isoformat() if v.affected_date else "",
                    v.description,
                    v.suggestions[0] if v.suggestions else "",
                ]
                for col, value in enumerate(values, 1):
                    cell = ws.cell(row=row, column=col, value=value)
                    if col == 3:
                        cell.font = self.severity_fonts[v.severity]
                row += 1

        if result.explanations:
            row += 1
            ws.cell(row=row, column=1, value="EXPLANATIONS").font = Font(bold=True, color="1F4E79")
            for line in result.explanations:
                row += 1
                ws.cell(row=row, column=1, value=line)

        for col, width in zip("ABCDEFG", [8, 20, 10, 12, 12, 60, 50]):
            ws.column_dimensions[col].width = width

    def _on_request(self, message: Message) -> None:
        """Handle export requests from other agents."""
        content = message.content
        if isinstance(content, dict) and content.get("type") == "export_roster":
            result = content.get("result")
            model = content.get("model")
            if result is not None and model is not None:
                filepath = self.execute(result, model, content.get("output_path", "output"))
                self.respond(message, {"filepath": filepath})
