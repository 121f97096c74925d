"""
Service d'export CSV/Excel / CSV/Excel export service.
Genere les exports du rapport d'emissions.
Generates the emission report exports.
"""

import csv
import io

from openpyxl import Workbook
from openpyxl.styles import Font

from routezy.schemas.emissions import EmissionReport

VEHICLE_FIELDS = ["vehicle_number", "vehicle_type", "fuel_type", "total_co2", "avg_co2_per_km", "is_ev"]
FUEL_TYPE_FIELDS = ["fuel_type", "total_co2", "percentage"]
TREND_FIELDS = ["period", "total_co2", "total_distance", "avg_efficiency"]
SUMMARY_FIELDS = ["metric", "value"]


class ExportService:
    """Export de donnees vers CSV/XLSX / Data export to CSV/XLSX."""

    @staticmethod
    def _cell(value):
        if value is True:
            return "true"
        if value is False:
            return "false"
        return value

    @staticmethod
    def to_csv(rows: list[dict], fields: list[str]) -> bytes:
        """Generer un CSV UTF-8 BOM avec separateur ';' / Generate UTF-8 BOM CSV with ';' separator."""
        output = io.StringIO()
        writer = csv.DictWriter(output, fieldnames=fields, delimiter=";", extrasaction="ignore")
        writer.writeheader()
        for row in rows:
            writer.writerow({f: ExportService._cell(row.get(f, "")) for f in fields})
        return ("\ufeff" + output.getvalue()).encode("utf-8")

    @staticmethod
    def _write_sheet(ws, rows: list[dict], fields: list[str]) -> None:
        # En-tetes / Headers
        for col_idx, field in enumerate(fields, 1):
            ws.cell(row=1, column=col_idx, value=field).font = Font(bold=True)
        # Donnees / Data rows
        for row_idx, row in enumerate(rows, 2):
            for col_idx, field in enumerate(fields, 1):
                ws.cell(row=row_idx, column=col_idx, value=ExportService._cell(row.get(field)))

    @staticmethod
    def to_xlsx(sheets: dict[str, tuple[list[dict], list[str]]]) -> bytes:
        """Classeur Excel, une feuille par bloc / Excel workbook, one sheet per block."""
        wb = Workbook()
        first = True
        for title, (rows, fields) in sheets.items():
            ws = wb.active if first else wb.create_sheet()
            ws.title = title
            ExportService._write_sheet(ws, rows, fields)
            first = False

        buf = io.BytesIO()
        wb.save(buf)
        return buf.getvalue()

    @staticmethod
    def report_sheets(report: EmissionReport) -> dict[str, tuple[list[dict], list[str]]]:
        """Decouper le rapport en tableaux / Split the report into tables."""
        summary_rows = [{"metric": k, "value": v} for k, v in report.summary.model_dump().items()]
        summary_rows += [
            {"metric": "compliance_status", "value": report.compliance_status},
            {"metric": "report_date", "value": report.report_date},
        ]
        summary_rows += [{"metric": "recommendation", "value": r} for r in report.recommendations]
        return {
            "Summary": (summary_rows, SUMMARY_FIELDS),
            "Vehicles": ([v.model_dump() for v in report.by_vehicle], VEHICLE_FIELDS),
            "Fuel types": ([f.model_dump() for f in report.by_fuel_type], FUEL_TYPE_FIELDS),
            "Trend": ([p.model_dump() for p in report.monthly_trend], TREND_FIELDS),
        }

    @staticmethod
    def report_to_csv(report: EmissionReport) -> bytes:
        """CSV des emissions par vehicule / Per-vehicle emissions CSV."""
        return ExportService.to_csv([v.model_dump() for v in report.by_vehicle], VEHICLE_FIELDS)

    @staticmethod
    def report_to_xlsx(report: EmissionReport) -> bytes:
        return ExportService.to_xlsx(ExportService.report_sheets(report))
