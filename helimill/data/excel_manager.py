import os
import pandas as pd
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter
from typing import Dict, Optional

from ..core.config import REPORT_DIR, REPORT_XLSX

HEADER_FILL = PatternFill(start_color="FFD9E1F2", end_color="FFD9E1F2", fill_type="solid")


class ReportWriter:
    def __init__(self, output_dir: Optional[str] = None, workbook_name: Optional[str] = None):
        self.output_dir = output_dir or REPORT_DIR
        self.workbook_name = workbook_name or REPORT_XLSX

    def _sheet_name(self, name: str) -> str:
        # Excel limits sheet names to 31 characters
        return name.replace("/", "_")[:31]

    def write(self, tables: Dict[str, pd.DataFrame], csv_copy: bool = True) -> str:
        """Write every table to one workbook (one sheet each) and optionally a CSV per table"""
        os.makedirs(self.output_dir, exist_ok=True)
        path = os.path.join(self.output_dir, self.workbook_name)

        with pd.ExcelWriter(path, engine="openpyxl") as writer:
            for name, df in tables.items():
                if df is None:
                    continue
                sheet = self._sheet_name(name)
                df.to_excel(writer, sheet_name=sheet, index=False)
                ws = writer.sheets[sheet]
                for cell in ws[1]:
                    cell.fill = HEADER_FILL
                    cell.font = Font(bold=True)
                for i, col in enumerate(df.columns, start=1):
                    ws.column_dimensions[get_column_letter(i)].width = max(12, len(str(col)) + 2)

                if csv_copy:
                    df.to_csv(os.path.join(self.output_dir, f"{name}.csv"), index=False)

        print(f"[report] Wrote {len(tables)} tables to {path}")
        return path
