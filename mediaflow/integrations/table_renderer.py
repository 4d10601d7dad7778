# integrations/table_renderer.py
from io import BytesIO
from typing import Sequence

from openpyxl import Workbook
from openpyxl.styles import Font

from mediaflow.core.logger import logger


class OpenpyxlTableRenderer:
    """Renders a header row plus data rows as an .xlsx workbook."""

    def __init__(self, sheet_title: str = "Report"):
        self.sheet_title = sheet_title

    def render_table(self, headers: Sequence[str], rows: Sequence[Sequence[str]]) -> bytes:
        wb = Workbook()
        ws = wb.active
        ws.title = self.sheet_title

        ws.append(list(headers))
        for cell in ws[1]:
            cell.font = Font(bold=True)

        for row in rows:
            ws.append(list(row))

        # Widen columns to the longest value so the document reads without resizing
        for index, header in enumerate(headers, start=1):
            longest = max([len(str(header))] + [len(str(row[index - 1])) for row in rows if len(row) >= index])
            ws.column_dimensions[ws.cell(row=1, column=index).column_letter].width = min(longest + 2, 80)

        buffer = BytesIO()
        wb.save(buffer)
        logger.debug(f"Rendered table with {len(rows)} rows and {len(headers)} columns")
        return buffer.getvalue()
