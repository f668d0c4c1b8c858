"""
Export functionality for expense data.
Provides Excel and CSV export of expenses and their items.
"""

import io
import logging
from datetime import date
from typing import List, Optional

import pandas as pd
from openpyxl.styles import Font, PatternFill

from .models import Expense, ExpenseItem, CATEGORIES

logger = logging.getLogger(__name__)

SHEET_NAME = "Expenses"

# Column header -> width, in sheet order
EXCEL_COLUMNS = {
    "Date": 15,
    "Vendor": 20,
    "Category": 15,
    "Total": 12,
    "Items": 50,
}


class DataExporter:
    """Handles data export functionality for expense data."""

    def __init__(self):
        """Initialize the data exporter."""
        self.logger = logger

    def export_to_excel(self, expenses: List[Expense]) -> bytes:
        """Export expenses to an Excel workbook.

        Args:
            expenses: List of expenses to export

        Returns:
            .xlsx file content as bytes
        """
        try:
            rows = [
                {
                    "Date": expense.date.strftime("%m/%d/%Y"),
                    "Vendor": expense.vendor,
                    "Category": expense.category,
                    "Total": f"${expense.total:.2f}",
                    "Items": self.format_items(expense.items),
                }
                for expense in expenses
            ]
            df = pd.DataFrame(rows, columns=list(EXCEL_COLUMNS))

            output = io.BytesIO()
            with pd.ExcelWriter(output, engine="openpyxl") as writer:
                df.to_excel(writer, sheet_name=SHEET_NAME, index=False)
                self._style_worksheet(writer.sheets[SHEET_NAME])

            self.logger.info(f"Exported {len(expenses)} expenses to Excel")
            return output.getvalue()

        except Exception as e:
            self.logger.error(f"Excel export failed: {str(e)}")
            raise

    def export_to_csv(self, expenses: List[Expense]) -> str:
        """Export expenses to CSV format, one row per expense.

        Args:
            expenses: List of expenses to export

        Returns:
            CSV content as string
        """
        try:
            if not expenses:
                return ""

            df = pd.DataFrame([
                {
                    "ID": expense.id,
                    "Date": expense.date.isoformat(sep=' '),
                    "Vendor": expense.vendor,
                    "Category": CATEGORIES.get(expense.category, "Other"),
                    "Total": f"{expense.total:.2f}",
                    "Items": self.format_items(expense.items),
                    "Created_At": expense.created_at.isoformat() if expense.created_at else "",
                }
                for expense in expenses
            ])

            csv_content = df.to_csv(index=False)
            self.logger.info(f"Exported {len(expenses)} expenses to CSV")
            return csv_content

        except Exception as e:
            self.logger.error(f"CSV export failed: {str(e)}")
            raise

    @staticmethod
    def format_items(items: List[ExpenseItem]) -> str:
        """Render items as 'name (qty) - $price' joined by '; '."""
        return "; ".join(
            f"{item.name} ({item.quantity or '1'}) - ${item.price:.2f}"
            for item in items
        )

    def get_export_filename(self, format_type: str, on: Optional[date] = None) -> str:
        """Generate filename for export.

        Args:
            format_type: 'xlsx' or 'csv'
            on: Date to stamp into the name, today by default

        Returns:
            Generated filename
        """
        stamp = (on or date.today()).isoformat()
        return f"expenses-{stamp}.{format_type.lower()}"

    def _style_worksheet(self, worksheet) -> None:
        """Bold grey header row and fixed column widths."""
        header_font = Font(bold=True)
        header_fill = PatternFill(fill_type="solid", fgColor="FFE0E0E0")

        for cell in worksheet[1]:
            cell.font = header_font
            cell.fill = header_fill

        for index, width in enumerate(EXCEL_COLUMNS.values()):
            column_letter = chr(ord('A') + index)
            worksheet.column_dimensions[column_letter].width = width
