"""
Unit tests for Excel and CSV export.
"""

import io
import pytest
from datetime import date, datetime
from decimal import Decimal

import pandas as pd
from openpyxl import load_workbook

from core.export import DataExporter, EXCEL_COLUMNS, SHEET_NAME
from core.models import Expense, ExpenseItem


class TestDataExporter:
    """Test cases for DataExporter."""

    @pytest.fixture
    def exporter(self):
        return DataExporter()

    @pytest.fixture
    def sample_expenses(self):
        return [
            Expense(
                id=1,
                vendor="Corner Market",
                total=Decimal("23.45"),
                date=datetime(2024, 3, 5, 12, 30),
                category="groceries",
                created_at=datetime(2024, 3, 5, 13, 0),
                items=[
                    ExpenseItem(name="Bananas", quantity="2", price=Decimal("3.00")),
                    ExpenseItem(name="Coffee beans", quantity="1", price=Decimal("12.5")),
                ]
            ),
            Expense(
                id=2,
                vendor="Joe's Diner",
                total=Decimal("9.99"),
                date=datetime(2024, 3, 6, 19, 5),
                category="dining",
            ),
        ]

    def test_format_items(self, exporter, sample_expenses):
        formatted = exporter.format_items(sample_expenses[0].items)
        assert formatted == "Bananas (2) - $3.00; Coffee beans (1) - $12.50"

    def test_format_items_empty(self, exporter):
        assert exporter.format_items([]) == ""

    def test_export_to_excel(self, exporter, sample_expenses):
        content = exporter.export_to_excel(sample_expenses)

        assert isinstance(content, bytes)

        workbook = load_workbook(io.BytesIO(content))
        assert workbook.sheetnames == [SHEET_NAME]

        sheet = workbook[SHEET_NAME]
        header = [cell.value for cell in sheet[1]]
        assert header == ["Date", "Vendor", "Category", "Total", "Items"]
        assert all(cell.font.bold for cell in sheet[1])

        first_row = [cell.value for cell in sheet[2]]
        assert first_row == [
            "03/05/2024",
            "Corner Market",
            "groceries",
            "$23.45",
            "Bananas (2) - $3.00; Coffee beans (1) - $12.50",
        ]
        assert sheet.max_row == 3

    def test_excel_column_widths(self, exporter, sample_expenses):
        workbook = load_workbook(io.BytesIO(exporter.export_to_excel(sample_expenses)))
        sheet = workbook[SHEET_NAME]

        widths = [sheet.column_dimensions[letter].width for letter in "ABCDE"]
        assert widths == list(EXCEL_COLUMNS.values())

    def test_export_empty_excel_keeps_header(self, exporter):
        workbook = load_workbook(io.BytesIO(exporter.export_to_excel([])))
        sheet = workbook[SHEET_NAME]

        assert [cell.value for cell in sheet[1]] == list(EXCEL_COLUMNS)
        assert sheet.max_row == 1

    def test_export_to_csv(self, exporter, sample_expenses):
        csv_content = exporter.export_to_csv(sample_expenses)

        df = pd.read_csv(io.StringIO(csv_content), dtype=str, keep_default_na=False)

        assert list(df.columns) == ["ID", "Date", "Vendor", "Category", "Total", "Items", "Created_At"]
        assert len(df) == 2
        assert df.iloc[0]["Category"] == "Groceries"
        assert df.iloc[0]["Total"] == "23.45"
        assert df.iloc[1]["Vendor"] == "Joe's Diner"
        assert df.iloc[1]["Items"] == ""
        assert df.iloc[1]["Created_At"] == ""

    def test_export_empty_csv(self, exporter):
        assert exporter.export_to_csv([]) == ""

    @pytest.mark.parametrize("format_type, expected", [
        ("xlsx", "expenses-2024-03-05.xlsx"),
        ("CSV", "expenses-2024-03-05.csv"),
    ])
    def test_get_export_filename(self, exporter, format_type, expected):
        assert exporter.get_export_filename(format_type, on=date(2024, 3, 5)) == expected

    def test_get_export_filename_defaults_to_today(self, exporter):
        filename = exporter.get_export_filename("xlsx")
        assert filename == f"expenses-{date.today().isoformat()}.xlsx"


if __name__ == "__main__":
    pytest.main([__file__])
