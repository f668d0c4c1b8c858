"""
Unit tests for receipt text parsing and the scan step.
"""

import re
import pytest
from datetime import date
from unittest.mock import Mock

from core.exceptions import OCRError
from core.models import ParsedReceipt, ParsedItem
from core.parsing import ReceiptTextParser, ReceiptScanner, parse_receipt_text, format_amount, RETRY_MESSAGE


AMOUNT_RE = re.compile(r'^[0-9]+\.[0-9]{2}$')


class TestReceiptTextParser:
    """Test cases for ReceiptTextParser."""

    @pytest.fixture
    def parser(self):
        return ReceiptTextParser()

    @pytest.fixture
    def sample_receipt_text(self):
        """Sample receipt text for testing extraction."""
        return """
        FRESH MARKET
        123 Main Street

        Date: 01/15/2024  Time: 10:30 AM

        Bananas 2 $3.00
        Whole Milk 1 $4.25
        Sourdough Bread      $5.50

        Total: $12.75

        Thank you for shopping!
        """

    def test_split_lines_drops_blank_lines(self, parser):
        lines = parser.split_lines("First\n\n   \nSecond\n\tThird")
        assert lines == ["First", "Second", "\tThird"]

    def test_split_lines_empty(self, parser):
        assert parser.split_lines("") == []
        assert parser.split_lines(None) == []

    def test_parse_complete_receipt(self, parser, sample_receipt_text):
        result = parser.parse(sample_receipt_text)

        assert result.vendor == "FRESH MARKET"
        assert result.date == "2024-01-15"
        assert result.time == "10:30"
        assert result.total == "12.75"
        assert [item.name for item in result.items] == ["Bananas", "Whole Milk", "Sourdough Bread"]
        assert result.items[2].quantity == "1"
        assert result.items[2].price == "5.50"

    @pytest.mark.parametrize("text", [
        "",
        "   \n\n  ",
        "$",
        "::::",
        "1/2/",
        "total",
        "$$$ 12:",
        "\x00\x01 garbage �",
        "9" * 60,
        "$" + "9" * 60,
        "Total: $" + "1" * 40 + ".999",
    ])
    def test_parse_never_raises(self, parser, text):
        result = parser.parse(text)

        assert result.vendor
        assert result.date
        assert result.time
        assert AMOUNT_RE.match(result.total)
        assert 1 <= len(result.items) <= 10

    def test_empty_text_uses_defaults(self, parser):
        result = parser.parse("")

        assert result.vendor == "Unknown Vendor"
        assert result.date == date.today().isoformat()
        assert result.time == "12:00"
        assert result.total == "0.00"
        assert result.items == [ParsedItem(name="Item 1", quantity="1", price="0.00")]

    def test_date_and_time_normalization(self, parser):
        receipt_date, receipt_time = parser.extract_date_time(["3/5/24 12:30 PM"])

        assert receipt_date == "2024-03-05"
        assert receipt_time == "12:30"

    def test_midnight_without_date(self, parser):
        receipt_date, receipt_time = parser.extract_date_time(["12:15 AM"])

        assert receipt_time == "00:15"
        assert receipt_date == date.today().isoformat()

    @pytest.mark.parametrize("line, expected", [
        ("1:05 pm", "13:05"),
        ("9:45", "09:45"),
        ("11:59 PM", "23:59"),
        ("7:00AM", "07:00"),
    ])
    def test_time_conversion(self, parser, line, expected):
        _, receipt_time = parser.extract_date_time([line])
        assert receipt_time == expected

    @pytest.mark.parametrize("line, expected", [
        ("12-25-2023", "2023-12-25"),
        ("Date 1/2/99", "2099-01-02"),
        ("07/04/2024", "2024-07-04"),
    ])
    def test_date_formats(self, parser, line, expected):
        receipt_date, _ = parser.extract_date_time([line])
        assert receipt_date == expected

    def test_implausible_date_accepted_verbatim(self, parser):
        receipt_date, _ = parser.extract_date_time(["45/13/2024"])
        assert receipt_date == "2024-45-13"

    def test_first_date_and_time_win_across_lines(self, parser):
        lines = ["Printed 10:00", "01/02/2023", "02/03/2024 11:00"]
        receipt_date, receipt_time = parser.extract_date_time(lines)

        assert receipt_date == "2023-01-02"
        assert receipt_time == "10:00"

    @pytest.mark.parametrize("text", [
        "Shop name\n١٢:٣٠",
        "Corner Market\n３/５/２４ １２:３０ PM\nTotal: $１２.００",
        "Corner Market\n٣/٥/٢٤ ١٠:١٥\nTotal ٩.٩٩",
    ])
    def test_non_ascii_digits_are_not_extracted(self, parser, text):
        result = parser.parse(text)

        assert re.fullmatch(r'[0-9]{4}-[0-9]{2}-[0-9]{2}', result.date)
        assert re.fullmatch(r'[0-9]{2}:[0-9]{2}', result.time)
        assert result.date == date.today().isoformat()
        assert result.time == "12:00"
        assert result.total == "0.00"
        assert result.items == [ParsedItem(name="Item 1", quantity="1", price="0.00")]

    def test_ascii_date_found_after_fullwidth_one(self, parser):
        receipt_date, receipt_time = parser.extract_date_time(["３/５/２４", "3/6/24 9:05"])

        assert receipt_date == "2024-03-06"
        assert receipt_time == "09:05"

    def test_vendor_may_start_with_non_ascii_digit(self, parser):
        assert parser.extract_vendor(["１２３ Fullwidth Plaza"]) == "１２３ Fullwidth Plaza"

    def test_labeled_total_beats_larger_amount(self, parser):
        lines = ["Corner Market", "Total: $23.45", "Gift card $99.00"]
        assert parser.extract_total(lines) == "23.45"

    def test_unlabeled_total_takes_maximum(self, parser):
        lines = ["Corner Market", "$4.50", "$12.00"]
        assert parser.extract_total(lines) == "12.00"

    @pytest.mark.parametrize("line, expected", [
        ("AMOUNT 7", "7.00"),
        ("sum: 3.5", "3.50"),
        ("Grand Total $8.654", "8.65"),
        ("TOTAL:  $0.125", "0.13"),
    ])
    def test_label_variants(self, parser, line, expected):
        assert parser.extract_total([line]) == expected

    def test_total_without_amounts(self, parser):
        assert parser.extract_total(["Thanks", "Come again"]) == "0.00"

    def test_item_line_match(self, parser):
        items = parser.extract_items(["Bananas 2 $3.00"])
        assert items == [ParsedItem(name="Bananas", quantity="2", price="3.00")]

    def test_priced_line_becomes_item(self, parser):
        items = parser.extract_items(["Coffee beans $12.5"])
        assert items == [ParsedItem(name="Coffee beans", quantity="1", price="12.50")]

    def test_priced_line_rules(self, parser):
        lines = [
            "Tea $2.00",             # too short
            "Subtotal: $20.00",      # mentions total
            "$5.00 ab     ",         # name too short once the price is removed
        ]
        assert parser.extract_items(lines) == []

    def test_items_capped_at_ten(self, parser):
        lines = [f"Product {n} 1 ${n}.00" for n in range(1, 16)]
        items = parser.extract_items(lines)

        assert len(items) == 10
        assert items[0].name == "Product 1"
        assert items[-1].name == "Product 10"

    def test_fallback_item_carries_total(self, parser):
        result = parser.parse("Corner Shop\n$7.25")

        assert result.total == "7.25"
        assert result.items == [ParsedItem(name="Item 1", quantity="1", price="7.25")]

    def test_vendor_basic(self, parser):
        assert parser.extract_vendor(["  STARBUCKS COFFEE  ", "Seattle"]) == "STARBUCKS COFFEE"

    def test_vendor_skips_numbers_prices_and_short_lines(self, parser):
        lines = ["123 Main St", "$4.00", "ABC", "Joe's Diner"]
        assert parser.extract_vendor(lines) == "Joe's Diner"

    def test_vendor_only_first_five_lines(self, parser):
        lines = ["1", "2", "$3", "4", "abc", "Late Vendor Name"]
        assert parser.extract_vendor(lines) == "Unknown Vendor"

    def test_parse_receipt_text_helper(self):
        result = parse_receipt_text("Joe's Diner\nTotal: $9.99")

        assert isinstance(result, ParsedReceipt)
        assert result.vendor == "Joe's Diner"
        assert result.total == "9.99"

    def test_parse_is_idempotent(self, parser, sample_receipt_text):
        assert parser.parse(sample_receipt_text) == parser.parse(sample_receipt_text)


class TestFormatAmount:
    """Test cases for amount formatting."""

    @pytest.mark.parametrize("value, expected", [
        ("4", "4.00"),
        ("4.", "4.00"),
        ("4.5", "4.50"),
        ("004.505", "4.51"),
        ("1234567890123456789012345678901234", "1234567890123456789012345678901234.00"),
    ])
    def test_two_fraction_digits(self, value, expected):
        assert format_amount(value) == expected


class TestReceiptScanner:
    """Test cases for the scan step."""

    @pytest.fixture
    def recognizer(self):
        return Mock()

    @pytest.fixture
    def scanner(self, recognizer):
        return ReceiptScanner(recognizer=recognizer)

    def test_scan_success(self, scanner, recognizer):
        recognizer.recognize.return_value = "Joe's Diner\n3/5/24 12:30 PM\nTotal: $23.45"

        result = scanner.scan(b"image bytes", "receipt.jpg")

        assert result.success is True
        assert result.parsed.vendor == "Joe's Diner"
        assert result.parsed.date == "2024-03-05"
        assert result.parsed.total == "23.45"
        assert result.raw_text.startswith("Joe's Diner")
        assert result.processing_time is not None
        recognizer.recognize.assert_called_once()

    def test_scan_recognition_failure_is_retryable(self, scanner, recognizer):
        recognizer.recognize.side_effect = OCRError("engine crashed")

        result = scanner.scan(b"image bytes", "receipt.png")

        assert result.success is False
        assert result.retryable is True
        assert result.parsed is None
        assert result.errors == [RETRY_MESSAGE]
        assert "Please try again" in result.errors[0]

    def test_scan_empty_text_still_parses(self, scanner, recognizer):
        recognizer.recognize.return_value = "   "

        result = scanner.scan(b"image bytes", "receipt.png")

        assert result.success is True
        assert result.parsed.vendor == "Unknown Vendor"
        assert result.warnings

    def test_scan_unsupported_file_type(self, scanner, recognizer):
        result = scanner.scan(b"content", "notes.docx")

        assert result.success is False
        assert result.retryable is False
        assert "Unsupported file type" in result.errors[0]
        recognizer.recognize.assert_not_called()

    def test_scan_empty_upload(self, scanner, recognizer):
        result = scanner.scan(b"", "receipt.jpg")

        assert result.success is False
        assert "empty" in result.errors[0]

    def test_scan_oversized_upload(self, scanner, recognizer):
        result = scanner.scan(b"x" * (10 * 1024 * 1024 + 1), "receipt.jpg")

        assert result.success is False
        assert "exceeds maximum allowed size" in result.errors[0]
        recognizer.recognize.assert_not_called()


if __name__ == "__main__":
    pytest.main([__file__])
