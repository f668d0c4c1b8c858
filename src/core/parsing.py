"""
Receipt text parsing and the scan step for the expense tracker.
Turns raw OCR text into a best-guess receipt that the user reviews before saving.
"""

import re
import logging
from datetime import datetime, date
from decimal import Decimal, ROUND_HALF_UP, localcontext
from pathlib import Path
from typing import Optional, List, Tuple

from .config import settings
from .exceptions import OCRError
from .models import (
    ParsedItem, ParsedReceipt, ScanResult,
    UNKNOWN_VENDOR, DEFAULT_TIME, ZERO_AMOUNT
)
from .ocr import TextRecognizer

logger = logging.getLogger(__name__)

RETRY_MESSAGE = "Failed to extract text from receipt. Please try again."


def format_amount(value: str) -> str:
    """Format a matched number with exactly two fraction digits."""
    with localcontext() as ctx:
        ctx.prec = max(28, len(value) + 3)
        return str(Decimal(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


class ReceiptTextParser:
    """Heuristic extraction of vendor, date, time, total and items from OCR text.

    Every extractor falls back to a default instead of failing, so a parse
    always yields a fully populated ParsedReceipt.
    """

    VENDOR_SCAN_LINES = 5
    MAX_ITEMS = 10

    # Month first: M/D/YY, MM-DD-YYYY. ASCII digits only
    DATE_PATTERN = re.compile(r'([0-9]{1,2})[/\-]([0-9]{1,2})[/\-]([0-9]{2,4})')
    TIME_PATTERN = re.compile(r'([0-9]{1,2}):([0-9]{2})\s*(AM|PM)?', re.IGNORECASE)
    TOTAL_PATTERN = re.compile(r'(?:total|amount|sum)[:\s]*\$?([0-9]+\.?[0-9]*)', re.IGNORECASE)
    PRICE_PATTERN = re.compile(r'\$([0-9]+\.?[0-9]*)')
    # name, quantity, $price
    ITEM_PATTERN = re.compile(r'(.+?)\s+([0-9]+\.?[0-9]*)\s*\$([0-9]+\.?[0-9]*)')

    def __init__(self):
        self.logger = logger

    def parse(self, text: str) -> ParsedReceipt:
        """Parse raw receipt text.

        Args:
            text: Newline-delimited text from the recognizer

        Returns:
            ParsedReceipt with every field populated
        """
        lines = self.split_lines(text)

        vendor = self.extract_vendor(lines)
        receipt_date, receipt_time = self.extract_date_time(lines)
        total = self.extract_total(lines)
        items = self.extract_items(lines)

        if not items:
            items = [ParsedItem(name="Item 1", quantity="1", price=total)]

        self.logger.debug(
            f"Parsed receipt: vendor={vendor!r} date={receipt_date} time={receipt_time} "
            f"total={total} items={len(items)}"
        )

        return ParsedReceipt(
            vendor=vendor,
            date=receipt_date,
            time=receipt_time,
            total=total,
            items=items
        )

    @staticmethod
    def split_lines(text: Optional[str]) -> List[str]:
        """Split text into lines, dropping blank ones and keeping order."""
        if not text:
            return []
        return [line for line in text.splitlines() if line.strip()]

    def extract_vendor(self, lines: List[str]) -> str:
        """Return the first plausible merchant name near the top of the receipt."""
        for line in lines[:self.VENDOR_SCAN_LINES]:
            candidate = line.strip()
            if len(candidate) > 3 and not re.match(r'[0-9]', candidate) and '$' not in candidate:
                return candidate
        return UNKNOWN_VENDOR

    def extract_date_time(self, lines: List[str]) -> Tuple[str, str]:
        """Find the first date and the first time, independently.

        Returns:
            Tuple of (YYYY-MM-DD, HH:MM) with defaults for anything not found
        """
        receipt_date = None
        receipt_time = None

        for line in lines:
            if receipt_date is None:
                date_match = self.DATE_PATTERN.search(line)
                if date_match:
                    month, day, year = date_match.groups()
                    if len(year) == 2:
                        year = f"20{year}"
                    receipt_date = f"{year}-{month.zfill(2)}-{day.zfill(2)}"

            if receipt_time is None:
                time_match = self.TIME_PATTERN.search(line)
                if time_match:
                    hours, minutes, meridiem = time_match.groups()
                    hour_value = int(hours)
                    if meridiem and meridiem.upper() == 'PM' and hour_value != 12:
                        hours = str(hour_value + 12)
                    elif meridiem and meridiem.upper() == 'AM' and hour_value == 12:
                        hours = '00'
                    receipt_time = f"{hours.zfill(2)}:{minutes}"

            if receipt_date is not None and receipt_time is not None:
                break

        return (
            receipt_date or date.today().isoformat(),
            receipt_time or DEFAULT_TIME
        )

    def extract_total(self, lines: List[str]) -> str:
        """Prefer a labeled total; otherwise take the largest $ amount."""
        for line in lines:
            total_match = self.TOTAL_PATTERN.search(line)
            if total_match:
                return format_amount(total_match.group(1))

        max_amount = None
        for line in lines:
            price_match = self.PRICE_PATTERN.search(line)
            if price_match:
                amount = Decimal(price_match.group(1))
                if max_amount is None or amount > max_amount:
                    max_amount = amount

        if max_amount is None or max_amount <= 0:
            return ZERO_AMOUNT
        return format_amount(str(max_amount))

    def extract_items(self, lines: List[str]) -> List[ParsedItem]:
        """Collect up to MAX_ITEMS line items in encounter order."""
        items = []

        for line in lines:
            item_match = self.ITEM_PATTERN.search(line)
            if item_match:
                name, quantity, price = item_match.groups()
                items.append(ParsedItem(
                    name=name.strip(),
                    quantity=quantity,
                    price=format_amount(price)
                ))
                continue

            # Lines with a price that are not the total might still be items
            price_match = self.PRICE_PATTERN.search(line)
            if price_match and len(line) > 10 and 'total' not in line.lower():
                name = self.PRICE_PATTERN.sub('', line, count=1).strip()
                if len(name) > 2:
                    items.append(ParsedItem(
                        name=name,
                        quantity="1",
                        price=format_amount(price_match.group(1))
                    ))

        return items[:self.MAX_ITEMS]


_default_parser = ReceiptTextParser()


def parse_receipt_text(text: str) -> ParsedReceipt:
    """Parse raw receipt text with the default parser."""
    return _default_parser.parse(text)


class ReceiptScanner:
    """Runs the scan step: validate upload, recognize text, parse it."""

    def __init__(self, recognizer: Optional[TextRecognizer] = None,
                 parser: Optional[ReceiptTextParser] = None):
        """Initialize the scanner.

        Args:
            recognizer: Text recognizer, created on demand if omitted
            parser: Receipt text parser, default parser if omitted
        """
        self.recognizer = recognizer or TextRecognizer()
        self.parser = parser or _default_parser
        self.logger = logger

    def scan(self, content: bytes, filename: str) -> ScanResult:
        """Scan an uploaded receipt and return the parsed fields for review.

        Args:
            content: Raw file content as bytes
            filename: Original filename

        Returns:
            ScanResult; recognition failures are reported as retryable errors
        """
        start_time = datetime.now()

        validation_error = self._validate_upload(content, filename)
        if validation_error:
            self.logger.warning(f"Rejected upload {filename}: {validation_error}")
            return ScanResult(success=False, errors=[validation_error], retryable=False)

        try:
            text = self.recognizer.recognize(content, filename, settings.OCR_LANGUAGE)
        except OCRError as e:
            self.logger.error(f"OCR processing error for {filename}: {e.message}")
            return ScanResult(
                success=False,
                errors=[RETRY_MESSAGE],
                retryable=True,
                processing_time=(datetime.now() - start_time).total_seconds()
            )

        warnings = []
        if not text.strip():
            warnings.append("No text was recognized; all fields use default values")

        parsed = self.parser.parse(text)
        processing_time = (datetime.now() - start_time).total_seconds()
        self.logger.info(f"Scanned {filename} in {processing_time:.2f} seconds")

        return ScanResult(
            success=True,
            raw_text=text,
            parsed=parsed,
            warnings=warnings,
            processing_time=processing_time
        )

    def _validate_upload(self, content: bytes, filename: str) -> Optional[str]:
        """Return an error message for unusable uploads, None otherwise."""
        file_ext = Path(filename).suffix.lower()
        if file_ext not in TextRecognizer.SUPPORTED_EXTENSIONS:
            return f"Unsupported file type: {file_ext or filename}"

        if not content:
            return "Uploaded file is empty"

        if len(content) > settings.MAX_UPLOAD_BYTES:
            max_mb = settings.MAX_UPLOAD_BYTES // (1024 * 1024)
            return f"File size ({len(content):,} bytes) exceeds maximum allowed size ({max_mb}MB)"

        return None
