"""
Data models using Pydantic for the expense tracker.
Covers parsed receipt output, scan results and persisted expense records.
"""

import logging
from datetime import datetime, date
from decimal import Decimal, ROUND_HALF_UP, localcontext
from typing import Optional, List, Dict

from pydantic import BaseModel, Field, field_validator, model_validator

logger = logging.getLogger(__name__)

UNKNOWN_VENDOR = "Unknown Vendor"
DEFAULT_TIME = "12:00"
ZERO_AMOUNT = "0.00"

# Expense categories offered in the review form (value -> label)
CATEGORIES: Dict[str, str] = {
    "groceries": "Groceries",
    "gas": "Gas & Transportation",
    "dining": "Dining & Food",
    "shopping": "Shopping",
    "utilities": "Utilities",
    "other": "Other",
}

TWO_PLACES = Decimal("0.01")
MAX_TOTAL = Decimal("99999999.99")

# Column limits for stored text
MAX_NAME_LENGTH = 200
MAX_QUANTITY_LENGTH = 20


def normalize_category(value: Optional[str]) -> str:
    """Map a category value or label onto a known category value.

    Unknown or empty categories fall back to "other".
    """
    if not value:
        return "other"
    lowered = value.strip().lower()
    for key, label in CATEGORIES.items():
        if lowered == key or lowered == label.lower():
            return key
    return "other"


class ParsedItem(BaseModel):
    """A line item guessed from receipt text. All fields are display strings."""

    name: str
    quantity: str = "1"
    price: str = ZERO_AMOUNT


class ParsedReceipt(BaseModel):
    """Best-guess receipt fields handed to the review step."""

    vendor: str = Field(UNKNOWN_VENDOR, description="Merchant name")
    date: str = Field(default_factory=lambda: date.today().isoformat(), description="YYYY-MM-DD")
    time: str = Field(DEFAULT_TIME, description="24-hour HH:MM")
    total: str = Field(ZERO_AMOUNT, description="Amount with two fraction digits")
    items: List[ParsedItem] = Field(default_factory=list, description="Up to 10 line items")

    def to_timestamp(self) -> Optional[datetime]:
        """Combine date and time into a timestamp.

        Returns:
            datetime, or None when the parsed values do not form a valid timestamp
        """
        try:
            return datetime.strptime(f"{self.date} {self.time}", "%Y-%m-%d %H:%M")
        except ValueError:
            logger.warning(f"Parsed date/time is not a valid timestamp: {self.date} {self.time}")
            return None

    def to_expense(self, category: str = "other",
                   receipt_image_path: Optional[str] = None) -> "ExpenseCreate":
        """Map the parsed receipt into an expense ready for saving.

        Text fields longer than the stored limits are truncated. A timestamp that
        does not parse falls back to the current minute, and a total above
        MAX_TOTAL falls back to zero, so any parser output maps cleanly.

        Args:
            category: User-chosen category
            receipt_image_path: Optional stored receipt file

        Returns:
            ExpenseCreate built from the parsed fields
        """
        timestamp = self.to_timestamp()
        if timestamp is None:
            timestamp = datetime.now().replace(second=0, microsecond=0)
            logger.info("Using current time as fallback")

        total = Decimal(self.total)
        if total > MAX_TOTAL:
            logger.warning(f"Parsed total {self.total} exceeds {MAX_TOTAL}, using {ZERO_AMOUNT}")
            total = Decimal(ZERO_AMOUNT)

        items = [
            ExpenseItem(
                name=item.name.strip()[:MAX_NAME_LENGTH] or f"Item {index}",
                quantity=item.quantity[:MAX_QUANTITY_LENGTH] or "1",
                price=Decimal(item.price)
            )
            for index, item in enumerate(self.items, start=1)
        ]

        return ExpenseCreate(
            vendor=self.vendor.strip()[:MAX_NAME_LENGTH],
            total=total,
            date=timestamp,
            category=category,
            receipt_image_path=receipt_image_path,
            items=items
        )


class ScanResult(BaseModel):
    """Outcome of scanning a single receipt upload."""

    success: bool = Field(..., description="Whether text was recognized and parsed")
    raw_text: Optional[str] = Field(None, description="Text returned by the recognizer")
    parsed: Optional[ParsedReceipt] = Field(None, description="Parsed receipt fields")
    errors: List[str] = Field(default_factory=list, description="User-visible errors")
    warnings: List[str] = Field(default_factory=list, description="Processing warnings")
    retryable: bool = Field(False, description="Whether the user should simply try again")
    processing_time: Optional[float] = Field(None, description="Processing time in seconds")


class ExpenseItem(BaseModel):
    """A purchased item belonging to an expense."""

    id: Optional[int] = Field(None, description="Database primary key")
    name: str = Field(..., min_length=1, max_length=MAX_NAME_LENGTH)
    quantity: Optional[str] = Field("1", max_length=MAX_QUANTITY_LENGTH)
    price: Decimal = Field(..., ge=0)

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        if not v.strip():
            raise ValueError('Item name cannot be empty')
        return v.strip()

    @field_validator('price')
    @classmethod
    def round_price(cls, v):
        # Parsed prices can carry more digits than the default context precision
        with localcontext() as ctx:
            ctx.prec = max(28, v.adjusted() + 4)
            return v.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


class ExpenseCreate(BaseModel):
    """Model for creating new expenses."""

    vendor: str = Field(..., min_length=1, max_length=MAX_NAME_LENGTH, description="Vendor/merchant name")
    total: Decimal = Field(..., ge=0, description="Expense total")
    date: datetime = Field(..., description="Receipt date and time")
    category: str = Field("other", description="Expense category")
    receipt_image_path: Optional[str] = Field(None, description="Stored receipt file")
    items: List[ExpenseItem] = Field(default_factory=list)

    @field_validator('vendor')
    @classmethod
    def validate_vendor(cls, v):
        """Trim and validate vendor name."""
        if not v or not v.strip():
            raise ValueError('Vendor name cannot be empty')
        return v.strip()

    @field_validator('total')
    @classmethod
    def validate_total(cls, v):
        """Round to cents and reject unreasonable totals."""
        if v > MAX_TOTAL:
            raise ValueError('Total seems unreasonably large')
        return v.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)

    @field_validator('category', mode='before')
    @classmethod
    def validate_category(cls, v):
        return normalize_category(v)

    model_config = {
        "json_schema_extra": {
            "example": {
                "vendor": "Corner Market",
                "total": "23.45",
                "date": "2024-03-05T12:30:00",
                "category": "groceries",
                "items": [{"name": "Bananas", "quantity": "2", "price": "3.00"}]
            }
        }
    }


class Expense(ExpenseCreate):
    """Persisted expense with its items."""

    id: int = Field(..., description="Database primary key")
    created_at: Optional[datetime] = Field(None, description="Record creation timestamp")

    @property
    def category_label(self) -> str:
        return CATEGORIES.get(self.category, "Other")


class ExpenseUpdate(BaseModel):
    """Model for updating existing expenses. Items, when given, replace all existing items."""

    vendor: Optional[str] = Field(None, min_length=1, max_length=MAX_NAME_LENGTH)
    total: Optional[Decimal] = Field(None, ge=0)
    date: Optional[datetime] = Field(None)
    category: Optional[str] = Field(None)
    receipt_image_path: Optional[str] = Field(None)
    items: Optional[List[ExpenseItem]] = Field(None)

    @field_validator('vendor')
    @classmethod
    def validate_vendor(cls, v):
        if v is not None and not v.strip():
            raise ValueError('Vendor name cannot be empty')
        return v.strip() if v is not None else v

    @field_validator('total')
    @classmethod
    def round_total(cls, v):
        return v.quantize(TWO_PLACES, rounding=ROUND_HALF_UP) if v is not None else v

    @field_validator('category', mode='before')
    @classmethod
    def validate_category(cls, v):
        return normalize_category(v) if v is not None else v


class ExpenseFilters(BaseModel):
    """Model for date range and category queries."""

    date_from: Optional[date] = Field(None, description="First day of range (inclusive)")
    date_to: Optional[date] = Field(None, description="Last day of range (inclusive)")
    category: Optional[str] = Field(None, description="Filter by category")

    @field_validator('category', mode='before')
    @classmethod
    def validate_category(cls, v):
        return normalize_category(v) if v else None

    @model_validator(mode='after')
    def check_date_range(self):
        if self.date_from and self.date_to and self.date_from > self.date_to:
            raise ValueError('Start date must be on or before end date')
        return self

    def as_dict(self) -> Dict[str, str]:
        """Applied filters as display strings, omitting unset ones."""
        applied = {}
        if self.date_from:
            applied["date_from"] = self.date_from.isoformat()
        if self.date_to:
            applied["date_to"] = self.date_to.isoformat()
        if self.category:
            applied["category"] = self.category
        return applied


class ExpenseStats(BaseModel):
    """Aggregate figures for a set of expenses."""

    total: Decimal = Field(Decimal("0.00"), ge=0)
    count: int = Field(0, ge=0)
    average: Decimal = Field(Decimal("0.00"), ge=0)
