"""
Core functionality modules for receipt scanning and expense tracking.
"""

from .models import ParsedReceipt, ParsedItem, Expense, ExpenseCreate, ExpenseUpdate, ExpenseFilters
from .database import DatabaseManager
from .parsing import ReceiptTextParser, ReceiptScanner, parse_receipt_text
from .export import DataExporter

__all__ = [
    'ParsedReceipt',
    'ParsedItem',
    'Expense',
    'ExpenseCreate',
    'ExpenseUpdate',
    'ExpenseFilters',
    'DatabaseManager',
    'ReceiptTextParser',
    'ReceiptScanner',
    'parse_receipt_text',
    'DataExporter'
]
