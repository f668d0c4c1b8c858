"""
User interface components for the expense tracker.
"""

from .components import (
    setup_sidebar,
    display_scan_section,
    display_review_form,
    display_expense_filters,
    format_currency
)

__all__ = [
    'setup_sidebar',
    'display_scan_section',
    'display_review_form',
    'display_expense_filters',
    'format_currency'
]
