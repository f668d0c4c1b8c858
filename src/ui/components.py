"""
UI components for the expense tracker.
Provides reusable interface elements for scanning, reviewing and filtering expenses.
"""

import streamlit as st
import pandas as pd
import logging
from datetime import datetime, date, time
from decimal import Decimal, InvalidOperation
from typing import Optional, List, Dict, Any

from pydantic import ValidationError

from core.models import (
    CATEGORIES, MAX_TOTAL, ZERO_AMOUNT, ExpenseCreate, ExpenseFilters, ParsedItem, ParsedReceipt
)

logger = logging.getLogger(__name__)

ITEM_COLUMNS = ["name", "quantity", "price"]


def setup_sidebar():
    """Setup the main sidebar with quick stats and navigation."""
    with st.sidebar:
        st.header("🧾 Expense Tracker")

        if 'db_manager' in st.session_state:
            try:
                stats = st.session_state.db_manager.get_expense_stats()
                if stats.count > 0:
                    st.markdown("---")
                    st.subheader("📊 Quick Stats")
                    st.metric("Expenses", stats.count)
                    st.metric("Total Spending", format_currency(stats.total))
                    st.metric("Average Expense", format_currency(stats.average))

            except Exception as e:
                logger.error(f"Error loading sidebar stats: {e}")
                st.error("Error loading statistics")

        st.markdown("---")
        st.markdown("""
        ### 📍 Navigation
        - **Home**: Scan & review receipts
        - **Expenses**: Filter, edit & export
        - **Dashboard**: Spending overview
        """)

        with st.expander("❓ Tips"):
            st.markdown("""
            - Photograph receipts flat and well lit
            - PNG, JPG, GIF and PDF files are supported (max 10MB)
            - Always check the extracted fields before saving
            """)


def display_scan_section():
    """Display the receipt capture section and run the scan step."""
    st.subheader("📷 Scan Receipt")

    upload_tab, camera_tab = st.tabs(["Upload", "Camera"])
    with upload_tab:
        uploaded_file = st.file_uploader(
            "Choose a receipt",
            type=['png', 'jpg', 'jpeg', 'gif', 'pdf'],
            help="Upload a receipt image or PDF"
        )
    with camera_tab:
        captured_file = st.camera_input("Take a photo of the receipt")

    receipt_file = uploaded_file or captured_file
    if receipt_file is None:
        return

    if st.button("🚀 Scan Receipt", type="primary"):
        scanner = st.session_state.get('scanner')
        if scanner is None:
            st.error("Scanner not initialized")
            return

        with st.spinner("Extracting text from your receipt..."):
            result = scanner.scan(receipt_file.getvalue(), receipt_file.name)

        if not result.success:
            display_error_message(
                "Processing failed",
                "\n".join(result.errors)
            )
            if result.retryable:
                st.info("Please try again, ideally with a clearer photo.")
            return

        for warning in result.warnings:
            st.warning(warning)

        st.session_state.parsed_receipt = result.parsed
        st.session_state.raw_text = result.raw_text
        st.success("Receipt processed successfully. Review the extracted information and save your expense.")


def display_review_form(parsed: ParsedReceipt, db_manager) -> Optional[int]:
    """Display the review form for a parsed receipt and save it on submit.

    Args:
        parsed: Parser output to pre-fill the form with
        db_manager: Database manager used to persist the expense

    Returns:
        ID of the saved expense, or None if nothing was saved
    """
    st.subheader("📝 Review & Save")

    timestamp = parsed.to_timestamp() or datetime.now().replace(second=0, microsecond=0)
    category_values = list(CATEGORIES)

    with st.form("review_expense"):
        vendor = st.text_input("Vendor", value=parsed.vendor)

        col1, col2, col3 = st.columns(3)
        with col1:
            expense_date = st.date_input("Date", value=timestamp.date())
        with col2:
            expense_time = st.time_input("Time", value=timestamp.time())
        with col3:
            category = st.selectbox(
                "Category",
                options=category_values,
                index=category_values.index("other"),
                format_func=lambda value: CATEGORIES[value]
            )

        st.markdown("**Items**")
        edited_items = st.data_editor(
            items_to_dataframe(parsed),
            num_rows="dynamic",
            use_container_width=True,
            key="review_items"
        )

        col1, col2 = st.columns(2)
        with col1:
            total = st.text_input("Total", value=parsed.total)
        with col2:
            use_item_sum = st.checkbox("Calculate total from items", value=False)

        submitted = st.form_submit_button("💾 Save Expense", type="primary")

    if not submitted:
        return None

    try:
        expense = build_reviewed_expense(
            parsed, vendor, expense_date, expense_time, category,
            total, edited_items, use_item_sum
        )
        expense_id = db_manager.add_expense(expense)

    except (ValidationError, InvalidOperation, ValueError) as e:
        display_error_message("Invalid expense data", str(e))
        return None
    except Exception as e:
        logger.error(f"Failed to save expense: {e}")
        display_error_message("Failed to save expense", str(e))
        return None

    display_success_message("Expense saved successfully", {
        "Vendor": expense.vendor,
        "Total": format_currency(expense.total),
        "Items": len(expense.items)
    })
    return expense_id


def build_reviewed_expense(parsed: ParsedReceipt, vendor: str, expense_date: date,
                           expense_time: time, category: str, total: str,
                           items_df: pd.DataFrame, use_item_sum: bool = False) -> ExpenseCreate:
    """Apply the user's review edits to a parsed receipt and map it to an expense.

    Raises:
        ValidationError, InvalidOperation or ValueError for unusable input
    """
    items = dataframe_to_items(items_df)
    if use_item_sum:
        total = str(sum((Decimal(item.price) for item in items), Decimal("0")))

    if Decimal(total) > MAX_TOTAL:
        raise ValueError("Total seems unreasonably large")

    reviewed = parsed.model_copy(update={
        "vendor": vendor,
        "date": expense_date.isoformat(),
        "time": expense_time.strftime("%H:%M"),
        "total": total,
        "items": items,
    })
    return reviewed.to_expense(category=category)


def display_expense_filters(key_prefix: str = "filters") -> Optional[ExpenseFilters]:
    """Display date range and category filters.

    Args:
        key_prefix: Prefix for widget keys so the filters can appear on several pages

    Returns:
        ExpenseFilters, or None when the selection is invalid
    """
    st.header("🔍 Filters")

    date_from = st.date_input("From", value=None, key=f"{key_prefix}_from")
    date_to = st.date_input("To", value=None, key=f"{key_prefix}_to")

    category_options = ["all"] + list(CATEGORIES)
    category = st.selectbox(
        "Category",
        options=category_options,
        format_func=lambda value: "All" if value == "all" else CATEGORIES[value],
        key=f"{key_prefix}_category"
    )

    try:
        return ExpenseFilters(
            date_from=date_from,
            date_to=date_to,
            category=None if category == "all" else category
        )
    except ValidationError as e:
        st.error(e.errors()[0]["msg"])
        return None


def items_to_dataframe(parsed: ParsedReceipt) -> pd.DataFrame:
    """Build the editable item table from parsed items."""
    return pd.DataFrame(
        [item.model_dump() for item in parsed.items],
        columns=ITEM_COLUMNS
    )


def dataframe_to_items(df: pd.DataFrame) -> List[ParsedItem]:
    """Convert the edited item table back into parsed items, skipping blank rows."""
    def cell(value, default: str) -> str:
        if value is None or pd.isna(value):
            return default
        return str(value).strip() or default

    items = []
    for row in df.to_dict("records"):
        name = cell(row.get("name"), "")
        if not name:
            continue
        items.append(ParsedItem(
            name=name,
            quantity=cell(row.get("quantity"), "1"),
            price=cell(row.get("price"), ZERO_AMOUNT).lstrip("$") or ZERO_AMOUNT
        ))
    return items


def display_error_message(error: str, details: Optional[str] = None):
    """Display formatted error message.

    Args:
        error: Main error message
        details: Optional detailed error information
    """
    st.error(f"❌ {error}")

    if details:
        with st.expander("🔍 Error Details"):
            st.code(details, language="text")


def display_success_message(message: str, details: Optional[Dict[str, Any]] = None):
    """Display formatted success message.

    Args:
        message: Success message
        details: Optional additional details
    """
    st.success(f"✅ {message}")

    if details:
        with st.expander("📋 Details"):
            for key, value in details.items():
                st.text(f"{key}: {value}")


def format_currency(amount: Decimal) -> str:
    """Format a dollar amount for display."""
    return f"${amount:,.2f}"
