"""
Expenses page for the expense tracker.
Lists saved expenses by date range and category, with edit, delete and export.
"""

import streamlit as st
import pandas as pd
import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
import sys
from pathlib import Path

from pydantic import ValidationError

# Add src directory to path
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from core.models import CATEGORIES, ExpenseUpdate
from core.export import DataExporter
from ui.components import (
    display_expense_filters, display_error_message, format_currency
)

logger = logging.getLogger(__name__)


def main():
    """Main function for the Expenses page."""
    st.set_page_config(
        page_title="Expenses - Receipt Expense Tracker",
        page_icon="🔍",
        layout="wide"
    )

    st.title("🔍 Expenses")
    st.markdown("Filter, correct and export your saved expenses")

    if 'db_manager' not in st.session_state:
        st.error("Database not initialized. Please return to the main page.")
        return

    db_manager = st.session_state.db_manager
    exporter = DataExporter()

    with st.sidebar:
        filters = display_expense_filters("expenses")

    if filters is None:
        return

    try:
        expenses = db_manager.get_expenses(filters)
        stats = db_manager.get_expense_stats(filters)
    except Exception as e:
        logger.error(f"Error loading expenses: {e}")
        display_error_message("Failed to fetch expenses", str(e))
        return

    col1, col2, col3 = st.columns(3)
    with col1:
        st.metric("Expenses", stats.count)
    with col2:
        st.metric("Total", format_currency(stats.total))
    with col3:
        st.metric("Average", format_currency(stats.average))

    st.markdown("---")

    if not expenses:
        st.info("No expenses found matching your criteria. Try adjusting your filters.")
        return

    df = pd.DataFrame([
        {
            "ID": expense.id,
            "Date": expense.date.strftime("%Y-%m-%d %H:%M"),
            "Vendor": expense.vendor,
            "Category": expense.category_label,
            "Total": format_currency(expense.total),
            "Items": len(expense.items),
        }
        for expense in expenses
    ])
    st.dataframe(df, use_container_width=True, hide_index=True)

    # Export
    col1, col2 = st.columns(2)
    with col1:
        st.download_button(
            "📥 Export to Excel",
            data=exporter.export_to_excel(expenses),
            file_name=exporter.get_export_filename("xlsx"),
            mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
        )
    with col2:
        st.download_button(
            "📄 Export to CSV",
            data=exporter.export_to_csv(expenses),
            file_name=exporter.get_export_filename("csv"),
            mime="text/csv"
        )

    st.markdown("---")

    selected_id = st.selectbox(
        "Select an expense to edit",
        options=[expense.id for expense in expenses],
        format_func=lambda expense_id: next(
            f"ID {e.id} - {e.vendor} ({format_currency(e.total)})"
            for e in expenses if e.id == expense_id
        )
    )
    selected = next(expense for expense in expenses if expense.id == selected_id)
    display_edit_form(selected, db_manager)


def display_edit_form(expense, db_manager):
    """Display edit form for a selected expense.

    Args:
        expense: Expense object to edit
        db_manager: Database manager instance
    """
    st.subheader(f"✏️ Edit Expense ID: {expense.id}")

    with st.expander("🧾 Items", expanded=True):
        for item in expense.items:
            st.text(f"{item.name} ({item.quantity or '1'}) - {format_currency(item.price)}")
        if not expense.items:
            st.text("No items")

    category_values = list(CATEGORIES)

    with st.form(f"edit_expense_{expense.id}"):
        col1, col2 = st.columns(2)

        with col1:
            new_vendor = st.text_input("Vendor", value=expense.vendor)
            new_total = st.text_input("Total", value=f"{expense.total:.2f}")

        with col2:
            new_date = st.date_input("Date", value=expense.date.date())
            new_time = st.time_input("Time", value=expense.date.time())
            new_category = st.selectbox(
                "Category",
                options=category_values,
                index=category_values.index(expense.category),
                format_func=lambda value: CATEGORIES[value]
            )

        col1, col2 = st.columns(2)
        with col1:
            save = st.form_submit_button("💾 Save Changes", type="primary")
        with col2:
            delete = st.form_submit_button("🗑️ Delete Expense")

    if save:
        try:
            updates = ExpenseUpdate(
                vendor=new_vendor,
                total=Decimal(new_total),
                date=datetime.combine(new_date, new_time),
                category=new_category
            )
            if db_manager.update_expense(expense.id, updates):
                st.success("✅ Expense updated")
                st.rerun()
            else:
                st.error("Expense not found")
        except (ValidationError, InvalidOperation) as e:
            display_error_message("Invalid expense data", str(e))
        except Exception as e:
            logger.error(f"Failed to update expense {expense.id}: {e}")
            display_error_message("Failed to update expense", str(e))

    if delete:
        try:
            if db_manager.delete_expense(expense.id):
                st.success("✅ Expense deleted")
                st.rerun()
            else:
                st.error("Expense not found")
        except Exception as e:
            logger.error(f"Failed to delete expense {expense.id}: {e}")
            display_error_message("Failed to delete expense", str(e))


if __name__ == "__main__":
    main()
