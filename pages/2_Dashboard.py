"""
Dashboard page for the expense tracker.
Shows spending totals by category and by month.
"""

import streamlit as st
import pandas as pd
import plotly.express as px
import logging
import sys
from pathlib import Path

# Add src directory to path
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from core.models import CATEGORIES
from ui.components import display_expense_filters, format_currency

logger = logging.getLogger(__name__)


def main():
    """Main function for the Dashboard page."""
    st.set_page_config(
        page_title="Dashboard - Receipt Expense Tracker",
        page_icon="📊",
        layout="wide"
    )

    st.title("📊 Dashboard")

    if 'db_manager' not in st.session_state:
        st.error("Database not initialized. Please return to the main page.")
        return

    db_manager = st.session_state.db_manager

    with st.sidebar:
        filters = display_expense_filters("dashboard")

    if filters is None:
        return

    try:
        stats = db_manager.get_expense_stats(filters)
        breakdown = db_manager.get_category_breakdown(filters)
        monthly = db_manager.get_monthly_totals(filters)
    except Exception as e:
        logger.error(f"Error loading dashboard data: {e}")
        st.error("Failed to fetch expense statistics")
        return

    if stats.count == 0:
        st.info("📝 No expenses yet. Scan a receipt on the main page to get started!")
        return

    col1, col2, col3 = st.columns(3)
    with col1:
        st.metric("Total Spending", format_currency(stats.total))
    with col2:
        st.metric("Expenses", stats.count)
    with col3:
        st.metric("Average Expense", format_currency(stats.average))

    st.markdown("---")

    col1, col2 = st.columns(2)

    with col1:
        categories_df = pd.DataFrame([
            {"Category": CATEGORIES.get(category, "Other"), "Amount": float(amount)}
            for category, amount in breakdown.items()
        ])
        fig_pie = px.pie(
            categories_df,
            values="Amount",
            names="Category",
            title="Spending by Category"
        )
        fig_pie.update_traces(textposition='inside', textinfo='percent+label')
        st.plotly_chart(fig_pie, use_container_width=True)

    with col2:
        monthly_df = pd.DataFrame([
            {"Month": row["month"], "Amount": float(row["total"]), "Expenses": row["count"]}
            for row in monthly
        ])
        fig_bar = px.bar(
            monthly_df,
            x="Month",
            y="Amount",
            hover_data=["Expenses"],
            title="Monthly Spending"
        )
        st.plotly_chart(fig_bar, use_container_width=True)


if __name__ == "__main__":
    main()
