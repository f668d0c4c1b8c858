"""
Receipt Expense Tracker - Main Entry Point
Scan a receipt, review the extracted fields and save it as an expense.
"""

import streamlit as st
import sys
import logging
from pathlib import Path

# Add src directory to Python path
src_path = Path(__file__).parent / "src"
sys.path.insert(0, str(src_path))

from core.config import configure_logging
from core.database import DatabaseManager
from core.parsing import ReceiptScanner
from ui.components import setup_sidebar, display_scan_section, display_review_form

configure_logging()

logger = logging.getLogger(__name__)


def initialize_app():
    """Initialize the application and database."""
    try:
        if 'db_manager' not in st.session_state:
            db_manager = DatabaseManager()
            db_manager.initialize_database()
            st.session_state.db_manager = db_manager

        if 'scanner' not in st.session_state:
            st.session_state.scanner = ReceiptScanner()

        if 'parsed_receipt' not in st.session_state:
            st.session_state.parsed_receipt = None

        logger.info("Application initialized successfully")
        return True

    except Exception as e:
        logger.error(f"Failed to initialize application: {str(e)}")
        st.error(f"Failed to initialize application: {str(e)}")
        return False


def main():
    """Main application function."""
    st.set_page_config(
        page_title="Receipt Expense Tracker",
        page_icon="🧾",
        layout="wide",
        initial_sidebar_state="expanded"
    )

    if not initialize_app():
        st.stop()

    st.title("🧾 Receipt Expense Tracker")
    st.markdown("Scan a receipt, check the extracted details and save it as an expense.")

    setup_sidebar()

    display_scan_section()

    parsed = st.session_state.parsed_receipt
    if parsed is not None:
        st.markdown("---")
        expense_id = display_review_form(parsed, st.session_state.db_manager)
        if expense_id is not None:
            st.session_state.parsed_receipt = None

        if st.session_state.get('raw_text'):
            with st.expander("🔤 Recognized text"):
                st.text(st.session_state.raw_text)


if __name__ == "__main__":
    main()
