"""
Database operations for the expense tracker.
Handles SQLite database initialization, CRUD operations, and filtered queries.
"""

import sqlite3
import logging
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Dict, Any, Tuple

from .config import settings
from .models import Expense, ExpenseCreate, ExpenseItem, ExpenseUpdate, ExpenseFilters, ExpenseStats

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal("0.01")


def _to_money(value: Any) -> Decimal:
    return Decimal(str(value or 0)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


class DatabaseManager:
    """Manages all database operations for expense data."""

    # Expense IDs per item lookup; older SQLite builds allow 999 parameters
    ITEM_QUERY_BATCH = 500

    def __init__(self, db_path: Optional[str] = None):
        """Initialize database manager.

        Args:
            db_path: Path to SQLite database file, defaults to settings.DATABASE_PATH
        """
        self.db_path = db_path or settings.DATABASE_PATH
        self.logger = logger

    @contextmanager
    def get_connection(self):
        """Context manager for database connections with automatic cleanup."""
        conn = None
        try:
            conn = sqlite3.connect(self.db_path)
            conn.row_factory = sqlite3.Row  # Enable column access by name
            conn.execute("PRAGMA foreign_keys = ON")
            yield conn
        except Exception as e:
            if conn:
                conn.rollback()
            self.logger.error(f"Database error: {str(e)}")
            raise
        finally:
            if conn:
                conn.close()

    def initialize_database(self) -> None:
        """Initialize database with proper schema and indexes."""
        try:
            with self.get_connection() as conn:
                cursor = conn.cursor()

                cursor.execute("""
                    CREATE TABLE IF NOT EXISTS expenses (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        vendor TEXT NOT NULL,
                        total DECIMAL(10,2) NOT NULL CHECK (total >= 0),
                        date TIMESTAMP NOT NULL,
                        category TEXT NOT NULL DEFAULT 'other',
                        receipt_image_path TEXT,
                        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                    )
                """)

                cursor.execute("""
                    CREATE TABLE IF NOT EXISTS expense_items (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        expense_id INTEGER NOT NULL REFERENCES expenses(id) ON DELETE CASCADE,
                        name TEXT NOT NULL,
                        quantity TEXT,
                        price DECIMAL(10,2) NOT NULL CHECK (price >= 0)
                    )
                """)

                cursor.execute("CREATE INDEX IF NOT EXISTS idx_expenses_date ON expenses(date)")
                cursor.execute("CREATE INDEX IF NOT EXISTS idx_expenses_category ON expenses(category)")
                cursor.execute("CREATE INDEX IF NOT EXISTS idx_expense_items_expense ON expense_items(expense_id)")

                conn.commit()
                self.logger.info("Database initialized successfully")

        except Exception as e:
            self.logger.error(f"Failed to initialize database: {str(e)}")
            raise

    def add_expense(self, expense: ExpenseCreate) -> int:
        """Add a new expense and its items to the database.

        Args:
            expense: Expense data to add

        Returns:
            ID of the newly created expense

        Raises:
            Exception: If database operation fails
        """
        try:
            with self.get_connection() as conn:
                cursor = conn.cursor()

                cursor.execute("""
                    INSERT INTO expenses (vendor, total, date, category, receipt_image_path)
                    VALUES (?, ?, ?, ?, ?)
                """, (
                    expense.vendor,
                    float(expense.total),
                    expense.date.isoformat(sep=' '),
                    expense.category,
                    expense.receipt_image_path
                ))

                expense_id = cursor.lastrowid
                self._insert_items(cursor, expense_id, expense.items)
                conn.commit()

                self.logger.info(f"Added expense with ID: {expense_id} ({len(expense.items)} items)")
                return expense_id

        except Exception as e:
            self.logger.error(f"Failed to add expense: {str(e)}")
            raise

    def get_expense(self, expense_id: int) -> Optional[Expense]:
        """Get an expense with its items by ID.

        Args:
            expense_id: ID of the expense to retrieve

        Returns:
            Expense object if found, None otherwise
        """
        try:
            with self.get_connection() as conn:
                cursor = conn.cursor()
                cursor.execute("SELECT * FROM expenses WHERE id = ?", (expense_id,))
                row = cursor.fetchone()

                if row:
                    items = self._fetch_items(cursor, [expense_id])
                    return self._row_to_expense(row, items.get(expense_id, []))
                return None

        except Exception as e:
            self.logger.error(f"Failed to get expense {expense_id}: {str(e)}")
            raise

    def get_expenses(self, filters: Optional[ExpenseFilters] = None,
                     limit: Optional[int] = None, offset: int = 0) -> List[Expense]:
        """Get expenses matching filters, newest first.

        Args:
            filters: Optional date range and category criteria
            limit: Maximum number of expenses to return
            offset: Number of expenses to skip

        Returns:
            List of Expense objects with items
        """
        try:
            with self.get_connection() as conn:
                cursor = conn.cursor()

                where_clause, params = self._build_where_clause(filters)
                query = f"SELECT * FROM expenses{where_clause} ORDER BY date DESC, id DESC"

                if limit is not None:
                    query += " LIMIT ? OFFSET ?"
                    params.extend([limit, offset])

                cursor.execute(query, params)
                rows = cursor.fetchall()

                items = self._fetch_items(cursor, [row["id"] for row in rows])
                return [self._row_to_expense(row, items.get(row["id"], [])) for row in rows]

        except Exception as e:
            self.logger.error(f"Failed to get expenses: {str(e)}")
            raise

    def update_expense(self, expense_id: int, updates: ExpenseUpdate) -> bool:
        """Update an existing expense.

        Args:
            expense_id: ID of the expense to update
            updates: Fields to update; items, when set, replace all existing items

        Returns:
            True if update was successful, False if expense not found
        """
        try:
            update_dict = updates.model_dump(exclude_unset=True)
            new_items = update_dict.pop('items', None)

            update_fields = []
            update_values = []

            for field, value in update_dict.items():
                if field == 'date' and isinstance(value, datetime):
                    value = value.isoformat(sep=' ')
                elif field == 'total' and isinstance(value, Decimal):
                    value = float(value)
                update_fields.append(f"{field} = ?")
                update_values.append(value)

            with self.get_connection() as conn:
                cursor = conn.cursor()

                cursor.execute("SELECT id FROM expenses WHERE id = ?", (expense_id,))
                if cursor.fetchone() is None:
                    self.logger.warning(f"Expense {expense_id} not found for update")
                    return False

                if update_fields:
                    cursor.execute(
                        f"UPDATE expenses SET {', '.join(update_fields)} WHERE id = ?",
                        update_values + [expense_id]
                    )

                if new_items is not None:
                    cursor.execute("DELETE FROM expense_items WHERE expense_id = ?", (expense_id,))
                    self._insert_items(cursor, expense_id, updates.items)

                conn.commit()
                self.logger.info(f"Updated expense {expense_id}")
                return True

        except Exception as e:
            self.logger.error(f"Failed to update expense {expense_id}: {str(e)}")
            raise

    def delete_expense(self, expense_id: int) -> bool:
        """Delete an expense and its items by ID.

        Args:
            expense_id: ID of the expense to delete

        Returns:
            True if deletion was successful, False if expense not found
        """
        try:
            with self.get_connection() as conn:
                cursor = conn.cursor()
                cursor.execute("DELETE FROM expenses WHERE id = ?", (expense_id,))
                rows_affected = cursor.rowcount
                conn.commit()

                if rows_affected > 0:
                    self.logger.info(f"Deleted expense {expense_id}")
                    return True
                else:
                    self.logger.warning(f"Expense {expense_id} not found for deletion")
                    return False

        except Exception as e:
            self.logger.error(f"Failed to delete expense {expense_id}: {str(e)}")
            raise

    def get_expense_stats(self, filters: Optional[ExpenseFilters] = None) -> ExpenseStats:
        """Get total, count and average for matching expenses."""
        try:
            with self.get_connection() as conn:
                cursor = conn.cursor()

                where_clause, params = self._build_where_clause(filters)
                cursor.execute(f"""
                    SELECT
                        COALESCE(SUM(total), 0) as total,
                        COUNT(*) as count,
                        COALESCE(AVG(total), 0) as average
                    FROM expenses{where_clause}
                """, params)
                stats = cursor.fetchone()

                return ExpenseStats(
                    total=_to_money(stats["total"]),
                    count=stats["count"] or 0,
                    average=_to_money(stats["average"])
                )

        except Exception as e:
            self.logger.error(f"Failed to get expense stats: {str(e)}")
            raise

    def get_category_breakdown(self, filters: Optional[ExpenseFilters] = None) -> Dict[str, Decimal]:
        """Get spending per category, largest first."""
        try:
            with self.get_connection() as conn:
                cursor = conn.cursor()

                where_clause, params = self._build_where_clause(filters)
                cursor.execute(f"""
                    SELECT category, SUM(total) as total_amount
                    FROM expenses{where_clause}
                    GROUP BY category
                    ORDER BY total_amount DESC
                """, params)

                return {
                    row["category"]: _to_money(row["total_amount"])
                    for row in cursor.fetchall()
                }

        except Exception as e:
            self.logger.error(f"Failed to get category breakdown: {str(e)}")
            raise

    def get_monthly_totals(self, filters: Optional[ExpenseFilters] = None) -> List[Dict[str, Any]]:
        """Get spending and expense count per calendar month, oldest first."""
        try:
            with self.get_connection() as conn:
                cursor = conn.cursor()

                where_clause, params = self._build_where_clause(filters)
                cursor.execute(f"""
                    SELECT
                        strftime('%Y-%m', date) as month,
                        SUM(total) as total_amount,
                        COUNT(*) as expense_count
                    FROM expenses{where_clause}
                    GROUP BY strftime('%Y-%m', date)
                    ORDER BY month
                """, params)

                return [
                    {
                        "month": row["month"],
                        "total": _to_money(row["total_amount"]),
                        "count": row["expense_count"]
                    }
                    for row in cursor.fetchall()
                ]

        except Exception as e:
            self.logger.error(f"Failed to get monthly totals: {str(e)}")
            raise

    def get_expense_count(self, filters: Optional[ExpenseFilters] = None) -> int:
        """Get total count of expenses matching filters."""
        try:
            with self.get_connection() as conn:
                cursor = conn.cursor()
                where_clause, params = self._build_where_clause(filters)
                cursor.execute(f"SELECT COUNT(*) FROM expenses{where_clause}", params)
                return cursor.fetchone()[0]

        except Exception as e:
            self.logger.error(f"Failed to get expense count: {str(e)}")
            raise

    def _build_where_clause(self, filters: Optional[ExpenseFilters]) -> Tuple[str, List[Any]]:
        """Build a WHERE clause for date range and category filters.

        Date bounds compare calendar days, so date_to includes the whole day.
        """
        conditions = []
        params = []

        if filters is not None:
            if filters.date_from:
                conditions.append("date(date) >= ?")
                params.append(filters.date_from.isoformat())

            if filters.date_to:
                conditions.append("date(date) <= ?")
                params.append(filters.date_to.isoformat())

            if filters.category:
                conditions.append("category = ?")
                params.append(filters.category)

        if not conditions:
            return "", params
        return " WHERE " + " AND ".join(conditions), params

    def _insert_items(self, cursor: sqlite3.Cursor, expense_id: int, items: List[ExpenseItem]) -> None:
        if not items:
            return
        cursor.executemany("""
            INSERT INTO expense_items (expense_id, name, quantity, price)
            VALUES (?, ?, ?, ?)
        """, [
            (expense_id, item.name, item.quantity, float(item.price))
            for item in items
        ])

    def _fetch_items(self, cursor: sqlite3.Cursor, expense_ids: List[int]) -> Dict[int, List[ExpenseItem]]:
        """Load items for the given expenses, grouped by expense ID."""
        grouped: Dict[int, List[ExpenseItem]] = {}
        if not expense_ids:
            return grouped

        for start in range(0, len(expense_ids), self.ITEM_QUERY_BATCH):
            batch = expense_ids[start:start + self.ITEM_QUERY_BATCH]
            placeholders = ", ".join("?" for _ in batch)
            cursor.execute(
                f"SELECT * FROM expense_items WHERE expense_id IN ({placeholders}) ORDER BY id",
                batch
            )
            for row in cursor.fetchall():
                grouped.setdefault(row["expense_id"], []).append(ExpenseItem(
                    id=row["id"],
                    name=row["name"],
                    quantity=row["quantity"],
                    price=Decimal(str(row["price"]))
                ))
        return grouped

    def _row_to_expense(self, row: sqlite3.Row, items: List[ExpenseItem]) -> Expense:
        """Convert database row to Expense object.

        Args:
            row: SQLite row object
            items: Items belonging to the expense

        Returns:
            Expense object
        """
        return Expense(
            id=row["id"],
            vendor=row["vendor"],
            total=Decimal(str(row["total"])),
            date=datetime.fromisoformat(row["date"]),
            category=row["category"],
            receipt_image_path=row["receipt_image_path"],
            created_at=datetime.fromisoformat(row["created_at"]) if row["created_at"] else None,
            items=items
        )
