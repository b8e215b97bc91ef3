"""
Sale Repository

Recording a sale decrements stock in the same transaction; the product
row is locked with SELECT ... FOR UPDATE so concurrent sales cannot
oversell.
"""
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from stockroom.domain.sale import Sale
from stockroom.core.database import get_db_connection_dict


class ProductNotFoundError(Exception):
    """The product referenced by a sale does not exist"""


class InsufficientStockError(Exception):
    """The requested quantity exceeds the units on hand"""

    def __init__(self, product_id: int, available: int, requested: int):
        self.product_id = product_id
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock for product {product_id}: "
            f"{available} available, {requested} requested"
        )


class SaleRepository:
    """Data access for sales"""

    def create(self, product_id: int, quantity: int) -> Tuple[Sale, int]:
        """
        Record a sale and decrement stock atomically

        Args:
            product_id: Product sold
            quantity: Units sold (> 0)

        Returns:
            Tuple of (created Sale, new stock count)

        Raises:
            ProductNotFoundError: If the product does not exist
            InsufficientStockError: If stock_count < quantity
        """
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT id, name, price, stock_count
                FROM products
                WHERE id = %s
                FOR UPDATE
            """, (product_id,))
            product = cursor.fetchone()

            if not product:
                raise ProductNotFoundError(f"Product {product_id} not found")

            if product['stock_count'] < quantity:
                raise InsufficientStockError(product_id, product['stock_count'], quantity)

            total_price = Decimal(product['price']) * quantity
            new_stock = product['stock_count'] - quantity

            cursor.execute("""
                INSERT INTO sales (product_id, quantity, total_price, sale_date)
                VALUES (%s, %s, %s, NOW())
                RETURNING id, product_id, quantity, total_price, sale_date
            """, (product_id, quantity, total_price))
            row = cursor.fetchone()

            cursor.execute("""
                UPDATE products
                SET stock_count = %s, updated_at = NOW()
                WHERE id = %s
            """, (new_stock, product_id))

            conn.commit()

            sale = Sale(product_name=product['name'], **row)
            return sale, new_stock

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def find_recent(
        self,
        limit: int = 50,
        offset: int = 0,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None
    ) -> Tuple[List[Sale], Dict[str, Any]]:
        """
        Most recent sales first, with totals over the same date range

        Args:
            limit: Page size
            offset: Rows to skip
            start_date: Only sales on or after this day
            end_date: Only sales on or before this day (inclusive)

        Returns:
            Tuple of (sales, {"count", "total_quantity", "total_revenue"})
        """
        conditions = []
        params: List[Any] = []

        if start_date:
            conditions.append("s.sale_date >= %s")
            params.append(start_date)

        if end_date:
            conditions.append("s.sale_date < %s")
            params.append(end_date + timedelta(days=1))

        where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""

        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                SELECT
                    COUNT(*) AS count,
                    COALESCE(SUM(s.quantity), 0) AS total_quantity,
                    COALESCE(SUM(s.total_price), 0) AS total_revenue
                FROM sales s
                {where_clause}
            """, params)
            totals = cursor.fetchone()

            cursor.execute(f"""
                SELECT s.id, s.product_id, p.name AS product_name,
                       s.quantity, s.total_price, s.sale_date
                FROM sales s
                LEFT JOIN products p ON p.id = s.product_id
                {where_clause}
                ORDER BY s.sale_date DESC, s.id DESC
                LIMIT %s OFFSET %s
            """, params + [limit, offset])

            sales = [Sale(**row) for row in cursor.fetchall()]

            summary = {
                "count": totals['count'],
                "total_quantity": int(totals['total_quantity']),
                "total_revenue": float(totals['total_revenue']),
            }
            return sales, summary

        finally:
            cursor.close()
            conn.close()
