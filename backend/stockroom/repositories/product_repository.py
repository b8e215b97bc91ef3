"""
Product Repository - Data Access Layer for Products

Handles all database queries for products and returns Product domain models.
The external_ids JSONB column is the link between a local product and its
remote counterparts; it can be updated independently of the other fields.
"""
from typing import Any, Dict, List, Optional, Tuple

from psycopg2.extras import Json

from stockroom.domain.product import Product, ProductCreate
from stockroom.core.database import get_db_connection_dict


PRODUCT_COLUMNS = """
    p.id, p.name, p.description, p.barcode, p.price, p.stock_count,
    p.image_url, p.product_type_id, pt.name AS product_type_name,
    p.sku_id, s.code AS sku_code, p.external_ids,
    p.created_at, p.updated_at
"""

PRODUCT_FROM = """
    FROM products p
    LEFT JOIN product_types pt ON pt.id = p.product_type_id
    LEFT JOIN skus s ON s.id = p.sku_id
"""

# Columns accepted by update(); anything else is rejected
UPDATABLE_FIELDS = {
    'name', 'description', 'barcode', 'price', 'stock_count',
    'image_url', 'product_type_id', 'sku_id', 'external_ids',
}


class ProductRepository:
    """
    Repository for Product data access

    All SQL queries for products are centralized here.
    Returns Product domain models, not raw dictionaries.
    """

    @staticmethod
    def _map_row_to_product(row: dict) -> Product:
        """Map a joined products row to the Product domain model"""
        return Product(
            id=row['id'],
            name=row['name'],
            description=row['description'],
            barcode=row['barcode'],
            price=row['price'],
            stock_count=row['stock_count'],
            image_url=row['image_url'],
            product_type_id=row['product_type_id'],
            product_type_name=row.get('product_type_name'),
            sku_id=row['sku_id'],
            sku_code=row.get('sku_code'),
            external_ids={k: str(v) for k, v in (row.get('external_ids') or {}).items() if v},
            created_at=row.get('created_at'),
            updated_at=row.get('updated_at')
        )

    def _fetch_one(self, where: str, params: tuple) -> Optional[Product]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                SELECT {PRODUCT_COLUMNS}
                {PRODUCT_FROM}
                WHERE {where}
                ORDER BY p.id
                LIMIT 1
            """, params)

            row = cursor.fetchone()
            if not row:
                return None

            return self._map_row_to_product(row)

        finally:
            cursor.close()
            conn.close()

    def find_by_id(self, product_id: int) -> Optional[Product]:
        """
        Find product by ID

        Returns:
            Product or None if not found
        """
        return self._fetch_one("p.id = %s", (product_id,))

    def find_by_barcode(self, barcode: str) -> Optional[Product]:
        """Find the product holding `barcode` (barcodes are unique)"""
        return self._fetch_one("p.barcode = %s", (barcode,))

    def find_by_external_id(self, system: str, external_id: str) -> Optional[Product]:
        """
        Find the product linked to a remote record

        Uses JSONB containment so the GIN index on external_ids is used
        instead of scanning every product.

        Args:
            system: Remote system name (e.g. "shopify")
            external_id: Remote product ID

        Returns:
            Product or None if no product is linked to that remote ID
        """
        return self._fetch_one(
            "p.external_ids @> %s",
            (Json({system: str(external_id)}),)
        )

    def find_all(
        self,
        search: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0
    ) -> Tuple[List[Product], int]:
        """
        Find products ordered by name

        Args:
            search: Case-insensitive match on name, description or barcode
            limit: Maximum results to return (None = all)
            offset: Number of results to skip

        Returns:
            Tuple of (list of products, total count)
        """
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            conditions = []
            params: List[Any] = []

            if search:
                conditions.append("(p.name ILIKE %s OR p.description ILIKE %s OR p.barcode ILIKE %s)")
                search_term = f"%{search}%"
                params.extend([search_term, search_term, search_term])

            where_clause = " AND ".join(conditions) if conditions else "1=1"

            cursor.execute(f"""
                SELECT COUNT(*) AS total
                FROM products p
                WHERE {where_clause}
            """, params)
            total = cursor.fetchone()['total']

            cursor.execute(f"""
                SELECT {PRODUCT_COLUMNS}
                {PRODUCT_FROM}
                WHERE {where_clause}
                ORDER BY p.name, p.id
                LIMIT %s OFFSET %s
            """, params + [limit, offset])

            products = [self._map_row_to_product(row) for row in cursor.fetchall()]
            return products, total

        finally:
            cursor.close()
            conn.close()

    def create(self, data: ProductCreate) -> Product:
        """
        Insert a product

        Returns:
            The created Product (re-read with joined type/SKU names)
        """
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                INSERT INTO products (
                    name, description, barcode, price, stock_count,
                    image_url, product_type_id, sku_id, external_ids,
                    created_at, updated_at
                )
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, NOW(), NOW())
                RETURNING id
            """, (
                data.name, data.description, data.barcode, data.price,
                data.stock_count, data.image_url, data.product_type_id,
                data.sku_id, Json(dict(data.external_ids))
            ))
            product_id = cursor.fetchone()['id']
            conn.commit()

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

        return self.find_by_id(product_id)

    def update(self, product_id: int, fields: Dict[str, Any]) -> Optional[Product]:
        """
        Partial update: only the given columns are written

        Args:
            product_id: Product to update
            fields: Column -> new value. external_ids replaces the whole mapping.

        Returns:
            The updated Product, or None if it does not exist

        Raises:
            ValueError: If a field is not updatable
        """
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update product fields: {sorted(unknown)}")

        if not fields:
            return self.find_by_id(product_id)

        assignments = []
        params: List[Any] = []
        for column, value in fields.items():
            assignments.append(f"{column} = %s")
            params.append(Json(dict(value or {})) if column == 'external_ids' else value)

        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                UPDATE products
                SET {", ".join(assignments)}, updated_at = NOW()
                WHERE id = %s
            """, params + [product_id])
            updated = cursor.rowcount
            conn.commit()

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

        if not updated:
            return None
        return self.find_by_id(product_id)

    def set_external_id(self, product_id: int, system: str, external_id: str) -> bool:
        """
        Record the remote ID for one system, keeping other systems' entries

        Returns:
            True if the product exists and was updated
        """
        return self._execute_write("""
            UPDATE products
            SET external_ids = COALESCE(external_ids, '{}'::jsonb) || %s,
                updated_at = NOW()
            WHERE id = %s
        """, (Json({system: str(external_id)}), product_id))

    def clear_external_ids(self, product_id: int) -> bool:
        """Unlink the product from every remote system"""
        return self._execute_write("""
            UPDATE products
            SET external_ids = '{}'::jsonb, updated_at = NOW()
            WHERE id = %s
        """, (product_id,))

    def set_stock(self, product_id: int, stock_count: int) -> Optional[Product]:
        """Overwrite the stock count"""
        return self.update(product_id, {'stock_count': stock_count})

    def delete(self, product_id: int) -> bool:
        """Delete a product; returns False when it did not exist"""
        return self._execute_write("DELETE FROM products WHERE id = %s", (product_id,))

    def _execute_write(self, sql: str, params: tuple) -> bool:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(sql, params)
            affected = cursor.rowcount
            conn.commit()
            return affected > 0

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()
