"""
Product Type Repository

Product types are looked up by their literal name when importing remote
catalogs; missing types are created on the fly.
"""
from typing import Optional

from stockroom.domain.product import ProductType
from stockroom.core.database import get_db_connection_dict


class ProductTypeRepository:
    """Data access for product_types"""

    def find_by_name(self, name: str) -> Optional[ProductType]:
        return self._fetch_one("SELECT id, name, description FROM product_types WHERE name = %s", (name,))

    def get_or_create(self, name: str, description: Optional[str] = None) -> ProductType:
        """
        Return the type named `name`, creating it with `description` if missing

        A concurrent insert of the same name is tolerated: ON CONFLICT keeps
        the existing row and it is re-read.
        """
        existing = self.find_by_name(name)
        if existing:
            return existing

        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                INSERT INTO product_types (name, description, created_at)
                VALUES (%s, %s, NOW())
                ON CONFLICT (name) DO NOTHING
                RETURNING id, name, description
            """, (name, description))
            row = cursor.fetchone()
            conn.commit()

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

        if row:
            return ProductType(**row)
        return self.find_by_name(name)

    def _fetch_one(self, sql: str, params: tuple) -> Optional[ProductType]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(sql, params)
            row = cursor.fetchone()
            return ProductType(**row) if row else None

        finally:
            cursor.close()
            conn.close()
