"""
Inventory Item Repository

Index of remote inventory item id -> local product id. Shopify inventory
webhooks only carry the inventory item id, so the mapping is recorded
whenever a product is pushed or imported.
"""
from typing import Optional

from stockroom.core.database import get_db_connection_dict


class InventoryItemRepository:
    """Data access for shopify_inventory_items"""

    def record(self, inventory_item_id: str, product_id: int, remote_product_id: str) -> None:
        """Insert or repoint the mapping for one inventory item"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                INSERT INTO shopify_inventory_items (inventory_item_id, product_id, remote_product_id, updated_at)
                VALUES (%s, %s, %s, NOW())
                ON CONFLICT (inventory_item_id) DO UPDATE SET
                    product_id = EXCLUDED.product_id,
                    remote_product_id = EXCLUDED.remote_product_id,
                    updated_at = NOW()
            """, (str(inventory_item_id), product_id, str(remote_product_id)))
            conn.commit()

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def find_product_id(self, inventory_item_id: str) -> Optional[int]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT product_id
                FROM shopify_inventory_items
                WHERE inventory_item_id = %s
            """, (str(inventory_item_id),))

            row = cursor.fetchone()
            return row['product_id'] if row else None

        finally:
            cursor.close()
            conn.close()

    def delete_for_product(self, product_id: int) -> int:
        """Drop every mapping pointing at `product_id`; returns rows removed"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("DELETE FROM shopify_inventory_items WHERE product_id = %s", (product_id,))
            removed = cursor.rowcount
            conn.commit()
            return removed

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()
