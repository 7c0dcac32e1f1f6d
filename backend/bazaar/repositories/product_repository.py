"""
Product Repository - Data Access Layer for the catalog

Only what the order lifecycle needs: point reads and the conditional stock
decrement applied when a payment is confirmed.
"""
from typing import Optional

from bazaar.core.database import use_connection
from bazaar.domain.product import Product

PRODUCT_COLUMNS = """
    id, vendor_id, name, description, category, price, images, stock,
    is_active, rating, num_reviews, created_at, updated_at
"""


class ProductRepository:
    """
    Repository for Product data access

    Every method takes an optional ``conn`` so it can join a caller's
    transaction.
    """

    @staticmethod
    def _map_row_to_product(row: dict) -> Product:
        data = dict(row)
        data['images'] = list(data.get('images') or [])
        return Product(**data)

    def find_by_id(self, product_id: int, conn=None) -> Optional[Product]:
        """
        Find product by ID, active or not

        Returns:
            Product or None if not found
        """
        with use_connection(conn) as db:
            cursor = db.cursor()
            try:
                cursor.execute(f"""
                    SELECT {PRODUCT_COLUMNS}
                    FROM products
                    WHERE id = %s
                """, (product_id,))

                row = cursor.fetchone()
                return self._map_row_to_product(row) if row else None
            finally:
                cursor.close()

    def decrement_stock_if_available(self, product_id: int, quantity: int, conn=None) -> Optional[int]:
        """
        Atomically take ``quantity`` units if the product still has them

        The guard lives in the WHERE clause, so two concurrent decrements can
        never push stock below zero.

        Returns:
            Remaining stock, or None when stock was insufficient (backorder)
        """
        with use_connection(conn) as db:
            cursor = db.cursor()
            try:
                cursor.execute("""
                    UPDATE products
                    SET stock = stock - %s, updated_at = NOW()
                    WHERE id = %s AND stock >= %s
                    RETURNING stock
                """, (quantity, product_id, quantity))

                row = cursor.fetchone()
                return row['stock'] if row else None
            finally:
                cursor.close()
