"""
User Repository - read access to the account store
"""
from typing import Optional

from bazaar.core.database import use_connection
from bazaar.domain.account import User


class UserRepository:
    """Accounts are written by the auth service; this system only reads them"""

    def find_by_id(self, user_id: int, conn=None) -> Optional[User]:
        with use_connection(conn) as db:
            cursor = db.cursor()
            try:
                cursor.execute("""
                    SELECT id, name, email, role, is_active, store_info, created_at
                    FROM users
                    WHERE id = %s
                """, (user_id,))

                row = cursor.fetchone()
                return User(**row) if row else None
            finally:
                cursor.close()
