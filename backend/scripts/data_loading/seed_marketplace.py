#!/usr/bin/env python3
"""
Seed sample marketplace data: one admin, two vendors, one customer and
four products (one of them low on stock).

Accounts are created without credentials; tokens for them are issued by
the auth service.

Usage:
    cd backend && source venv/bin/activate
    python scripts/data_loading/seed_marketplace.py            # seed
    python scripts/data_loading/seed_marketplace.py --destroy  # wipe all data
"""

import sys
import argparse
from pathlib import Path

# Add backend to path
BACKEND_DIR = Path(__file__).parent.parent.parent
sys.path.insert(0, str(BACKEND_DIR))

from dotenv import load_dotenv

load_dotenv(BACKEND_DIR / '.env')

from psycopg2.extras import Json  # noqa: E402

from bazaar.core.database import transaction  # noqa: E402

USERS = [
    {'name': 'Super Admin', 'email': 'admin@bazaar.pk', 'role': 'Admin'},
    {
        'name': 'Ayesha Khan', 'email': 'vendor1@bazaar.pk', 'role': 'Vendor',
        'store_info': {
            'name': 'Ayesha Crafts',
            'description': 'Handmade jewellery and accessories made in Lahore.',
        },
    },
    {
        'name': 'Bilal Ahmed', 'email': 'vendor2@bazaar.pk', 'role': 'Vendor',
        'store_info': {
            'name': 'TechBazar PK',
            'description': 'Affordable electronics and accessories.',
        },
    },
    {'name': 'Sana Mirza', 'email': 'customer@bazaar.pk', 'role': 'Customer'},
]

# (vendor email, product)
PRODUCTS = [
    ('vendor1@bazaar.pk', {
        'name': 'Handmade Silver Jhumkas',
        'description': 'Silver-tone jhumka earrings with semi-precious stones.',
        'category': 'Jewellery & Accessories',
        'price': 1800, 'stock': 30,
        'images': ['https://via.placeholder.com/400x400?text=Jhumkas'],
    }),
    ('vendor1@bazaar.pk', {
        'name': 'Embroidered Clutch Bag',
        'description': 'Hand-embroidered clutch bag for weddings and formal events.',
        'category': 'Handmade & Crafts',
        'price': 2500, 'stock': 15,
        'images': ['https://via.placeholder.com/400x400?text=Clutch'],
    }),
    ('vendor2@bazaar.pk', {
        'name': 'USB-C Fast Charger 65W',
        'description': 'GaN 65W USB-C charger for laptops, tablets and phones.',
        'category': 'Electronics',
        'price': 2200, 'stock': 50,
        'images': ['https://via.placeholder.com/400x400?text=Charger'],
    }),
    ('vendor2@bazaar.pk', {
        'name': 'Wireless Earbuds Pro',
        'description': 'True wireless earbuds with noise cancellation.',
        'category': 'Electronics',
        'price': 5500, 'stock': 3,
        'images': ['https://via.placeholder.com/400x400?text=Earbuds'],
    }),
]


def destroy(cursor):
    cursor.execute("TRUNCATE order_items, orders, products, users RESTART IDENTITY CASCADE")


def seed(cursor):
    user_ids = {}
    for user in USERS:
        cursor.execute("""
            INSERT INTO users (name, email, role, is_active, store_info)
            VALUES (%s, %s, %s, true, %s)
            RETURNING id
        """, (user['name'], user['email'], user['role'], Json(user.get('store_info'))))
        user_ids[user['email']] = cursor.fetchone()['id']

    for vendor_email, product in PRODUCTS:
        cursor.execute("""
            INSERT INTO products (vendor_id, name, description, category, price, images, stock, is_active)
            VALUES (%s, %s, %s, %s, %s, %s, %s, true)
        """, (
            user_ids[vendor_email], product['name'], product['description'],
            product['category'], product['price'], product['images'], product['stock'],
        ))

    return user_ids


def main():
    parser = argparse.ArgumentParser(description="Seed sample marketplace data")
    parser.add_argument('--destroy', action='store_true', help='Wipe all data without seeding')
    args = parser.parse_args()

    with transaction() as conn:
        cursor = conn.cursor()
        try:
            destroy(cursor)
            if args.destroy:
                print("Data destroyed")
                return
            user_ids = seed(cursor)
        finally:
            cursor.close()

    print("Data seeded:")
    for email, user_id in user_ids.items():
        print(f"  {user_id:>3}  {email}")
    print(f"  {len(PRODUCTS)} products")


if __name__ == "__main__":
    main()
