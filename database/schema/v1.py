"""Schema v1 - Initial marketplace schema.

This version includes tables for:
- Users and their aggregate rating
- Listings and services with geographic points
- Carts and cart items
- Orders with immutable line item snapshots
- Buyer/seller requests
- Direct messages
- Reviews
"""

from decimal import Decimal

LISTING_CATEGORIES = ('electronics', 'furniture', 'clothing', 'books', 'sports', 'other')
LISTING_STATUSES = ('active', 'sold', 'pending', 'rejected')
SERVICE_CATEGORIES = ('cleaning', 'tutoring', 'repair', 'tech', 'beauty', 'other')
SERVICE_STATUSES = ('active', 'inactive')
ORDER_STATUSES = ('pending', 'confirmed', 'shipped', 'delivered', 'cancelled')
REQUEST_STATUSES = ('pending', 'accepted', 'rejected', 'completed')
REQUEST_TARGETS = ('listing', 'service')

# Largest value a NUMERIC(12, 2) money column holds
MAX_AMOUNT = Decimal('9999999999.99')


def _one_of(column, values):
    return f"{column} IN ({', '.join(repr(v) for v in values)})"


schema = {
    'version': 1,
    'tables': [
        {
            'name': 'users',
            'columns': [
                {'name': 'id', 'type': 'UUID', 'primary_key': True, 'default': 'gen_random_uuid()'},
                {'name': 'name', 'type': 'TEXT', 'nullable': False},
                {'name': 'email', 'type': 'TEXT', 'nullable': False, 'unique': True},
                {'name': 'password_hash', 'type': 'TEXT', 'nullable': False},
                {'name': 'role', 'type': 'TEXT', 'nullable': False, 'default': "'user'"},
                {'name': 'rating', 'type': 'DOUBLE PRECISION', 'nullable': False, 'default': '0'},
                {'name': 'latitude', 'type': 'DOUBLE PRECISION'},
                {'name': 'longitude', 'type': 'DOUBLE PRECISION'},
                {'name': 'created_at', 'type': 'TIMESTAMP', 'nullable': False, 'default': 'now()'}
            ],
            'checks': [
                _one_of('role', ('user', 'admin')),
                'rating >= 0 AND rating <= 5'
            ]
        },
        {
            'name': 'listings',
            'columns': [
                {'name': 'id', 'type': 'UUID', 'primary_key': True, 'default': 'gen_random_uuid()'},
                {'name': 'user_id', 'type': 'UUID', 'nullable': False},
                {'name': 'title', 'type': 'TEXT', 'nullable': False},
                {'name': 'description', 'type': 'TEXT', 'nullable': False},
                {'name': 'price', 'type': 'NUMERIC(12, 2)', 'nullable': False},
                {'name': 'category', 'type': 'TEXT', 'nullable': False},
                {'name': 'images', 'type': 'TEXT[]', 'nullable': False, 'default': "'{}'"},
                {'name': 'latitude', 'type': 'DOUBLE PRECISION', 'nullable': False},
                {'name': 'longitude', 'type': 'DOUBLE PRECISION', 'nullable': False},
                {'name': 'status', 'type': 'TEXT', 'nullable': False, 'default': "'active'"},
                {'name': 'created_at', 'type': 'TIMESTAMP', 'nullable': False, 'default': 'now()'},
                {'name': 'updated_at', 'type': 'TIMESTAMP', 'nullable': False, 'default': 'now()'}
            ],
            'checks': [
                'price >= 0',
                _one_of('category', LISTING_CATEGORIES),
                _one_of('status', LISTING_STATUSES)
            ],
            'foreign_keys': [
                {'columns': ['user_id'], 'references': 'users(id)', 'on_delete': 'CASCADE'}
            ],
            'indexes': [
                {'name': 'idx_listings_user', 'columns': ['user_id']},
                {'name': 'idx_listings_status_category', 'columns': ['status', 'category']},
                {'name': 'idx_listings_location', 'columns': ['latitude', 'longitude']}
            ]
        },
        {
            'name': 'services',
            'columns': [
                {'name': 'id', 'type': 'UUID', 'primary_key': True, 'default': 'gen_random_uuid()'},
                {'name': 'user_id', 'type': 'UUID', 'nullable': False},
                {'name': 'title', 'type': 'TEXT', 'nullable': False},
                {'name': 'description', 'type': 'TEXT', 'nullable': False},
                {'name': 'category', 'type': 'TEXT', 'nullable': False},
                {'name': 'availability', 'type': 'TEXT', 'nullable': False},
                {'name': 'latitude', 'type': 'DOUBLE PRECISION', 'nullable': False},
                {'name': 'longitude', 'type': 'DOUBLE PRECISION', 'nullable': False},
                {'name': 'status', 'type': 'TEXT', 'nullable': False, 'default': "'active'"},
                {'name': 'created_at', 'type': 'TIMESTAMP', 'nullable': False, 'default': 'now()'},
                {'name': 'updated_at', 'type': 'TIMESTAMP', 'nullable': False, 'default': 'now()'}
            ],
            'checks': [
                _one_of('category', SERVICE_CATEGORIES),
                _one_of('status', SERVICE_STATUSES)
            ],
            'foreign_keys': [
                {'columns': ['user_id'], 'references': 'users(id)', 'on_delete': 'CASCADE'}
            ],
            'indexes': [
                {'name': 'idx_services_user', 'columns': ['user_id']},
                {'name': 'idx_services_status_category', 'columns': ['status', 'category']},
                {'name': 'idx_services_location', 'columns': ['latitude', 'longitude']}
            ]
        },
        {
            'name': 'carts',
            'columns': [
                {'name': 'id', 'type': 'UUID', 'primary_key': True, 'default': 'gen_random_uuid()'},
                {'name': 'user_id', 'type': 'UUID', 'nullable': False, 'unique': True},
                {'name': 'created_at', 'type': 'TIMESTAMP', 'nullable': False, 'default': 'now()'},
                {'name': 'updated_at', 'type': 'TIMESTAMP', 'nullable': False, 'default': 'now()'}
            ],
            'foreign_keys': [
                {'columns': ['user_id'], 'references': 'users(id)', 'on_delete': 'CASCADE'}
            ]
        },
        {
            # listing_id has no foreign key: deleted listings leave dangling entries
            'name': 'cart_items',
            'columns': [
                {'name': 'cart_id', 'type': 'UUID', 'nullable': False},
                {'name': 'listing_id', 'type': 'UUID', 'nullable': False},
                {'name': 'quantity', 'type': 'INT4', 'nullable': False, 'default': '1'},
                {'name': 'added_at', 'type': 'TIMESTAMP', 'nullable': False, 'default': 'clock_timestamp()'}
            ],
            'primary_key': ['cart_id', 'listing_id'],
            'checks': ['quantity >= 1'],
            'foreign_keys': [
                {'columns': ['cart_id'], 'references': 'carts(id)', 'on_delete': 'CASCADE'}
            ]
        },
        {
            'name': 'orders',
            'columns': [
                {'name': 'id', 'type': 'UUID', 'primary_key': True, 'default': 'gen_random_uuid()'},
                {'name': 'buyer_id', 'type': 'UUID', 'nullable': False},
                {'name': 'total_amount', 'type': 'NUMERIC(12, 2)', 'nullable': False},
                {'name': 'shipping_address', 'type': 'JSONB', 'nullable': False},
                {'name': 'status', 'type': 'TEXT', 'nullable': False, 'default': "'pending'"},
                {'name': 'created_at', 'type': 'TIMESTAMP', 'nullable': False, 'default': 'now()'},
                {'name': 'updated_at', 'type': 'TIMESTAMP', 'nullable': False, 'default': 'now()'}
            ],
            'checks': [_one_of('status', ORDER_STATUSES)],
            'foreign_keys': [
                {'columns': ['buyer_id'], 'references': 'users(id)'}
            ],
            'indexes': [
                {'name': 'idx_orders_buyer', 'columns': ['buyer_id']},
                {'name': 'idx_orders_created', 'columns': ['created_at']}
            ]
        },
        {
            # Line items are snapshots; listing_id may outlive the listing
            'name': 'order_items',
            'columns': [
                {'name': 'order_id', 'type': 'UUID', 'nullable': False},
                {'name': 'position', 'type': 'INT4', 'nullable': False},
                {'name': 'listing_id', 'type': 'UUID', 'nullable': False},
                {'name': 'title', 'type': 'TEXT', 'nullable': False},
                {'name': 'price', 'type': 'NUMERIC(12, 2)', 'nullable': False},
                {'name': 'quantity', 'type': 'INT4', 'nullable': False},
                {'name': 'seller_id', 'type': 'UUID', 'nullable': False}
            ],
            'primary_key': ['order_id', 'position'],
            'checks': ['quantity >= 1'],
            'foreign_keys': [
                {'columns': ['order_id'], 'references': 'orders(id)', 'on_delete': 'CASCADE'},
                {'columns': ['seller_id'], 'references': 'users(id)'}
            ],
            'indexes': [
                {'name': 'idx_order_items_seller', 'columns': ['seller_id']}
            ]
        },
        {
            'name': 'requests',
            'columns': [
                {'name': 'id', 'type': 'UUID', 'primary_key': True, 'default': 'gen_random_uuid()'},
                {'name': 'buyer_id', 'type': 'UUID', 'nullable': False},
                {'name': 'seller_id', 'type': 'UUID', 'nullable': False},
                {'name': 'target_type', 'type': 'TEXT', 'nullable': False},
                {'name': 'target_id', 'type': 'UUID', 'nullable': False},
                {'name': 'status', 'type': 'TEXT', 'nullable': False, 'default': "'pending'"},
                {'name': 'message', 'type': 'TEXT'},
                {'name': 'created_at', 'type': 'TIMESTAMP', 'nullable': False, 'default': 'now()'},
                {'name': 'updated_at', 'type': 'TIMESTAMP', 'nullable': False, 'default': 'now()'}
            ],
            'checks': [
                _one_of('target_type', REQUEST_TARGETS),
                _one_of('status', REQUEST_STATUSES),
                'buyer_id <> seller_id'
            ],
            'foreign_keys': [
                {'columns': ['buyer_id'], 'references': 'users(id)', 'on_delete': 'CASCADE'},
                {'columns': ['seller_id'], 'references': 'users(id)', 'on_delete': 'CASCADE'}
            ],
            'indexes': [
                {'name': 'idx_requests_buyer', 'columns': ['buyer_id']},
                {'name': 'idx_requests_seller', 'columns': ['seller_id']},
                {
                    'name': 'idx_requests_open_unique',
                    'columns': ['buyer_id', 'seller_id', 'target_type', 'target_id'],
                    'unique': True,
                    'where': "status IN ('pending', 'accepted')"
                }
            ]
        },
        {
            'name': 'messages',
            'columns': [
                {'name': 'id', 'type': 'UUID', 'primary_key': True, 'default': 'gen_random_uuid()'},
                {'name': 'sender_id', 'type': 'UUID', 'nullable': False},
                {'name': 'receiver_id', 'type': 'UUID', 'nullable': False},
                {'name': 'text', 'type': 'TEXT', 'nullable': False},
                {'name': 'read', 'type': 'BOOLEAN', 'nullable': False, 'default': 'false'},
                {'name': 'created_at', 'type': 'TIMESTAMP', 'nullable': False, 'default': 'clock_timestamp()'}
            ],
            'foreign_keys': [
                {'columns': ['sender_id'], 'references': 'users(id)', 'on_delete': 'CASCADE'},
                {'columns': ['receiver_id'], 'references': 'users(id)', 'on_delete': 'CASCADE'}
            ],
            'indexes': [
                {'name': 'idx_messages_sender', 'columns': ['sender_id', 'created_at']},
                {'name': 'idx_messages_receiver', 'columns': ['receiver_id', 'created_at']}
            ]
        },
        {
            'name': 'reviews',
            'columns': [
                {'name': 'id', 'type': 'UUID', 'primary_key': True, 'default': 'gen_random_uuid()'},
                {'name': 'reviewer_id', 'type': 'UUID', 'nullable': False},
                {'name': 'reviewee_id', 'type': 'UUID', 'nullable': False},
                {'name': 'rating', 'type': 'INT4', 'nullable': False},
                {'name': 'comment', 'type': 'TEXT'},
                {'name': 'created_at', 'type': 'TIMESTAMP', 'nullable': False, 'default': 'now()'},
                {'name': 'updated_at', 'type': 'TIMESTAMP', 'nullable': False, 'default': 'now()'}
            ],
            'checks': [
                'rating BETWEEN 1 AND 5',
                'reviewer_id <> reviewee_id'
            ],
            'foreign_keys': [
                {'columns': ['reviewer_id'], 'references': 'users(id)', 'on_delete': 'CASCADE'},
                {'columns': ['reviewee_id'], 'references': 'users(id)', 'on_delete': 'CASCADE'}
            ],
            'indexes': [
                {'name': 'idx_reviews_pair', 'columns': ['reviewer_id', 'reviewee_id'], 'unique': True},
                {'name': 'idx_reviews_reviewee', 'columns': ['reviewee_id']}
            ]
        }
    ]
}
