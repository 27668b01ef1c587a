"""Script to recreate the schema and fill the marketplace with sample data.

This script creates:
- An admin and two regular users in different cities
- Listings across several categories
- Services with availability descriptions
- Reviews, with ratings recomputed as each review is stored

Every existing table is dropped first.
"""

import asyncio
import logging

from auth import AuthManager, Identity
from config import settings_conf
from database import init_db, close, get_pool
from listings import ListingManager
from reviews import ReviewManager
from services import ServiceManager

# Configure logging
logging.basicConfig(
    level=settings_conf['log_level'],
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

USERS_DATA = {
    "admin": {
        "name": "Admin User",
        "email": "admin@example.com",
        "password": "Admin@123",
        "latitude": 28.7041,
        "longitude": 77.1025
    },
    "john": {
        "name": "John Smith",
        "email": "john@example.com",
        "password": "password123",
        "latitude": 19.0760,
        "longitude": 72.8777
    },
    "sarah": {
        "name": "Sarah Johnson",
        "email": "sarah@example.com",
        "password": "password123",
        "latitude": 12.9716,
        "longitude": 77.5946
    }
}

LISTINGS_DATA = [
    {
        "seller": "john",
        "title": "iPhone 13 Pro - Excellent Condition",
        "description": "Barely used, with original box and charger. Battery health at 98%.",
        "price": 45000,
        "category": "electronics",
        "latitude": 19.0760,
        "longitude": 72.8777
    },
    {
        "seller": "sarah",
        "title": "Vintage Leather Sofa",
        "description": "Three-seater leather sofa with minor wear. Pick up only.",
        "price": 25000,
        "category": "furniture",
        "latitude": 12.9716,
        "longitude": 77.5946
    },
    {
        "seller": "john",
        "title": "Mountain Bike - Trek X-Caliber",
        "description": "Recently serviced with new brake pads and chain. Helmet included.",
        "price": 18000,
        "category": "sports",
        "latitude": 18.5204,
        "longitude": 73.8567
    },
    {
        "seller": "sarah",
        "title": "Programming Books Collection",
        "description": "JavaScript, Python and React books with minimal highlighting.",
        "price": 4500,
        "category": "books",
        "latitude": 13.0827,
        "longitude": 80.2707
    },
    {
        "seller": "john",
        "title": "Designer Winter Jacket",
        "description": "Size medium, worn a few times, no stains or damage.",
        "price": 8000,
        "category": "clothing",
        "latitude": 17.3850,
        "longitude": 78.4867
    }
]

SERVICES_DATA = [
    {
        "seller": "john",
        "title": "Web Development Services",
        "description": "Websites built from scratch or improved, frontend to database.",
        "category": "tech",
        "availability": "Weekdays 9 AM - 6 PM, weekends by appointment",
        "latitude": 22.5726,
        "longitude": 88.3639
    },
    {
        "seller": "sarah",
        "title": "House Cleaning Service",
        "description": "Thorough cleaning of kitchens, bathrooms and bedrooms. Eco-friendly products available.",
        "category": "cleaning",
        "availability": "Monday to Friday, 8 AM - 4 PM",
        "latitude": 26.9124,
        "longitude": 75.7873
    },
    {
        "seller": "john",
        "title": "Math and Science Tutoring",
        "description": "High school and college calculus, physics and chemistry, in person or online.",
        "category": "tutoring",
        "availability": "Evenings and weekends",
        "latitude": 23.0225,
        "longitude": 72.5714
    }
]

REVIEWS_DATA = [
    ("sarah", "john", 5, "Exactly as described and a smooth transaction."),
    ("john", "sarah", 4, "Great communication, sofa in good condition as promised."),
    ("admin", "john", 4, "Professional and reliable tutoring session."),
    ("admin", "sarah", 5, "Outstanding cleaning service.")
]


async def main():
    """Recreate the schema and insert the sample data."""
    try:
        logger.info("Recreating database schema...")
        await init_db(force_recreate=True)
        pool = await get_pool()

        auth_manager = AuthManager(pool)
        listing_manager = ListingManager(pool)
        service_manager = ServiceManager(pool)
        review_manager = ReviewManager(pool)

        logger.info("Creating users...")
        users = {}
        for key, data in USERS_DATA.items():
            result = await auth_manager.register(**data)
            users[key] = Identity(**result['user'])

        async with pool.acquire() as conn:
            await conn.execute(
                "UPDATE users SET role = 'admin' WHERE id = $1",
                users['admin'].id
            )

        logger.info("Creating listings...")
        for data in LISTINGS_DATA:
            data = dict(data)
            await listing_manager.create_listing(users[data.pop('seller')], **data)

        logger.info("Creating services...")
        for data in SERVICES_DATA:
            data = dict(data)
            await service_manager.create_service(users[data.pop('seller')], **data)

        logger.info("Creating reviews...")
        for reviewer, reviewee, rating, comment in REVIEWS_DATA:
            await review_manager.submit(users[reviewer], users[reviewee].id, rating, comment)

        print("\nDatabase seeded successfully!")
        print(f"Users: {len(USERS_DATA)}")
        print(f"Listings: {len(LISTINGS_DATA)}")
        print(f"Services: {len(SERVICES_DATA)}")
        print(f"Reviews: {len(REVIEWS_DATA)}")
        print("\nLogin credentials:")
        for data in USERS_DATA.values():
            print(f"  {data['email']} / {data['password']}")

    except Exception as e:
        logger.error(f"Error in seed script: {e}")
        raise
    finally:
        await close()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nSeeding interrupted by user")
