#!/usr/bin/env python3
"""Seed the database with a demo owner and sample businesses."""
import sys
from pathlib import Path

# Add the parent directory to the path so we can import the app
sys.path.insert(0, str(Path(__file__).parent.parent))

from business_connect import catalog, create_app
from business_connect.auth import hash_password
from business_connect.extensions import db
from business_connect.models import Analytics, Business, User

OWNER_EMAIL = "owner@example.com"

SAMPLE_BUSINESSES = [
    {
        "name": "Bean There",
        "pageName": "bean-there",
        "location": "12 Roast Ave",
        "contact": {"phone": "555-0100", "email": "hello@beanthere.example"},
        "category": "Coffee & Beverages",
        "theme": "light",
        "services": ["Coffee", "Pastries"],
        "products": {
            "Coffee": [
                {"name": "Latte", "price": 4.5, "category": "Hot drinks"},
                {"name": "Cold Brew", "price": 5.0, "category": "Cold drinks"},
            ],
            "Pastries": [
                {"name": "Croissant", "price": 3.25},
            ],
        },
    },
    {
        "name": "Fix-It Phones",
        "pageName": "fixit-phones",
        "location": "401 Circuit Rd",
        "contact": {"phone": "555-0142", "email": "repairs@fixit.example"},
        "category": "Technology Repair",
        "theme": "dark",
        "services": ["Screen Repair"],
        "products": {
            "Screen Repair": [
                {"name": "Screen Replacement", "price": 89.0, "specifications": {"warranty": "90 days"}},
            ],
        },
    },
]


def seed_businesses():
    """Create the demo owner and any sample business not seeded yet."""
    app = create_app()

    with app.app_context():
        owner = User.query.filter_by(email=OWNER_EMAIL).first()
        if owner is None:
            owner = User(
                name="Demo Owner",
                email=OWNER_EMAIL,
                role="business_owner",
                password_hash=hash_password("password123"),
            )
            db.session.add(owner)
            db.session.flush()
            print(f"👤 Created demo owner {OWNER_EMAIL} (password: password123)")

        for data in SAMPLE_BUSINESSES:
            if Business.query.filter_by(page_name_key=data["pageName"].lower()).first():
                print(f"⏭️  {data['name']} already exists. Skipping...")
                continue

            business = Business(owner_id=owner.user_id, services=[], products={}, hours={}, images=[])
            catalog.apply_profile(business, data, creating=True)
            catalog.apply_services(business, data["services"])
            for service, products in data["products"].items():
                for product in products:
                    catalog.add_product(business, service, product)
            db.session.add(business)
            db.session.flush()
            db.session.add(Analytics(business_id=business.business_id))
            print(f"📦 Added {data['name']} with {sum(len(p) for p in data['products'].values())} products")

        db.session.commit()
        print(f"\n✅ Businesses seeded successfully! Total: {Business.query.count()}")

if __name__ == "__main__":
    seed_businesses()
