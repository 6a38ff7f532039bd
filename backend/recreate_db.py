"""
Script to recreate the database and load the demo hotel
"""
from hotel_inventory.core.database import SessionLocal, engine
from hotel_inventory.models.tenant import Base
from hotel_inventory.services.seed import seed_demo

# Import all models to ensure they're registered
import hotel_inventory.models  # noqa: F401


def recreate_db():
    print("Recreating database with the inventory ledger schema...")

    print("Dropping existing tables...")
    Base.metadata.drop_all(bind=engine)

    print("Creating tables...")
    Base.metadata.create_all(bind=engine)

    print("Seeding demo data...")
    db = SessionLocal()
    try:
        seed_demo(db)
    except Exception as e:
        print(f"Error seeding data: {e}")
        db.rollback()
        raise
    finally:
        db.close()

    print("Database recreated successfully!")
    print("\nLogin credentials:")
    print("   Email: owner@demo.com")
    print("   Password: secret123")
    print("   Tenant: demo")


if __name__ == "__main__":
    recreate_db()
