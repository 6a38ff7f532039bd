import os

# Must be set before hotel_inventory is imported: the engine is built at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENV"] = "test"
os.environ["BCRYPT_ROUNDS"] = "4"

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

import hotel_inventory.models  # noqa: F401
from hotel_inventory.core.database import SessionLocal, engine
from hotel_inventory.core.stock_rules import LocationType
from hotel_inventory.models.article import Article
from hotel_inventory.models.inventory_record import InventoryRecord
from hotel_inventory.models.room import Room
from hotel_inventory.models.tenant import Base, Tenant


@pytest.fixture()
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def client(db):
    from hotel_inventory.main import app

    return TestClient(app)


def _tenant(db, slug):
    tenant = Tenant(name=slug.title(), slug=slug)
    db.add(tenant)
    db.commit()
    return tenant


@pytest.fixture()
def tenant(db):
    return _tenant(db, "hotel-a")


@pytest.fixture()
def other_tenant(db):
    return _tenant(db, "hotel-b")


@pytest.fixture()
def make_article(db):
    def factory(tenant, name="Agua mineral", price="25.00"):
        article = Article(tenant_id=tenant.id, name=name, price=Decimal(price))
        db.add(article)
        db.commit()
        return article

    return factory


@pytest.fixture()
def make_room(db):
    def factory(tenant, name="101"):
        room = Room(tenant_id=tenant.id, name=name)
        db.add(room)
        db.commit()
        return room

    return factory


@pytest.fixture()
def make_record(db):
    def factory(tenant, article, quantity=10, location_type=LocationType.general, location_id=None, min_quantity=0):
        record = InventoryRecord(
            tenant_id=tenant.id,
            article_id=article.id,
            location_type=int(location_type),
            location_id=location_id,
            quantity=quantity,
            min_quantity=min_quantity,
            registered_by="test",
        )
        db.add(record)
        db.commit()
        return record

    return factory
