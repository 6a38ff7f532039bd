import logging
from decimal import Decimal

from sqlalchemy.orm import Session

from hotel_inventory.core.security import hash_password
from hotel_inventory.core.stock_rules import LocationType
from hotel_inventory.models.article import Article
from hotel_inventory.models.inventory_record import InventoryRecord
from hotel_inventory.models.room import Room
from hotel_inventory.models.tenant import Tenant
from hotel_inventory.models.user import User
from hotel_inventory.services import consumption_poster, inventory_store


logger = logging.getLogger(__name__)

DEMO_ARTICLES = [
    ("Agua mineral 600ml", Decimal("25.00"), "Bebidas", 48),
    ("Refresco de cola 355ml", Decimal("30.00"), "Bebidas", 36),
    ("Cerveza clara 355ml", Decimal("45.00"), "Bebidas", 24),
    ("Papas fritas", Decimal("35.00"), "Botanas", 30),
    ("Chocolate", Decimal("28.00"), "Dulces", 20),
]

DEMO_ROOMS = ["101", "102", "103", "201"]

# Mini-bar stock placed in each room
ROOM_STOCK = 2


def _seed_catalog(db: Session, tenant: Tenant) -> None:
    for name, price, category, _ in DEMO_ARTICLES:
        if not db.query(Article).filter(Article.tenant_id == tenant.id, Article.name == name).first():
            db.add(Article(tenant_id=tenant.id, name=name, price=price, category=category))
    for name in DEMO_ROOMS:
        if not db.query(Room).filter(Room.tenant_id == tenant.id, Room.name == name).first():
            db.add(Room(tenant_id=tenant.id, name=name))
    db.commit()


def _report(step: str, result) -> bool:
    if not result.is_success:
        logger.error("Seed step %s failed: %s (%s)", step, result.error, result.detail)
    return result.is_success


def _seed_stock(db: Session, tenant: Tenant, user_id: str) -> int:
    """Post the initial demo stock; returns how many steps failed."""
    failures = 0
    if not _report("synchronize", inventory_store.synchronize_general_stock(db, tenant.id)):
        failures += 1

    initial = {name: quantity for name, _, _, quantity in DEMO_ARTICLES}
    general = (
        db.query(InventoryRecord)
        .join(Article, InventoryRecord.article_id == Article.id)
        .filter(
            InventoryRecord.tenant_id == tenant.id,
            InventoryRecord.location_type == int(LocationType.general),
            InventoryRecord.quantity == 0,
        )
        .all()
    )
    for record in general:
        target = initial.get(record.article.name)
        if target:
            result = consumption_poster.post_adjustment(db, record.id, target, "Inventario inicial", tenant.id, user_id)
            if not _report(f"general stock {record.article.name}", result):
                failures += 1

    rooms = db.query(Room).filter(Room.tenant_id == tenant.id).all()
    articles = db.query(Article).filter(Article.tenant_id == tenant.id).all()
    for room in rooms:
        for article in articles:
            result = inventory_store.create_inventory(
                db, tenant.id, article.id, LocationType.room, room.id, quantity=ROOM_STOCK, user_id=user_id
            )
            if not _report(f"room {room.name} {article.name}", result):
                failures += 1
    return failures


def seed_demo(db: Session):
    tenant = db.query(Tenant).filter(Tenant.slug == "demo").first()
    if tenant:
        return 0

    tenant = Tenant(name="Hotel Demo", slug="demo")
    db.add(tenant)
    db.flush()
    user = User(email="owner@demo.com", hashed_password=hash_password("secret123"), role="owner", tenant_id=tenant.id)
    db.add(user)
    db.commit()

    _seed_catalog(db, tenant)
    failures = _seed_stock(db, tenant, str(user.id))
    if failures:
        logger.warning("Seeded demo hotel tenant=%s with %s failed stock steps", tenant.id, failures)
    else:
        logger.info("Seeded demo hotel tenant=%s", tenant.id)
    return failures
