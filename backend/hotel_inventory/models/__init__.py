from .tenant import Tenant
from .user import User
from .article import Article
from .room import Room
from .inventory_record import InventoryRecord
from .inventory_movement import InventoryMovement, MovementMetadata
from .stock_movement import StockMovement
from .consumption import StayMovement, Consumption
from .stock_alert import AlertConfiguration, StockAlert
from .transfer_document import TransferDocument, TransferLine

__all__ = [
    "Tenant",
    "User",
    "Article",
    "Room",
    "InventoryRecord",
    "InventoryMovement",
    "MovementMetadata",
    "StockMovement",
    "StayMovement",
    "Consumption",
    "AlertConfiguration",
    "StockAlert",
    "TransferDocument",
    "TransferLine",
]
