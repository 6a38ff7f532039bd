"""
Reglas de inventario: ubicaciones, tipos de movimiento y política de descuento de stock.

Regla general: toda mutación de cantidad que pase por el libro de inventario
deja un movimiento. Las dos rutas de consumo (posteo estricto y consumos de
visita) comparten la misma función de descuento y sólo difieren en la política
configurada para cada una.
"""
from enum import Enum, IntEnum
from typing import Optional

from hotel_inventory.core.errors import InsufficientStockError, LedgerValidationError


class LocationType(IntEnum):
    general = 0
    room = 1
    warehouse = 2


class MovementKind:
    entrada = "Entrada"
    salida = "Salida"
    transferencia = "Transferencia"
    ajuste = "Ajuste"
    consumo = "Consumo"
    devolucion = "Devolucion"
    perdida = "Perdida"
    sincronizacion = "Sincronizacion"


class AlertType:
    out_of_stock = "StockAgotado"
    critical = "StockCritico"
    low = "StockBajo"
    high = "StockAlto"


class AlertSeverity:
    low = "Baja"
    medium = "Media"
    high = "Alta"
    critical = "Critica"


class TransferStatus:
    pending = "Pendiente"
    approved = "Aprobada"
    rejected = "Rechazada"
    completed = "Completada"
    partially_completed = "ParcialmenteCompletada"
    cancelled = "Cancelada"


class TransferPriority:
    low = "Baja"
    medium = "Media"
    high = "Alta"
    urgent = "Urgente"

    choices = (low, medium, high, urgent)


class StockDirection(IntEnum):
    inbound = 1
    outbound = 2


class StockPolicy(str, Enum):
    reject = "reject"
    clamp = "clamp"


def validate_location(location_type: LocationType, location_id: Optional[int]) -> None:
    """
    Valida la forma de una ubicación.

    General no lleva ``location_id``; habitación y almacén lo requieren.

    Raises:
        LedgerValidationError: Si la combinación no es válida
    """
    if location_type == LocationType.general and location_id is not None:
        raise LedgerValidationError(
            "Invalid location",
            "General inventory cannot reference a location id",
        )
    if location_type != LocationType.general and location_id is None:
        raise LedgerValidationError(
            "Invalid location",
            f"Location type {location_type.name} requires a location id",
        )


def location_name(location_type: int, location_id: Optional[int], room_name: Optional[str] = None) -> str:
    if location_type == LocationType.general:
        return "Inventario General"
    if location_type == LocationType.room:
        return room_name or f"Habitación {location_id}"
    if location_type == LocationType.warehouse:
        return f"Almacén {location_id}"
    return "Ubicación Desconocida"


def apply_decrement(current: int, quantity: int, policy: StockPolicy) -> int:
    """
    Calcula la cantidad resultante al descontar ``quantity`` del stock actual.

    Args:
        current: Cantidad disponible
        quantity: Cantidad a descontar (positiva)
        policy: ``reject`` falla si no alcanza, ``clamp`` deja el stock en 0

    Returns:
        Nueva cantidad, nunca negativa

    Raises:
        InsufficientStockError: Con política ``reject`` y stock insuficiente
    """
    remaining = current - quantity
    if remaining >= 0:
        return remaining
    if policy == StockPolicy.reject:
        raise InsufficientStockError(available=current, requested=quantity)
    return 0


def direction_for(change: int) -> StockDirection:
    return StockDirection.outbound if change < 0 else StockDirection.inbound
