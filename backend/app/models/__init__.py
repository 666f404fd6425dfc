# Ontology Models
from app.models.ontology import (
    Employee, BusinessDay, NightAuditLog, NightAuditLock,
    Booking, BookingRoom, LedgerEntry, FoodOrder, FoodOrderItem, HousekeepingRoom
)

__all__ = [
    'Employee', 'BusinessDay', 'NightAuditLog', 'NightAuditLock',
    'Booking', 'BookingRoom', 'LedgerEntry', 'FoodOrder', 'FoodOrderItem', 'HousekeepingRoom'
]
