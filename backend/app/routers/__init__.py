# API Routers
from app.routers import auth, business_day, night_audit, ledger, bookings, orders

__all__ = ['auth', 'business_day', 'night_audit', 'ledger', 'bookings', 'orders']
