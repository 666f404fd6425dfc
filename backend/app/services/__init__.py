# Business Services
from app.services.business_day_service import BusinessDayService
from app.services.ledger_service import LedgerService
from app.services.booking_service import BookingService
from app.services.employee_service import EmployeeService
from app.services.night_audit_service import NightAuditService, perform_night_audit
from app.services.receipt_service import ReceiptService

__all__ = [
    'BusinessDayService', 'LedgerService', 'BookingService', 'EmployeeService',
    'NightAuditService', 'perform_night_audit', 'ReceiptService'
]
