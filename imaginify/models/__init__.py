from imaginify.models.user import User
from imaginify.models.image import Image
from imaginify.models.credit_ledger import CreditLedgerEntry
from imaginify.models.audit_log import AuditLog

__all__ = [
    "User",
    "Image",
    "CreditLedgerEntry",
    "AuditLog",
]
