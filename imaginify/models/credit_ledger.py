from datetime import datetime

from beanie import Document, PydanticObjectId
from pydantic import Field
from pymongo import ASCENDING, DESCENDING, IndexModel


class CreditLedgerEntry(Document):
    """One applied credit adjustment; the idempotency key claims the adjustment before it runs."""

    user: PydanticObjectId
    amount: int  # positive = grant, negative = debit
    balance_after: int | None = None  # unset until the increment lands
    reason: str  # signup, transformation, purchase, refund, admin
    reference_type: str | None = None  # image, stripe_payment, etc.
    reference_id: str | None = None
    idempotency_key: str
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "credit_ledger"
        indexes = [
            IndexModel([("user", ASCENDING), ("created_at", DESCENDING)]),
            IndexModel([("idempotency_key", ASCENDING)], unique=True),
        ]
