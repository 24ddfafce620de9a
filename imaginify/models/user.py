from datetime import datetime

from beanie import Document, Indexed
from pydantic import Field


class User(Document):
    clerk_id: Indexed(str, unique=True)
    email: str
    username: str
    photo: str
    firstname: str = ""
    lastname: str = ""
    plan_id: int = 1
    credit_balance: int = 10
    stripe_id: str | None = None
    stripe_customer_id: str | None = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "users"
