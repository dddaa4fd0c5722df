"""
Database Schemas for the Swipe Defend API

MongoDB collections are validated on the way in with the Pydantic models
below. Documents are otherwise schema-less, so unknown fields are accepted and
stored as sent.

We will use these collections:
- users: platform accounts (default, admin)
- reviews: public property reviews
- contact: messages sent through the contact form
- payments: completed payments for a property
- scoreHistory: per-user score log
"""

from email_validator import EmailNotValidError, validate_email
from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from typing import Annotated, Optional, Literal


def check_email(value: str) -> str:
    # Validate only; lookups and self-access compare the address exactly as sent
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError as e:
        raise ValueError(str(e))
    return value


Email = Annotated[str, AfterValidator(check_email)]


class Document(BaseModel):
    model_config = ConfigDict(extra="allow")


class TokenRequest(Document):
    email: Email


class User(Document):
    email: Email
    name: Optional[str] = None
    photoURL: Optional[str] = None
    # Admins are only ever promoted through PATCH /users/admin/{id}
    role: Literal["default"] = Field("default")


class Review(Document):
    name: str = Field(..., min_length=1, max_length=120)
    details: str = Field(..., max_length=5000)
    rating: float = Field(..., ge=0, le=5)


class ReviewUpdate(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    details: str = Field(..., max_length=5000)
    rating: float = Field(..., ge=0, le=5)


class ContactMessage(Document):
    name: Optional[str] = None
    email: Email
    message: Optional[str] = Field(None, max_length=5000)
    status: str = Field("pending")


class ContactStatusUpdate(BaseModel):
    status: str = Field(..., min_length=1)


class Payment(Document):
    email: Email
    propertyId: str = Field(..., description="Reference to a property _id")
    amount: float = Field(..., ge=0)
    currency: str = Field("usd")
    transactionId: Optional[str] = None


class PaymentIntentRequest(BaseModel):
    price: float = Field(..., gt=0)


class ScoreHistory(Document):
    email: Email
    score: float
