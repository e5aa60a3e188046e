"""
Account and Session Models

An account is an email/password identity stored in the document store.
A session is the in-process record of who is signed in; its owner ID
partitions every line item.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from every_rand.models.budget import utc_now


class Account(BaseModel):
    """A stored user account."""
    model_config = ConfigDict(
        str_strip_whitespace=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    id: str = Field(
        ...,
        min_length=1,
        description="Store-assigned account ID (used as owner ID)"
    )
    email: str = Field(
        ...,
        min_length=3,
        max_length=320,
        description="Login email, normalised to lower case"
    )
    password_hash: str = Field(
        ...,
        description="argon2 hash of the password"
    )
    created_at: datetime = Field(
        default_factory=utc_now,
        description="When the account was registered"
    )

    @field_validator('email')
    @classmethod
    def normalise_email(cls, v: str) -> str:
        return normalise_email(v)

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> "Account":
        return cls.model_validate(document)


class Session(BaseModel):
    """The signed-in identity for one interactive session."""
    model_config = ConfigDict(frozen=True)

    owner_id: str = Field(
        ...,
        min_length=1,
        description="Stable owner identifier for all line items"
    )
    email: str = Field(
        ...,
        description="Email of the signed-in account"
    )
    started_at: datetime = Field(
        default_factory=utc_now,
        description="When the session started"
    )


def normalise_email(email: str) -> str:
    """Emails are matched case-insensitively."""
    return email.strip().lower()
