"""Pydantic shapes shared by several routers.

Field names are snake_case in Python and camelCase on the wire, matching the
web client's expectations (``senderId``, ``createdAt``, ...).
"""

from datetime import datetime, timezone
from typing import Annotated

from pydantic import AfterValidator, BaseModel
from pydantic.alias_generators import to_camel


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]


class CamelModel(BaseModel):
    class Config:
        from_attributes = True
        alias_generator = to_camel
        populate_by_name = True


class UserSummary(CamelModel):
    id: int
    name: str
    avatar: str | None = None


class ContactResponse(UserSummary):
    role: str


class UserResponse(CamelModel):
    id: int
    name: str
    email: str
    role: str
    division_id: int | None = None
    avatar: str | None = None
    is_support_agent: bool = False
    created_at: UtcDatetime | None = None


class CountResponse(BaseModel):
    count: int
