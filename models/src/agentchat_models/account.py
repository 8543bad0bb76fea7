"""Account model."""

from pydantic import BaseModel, Field


class Account(BaseModel):
    """The fields of a user account needed to generate a reply."""

    uid: int | str = Field(..., description="User ID")
    name: str = Field("", description="Display name")
    credit: float | None = Field(None, description="Remaining credit balance")
