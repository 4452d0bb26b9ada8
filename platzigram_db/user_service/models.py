from typing import Optional
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, model_validator

class User(BaseModel):
    """
        An account. ``facebook`` marks accounts federated through an external
        identity provider; those carry no password.
    """
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: Optional[str] = None
    username: str
    password: Optional[str] = None
    facebook: bool = False
    created_at: Optional[datetime] = Field(None, alias="createdAt")

    @model_validator(mode="after")
    def check_password(self):
        if not self.facebook and self.password is None:
            raise ValueError("password is required unless the account is federated")
        return self

    def to_item(self) -> dict:
        item = self.model_dump(by_alias=True, exclude_none=True, exclude={"id"})
        if self.created_at is not None:
            item["createdAt"] = self.created_at.isoformat(timespec="microseconds")
        return item
