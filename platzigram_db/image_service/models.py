from typing import List, Optional
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field

class Image(BaseModel):
    """An image post. Stored attribute names are the camelCase aliases."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: Optional[str] = None
    public_id: Optional[str] = Field(None, alias="publicId")
    description: Optional[str] = None
    tags: List[str] = []
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    user_id: Optional[str] = Field(None, alias="userId")
    likes: int = Field(0, ge=0)
    liked: bool = False

    def to_item(self) -> dict:
        """Document to insert; keys are left to the storage engine."""
        item = self.model_dump(by_alias=True, exclude_none=True, exclude={"id", "public_id"})
        if self.created_at is not None:
            # fixed precision keeps lexical order equal to chronological order
            item["createdAt"] = self.created_at.isoformat(timespec="microseconds")
        return item
