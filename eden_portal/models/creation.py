"""Domain models for Eden creations and the cursor-paginated feed."""

from enum import Enum
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, Field

from .session import UpstreamModel

# First populated field wins when picking a URL to display.
DISPLAY_URL_FIELDS = ("thumbnail", "uri", "url")


class CreationType(str, Enum):
    """Feed filter on the kind of media."""
    IMAGE = "image"
    VIDEO = "video"
    ALL = "all"


class MediaAttributes(UpstreamModel):
    mime_type: Optional[str] = Field(None, validation_alias=AliasChoices("mimeType", "mime_type"), serialization_alias="mimeType")
    width: Optional[int] = None
    height: Optional[int] = None


class CreationUser(UpstreamModel):
    id: str = Field(..., validation_alias=AliasChoices("_id", "id"), serialization_alias="_id")
    username: Optional[str] = None
    user_image: Optional[str] = Field(None, validation_alias=AliasChoices("userImage", "user_image"), serialization_alias="userImage")


class Creation(UpstreamModel):
    """Creation produced on the Eden platform."""
    id: str = Field(..., validation_alias=AliasChoices("_id", "id"), serialization_alias="_id")
    uri: Optional[str] = None
    url: Optional[str] = None
    thumbnail: Optional[str] = None
    media_attributes: Optional[MediaAttributes] = Field(
        None, validation_alias=AliasChoices("mediaAttributes", "media_attributes"), serialization_alias="mediaAttributes"
    )
    prompt: Optional[str] = None
    tool: Optional[str] = None
    user: Optional[CreationUser] = None
    like_count: Optional[int] = Field(None, validation_alias=AliasChoices("likeCount", "like_count"), serialization_alias="likeCount")
    created_at: Optional[str] = Field(None, validation_alias=AliasChoices("createdAt", "created_at"), serialization_alias="createdAt")
    updated_at: Optional[str] = Field(None, validation_alias=AliasChoices("updatedAt", "updated_at"), serialization_alias="updatedAt")

    @property
    def media_type(self) -> str:
        """``image``, ``video`` or ``unknown`` from the mime type prefix."""
        mime_type = self.media_attributes.mime_type if self.media_attributes else None
        if mime_type and mime_type.startswith("image/"):
            return "image"
        if mime_type and mime_type.startswith("video/"):
            return "video"
        return "unknown"

    @property
    def display_url(self) -> str:
        for field in DISPLAY_URL_FIELDS:
            value = getattr(self, field)
            if value:
                return value
        return ""


class CreationFilters(BaseModel):
    """Query options for the creations feed."""
    cursor: Optional[str] = None
    limit: int = Field(default=20, ge=1, le=100)
    type: CreationType = CreationType.ALL
    only_mine: bool = False
    only_agents: bool = False
    sort: Optional[str] = None
    filter: List[str] = Field(default_factory=list, description="Raw 'key;value' filters")


class CreationsPage(BaseModel):
    """One page of the creations feed.

    ``has_more`` is true when the page is full. A full last page therefore
    reports ``True`` and the next request may come back empty.
    """
    items: List[Creation] = Field(default_factory=list)
    next_cursor: Optional[str] = None
    has_more: bool = False
