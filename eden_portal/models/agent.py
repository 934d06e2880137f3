"""Domain model for Eden agents."""

from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, Field

from .session import UpstreamModel


class AgentSuggestion(BaseModel):
    """Prompt suggestion shown next to an agent."""
    label: str
    prompt: str


class AgentOwner(UpstreamModel):
    id: str = Field(..., validation_alias=AliasChoices("_id", "id"), serialization_alias="_id")
    username: Optional[str] = None
    user_image: Optional[str] = Field(None, validation_alias=AliasChoices("userImage", "user_image"), serialization_alias="userImage")


class Agent(UpstreamModel):
    """Agent configured on the Eden platform."""
    id: str = Field(..., validation_alias=AliasChoices("_id", "id"), serialization_alias="_id")
    name: str = ""
    description: Optional[str] = None
    image: Optional[str] = None
    user_image: Optional[str] = Field(None, validation_alias=AliasChoices("userImage", "user_image"), serialization_alias="userImage")
    key: Optional[str] = None
    persona: Optional[str] = None
    greeting: Optional[str] = None
    suggestions: List[AgentSuggestion] = Field(default_factory=list)
    tools: Dict[str, Any] = Field(default_factory=dict)
    public: Optional[bool] = None
    owner: Optional[AgentOwner] = None

    @property
    def avatar(self) -> Optional[str]:
        """Profile picture, preferring ``userImage`` over ``image``."""
        return self.user_image or self.image
