"""Domain models for Eden conversation sessions."""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    Field,
    PrivateAttr,
    SerializationInfo,
    field_validator,
    model_serializer,
    model_validator,
)


class MessageRole(str, Enum):
    """Author of a session message."""
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"
    EDEN = "eden"


class FinishReason(str, Enum):
    """Why the upstream stopped generating a message."""
    STOP = "stop"
    LENGTH = "length"
    TOOL_CALLS = "tool_calls"
    TOOL_USE = "tool_use"


class SessionStatus(str, Enum):
    """Session statuses the reconciler cares about."""
    PROCESSING = "processing"


class UpstreamModel(BaseModel):
    """Base for models parsed from Eden responses.

    Unknown fields are kept so that responses can be forwarded untouched.
    """

    class Config:
        """Pydantic configuration."""
        extra = "allow"
        populate_by_name = True


class SubtoolCall(UpstreamModel):
    """Nested tool invocation reported inside a tool result."""
    tool: str = ""
    args: Dict[str, Any] = Field(default_factory=dict)
    output: Optional[Any] = None


class ToolOutput(UpstreamModel):
    """Single media output of a tool call."""
    filename: Optional[str] = None
    url: Optional[str] = None
    uri: Optional[str] = None
    media_attributes: Optional[Dict[str, Any]] = Field(
        None, validation_alias=AliasChoices("mediaAttributes", "media_attributes"), serialization_alias="mediaAttributes"
    )
    creation: Optional[Any] = None

    @property
    def location(self) -> Optional[str]:
        return self.url or self.uri or self.filename


class ToolResult(UpstreamModel):
    """One entry of a tool call's result list."""
    output: List[ToolOutput] = Field(default_factory=list)
    subtool_calls: List[SubtoolCall] = Field(default_factory=list)
    intermediate_outputs: Optional[Dict[str, Any]] = None

    @field_validator("output", "subtool_calls", mode="before")
    @classmethod
    def _none_as_empty(cls, value):
        return value or []


class ToolCall(UpstreamModel):
    """Tool invocation attached to an assistant message."""
    id: str = Field("", validation_alias=AliasChoices("id", "_id"))
    tool: str = ""
    args: Dict[str, Any] = Field(default_factory=dict)
    task: Optional[Any] = None
    cost: Optional[float] = None
    status: Optional[str] = None
    result: Optional[List[ToolResult]] = None
    reactions: Optional[Any] = None
    error: Optional[Any] = None

    @property
    def is_completed(self) -> bool:
        return self.status == "completed"

    def output_locations(self) -> List[str]:
        """URLs (or filenames) of every media output this call produced."""
        locations = []
        for entry in self.result or []:
            for output in entry.output:
                if output.location:
                    locations.append(output.location)
        return locations


class SessionMessage(UpstreamModel):
    """Message within a session, in insertion order."""
    id: str = Field(..., validation_alias=AliasChoices("_id", "id"), serialization_alias="_id")
    session_id: Optional[str] = Field(None, validation_alias=AliasChoices("session_id", "session"))
    role: str = MessageRole.USER.value
    content: str = ""
    agent_id: Optional[str] = None
    sender: Optional[str] = None
    attachments: List[str] = Field(default_factory=list)
    thinking: Optional[str] = Field(None, validation_alias=AliasChoices("thinking", "thought"))
    finish_reason: Optional[str] = None
    tool_calls: List[ToolCall] = Field(default_factory=list)
    reactions: Optional[Dict[str, Any]] = None
    created_at: Optional[str] = Field(None, validation_alias=AliasChoices("createdAt", "created_at"), serialization_alias="createdAt")
    updated_at: Optional[str] = Field(None, validation_alias=AliasChoices("updatedAt", "updated_at"), serialization_alias="updatedAt")

    # Key each aliased field arrived under, restored when dumping by alias.
    _received_keys: Dict[str, str] = PrivateAttr(default_factory=dict)

    @model_validator(mode="wrap")
    @classmethod
    def _remember_received_keys(cls, data, handler):
        message = handler(data)
        if isinstance(data, dict):
            for field_name, alternate in (("session_id", "session"), ("thinking", "thought")):
                if field_name not in data and alternate in data:
                    message._received_keys[field_name] = alternate
        return message

    @model_serializer(mode="wrap")
    def _dump_received_keys(self, handler, info: SerializationInfo):
        data = handler(self)
        if info.by_alias:
            for field_name, key in self._received_keys.items():
                if field_name in data:
                    data[key] = data.pop(field_name)
        return data

    @field_validator("content", mode="before")
    @classmethod
    def _content_none_as_empty(cls, value):
        return value or ""

    @field_validator("attachments", "tool_calls", mode="before")
    @classmethod
    def _list_none_as_empty(cls, value):
        return value or []

    @property
    def is_assistant(self) -> bool:
        return self.role == MessageRole.ASSISTANT

    @property
    def has_content(self) -> bool:
        return bool(self.content)

    def media_locations(self) -> List[str]:
        locations = []
        for call in self.tool_calls:
            locations.extend(call.output_locations())
        return locations


class SessionBudget(UpstreamModel):
    """Budget limits and usage counters of a session."""
    manna_budget: Optional[float] = None
    token_budget: Optional[int] = None
    turn_budget: Optional[int] = None
    tokens_spent: Optional[int] = None
    manna_spent: Optional[float] = None
    turns_spent: Optional[int] = None


class AutonomySettings(UpstreamModel):
    """Settings for sessions where agents reply to each other."""
    auto_reply: bool = False
    reply_interval: float = 0
    actor_selection_method: str = Field("random", pattern="^(random|random_exclude_last)$")


class Session(UpstreamModel):
    """Conversation session document as returned by Eden."""
    id: str = Field(..., validation_alias=AliasChoices("_id", "id"), serialization_alias="_id")
    agent_ids: List[str] = Field(default_factory=list)
    messages: List[SessionMessage] = Field(default_factory=list)
    scenario: Optional[str] = None
    budget: Optional[SessionBudget] = None
    title: Optional[str] = None
    autonomy_settings: Optional[AutonomySettings] = None
    status: str = ""
    active_requests: List[Any] = Field(default_factory=list)
    created_at: Optional[str] = Field(None, validation_alias=AliasChoices("createdAt", "created_at"), serialization_alias="createdAt")
    updated_at: Optional[str] = Field(None, validation_alias=AliasChoices("updatedAt", "updated_at"), serialization_alias="updatedAt")

    @field_validator("agent_ids", "messages", "active_requests", mode="before")
    @classmethod
    def _list_none_as_empty(cls, value):
        return value or []

    @property
    def is_processing(self) -> bool:
        return self.status == SessionStatus.PROCESSING

    @property
    def has_active_requests(self) -> bool:
        return len(self.active_requests) > 0

    def latest_assistant_message(self) -> Optional[SessionMessage]:
        """Most recent assistant message, scanning from the end."""
        for message in reversed(self.messages):
            if message.is_assistant:
                return message
        return None


class SessionCreateOptions(BaseModel):
    """Options accepted when creating a session."""
    agent_ids: List[str] = Field(..., min_length=1, description="Agents taking part in the session")
    content: Optional[str] = Field(None, description="First user message")
    scenario: Optional[str] = None
    budget: Optional[SessionBudget] = None
    title: Optional[str] = None
    autonomy_settings: Optional[AutonomySettings] = None
