"""API request/response schemas for the /api surface."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from .models.session import AutonomySettings, SessionBudget
from .models.task import MediaType


class ApiModel(BaseModel):
    """Base for bodies whose wire names are camelCase."""

    class Config:
        """Pydantic configuration."""
        populate_by_name = True


# Task-related schemas
class TaskCreateRequest(BaseModel):
    """Schema for submitting a generation task."""

    class Config:
        """Pydantic configuration."""
        protected_namespaces = ()

    text_input: str = Field(..., min_length=1, max_length=4000, description="Prompt for the creation")
    type: MediaType = Field(default=MediaType.IMAGE, description="Media type to generate")
    model_preference: Optional[str] = Field(None, description="Optional model hint")


class TaskCreateResponse(ApiModel):
    task_id: str = Field(..., alias="taskId", description="Upstream task identifier")


class TaskPollRequest(ApiModel):
    """Schema for polling a task. The id is validated by the client."""
    task_id: Optional[str] = Field(None, alias="taskId", description="Task identifier to poll")


class TaskPollResponse(BaseModel):
    uri: Optional[str] = Field(None, description="Creation URI, null while the task is running")


# Chat-related schemas
class ChatRequest(ApiModel):
    """Schema for the chat endpoint: start a session or send a message."""
    session_id: Optional[str] = Field(None, alias="sessionId", description="Existing session")
    message: Optional[str] = Field(None, max_length=4000, description="Message content")
    agent_id: Optional[str] = Field(None, alias="agentId", description="Agent for a new session")


class SessionIdResponse(BaseModel):
    session_id: str = Field(..., description="Session identifier")


# Session-related schemas
class SessionRequest(BaseModel):
    """Schema for creating a session or, with ``session_id``, sending to one."""
    session_id: Optional[str] = Field(None, description="Session to send to")
    agent_ids: Optional[List[str]] = Field(None, description="Agents taking part in the session")
    content: Optional[str] = Field(None, description="Message content")
    scenario: Optional[str] = None
    budget: Optional[SessionBudget] = None
    title: Optional[str] = None
    autonomy_settings: Optional[AutonomySettings] = None
    attachments: Optional[List[str]] = Field(None, description="Attachment URLs")


# Health check schema
class HealthResponse(BaseModel):
    """Schema for health check responses."""
    status: str = Field(default="healthy", description="Service health status")
    timestamp: datetime = Field(default_factory=datetime.utcnow, description="Health check timestamp")
    version: str = Field(default="1.0.0", description="Application version")
    services: dict = Field(default_factory=dict, description="Per-service status")
