"""Eden API client for tasks, sessions, agents and creations."""

import asyncio
import json
import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple, Type, TypeVar

import aiohttp
import pydantic
from pydantic import BaseModel

from ..config import Settings
from ..exceptions import (
    InvalidArgumentError,
    NotFoundError,
    ProtocolError,
    TransportError,
    UpstreamError,
    ValidationError,
)
from ..models.agent import Agent
from ..models.creation import Creation, CreationFilters, CreationsPage, CreationType
from ..models.session import Session, SessionCreateOptions
from ..models.task import MediaType, Task, TaskStatus

logger = logging.getLogger(__name__)

# Candidate fields, highest priority first. Dotted names descend into objects.
CREATED_TASK_ID_FIELDS = ("task._id", "taskId", "task_id", "id", "_id")
POLLED_TASK_ID_FIELDS = ("_id", "taskId", "task_id", "id")
TASK_OUTPUT_URL_FIELDS = ("url", "uri")
# Older task documents carry the creation inline instead of a result list.
TASK_CREATION_URL_FIELDS = ("creation.uri", "creation.url")

# Values a front-end may send when it lost track of the task id.
PLACEHOLDER_TASK_IDS = ("", "undefined")


def first_populated(data: Any, candidates: Iterable[str]) -> Optional[Any]:
    """Return the value of the first candidate field that is populated.

    Args:
        data: Decoded JSON object
        candidates: Field names in priority order, dotted for nested access

    Returns:
        The first truthy value found, or None
    """
    for candidate in candidates:
        value = data
        for key in candidate.split("."):
            if not isinstance(value, dict):
                value = None
                break
            value = value.get(key)
        if value:
            return value
    return None


ModelT = TypeVar("ModelT", bound=BaseModel)


def _parse(model: Type[ModelT], document: Any) -> ModelT:
    try:
        return model.model_validate(document)
    except pydantic.ValidationError as e:
        raise ProtocolError(f"Malformed {model.__name__} in Eden response: {e.error_count()} errors") from e


class EdenClient:
    """Async client for the Eden REST API.

    Every method is stateless apart from the pooled aiohttp session, which
    is created on first use and released by :meth:`close`.
    """

    def __init__(self, settings: Settings):
        """Initialize the Eden client.

        Args:
            settings: Application settings
        """
        self.settings = settings
        self.base_url = settings.eden_api_base.rstrip("/")
        self._session: Optional[aiohttp.ClientSession] = None

        logger.info(f"Eden client initialized for {self.base_url}")

    async def __aenter__(self) -> "EdenClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.settings.request_timeout)
            )
        return self._session

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    def _headers(self, with_api_key: bool = True) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if with_api_key and self.settings.eden_api_key:
            headers["X-Api-Key"] = self.settings.eden_api_key
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[List[Tuple[str, str]]] = None,
        payload: Optional[Dict[str, Any]] = None,
        with_api_key: bool = True,
    ) -> Dict[str, Any]:
        """Send a request and decode the JSON object it returns.

        Raises:
            NotFoundError: On a 404 response
            UpstreamError: On any other non-success response
            TransportError: If the API cannot be reached
            ProtocolError: If the body is not a JSON object
        """
        url = f"{self.base_url}{path}"
        session = self._get_session()

        try:
            async with session.request(
                method,
                url,
                params=params,
                json=payload,
                headers=self._headers(with_api_key),
            ) as response:
                body = await response.text()
                status = response.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Transport error on {method} {url}: {e!r}")
            raise TransportError(f"Could not reach Eden API at {url}") from e

        if status == 404:
            logger.debug(f"Eden API 404 for {method} {url}")
            raise NotFoundError(f"{path} not found")

        if status >= 400:
            logger.error(f"Eden API Error {status} for {method} {url}: {body}")
            raise UpstreamError(status, body, url)

        try:
            data = json.loads(body)
        except ValueError as e:
            raise ProtocolError(f"Eden API returned a non-JSON body for {path}") from e

        if not isinstance(data, dict):
            raise ProtocolError(f"Eden API returned {type(data).__name__} instead of an object for {path}")

        return data

    # Tasks

    async def create_task(
        self,
        prompt: str,
        media_type: MediaType = MediaType.IMAGE,
        model_preference: Optional[str] = None,
    ) -> str:
        """Submit a generation task.

        Args:
            prompt: Text prompt
            media_type: Whether to produce an image or a video
            model_preference: Optional model hint forwarded to the create tool

        Returns:
            Task identifier

        Raises:
            ValidationError: If the prompt is empty
            ProtocolError: If the response carries no task identifier
        """
        if not prompt or not prompt.strip():
            raise ValidationError("prompt is required")

        args: Dict[str, Any] = {"prompt": prompt}
        if MediaType(media_type) == MediaType.VIDEO:
            args["output"] = "video"
        if model_preference:
            args["model_preference"] = model_preference

        data = await self._request(
            "POST",
            "/v2/tasks/create",
            payload={"tool": "create", "args": args, "makePublic": True},
        )
        logger.debug(f"Task creation response: {data}")

        task_id = first_populated(data, CREATED_TASK_ID_FIELDS)
        if not task_id:
            logger.error(f"No task id found in response: {data}")
            raise ProtocolError("No task id returned from Eden API")

        logger.info(f"Created {MediaType(media_type).value} task {task_id}")
        return str(task_id)

    async def poll_task(self, task_id: str) -> Task:
        """Fetch the current state of a task.

        Raises:
            InvalidArgumentError: If ``task_id`` is empty or a placeholder,
                before any request is sent
        """
        if task_id is None or task_id in PLACEHOLDER_TASK_IDS:
            raise InvalidArgumentError(f"Invalid task id: {task_id!r}")

        data = await self._request("GET", f"/v2/tasks/{task_id}")
        logger.debug(f"Task poll response: {data}")

        document = data.get("task") or data
        if not isinstance(document, dict):
            raise ProtocolError(f"Task response for {task_id} is not an object")

        creation_uri = None
        result = document.get("result")
        if isinstance(result, list) and result and isinstance(result[0], dict):
            outputs = result[0].get("output")
            if isinstance(outputs, list) and outputs:
                creation_uri = first_populated(outputs[0], TASK_OUTPUT_URL_FIELDS)
        if creation_uri is None:
            creation_uri = first_populated(document, TASK_CREATION_URL_FIELDS)

        return Task(
            task_id=str(first_populated(document, POLLED_TASK_ID_FIELDS) or task_id),
            status=str(document.get("status") or TaskStatus.PENDING.value),
            creation_uri=creation_uri,
        )

    # Sessions

    async def create_session(self, options: SessionCreateOptions) -> str:
        """Create a conversation session and return its id."""
        payload = options.model_dump(exclude_none=True)
        data = await self._request("POST", "/v2/sessions", payload=payload)
        logger.debug(f"Session creation response: {data}")

        session_id = data.get("session_id")
        if not session_id:
            raise ProtocolError("No session_id returned from Eden API")

        logger.info(f"Created session {session_id} with agents {options.agent_ids}")
        return session_id

    async def get_session(self, session_id: str) -> Optional[Session]:
        """Fetch a session, or None if Eden does not know it."""
        try:
            data = await self._request("GET", f"/v2/sessions/{session_id}")
        except NotFoundError:
            return None

        document = data.get("session")
        if not document:
            raise ProtocolError(f"Session response for {session_id} has no session")
        return _parse(Session, document)

    async def send_session_message(
        self,
        session_id: str,
        content: str,
        attachments: Optional[List[str]] = None,
        agent_ids: Optional[List[str]] = None,
    ) -> str:
        """Append a user message to a session.

        Returns:
            The session id reported by Eden
        """
        if not content:
            raise ValidationError("content is required when sending a message")

        payload: Dict[str, Any] = {"session_id": session_id, "content": content}
        if attachments:
            payload["attachments"] = attachments
        if agent_ids:
            payload["agent_ids"] = agent_ids

        data = await self._request("POST", "/v2/sessions", payload=payload)
        logger.debug(f"Session message response: {data}")

        return data.get("session_id") or session_id

    # Agents

    async def list_agents(self) -> List[Agent]:
        """List agents. Degrades to an empty list on any failure."""
        try:
            data = await self._request("GET", "/v2/agents")
            return [_parse(Agent, doc) for doc in data.get("docs") or []]
        except Exception as e:
            logger.error(f"Failed to list agents: {str(e)}")
            return []

    async def get_agent(self, agent_id: str) -> Optional[Agent]:
        try:
            data = await self._request("GET", f"/v2/agents/{agent_id}")
        except NotFoundError:
            return None

        document = data.get("agent")
        return _parse(Agent, document) if document else None

    # Creations

    def _creation_params(self, filters: CreationFilters) -> List[Tuple[str, str]]:
        params: List[Tuple[str, str]] = []

        if filters.cursor:
            params.append(("cursor", filters.cursor))
        params.append(("limit", str(filters.limit)))

        if filters.type != CreationType.ALL:
            params.append(("filter", f"output_type;{CreationType(filters.type).value}"))

        if filters.only_agents:
            if self.settings.eden_agent_id:
                params.append(("filter", f"agent;{self.settings.eden_agent_id}"))
            else:
                logger.error("only_agents requested but no default agent id is configured")

        for extra in filters.filter:
            params.append(("filter", extra))

        if filters.sort:
            params.append(("sort", filters.sort))

        return params

    async def get_creations(self, filters: Optional[CreationFilters] = None) -> CreationsPage:
        """Fetch one page of the creations feed.

        ``has_more`` is derived from the page being full, not from Eden.
        """
        filters = filters or CreationFilters(limit=self.settings.creations_page_size)
        params = self._creation_params(filters)
        logger.debug(f"Creations request params: {params}")

        data = await self._request(
            "GET",
            "/v2/feed-cursor/creations",
            params=params,
            with_api_key=filters.only_mine or filters.only_agents,
        )

        docs = data.get("docs") or []
        return CreationsPage(
            items=[_parse(Creation, doc) for doc in docs],
            next_cursor=data.get("nextCursor"),
            has_more=len(docs) == filters.limit,
        )

    async def get_creation(self, creation_id: str) -> Optional[Creation]:
        try:
            data = await self._request("GET", f"/v2/creations/{creation_id}")
        except NotFoundError:
            return None

        document = data.get("creation")
        return _parse(Creation, document) if document else None


# Global Eden client instance - will be initialized during app startup
_eden_client: Optional[EdenClient] = None


def get_eden_client() -> Optional[EdenClient]:
    """Get the global Eden client instance.

    Returns:
        Eden client instance or None if not initialized
    """
    return _eden_client


def initialize_eden_client(settings: Settings) -> EdenClient:
    """Initialize the global Eden client instance.

    Args:
        settings: Application settings

    Returns:
        Initialized Eden client
    """
    global _eden_client
    _eden_client = EdenClient(settings)
    return _eden_client


async def shutdown_eden_client() -> None:
    """Close and forget the global Eden client."""
    global _eden_client
    if _eden_client is not None:
        await _eden_client.close()
    _eden_client = None
