"""Agent routes."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..deps import get_client
from ..exceptions import EdenError
from ..services.eden_client import EdenClient

logger = logging.getLogger(__name__)

router = APIRouter(tags=["agents"])


async def _agent_or_404(client: EdenClient, agent_id: str) -> dict:
    try:
        agent = await client.get_agent(agent_id)
    except EdenError as e:
        logger.error(f"Failed to get agent {agent_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error",
        )

    if not agent:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Agent not found")

    return {"agent": agent.model_dump(by_alias=True)}


@router.get("")
async def list_agents(
    agent_id: Optional[str] = Query(None, alias="id", description="Return a single agent"),
    client: EdenClient = Depends(get_client),
) -> dict:
    """List agents, or fetch one when ``?id=`` is given.

    Listing never fails: an unreachable Eden yields an empty list.
    """
    if agent_id:
        return await _agent_or_404(client, agent_id)

    agents = await client.list_agents()
    logger.debug(f"Listed {len(agents)} agents")
    return {"agents": [agent.model_dump(by_alias=True) for agent in agents]}


@router.get("/{agent_id}")
async def get_agent(
    agent_id: str,
    client: EdenClient = Depends(get_client),
) -> dict:
    """Get a specific agent by ID."""
    return await _agent_or_404(client, agent_id)
