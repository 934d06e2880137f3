"""Creations feed routes."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse

from ..deps import get_client
from ..exceptions import EdenError
from ..models.creation import CreationFilters, CreationType
from ..services.eden_client import EdenClient

logger = logging.getLogger(__name__)

router = APIRouter(tags=["creations"])

EXTRA_FILTER_PREFIX = "filter:"


@router.get("")
async def list_creations(
    request: Request,
    cursor: Optional[str] = Query(None, description="Cursor returned by the previous page"),
    limit: int = Query(20, ge=1, le=100),
    creation_type: CreationType = Query(CreationType.ALL, alias="type"),
    only_mine: bool = Query(False, alias="onlyMine"),
    only_agents: bool = Query(False, alias="onlyAgents"),
    sort: Optional[str] = Query(None),
    client: EdenClient = Depends(get_client),
):
    """List one page of creations.

    Any ``filter:<key>=<value>`` query parameter is forwarded as the extra
    feed filter ``<key>;<value>``. ``hasMore`` only says the page was full.
    """
    extra_filters = [
        f"{key[len(EXTRA_FILTER_PREFIX):]};{value}"
        for key, value in request.query_params.multi_items()
        if key.startswith(EXTRA_FILTER_PREFIX)
    ]

    filters = CreationFilters(
        cursor=cursor,
        limit=limit,
        type=creation_type,
        only_mine=only_mine,
        only_agents=only_agents,
        sort=sort,
        filter=extra_filters,
    )

    try:
        page = await client.get_creations(filters)
    except EdenError as e:
        logger.error(f"Failed to fetch creations: {str(e)}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal server error", "docs": [], "hasMore": False},
        )

    logger.debug(f"Fetched {len(page.items)} creations (has_more={page.has_more})")
    return {
        "docs": [creation.model_dump(by_alias=True) for creation in page.items],
        "nextCursor": page.next_cursor,
        "hasMore": page.has_more,
    }


@router.get("/{creation_id}")
async def get_creation(
    creation_id: str,
    client: EdenClient = Depends(get_client),
) -> dict:
    """Get a specific creation by ID.

    Raises:
        HTTPException: If the creation is not found
    """
    try:
        creation = await client.get_creation(creation_id)
    except EdenError as e:
        logger.error(f"Error fetching creation {creation_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch creation",
        )

    if not creation:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Creation not found")

    return {"creation": creation.model_dump(by_alias=True)}
