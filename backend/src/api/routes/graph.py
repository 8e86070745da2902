import logging

from fastapi import APIRouter, Depends, HTTPException
from typing import Annotated

from ...models.graph import GraphData, GraphSaveRequest, GraphSaveResponse
from ..middleware import AuthContext, get_auth_context
from ...services.graph_service import GraphService, StaleVersionError, get_graph_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/api/graph", response_model=GraphData, response_model_by_alias=True)
async def get_graph_data(
    auth: Annotated[AuthContext, Depends(get_auth_context)],
    service: Annotated[GraphService, Depends(get_graph_service)],
) -> GraphData:
    """Return the owner's nodes, links and version stamp."""
    try:
        return service.load(auth.user_id)
    except Exception as e:
        logger.exception("Graph load failed for user %s", auth.user_id)
        raise HTTPException(status_code=500, detail=f"Failed to fetch graph data: {str(e)}")


@router.post("/api/graph", response_model=GraphSaveResponse)
async def save_graph_data(
    request: GraphSaveRequest,
    auth: Annotated[AuthContext, Depends(get_auth_context)],
    service: Annotated[GraphService, Depends(get_graph_service)],
) -> GraphSaveResponse:
    """
    Replace the owner's whole graph with the posted snapshot.

    Client-supplied owner ids are ignored; everything is stored under the
    token's owner. A version not newer than the stored one yields 409.
    """
    try:
        version = service.save(auth.user_id, request.nodes, request.links, request.version)
    except StaleVersionError:
        raise
    except Exception as e:
        logger.exception("Graph save failed for user %s", auth.user_id)
        raise HTTPException(status_code=500, detail=f"Failed to save graph data: {str(e)}")
    return GraphSaveResponse(message="Graph saved", version=version)
