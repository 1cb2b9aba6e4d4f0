# backend/trailbook/routes/v1/trail_connections.py
"""
Trail connection ("walked together") routes - API v1

Endpoints:
    GET /check-eligibility/{user_id}  - Evaluate eligibility, no side effects
    POST /connect/{user_id}           - Create or reactivate the connection
    GET /walked-together              - Active connections of the caller
    GET /with/{user_id}               - Connection details plus fresh eligibility
    DELETE /with/{user_id}            - Deactivate the connection
"""

import asyncio
from typing import Any, Dict

from fastapi import APIRouter, Depends

from ...api.dependencies.auth import get_current_user_id
from ...api.dependencies.services import get_eligibility_service, get_trail_connection_service
from ...schemas.common import envelope
from ...services.eligibility_service import EligibilityService
from ...services.trail_connection_service import TrailConnectionService

router = APIRouter(tags=["trail-connections-v1"])


@router.get("/check-eligibility/{user_id}")
async def check_eligibility(
    user_id: str,
    current_user_id: str = Depends(get_current_user_id),
    service: EligibilityService = Depends(get_eligibility_service),
) -> Dict[str, Any]:
    result = await asyncio.to_thread(service.check_connection_eligibility, current_user_id, user_id)
    return envelope("Eligibility checked", result)


@router.post("/connect/{user_id}")
async def create_connection(
    user_id: str,
    current_user_id: str = Depends(get_current_user_id),
    service: TrailConnectionService = Depends(get_trail_connection_service),
) -> Dict[str, Any]:
    result = await asyncio.to_thread(service.create_connection, current_user_id, user_id)
    return envelope(result.message, result)


@router.get("/walked-together")
async def get_connections(
    current_user_id: str = Depends(get_current_user_id),
    service: TrailConnectionService = Depends(get_trail_connection_service),
) -> Dict[str, Any]:
    connections = await asyncio.to_thread(service.get_connections, current_user_id)
    return envelope("Connections fetched", {"connections": [c.to_wire() for c in connections]})


@router.get("/with/{user_id}")
async def get_connection_details(
    user_id: str,
    current_user_id: str = Depends(get_current_user_id),
    service: TrailConnectionService = Depends(get_trail_connection_service),
) -> Dict[str, Any]:
    details = await asyncio.to_thread(service.get_connection_details, current_user_id, user_id)
    return envelope("Connection details fetched", details)


@router.delete("/with/{user_id}")
async def remove_connection(
    user_id: str,
    current_user_id: str = Depends(get_current_user_id),
    service: TrailConnectionService = Depends(get_trail_connection_service),
) -> Dict[str, Any]:
    connection = await asyncio.to_thread(service.remove_connection, current_user_id, user_id)
    return envelope(
        "Connection removed", {"connectionId": connection.id, "isActive": connection.is_active}
    )
