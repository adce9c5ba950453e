"""
Orders API Endpoints

Single read endpoint: the full order aggregate by store identifier.
"""

from typing import Any, Dict

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request

from orderstream.errors import (
    DependentRowError,
    InvalidIdentifierError,
    NotFoundError,
    PersistenceError,
    SerializationError,
)
from orderstream.serving.query import OrderQueryService, parse_order_id, render_order

logger = structlog.get_logger(__name__)
router = APIRouter()


def get_query_service(request: Request) -> OrderQueryService:
    """FastAPI dependency resolving the application's query service"""
    return request.app.state.query_service


@router.get("/{order_id}")
async def get_order(
    order_id: str,
    service: OrderQueryService = Depends(get_query_service),
) -> Dict[str, Any]:
    """
    Get an order by ID.

    - 400: the ID is not a positive integer
    - 404: no such order
    - 500: the order could not be loaded or serialized
    """
    try:
        oid = parse_order_id(order_id)
    except InvalidIdentifierError:
        logger.info("Invalid order id requested", raw=order_id)
        raise HTTPException(status_code=400, detail="Invalid order id")

    try:
        order = await service.get_order(oid)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Order not found")
    except (DependentRowError, PersistenceError) as e:
        logger.error("Unable to load order", order_id=oid, error=str(e))
        raise HTTPException(status_code=500, detail="Unable to load order")

    try:
        return render_order(order)
    except SerializationError as e:
        logger.error("Unable to serialize order", order_id=oid, error=str(e))
        raise HTTPException(status_code=500, detail="Internal Server Error")
