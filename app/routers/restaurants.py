"""
Restaurant Directory Endpoints

Minimal registration and lookup backing the QR subsystem's
"restaurant must exist" check.
"""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError
from app.database import get_db
from app.schemas import ErrorResponse, RestaurantCreate, RestaurantResponse
from app.services.qr import SqlRestaurantDirectory

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/restaurants", tags=["Restaurants"])


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=RestaurantResponse,
    responses={400: {"model": ErrorResponse}},
)
async def create_restaurant(
    data: RestaurantCreate,
    db: AsyncSession = Depends(get_db),
) -> RestaurantResponse:
    """Register a restaurant."""
    directory = SqlRestaurantDirectory(db)
    restaurant = await directory.create(
        name=data.name,
        username=data.username,
        subdomain=data.subdomain,
    )
    return RestaurantResponse.model_validate(restaurant)


@router.get(
    "/{restaurant_id}",
    response_model=RestaurantResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_restaurant(
    restaurant_id: str,
    db: AsyncSession = Depends(get_db),
) -> RestaurantResponse:
    restaurant = await SqlRestaurantDirectory(db).find_by_id(restaurant_id)
    if restaurant is None:
        raise NotFoundError("Restaurant not found")
    return RestaurantResponse.model_validate(restaurant)
