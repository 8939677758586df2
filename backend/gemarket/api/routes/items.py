"""
Item catalog and price routes.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from ...database import DatabasePool
from ..deps import get_pool
from ..services import item_service

router = APIRouter(prefix="/items", tags=["items"])


class Item(BaseModel):
    """Catalog item."""
    id: int
    name: str
    members: bool
    max_limit: Optional[int] = None
    value: Optional[float] = None
    highalch: Optional[float] = None
    lowalch: Optional[float] = None
    icon: Optional[str] = None


class ItemPrice(BaseModel):
    """Price snapshot joined with the item name."""
    id: int
    name: str
    current_price: Optional[float] = None
    current_trend: Optional[str] = None
    volume: Optional[int] = None
    today_price: Optional[float] = None
    today_trend: Optional[str] = None
    fetched_at: Optional[datetime] = None


class ItemWithPrice(Item):
    """Catalog item with its price snapshot, if any."""
    current_price: Optional[float] = None
    current_trend: Optional[str] = None
    volume: Optional[int] = None
    today_price: Optional[float] = None
    today_trend: Optional[str] = None
    fetched_at: Optional[datetime] = None


@router.get("/", response_model=List[Item])
def list_items(pool: DatabasePool = Depends(get_pool)):
    """List every catalog item."""
    try:
        with pool.connection() as conn:
            return item_service.get_all_items(conn)
    except Exception as e:
        print(f"Error fetching items: {e}", flush=True)
        raise HTTPException(status_code=500, detail="Error fetching items")


@router.get("/prices", response_model=List[ItemPrice])
def list_prices(pool: DatabasePool = Depends(get_pool)):
    """List items that have a price snapshot."""
    try:
        with pool.connection() as conn:
            return item_service.get_all_items_with_prices(conn)
    except Exception as e:
        print(f"Error fetching prices: {e}", flush=True)
        raise HTTPException(status_code=500, detail="Error fetching prices")


@router.get("/search", response_model=List[ItemWithPrice])
def search_items(
    name: str = Query(..., min_length=1, description="Substring of the item name"),
    pool: DatabasePool = Depends(get_pool),
):
    """Case-insensitive name search."""
    try:
        with pool.connection() as conn:
            return item_service.search_items_by_name(conn, name)
    except Exception as e:
        print(f"Error searching items: {e}", flush=True)
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/analytics/expensive", response_model=List[ItemWithPrice])
def most_expensive(
    limit: int = Query(10, ge=1, le=100),
    pool: DatabasePool = Depends(get_pool),
):
    """Items with the highest current price."""
    try:
        with pool.connection() as conn:
            return item_service.get_most_expensive_items(conn, limit)
    except Exception as e:
        print(f"Error fetching expensive items: {e}", flush=True)
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/analytics/traded", response_model=List[ItemWithPrice])
def most_traded(
    limit: int = Query(10, ge=1, le=100),
    pool: DatabasePool = Depends(get_pool),
):
    """Items with the highest traded volume."""
    try:
        with pool.connection() as conn:
            return item_service.get_most_traded_items(conn, limit)
    except Exception as e:
        print(f"Error fetching traded items: {e}", flush=True)
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/{item_id}", response_model=ItemWithPrice)
def get_item(item_id: int, pool: DatabasePool = Depends(get_pool)):
    """
    Get one item with its price.

    Raises:
        HTTPException: If the item does not exist
    """
    try:
        with pool.connection() as conn:
            item = item_service.get_item_by_id(conn, item_id)
    except Exception as e:
        print(f"Error fetching item {item_id}: {e}", flush=True)
        raise HTTPException(status_code=500, detail="Internal server error")

    if not item:
        raise HTTPException(status_code=404, detail="Item not found")
    return item
