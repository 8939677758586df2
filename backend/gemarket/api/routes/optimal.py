"""
Cost-efficient equipment routes.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from ...database import DatabasePool
from ..deps import get_pool
from ..services import equipment_service

router = APIRouter(prefix="/optimal", tags=["optimal"])


class OptimalEquipment(BaseModel):
    """One ranked item for an attribute."""
    item_id: int
    item_name: str
    current_price: Optional[float] = None
    slot: str
    attribute_value: float
    efficiency: Optional[float] = None


@router.get("/equipments", response_model=List[Dict[str, Any]])
def list_equipment(
    include_cost: bool = Query(False, description="Also report weight and speed as price per unit"),
    pool: DatabasePool = Depends(get_pool),
):
    """All priced equipment, every stat paired with its efficiency."""
    try:
        with pool.connection() as conn:
            return equipment_service.get_all_equipment(conn, include_cost_attributes=include_cost)
    except Exception as e:
        print(f"Error fetching equipments: {e}", flush=True)
        raise HTTPException(status_code=500, detail="Error fetching equipments")


@router.get("/equipments/{attribute}", response_model=List[OptimalEquipment])
def optimal_equipment(
    attribute: str,
    limit: int = Query(equipment_service.DEFAULT_EQUIPMENT_PER_SLOT, ge=1, le=50,
                       description="Items per slot"),
    pool: DatabasePool = Depends(get_pool),
):
    """Top items per slot for one attribute, by attribute per coin."""
    if not equipment_service.is_valid_attribute(attribute):
        raise HTTPException(status_code=400, detail="Invalid attribute")

    try:
        with pool.connection() as conn:
            return equipment_service.get_optimal_equipment_by_attribute(conn, attribute, limit)
    except Exception as e:
        print(f"Error fetching optimal equipment: {e}", flush=True)
        raise HTTPException(status_code=500, detail="Failed to fetch equipment data")
