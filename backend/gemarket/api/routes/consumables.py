"""
Consumable routes.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from ...database import DatabasePool
from ..deps import get_pool
from ..services import consumable_service

router = APIRouter(prefix="/consumables", tags=["consumables"])


class ConsumableEffect(BaseModel):
    """One effect row with its efficiency."""
    item_id: int
    item_name: str
    current_price: Optional[float] = None
    effect_type: str
    skill: str
    amount: float
    bites: int
    efficiency: Optional[float] = None


class HealingFood(BaseModel):
    """Food ranked by healing per coin."""
    item_id: int
    item_name: str
    current_price: Optional[float] = None
    healing: float
    bites: int
    healing_per_gp: Optional[float] = None
    healing_per_bite: Optional[float] = None


@router.get("/", response_model=List[Dict[str, Any]])
def list_consumables(pool: DatabasePool = Depends(get_pool)):
    """Priced consumables grouped by item, effects keyed by type."""
    try:
        with pool.connection() as conn:
            return consumable_service.get_all_consumables(conn)
    except Exception as e:
        print(f"Error fetching consumables: {e}", flush=True)
        raise HTTPException(status_code=500, detail="Error fetching consumables")


@router.get("/effect/{effect_type}", response_model=List[ConsumableEffect])
def consumables_by_effect(effect_type: str, pool: DatabasePool = Depends(get_pool)):
    """Effects of one type, best efficiency first."""
    if effect_type not in consumable_service.VALID_EFFECT_TYPES:
        raise HTTPException(status_code=400, detail="Invalid effect type")

    try:
        with pool.connection() as conn:
            return consumable_service.get_consumables_by_effect_type(conn, effect_type)
    except Exception as e:
        print(f"Error fetching consumables by effect type: {e}", flush=True)
        raise HTTPException(status_code=500, detail="Error fetching consumables")


@router.get("/healing/top", response_model=List[HealingFood])
def top_healing_foods(
    limit: int = Query(consumable_service.DEFAULT_HEALING_FOODS, ge=1),
    pool: DatabasePool = Depends(get_pool),
):
    """Foods with the most healing per coin. limit is capped at 50."""
    try:
        with pool.connection() as conn:
            return consumable_service.get_top_healing_foods(conn, limit)
    except Exception as e:
        print(f"Error fetching top healing foods: {e}", flush=True)
        raise HTTPException(status_code=500, detail="Error fetching healing foods")
