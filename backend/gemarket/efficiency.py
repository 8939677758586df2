"""
Cost-efficiency metrics, computed on read and never stored.

Higher-is-better stats are scored as attribute per coin; weight and speed,
where lower is better, are scored as coins per unit instead.
"""

from typing import Any, Callable, Dict, Iterable, List, Optional

EQUIPMENT_PLACES = 9
CONSUMABLE_PLACES = 6
COST_PLACES = 6
BITE_PLACES = 2

VALUE_ATTRIBUTES = [
    'stab_acc', 'slash_acc', 'crush_acc', 'magic_acc', 'ranged_acc',
    'stab_def', 'slash_def', 'crush_def', 'magic_def', 'ranged_def',
    'melee_strength', 'ranged_strength', 'magic_damage', 'prayer_bonus',
]

COST_ATTRIBUTES = ['weight', 'speed']

ALL_ATTRIBUTES = VALUE_ATTRIBUTES + COST_ATTRIBUTES


def _usable(attribute: Optional[float], price: Optional[float]) -> bool:
    return attribute is not None and attribute != 0 and price is not None and price > 0


def value_per_cost(attribute: Optional[float], price: Optional[float],
                   places: int = EQUIPMENT_PLACES) -> Optional[float]:
    """attribute / price, or None when either side carries no signal."""
    if not _usable(attribute, price):
        return None
    return round(attribute / price, places)


def cost_per_value(attribute: Optional[float], price: Optional[float],
                   places: int = COST_PLACES) -> Optional[float]:
    """price / |attribute|, for attributes where lower is better."""
    if not _usable(attribute, price):
        return None
    return round(price / abs(attribute), places)


def attribute_efficiency(attribute_name: str, attribute: Optional[float],
                         price: Optional[float]) -> Optional[float]:
    """Score one equipment attribute with the metric its direction calls for."""
    if attribute_name in COST_ATTRIBUTES:
        return cost_per_value(attribute, price)
    return value_per_cost(attribute, price)


def amount_per_bite(amount: Optional[float], bites: Optional[int]) -> Optional[float]:
    if amount is None or not bites:
        return None
    return round(amount / bites, BITE_PLACES)


def rank_by_efficiency(entries: Iterable[Dict[str, Any]], key: str,
                       limit: Optional[int] = None) -> List[Dict[str, Any]]:
    """Sort entries by entry[key] descending, dropping entries without a score.

    Ties keep their input order.
    """
    ranked = sorted((e for e in entries if e.get(key) is not None),
                    key=lambda e: e[key], reverse=True)
    if limit is not None:
        ranked = ranked[:limit]
    return ranked


def top_per_group(entries: Iterable[Dict[str, Any]], group_key: str, key: str,
                  limit: int) -> Dict[str, List[Dict[str, Any]]]:
    """Top `limit` entries of each group, groups in first-seen order."""
    groups: Dict[str, List[Dict[str, Any]]] = {}
    for entry in entries:
        groups.setdefault(entry.get(group_key), []).append(entry)
    return {group: rank_by_efficiency(members, key, limit) for group, members in groups.items()}
