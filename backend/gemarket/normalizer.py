"""
Parsing of wiki cell text and loosely-typed API values.

Everything here is a pure function: malformed input yields None rather
than an exception, so one bad cell never costs the rest of its row.
"""

import math
import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple, Union


# Cell contents the wiki uses for "no value"
MISSING_VALUE_MARKERS = {'', 'N/A', '-', '−', '?'}

VALID_TRENDS = ('positive', 'negative', 'neutral')

Numeric = Union[str, int, float, None]


def parse_number(value: Numeric) -> Optional[float]:
    """Parse a cell or API value to a float.

    Examples:
    - "12,345" → 12345.0
    - " 1 234 " → 1234.0
    - "−3" → -3.0
    - "N/A", "-", "?" → None
    - "abc" → None
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        number = float(value)
        return number if math.isfinite(number) else None

    text = str(value).strip()
    if text in MISSING_VALUE_MARKERS:
        return None

    cleaned = re.sub(r'[,\s]', '', text)
    # Wiki tables use the typographic minus for negative bonuses
    if cleaned.startswith('−'):
        cleaned = '-' + cleaned[1:]

    try:
        number = float(cleaned)
    except ValueError:
        return None

    return number if math.isfinite(number) else None


def parse_int(value: Numeric) -> Optional[int]:
    """Parse a value to an int, None if missing or not integral."""
    number = parse_number(value)
    if number is None or not number.is_integer():
        return None
    return int(number)


def parse_trend(value) -> Optional[str]:
    """Normalize a price trend to positive/negative/neutral."""
    if not isinstance(value, str):
        return None
    trend = value.strip().lower()
    return trend if trend in VALID_TRENDS else None


# =============================================================================
# Healing notation
# =============================================================================

@dataclass
class HealingParse:
    """Healing parsed from a food table cell."""
    healing: int
    delayed_heal: int = 0
    bites: int = 1


def _bites(value: Optional[str]) -> int:
    if not value:
        return 1
    return max(int(value), 1)


def _delayed(match: re.Match, text: str) -> HealingParse:
    return HealingParse(healing=int(match.group(1)), delayed_heal=int(match.group(2)), bites=1)


def _variable(match: re.Match, text: str) -> HealingParse:
    # Healing is unknown, but a "× N" bite count may still be present
    bites = re.search(r'[×x]\s*(\d+)', text)
    return HealingParse(healing=0, delayed_heal=0, bites=_bites(bites.group(1) if bites else None))


def _multiple(match: re.Match, text: str) -> HealingParse:
    return HealingParse(healing=int(match.group(1)), delayed_heal=0, bites=_bites(match.group(2)))


def _simple(match: re.Match, text: str) -> HealingParse:
    return HealingParse(healing=int(match.group(1)), delayed_heal=0, bites=1)


# Ordered by precedence: "12 + 9" must never be read as a range or a product
HEALING_PATTERNS: List[Tuple[str, re.Pattern, Callable[[re.Match, str], HealingParse]]] = [
    ('delayed', re.compile(r'(\d+)\s*\+\s*(\d+)'), _delayed),
    ('variable', re.compile(r'\(\d+\s*[-−–]\s*\d+\)|\d+\s*[-−–]\s*\d+|\d+\s*%|random|up to \d+',
                            re.IGNORECASE), _variable),
    ('multiple', re.compile(r'(\d+)\s*[×x]\s*(\d+)'), _multiple),
    ('simple', re.compile(r'(\d+)'), _simple),
]


def parse_healing(text: Optional[str]) -> Optional[HealingParse]:
    """Parse a healing cell into immediate healing, delayed healing and bites.

    Examples:
    - "20" → 20 healing, 1 bite
    - "4 × 3" → 4 healing, 3 bites
    - "12 + 9" → 12 healing, 9 delayed, 1 bite
    - "(3 - 13) × 4" → 0 healing (variable), 4 bites
    - "Varies" → None
    """
    if not text:
        return None
    text = text.strip()

    for _name, pattern, build in HEALING_PATTERNS:
        match = pattern.search(text)
        if match:
            return build(match, text)

    return None
