"""
Small data helpers shared across services.

Nothing here does I/O. `to_coroutine` exists so plain callables can be fed to
`transform_all` alongside real coroutines.
"""

from __future__ import annotations

import base64
import functools
import hashlib
import hmac
import inspect
import json
import math
import secrets
import string
from datetime import date, datetime, timezone
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Sequence,
    TypeVar,
    Union,
)

T = TypeVar("T")

DEFAULT_POOL = string.ascii_letters + string.digits

MONTHS_LIST: List[Dict[str, Any]] = [
    {"value": index, "label": name}
    for index, name in enumerate(
        [
            "January",
            "February",
            "March",
            "April",
            "May",
            "June",
            "July",
            "August",
            "September",
            "October",
            "November",
            "December",
        ]
    )
]


def array_maybe(items: Optional[List[T]]) -> List[T]:
    """Return `items`, or a new empty list for None.

    The empty list is fresh on every call; appending to it does not touch the
    caller's data.
    """
    return items if items is not None else []


def object_maybe(obj: Optional[Dict[Any, Any]]) -> Dict[Any, Any]:
    return obj if obj is not None else {}


def string_maybe(value: Any) -> str:
    return value or ""


def is_empty_array(items: Any) -> bool:
    """True for None, an empty sequence, or any other falsy non-bool value."""
    if isinstance(items, bool):
        return False
    return not items or len(items) == 0


def is_empty_object(obj: Optional[Mapping[Any, Any]]) -> bool:
    return not obj


def is_empty_entity(obj: Any) -> bool:
    if isinstance(obj, (list, tuple, bytes, bytearray, str)):
        return is_empty_array(obj)
    return is_empty_object(obj)


def clean_empty(obj: Union[List[Any], Dict[Any, Any]]) -> Union[List[Any], Dict[Any, Any]]:
    """Recursively drop None values from nested lists and dicts."""
    if isinstance(obj, list):
        return [
            clean_empty(v) if isinstance(v, (list, dict)) and v else v
            for v in obj
            if v is not None
        ]
    cleaned: Dict[Any, Any] = {}
    for key, value in obj.items():
        if value is None:
            continue
        cleaned[key] = clean_empty(value) if isinstance(value, (list, dict)) and value else value
    return cleaned


def number_range(start: int, end: int) -> List[int]:
    """Integers from start to end, both inclusive."""
    return list(range(start, end + 1))


def group_by_key(items: Iterable[Mapping[str, Any]], prop: str) -> Dict[Any, List[Mapping[str, Any]]]:
    grouped: Dict[Any, List[Mapping[str, Any]]] = {}
    for item in items:
        grouped.setdefault(item.get(prop), []).append(item)
    return grouped


def gen_random_string(
    length: int,
    *,
    pool: Optional[str] = None,
    include_numeric: bool = True,
    include_alphabet: bool = True,
    include_uppercase: bool = True,
    include_lowercase: bool = True,
) -> str:
    """
    Random string drawn from a character pool.

    Args:
        length: Number of characters to produce.
        pool: Characters to draw from (default: ASCII letters and digits).
        include_numeric: Keep digits in the pool.
        include_alphabet: Keep letters in the pool.
        include_uppercase: Keep uppercase letters in the pool.
        include_lowercase: Keep lowercase letters in the pool.

    Returns:
        A string of `length` characters.

    Raises:
        ValueError: If the filters leave the pool empty.

    Example:
        gen_random_string(10, include_uppercase=False)  # 'ru0nt886lh'
    """
    characters = pool if pool is not None else DEFAULT_POOL

    def _drop(chars: str, predicate: Callable[[str], bool]) -> str:
        return "".join(c for c in chars if not predicate(c))

    if not include_alphabet:
        characters = _drop(characters, lambda c: c in string.ascii_letters)
    if not include_uppercase:
        characters = _drop(characters, lambda c: c in string.ascii_uppercase)
    if not include_lowercase:
        characters = _drop(characters, lambda c: c in string.ascii_lowercase)
    if not include_numeric:
        characters = _drop(characters, lambda c: c in string.digits)

    if length <= 0:
        return ""
    if not characters:
        raise ValueError("character pool is empty after filtering")
    return "".join(secrets.choice(characters) for _ in range(length))


def get_random_int(minimum: float, maximum: float) -> int:
    """Random int in [ceil(minimum), floor(maximum)]."""
    low, high = math.ceil(minimum), math.floor(maximum)
    return low + secrets.randbelow(high - low + 1)


def get_days_in_seconds(days: float) -> float:
    return days * 24 * 60 * 60


def hash_data(value: str, key: str) -> str:
    """Keyed digest (HMAC-MD5, base64url without padding).

    Used for lookup tokens, not for password storage.
    """
    if not value or not key:
        raise ValueError("Invalid input")
    digest = hmac.new(key.encode("utf-8"), value.encode("utf-8"), hashlib.md5).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")


def safely_parse_json(text: Optional[Union[str, bytes]]) -> Any:
    """json.loads that returns {} for None or malformed input."""
    try:
        return json.loads(text if text is not None else "")
    except (json.JSONDecodeError, TypeError, UnicodeDecodeError):
        return {}


def split_array_to_chunks(items: Sequence[T], parts: int) -> List[List[T]]:
    """Split into `parts` chunks, front-loading the remainder."""
    remaining = list(items)
    result: List[List[T]] = []
    for i in range(parts, 0, -1):
        size = math.ceil(len(remaining) / i)
        result.append(remaining[:size])
        remaining = remaining[size:]
    return result


def compare_timestamps(t1: float, t2: float, diff_in_sec: float) -> bool:
    return t1 - t2 > diff_in_sec


def get_timestamp_label(value: Optional[datetime], *, today: Optional[date] = None) -> str:
    if value is None:
        return ""
    today = today or datetime.now(value.tzinfo).date()
    delta = (today - value.date()).days
    if delta == 0:
        return "Today"
    if delta == 1:
        return "Yesterday"
    return value.date().isoformat()


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def to_iso(value: Any) -> Any:
    """ISO string for datetimes; anything else passes through."""
    return value.isoformat() if isinstance(value, (datetime, date)) else value


def parse_disjoint_date(year: int, month: int, day: Optional[int] = None) -> str:
    """ISO timestamp from separate parts. `month` is zero-based."""
    return datetime(year, month + 1, day or 1, tzinfo=timezone.utc).isoformat()


def is_awaitable(obj: Any) -> bool:
    return inspect.isawaitable(obj)


def to_coroutine(fn: Callable[..., T]) -> Callable[..., Awaitable[T]]:
    """Wrap a sync callable so each call returns a coroutine."""

    @functools.wraps(fn)
    async def _wrapper(*args: Any, **kwargs: Any) -> T:
        return fn(*args, **kwargs)

    return _wrapper
