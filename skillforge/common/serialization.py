"""
Serialization Utilities

Helpers for turning engine records (dataclasses, enums, datetimes, read-only
mappings) into plain dicts and JSON, plus the mixin the gamification models
use for ``to_dict``/``from_dict``.
"""

import json
import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Optional, Type, TypeVar
from dataclasses import is_dataclass, fields

T = TypeVar('T', bound='SerializableMixin')


def serialize(obj: Any, exclude_none: bool = False) -> Any:
    """
    Convert ``obj`` into JSON-compatible Python data.

    Args:
        obj: The object to convert
        exclude_none: Drop keys whose value is None

    Returns:
        Plain data made of dicts, lists, strings and numbers
    """
    if obj is None or isinstance(obj, (str, int, float, bool)):
        return obj

    if isinstance(obj, Enum):
        return obj.value

    if isinstance(obj, (datetime.datetime, datetime.date)):
        return obj.isoformat()

    if isinstance(obj, (list, tuple, set, frozenset)):
        return [serialize(item, exclude_none) for item in obj]

    if isinstance(obj, (dict, MappingProxyType)):
        result = {}
        for key, value in obj.items():
            if exclude_none and value is None:
                continue
            result[serialize(key) if isinstance(key, Enum) else key] = serialize(value, exclude_none)
        return result

    if hasattr(obj, 'to_dict') and callable(getattr(obj, 'to_dict')):
        return serialize(obj.to_dict(), exclude_none)

    # Plain dataclasses are walked field by field so nested enums survive
    if is_dataclass(obj):
        return serialize(
            {f.name: getattr(obj, f.name) for f in fields(obj)},
            exclude_none
        )

    return str(obj)


def to_json(obj: Any, pretty: bool = False, exclude_none: bool = False) -> str:
    """Serialize ``obj`` to a JSON string."""
    indent = 2 if pretty else None
    return json.dumps(serialize(obj, exclude_none), indent=indent, ensure_ascii=False, default=str)


def parse_datetime(value: Any) -> Optional[datetime.datetime]:
    """Parse an ISO string into a datetime, passing datetimes and None through."""
    if value is None or isinstance(value, datetime.datetime):
        return value
    return datetime.datetime.fromisoformat(value)


class SerializableMixin:
    """
    Mixin that provides dict/JSON round-tripping for dataclass records.

    Subclasses list the fields to emit in ``__serializable_fields__`` and may
    mark some of them as optional on load in ``__optional_fields__``.
    Subclasses with nested records override ``from_dict``.
    """

    __serializable_fields__: List[str] = []
    __optional_fields__: List[str] = []

    def to_dict(self) -> Dict[str, Any]:
        """Convert the object to a dictionary."""
        result = {}
        for name in self.__serializable_fields__:
            if hasattr(self, name):
                result[name] = serialize(getattr(self, name))
        return result

    def to_json(self, pretty: bool = False) -> str:
        """Convert the object to a JSON string."""
        return to_json(self.to_dict(), pretty)

    @classmethod
    def from_dict(cls: Type[T], data: Dict[str, Any]) -> T:
        """Create an instance from a dictionary."""
        init_kwargs = {}
        for name in cls.__serializable_fields__:
            if name in data:
                init_kwargs[name] = data[name]
            elif name not in cls.__optional_fields__:
                raise ValueError(f"Missing required field: {name}")

        return cls(**init_kwargs)

    @classmethod
    def from_json(cls: Type[T], json_str: str) -> T:
        """Create an instance from a JSON string."""
        return cls.from_dict(json.loads(json_str))
