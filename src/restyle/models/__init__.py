"""Domain entities and SQLModel tables.

DesignRow is imported here so it is registered with SQLModel metadata
before the schema is created.
"""

from restyle.models.design import DesignRecord, DesignStatus, InvalidStateTransition
from restyle.models.design_row import DesignRow
from restyle.models.style import STYLES, DesignStyle, get_style

__all__ = [
    "DesignRecord",
    "DesignStatus",
    "InvalidStateTransition",
    "DesignRow",
    "DesignStyle",
    "STYLES",
    "get_style",
]
