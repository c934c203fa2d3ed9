"""SQLModel database models for Canopy."""

from canopy.models.items import (
    Item,
    ItemBase,
    LifecycleState,
    MediaType,
    generate_preview_token,
)
from canopy.models.shares import SharedItem, SharedItemBase
from canopy.models.users import User, UserBase

__all__ = [
    "Item",
    "ItemBase",
    "LifecycleState",
    "MediaType",
    "SharedItem",
    "SharedItemBase",
    "User",
    "UserBase",
    "generate_preview_token",
]
