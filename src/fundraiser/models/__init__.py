"""ORM models package -- re-exports all models and the Base class."""

from fundraiser.models.base import Base
from fundraiser.models.donation import (
    Category,
    Donation,
    ProcessedWebhook,
)

__all__ = [
    "Base",
    "Category",
    "Donation",
    "ProcessedWebhook",
]
