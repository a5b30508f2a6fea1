"""
Category Lookup

Resolves the expense category used to tag ledger transactions created by
loan payments. Category management itself belongs to another subsystem;
the engine only needs the one capability below.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Optional
import uuid

from .storage import StorageInterface


class CategoryLookup(ABC):
    """Capability consumed by the payment orchestrator"""

    @abstractmethod
    def find_default_expense_category(self, owner_id: str) -> Optional[str]:
        """Category id to tag loan payment expenses with, or None"""
        pass


class StorageCategoryLookup(CategoryLookup):
    """
    Category lookup backed by the ``categories`` table.

    Prefers the owner's expense category flagged as default, then the
    oldest expense category.
    """

    table = "categories"

    def __init__(self, storage: StorageInterface):
        self.storage = storage

    def find_default_expense_category(self, owner_id: str) -> Optional[str]:
        categories = self.storage.find(self.table, {"owner_id": owner_id, "type": "expense"})
        if not categories:
            return None
        categories.sort(key=lambda c: (not c.get("is_default", False), c.get("created_at", "")))
        return categories[0]["id"]

    def register(self, owner_id: str, name: str, is_default: bool = False) -> str:
        """Register an expense category for an owner and return its id"""
        category_id = str(uuid.uuid4())
        self.storage.save(self.table, category_id, {
            "id": category_id,
            "owner_id": owner_id,
            "name": name,
            "type": "expense",
            "is_default": is_default,
            "created_at": datetime.now(timezone.utc).isoformat()
        })
        return category_id
