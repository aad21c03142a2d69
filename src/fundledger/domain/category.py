"""Category domain service."""

import logging
from typing import TYPE_CHECKING, Any, Optional

from fundledger.domain.entities import Category, UNCATEGORIZED, UNGROUPED
from fundledger.domain.errors import (
    ConflictError,
    NotFoundError,
    ValidationError,
    category_name_not_found,
)

if TYPE_CHECKING:
    from fundledger.database.base import Database

logger = logging.getLogger(__name__)


class CategoryService:
    """Service for managing categories."""

    def __init__(self, db: "Database"):
        """Initialize category service.

        Args:
            db: Database instance
        """
        self.db = db

    def create_category(self, name: str, parent_name: Optional[str] = None) -> int:
        """Create a category.

        Args:
            name: Category name (unique)
            parent_name: Optional parent category name

        Returns:
            Category ID

        Raises:
            ValidationError: If the name is empty
            ConflictError: If a category with this name exists
            NotFoundError: If parent category doesn't exist
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("Category name must not be empty")
        if self.db.get_category_by_name(name) is not None:
            raise ConflictError(f"Category '{name}' already exists")

        parent_id = None
        if parent_name is not None:
            parent = self.db.get_category_by_name(parent_name)
            if parent is None:
                raise NotFoundError(category_name_not_found(parent_name))
            parent_id = parent.id

        return self.db.create_category(name=name, parent_id=parent_id)

    def get_category(self, category_id: int) -> Optional[Category]:
        return self.db.get_category(category_id)

    def get_category_by_name(self, name: str) -> Optional[Category]:
        return self.db.get_category_by_name(name)

    def find_or_create_category(self, name: str) -> Category:
        """Return the category with this name, creating a top-level one if missing."""
        name = name.strip()
        if not name:
            raise ValidationError("Category name must not be empty")
        category = self.db.get_category_by_name(name)
        if category is None:
            category_id = self.db.create_category(name=name)
            logger.info("Created category '%s' (id=%s)", name, category_id)
            category = self.db.get_category(category_id)
        return category

    def list_categories(self) -> list[Category]:
        return self.db.list_categories()

    def get_category_tree(self) -> list[dict[str, Any]]:
        """Get full category tree.

        Returns:
            List of root categories with nested children
        """
        return self.db.get_category_tree()

    def group_lookup(self) -> dict[str, str]:
        """Map every category name to its group name in a single pass."""
        categories = {cat.id: cat for cat in self.db.list_categories()}

        def root(cat: Category) -> Category:
            seen = {cat.id}
            while cat.parent_id is not None and cat.parent_id in categories:
                cat = categories[cat.parent_id]
                if cat.id in seen:
                    break
                seen.add(cat.id)
            return cat

        lookup = {cat.name: root(cat).name for cat in categories.values()}
        lookup[UNCATEGORIZED] = UNGROUPED
        return lookup
