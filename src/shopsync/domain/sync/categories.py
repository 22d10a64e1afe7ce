"""Map declared catalog categories onto the local taxonomy."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from shopsync.domain.model import (
    UNCATEGORIZED_NAME,
    Category,
    CategoryKind,
    SpecialCategory,
    UnmatchedCategoryPolicy,
)

if TYPE_CHECKING:
    from collections.abc import Iterable
    from uuid import UUID

    from shopsync.domain.ports import CategoryRepository

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CategoryResolution:
    refs: frozenset[UUID] = field(default_factory=frozenset)
    primary: UUID | None = None
    accepted: bool = True  # False means: skip the item under the strict policy


class CategoryResolver:
    """Resolves category references for one run.

    Call the ``ensure_*`` methods inside a unit of work first; afterwards :meth:`resolve`
    works purely on the collected ids so it can be shared across sub-batches.
    """

    def __init__(
        self,
        *,
        policy: UnmatchedCategoryPolicy = UnmatchedCategoryPolicy.SKIP,
        create_missing: bool = True,
    ) -> None:
        self._policy = policy
        self._create_missing = create_missing
        self._regular: dict[str, UUID] = {}
        self._special: dict[SpecialCategory, UUID] = {}
        self._default: UUID | None = None

    @property
    def policy(self) -> UnmatchedCategoryPolicy:
        return self._policy

    @property
    def known_regular(self) -> dict[str, UUID]:
        return dict(self._regular)

    def prepare(self, categories: CategoryRepository, names: Iterable[str]) -> None:
        """Ensure specials and the run's regular categories, falling back to stored ones."""

        self.ensure_special_categories(categories)
        regular = self.ensure_regular_categories(categories, names)
        if not regular:
            for category in categories.list_regular():
                self._regular.setdefault(category.name, category.id)
            log.info("No categories in first page, using %d stored ones", len(self._regular))
        if self._policy is UnmatchedCategoryPolicy.UNCATEGORIZED:
            default = self._ensure(
                categories, UNCATEGORIZED_NAME, CategoryKind.DEFAULT, "Products without a match"
            )
            self._default = default.id if default is not None else None

    def ensure_special_categories(
        self, categories: CategoryRepository
    ) -> dict[SpecialCategory, UUID]:
        for special in SpecialCategory:
            category = self._ensure(
                categories,
                special.display_name,
                CategoryKind.SPECIAL,
                f"Products marked with '{special.marker}'",
            )
            if category is not None:
                self._special[special] = category.id
        return dict(self._special)

    def ensure_regular_categories(
        self, categories: CategoryRepository, names: Iterable[str]
    ) -> dict[str, UUID]:
        ensured: dict[str, UUID] = {}
        for raw in names:
            name = raw.strip()
            if not name or name in ensured:
                continue
            category = self._ensure(
                categories, name, CategoryKind.REGULAR, f"Products from category {name}"
            )
            if category is None or category.kind is not CategoryKind.REGULAR:
                continue
            ensured[name] = category.id
            self._regular[name] = category.id
        return ensured

    def resolve(self, declared_category: str, marker_text: str) -> CategoryResolution:
        """Special refs from markers in ``marker_text`` plus one primary match."""

        refs: set[UUID] = {
            ref for special, ref in self._special.items() if special.marker in marker_text
        }
        primary = self._match_primary(declared_category.strip())
        if primary is not None:
            refs.add(primary)
            return CategoryResolution(refs=frozenset(refs), primary=primary)

        if self._policy is UnmatchedCategoryPolicy.UNCATEGORIZED and self._default is not None:
            refs.add(self._default)
            return CategoryResolution(refs=frozenset(refs), primary=self._default)
        return CategoryResolution(refs=frozenset(refs), accepted=False)

    def _match_primary(self, declared: str) -> UUID | None:
        if not declared:
            return None
        exact = self._regular.get(declared)
        if exact is not None:
            return exact
        needle = declared.lower()
        # first hit wins; ties go to whichever category was registered first
        for name, ref in self._regular.items():
            candidate = name.lower()
            if needle in candidate or candidate in needle:
                log.debug("Partial category match %r -> %r", declared, name)
                return ref
        return None

    def _ensure(
        self,
        categories: CategoryRepository,
        name: str,
        kind: CategoryKind,
        description: str,
    ) -> Category | None:
        existing = categories.find_by_name(name)
        if existing is not None:
            return existing
        if not self._create_missing:
            return None
        category = Category(name=name, kind=kind, description=description)
        categories.add(category)
        log.info("Created %s category %r", kind, name)
        return category
