# =============================================================================
# Window Catalog
# =============================================================================

from __future__ import annotations

import time
from uuid import uuid4

from loguru import logger

from .errors import Error, ErrorType, Result
from .models import ALL_CATEGORIES, UNCATEGORIZED, WindowCategory, WindowDefinition
from .runtime import RuntimeCallError, WindowRuntime
from .themes import known_themes


class WindowCatalog:
    """
    Ordered window definitions plus their categories.

    Immutable once built: a reload produces a new catalog instead of
    patching this one.
    """

    def __init__(self, definitions, categories):
        self._definitions: tuple[WindowDefinition, ...] = tuple(definitions)
        self._categories: dict[str, WindowCategory] = {c.id: c for c in categories}
        self._by_id: dict[str, WindowDefinition] = {d.id: d for d in self._definitions}

    @classmethod
    def from_payload(cls, payload: dict) -> Result["WindowCatalog"]:
        """
        Validate a ``get_available_windows`` payload into a catalog.

        Duplicate window or category ids reject the whole payload; a window
        naming an unknown category is kept as uncategorized.
        """
        categories: list[WindowCategory] = []
        seen_categories: set[str] = set()
        try:
            for raw in payload.get("categories", []):
                category = WindowCategory.from_dict(raw)
                if category.id in seen_categories:
                    return _validation_error(f"Duplicate category id: {category.id}", category.id)
                seen_categories.add(category.id)
                categories.append(category)

            definitions: list[WindowDefinition] = []
            seen_windows: set[str] = set()
            for raw in payload.get("windows", []):
                definition = WindowDefinition.from_dict(raw)
                if definition.id in seen_windows:
                    return _validation_error(f"Duplicate window id: {definition.id}", definition.id)
                seen_windows.add(definition.id)
                if definition.category not in seen_categories and definition.category != UNCATEGORIZED:
                    logger.warning(
                        "Window references unknown category, treating as uncategorized",
                        operation="catalog_from_payload",
                        status="uncategorized",
                        window_id=definition.id,
                        category=definition.category,
                    )
                    definition = definition.uncategorized()
                theme = definition.config.theme if definition.config else None
                if theme and theme.strip().lower() not in known_themes():
                    logger.warning(
                        "Window references unknown theme, default profile will be used",
                        operation="catalog_from_payload",
                        status="default_theme",
                        window_id=definition.id,
                        theme=theme,
                        known_themes=list(known_themes()),
                    )
                definitions.append(definition)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            return _validation_error(f"Malformed catalog entry: {e}", None, e)

        return Result.ok(cls(definitions, categories))

    @property
    def definitions(self) -> tuple[WindowDefinition, ...]:
        return self._definitions

    @property
    def categories(self) -> tuple[WindowCategory, ...]:
        return tuple(self._categories.values())

    def __len__(self) -> int:
        return len(self._definitions)

    def __contains__(self, window_id: str) -> bool:
        return window_id in self._by_id

    def get(self, window_id: str) -> WindowDefinition | None:
        return self._by_id.get(window_id)

    def category(self, category_id: str) -> WindowCategory | None:
        return self._categories.get(category_id)

    def filter(self, category: str | None = None) -> list[WindowDefinition]:
        """Entries in ``category`` (all entries for None / "all"), catalog order."""
        if category is None or category == ALL_CATEGORIES:
            return list(self._definitions)
        return [d for d in self._definitions if d.category == category]

    def shortcut_entries(self) -> list[WindowDefinition]:
        """Entries carrying a shortcut key, catalog order.

        This is the only shortcut-to-window table; adding ``shortcut`` to a
        definition is enough to wire it up.
        """
        return [d for d in self._definitions if d.shortcut]

    def find_by_shortcut(self, key: str) -> WindowDefinition | None:
        wanted = key.strip().lower()
        for definition in self.shortcut_entries():
            if definition.shortcut == wanted:
                return definition
        return None


def _validation_error(message: str, item_id: str | None, exc: Exception | None = None) -> Result:
    logger.error(
        message,
        operation="catalog_from_payload",
        status="failed",
        item_id=item_id,
    )
    return Result.err(Error(
        error_type=ErrorType.VALIDATION_ERROR,
        message=message,
        context={"item_id": item_id} if item_id else {},
        original_exception=exc,
    ))


async def load_catalog(runtime: WindowRuntime) -> Result[WindowCatalog]:
    """
    Fetch and validate the catalog from the runtime.

    Any failure (runtime call or validation) is reported as
    CONFIG_UNAVAILABLE so callers can show a retryable error state.
    Calling again is an idempotent re-fetch.
    """
    op_trace_id = str(uuid4())
    start_time = time.perf_counter()
    logger.debug(
        "Loading window catalog",
        operation="load_catalog",
        status="started",
        trace_id=op_trace_id,
    )

    try:
        payload = await runtime.get_available_windows()
    except RuntimeCallError as e:
        logger.error(
            "Catalog unavailable from runtime",
            operation="load_catalog",
            status="failed",
            trace_id=op_trace_id,
            error=str(e),
        )
        return Result.err(Error(
            error_type=ErrorType.CONFIG_UNAVAILABLE,
            message=f"Window catalog unavailable: {e}",
            context={"call": e.call},
            original_exception=e,
        ))

    parsed = WindowCatalog.from_payload(payload)
    if parsed.is_err():
        return Result.err(Error(
            error_type=ErrorType.CONFIG_UNAVAILABLE,
            message=f"Window catalog invalid: {parsed.error.message}",
            context=dict(parsed.error.context),
            original_exception=parsed.error.original_exception,
        ))

    catalog = parsed.value
    duration_ms = int((time.perf_counter() - start_time) * 1000)
    logger.info(
        "Window catalog loaded",
        operation="load_catalog",
        status="success",
        trace_id=op_trace_id,
        metrics={
            "windows": len(catalog),
            "categories": len(catalog.categories),
            "shortcuts": len(catalog.shortcut_entries()),
            "duration_ms": duration_ms,
        },
    )
    return Result.ok(catalog)
