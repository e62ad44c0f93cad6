from __future__ import annotations

from pathlib import Path

from hungry_games.templates.registry import TemplateLibrary, TemplateStore, load_template_store


_STORE: TemplateStore | None = None


def init_templates(*, project_root: Path) -> TemplateStore:
    """Load templates once and cache the store.

    Safe to call multiple times; subsequent calls return the already loaded store.
    """

    global _STORE
    if _STORE is None:
        _STORE = load_template_store(root=project_root)
    return _STORE


def reset_templates_for_tests() -> None:
    global _STORE
    _STORE = None


def get_templates() -> TemplateLibrary:
    """Current built-in library, re-read first if the file changed on disk."""

    if _STORE is None:
        raise RuntimeError("Templates not initialized. Call init_templates() at startup.")
    _STORE.refresh_if_changed()
    return _STORE.library
