from __future__ import annotations

from pathlib import Path

from hungry_games.templates.singleton import init_templates


def init_templates_for_app() -> None:
    # project root is two levels up from this file: hungry_games/templates/startup.py
    project_root = Path(__file__).resolve().parents[2]
    init_templates(project_root=project_root)
