"""Project context gathering for the analysis header."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, List, Optional

from .config import ContextDefaults
from .models import ProjectContext

InputFn = Callable[[str], str]

_UNKNOWN = "unknown"


class ContextGatherer:
    """Builds a :class:`ProjectContext` from configured defaults and, optionally, prompts."""

    def __init__(self, defaults: ContextDefaults | None = None, *, input_fn: InputFn = input) -> None:
        self.defaults = defaults or ContextDefaults()
        self.input_fn = input_fn

    def defaults_for(self, root: Path) -> ProjectContext:
        return ProjectContext(
            project_name=self.defaults.project_name or root.name or "project",
            stage=self.defaults.stage or _UNKNOWN,
            team_size=self.defaults.team_size or _UNKNOWN,
            goals=tuple(self.defaults.goals),
        )

    def gather(self, root: Path, *, interactive: bool = False) -> ProjectContext:
        """Return the context for ``root``; only prompts when ``interactive`` is set."""
        base = self.defaults_for(root)
        if not interactive:
            return base

        project_name = self._ask("Project name", base.project_name)
        stage = self._ask("Stage (prototype, mvp, production)", base.stage)
        team_size = self._ask("Team size", base.team_size)
        goals_default = ", ".join(base.goals)
        goals_raw = self._ask("Goals (comma-separated)", goals_default or None)
        goals: List[str] = [goal.strip() for goal in goals_raw.split(",") if goal.strip()]
        return ProjectContext(
            project_name=project_name,
            stage=stage,
            team_size=team_size,
            goals=tuple(goals),
        )

    def _ask(self, label: str, default: Optional[str]) -> str:
        prompt = f"{label} [{default}]: " if default else f"{label}: "
        try:
            answer = self.input_fn(prompt).strip()
        except EOFError:
            answer = ""
        return answer or (default or "")


__all__ = ["ContextGatherer"]
