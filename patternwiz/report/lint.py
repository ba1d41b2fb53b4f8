"""Normalisation of rendered markdown."""

from __future__ import annotations

from typing import List


class MarkdownLinter:
    """Normalises line endings, heading spacing, blank runs, and trailing whitespace."""

    def lint(self, markdown: str) -> str:
        normalized = markdown.replace("\r\n", "\n").replace("\r", "\n")
        cleaned: List[str] = []
        in_code = False
        previous_blank = True

        for line in normalized.split("\n"):
            stripped = line.rstrip()
            if stripped.startswith("```"):
                in_code = not in_code
                cleaned.append(stripped)
                previous_blank = False
                continue

            if in_code:
                cleaned.append(stripped)
                continue

            if not stripped:
                if not previous_blank:
                    cleaned.append("")
                previous_blank = True
                continue

            if stripped.startswith("#"):
                if cleaned and cleaned[-1] != "":
                    cleaned.append("")
                cleaned.append(stripped)
                cleaned.append("")
                previous_blank = True
                continue

            cleaned.append(stripped)
            previous_blank = False

        while cleaned and cleaned[-1] == "":
            cleaned.pop()

        return "\n".join(cleaned) + "\n"


__all__ = ["MarkdownLinter"]
