"""Project tree walking and file classification."""

from __future__ import annotations

import os
from dataclasses import dataclass
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Sequence

from .cancellation import CancellationToken
from .errors import FilesystemError
from .logging import get_logger
from .models import AnalysisWarning, Inventory, InventoryEntry

_EXCLUDED_DIRS = {
    ".git",
    ".hg",
    ".svn",
    ".venv",
    "venv",
    "node_modules",
    "bower_components",
    "vendor",
    "__pycache__",
    ".pytest_cache",
    ".mypy_cache",
    ".ruff_cache",
    ".tox",
    ".idea",
    ".vscode",
    ".next",
    ".patternwiz",
}

_EXCLUDED_FILES = {
    ".DS_Store",
    "Thumbs.db",
}

_LANGUAGE_BY_SUFFIX = {
    ".py": "Python",
    ".pyi": "Python",
    ".js": "JavaScript",
    ".mjs": "JavaScript",
    ".cjs": "JavaScript",
    ".jsx": "JavaScript",
    ".ts": "TypeScript",
    ".tsx": "TypeScript",
    ".vue": "Vue",
    ".svelte": "Svelte",
    ".java": "Java",
    ".kt": "Kotlin",
    ".kts": "Kotlin",
    ".go": "Go",
    ".rs": "Rust",
    ".rb": "Ruby",
    ".php": "PHP",
    ".cs": "C#",
    ".c": "C",
    ".h": "C",
    ".cpp": "C++",
    ".hpp": "C++",
    ".cc": "C++",
    ".swift": "Swift",
    ".scala": "Scala",
    ".sh": "Shell",
    ".bash": "Shell",
    ".ps1": "PowerShell",
    ".sql": "SQL",
    ".html": "HTML",
    ".css": "CSS",
    ".scss": "SCSS",
}

_CONFIG_SUFFIXES = {
    ".json",
    ".yaml",
    ".yml",
    ".toml",
    ".ini",
    ".cfg",
    ".conf",
    ".env",
    ".xml",
    ".properties",
    ".lock",
    ".gradle",
}

_CONFIG_NAMES = {
    "Dockerfile",
    "Makefile",
    "Procfile",
    "Gemfile",
    "Pipfile",
    "go.mod",
    "go.sum",
    ".gitignore",
    ".dockerignore",
    ".editorconfig",
    ".npmrc",
    ".nvmrc",
    ".env",
}

_DOC_SUFFIXES = {".md", ".rst", ".adoc", ".txt"}

_TEST_DIRS = {"test", "tests", "__tests__", "spec", "specs", "e2e"}
_DOC_DIRS = {"doc", "docs", "documentation"}
_CONFIG_DIRS = {"config", "configs", ".github", ".circleci"}

_TEST_FILE_PATTERNS = (
    "test_*.py",
    "*_test.py",
    "*.test.*",
    "*.spec.*",
    "*_test.go",
    "*Test.java",
    "*Tests.java",
    "*_spec.rb",
)


@dataclass(frozen=True)
class IgnoreRule:
    """One .gitignore-style pattern."""

    pattern: str
    directory_only: bool = False
    anchored: bool = False
    negate: bool = False

    @classmethod
    def parse(cls, raw: str) -> Optional["IgnoreRule"]:
        line = raw.strip()
        if not line or line.startswith("#"):
            return None
        negate = line.startswith("!")
        if negate:
            line = line[1:]
        directory_only = line.endswith("/")
        line = line.rstrip("/")
        anchored = line.startswith("/") or "/" in line
        line = line.lstrip("/")
        if not line:
            return None
        return cls(pattern=line, directory_only=directory_only, anchored=anchored, negate=negate)

    def matches(self, rel_path: str, is_dir: bool) -> bool:
        if self.directory_only and not is_dir:
            return False
        if self.anchored:
            return fnmatchcase(rel_path, self.pattern)
        return any(fnmatchcase(part, self.pattern) for part in rel_path.split("/"))


def load_ignore_rules(root: Path, extra_patterns: Iterable[str] = ()) -> List[IgnoreRule]:
    """Read .gitignore at the root and append configured exclusion patterns."""
    rules: List[IgnoreRule] = []
    gitignore = root / ".gitignore"
    if gitignore.is_file():
        try:
            lines = gitignore.read_text(encoding="utf-8").splitlines()
        except (OSError, UnicodeDecodeError):
            lines = []
        rules.extend(rule for rule in map(IgnoreRule.parse, lines) if rule is not None)
    rules.extend(rule for rule in map(IgnoreRule.parse, extra_patterns) if rule is not None)
    return rules


def is_ignored(rel_path: str, is_dir: bool, rules: Sequence[IgnoreRule]) -> bool:
    ignored = False
    for rule in rules:
        if rule.matches(rel_path, is_dir):
            ignored = not rule.negate
    return ignored


def detect_language(path: str) -> Optional[str]:
    return _LANGUAGE_BY_SUFFIX.get(Path(path).suffix.lower())


def classify_role(rel_path: str) -> str:
    """Return one of source, config, test, doc, or other for a relative path."""
    parts = rel_path.split("/")
    name = parts[-1]
    directories = {part.lower() for part in parts[:-1]}
    suffix = Path(name).suffix.lower()

    if directories & _TEST_DIRS or any(fnmatchcase(name, pattern) for pattern in _TEST_FILE_PATTERNS):
        return "test"
    if name.startswith("requirements") and suffix in {".txt", ".in"}:
        return "config"
    if suffix in _DOC_SUFFIXES:
        return "doc"
    if name in _CONFIG_NAMES or suffix in _CONFIG_SUFFIXES:
        return "config"
    if name.startswith(".") and suffix in {"", ".js", ".cjs", ".json", ".yml", ".yaml"}:
        # dotfile tool configs such as .eslintrc, .prettierrc.js
        return "config"
    if directories & _CONFIG_DIRS:
        return "config"
    if detect_language(name) is not None:
        return "source"
    if directories & _DOC_DIRS:
        return "doc"
    return "other"


class FileInventory:
    """Walks a project directory and classifies every file it keeps."""

    def __init__(
        self,
        exclude_paths: Sequence[str] = (),
        *,
        token: CancellationToken | None = None,
    ) -> None:
        self.exclude_paths = list(exclude_paths)
        self.token = token
        self.logger = get_logger("inventory")

    def iter_entries(self, root: str | Path) -> Iterator[InventoryEntry]:
        """Return a lazy iterator of entries.

        The root is validated immediately; each call walks the tree again.
        """
        root_path = resolve_root(root)
        rules = load_ignore_rules(root_path, self.exclude_paths)
        return self._walk(root_path, rules, [])

    def scan(self, root: str | Path) -> Inventory:
        """Materialise the inventory, ordered by relative path."""
        root_path = resolve_root(root)
        rules = load_ignore_rules(root_path, self.exclude_paths)
        skipped: List[AnalysisWarning] = []
        entries = sorted(self._walk(root_path, rules, skipped), key=lambda entry: entry.path)
        self.logger.debug("Inventory contains %d files, skipped %d paths", len(entries), len(skipped))
        return Inventory(
            root=str(root_path),
            entries=tuple(entries),
            warnings=tuple(sorted(skipped, key=lambda item: (item.path, item.reason))),
        )

    def _walk(
        self, root: Path, rules: Sequence[IgnoreRule], skipped: List[AnalysisWarning]
    ) -> Iterator[InventoryEntry]:
        def _on_error(exc: OSError) -> None:
            failed = Path(exc.filename or "")
            if failed == root:
                raise FilesystemError(f"Cannot read project root {root}: {exc.strerror}") from exc
            if failed.is_relative_to(root):
                rel_path = failed.relative_to(root).as_posix()
            else:
                rel_path = str(failed)
            self.logger.warning("Skipping unreadable directory %s: %s", rel_path, exc.strerror)
            skipped.append(
                AnalysisWarning(path=rel_path, reason=f"unreadable directory ({exc.strerror or exc})")
            )

        for dirpath, dirnames, filenames in os.walk(root, onerror=_on_error):
            if self.token is not None:
                self.token.raise_if_cancelled()
            current = Path(dirpath)
            rel_dir = "" if current == root else current.relative_to(root).as_posix()

            kept_dirs = []
            for name in sorted(dirnames):
                if name in _EXCLUDED_DIRS:
                    continue
                rel_path = f"{rel_dir}/{name}" if rel_dir else name
                if is_ignored(rel_path, True, rules):
                    continue
                kept_dirs.append(name)
            dirnames[:] = kept_dirs

            for filename in sorted(filenames):
                if filename in _EXCLUDED_FILES:
                    continue
                rel_path = f"{rel_dir}/{filename}" if rel_dir else filename
                if is_ignored(rel_path, False, rules):
                    continue
                try:
                    size = (current / filename).stat().st_size
                except OSError as exc:
                    self.logger.warning("Skipping %s: %s", rel_path, exc.strerror or exc)
                    skipped.append(
                        AnalysisWarning(path=rel_path, reason=f"unreadable file ({exc.strerror or exc})")
                    )
                    continue
                yield InventoryEntry(
                    path=rel_path,
                    role=classify_role(rel_path),
                    size=size,
                    language=detect_language(filename),
                )


def resolve_root(root: str | Path) -> Path:
    root_path = Path(root).expanduser().resolve()
    if not root_path.exists():
        raise FilesystemError(f"Project path not found: {root}")
    if not root_path.is_dir():
        raise FilesystemError(f"Project path is not a directory: {root}")
    if not os.access(root_path, os.R_OK | os.X_OK):
        raise FilesystemError(f"Project path is not readable: {root}")
    return root_path


__all__ = ["FileInventory", "IgnoreRule", "classify_role", "detect_language", "resolve_root"]
