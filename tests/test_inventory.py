"""Tests for patternwiz.inventory."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from patternwiz.cancellation import CancellationToken
from patternwiz.errors import AnalysisCancelled, FilesystemError
from patternwiz.inventory import FileInventory, IgnoreRule, classify_role, detect_language
from patternwiz.models import AnalysisWarning


def _write(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def test_scan_classifies_roles_and_languages(tmp_path: Path) -> None:
    root = tmp_path / "repo"
    _write(root / "src" / "app.py", "print('hi')\n")
    _write(root / "tests" / "test_app.py", "def test_ok():\n    assert True\n")
    _write(root / "docs" / "overview.md", "# Overview\n")
    _write(root / "config" / "settings.yaml", "debug: true\n")
    _write(root / "Dockerfile", "FROM python:3.12-slim\n")
    _write(root / "assets" / "logo.svg", "<svg/>\n")

    inventory = FileInventory().scan(root)

    assert inventory.root == str(root.resolve())
    entries = {entry.path: entry for entry in inventory.entries}
    assert entries["src/app.py"].role == "source"
    assert entries["src/app.py"].language == "Python"
    assert entries["tests/test_app.py"].role == "test"
    assert entries["docs/overview.md"].role == "doc"
    assert entries["config/settings.yaml"].role == "config"
    assert entries["Dockerfile"].role == "config"
    assert entries["assets/logo.svg"].role == "other"
    assert entries["src/app.py"].size == len("print('hi')\n")


def test_scan_is_path_ordered_and_restartable(tmp_path: Path) -> None:
    root = tmp_path / "repo"
    for name in ("b.py", "a.py", "lib/z.py", "lib/c.py"):
        _write(root / name, "x = 1\n")

    scanner = FileInventory()
    first = [entry.path for entry in scanner.iter_entries(root)]
    second = [entry.path for entry in scanner.iter_entries(root)]

    assert first == second
    assert [entry.path for entry in scanner.scan(root).entries] == ["a.py", "b.py", "lib/c.py", "lib/z.py"]


def test_scan_skips_builtin_exclusions(tmp_path: Path) -> None:
    root = tmp_path / "repo"
    _write(root / "index.js", "console.log(1)\n")
    _write(root / "node_modules" / "react" / "index.js", "module.exports = {}\n")
    _write(root / ".git" / "HEAD", "ref: refs/heads/main\n")
    _write(root / ".venv" / "lib.py", "pass\n")
    _write(root / ".patternwiz" / "analysis" / "gaps.json", "{}\n")

    paths = FileInventory().scan(root).paths()

    assert paths == {"index.js"}


def test_scan_honours_gitignore_and_configured_exclusions(tmp_path: Path) -> None:
    root = tmp_path / "repo"
    _write(root / ".gitignore", "build/\n*.log\n!keep.log\n")
    _write(root / "build" / "bundle.js", "x\n")
    _write(root / "debug.log", "x\n")
    _write(root / "keep.log", "x\n")
    _write(root / "generated" / "client.ts", "x\n")
    _write(root / "src" / "main.ts", "x\n")

    paths = FileInventory(exclude_paths=["generated/"]).scan(root).paths()

    assert "build/bundle.js" not in paths
    assert "debug.log" not in paths
    assert "keep.log" in paths
    assert "generated/client.ts" not in paths
    assert "src/main.ts" in paths


def test_missing_root_raises_filesystem_error(tmp_path: Path) -> None:
    missing = tmp_path / "missing"
    with pytest.raises(FilesystemError) as excinfo:
        FileInventory().scan(missing)
    assert str(missing) in str(excinfo.value)


def test_file_root_raises_filesystem_error(tmp_path: Path) -> None:
    target = tmp_path / "file.txt"
    target.write_text("x", encoding="utf-8")
    with pytest.raises(FilesystemError):
        FileInventory().iter_entries(target)


@pytest.mark.skipif(os.name == "nt" or os.geteuid() == 0, reason="permission bits not enforced")
def test_unreadable_root_raises_filesystem_error(tmp_path: Path) -> None:
    root = tmp_path / "locked"
    root.mkdir()
    root.chmod(0)
    try:
        with pytest.raises(FilesystemError):
            FileInventory().scan(root)
    finally:
        root.chmod(0o755)


def test_cancelled_token_stops_the_walk(tmp_path: Path) -> None:
    root = tmp_path / "repo"
    _write(root / "a.py", "x = 1\n")
    token = CancellationToken()
    token.cancel()

    with pytest.raises(AnalysisCancelled):
        FileInventory(token=token).scan(root)


@pytest.mark.parametrize(
    ("path", "role"),
    [
        ("src/App.test.tsx", "test"),
        ("__tests__/api.js", "test"),
        ("requirements-dev.txt", "config"),
        ("package.json", "config"),
        (".eslintrc", "config"),
        (".github/CODEOWNERS", "config"),
        ("CHANGELOG.md", "doc"),
        ("docs/diagram.png", "doc"),
        ("server/index.ts", "source"),
        ("LICENSE", "other"),
    ],
)
def test_classify_role(path: str, role: str) -> None:
    assert classify_role(path) == role


def test_detect_language_is_case_insensitive() -> None:
    assert detect_language("Main.JAVA") == "Java"
    assert detect_language("notes") is None


def test_ignore_rule_parsing() -> None:
    assert IgnoreRule.parse("# comment") is None
    assert IgnoreRule.parse("   ") is None

    rule = IgnoreRule.parse("!/dist/")
    assert rule is not None
    assert rule.negate and rule.directory_only and rule.anchored
    assert rule.matches("dist", True)
    assert not rule.matches("dist", False)
    assert not rule.matches("web/dist", True)

    unanchored = IgnoreRule.parse("*.tmp")
    assert unanchored is not None
    assert unanchored.matches("a/b/c.tmp", False)


def test_unreadable_file_is_recorded_as_warning(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    root = tmp_path / "repo"
    _write(root / "src" / "app.py", "print('hi')\n")
    _write(root / "src" / "locked.py", "secret\n")
    real_stat = Path.stat

    def _stat(self: Path, *args: object, **kwargs: object) -> os.stat_result:
        if self.name == "locked.py":
            raise PermissionError(13, "Permission denied", str(self))
        return real_stat(self, *args, **kwargs)

    monkeypatch.setattr(Path, "stat", _stat)
    inventory = FileInventory().scan(root)

    assert inventory.paths() == {"src/app.py"}
    assert inventory.warnings == (
        AnalysisWarning(path="src/locked.py", reason="unreadable file (Permission denied)"),
    )


def test_unreadable_directory_is_recorded_as_warning(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    root = tmp_path / "repo"
    _write(root / "app.py", "print('hi')\n")
    real_walk = os.walk

    def _walk(top: Path, onerror=None, **kwargs: object):  # type: ignore[no-untyped-def]
        onerror(PermissionError(13, "Permission denied", str(Path(top) / "private")))
        yield from real_walk(top, onerror=onerror, **kwargs)

    monkeypatch.setattr("patternwiz.inventory.os.walk", _walk)
    inventory = FileInventory().scan(root)

    assert inventory.paths() == {"app.py"}
    assert [(warning.path, warning.reason) for warning in inventory.warnings] == [
        ("private", "unreadable directory (Permission denied)")
    ]
