"""Parsers for dependency manifests and structured configuration files.

Every parser raises :class:`~patternwiz.errors.ParseError` when the file is
malformed; callers decide whether that is fatal.
"""

from __future__ import annotations

import json
import re
import tomllib
import xml.etree.ElementTree as ET
from fnmatch import fnmatchcase
from pathlib import PurePosixPath
from typing import Any, Callable, Dict, List, Set

import yaml

from ..errors import ParseError

ECOSYSTEMS = ("node", "python", "java", "go", "rust", "ruby", "php")

_REQUIREMENT_NAME = re.compile(r"^\s*([A-Za-z0-9][A-Za-z0-9._-]*)")
_GRADLE_COORDINATE = re.compile(r"['\"]([\w\-.]+:[\w\-.]+)(?::[^'\"]+)?['\"]")
_GO_REQUIRE = re.compile(r"^\s*(?:require\s+)?([\w.\-]+(?:/[\w.\-~]+)+)\s+v[\w.\-+]+")
_GEM = re.compile(r"^\s*gem\s+['\"]([^'\"]+)['\"]")

_JSONC_NAMES = ("tsconfig*.json", "jsconfig*.json", ".eslintrc.json", "devcontainer.json")


def normalise_package(name: str) -> str:
    return name.strip().lower().replace("_", "-")


def is_requirements_file(name: str) -> bool:
    return fnmatchcase(name, "requirements*.txt") or fnmatchcase(name, "requirements*.in")


def manifest_ecosystem(name: str) -> str | None:
    """Return the ecosystem a dependency manifest belongs to, if any."""
    if is_requirements_file(name):
        return "python"
    return _MANIFEST_ECOSYSTEMS.get(name)


def parse_dependencies(path: str, text: str) -> Dict[str, List[str]]:
    """Return ``{ecosystem: sorted package names}`` for a dependency manifest."""
    name = PurePosixPath(path).name
    ecosystem = manifest_ecosystem(name)
    if ecosystem is None:
        return {}
    parser = _PARSERS["requirements" if is_requirements_file(name) else name]
    packages = parser(path, text)
    return {ecosystem: sorted({normalise_package(item) for item in packages if item})}


def load_structured(path: str, text: str) -> Any:
    """Parse a JSON, YAML, or TOML document chosen by file extension."""
    name = PurePosixPath(path).name
    suffix = PurePosixPath(path).suffix.lower()
    if suffix == ".json":
        if any(fnmatchcase(name, pattern) for pattern in _JSONC_NAMES):
            text = strip_trailing_commas(strip_json_comments(text))
        return _load_json(path, text)
    if suffix in {".yaml", ".yml"}:
        try:
            return yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ParseError(path, f"invalid YAML ({exc.__class__.__name__})") from exc
    if suffix == ".toml" or name == "Pipfile":
        return _load_toml(path, text)
    raise ParseError(path, "unsupported structured file type")


def strip_json_comments(text: str) -> str:
    """Remove // and /* */ comments outside string literals (JSONC)."""
    result: List[str] = []
    index = 0
    in_string = False
    length = len(text)
    while index < length:
        char = text[index]
        if in_string:
            result.append(char)
            if char == "\\" and index + 1 < length:
                result.append(text[index + 1])
                index += 2
                continue
            if char == '"':
                in_string = False
            index += 1
            continue
        if char == '"':
            in_string = True
            result.append(char)
            index += 1
        elif text.startswith("//", index):
            newline = text.find("\n", index)
            index = length if newline == -1 else newline
        elif text.startswith("/*", index):
            end = text.find("*/", index + 2)
            index = length if end == -1 else end + 2
        else:
            result.append(char)
            index += 1
    return "".join(result)


def strip_trailing_commas(text: str) -> str:
    """Drop commas directly before a closing ``}`` or ``]`` outside string literals."""
    result: List[str] = []
    index = 0
    in_string = False
    length = len(text)
    while index < length:
        char = text[index]
        if in_string:
            result.append(char)
            if char == "\\" and index + 1 < length:
                result.append(text[index + 1])
                index += 2
                continue
            if char == '"':
                in_string = False
        elif char == '"':
            in_string = True
            result.append(char)
        elif char == ",":
            lookahead = index + 1
            while lookahead < length and text[lookahead].isspace():
                lookahead += 1
            if lookahead >= length or text[lookahead] not in "}]":
                result.append(char)
        else:
            result.append(char)
        index += 1
    return "".join(result)


def _load_json(path: str, text: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise ParseError(path, f"invalid JSON at line {exc.lineno}: {exc.msg}") from exc


def _load_toml(path: str, text: str) -> Dict[str, Any]:
    try:
        return tomllib.loads(text)
    except tomllib.TOMLDecodeError as exc:
        raise ParseError(path, f"invalid TOML: {exc}") from exc


def _node_packages(path: str, text: str) -> Set[str]:
    data = _load_json(path, text)
    if not isinstance(data, dict):
        raise ParseError(path, "package.json must contain an object")
    packages: Set[str] = set()
    for key in ("dependencies", "devDependencies", "peerDependencies", "optionalDependencies"):
        section = data.get(key)
        if isinstance(section, dict):
            packages.update(section.keys())
    return packages


def _composer_packages(path: str, text: str) -> Set[str]:
    data = _load_json(path, text)
    if not isinstance(data, dict):
        raise ParseError(path, "composer.json must contain an object")
    packages: Set[str] = set()
    for key in ("require", "require-dev"):
        section = data.get(key)
        if isinstance(section, dict):
            packages.update(name for name in section if name != "php")
    return packages


def _requirements_packages(path: str, text: str) -> Set[str]:
    packages: Set[str] = set()
    for line in text.splitlines():
        stripped = line.split("#", 1)[0].strip()
        if not stripped or stripped.startswith("-"):
            continue
        match = _REQUIREMENT_NAME.match(stripped)
        if match:
            packages.add(match.group(1))
    return packages


def _requirement_name(spec: str) -> str:
    match = _REQUIREMENT_NAME.match(spec)
    return match.group(1) if match else ""


def _requirement_list(path: str, value: Any, key: str) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ParseError(path, f"{key} must be a list of requirement strings")
    return value


def _pyproject_packages(path: str, text: str) -> Set[str]:
    data = _load_toml(path, text)
    packages: Set[str] = set()
    project = data.get("project")
    if isinstance(project, dict):
        for dep in _requirement_list(path, project.get("dependencies"), "project.dependencies"):
            packages.add(_requirement_name(dep))
        optional = project.get("optional-dependencies") or {}
        if not isinstance(optional, dict):
            raise ParseError(path, "project.optional-dependencies must be a table")
        for extra, values in optional.items():
            for dep in _requirement_list(path, values, f"project.optional-dependencies.{extra}"):
                packages.add(_requirement_name(dep))

    tool = data.get("tool")
    poetry = tool.get("poetry", {}) if isinstance(tool, dict) else {}
    if isinstance(poetry, dict):
        for key in ("dependencies", "dev-dependencies"):
            section = poetry.get(key)
            if isinstance(section, dict):
                packages.update(section.keys())
        groups = poetry.get("group")
        if isinstance(groups, dict):
            for group in groups.values():
                section = group.get("dependencies") if isinstance(group, dict) else None
                if isinstance(section, dict):
                    packages.update(section.keys())

    packages.discard("python")
    return packages


def _pipfile_packages(path: str, text: str) -> Set[str]:
    data = _load_toml(path, text)
    packages: Set[str] = set()
    for key in ("packages", "dev-packages"):
        section = data.get(key)
        if isinstance(section, dict):
            packages.update(section.keys())
    return packages


def _cargo_packages(path: str, text: str) -> Set[str]:
    data = _load_toml(path, text)
    packages: Set[str] = set()
    for key in ("dependencies", "dev-dependencies", "build-dependencies"):
        section = data.get(key)
        if isinstance(section, dict):
            packages.update(section.keys())
    return packages


def _go_packages(path: str, text: str) -> Set[str]:
    packages: Set[str] = set()
    for line in text.splitlines():
        match = _GO_REQUIRE.match(line)
        if match:
            packages.add(match.group(1))
    return packages


def _gem_packages(path: str, text: str) -> Set[str]:
    return {match.group(1) for match in map(_GEM.match, text.splitlines()) if match}


def _pom_packages(path: str, text: str) -> Set[str]:
    try:
        root = ET.fromstring(text)
    except ET.ParseError as exc:
        raise ParseError(path, f"invalid XML: {exc}") from exc

    match = re.match(r"\{(.+)}", root.tag)
    prefix = f"{{{match.group(1)}}}" if match else ""
    packages: Set[str] = set()
    for dep in root.iter(f"{prefix}dependency"):
        group = dep.findtext(f"{prefix}groupId", default="").strip()
        artifact = dep.findtext(f"{prefix}artifactId", default="").strip()
        if group and artifact:
            packages.add(f"{group}:{artifact}")
    return packages


def _gradle_packages(path: str, text: str) -> Set[str]:
    packages: Set[str] = set()
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("//"):
            continue
        if any(token in line for token in ("implementation", "api", "compile", "runtimeOnly", "testImplementation")):
            match = _GRADLE_COORDINATE.search(line)
            if match:
                packages.add(match.group(1))
    return packages


_MANIFEST_ECOSYSTEMS: Dict[str, str] = {
    "package.json": "node",
    "pyproject.toml": "python",
    "Pipfile": "python",
    "pom.xml": "java",
    "build.gradle": "java",
    "build.gradle.kts": "java",
    "go.mod": "go",
    "Cargo.toml": "rust",
    "Gemfile": "ruby",
    "composer.json": "php",
}

_PARSERS: Dict[str, Callable[[str, str], Set[str]]] = {
    "package.json": _node_packages,
    "requirements": _requirements_packages,
    "pyproject.toml": _pyproject_packages,
    "Pipfile": _pipfile_packages,
    "pom.xml": _pom_packages,
    "build.gradle": _gradle_packages,
    "build.gradle.kts": _gradle_packages,
    "go.mod": _go_packages,
    "Cargo.toml": _cargo_packages,
    "Gemfile": _gem_packages,
    "composer.json": _composer_packages,
}


__all__ = [
    "ECOSYSTEMS",
    "load_structured",
    "manifest_ecosystem",
    "normalise_package",
    "parse_dependencies",
    "strip_json_comments",
    "strip_trailing_commas",
]
