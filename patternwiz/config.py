"""Configuration loading for patternwiz (.patternwiz.yml)."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

CONFIG_FILENAME = ".patternwiz.yml"

OUTPUT_FORMATS = ("json", "markdown", "both")


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class DetectionConfig:
    """Thresholds applied by the detectors and the gap analyzer."""

    threshold: float = 0.5
    completeness_threshold: float = 0.8
    max_file_bytes: int = 1_048_576


@dataclass
class OutputConfig:
    """Where and how analysis artifacts are written."""

    dir: str = ".patternwiz"
    format: str = "both"


@dataclass
class ContextDefaults:
    """Defaults used for context gathering (and the only source in quick mode)."""

    project_name: Optional[str] = None
    stage: Optional[str] = None
    team_size: Optional[str] = None
    goals: List[str] = field(default_factory=list)


@dataclass
class PatternWizConfig:
    """Represents the settings defined in .patternwiz.yml."""

    root: Path
    exclude_paths: List[str] = field(default_factory=list)
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    context: ContextDefaults = field(default_factory=ContextDefaults)
    priorities: Dict[str, float] = field(default_factory=dict)
    catalogue_dir: Optional[Path] = None


def load_config(config_path: Path) -> PatternWizConfig:
    """Load configuration from disk, returning defaults when the file is absent."""
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()

    if not config_file.exists():
        return PatternWizConfig(root=root)

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    detection = DetectionConfig()
    detection_data = _as_dict(data.get("detection"))
    if detection_data:
        threshold = _as_float(detection_data.get("threshold"))
        if threshold is not None:
            detection.threshold = _unit_interval("detection.threshold", threshold)
        completeness = _as_float(detection_data.get("completeness_threshold"))
        if completeness is not None:
            detection.completeness_threshold = _unit_interval(
                "detection.completeness_threshold", completeness
            )
        max_bytes = _as_int(detection_data.get("max_file_bytes"))
        if max_bytes is not None:
            if max_bytes <= 0:
                raise ConfigError("detection.max_file_bytes must be positive")
            detection.max_file_bytes = max_bytes

    output = OutputConfig()
    output_data = _as_dict(data.get("output"))
    if output_data:
        output.dir = _as_str(output_data.get("dir")) or output.dir
        fmt = _as_str(output_data.get("format"))
        if fmt is not None:
            if fmt not in OUTPUT_FORMATS:
                raise ConfigError(
                    f"output.format must be one of {', '.join(OUTPUT_FORMATS)}, got {fmt!r}"
                )
            output.format = fmt

    context = ContextDefaults()
    context_data = _as_dict(data.get("context"))
    if context_data:
        context.project_name = _as_str(context_data.get("project_name"))
        context.stage = _as_str(context_data.get("stage"))
        context.team_size = _as_str(context_data.get("team_size"))
        context.goals = _as_str_list(context_data.get("goals"))

    priorities: Dict[str, float] = {}
    for key, value in _as_dict(data.get("priorities")).items():
        weight = _as_float(value)
        if weight is None:
            raise ConfigError(f"priorities.{key} must be a number")
        priorities[str(key)] = _unit_interval(f"priorities.{key}", weight)

    catalogue_dir_str = _as_str(data.get("catalogue_dir"))
    catalogue_dir = root / catalogue_dir_str if catalogue_dir_str else None

    return PatternWizConfig(
        root=root,
        exclude_paths=_as_str_list(data.get("exclude_paths")),
        detection=detection,
        output=output,
        context=context,
        priorities=priorities,
        catalogue_dir=catalogue_dir,
    )


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    if config_path.name != CONFIG_FILENAME:
        return (config_path.parent / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Any:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Failed to read {path.name}: {exc}") from exc
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded or {}


def _unit_interval(name: str, value: float) -> float:
    if not 0.0 <= value <= 1.0:
        raise ConfigError(f"{name} must be between 0 and 1, got {value}")
    return value


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float, bool)) else None


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float, bool))]
    return []
