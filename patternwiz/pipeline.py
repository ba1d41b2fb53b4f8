"""Pipeline orchestration: scan, extract, detect, analyze gaps, report."""

from __future__ import annotations

import os
import shutil
import tempfile
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .cancellation import CancellationToken
from .catalogue import Catalogue, load_catalogue
from .config import PatternWizConfig, load_config
from .context import ContextGatherer, InputFn
from .detectors import PatternDetector, TechnologyDetector
from .errors import FilesystemError
from .gaps import GapAnalyzer
from .inventory import FileInventory, resolve_root
from .logging import get_logger
from .models import AnalysisReport, GapRecommendation, PatternMatch, ProjectContext, TechnologyMatch
from .quality import QualityAssessor
from .report import ReportGenerator, build_analysis_payloads, render_json
from .rules import Rule, build_rules, discover_plugin_rules
from .signals import SignalExtractor

STAGES = ("tech", "patterns", "gaps")
ALL_CATEGORIES = STAGES + ("quality",)

ANALYSIS_DIR = "analysis"
REPORTS_DIR = "reports"
STAGING_SUFFIX = ".staging-"

Clock = Callable[[], datetime]


def resolve_categories(values: Iterable[str]) -> Tuple[str, ...]:
    """Normalise requested categories; ``all`` selects every stage plus quality."""
    requested: set[str] = set()
    for value in values:
        for item in str(value).split(","):
            name = item.strip().lower()
            if not name:
                continue
            if name == "all":
                requested.update(ALL_CATEGORIES)
            elif name in STAGES:
                requested.add(name)
            else:
                raise ValueError(
                    f"Unknown category '{name}'; expected one of {', '.join(STAGES)} or all"
                )
    if not requested:
        requested.update(ALL_CATEGORIES)
    return tuple(category for category in ALL_CATEGORIES if category in requested)


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass
class AnalysisOutcome:
    """Result of a CLI-style run: the report (absent for context-only runs) and written files."""

    context: ProjectContext
    output_dir: Path
    report: Optional[AnalysisReport] = None
    written: List[Path] = field(default_factory=list)


class ArtifactWriter:
    """Swaps a complete new output directory into place.

    The previous contents are copied into a staging directory beside the
    output directory and the new documents are written over them. The staged
    tree then replaces the output directory through two renames, so readers
    see either the old set of artifacts or the new one. Files from earlier
    runs that are not rewritten survive.
    """

    def __init__(self, output_dir: Path, *, token: CancellationToken | None = None) -> None:
        self.output_dir = output_dir
        self.token = token
        self.logger = get_logger("pipeline.writer")

    def write(self, documents: Mapping[str, str]) -> List[Path]:
        if self.output_dir.exists() and not self.output_dir.is_dir():
            raise FilesystemError(f"Output path {self.output_dir} is not a directory")
        try:
            self.output_dir.parent.mkdir(parents=True, exist_ok=True)
            prefix = f"{self.output_dir.name}{STAGING_SUFFIX}"
            staging = Path(tempfile.mkdtemp(prefix=prefix, dir=self.output_dir.parent))
        except OSError as exc:
            raise FilesystemError(f"Cannot write analysis output to {self.output_dir}: {exc}") from exc

        try:
            if self.output_dir.is_dir():
                shutil.copytree(self.output_dir, staging, dirs_exist_ok=True)
            for relative, text in sorted(documents.items()):
                staged = staging / relative
                staged.parent.mkdir(parents=True, exist_ok=True)
                staged.write_text(text, encoding="utf-8")
            if self.token is not None:
                self.token.raise_if_cancelled()
            self._swap(staging)
        except OSError as exc:
            raise FilesystemError(f"Cannot write analysis output to {self.output_dir}: {exc}") from exc
        finally:
            shutil.rmtree(staging, ignore_errors=True)

        written = [self.output_dir / relative for relative in sorted(documents)]
        self.logger.debug("Wrote %d files under %s", len(written), self.output_dir)
        return written

    def _swap(self, staging: Path) -> None:
        previous = staging.with_name(f"{staging.name}.old")
        if self.output_dir.exists():
            os.replace(self.output_dir, previous)
        try:
            os.replace(staging, self.output_dir)
        except OSError:
            if previous.exists():
                os.replace(previous, self.output_dir)
            raise
        shutil.rmtree(previous, ignore_errors=True)


class AnalysisPipeline:
    """Coordinates the analysis stages for one project at a time.

    Each stage consumes the complete output of the previous one. Nothing is
    written to disk until the whole report has been built and rendered.
    """

    def __init__(
        self,
        *,
        clock: Clock | None = None,
        plugin_rules: Optional[Sequence[Rule]] = None,
        report_generator: ReportGenerator | None = None,
        input_fn: InputFn = input,
        token: CancellationToken | None = None,
    ) -> None:
        self.clock = clock or _utc_now
        self._plugin_rules = list(plugin_rules) if plugin_rules is not None else None
        self.report_generator = report_generator or ReportGenerator()
        self.input_fn = input_fn
        self.token = token
        self.logger = get_logger("pipeline")

    def load_config(self, path: str | Path) -> PatternWizConfig:
        root = resolve_root(path)
        return load_config(root)

    def load_catalogue(self, config: PatternWizConfig) -> Tuple[Catalogue, List[Rule]]:
        plugins = self._plugin_rules
        if plugins is None:
            plugins = discover_plugin_rules()
        catalogue = load_catalogue(
            config.catalogue_dir,
            extra_signal_ids=[rule.signal_id for rule in plugins],
        )
        return catalogue, build_rules(catalogue, plugins)

    def gather_context(
        self,
        path: str | Path,
        *,
        interactive: bool = False,
        config: PatternWizConfig | None = None,
    ) -> ProjectContext:
        root = resolve_root(path)
        config = config or load_config(root)
        gatherer = ContextGatherer(config.context, input_fn=self.input_fn)
        return gatherer.gather(root, interactive=interactive)

    def analyze(
        self,
        path: str | Path,
        *,
        categories: Iterable[str] = ("all",),
        context: ProjectContext | None = None,
        config: PatternWizConfig | None = None,
        output_dir: Path | None = None,
    ) -> AnalysisReport:
        """Run the requested stages and return an immutable report."""
        root = resolve_root(path)
        selected = resolve_categories(categories)
        config = config or load_config(root)
        context = context or self.gather_context(root, config=config)
        catalogue, rules = self.load_catalogue(config)
        detection = config.detection
        generated_at = self.clock().isoformat(timespec="seconds")

        self.logger.info("Analyzing %s (%s)", root, ", ".join(selected))
        inventory_scanner = FileInventory(
            self._exclusions(root, config, output_dir),
            token=self.token,
        )
        inventory = inventory_scanner.scan(root)
        extractor = SignalExtractor(rules, max_file_bytes=detection.max_file_bytes, token=self.token)
        extraction = extractor.extract(inventory)
        self.logger.debug(
            "Scanned %d files, extracted %d signals", len(inventory.entries), len(extraction.signals)
        )

        # later stages depend on earlier ones, so prerequisites always run
        technologies: Tuple[TechnologyMatch, ...] = ()
        patterns: Tuple[PatternMatch, ...] = ()
        gaps: Tuple[GapRecommendation, ...] = ()
        needs = set(selected)
        if needs & {"tech", "patterns", "gaps"}:
            technologies = TechnologyDetector(catalogue, threshold=detection.threshold).detect(
                extraction.signals
            )
        if needs & {"patterns", "gaps"}:
            patterns = PatternDetector(catalogue, threshold=detection.threshold).detect(
                extraction.signals, technologies
            )
        if "gaps" in needs:
            analyzer = GapAnalyzer(
                catalogue,
                completeness_threshold=detection.completeness_threshold,
                priorities=config.priorities,
            )
            gaps = analyzer.analyze(patterns, extraction.signals, technologies)
        quality = None
        if "quality" in needs:
            quality = QualityAssessor(catalogue).assess(inventory, extraction.signals)

        warnings = tuple(
            sorted(
                inventory.warnings + extraction.warnings,
                key=lambda item: (item.path, item.reason),
            )
        )
        for warning in warnings:
            self.logger.debug("Warning for %s: %s", warning.path, warning.reason)

        return AnalysisReport(
            root=str(root),
            generated_at=generated_at,
            context=context,
            inventory=inventory,
            categories=selected,
            signals=extraction.signals,
            technologies=technologies,
            patterns=patterns,
            gaps=gaps,
            quality=quality,
            warnings=warnings,
            settings=self._settings(config),
        )

    def run(
        self,
        path: str | Path,
        *,
        categories: Iterable[str] = ("all",),
        interactive: bool = False,
        context_only: bool = False,
        write_reports: bool = True,
        output_format: str | None = None,
        output_dir: Path | None = None,
    ) -> AnalysisOutcome:
        """Gather context, analyze, and persist the requested artifacts."""
        root = resolve_root(path)
        config = load_config(root)
        target_dir = self._output_dir(root, config, output_dir)
        context = self.gather_context(root, interactive=interactive, config=config)

        if context_only:
            payload = {
                "analysis_timestamp": self.clock().isoformat(timespec="seconds"),
                "context": context,
            }
            written = ArtifactWriter(target_dir, token=self.token).write(
                {f"{ANALYSIS_DIR}/context.json": render_json(payload)}
            )
            return AnalysisOutcome(context=context, output_dir=target_dir, written=written)

        report = self.analyze(
            root,
            categories=categories,
            context=context,
            config=config,
            output_dir=target_dir,
        )
        written = self.persist(
            report,
            output_format=output_format or config.output.format,
            write_reports=write_reports,
            output_dir=target_dir,
        )
        return AnalysisOutcome(context=context, output_dir=target_dir, report=report, written=written)

    def persist(
        self,
        report: AnalysisReport,
        *,
        output_format: str | None = None,
        write_reports: bool = True,
        output_dir: Path | None = None,
    ) -> List[Path]:
        """Render ``report`` and write it under the output directory in one step.

        Format and directory default to the project configuration.
        """
        root = Path(report.root)
        config = load_config(root)
        target_dir = self._output_dir(root, config, output_dir)
        documents = self.render(
            report,
            output_format=output_format or config.output.format,
            write_reports=write_reports,
        )
        written = ArtifactWriter(target_dir, token=self.token).write(documents)
        self.logger.info("Wrote %d files to %s", len(written), target_dir)
        return written

    def render(
        self,
        report: AnalysisReport,
        *,
        output_format: str = "both",
        write_reports: bool = True,
    ) -> Dict[str, str]:
        """Render every artifact in memory, keyed by path relative to the output directory."""
        documents: Dict[str, str] = {}
        if output_format in ("json", "both") or not write_reports:
            for filename, payload in build_analysis_payloads(report).items():
                documents[f"{ANALYSIS_DIR}/{filename}"] = render_json(payload)
        if write_reports and output_format in ("markdown", "both"):
            for filename, text in self.report_generator.render(report).items():
                documents[f"{REPORTS_DIR}/{filename}"] = text
        return documents

    @staticmethod
    def _output_dir(root: Path, config: PatternWizConfig, override: Path | None) -> Path:
        target = override if override is not None else Path(config.output.dir)
        if not target.is_absolute():
            target = root / target
        target = target.resolve()
        if root.is_relative_to(target):
            raise FilesystemError(f"Output directory {target} must not contain the project root")
        return target

    def _exclusions(
        self, root: Path, config: PatternWizConfig, output_dir: Path | None
    ) -> List[str]:
        patterns = list(config.exclude_paths)
        target = self._output_dir(root, config, output_dir)
        try:
            relative = target.relative_to(root).as_posix()
        except ValueError:
            return patterns
        patterns.append(f"/{relative}/")
        patterns.append(f"/{relative}{STAGING_SUFFIX}*/")
        return patterns

    @staticmethod
    def _settings(config: PatternWizConfig) -> Dict[str, object]:
        return {
            "threshold": config.detection.threshold,
            "completeness_threshold": config.detection.completeness_threshold,
            "max_file_bytes": config.detection.max_file_bytes,
            "catalogue": str(config.catalogue_dir) if config.catalogue_dir else "bundled",
            "exclude_paths": list(config.exclude_paths),
            "priorities": dict(sorted(config.priorities.items())),
        }


__all__ = [
    "ALL_CATEGORIES",
    "ANALYSIS_DIR",
    "AnalysisOutcome",
    "AnalysisPipeline",
    "ArtifactWriter",
    "REPORTS_DIR",
    "STAGES",
    "resolve_categories",
]
