"""End-to-end tests for patternwiz.pipeline."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Dict

import pytest

from patternwiz.cancellation import CancellationToken
from patternwiz.catalogue import Catalogue
from patternwiz.errors import AnalysisCancelled, CatalogueError, FilesystemError
from patternwiz.models import AnalysisReport
from patternwiz.pipeline import AnalysisPipeline, ArtifactWriter, resolve_categories
from patternwiz.report import ReportGenerator
from patternwiz.rules import FileNameRule
from tests._fixtures.clock import FIXED_TIME, fixed_clock
from tests._fixtures.repo_builder import RepoBuilder, write_web_project


def test_known_web_project(repo_builder: RepoBuilder, pipeline: AnalysisPipeline) -> None:
    write_web_project(repo_builder)

    report = pipeline.analyze(repo_builder.path())

    technologies = {match.id: match for match in report.technologies}
    for tech_id in ("react", "typescript", "express"):
        assert technologies[tech_id].confidence >= 0.8

    patterns = {match.id: match for match in report.patterns}
    assert "web-stack" in patterns
    assert patterns["web-stack"].completeness == pytest.approx(1.0)
    assert "authentication" in patterns
    assert patterns["authentication"].name == "Basic authentication"

    missing = {gap.pattern_id for gap in report.gaps if gap.kind == "missing"}
    assert "authentication" not in missing
    assert "https-enforcement" in missing


def test_empty_project(tmp_path: Path, pipeline: AnalysisPipeline, catalogue: Catalogue) -> None:
    root = tmp_path / "empty"
    root.mkdir()

    report = pipeline.analyze(root)

    assert report.inventory.entries == ()
    assert report.technologies == ()
    assert report.patterns == ()
    assert [gap.kind for gap in report.gaps] == ["missing"] * len(catalogue.recommended)
    assert {gap.pattern_id for gap in report.gaps} == set(catalogue.recommended_ids())
    assert report.quality is not None
    assert report.quality.value == 0


def test_malformed_json_degrades_gracefully(repo_builder: RepoBuilder, pipeline: AnalysisPipeline) -> None:
    write_web_project(repo_builder)
    repo_builder.write({"tsconfig.json": '{"compilerOptions": {"strict": tru'})

    report = pipeline.analyze(repo_builder.path())

    assert [warning.path for warning in report.warnings] == ["tsconfig.json"]
    assert all(signal.path != "tsconfig.json" for signal in report.signals)
    assert {match.id for match in report.technologies} >= {"react", "express"}


def test_threshold_and_bounds_hold_for_every_entity(repo_builder: RepoBuilder, pipeline: AnalysisPipeline) -> None:
    write_web_project(repo_builder)
    repo_builder.write({".patternwiz.yml": "detection:\n  threshold: 0.8\n", "src/app.jsx": "x\n"})

    report = pipeline.analyze(repo_builder.path())

    assert report.settings["threshold"] == pytest.approx(0.8)
    for match in report.technologies:
        assert 0.8 <= match.confidence <= 1.0
    for pattern in report.patterns:
        assert 0.8 <= pattern.confidence <= 1.0
        assert 0.0 <= pattern.completeness <= 1.0
    for gap in report.gaps:
        assert 0.0 <= gap.priority <= 1.0


def test_detected_and_missing_never_overlap(repo_builder: RepoBuilder, pipeline: AnalysisPipeline) -> None:
    write_web_project(repo_builder)

    report = pipeline.analyze(repo_builder.path())

    detected = {match.id for match in report.patterns}
    missing = {gap.pattern_id for gap in report.gaps if gap.kind == "missing"}
    assert not detected & missing


def test_analysis_is_deterministic(repo_builder: RepoBuilder, pipeline: AnalysisPipeline) -> None:
    write_web_project(repo_builder)

    first = pipeline.analyze(repo_builder.path())
    second = pipeline.analyze(repo_builder.path())

    assert first == second
    assert pipeline.render(first) == pipeline.render(second)
    assert first.generated_at == FIXED_TIME.isoformat(timespec="seconds")


def test_categories_restrict_stages(repo_builder: RepoBuilder, pipeline: AnalysisPipeline) -> None:
    write_web_project(repo_builder)

    tech_only = pipeline.analyze(repo_builder.path(), categories=["tech"])
    patterns_only = pipeline.analyze(repo_builder.path(), categories=["patterns"])

    assert tech_only.categories == ("tech",)
    assert tech_only.technologies and not tech_only.patterns and not tech_only.gaps
    assert tech_only.quality is None
    assert patterns_only.patterns and not patterns_only.gaps


def test_resolve_categories() -> None:
    assert resolve_categories(["all"]) == ("tech", "patterns", "gaps", "quality")
    assert resolve_categories(["gaps,tech"]) == ("tech", "gaps")
    assert resolve_categories([]) == ("tech", "patterns", "gaps", "quality")
    with pytest.raises(ValueError):
        resolve_categories(["everything"])


def test_run_persists_analysis_and_reports(repo_builder: RepoBuilder, pipeline: AnalysisPipeline) -> None:
    write_web_project(repo_builder)

    outcome = pipeline.run(repo_builder.path())

    output = repo_builder.path() / ".patternwiz"
    assert outcome.output_dir == output.resolve()
    for name in ("inventory", "technologies", "patterns", "gaps", "quality", "metadata", "context"):
        assert (output / "analysis" / f"{name}.json").is_file()
    assert (output / "reports" / "executive-summary.md").is_file()
    assert (output / "reports" / "recommendations.md").is_file()

    inventory = json.loads((output / "analysis" / "inventory.json").read_text(encoding="utf-8"))
    assert "scan_timestamp" in inventory
    gaps = json.loads((output / "analysis" / "gaps.json").read_text(encoding="utf-8"))
    assert "analysis_timestamp" in gaps
    assert not any(".staging-" in entry.name for entry in repo_builder.path().iterdir())


def test_second_run_ignores_previous_output(repo_builder: RepoBuilder, pipeline: AnalysisPipeline) -> None:
    write_web_project(repo_builder)
    pipeline.run(repo_builder.path())

    report = pipeline.analyze(repo_builder.path())

    assert all(not entry.path.startswith(".patternwiz/") for entry in report.inventory.entries)


def test_custom_output_dir_is_excluded_from_scan(repo_builder: RepoBuilder, pipeline: AnalysisPipeline) -> None:
    write_web_project(repo_builder)
    target = repo_builder.path() / "out" / "analysis-data"

    pipeline.run(repo_builder.path(), output_dir=target)
    report = pipeline.analyze(repo_builder.path(), output_dir=target)

    assert (target / "analysis" / "metadata.json").is_file()
    assert all(not entry.path.startswith("out/analysis-data/") for entry in report.inventory.entries)


def test_format_and_no_reports(repo_builder: RepoBuilder, pipeline: AnalysisPipeline) -> None:
    write_web_project(repo_builder)
    json_dir = repo_builder.path() / "json-only"
    markdown_dir = repo_builder.path() / "markdown-only"
    bare_dir = repo_builder.path() / "bare"

    pipeline.run(repo_builder.path(), output_format="json", output_dir=json_dir)
    pipeline.run(repo_builder.path(), output_format="markdown", output_dir=markdown_dir)
    pipeline.run(repo_builder.path(), write_reports=False, output_dir=bare_dir)

    assert (json_dir / "analysis").is_dir() and not (json_dir / "reports").exists()
    assert (markdown_dir / "reports").is_dir() and not (markdown_dir / "analysis").exists()
    assert (bare_dir / "analysis").is_dir() and not (bare_dir / "reports").exists()


def test_context_only_writes_context(repo_builder: RepoBuilder, pipeline: AnalysisPipeline) -> None:
    repo_builder.write({".patternwiz.yml": "context:\n  project_name: Storefront\n  stage: mvp\n"})

    outcome = pipeline.run(repo_builder.path(), context_only=True)

    assert outcome.report is None
    written = sorted(path.relative_to(outcome.output_dir).as_posix() for path in outcome.written)
    assert written == ["analysis/context.json"]
    data = json.loads((outcome.output_dir / "analysis" / "context.json").read_text(encoding="utf-8"))
    assert data["context"]["project_name"] == "Storefront"
    assert data["context"]["stage"] == "mvp"


def test_interactive_run_uses_answers(repo_builder: RepoBuilder) -> None:
    answers = iter(["Storefront", "production", "3", "security"])
    pipeline = AnalysisPipeline(clock=lambda: FIXED_TIME, plugin_rules=[], input_fn=lambda _: next(answers))

    outcome = pipeline.run(repo_builder.path(), interactive=True, context_only=True)

    assert outcome.context.project_name == "Storefront"
    assert outcome.context.goals == ("security",)


def test_missing_project_raises_filesystem_error(tmp_path: Path, pipeline: AnalysisPipeline) -> None:
    with pytest.raises(FilesystemError):
        pipeline.analyze(tmp_path / "absent")


def test_invalid_catalogue_aborts_before_writing(repo_builder: RepoBuilder, pipeline: AnalysisPipeline) -> None:
    catalogue_dir = repo_builder.path() / "catalogue"
    catalogue_dir.mkdir()
    (catalogue_dir / "patterns.yaml").write_text("patterns: {}\n", encoding="utf-8")
    repo_builder.write({".patternwiz.yml": "catalogue_dir: catalogue\n"})

    with pytest.raises(CatalogueError):
        pipeline.run(repo_builder.path())

    assert not (repo_builder.path() / ".patternwiz").exists()


def test_unwritable_output_raises_filesystem_error(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")

    with pytest.raises(FilesystemError):
        ArtifactWriter(blocker / "out").write({"analysis/a.json": "{}"})


def test_plugin_rules_feed_detection(repo_builder: RepoBuilder) -> None:
    repo_builder.write({"Procfile": "web: node server.js\n"})
    plugin = FileNameRule("plugin.procfile", 0.9, ["Procfile"])
    pipeline = AnalysisPipeline(clock=lambda: FIXED_TIME, plugin_rules=[plugin])

    report = pipeline.analyze(repo_builder.path(), categories=["tech"])

    assert [(signal.id, signal.path) for signal in report.signals] == [("plugin.procfile", "Procfile")]


def test_missing_catalogue_dir_is_fatal(repo_builder: RepoBuilder, pipeline: AnalysisPipeline) -> None:
    repo_builder.write({".patternwiz.yml": "catalogue_dir: does-not-exist\n"})

    with pytest.raises(CatalogueError, match="Catalogue directory not found"):
        pipeline.run(repo_builder.path())

    assert not (repo_builder.path() / ".patternwiz").exists()


def test_skipped_paths_reach_report_warnings(
    repo_builder: RepoBuilder, pipeline: AnalysisPipeline, monkeypatch: pytest.MonkeyPatch
) -> None:
    write_web_project(repo_builder)
    repo_builder.write({"src/locked.ts": "export {};\n"})
    real_stat = Path.stat

    def _stat(self: Path, *args: object, **kwargs: object) -> os.stat_result:
        if self.name == "locked.ts":
            raise PermissionError(13, "Permission denied", str(self))
        return real_stat(self, *args, **kwargs)

    monkeypatch.setattr(Path, "stat", _stat)
    outcome = pipeline.run(repo_builder.path())

    assert outcome.report is not None
    assert [warning.path for warning in outcome.report.warnings] == ["src/locked.ts"]
    metadata = json.loads((outcome.output_dir / "analysis" / "metadata.json").read_text(encoding="utf-8"))
    assert metadata["warnings"] == [{"path": "src/locked.ts", "reason": "unreadable file (Permission denied)"}]
    summary = (outcome.output_dir / "reports" / "executive-summary.md").read_text(encoding="utf-8")
    assert "`src/locked.ts`" in summary


class _CancellingGenerator(ReportGenerator):
    def __init__(self, token: CancellationToken) -> None:
        super().__init__()
        self.token = token

    def render(self, report: AnalysisReport) -> Dict[str, str]:
        documents = super().render(report)
        self.token.cancel()
        return documents


def test_cancelled_run_writes_nothing(repo_builder: RepoBuilder) -> None:
    write_web_project(repo_builder)
    token = CancellationToken()
    pipeline = AnalysisPipeline(
        clock=fixed_clock,
        plugin_rules=[],
        report_generator=_CancellingGenerator(token),
        token=token,
    )

    with pytest.raises(AnalysisCancelled):
        pipeline.run(repo_builder.path())

    assert sorted(entry.name for entry in repo_builder.path().iterdir()) == ["package.json", "src"]


def test_cancelled_run_keeps_previous_artifacts(repo_builder: RepoBuilder, pipeline: AnalysisPipeline) -> None:
    write_web_project(repo_builder)
    pipeline.run(repo_builder.path())
    summary = repo_builder.path() / ".patternwiz" / "reports" / "executive-summary.md"
    before = summary.read_text(encoding="utf-8")
    repo_builder.write({"Dockerfile": "FROM node:20\n"})
    token = CancellationToken()
    cancelling = AnalysisPipeline(
        clock=fixed_clock,
        plugin_rules=[],
        report_generator=_CancellingGenerator(token),
        token=token,
    )

    with pytest.raises(AnalysisCancelled):
        cancelling.run(repo_builder.path())

    assert summary.read_text(encoding="utf-8") == before


def test_writer_replaces_output_as_a_whole(tmp_path: Path) -> None:
    output = tmp_path / "out"
    ArtifactWriter(output).write({"analysis/a.json": "{}\n", "reports/old.md": "old\n"})

    written = ArtifactWriter(output).write({"analysis/a.json": '{"v": 2}\n'})

    assert written == [output / "analysis" / "a.json"]
    assert (output / "analysis" / "a.json").read_text(encoding="utf-8") == '{"v": 2}\n'
    assert (output / "reports" / "old.md").read_text(encoding="utf-8") == "old\n"
    assert sorted(entry.name for entry in tmp_path.iterdir()) == ["out"]


def test_output_dir_containing_the_project_is_rejected(
    repo_builder: RepoBuilder, pipeline: AnalysisPipeline
) -> None:
    with pytest.raises(FilesystemError, match="must not contain the project root"):
        pipeline.run(repo_builder.path(), output_dir=Path("."))
