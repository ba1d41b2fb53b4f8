"""FastAPI application entrypoint for patternwiz service mode."""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, List

import uvicorn
from fastapi import Depends, FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .. import __version__
from ..config import ConfigError
from ..errors import FilesystemError, PatternWizError
from ..models import AnalysisReport
from ..pipeline import AnalysisPipeline
from ..report import report_payload


class AnalyzeRequest(BaseModel):
    path: str
    categories: List[str] = Field(default_factory=lambda: ["all"])
    persist: bool = False


class AnalyzeResponse(BaseModel):
    root: str
    categories: List[str]
    written: List[str] = Field(default_factory=list)
    analysis: Dict[str, Any]


class HealthResponse(BaseModel):
    status: str


def _default_pipeline() -> AnalysisPipeline:
    return AnalysisPipeline()


def create_app(
    pipeline_factory: Callable[[], AnalysisPipeline] = _default_pipeline,
) -> FastAPI:
    """Create the FastAPI application exposing the analysis pipeline."""
    app = FastAPI(title="patternwiz", version=__version__)

    async def get_pipeline() -> AnalysisPipeline:
        return pipeline_factory()

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.post("/analyze", response_model=AnalyzeResponse)
    async def analyze(
        payload: AnalyzeRequest,
        pipeline: AnalysisPipeline = Depends(get_pipeline),
    ) -> AnalyzeResponse:
        def _run() -> tuple[AnalysisReport, List[str]]:
            report = pipeline.analyze(payload.path, categories=payload.categories)
            written = pipeline.persist(report) if payload.persist else []
            return report, [str(path) for path in written]

        loop = asyncio.get_running_loop()
        report, written = await loop.run_in_executor(None, _run)
        return AnalyzeResponse(
            root=report.root,
            categories=list(report.categories),
            written=written,
            analysis=report_payload(report),
        )

    @app.exception_handler(FilesystemError)
    async def filesystem_error_handler(_: Any, exc: FilesystemError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(PatternWizError)
    async def analysis_error_handler(_: Any, exc: PatternWizError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(ConfigError)
    async def config_error_handler(_: Any, exc: ConfigError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(ValueError)
    async def value_error_handler(_: Any, exc: ValueError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    return app


def run_service(host: str = "127.0.0.1", port: int = 8000) -> None:  # pragma: no cover - integration path
    uvicorn.run(create_app(), host=host, port=port)


__all__ = ["AnalyzeRequest", "AnalyzeResponse", "create_app", "run_service"]
