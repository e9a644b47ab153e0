"""FastAPI application entrypoint for docsync service mode."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Callable, List

from fastapi import Depends, FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..config import ConfigError, DocSyncConfig, load_config
from ..errors import ResolutionError
from ..resolver import DocResolver

_STATUS_BY_KIND = {
    "UnknownUnit": 404,
    "PathNotFound": 404,
    "MissingDoc": 422,
}


class ResolveRequest(BaseModel):
    unit: str
    path: str = ""


class ResolveResponse(BaseModel):
    unit: str
    path: str
    text: str


class UnitsResponse(BaseModel):
    units: List[str]


class HealthResponse(BaseModel):
    status: str


def _default_resolver() -> DocResolver:
    return DocResolver.from_config(load_config(Path.cwd()))


def create_app(
    resolver_factory: Callable[[], DocResolver] = _default_resolver,
) -> FastAPI:
    """Create the FastAPI application exposing docsync lookups."""

    app = FastAPI(title="DocSync Service", version="1.0.0")

    async def get_resolver() -> DocResolver:
        # A fresh resolver per request rereads sources, so answers track the working tree.
        return resolver_factory()

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.get("/units", response_model=UnitsResponse)
    async def list_units(resolver: DocResolver = Depends(get_resolver)) -> UnitsResponse:
        return UnitsResponse(units=resolver.units())

    @app.post("/resolve", response_model=ResolveResponse)
    async def resolve(
        payload: ResolveRequest,
        resolver: DocResolver = Depends(get_resolver),
    ) -> ResolveResponse:
        def _run_resolve() -> str:
            return resolver.resolve(payload.unit, payload.path)

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:  # pragma: no cover - fallback path when not in async context
            text = _run_resolve()
        else:
            text = await loop.run_in_executor(None, _run_resolve)
        return ResolveResponse(unit=payload.unit, path=payload.path, text=text)

    @app.exception_handler(ResolutionError)
    async def resolution_error_handler(_: Any, exc: ResolutionError) -> JSONResponse:
        status = _STATUS_BY_KIND.get(exc.kind, 400)
        return JSONResponse(status_code=status, content={"detail": str(exc), "kind": exc.kind})

    @app.exception_handler(ConfigError)
    async def config_error_handler(_: Any, exc: ConfigError) -> JSONResponse:
        return JSONResponse(status_code=500, content={"detail": str(exc), "kind": "ConfigError"})

    return app


def run_service(
    config: DocSyncConfig | None = None, host: str = "127.0.0.1", port: int = 8000
) -> None:  # pragma: no cover - integration path
    try:
        import uvicorn
    except ModuleNotFoundError as exc:
        raise RuntimeError(
            "uvicorn is required to run the service. Install it with `pip install docsync[service]`."
        ) from exc

    if config is None:
        app = create_app()
    else:
        app = create_app(lambda: DocResolver.from_config(config))
    uvicorn.run(app, host=host, port=port)
