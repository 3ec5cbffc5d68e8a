"""FastAPI server for the rendering layer.

Routes are thin wrappers over the shared :class:`ToolService`.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from calcblocks.api.service import ToolService
from calcblocks.formulas.errors import ToolConfigError
from calcblocks.formulas.evaluator import evaluate_formula
from calcblocks.logging.events import set_project_dir
from calcblocks.tools import ToolConfig

# The singleton service is set at startup by ``create_app()``.
_service: ToolService | None = None


def create_app(project_dir: Path | None = None) -> FastAPI:
    """Create the FastAPI application.

    Args:
        project_dir: Root of a calcblocks project.  Without one, only the
            inline evaluate/compute/lint routes are useful.

    Returns:
        Configured FastAPI instance.
    """
    global _service
    _service = ToolService(project_dir=project_dir)
    if project_dir is not None:
        set_project_dir(project_dir)

    from calcblocks import __version__

    app = FastAPI(title="calcblocks", version=__version__)
    app.include_router(_api_router())
    return app


def _svc() -> ToolService:
    """Get the singleton service, raising if not initialised."""
    if _service is None:
        raise HTTPException(500, "Service not initialised")
    return _service


# ---------------------------------------------------------------------------
# Request/response models
# ---------------------------------------------------------------------------


class EvaluateRequest(BaseModel):
    formula: str
    variables: dict[str, float] = {}


class ComputeRequest(BaseModel):
    config: ToolConfig
    values: dict[str, str | float | None] = {}


class ValuesRequest(BaseModel):
    values: dict[str, str | float | None] = {}


class LintRequest(BaseModel):
    config: ToolConfig
    strict: bool | None = None


class ValidateFormulaRequest(BaseModel):
    text: str
    available: list[str] | None = None


# ---------------------------------------------------------------------------
# Router
# ---------------------------------------------------------------------------


def _api_router():
    from fastapi import APIRouter

    from calcblocks import __version__

    router = APIRouter(prefix="/api")

    @router.get("/health")
    async def health() -> dict[str, Any]:
        return {"ok": True, "version": __version__}

    # -- Inline evaluation --

    @router.post("/evaluate")
    async def evaluate(req: EvaluateRequest) -> dict[str, Any]:
        return {"value": evaluate_formula(req.formula, req.variables)}

    @router.post("/compute")
    async def compute(req: ComputeRequest) -> dict[str, Any]:
        return _svc().compute(req.config, req.values)

    @router.post("/lint")
    async def lint(req: LintRequest) -> dict[str, Any]:
        try:
            return _svc().lint(req.config, req.strict)
        except ToolConfigError as exc:
            raise HTTPException(422, str(exc))

    @router.post("/validate-formula")
    async def validate_formula(req: ValidateFormulaRequest) -> dict[str, Any]:
        return _svc().validate_formula(req.text, req.available)

    # -- Project tools --

    @router.get("/tools")
    async def list_tools() -> list[dict[str, Any]]:
        try:
            return _svc().list_tools()
        except FileNotFoundError as exc:
            raise HTTPException(404, str(exc))

    @router.get("/tools/{name}")
    async def get_tool(name: str) -> dict[str, Any]:
        return _svc().tool_payload(_load_tool(name))

    @router.post("/tools/{name}/compute")
    async def compute_tool(name: str, req: ValuesRequest) -> dict[str, Any]:
        return _svc().compute(_load_tool(name), req.values)

    return router


def _load_tool(name: str) -> ToolConfig:
    try:
        return _svc().get_tool(name)
    except FileNotFoundError as exc:
        raise HTTPException(404, str(exc))
    except KeyError:
        raise HTTPException(404, f"Tool {name!r} not found")
    except ToolConfigError as exc:
        raise HTTPException(422, str(exc))
