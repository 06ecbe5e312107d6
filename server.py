# ============================================================
# nlql - Natural Language SQL Terminal
# server.py - HTTP mode (nlql serve)
# ============================================================
#
# Routes:
#   GET  /health   → {"status": "ok"}
#   GET  /schema   → {"schema": "..."}
#   POST /query    → generate, assess, optionally execute
#
# One database handle is shared by every request; driver calls
# run in a thread under a lock, same as the full-screen session.
# DANGER statements are refused unless the request sets
# run_dangerous.
# ============================================================

import asyncio
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel, Field

from core.database import Database
from core.errors import NlqlError
from core.generator import SQLGenerator
from core.risk import RiskLevel, assess

DANGER_REASONS = {
    "DROP": "DROP can permanently delete tables",
    "TRUNCATE": "TRUNCATE deletes all data",
    "ALTER": "ALTER modifies table structure",
    "DELETE": "DELETE without WHERE deletes all rows",
    "UPDATE": "UPDATE without WHERE updates all rows",
}

WRITE_WARNINGS = {
    "DELETE": "this will delete data",
    "UPDATE": "this will update data",
    "INSERT": "this will insert data",
}


# ── Request / response models ─────────────────────────────────

class QueryRequest(BaseModel):
    """Body of POST /query."""
    prompt: str = Field(..., min_length=1, description="Plain-language request")
    dry_run: bool = Field(False, description="Return the SQL without running it")
    run_dangerous: bool = Field(False, description="Allow DANGER statements to run")


class QueryResponse(BaseModel):
    sql: str = ""
    type: Optional[str] = None
    risk: Optional[str] = None
    result: Optional[Dict[str, Any]] = None
    warning: Optional[str] = None
    error: Optional[str] = None


def _reply(status_code: int, body: QueryResponse) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


def warning_for(risk: RiskLevel, stmt_type: str) -> Optional[str]:
    if risk is RiskLevel.DANGER:
        return None
    return WRITE_WARNINGS.get(stmt_type)


# ── Application ───────────────────────────────────────────────

def create_app(database: Database, schema: str, generator: SQLGenerator) -> FastAPI:
    """
    Build the API around an open database handle and a ready
    generator. The handle is closed when the app shuts down.
    """
    db_lock = asyncio.Lock()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Serving {database.dialect_name} database {database.database}")
        yield
        await asyncio.to_thread(database.close)
        logger.info("Server stopped")

    app = FastAPI(title="nlql", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.get("/schema")
    async def get_schema():
        return {"schema": schema}

    @app.post("/query")
    async def query(request: QueryRequest):
        try:
            sql = await generator.generate(request.prompt, schema)
        except NlqlError as e:
            logger.warning(f"Generation failed: {e}")
            return _reply(400, QueryResponse(error=str(e)))

        risk, stmt_type = assess(sql)
        body = QueryResponse(
            sql=sql,
            type=stmt_type,
            risk=risk.label,
            warning=warning_for(risk, stmt_type),
        )

        if risk.is_dangerous and not request.run_dangerous:
            reason = DANGER_REASONS.get(stmt_type, "statement is marked DANGER")
            body.error = f"blocked: {reason}"
            logger.warning(f"Blocked {stmt_type}: {sql}")
            return _reply(400, body)

        if request.dry_run:
            return _reply(200, body)

        async with db_lock:
            try:
                result = await asyncio.to_thread(database.execute, sql)
            except NlqlError as e:
                body.error = str(e)
                return _reply(400, body)

        body.result = result.to_dict()
        return _reply(200, body)

    return app


def run_server(app: FastAPI, host: str, port: int, log_level: str = "info"):
    import uvicorn

    logger.info(f"Server starting on http://{host}:{port}")
    uvicorn.run(app, host=host, port=port, workers=1, log_level=log_level.lower())
