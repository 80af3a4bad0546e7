"""
Panitia Engine — Web dashboard and JSON API for committee operators.

FastAPI application providing:
- Committee generation (single program and bulk)
- Manual assignment add / remove and lock toggling
- Schedule-conflict reports per program
- Revisions (snapshots) of a program's committee
- Member workload overview
- Change-event polling per program

Every write to a program's assignments (generation, manual add, lock toggle,
removal) is serialized here with a per-program lock: the engine itself does
not serialize concurrent writes to one program.
"""

from __future__ import annotations

import html
import logging
import threading
from contextlib import ExitStack, asynccontextmanager
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse
from pydantic import BaseModel, Field

from panitia_engine.config import settings
from panitia_engine.errors import (
    DuplicateAssignment,
    FeasibilityError,
    InvalidRole,
    MemberWithoutCommission,
    NotFound,
    PanitiaError,
    StorageError,
)
from panitia_engine.registry.schema import WorkloadLevel

logger = logging.getLogger(__name__)


# ── Pydantic request models ────────────────────────────────────


class AddAssignmentRequest(BaseModel):
    program_id: UUID
    member_id: UUID
    role: str = Field(min_length=1)


class BulkGenerateRequest(BaseModel):
    program_ids: list[UUID] = Field(min_length=1)
    description: str | None = None
    created_by: str | None = None


class SnapshotRequest(BaseModel):
    reason: str = Field(min_length=1)
    created_by: str | None = None


class DashboardState:
    """Mutable application state injected at startup."""

    def __init__(self) -> None:
        self.service: Any = None
        self.program_locks: dict[UUID, threading.Lock] = {}
        self.locks_guard = threading.Lock()
        self.startup_time: datetime = datetime.now(timezone.utc)

    def program_lock(self, program_id: UUID) -> threading.Lock:
        with self.locks_guard:
            return self.program_locks.setdefault(program_id, threading.Lock())


state = DashboardState()


# ── Application lifecycle ──────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup & shutdown lifecycle — connect to the Assignment Store."""
    if state.service is None:
        try:
            from panitia_engine.engine.panitia import PanitiaService

            state.service = PanitiaService.from_settings(settings)
            state.service.store.initialize()
            logger.info("Dashboard connected to Assignment Store")
        except Exception as exc:
            logger.warning("Dashboard could not connect to Assignment Store: %s", exc)
            state.service = None

    yield

    logger.info("Panitia dashboard shut down")


app = FastAPI(
    title="Panitia Engine — Committee Dashboard",
    description="Committee generation, locking, conflicts and workload",
    version="0.1.0",
    lifespan=lifespan,
)


_ERROR_STATUS: list[tuple[type[PanitiaError], int]] = [
    (NotFound, 404),
    (DuplicateAssignment, 409),
    (FeasibilityError, 422),
    (MemberWithoutCommission, 422),
    (InvalidRole, 422),
    (StorageError, 503),
]


@app.exception_handler(PanitiaError)
async def panitia_error_handler(request: Request, exc: PanitiaError) -> JSONResponse:
    status_code = next((code for cls, code in _ERROR_STATUS if isinstance(exc, cls)), 400)
    if status_code >= 500:
        logger.error("Request failed: %s %s — %s", request.method, request.url.path, exc.message)
    return JSONResponse(exc.to_dict(), status_code=status_code)


def _service():
    if state.service is None:
        raise HTTPException(status_code=503, detail="Assignment service not initialized")
    return state.service


def _dump(model: BaseModel) -> dict[str, Any]:
    return model.model_dump(mode="json")


# ── Routes: Generation ─────────────────────────────────────────


@app.post("/api/programs/{program_id}/generate")
def api_generate(program_id: UUID, created_by: str | None = None):
    """Regenerate the committee of one program (locked rows are kept)."""
    service = _service()
    with state.program_lock(program_id):
        result = service.generate_assignments(program_id, created_by=created_by)
    return JSONResponse(_dump(result))


@app.post("/api/generate/bulk")
def api_generate_bulk(req: BulkGenerateRequest):
    """Generate several programs; each one succeeds or fails on its own."""
    service = _service()
    with ExitStack() as stack:
        # Fixed acquisition order so two bulk requests cannot deadlock
        for program_id in sorted(set(req.program_ids), key=str):
            stack.enter_context(state.program_lock(program_id))
        result = service.bulk_generate(
            req.program_ids, description=req.description, created_by=req.created_by,
        )
    return JSONResponse(_dump(result))


@app.get("/api/programs/bulk-candidates")
def api_bulk_candidates():
    """Approved and submitted programs, by start time."""
    return JSONResponse([_dump(p) for p in _service().bulk_candidates()])


# ── Routes: Assignments ────────────────────────────────────────


@app.get("/api/assignments")
def api_list_assignments(program_id: UUID | None = None, member_id: UUID | None = None):
    assignments = _service().list_assignments(program_id=program_id, member_id=member_id)
    return JSONResponse([_dump(a) for a in assignments])


@app.post("/api/assignments", status_code=201)
def api_add_assignment(req: AddAssignmentRequest):
    """Manually add a member to a role (generation rules do not apply)."""
    service = _service()
    with state.program_lock(req.program_id):
        result = service.add_assignment(req.program_id, req.member_id, req.role)
    return JSONResponse(_dump(result), status_code=201)


@app.post("/api/assignments/{assignment_id}/lock")
def api_toggle_lock(assignment_id: UUID):
    service = _service()
    program_id = service.store.get_assignment(assignment_id).program_id
    with state.program_lock(program_id):
        assignment = service.toggle_lock(assignment_id)
    return JSONResponse(_dump(assignment))


@app.delete("/api/assignments/{assignment_id}")
def api_remove_assignment(assignment_id: UUID):
    service = _service()
    program_id = service.store.get_assignment(assignment_id).program_id
    with state.program_lock(program_id):
        removed = service.remove_assignment(assignment_id)
    return JSONResponse({"status": "removed", "assignment": _dump(removed)})


# ── Routes: Conflicts, revisions, events ───────────────────────


@app.get("/api/programs/{program_id}/conflicts")
def api_conflicts(program_id: UUID):
    reports = _service().detect_conflicts(program_id)
    return JSONResponse([_dump(r) for r in reports])


@app.get("/api/programs/{program_id}/revisions")
def api_revisions(program_id: UUID):
    return JSONResponse([_dump(r) for r in _service().revisions(program_id)])


@app.post("/api/programs/{program_id}/revisions", status_code=201)
def api_snapshot(program_id: UUID, req: SnapshotRequest):
    revision = _service().snapshot(program_id, req.reason, created_by=req.created_by)
    return JSONResponse(_dump(revision), status_code=201)


@app.get("/api/programs/{program_id}/events")
def api_events(program_id: UUID, after: int = 0):
    """Poll change events of a program with sequence greater than ``after``."""
    events = _service().events.poll(program_id, after=after)
    return JSONResponse({
        "events": [_dump(e) for e in events],
        "latest": _service().events.latest_sequence(program_id),
    })


# ── Routes: Workload ───────────────────────────────────────────


@app.get("/api/workload")
def api_workload():
    service = _service()
    return JSONResponse({
        "summary": _dump(service.workload_summary()),
        "members": [_dump(e) for e in service.workload_report()],
    })


# ── HTML ──────────────────────────────────────────────────────


def _html_page(title: str, body: str) -> HTMLResponse:
    """Wrap body HTML in a complete page."""
    return HTMLResponse(f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1">
    <title>{title} — Panitia</title>
    <style>
        :root {{
            --bg: #f6f8fa; --surface: #ffffff; --border: #d0d7de;
            --text: #1f2328; --text-muted: #656d76; --accent: #0969da;
            --green: #1a7f37; --red: #cf222e; --yellow: #9a6700;
        }}
        body {{ font-family: -apple-system, 'Segoe UI', Helvetica, Arial, sans-serif;
               background: var(--bg); color: var(--text); margin: 0; }}
        .container {{ max-width: 1100px; margin: 0 auto; padding: 1rem; }}
        .card {{ background: var(--surface); border: 1px solid var(--border);
                 border-radius: 8px; padding: 1.25rem; margin: 1rem 0; }}
        .grid {{ display: grid; gap: 1rem; grid-template-columns: repeat(3, 1fr); }}
        .stat {{ text-align: center; }}
        .stat-value {{ font-size: 2rem; font-weight: 700; color: var(--accent); }}
        .stat-label {{ font-size: 0.75rem; color: var(--text-muted); text-transform: uppercase; }}
        table {{ width: 100%; border-collapse: collapse; font-size: 0.875rem; }}
        th, td {{ padding: 0.5rem 0.75rem; text-align: left; border-bottom: 1px solid var(--border); }}
        .badge {{ padding: 0.15rem 0.5rem; border-radius: 12px; font-size: 0.75rem; font-weight: 600; }}
        .badge-available {{ color: var(--green); }}
        .badge-heavy {{ color: var(--yellow); }}
        .badge-overloaded {{ color: var(--red); }}
    </style>
</head>
<body>
    <div class="container">{body}</div>
</body>
</html>""")


@app.get("/", response_class=HTMLResponse)
def overview():
    """Member workload overview."""
    if state.service is None:
        return _html_page("Overview", "<p>Assignment service not initialized</p>")

    summary = state.service.workload_summary()
    rows = ""
    for entry in state.service.workload_report():
        rows += f"""
        <tr>
            <td>{html.escape(entry.name)}</td>
            <td>{entry.count}</td>
            <td><span class="badge badge-{entry.level.value}">{entry.level.value}</span></td>
        </tr>"""

    body = f"""
    <h2>Member Workload</h2>
    <div class="grid">
        <div class="card stat">
            <div class="stat-value">{summary.total_members}</div>
            <div class="stat-label">Active Members</div>
        </div>
        <div class="card stat">
            <div class="stat-value">{summary.average_assignments}</div>
            <div class="stat-label">Avg Assignments</div>
        </div>
        <div class="card stat">
            <div class="stat-value">{summary.overloaded_members}</div>
            <div class="stat-label">{WorkloadLevel.OVERLOADED.value.title()}</div>
        </div>
    </div>
    <div class="card">
        <table>
            <thead><tr><th>Member</th><th>Assignments</th><th>Level</th></tr></thead>
            <tbody>{rows}</tbody>
        </table>
    </div>
    """
    return _html_page("Overview", body)


# ── Health Check ───────────────────────────────────────────────


@app.get("/health")
def health():
    """Health check endpoint."""
    return JSONResponse({
        "status": "healthy" if state.service is not None else "degraded",
        "uptime_seconds": (datetime.now(timezone.utc) - state.startup_time).total_seconds(),
        "store_available": state.service is not None,
    })
