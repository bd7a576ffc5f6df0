"""
CasePilot API

Case lifecycle validation and business rule engine for law firms.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import casepilot
from casepilot.config import get_settings
from casepilot.exceptions import (
    ApprovalNotFoundError,
    ApprovalStateError,
    CaseNotFoundError,
    CasePilotError,
    ImmutableFieldError,
    NoEligibleCandidateError,
    RuleNotFoundError,
    TaskNotFoundError,
)
from casepilot.log import configure_logging
from casepilot.services import CasePilotServices, build_services

from api.routes import approvals, assignments, cases, deadlines, directory, escalation, rules

logger = logging.getLogger("casepilot.api")

ROUTE_MODULES = (cases, approvals, rules, escalation, assignments, deadlines, directory)

NOT_FOUND_ERRORS = (
    CaseNotFoundError,
    TaskNotFoundError,
    RuleNotFoundError,
    ApprovalNotFoundError,
)
CONFLICT_ERRORS = (
    ApprovalStateError,
    ImmutableFieldError,
    NoEligibleCandidateError,
)

settings = get_settings()

# Services shared by every router (set in lifespan)
services: CasePilotServices = None


def set_services(s: CasePilotServices):
    global services
    services = s
    for module in ROUTE_MODULES:
        module.set_services(s)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load packs and wire services on startup."""
    configure_logging(settings.log_level, json_output=settings.log_json)
    set_services(build_services(settings))
    logger.info(
        "CasePilot API started",
        extra={
            "pack_id": services.rule_pack.pack_id,
            "pack_hash_short": services.rule_pack.pack_hash[:12],
        },
    )

    yield

    logger.info("Shutting down")


# Create app
app = FastAPI(
    title="CasePilot API",
    description="""
**Case lifecycle validation and business rule engine for law firms.**

CasePilot validates how a case moves through intake, preparation,
proceedings, resolution and closure, and runs configurable business rules
over case tasks.

## Features

- **Phase Validation**: Required fields per phase and case type, status tables, exceptions
- **Approvals**: Role-gated transitions with approval routing and follow-up tasks
- **Business Rules**: Weighted three-valued conditions, typed actions, rollback
- **Assignment**: Deterministic expertise, workload and priority strategies
- **Deadlines**: Complexity and dependency deadlines on a US court calendar

## Quick Start

1. `POST /cases` - Register a case
2. `POST /cases/{id}/transitions/validate` - Check a phase move
3. `POST /rules/evaluate` - Run the rule set against a task
    """,
    version=casepilot.__version__,
    lifespan=lifespan,
    docs_url="/docs" if settings.docs_enabled else None,
    redoc_url="/redoc" if settings.docs_enabled else None,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
for module in ROUTE_MODULES:
    app.include_router(module.router)


@app.exception_handler(CasePilotError)
async def casepilot_error_handler(request: Request, exc: CasePilotError):
    """Domain errors as JSON: 404 for unknown ids, 409 for state conflicts, 400 otherwise."""
    if isinstance(exc, NOT_FOUND_ERRORS):
        status_code = 404
    elif isinstance(exc, CONFLICT_ERRORS):
        status_code = 409
    else:
        status_code = 400
    logger.info(
        "Request failed: %s", exc.code,
        extra={"case_id": exc.case_id},
    )
    return JSONResponse(status_code=status_code, content=exc.to_dict())


@app.get("/", tags=["Health"])
async def root():
    """API info endpoint."""
    return {
        "service": "CasePilot API",
        "version": casepilot.__version__,
        "status": "running",
        "rule_pack": services.rule_pack.pack_id if services else None,
        "workflow_pack": services.workflow.pack_id if services else None,
        "docs": "/docs" if settings.docs_enabled else None,
    }


@app.get("/health", tags=["Health"])
async def health():
    """Health check endpoint."""
    return {
        "healthy": services is not None,
        "rules_loaded": len(services.rules.list()) if services else 0,
        "escalation_paths": len(services.escalation_paths.list()) if services else 0,
        "phases": len(services.workflow.phases) if services else 0,
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
