"""
FastAPI routes for credential login and registration.

Prefix: /api

    POST /api/auth       {"type": "login" | "register", ...}
    POST /api/login      {"email", "password"}
    POST /api/register   {"email", "password", "confirmPassword"}

Success: 200 {"message", "redirect"}. Failure: {"error", "field"?} with the
status carried by the outcome (400 / 401 / 500).
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from authvault.auth.models import AuthFailure, AuthOutcome
from authvault.auth.service import AuthService
from authvault.utils.exceptions import MalformedInputError


router = APIRouter(prefix="/api", tags=["auth"])

NOT_JSON_MESSAGE = "Request must be JSON"


def _outcome_response(outcome: AuthOutcome) -> JSONResponse:
    return JSONResponse(status_code=outcome.status_code, content=outcome.to_response())


async def _read_json_body(request: Request) -> Any:
    """Return the parsed body, or an error response if it is not JSON"""
    content_type = request.headers.get("content-type") or ""
    if "application/json" not in content_type.lower():
        return _outcome_response(
            AuthFailure(error_kind=MalformedInputError.kind, message=NOT_JSON_MESSAGE)
        )
    try:
        return await request.json()
    except ValueError:
        return _outcome_response(AuthFailure.from_error(MalformedInputError()))


async def _handle(request: Request, action: Optional[str] = None) -> JSONResponse:
    body = await _read_json_body(request)
    if isinstance(body, JSONResponse):
        return body
    if action is not None and isinstance(body, dict):
        body = {**body, "type": action}

    service: AuthService = request.app.state.auth_service
    # bcrypt and file I/O block; keep them off the event loop
    outcome = await run_in_threadpool(service.authenticate, body)
    return _outcome_response(outcome)


@router.post("/auth")
async def authenticate(request: Request) -> JSONResponse:
    """Unified login/registration endpoint, dispatched on the "type" field."""
    return await _handle(request)


@router.post("/login")
async def login(request: Request) -> JSONResponse:
    return await _handle(request, action="login")


@router.post("/register")
async def register(request: Request) -> JSONResponse:
    return await _handle(request, action="register")
