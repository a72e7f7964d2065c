"""Browser-facing user creation form."""
from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from datetime import timedelta
from pathlib import Path
from typing import Dict, List, Optional

from fastapi import FastAPI, Form, Request, status
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from starlette.middleware.sessions import SessionMiddleware

from .backend import UserBackendClient
from .config import BackendConfig, load_config_from_env
from .form import TEXT_FIELDS, UserBackend, UserCreationForm
from .notifications import NotificationLog
from .sessions import FormSessionManager


TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"

SESSION_TOKEN_KEY = "form_token"

logger = logging.getLogger("useradmin.web")


def _use_secure_cookies() -> bool:
    raw = os.getenv("USERADMIN_SESSION_SECURE")
    if raw is None:
        return False
    return raw.strip().lower() not in {"0", "false", "no", "off"}


def create_app(
    *,
    backend: Optional[UserBackend] = None,
    config: Optional[BackendConfig] = None,
    session_secret: Optional[str] = None,
    session_ttl: timedelta = timedelta(hours=8),
) -> FastAPI:
    """Create the user creation web application."""

    if session_secret is None:
        session_secret = os.getenv("USERADMIN_SESSION_SECRET")
    if not session_secret:
        raise RuntimeError("USERADMIN_SESSION_SECRET must be configured to use the web interface")

    owns_backend = backend is None
    if backend is None:
        backend = UserBackendClient(config or load_config_from_env())

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        yield
        if owns_backend and isinstance(backend, UserBackendClient):
            await backend.aclose()

    app = FastAPI(
        title="User Creation",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
    )

    def _new_form() -> UserCreationForm:
        return UserCreationForm(backend, NotificationLog())

    sessions = FormSessionManager(_new_form, ttl=session_ttl)

    app.add_middleware(
        SessionMiddleware,
        secret_key=session_secret,
        session_cookie="useradmin_session",
        https_only=_use_secure_cookies(),
        same_site="lax",
        max_age=int(session_ttl.total_seconds()),
    )

    templates = Jinja2Templates(directory=str(TEMPLATE_DIR))

    async def _get_form(request: Request) -> UserCreationForm:
        token = request.session.get(SESSION_TOKEN_KEY)
        form = sessions.resolve(token) if isinstance(token, str) else None
        if form is None:
            token, form = sessions.create()
            request.session[SESSION_TOKEN_KEY] = token
            await form.load_options()
        return form

    def _consume_notifications(form: UserCreationForm) -> List[Dict[str, object]]:
        sink = form.notifications
        if not isinstance(sink, NotificationLog):
            return []
        return [entry.to_dict() for entry in sink.consume()]

    @app.get("/", response_class=HTMLResponse, name="user_creation")
    async def user_creation(request: Request):
        form = await _get_form(request)
        return templates.TemplateResponse(
            request,
            "user_creation.html",
            {
                "values": form.state.to_dict(),
                "profile_options": form.profile_options or [],
                "role_options": form.role_options or [],
                "messages": _consume_notifications(form),
            },
        )

    @app.get("/state", name="form_state")
    async def form_state(request: Request):
        form = await _get_form(request)
        return JSONResponse(form.to_dict())

    @app.get("/notifications", name="notifications")
    async def notifications(request: Request):
        form = await _get_form(request)
        return JSONResponse({"notifications": _consume_notifications(form)})

    @app.post("/fields", name="update_field")
    async def update_field(request: Request, name: str = Form(...), value: str = Form("")):
        form = await _get_form(request)
        form.set_field(name, value)
        return JSONResponse(form.to_dict())

    @app.post("/profile", name="select_profile")
    async def select_profile(request: Request, value: str = Form("")):
        form = await _get_form(request)
        form.set_profile(value)
        return JSONResponse(form.to_dict())

    @app.post("/role", name="select_role")
    async def select_role(request: Request, value: str = Form("")):
        form = await _get_form(request)
        form.set_role(value)
        return JSONResponse(form.to_dict())

    @app.post("/submit", name="submit_form")
    async def submit_form(request: Request):
        form = await _get_form(request)
        posted = await request.form()

        for name in TEXT_FIELDS:
            value = posted.get(name)
            if isinstance(value, str):
                form.set_field(name, value)
        profile_id = posted.get("profileId")
        if isinstance(profile_id, str):
            form.set_profile(profile_id)
        role_id = posted.get("roleId")
        if isinstance(role_id, str):
            form.set_role(role_id)

        form.submit()
        logger.info("Dispatched user creation request (%s pending)", form.pending)
        return RedirectResponse(
            request.url_for("user_creation"),
            status_code=status.HTTP_303_SEE_OTHER,
        )

    return app


__all__ = ["create_app"]
