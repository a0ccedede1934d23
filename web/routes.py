"""
web/routes.py -- Jinja2 template route for the validator's browser form.

The page is a single form that drives the JSON API under /api: login ->
lookup -> validate-access / get-secret / revoke, plus an unwrap tab. The
server renders the initial title, endpoint list and namespace list from
settings so the page works even before /api/vault/config answers.

Browser persistence: the page remembers a fixed set of non-secret form fields
in localStorage. That set is defined here, once, and rendered into the page;
the script stores only keys it finds in PERSISTED_FIELDS. Secrets and tokens
(accessKey, token, wrappedToken) are never in the set, so they can never be
written to storage.

Routes:
  GET  /   -- the validator form
"""

from pathlib import Path

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from core.config import Settings

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))
router = APIRouter()

# form field -> localStorage key
PERSISTED_FIELDS: dict[str, str] = {
    "endpoint": "vault-endpoint",
    "accessId": "vault-accessId",
    "secretPath": "vault-secretPath",
    "keyName": "vault-keyName",
    "authMethod": "vault-authMethod",
    "k8sNamespace": "vault-k8sNamespace",
    "k8sSecretName": "vault-k8sSecretName",
    "secretKey": "vault-secretKey",
}

# Held in page memory only.
SENSITIVE_FIELDS = frozenset({"accessKey", "token", "wrappedToken"})

# Initial values for persisted fields when storage is empty.
FIELD_DEFAULTS: dict[str, str] = {
    "authMethod": "approle",
    "secretKey": "secret-id",
}


def page_context(settings: Settings) -> dict:
    """Template context for the form, minus the request."""
    endpoints = settings.endpoint_list()
    return {
        "title": settings.title(),
        "endpoints": endpoints,
        "namespaces": settings.namespace_list(),
        "email_configured": settings.smtp_configured(),
        "persisted_fields": PERSISTED_FIELDS,
        "field_defaults": {**FIELD_DEFAULTS, "endpoint": endpoints[0]},
    }


@router.get("/", response_class=HTMLResponse)
def index(request: Request) -> HTMLResponse:
    return templates.TemplateResponse(request, "index.html", page_context(request.app.state.settings))
