"""
api/routes/config.py -- Server-side configuration for the browser.

The page fetches these on load so endpoint lists, namespaces and the title
come from the deployment's environment rather than being baked into the UI.
Read-only; nothing here calls out to Vault or Kubernetes.

Routes:
  GET /api/config            -- title, endpoints, namespaces, email.configured
  GET /api/vault/config      -- same payload, path the UI has always used
  GET /api/vault/endpoints   -- endpoint list only
"""

from fastapi import APIRouter, Request

from api.models import AppConfig, ConfigResponse, EmailConfig, EndpointsResponse
from core.config import Settings

router = APIRouter()


def build_app_config(settings: Settings) -> AppConfig:
    return AppConfig(
        title=settings.title(),
        endpoints=settings.endpoint_list(),
        namespaces=settings.namespace_list(),
        email=EmailConfig(configured=settings.smtp_configured()),
    )


@router.get("/config", response_model=ConfigResponse)
def get_config(request: Request) -> ConfigResponse:
    return ConfigResponse(config=build_app_config(request.app.state.settings))


@router.get("/vault/config", response_model=ConfigResponse)
def get_vault_config(request: Request) -> ConfigResponse:
    return ConfigResponse(config=build_app_config(request.app.state.settings))


@router.get("/vault/endpoints", response_model=EndpointsResponse)
def get_endpoints(request: Request) -> EndpointsResponse:
    return EndpointsResponse(endpoints=request.app.state.settings.endpoint_list())
