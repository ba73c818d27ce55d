"""API routes."""

from fastapi import APIRouter

from clibridge.entrypoints.api.routes.cli_api_keys import router as cli_api_keys_router
from clibridge.entrypoints.api.routes.cli_applications import router as cli_applications_router
from clibridge.entrypoints.api.routes.cli_login import callback_router
from clibridge.entrypoints.api.routes.cli_login import router as cli_login_router
from clibridge.entrypoints.api.routes.cli_organizations import router as cli_organizations_router
from clibridge.entrypoints.api.routes.cli_session import router as cli_session_router

# Create combined router
api_router = APIRouter(prefix="/cli")

api_router.include_router(cli_login_router)
api_router.include_router(cli_session_router)
api_router.include_router(cli_organizations_router)
api_router.include_router(cli_api_keys_router)
api_router.include_router(cli_applications_router)

__all__ = ["api_router", "callback_router"]
