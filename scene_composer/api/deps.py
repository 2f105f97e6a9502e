import hmac
from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from scene_composer.config import Settings
from scene_composer.exceptions import AuthError
from scene_composer.jobs.registry import JobRegistry
from scene_composer.services.storage_service import StorageService
from scene_composer.tasks.worker_pool import WorkerPool

# auto_error=False so a missing header surfaces as AuthError, not FastAPI's 403
security = HTTPBearer(auto_error=False)


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_registry(request: Request) -> JobRegistry:
    return request.app.state.registry


def get_worker_pool(request: Request) -> WorkerPool:
    return request.app.state.worker_pool


def get_storage(request: Request) -> StorageService:
    return request.app.state.storage


async def require_api_secret(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> None:
    """Check the shared bearer secret. An unset secret rejects every request."""
    if credentials is None or not settings.api_secret:
        raise AuthError()
    if not hmac.compare_digest(credentials.credentials.encode(), settings.api_secret.encode()):
        raise AuthError()


AppSettings = Annotated[Settings, Depends(get_app_settings)]
Registry = Annotated[JobRegistry, Depends(get_registry)]
Pool = Annotated[WorkerPool, Depends(get_worker_pool)]
Storage = Annotated[StorageService, Depends(get_storage)]
