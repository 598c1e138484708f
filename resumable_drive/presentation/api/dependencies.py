"""
FastAPI dependency injection utilities.

Routes reach the running components through the ``ApplicationStartup``
stored on the application state.
"""

from fastapi import Depends, HTTPException, status
from fastapi.requests import HTTPConnection

from ...application.commands import UploadCommandHandler
from ...application.startup import ApplicationStartup
from ...core.interfaces.messaging import INotificationBus
from ...core.interfaces.upload import IUploadRegistry
from ...infrastructure.config.models import ApplicationConfig


def get_startup(connection: HTTPConnection) -> ApplicationStartup:
    """
    Get the application startup manager from the connection.

    Raises:
        HTTPException: If the application is not wired
    """
    if not hasattr(connection.app.state, "startup"):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Application components not available"
        )

    return connection.app.state.startup  # type: ignore[no-any-return]


def get_config(connection: HTTPConnection) -> ApplicationConfig:
    """
    Get the application configuration from the connection.

    Raises:
        HTTPException: If configuration is not available
    """
    if not hasattr(connection.app.state, "config"):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Application configuration not available"
        )

    return connection.app.state.config  # type: ignore[no-any-return]


def get_registry(startup: ApplicationStartup = Depends(get_startup)) -> IUploadRegistry:
    try:
        return startup.registry
    except RuntimeError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(e)
        )


def get_notification_bus(startup: ApplicationStartup = Depends(get_startup)) -> INotificationBus:
    try:
        return startup.notification_bus
    except RuntimeError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(e)
        )


def get_command_handler(registry: IUploadRegistry = Depends(get_registry)) -> UploadCommandHandler:
    return UploadCommandHandler(registry)
