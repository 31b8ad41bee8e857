from __future__ import annotations

"""
Collaborator dependencies for the video routes.

The metadata client and object gateway are built once in the app lifespan
and parked on `app.state`; routes receive them through `Depends`, so tests
swap them with `app.dependency_overrides` (or by setting `app.state`).
"""

from fastapi import Request

from videogate.core.exceptions import UpstreamError
from videogate.services.metadata_client import MetadataClient
from videogate.utils.aws import ObjectGateway


def get_metadata_client(request: Request) -> MetadataClient:
    client = getattr(request.app.state, "metadata_client", None)
    if client is None:
        raise UpstreamError(details="metadata client not initialised")
    return client


def get_object_gateway(request: Request) -> ObjectGateway:
    gateway = getattr(request.app.state, "object_gateway", None)
    if gateway is None:
        raise UpstreamError(details="object gateway not initialised")
    return gateway


__all__ = ["get_metadata_client", "get_object_gateway"]
