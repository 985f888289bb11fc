"""Service layer modules for the destination gacha API."""

from .gacha import (
    CommunicationError,
    DepartureNotFoundError,
    GachaError,
    GachaSampler,
    GachaService,
    NoLineDataError,
)

__all__ = [
    "CommunicationError",
    "DepartureNotFoundError",
    "GachaError",
    "GachaSampler",
    "GachaService",
    "NoLineDataError",
]
