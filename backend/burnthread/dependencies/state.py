"""
Dependency exposing the per-application coordinator
"""

from fastapi import Request

from burnthread.services.coordinator import ThreadCoordinator


def get_coordinator(request: Request) -> ThreadCoordinator:
    coordinator = getattr(request.app.state, "coordinator", None)
    if coordinator is None:
        raise RuntimeError("Coordinator not initialized")
    return coordinator
