# Burnthread Dependencies
from burnthread.dependencies.state import get_coordinator

__all__ = ["get_coordinator"]
