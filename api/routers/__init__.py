"""API sub-routers package.

Currently exposes the `professionalism` router. Additional domain routers can
be added here and re-exported for inclusion in the FastAPI `app`.
"""

from .professionalism import router  # noqa: F401

__all__ = [
    "router",
]
