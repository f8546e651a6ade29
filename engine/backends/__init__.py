"""Detector backends.

Backends are looked up by name so the service can select one from settings.
"""

from ..detector import FaceDetectorBackend
from ..exceptions import ResourceUnavailableError
from .mediapipe_backend import MediaPipeFaceBackend

BACKENDS = {
    "mediapipe": MediaPipeFaceBackend,
}


def create_backend(name: str, **kwargs) -> FaceDetectorBackend:
    """
    Instantiate a detector backend by name.

    Raises:
        ResourceUnavailableError: if the name is unknown
    """
    backend_class = BACKENDS.get(name.lower())
    if backend_class is None:
        raise ResourceUnavailableError(
            f"Unknown detector backend '{name}'. Available: {sorted(BACKENDS)}"
        )
    return backend_class(**kwargs)


__all__ = [
    "BACKENDS",
    "MediaPipeFaceBackend",
    "create_backend",
]
