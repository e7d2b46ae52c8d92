"""PictureMe - themed AI photo batches and album composition."""

__version__ = "0.1.0"

from pictureme.core.batch import BatchOrchestrator
from pictureme.core.compositor import compose_album, frame_image
from pictureme.core.config import PictureMeConfig, config
from pictureme.core.cropper import crop
from pictureme.core.generation import GenerationClient
from pictureme.core.transport import ResilientTransport

__all__ = [
    "BatchOrchestrator",
    "GenerationClient",
    "PictureMeConfig",
    "ResilientTransport",
    "compose_album",
    "config",
    "crop",
    "frame_image",
]
