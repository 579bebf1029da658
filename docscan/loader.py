"""Accept user-selected files and decode them into bitmaps."""

import logging

import numpy as np

from docscan.blobs import BlobStore
from docscan.config import SUPPORTED_FORMATS
from docscan.engines.base import VisionEngine
from docscan.errors import InvalidInputKind, ProcessingError
from docscan.models import ImageFile, SourceImage

logger = logging.getLogger(__name__)


class ImageLoader:
    """
    Validates selected files and owns the blob handles of their original bytes.

    Usage:
        loader = ImageLoader(BlobStore())
        handle = loader.accept(image_file)
        source = loader.decode(engine, image_file, handle)
    """

    def __init__(self, blobs: BlobStore | None = None):
        self.blobs = blobs if blobs is not None else BlobStore()

    def accept(self, file: ImageFile | None) -> str:
        """
        Validate a selected file and allocate a blob handle for it.

        Raises:
            InvalidInputKind: If no file was given or it does not declare an
                image content type. Empty payloads fail later, at decode.
        """
        if file is None:
            raise InvalidInputKind("No file selected")
        if not file.is_image:
            logger.warning("Rejected %s: content type %s", file.name, file.content_type)
            raise InvalidInputKind(f"{file.name} is not an image ({file.content_type})")
        if file.content_type.lower() not in SUPPORTED_FORMATS:
            logger.debug("%s has unadvertised type %s, trying anyway", file.name, file.content_type)
        return self.blobs.create(file.data)

    def release(self, handle: str | None) -> None:
        self.blobs.revoke(handle)

    def decode(self, engine: VisionEngine, file: ImageFile, handle: str | None = None) -> SourceImage:
        """
        Decode an accepted file into a SourceImage.

        With a handle, the bytes are read back from the blob store, so a
        handle revoked by a newer selection can no longer be decoded.

        Raises:
            ProcessingError: If the handle was revoked or the bytes cannot be decoded.
        """
        if handle is None:
            data = file.data
        else:
            try:
                data = self.blobs.get(handle)
            except KeyError as exc:
                raise ProcessingError(str(exc.args[0])) from exc
        pixels = decode_image(engine, data)
        logger.info("Decoded %s: %dx%d", file.name, pixels.shape[1], pixels.shape[0])
        return SourceImage(pixels=pixels, name=file.name, handle=handle)


def decode_image(engine: VisionEngine, data: bytes) -> np.ndarray:
    try:
        pixels = engine.decode(data)
    except Exception as exc:
        raise ProcessingError(f"Cannot decode image: {exc}") from exc
    if pixels is None or pixels.size == 0:
        raise ProcessingError("Cannot decode image")
    return pixels
