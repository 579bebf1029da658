"""Error kinds raised by the document scanner."""


class ScanError(Exception):
    """Base class for all scanner errors."""

    #: Message suitable for showing to the user.
    user_message = "Something went wrong."


class InvalidInputKind(ScanError):
    """The selected file does not declare an image content type."""

    user_message = "Please select an image file"


class ProcessingError(ScanError):
    """A pipeline stage (decode or engine call) failed."""

    user_message = "Error processing image. Please try another file."


class EngineUnavailable(ScanError):
    """The vision engine failed to initialize or did not become ready in time."""

    user_message = "Image processing engine could not be loaded."


class RunCancelled(ScanError):
    """A pipeline run was superseded by a newer selection."""

    user_message = "Processing cancelled."
