"""Error taxonomy shared by every tool operation."""


class ImageSessionError(Exception):
    """Base class for failures surfaced to the caller as a failed tool result."""


class InvalidArgument(ImageSessionError):
    """Caller-supplied value violates the tool contract (e.g. unknown ratio)."""


class MissingConfiguration(ImageSessionError):
    """A required setting was never established and none was passed inline."""


class NotFound(ImageSessionError):
    """An image reference (history index or file path) could not be resolved."""


class BackendError(ImageSessionError):
    """The Gemini call failed at the transport or parsing level."""


class UnknownOperation(ImageSessionError):
    """No tool is registered under the requested name."""
