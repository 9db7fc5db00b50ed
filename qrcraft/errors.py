"""Exception hierarchy shared by the composition pipeline."""


class QrcraftError(Exception):
    """Base class for all qrcraft errors."""


class IncompleteContentError(QrcraftError):
    """The content record is missing its required field(s)."""

    def __init__(self, content_type: str, message: str = "Please enter the required information"):
        super().__init__(message)
        self.content_type = content_type


class InvalidOptionsError(QrcraftError, ValueError):
    """RenderOptions violate a precondition (size, margin, colours, level, shape)."""


class GenerationError(QrcraftError):
    """The base encoder could not produce a symbol for the payload."""


class LogoLoadError(QrcraftError):
    """A logo source could not be read or decoded."""
