# doconvert/errors.py


class ConversionError(Exception):
    """Base class for everything the conversion core raises."""


class InvalidInput(ConversionError):
    """No files, or files of the wrong kind for the endpoint."""


class DecodeFailure(ConversionError):
    """A single image could not be decoded. Absorbed by the assembler."""


class EmptyOutput(ConversionError):
    """Image assembly produced no pages."""


class MergeFailed(ConversionError):
    """An input PDF could not be parsed or copied; nothing was merged."""


class CollaboratorFailure(ConversionError):
    """The external office conversion backend failed or is not configured."""
