class InputValidationError(ValueError):
    """Input rejected before any pixel work was done."""


class InvalidBufferError(InputValidationError):
    """Pixel buffer has the wrong size, dtype or channel layout."""


class InvalidSettingsError(InputValidationError):
    """Settings vector is missing, malformed or out of range."""
