from typing import Any, Dict, Optional


class BridgeOperationError(Exception):
    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details


class ParseError(BridgeOperationError):
    """Malformed timecode or number."""

    def __init__(self, message: str):
        super().__init__("PARSE_ERROR", message)


class ValidationError(BridgeOperationError):
    """Missing or invalid endpoint, or nothing left after normalization."""

    def __init__(self, message: str):
        super().__init__("VALIDATION_FAILED", message)


class BoundsError(BridgeOperationError):
    """Sequence timebase or bounds unusable; nothing can proceed."""

    def __init__(self, message: str):
        super().__init__("BOUNDS_ERROR", message)
