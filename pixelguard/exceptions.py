"""Exception hierarchy for PixelGuard."""


class PixelGuardError(Exception):
    """Base exception for all PixelGuard errors."""


class NotFoundError(PixelGuardError):
    """Raised when a requested record or artifact does not exist."""


class TestNotFoundError(NotFoundError):
    """Raised when a visual test id is unknown."""

    __test__ = False

    def __init__(self, test_id: str) -> None:
        super().__init__(f"Visual test not found: {test_id}")
        self.test_id = test_id


class ArtifactNotFoundError(NotFoundError):
    """Raised when an artifact slot holds no bytes."""

    def __init__(self, test_id: str, slot: str) -> None:
        super().__init__(f"No {slot} artifact for visual test {test_id}")
        self.test_id = test_id
        self.slot = slot


class NoLatestCaptureError(PixelGuardError):
    """Raised when promoting a test that has never been captured."""

    def __init__(self, test_id: str) -> None:
        super().__init__(f"No latest capture to promote for visual test {test_id}")
        self.test_id = test_id


class InvalidImageError(PixelGuardError):
    """Raised when bytes cannot be decoded as a PNG raster."""


class CaptureError(PixelGuardError):
    """Raised when the capture driver fails or times out."""

    def __init__(self, message: str, timed_out: bool = False) -> None:
        super().__init__(message)
        self.timed_out = timed_out


class StorageError(PixelGuardError):
    """Raised when storage operations fail."""


class ConfigError(PixelGuardError):
    """Raised when configuration is invalid."""
