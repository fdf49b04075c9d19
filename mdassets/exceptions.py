"""Custom exceptions for mdassets."""

from pathlib import Path


class MdAssetsError(Exception):
    """Base exception class for mdassets."""

    pass


class ExtractionError(MdAssetsError):
    """Malformed reference surface (e.g. an unterminated metadata block)."""

    pass


class NetworkError(MdAssetsError):
    """Error while fetching a remote image."""

    def __init__(
        self,
        url: str,
        message: str,
        status_code: int | None = None,
        attempts: int = 0,
    ) -> None:
        self.url = url
        self.status_code = status_code
        self.attempts = attempts
        super().__init__(f"Fetch failed for {url}: {message}")


class TranscodeError(MdAssetsError):
    """Error during image resizing or re-encoding."""

    def __init__(self, path: Path, message: str, cause: Exception | None = None) -> None:
        self.path = path
        self.cause = cause
        super().__init__(f"Transcode failed for {path}: {message}")


class FilesystemError(MdAssetsError):
    """Directory or file could not be created or written."""

    def __init__(self, path: Path, message: str, cause: Exception | None = None) -> None:
        self.path = path
        self.cause = cause
        super().__init__(f"Filesystem error at {path}: {message}")


class PublishError(MdAssetsError):
    """An external publishing command (git, site generator) failed."""

    def __init__(self, command: list[str], message: str, stderr: str | None = None) -> None:
        self.command = command
        self.stderr = stderr
        super().__init__(f"`{' '.join(command)}` failed: {message}")


class ConfigurationError(MdAssetsError):
    """Configuration error."""

    pass
