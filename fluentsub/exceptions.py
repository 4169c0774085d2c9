"""Custom Exceptions for the FluentSub application."""

class FluentSubError(Exception):
    """Base class for exceptions in this module."""
    pass

class ConfigurationError(FluentSubError):
    """Exception raised for errors in configuration loading."""
    pass

class InvalidUrlError(FluentSubError):
    """Exception raised when the input URL is not a supported video URL."""

    def __init__(self, url: str):
        self.url = url
        super().__init__(f"Invalid video URL: {url!r}")

class DownloadError(FluentSubError):
    """Exception raised when audio could not be acquired from the video source.

    `cause` is the yt-dlp exit code, the underlying exception, or the string
    "aborted" when the caller requested cancellation.
    """

    def __init__(self, cause):
        self.cause = cause
        super().__init__(f"Audio download failed: {cause}")

    @property
    def aborted(self) -> bool:
        return self.cause == "aborted"

class TranscriptionError(FluentSubError):
    """Exception raised for errors during transcription.

    `cause` carries the backend payload, the underlying exception, or the
    string "aborted" when the caller requested cancellation.
    """

    def __init__(self, cause):
        self.cause = cause
        super().__init__(f"Transcription failed: {cause}")

    @property
    def aborted(self) -> bool:
        return self.cause == "aborted"

class ResourceError(FluentSubError):
    """Exception raised when a temporary resource cannot be reserved."""
    pass

class FormattingError(FluentSubError):
    """Exception raised for errors during subtitle formatting."""
    pass

class FileSystemError(FluentSubError):
    """Exception raised for file system related errors (permissions, not found etc)."""
    pass
