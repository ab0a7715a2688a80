from typing import Optional


class StreamHubError(Exception):
    """Base class for every failure surfaced to the UI layer."""


class ValidationError(StreamHubError):
    """Malformed user input (magnet link, info hash). Never retried."""


class AuthError(StreamHubError):
    """Missing or rejected Real-Debrid API token."""


class RemoteError(StreamHubError):
    """
    The provider answered with a non-2xx status, an unexpected body,
    or could not be reached at all.
    """

    def __init__(self, message: str, status_code: Optional[int] = None, body: Optional[str] = None):
        self.status_code = status_code
        self.body = body
        if status_code is not None:
            message = f"{message}: {status_code}"
            if body:
                message = f"{message} - {body}"
        super().__init__(message)


class TorrentTimeoutError(StreamHubError, TimeoutError):
    """
    Status polling ran out of attempts. The job may still finish
    server-side, so this is reported as "try again later".
    """

    def __init__(self, message: str, torrent_id: Optional[str] = None, attempts: int = 0):
        self.torrent_id = torrent_id
        self.attempts = attempts
        super().__init__(message)


class OperationCancelled(StreamHubError):
    """The caller tripped the cancel token of an in-flight operation."""


def user_message(exc: Exception) -> str:
    if isinstance(exc, ValidationError):
        return f"Invalid input: {exc}"
    if isinstance(exc, AuthError):
        return "Real-Debrid is not configured. Add your API token in Settings."
    if isinstance(exc, TorrentTimeoutError):
        return "The torrent is still being processed. Try again later."
    if isinstance(exc, OperationCancelled):
        return "Playback was cancelled."
    if isinstance(exc, RemoteError):
        return f"Stream error: {exc}"
    return "Failed to start streaming."
