from enum import Enum
from typing import Any, Callable, Dict, Optional, Protocol
from loguru import logger
from streamhub.core.errors import RemoteError, StreamHubError, user_message
from streamhub.services.models import DeliveryType, MIME_TYPES, ResolvedStream, StreamDescriptor
from streamhub.services.resolver import StreamResolver
from streamhub.utils.parser import VideoParser
from streamhub.utils.retry import CancelToken


class PlaybackState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


class MediaSurface(Protocol):
    def attach_adaptive(self, url: str) -> None:
        """Hand the URL to an HLS engine bound to the media element."""
        ...

    def set_source(self, url: str, mime_type: str) -> None:
        """Assign the URL directly as the media element's source."""
        ...


class SourceDescriptorSurface:
    """
    Media surface for the browser player: records the attachment as a
    player source descriptor the frontend feeds straight into the player.
    """
    def __init__(self, poster: Optional[str] = None):
        self.poster = poster
        self.adaptive = False
        self.source: Optional[Dict[str, Any]] = None

    def _describe(self, url: str, mime_type: str) -> Dict[str, Any]:
        return {
            "type": "video",
            "sources": [{"src": url, "type": mime_type}],
            "poster": self.poster,
        }

    def attach_adaptive(self, url: str) -> None:
        self.adaptive = True
        self.source = self._describe(url, MIME_TYPES[DeliveryType.ADAPTIVE])

    def set_source(self, url: str, mime_type: str) -> None:
        self.adaptive = False
        self.source = self._describe(url, mime_type)


def sniff_delivery_type(url: str) -> DeliveryType:
    if VideoParser.is_hls(url):
        return DeliveryType.ADAPTIVE
    if VideoParser.get_extension(url) == ".webm":
        return DeliveryType.PROGRESSIVE_WEBM
    return DeliveryType.PROGRESSIVE_MP4


StateListener = Callable[["PlaybackState", "PlaybackSession"], None]


class PlaybackSession:
    """
    Single-use playback state machine: IDLE -> LOADING -> READY | ERROR.

    A fatal error from the HLS engine while READY gets exactly one
    fallback to progressive MP4, transcoded or the direct file; anything
    after that is ERROR.
    """
    def __init__(self, resolver: StreamResolver, surface: MediaSurface, on_state_change: Optional[StateListener] = None):
        self.resolver = resolver
        self.surface = surface
        self.on_state_change = on_state_change
        self.state = PlaybackState.IDLE
        self.stream: Optional[ResolvedStream] = None
        self.error_message: Optional[str] = None
        self.fallback_attempted = False
        self._direct_url: Optional[str] = None
        self._file_id: Optional[str] = None

    def _transition(self, state: PlaybackState) -> None:
        logger.info(f"Playback {self.state.value} -> {state.value}")
        self.state = state
        if self.on_state_change:
            self.on_state_change(state, self)

    def _fail(self, error: Exception) -> PlaybackState:
        self.error_message = user_message(error)
        logger.error(f"Playback failed: {error}")
        self._transition(PlaybackState.ERROR)
        return self.state

    def _attach(self, stream: ResolvedStream) -> None:
        if stream.delivery_type == DeliveryType.ADAPTIVE:
            self.surface.attach_adaptive(stream.url)
        else:
            self.surface.set_source(stream.url, stream.mime_type)
        self.stream = stream

    async def load(self, descriptor: StreamDescriptor, cancel_token: Optional[CancelToken] = None) -> PlaybackState:
        if self.state != PlaybackState.IDLE:
            raise RuntimeError(f"Playback session already {self.state.value}; start a new session")

        url = descriptor.stream_url
        self._file_id = descriptor.file_id

        # Already browser-playable: no round trip to RD
        if url and not VideoParser.needs_transcoding(url):
            self._direct_url = None if VideoParser.is_hls(url) else url
            try:
                self._attach(ResolvedStream(url=url, delivery_type=sniff_delivery_type(url)))
            except Exception as e:
                return self._fail(RemoteError(f"Could not attach media source: {e}"))
            self._transition(PlaybackState.READY)
            return self.state

        if not url and not descriptor.magnet:
            self.error_message = "This content doesn't have a valid stream URL. Please try adding it to Real-Debrid first."
            self._transition(PlaybackState.ERROR)
            return self.state

        self._transition(PlaybackState.LOADING)
        try:
            if not url:
                resolved = await self.resolver.resolve(descriptor.magnet, cancel_token=cancel_token)
                url = resolved.url
                if not VideoParser.needs_transcoding(url):
                    self._direct_url = url
                    self._attach(ResolvedStream(url=url, delivery_type=sniff_delivery_type(url)))
                    self._transition(PlaybackState.READY)
                    return self.state

            self._direct_url = url
            stream = await self.resolver.negotiate(url, file_id=self._file_id, cancel_token=cancel_token)
            self._attach(stream)
        except StreamHubError as e:
            return self._fail(e)
        except Exception as e:
            logger.exception("Unexpected failure while loading playback")
            return self._fail(RemoteError(f"Could not attach media source: {e}"))

        self._transition(PlaybackState.READY)
        return self.state

    async def handle_fatal_error(self, detail: Optional[str] = None) -> PlaybackState:
        """Called when the media engine reports an unrecoverable error."""
        if self.state != PlaybackState.READY:
            return self.state

        logger.warning(f"Fatal playback error: {detail or 'unknown'}")

        can_fallback = (
            self.stream is not None
            and self.stream.delivery_type == DeliveryType.ADAPTIVE
            and self._direct_url
            and not self.fallback_attempted
        )
        if not can_fallback:
            return self._fail(RemoteError(f"Playback error: {detail or 'media could not be played'}"))

        self.fallback_attempted = True
        try:
            stream = await self.resolver.negotiate(
                self._direct_url,
                file_id=self._file_id,
                exclude=(DeliveryType.ADAPTIVE, DeliveryType.PROGRESSIVE_WEBM),
            )
            self._attach(stream)
        except Exception as e:
            return self._fail(RemoteError(f"Fallback playback failed: {e}"))

        logger.info(f"HLS failed, fell back to {self.stream.delivery_type.value}")
        return self.state
