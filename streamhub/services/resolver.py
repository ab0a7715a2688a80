import asyncio
import re
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Optional, Sequence, Tuple
from loguru import logger
from streamhub.core.config import settings
from streamhub.core.errors import OperationCancelled, RemoteError, StreamHubError, TorrentTimeoutError
from streamhub.services.base import DebridClient
from streamhub.services.models import DeliveryType, RemoteTorrent, ResolvedStream, TranscodeOptions, UnrestrictedLink
from streamhub.services.realdebrid import realdebrid_service
from streamhub.utils.retry import CancelToken, RetryExhausted, SleepFn, poll_until

QUALITY_ORDER = ("full", "1080", "720", "480")

# RD direct links look like https://<host>.download.real-debrid.com/d/<FILEID>/<name>
FILE_ID_RE = re.compile(r"/d/([^/]+)")


def pick_quality(variants: Dict[str, str]) -> Optional[str]:
    """full -> 1080 -> 720 -> 480 -> whatever comes first."""
    if not variants:
        return None
    for quality in QUALITY_ORDER:
        if variants.get(quality):
            return variants[quality]
    for url in variants.values():
        if url:
            return url
    return None


@dataclass(frozen=True)
class FormatStrategy:
    """One transcoding family, tried in list order by the resolver."""
    name: str
    family: str
    delivery_type: DeliveryType

    def pick(self, options: TranscodeOptions) -> Optional[ResolvedStream]:
        url = pick_quality(options.family(self.family))
        if not url:
            return None
        return ResolvedStream(url=url, delivery_type=self.delivery_type)


DEFAULT_FORMAT_STRATEGIES: Tuple[FormatStrategy, ...] = (
    FormatStrategy("hls", "apple", DeliveryType.ADAPTIVE),
    FormatStrategy("mp4", "liveMP4", DeliveryType.PROGRESSIVE_MP4),
    FormatStrategy("webm", "h264WebM", DeliveryType.PROGRESSIVE_WEBM),
)

StrategyFailureHook = Callable[[str, Exception], None]


def log_strategy_failure(name: str, error: Exception) -> None:
    logger.warning(f"Format strategy '{name}' failed, falling back: {error}")


def extract_file_id(url: str) -> Optional[str]:
    match = FILE_ID_RE.search(url or "")
    return match.group(1) if match else None


class StreamResolver:
    """
    Turns a magnet link or a direct RD link into a browser-playable stream.

    resolve() drives the RD pipeline (add -> select -> poll -> unrestrict);
    negotiate() upgrades a direct link through the format strategies and
    degrades to the original URL whenever transcoding is unavailable.
    """
    def __init__(
        self,
        debrid: DebridClient,
        poll_interval: Optional[float] = None,
        max_attempts: Optional[int] = None,
        strategies: Sequence[FormatStrategy] = DEFAULT_FORMAT_STRATEGIES,
        on_strategy_failure: StrategyFailureHook = log_strategy_failure,
        sleep: SleepFn = asyncio.sleep,
    ):
        self.debrid = debrid
        self.poll_interval = settings.POLL_INTERVAL if poll_interval is None else poll_interval
        self.max_attempts = max_attempts or settings.MAX_POLL_ATTEMPTS
        self.strategies = tuple(strategies)
        self.on_strategy_failure = on_strategy_failure
        self.sleep = sleep

    @staticmethod
    def _checkpoint(cancel_token: Optional[CancelToken]) -> None:
        if cancel_token:
            cancel_token.raise_if_cancelled()

    async def wait_until_ready(self, torrent_id: str, cancel_token: Optional[CancelToken] = None) -> RemoteTorrent:
        try:
            torrent = await poll_until(
                lambda: self.debrid.get_torrent_status(torrent_id),
                lambda t: t.is_ready or t.is_failed,
                interval=self.poll_interval,
                max_attempts=self.max_attempts,
                cancel_token=cancel_token,
                sleep=self.sleep,
                label=f"RD torrent {torrent_id}",
            )
        except RetryExhausted as e:
            last = e.last_value.status if e.last_value is not None else "unknown"
            logger.error(f"RD torrent {torrent_id} not ready after {e.attempts} attempts (status: {last})")
            raise TorrentTimeoutError("Torrent processing timeout", torrent_id=torrent_id, attempts=e.attempts) from e

        if torrent.is_failed:
            logger.error(f"RD torrent {torrent_id} failed with status {torrent.status}")
            raise RemoteError(f"Torrent failed on Real-Debrid (status: {torrent.status})")
        return torrent

    async def resolve(self, magnet: str, cancel_token: Optional[CancelToken] = None) -> ResolvedStream:
        """
        1. Add Magnet -> Get Torrent ID
        2. Select all files
        3. Poll Info until 'downloaded'
        4. Unrestrict the first link
        """
        self._checkpoint(cancel_token)
        torrent_id = await self.debrid.submit_magnet(magnet)

        self._checkpoint(cancel_token)
        await self.debrid.select_files(torrent_id)

        torrent = await self.wait_until_ready(torrent_id, cancel_token)

        if not torrent.links:
            raise RemoteError("No download links available")

        self._checkpoint(cancel_token)
        link = await self.debrid.unrestrict(torrent.links[0])
        self._checkpoint(cancel_token)

        logger.info(f"Resolved RD torrent {torrent_id} -> {link.filename}")
        return ResolvedStream(url=link.download, delivery_type=DeliveryType.PROGRESSIVE_MP4)

    async def resolve_from_cached_link(
        self,
        existing_link_url: str,
        file_id: Optional[str] = None,
        cancel_token: Optional[CancelToken] = None,
    ) -> ResolvedStream:
        return await self.negotiate(existing_link_url, file_id=file_id, cancel_token=cancel_token)

    async def unrestrict_library_file(
        self,
        torrent: RemoteTorrent,
        file_index: Optional[int] = None,
        cancel_token: Optional[CancelToken] = None,
    ) -> UnrestrictedLink:
        """Fresh direct link for one file of an already-downloaded torrent."""
        if not torrent.is_ready:
            raise RemoteError(f"Torrent is not ready for playback (status: {torrent.status})")
        if not torrent.links:
            raise RemoteError("No playable files found")

        index = file_index if file_index is not None and 0 <= file_index < len(torrent.links) else 0

        self._checkpoint(cancel_token)
        link = await self.debrid.unrestrict(torrent.links[index])
        self._checkpoint(cancel_token)
        return link

    async def negotiate(
        self,
        direct_url: str,
        file_id: Optional[str] = None,
        exclude: Iterable[DeliveryType] = (),
        cancel_token: Optional[CancelToken] = None,
    ) -> ResolvedStream:
        fallback = ResolvedStream(url=direct_url, delivery_type=DeliveryType.PROGRESSIVE_MP4)
        excluded = set(exclude)
        strategies = [s for s in self.strategies if s.delivery_type not in excluded]
        if not strategies:
            return fallback

        file_id = file_id or extract_file_id(direct_url)
        if not file_id:
            self.on_strategy_failure("transcode-lookup", ValueError(f"no file id in {direct_url}"))
            return fallback

        self._checkpoint(cancel_token)
        try:
            options = await self.debrid.get_transcode_options(file_id)
        except OperationCancelled:
            raise
        except StreamHubError as e:
            self.on_strategy_failure("transcode-lookup", e)
            return fallback
        self._checkpoint(cancel_token)

        for strategy in strategies:
            try:
                stream = strategy.pick(options)
            except (KeyError, TypeError, ValueError) as e:
                self.on_strategy_failure(strategy.name, e)
                continue
            if stream:
                logger.info(f"Selected {strategy.name} stream for file {file_id}")
                return stream

        logger.info(f"No transcoding available for file {file_id}, using original file")
        return fallback


stream_resolver = StreamResolver(realdebrid_service)
