from typing import List, Optional
from loguru import logger
from streamhub.services.base import DebridClient
from streamhub.services.models import LibraryEntry, RemoteFile, RemoteTorrent, StreamDescriptor
from streamhub.services.realdebrid import realdebrid_service
from streamhub.services.resolver import StreamResolver, stream_resolver
from streamhub.utils.parser import VideoParser


class LibraryService:
    """
    The user's Real-Debrid library: downloaded torrents only.
    """
    def __init__(self, debrid: DebridClient, resolver: StreamResolver):
        self.debrid = debrid
        self.resolver = resolver

    @staticmethod
    def video_files(torrent: RemoteTorrent) -> List[RemoteFile]:
        return [f for f in torrent.files if VideoParser.is_video(f.path)]

    @staticmethod
    def to_entry(torrent: RemoteTorrent) -> LibraryEntry:
        info = VideoParser.extract_movie_info(torrent.filename or torrent.id)
        return LibraryEntry(
            torrent=torrent,
            title=info["title"],
            year=info["year"],
            quality=info["quality"],
            size=VideoParser.format_size(torrent.bytes),
            video_files=LibraryService.video_files(torrent),
        )

    async def list_entries(self) -> List[LibraryEntry]:
        torrents = await self.debrid.list_torrents()
        ready = [t for t in torrents if t.is_ready]
        logger.info(f"Library: {len(ready)} downloaded of {len(torrents)} torrents")
        return [self.to_entry(t) for t in ready]

    async def play(self, torrent_id: str, file_index: Optional[int] = None) -> StreamDescriptor:
        # /torrents omits file details, so fetch the full record
        torrent = await self.debrid.get_torrent_status(torrent_id)
        link = await self.resolver.unrestrict_library_file(torrent, file_index=file_index)
        info = VideoParser.extract_movie_info(torrent.filename or torrent.id)
        return StreamDescriptor(
            title=info["title"],
            stream_url=link.download,
            file_id=link.id,
        )

    async def delete(self, torrent_id: str) -> None:
        await self.debrid.delete_torrent(torrent_id)


library_service = LibraryService(realdebrid_service, stream_resolver)
