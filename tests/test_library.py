"""Tests for the Real-Debrid library view service."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from streamhub.core.errors import RemoteError
from streamhub.services.base import DebridClient
from streamhub.services.library import LibraryService
from streamhub.services.models import RemoteFile, RemoteTorrent, UnrestrictedLink
from streamhub.services.resolver import StreamResolver

from conftest import RecordingSleep


def _torrent(torrent_id: str, status: str, links=None, files=None) -> RemoteTorrent:
    return RemoteTorrent(
        id=torrent_id,
        status=status,
        filename="Movie.Title.2019.1080p.BluRay.mkv",
        bytes=3 * 1024 ** 3,
        links=links or [],
        files=files or [],
    )


def _library(debrid) -> LibraryService:
    return LibraryService(debrid, StreamResolver(debrid, sleep=RecordingSleep()))


class TestListEntries:
    def test_only_downloaded_torrents(self) -> None:
        debrid = AsyncMock(spec=DebridClient)
        debrid.list_torrents.return_value = [
            _torrent("t1", "downloaded", links=["l1"]),
            _torrent("t2", "downloading"),
            _torrent("t3", "magnet_error"),
        ]

        entries = asyncio.run(_library(debrid).list_entries())

        assert [e.torrent.id for e in entries] == ["t1"]
        entry = entries[0]
        assert (entry.title, entry.year, entry.quality, entry.size) == ("Movie Title", "2019", "1080p", "3.0 GB")

    def test_video_files_filter(self) -> None:
        torrent = _torrent(
            "t1",
            "downloaded",
            files=[
                RemoteFile(id=1, path="/Movie/Movie.mkv", bytes=10),
                RemoteFile(id=2, path="/Movie/Movie.nfo", bytes=1),
                RemoteFile(id=3, path="/Movie/Extras/Trailer.MP4", bytes=5),
            ],
        )
        assert [f.id for f in LibraryService.video_files(torrent)] == [1, 3]


class TestPlay:
    def test_builds_descriptor_from_fresh_link(self) -> None:
        debrid = AsyncMock(spec=DebridClient)
        debrid.get_torrent_status.return_value = _torrent("t1", "downloaded", links=["l1", "l2"])
        debrid.unrestrict.return_value = UnrestrictedLink(
            id="FILE2", filename="Movie.mkv", download="https://cdn/d/FILE2/Movie.mkv"
        )

        descriptor = asyncio.run(_library(debrid).play("t1", file_index=1))

        assert descriptor.title == "Movie Title"
        assert descriptor.stream_url == "https://cdn/d/FILE2/Movie.mkv"
        assert descriptor.file_id == "FILE2"
        debrid.unrestrict.assert_awaited_once_with("l2")

    def test_no_links(self) -> None:
        debrid = AsyncMock(spec=DebridClient)
        debrid.get_torrent_status.return_value = _torrent("t1", "downloaded")

        with pytest.raises(RemoteError):
            asyncio.run(_library(debrid).play("t1"))


def test_delete_delegates() -> None:
    debrid = AsyncMock(spec=DebridClient)
    asyncio.run(_library(debrid).delete("t1"))
    debrid.delete_torrent.assert_awaited_once_with("t1")
