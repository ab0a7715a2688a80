from abc import ABC, abstractmethod
from typing import List, Union
from streamhub.services.models import RemoteTorrent, TranscodeOptions, UnrestrictedLink

class DebridClient(ABC):
    """
    Abstract Base Class for Debrid Providers.
    One coroutine per provider capability; failures raise the
    streamhub.core.errors taxonomy instead of returning None.
    """

    @abstractmethod
    async def submit_magnet(self, magnet: str) -> str:
        """Add a magnet to the account. Returns the provider's torrent ID."""
        pass

    @abstractmethod
    async def select_files(self, torrent_id: str, file_ids: Union[str, List[int]] = "all") -> None:
        """Mark files for download. Status does not progress until this is done."""
        pass

    @abstractmethod
    async def get_torrent_status(self, torrent_id: str) -> RemoteTorrent:
        pass

    @abstractmethod
    async def list_torrents(self) -> List[RemoteTorrent]:
        pass

    @abstractmethod
    async def unrestrict(self, link: str) -> UnrestrictedLink:
        """Turn an opaque hoster link into a time-limited direct URL."""
        pass

    @abstractmethod
    async def get_transcode_options(self, file_id: str) -> TranscodeOptions:
        pass

    @abstractmethod
    async def check_instant_availability(self, magnet: str) -> bool:
        pass

    @abstractmethod
    async def delete_torrent(self, torrent_id: str) -> None:
        pass

    @abstractmethod
    async def verify_token(self) -> bool:
        pass
