from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator
from streamhub.utils.magnet import extract_display_name, extract_info_hash, is_magnet_link
from streamhub.utils.parser import VideoParser


# --- Real-Debrid torrent lifecycle ---

class TorrentStatus(str, Enum):
    MAGNET_ERROR = "magnet_error"
    MAGNET_CONVERSION = "magnet_conversion"
    WAITING_FILES_SELECTION = "waiting_files_selection"
    QUEUED = "queued"
    DOWNLOADING = "downloading"
    DOWNLOADED = "downloaded"
    ERROR = "error"
    VIRUS = "virus"
    COMPRESSING = "compressing"
    UPLOADING = "uploading"
    DEAD = "dead"


FAILED_STATUSES = {
    TorrentStatus.MAGNET_ERROR.value,
    TorrentStatus.ERROR.value,
    TorrentStatus.VIRUS.value,
    TorrentStatus.DEAD.value,
}


class MagnetRequest(BaseModel):
    uri: str
    title: Optional[str] = None

    @property
    def is_valid(self) -> bool:
        return is_magnet_link(self.uri)

    @property
    def info_hash(self) -> Optional[str]:
        return extract_info_hash(self.uri)

    @property
    def display_title(self) -> Optional[str]:
        return self.title or extract_display_name(self.uri)


class RemoteFile(BaseModel):
    # RD File Object: {'id': 1, 'path': '/...mkv', 'bytes': 1234, 'selected': 0}
    id: int
    path: str
    bytes: int = 0
    selected: int = 0

    @property
    def name(self) -> str:
        return self.path.rstrip("/").rsplit("/", 1)[-1]

    @property
    def extension(self) -> str:
        return VideoParser.get_extension(self.path)


class RemoteTorrent(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    status: str
    filename: str = ""
    original_filename: Optional[str] = None
    hash: str = ""
    bytes: int = 0
    original_bytes: Optional[int] = None
    host: Optional[str] = None
    split: Optional[int] = None
    progress: float = 0
    added: Optional[str] = None
    ended: Optional[str] = None
    speed: Optional[int] = None
    seeders: Optional[int] = None
    files: List[RemoteFile] = Field(default_factory=list)
    links: List[str] = Field(default_factory=list)

    @property
    def is_ready(self) -> bool:
        return self.status == TorrentStatus.DOWNLOADED.value

    @property
    def is_failed(self) -> bool:
        return self.status in FAILED_STATUSES


class UnrestrictedLink(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    filename: str
    mimeType: str = ""  # Guessed by RD from the file extension
    filesize: int = 0  # 0 if unknown
    link: str = ""  # Original (restricted) link
    host: str = ""
    chunks: int = 0
    crc: int = 0
    download: str  # Generated direct URL
    streamable: int = 0


class TranscodeOptions(BaseModel):
    """
    Server-computed transcoding targets, one quality -> URL map per family.
    apple = HLS, liveMP4 = progressive MP4, h264WebM = WebM.
    """
    model_config = ConfigDict(extra="ignore")

    apple: Dict[str, str] = Field(default_factory=dict)
    dash: Dict[str, str] = Field(default_factory=dict)
    liveMP4: Dict[str, str] = Field(default_factory=dict)
    h264WebM: Dict[str, str] = Field(default_factory=dict)

    @field_validator("apple", "dash", "liveMP4", "h264WebM", mode="before")
    @classmethod
    def _coerce_family(cls, value: Any) -> Dict[str, str]:
        # A null or malformed family must not discard the others
        if not isinstance(value, dict):
            return {}
        return {str(k): v for k, v in value.items() if isinstance(v, str)}

    def family(self, name: str) -> Dict[str, str]:
        return getattr(self, name, None) or {}

    @property
    def empty(self) -> bool:
        return not (self.apple or self.dash or self.liveMP4 or self.h264WebM)


# --- Stream resolution ---

class DeliveryType(str, Enum):
    ADAPTIVE = "adaptive"
    PROGRESSIVE_MP4 = "progressive-mp4"
    PROGRESSIVE_WEBM = "progressive-webm"


MIME_TYPES = {
    DeliveryType.ADAPTIVE: "application/x-mpegURL",
    DeliveryType.PROGRESSIVE_MP4: "video/mp4",
    DeliveryType.PROGRESSIVE_WEBM: "video/webm",
}


class ResolvedStream(BaseModel):
    url: str
    delivery_type: DeliveryType

    @property
    def mime_type(self) -> str:
        return MIME_TYPES[self.delivery_type]


class StreamDescriptor(BaseModel):
    """What the UI hands to a playback session."""
    title: str = ""
    stream_url: Optional[str] = None
    file_id: Optional[str] = None
    magnet: Optional[str] = None
    poster_url: Optional[str] = None


# --- Search ---

class TorrentResult(BaseModel):
    name: str
    detailUrl: str = ""
    size: str = ""
    seeds: str = ""
    leech: str = ""
    magnet: str = ""
    date: Optional[str] = None


class TorrentSearchResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    query: str = ""
    page: int = 1
    limit: int = 0
    totalPages: int = 0
    results: List[dict] = Field(default_factory=list)


# --- Library ---

class LibraryEntry(BaseModel):
    torrent: RemoteTorrent
    title: str
    year: str = ""
    quality: str = "Unknown"
    size: str = ""
    video_files: List[RemoteFile] = Field(default_factory=list)
