import re
from typing import Dict, Optional

VIDEO_EXTENSIONS = (".mp4", ".mkv", ".avi", ".mov", ".wmv", ".m4v", ".flv", ".webm")

# Containers browsers cannot play directly; these go through RD transcoding
TRANSCODE_EXTENSIONS = (".mkv", ".avi", ".mov", ".wmv", ".flv")


class VideoParser:
    @staticmethod
    def get_extension(path: str) -> str:
        # Drop query string / fragment so signed URLs sniff correctly
        path = path.split("?", 1)[0].split("#", 1)[0]
        name = path.rstrip("/").rsplit("/", 1)[-1]
        if "." not in name:
            return ""
        return "." + name.rsplit(".", 1)[-1].lower()

    @staticmethod
    def is_video(path: str) -> bool:
        return VideoParser.get_extension(path) in VIDEO_EXTENSIONS

    @staticmethod
    def needs_transcoding(url: str) -> bool:
        return VideoParser.get_extension(url) in TRANSCODE_EXTENSIONS

    @staticmethod
    def is_hls(url: str) -> bool:
        return ".m3u8" in url.lower()

    @staticmethod
    def get_quality(filename: str) -> str:
        match = re.search(r"(2160p|1080p|720p|480p)", filename, re.IGNORECASE)
        return match.group(1).lower() if match else "Unknown"

    @staticmethod
    def extract_movie_info(filename: str) -> Dict[str, str]:
        """
        Rough title/year/quality guess from a release name such as
        'Movie.Title.2019.1080p.BluRay.x264-GRP.mkv'.
        """
        year_match = re.search(r"\b((?:19|20)\d{2})\b", filename.replace(".", " "))
        year = year_match.group(1) if year_match else ""

        stem = filename
        if VideoParser.is_video(stem):
            stem = stem.rsplit(".", 1)[0]
        # Title is everything before the year / quality tag
        cut = re.split(r"[.\s_(\[]+(?:(?:19|20)\d{2}|2160p|1080p|720p|480p)\b", stem, maxsplit=1, flags=re.IGNORECASE)[0]
        title = re.sub(r"[._]+", " ", cut).strip() or filename

        return {
            "title": title,
            "year": year,
            "quality": VideoParser.get_quality(filename),
        }

    @staticmethod
    def format_size(size_bytes: Optional[int]) -> str:
        size_bytes = size_bytes or 0
        gb = size_bytes / (1024 * 1024 * 1024)
        if gb >= 1:
            return f"{gb:.1f} GB"
        mb = size_bytes / (1024 * 1024)
        return f"{mb:.1f} MB"
