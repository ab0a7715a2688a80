"""Tests for filename / URL sniffing helpers."""

from streamhub.utils.parser import VideoParser


class TestExtensions:
    def test_extension_ignores_query_string(self) -> None:
        assert VideoParser.get_extension("https://cdn/d/ABC/Movie.MKV?token=1") == ".mkv"

    def test_no_extension(self) -> None:
        assert VideoParser.get_extension("https://cdn/d/ABC/") == ""

    def test_needs_transcoding(self) -> None:
        assert VideoParser.needs_transcoding("https://cdn/d/ABC/movie.mkv")
        assert VideoParser.needs_transcoding("movie.avi")
        assert not VideoParser.needs_transcoding("https://cdn/d/ABC/movie.mp4")
        assert not VideoParser.needs_transcoding("https://cdn/t/ABC/full.m3u8")

    def test_is_video(self) -> None:
        assert VideoParser.is_video("Folder/Movie.2019.1080p.m4v")
        assert not VideoParser.is_video("Folder/readme.nfo")

    def test_is_hls(self) -> None:
        assert VideoParser.is_hls("https://cdn/t/ABC/full.m3u8")
        assert not VideoParser.is_hls("https://cdn/d/ABC/movie.mp4")


class TestMovieInfo:
    def test_release_name(self) -> None:
        info = VideoParser.extract_movie_info("Movie.Title.2019.1080p.BluRay.x264-GRP.mkv")
        assert info == {"title": "Movie Title", "year": "2019", "quality": "1080p"}

    def test_parenthesised_year(self) -> None:
        info = VideoParser.extract_movie_info("Another Film (2021) [720p]")
        assert info["title"] == "Another Film"
        assert info["year"] == "2021"
        assert info["quality"] == "720p"

    def test_unknown_quality(self) -> None:
        info = VideoParser.extract_movie_info("home_video")
        assert info["title"] == "home video"
        assert info["year"] == ""
        assert info["quality"] == "Unknown"


class TestFormatSize:
    def test_gigabytes(self) -> None:
        assert VideoParser.format_size(int(1.5 * 1024 ** 3)) == "1.5 GB"

    def test_megabytes(self) -> None:
        assert VideoParser.format_size(512 * 1024 ** 2) == "512.0 MB"

    def test_none(self) -> None:
        assert VideoParser.format_size(None) == "0.0 MB"
