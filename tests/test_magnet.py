"""Tests for magnet link helpers."""

import pytest

from streamhub.services.models import MagnetRequest
from streamhub.utils.magnet import build_magnet, extract_display_name, extract_info_hash, is_magnet_link

HASH = "dd8255ecdc7ca55fb0bbf81323d87062db1f6d1c"


class TestIsMagnetLink:
    def test_accepts_btih_magnet(self) -> None:
        assert is_magnet_link(f"magnet:?xt=urn:btih:{HASH}")

    def test_prefix_is_case_insensitive(self) -> None:
        assert is_magnet_link(f"MAGNET:?XT=URN:BTIH:{HASH.upper()}")

    @pytest.mark.parametrize(
        "value",
        [
            "",
            "http://example.com/file.torrent",
            f"magnet:?dn=Title&xt=urn:btih:{HASH}",
            "magnet:?xt=urn:sha1:abc",
            "not a magnet",
        ],
    )
    def test_rejects_everything_else(self, value: str) -> None:
        assert not is_magnet_link(value)

    def test_rejects_non_strings(self) -> None:
        assert not is_magnet_link(None)  # type: ignore[arg-type]


class TestExtractInfoHash:
    def test_plain_magnet(self) -> None:
        assert extract_info_hash(f"magnet:?xt=urn:btih:{HASH}") == HASH

    def test_hash_is_stable_across_casing_and_params(self) -> None:
        variants = [
            f"magnet:?xt=urn:btih:{HASH}",
            f"magnet:?xt=urn:btih:{HASH.upper()}",
            f"magnet:?xt=urn:btih:{HASH}&dn=Movie+Title&tr=udp://tracker.example.com:6969",
            f"magnet:?dn=Movie&xt=urn:btih:{HASH.upper()}&xl=123",
            f"MAGNET:?XT=URN:BTIH:{HASH.upper()}",
        ]
        hashes = {extract_info_hash(v) for v in variants}
        assert hashes == {HASH}

    def test_returns_none_without_hex_hash(self) -> None:
        assert extract_info_hash("magnet:?xt=urn:btih:short") is None
        assert extract_info_hash("no hash here") is None


class TestDisplayName:
    def test_reads_dn(self) -> None:
        assert extract_display_name(f"magnet:?xt=urn:btih:{HASH}&dn=Movie+Title") == "Movie Title"

    def test_missing_dn(self) -> None:
        assert extract_display_name(f"magnet:?xt=urn:btih:{HASH}") is None

    def test_magnet_request_prefers_explicit_title(self) -> None:
        request = MagnetRequest(uri=f"magnet:?xt=urn:btih:{HASH}&dn=From+Link", title="Given")
        assert request.display_title == "Given"
        assert request.info_hash == HASH
        assert request.is_valid

    def test_build_magnet_round_trips_hash(self) -> None:
        assert extract_info_hash(build_magnet(HASH)) == HASH
