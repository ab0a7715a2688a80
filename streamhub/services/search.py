import httpx
from loguru import logger
from typing import Dict, List, Optional
from async_lru import alru_cache
from pydantic import ValidationError as ModelValidationError
from streamhub.core.config import settings
from streamhub.core.errors import RemoteError
from streamhub.services.models import TorrentResult, TorrentSearchResponse

# Result field -> provider field it is read from.
# "shifted": the provider was seen returning size in `seeds`, seeds in `leech`
# and leech/date in `size`. Confirm against the live API before relying on it.
FIELD_MAPPINGS: Dict[str, Dict[str, str]] = {
    "identity": {"size": "size", "seeds": "seeds", "leech": "leech", "date": "date"},
    "shifted": {"size": "seeds", "seeds": "leech", "leech": "size", "date": "size"},
}


def remap_result(raw: dict, mapping: Dict[str, str]) -> TorrentResult:
    def field(name: str) -> str:
        value = raw.get(mapping[name])
        return "" if value is None else str(value)

    date = field("date")
    return TorrentResult(
        name=str(raw.get("name", "")),
        detailUrl=str(raw.get("detailUrl", "")),
        size=field("size"),
        seeds=field("seeds"),
        leech=field("leech"),
        magnet=str(raw.get("magnet", "")),
        date=date or None,
    )


class TorrentSearchService:
    def __init__(self, base_url: Optional[str] = None, field_mapping: Optional[str] = None, client: Optional[httpx.AsyncClient] = None):
        self.base_url = base_url or settings.SEARCH_API_URL
        mapping_name = field_mapping or settings.SEARCH_FIELD_MAPPING
        if mapping_name not in FIELD_MAPPINGS:
            raise ValueError(f"Unknown search field mapping: {mapping_name}")
        self.mapping = FIELD_MAPPINGS[mapping_name]
        self.client = client or httpx.AsyncClient(timeout=10.0)

    async def search(self, query: str, page: int = 1) -> List[TorrentResult]:
        """
        Public wrapper that calls the cached internal method.
        """
        query = (query or "").strip()
        if not query:
            return []
        return await self._fetch_cached(query, page)

    @alru_cache(maxsize=256)
    async def _fetch_cached(self, query: str, page: int) -> List[TorrentResult]:
        logger.info(f"Torrent Search (Network): {self.base_url} q={query!r} page={page}")
        try:
            response = await self.client.get(
                self.base_url,
                params={"q": query, "page": page},
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as e:
            logger.error(f"Torrent search failed: {e}")
            raise RemoteError(f"Search request failed ({type(e).__name__})") from e

        if not response.is_success:
            logger.error(f"Torrent search returned {response.status_code}")
            raise RemoteError("Search request failed", status_code=response.status_code, body=response.text)

        try:
            data = TorrentSearchResponse.model_validate(response.json())
        except (ValueError, ModelValidationError) as e:
            raise RemoteError("Unexpected search response shape") from e

        results = [remap_result(r, self.mapping) for r in data.results if isinstance(r, dict)]
        logger.info(f"Torrent search returned {len(results)} results")
        return results


search_service = TorrentSearchService()
