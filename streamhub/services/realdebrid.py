import httpx
from loguru import logger
from typing import Any, Dict, List, Optional, Union
from pydantic import ValidationError as ModelValidationError
from streamhub.core.config import settings
from streamhub.core.credentials import CredentialStore, DebridCredentials
from streamhub.core.errors import AuthError, RemoteError, ValidationError
from streamhub.services.base import DebridClient
from streamhub.services.models import RemoteTorrent, TranscodeOptions, UnrestrictedLink
from streamhub.utils.magnet import extract_info_hash, is_magnet_link

class RealDebridService(DebridClient):
    """
    Client for Real-Debrid API.
    Docs: https://api.real-debrid.com/
    """
    def __init__(self, credentials: DebridCredentials, base_url: Optional[str] = None, client: Optional[httpx.AsyncClient] = None):
        self.credentials = credentials
        self.base_url = (base_url or settings.REALDEBRID_API_URL).rstrip("/")
        self.client = client or httpx.AsyncClient(timeout=settings.REQUEST_TIMEOUT)

    async def _get_headers(self) -> Dict[str, str]:
        token = self.credentials.token
        if not token:
            raise AuthError("No Real-Debrid API token configured")
        return {"Authorization": f"Bearer {token}"}

    async def _request(self, method: str, endpoint: str, data: Optional[Dict[str, str]] = None) -> Any:
        headers = await self._get_headers()
        url = f"{self.base_url}{endpoint}"

        try:
            # data= sends application/x-www-form-urlencoded, which is what RD expects
            resp = await self.client.request(method, url, data=data, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"RD {method} {endpoint} failed: {e}")
            raise RemoteError(f"Request to Real-Debrid failed ({type(e).__name__}: {e})") from e

        if resp.status_code == 401:
            logger.error(f"RD rejected API token on {endpoint}")
            raise AuthError("Real-Debrid rejected the API token (401)")

        if not resp.is_success:
            logger.error(f"RD {method} {endpoint} -> {resp.status_code}: {resp.text}")
            raise RemoteError("API Error", status_code=resp.status_code, body=resp.text)

        if resp.status_code == 204 or not resp.content:
            return None

        try:
            return resp.json()
        except ValueError as e:
            raise RemoteError("Unexpected (non-JSON) response from Real-Debrid", status_code=resp.status_code, body=resp.text) from e

    @staticmethod
    def _parse(model, payload: Any, endpoint: str):
        try:
            return model.model_validate(payload)
        except ModelValidationError as e:
            logger.error(f"Unexpected RD response shape for {endpoint}: {payload}")
            raise RemoteError(f"Unexpected response shape from {endpoint}") from e

    async def verify_token(self) -> bool:
        try:
            await self._request("GET", "/user")
            return True
        except (AuthError, RemoteError) as e:
            logger.warning(f"RD token verification failed: {e}")
            return False

    async def submit_magnet(self, magnet: str) -> str:
        # Validate before touching credentials or the network
        if not is_magnet_link(magnet):
            raise ValidationError("Invalid magnet link format")

        logger.info(f"Adding magnet to RD: {extract_info_hash(magnet)}")
        data = await self._request("POST", "/torrents/addMagnet", data={"magnet": magnet.strip()})

        torrent_id = data.get("id") if isinstance(data, dict) else None
        if not torrent_id:
            logger.error(f"RD did not return torrent ID: {data}")
            raise RemoteError("Real-Debrid did not return a torrent ID")
        return str(torrent_id)

    async def select_files(self, torrent_id: str, file_ids: Union[str, List[int]] = "all") -> None:
        if not isinstance(file_ids, str):
            file_ids = ",".join(str(f) for f in file_ids)
        logger.info(f"Selecting files {file_ids} on RD torrent {torrent_id}")
        await self._request("POST", f"/torrents/selectFiles/{torrent_id}", data={"files": file_ids})

    async def get_torrent_status(self, torrent_id: str) -> RemoteTorrent:
        endpoint = f"/torrents/info/{torrent_id}"
        return self._parse(RemoteTorrent, await self._request("GET", endpoint), endpoint)

    async def list_torrents(self) -> List[RemoteTorrent]:
        data = await self._request("GET", "/torrents")
        if data is None:
            return []
        if not isinstance(data, list):
            raise RemoteError("Unexpected response shape from /torrents")
        return [self._parse(RemoteTorrent, t, "/torrents") for t in data]

    async def unrestrict(self, link: str) -> UnrestrictedLink:
        logger.info(f"Unrestricting link: {link}")
        data = await self._request("POST", "/unrestrict/link", data={"link": link})
        return self._parse(UnrestrictedLink, data, "/unrestrict/link")

    async def get_transcode_options(self, file_id: str) -> TranscodeOptions:
        endpoint = f"/streaming/transcode/{file_id}"
        data = await self._request("GET", endpoint)
        return self._parse(TranscodeOptions, data or {}, endpoint)

    async def check_instant_availability(self, magnet: str) -> bool:
        info_hash = extract_info_hash(magnet)
        if not info_hash:
            raise ValidationError("Invalid magnet link - could not extract hash")

        try:
            data = await self._request("GET", f"/torrents/instantAvailability/{info_hash}")
        except RemoteError as e:
            # Availability is a UI hint only
            logger.error(f"Error checking instant availability: {e}")
            return False

        # Structure: { hash: { "rd": [ {"1":{...}, "2":{...}}, ... ] } } or { hash: [] }
        entry = data.get(info_hash) if isinstance(data, dict) else None
        if isinstance(entry, dict):
            return any(entry.values())
        return bool(entry)

    async def delete_torrent(self, torrent_id: str) -> None:
        try:
            await self._request("DELETE", f"/torrents/delete/{torrent_id}")
        except RemoteError as e:
            if e.status_code == 404:
                logger.info(f"RD torrent {torrent_id} already gone")
                return
            raise
        logger.info(f"Deleted RD torrent {torrent_id}")

    async def aclose(self) -> None:
        await self.client.aclose()


credentials = DebridCredentials(
    store=CredentialStore(settings.CREDENTIALS_PATH),
    fallback=settings.REALDEBRID_API_KEY,
)
realdebrid_service = RealDebridService(credentials)
