import json
from pathlib import Path
from typing import Optional, Union
from loguru import logger
from streamhub.core.errors import ValidationError

TOKEN_KEY = "rd_api_token"


class CredentialStore:
    """
    Persisted settings file (JSON object). The API token lives under a
    single fixed key; other keys in the file are preserved on write.
    """
    def __init__(self, path: Union[str, Path], key: str = TOKEN_KEY):
        self.path = Path(path).expanduser()
        self.key = key

    def _load(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.error(f"Could not read settings file {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def read(self) -> Optional[str]:
        value = self._load().get(self.key)
        return value if isinstance(value, str) and value else None

    def write(self, token: str) -> None:
        data = self._load()
        data[self.key] = token
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")

    def remove(self) -> None:
        data = self._load()
        if self.key not in data:
            return
        del data[self.key]
        self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")


class DebridCredentials:
    """
    API token handed to the debrid client at construction.

    Nothing is read implicitly: call reload() to (re)hydrate from the
    persisted settings, falling back to the environment key.
    """
    def __init__(self, store: Optional[CredentialStore] = None, token: Optional[str] = None, fallback: Optional[str] = None):
        self.store = store
        self.fallback = fallback
        self._token = token

    @property
    def token(self) -> Optional[str]:
        return self._token

    @property
    def configured(self) -> bool:
        return bool(self._token)

    def reload(self) -> Optional[str]:
        stored = self.store.read() if self.store else None
        self._token = stored or self.fallback
        return self._token

    def replace(self, token: str) -> None:
        token = (token or "").strip()
        if not token:
            raise ValidationError("API token must not be empty")
        self._token = token
        if self.store:
            self.store.write(token)
        logger.info("Real-Debrid API token updated")

    def clear(self) -> None:
        self._token = None
        if self.store:
            self.store.remove()
        logger.info("Real-Debrid API token cleared")
