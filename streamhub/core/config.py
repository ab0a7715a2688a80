from pydantic_settings import BaseSettings
from typing import Optional

class Settings(BaseSettings):
    PROJECT_NAME: str = "StreamHub"
    VERSION: str = "1.0.0"

    # Real-Debrid (API key can also be set at runtime through the set_token tool)
    REALDEBRID_API_URL: str = "https://api.real-debrid.com/rest/1.0"
    REALDEBRID_API_KEY: Optional[str] = None
    REQUEST_TIMEOUT: float = 30.0

    # Torrent processing wait: 30 polls, 2s apart (~60s ceiling)
    POLL_INTERVAL: float = 2.0
    MAX_POLL_ATTEMPTS: int = 30

    # Persisted settings file holding the API token
    CREDENTIALS_PATH: str = "~/.streamhub/settings.json"

    # Torrent search proxy
    SEARCH_API_URL: str = "https://valradiant.xyz/rarbg.php"
    SEARCH_FIELD_MAPPING: str = "shifted"  # "shifted" | "identity"

    class Config:
        env_file = ".env"

settings = Settings()
