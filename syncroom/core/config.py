# syncroom/core/config.py
import os
from typing import List
from dotenv import load_dotenv

class Settings:
    """
    Setup environment variables.
        - SOUNDCLOUD_CLIENT_ID the client id used by the media resolver
        - SOUNDCLOUD_API_URL base URL of the SoundCloud v2 API
        - CHAT_HISTORY_LIMIT max chat messages kept per room
        - CORS_ORIGINS comma separated list of allowed origins ("*" for all)
    """

    # Load environment variables from the .env file
    load_dotenv()

    SOUNDCLOUD_CLIENT_ID: str = os.getenv("SOUNDCLOUD_CLIENT_ID", "")
    SOUNDCLOUD_API_URL: str = os.getenv("SOUNDCLOUD_API_URL", "https://api-v2.soundcloud.com")

    CHAT_HISTORY_LIMIT: int = int(os.getenv("CHAT_HISTORY_LIMIT", "500"))

    CORS_ORIGINS: List[str] = [
        origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin.strip()
    ]

    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "8000"))

settings = Settings()
