from pathlib import Path
import os

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Priority: environment variables > .env file
        env_prefix="POKER_",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=True,
        extra="ignore",
    )

    # Replace other participants' vote values with null until the round is revealed.
    REDACT_UNREVEALED_VOTES: bool = False
    SESSION_ENDED_MESSAGE: str = "Host ended the session"
    DEFAULT_HOST_NAME: str = "Host"
    PIN_GENERATION_ATTEMPTS: int = 50


# Load .env before creating the Settings instance so pydantic-settings sees it.
current_dir = Path(__file__).resolve().parent
env_paths = [
    current_dir.parent.parent / ".env",  # repository root
    current_dir.parent / ".env",         # poker_server/.env
    Path(os.getcwd()) / ".env",
]
for env_path in env_paths:
    if env_path.exists():
        load_dotenv(env_path, override=False)
        break

config = Settings()
