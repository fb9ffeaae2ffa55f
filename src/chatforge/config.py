"""Runtime configuration loaded from the environment."""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import find_dotenv, load_dotenv

DEFAULT_MODEL = "llama-3.1-70b-versatile"
DEFAULT_RUNPOD_BASE_URL = "https://api.runpod.ai/v2"


@dataclass
class Settings:
    """Configuration for the generation service.

    Attributes:
        groq_api_key: API key for the chat model provider.
        groq_base_url: Optional override of the provider base URL.
        default_model: Model used when a character does not pick one.
        llm_timeout: Seconds before a chat completion is abandoned.
        runpod_api_key: API key for the image compute provider.
        runpod_endpoint_id: Serverless endpoint that runs the image workflow.
        runpod_base_url: Base URL of the compute provider API.
        image_poll_interval: Seconds between job status checks.
        image_poll_timeout: Wall-clock budget for one image job.
        data_dir: Directory holding the database and stored blobs.
        blob_base_url: Prefix for URLs handed out by the blob store.
        background_workers: Workers draining the background queue.
        background_queue_size: Maximum queued background jobs.
        charge_reconcile_age: Age in seconds after which a pending charge is refunded.
        default_context_window: Messages sent to the model on the free tier.
        premium_tier: Subscription tier that gets a doubled context window.
    """

    groq_api_key: str | None = None
    groq_base_url: str | None = None
    default_model: str = DEFAULT_MODEL
    llm_timeout: float = 60.0
    runpod_api_key: str | None = None
    runpod_endpoint_id: str | None = None
    runpod_base_url: str = DEFAULT_RUNPOD_BASE_URL
    image_poll_interval: float = 3.0
    image_poll_timeout: float = 300.0
    data_dir: Path | None = None
    blob_base_url: str | None = None
    background_workers: int = 4
    background_queue_size: int = 256
    charge_reconcile_age: float = 900.0
    default_context_window: int = 16
    premium_tier: str = "plus"

    def __post_init__(self) -> None:
        if self.data_dir is None:
            self.data_dir = Path.home() / ".chatforge"
        if self.blob_base_url is None:
            self.blob_base_url = (self.data_dir / "blobs").as_uri()
        if self.image_poll_interval <= 0:
            raise ValueError("image_poll_interval must be positive")
        if self.image_poll_timeout < self.image_poll_interval:
            raise ValueError("image_poll_timeout must be at least one poll interval")
        if self.background_workers < 1:
            raise ValueError("background_workers must be at least 1")

    @property
    def db_path(self) -> Path:
        assert self.data_dir is not None
        return self.data_dir / "chatforge.db"

    @property
    def blob_dir(self) -> Path:
        assert self.data_dir is not None
        return self.data_dir / "blobs"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables."""
        data_dir = os.getenv("CHATFORGE_DATA_DIR")
        return cls(
            groq_api_key=os.getenv("GROQ_API_KEY"),
            groq_base_url=os.getenv("GROQ_BASE_URL") or None,
            default_model=os.getenv("DEFAULT_MODEL", DEFAULT_MODEL),
            llm_timeout=_float_env("LLM_TIMEOUT", 60.0),
            runpod_api_key=os.getenv("RUNPOD_API_KEY"),
            runpod_endpoint_id=os.getenv("RUNPOD_ENDPOINT_ID"),
            runpod_base_url=os.getenv("RUNPOD_BASE_URL", DEFAULT_RUNPOD_BASE_URL),
            image_poll_interval=_float_env("IMAGE_POLL_INTERVAL", 3.0),
            image_poll_timeout=_float_env("IMAGE_POLL_TIMEOUT", 300.0),
            data_dir=Path(data_dir).expanduser() if data_dir else None,
            blob_base_url=os.getenv("BLOB_BASE_URL") or None,
            background_workers=_int_env("BACKGROUND_WORKERS", 4),
            background_queue_size=_int_env("BACKGROUND_QUEUE_SIZE", 256),
            charge_reconcile_age=_float_env("CHARGE_RECONCILE_AGE", 900.0),
        )


def load_settings() -> Settings:
    """Load `.env` from the working directory, then read settings."""
    load_dotenv(find_dotenv(usecwd=True))
    return Settings.from_env()


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
