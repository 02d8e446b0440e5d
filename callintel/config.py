"""Configuration for the call intelligence service."""

import os
from dataclasses import dataclass, field
from pathlib import Path

MEGABYTE = 1024 * 1024


@dataclass
class TranscriptionConfig:
    """Configuration for the speech-to-text backend."""

    base_url: str = "https://api.openai.com/v1"  # Any OpenAI-compatible audio API
    api_key: str = ""
    model: str = "whisper-1"
    language: str = "en"
    timeout: float = 300.0  # Max seconds for one transcription request


@dataclass
class AnalysisConfig:
    """Configuration for LLM call analysis."""

    max_attempts: int = 2  # First try plus one retry on malformed output
    timeout: float = 120.0
    min_transcript_chars: int = 50


@dataclass
class IntegrationConfig:
    """Side effects performed after a call completes."""

    minimum_confidence: float = 0.7  # Action items below this are never written
    keyword_relevance_multiplier: float = 0.3
    auto_link_contacts: bool = True
    auto_create_action_items: bool = True
    auto_update_deal_probability: bool = True
    auto_notify_team: bool = True
    notify_webhook_url: str = ""


@dataclass
class UploadConfig:
    """Limits for uploaded and captured audio."""

    max_upload_bytes: int = 100 * MEGABYTE
    public_base_url: str = ""  # Prefix for stored audio references; file:// if empty


@dataclass
class PipelineConfig:
    """Orchestrator timing."""

    timer_tick: float = 1.0  # Seconds between duration timer ticks
    session_max_age: float = 3600.0  # Finished sessions are evicted after this many seconds


@dataclass
class AnalyticsConfig:
    """Rollup windows and result caps."""

    range_days: dict[str, int] = field(
        default_factory=lambda: {"week": 7, "month": 30, "quarter": 90}
    )
    search_limit: int = 50
    top_action_items: int = 5
    top_keywords: int = 10


@dataclass
class Config:
    """Main application configuration."""

    data_dir: Path = field(default_factory=lambda: Path.home() / ".local/share/callintel")
    upload_dir: Path = field(
        default_factory=lambda: Path.home() / ".local/share/callintel/uploads"
    )
    db_path: Path = field(
        default_factory=lambda: Path.home() / ".local/share/callintel/callintel.db"
    )

    host: str = "0.0.0.0"
    port: int = 8000

    transcription: TranscriptionConfig = field(default_factory=TranscriptionConfig)
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)
    integration: IntegrationConfig = field(default_factory=IntegrationConfig)
    upload: UploadConfig = field(default_factory=UploadConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    analytics: AnalyticsConfig = field(default_factory=AnalyticsConfig)

    def __post_init__(self):
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.upload_dir.mkdir(parents=True, exist_ok=True)


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.lower() in ("1", "true", "yes", "on")


def load_config() -> Config:
    """Load configuration from environment variables."""
    config = Config()

    if data_dir := os.getenv("CALLINTEL_DATA_DIR"):
        config.data_dir = Path(data_dir)
        config.upload_dir = config.data_dir / "uploads"
        config.db_path = config.data_dir / "callintel.db"

    if stt_url := os.getenv("CALLINTEL_STT_BASE_URL"):
        config.transcription.base_url = stt_url
    if stt_key := os.getenv("CALLINTEL_STT_API_KEY", os.getenv("OPENAI_API_KEY")):
        config.transcription.api_key = stt_key
    if stt_model := os.getenv("CALLINTEL_STT_MODEL"):
        config.transcription.model = stt_model
    if language := os.getenv("CALLINTEL_LANGUAGE"):
        config.transcription.language = language
    if stt_timeout := os.getenv("CALLINTEL_STT_TIMEOUT"):
        config.transcription.timeout = float(stt_timeout)

    if analysis_timeout := os.getenv("CALLINTEL_ANALYSIS_TIMEOUT"):
        config.analysis.timeout = float(analysis_timeout)

    if min_conf := os.getenv("CALLINTEL_MIN_ACTION_CONFIDENCE"):
        config.integration.minimum_confidence = float(min_conf)
    if webhook := os.getenv("CALLINTEL_NOTIFY_WEBHOOK_URL"):
        config.integration.notify_webhook_url = webhook
    config.integration.auto_notify_team = _env_flag(
        "CALLINTEL_AUTO_NOTIFY_TEAM", config.integration.auto_notify_team
    )
    config.integration.auto_update_deal_probability = _env_flag(
        "CALLINTEL_AUTO_UPDATE_DEAL_PROBABILITY",
        config.integration.auto_update_deal_probability,
    )

    if session_age := os.getenv("CALLINTEL_SESSION_MAX_AGE"):
        config.pipeline.session_max_age = float(session_age)

    if max_mb := os.getenv("CALLINTEL_MAX_UPLOAD_MB"):
        config.upload.max_upload_bytes = int(max_mb) * MEGABYTE
    if public_url := os.getenv("CALLINTEL_PUBLIC_BASE_URL"):
        config.upload.public_base_url = public_url

    config.__post_init__()
    return config
