from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv

# Load environment variables from .env into os.environ
load_dotenv()


class Settings(BaseSettings):
    """Compiler configuration settings backed by environment variables."""

    protocol_version: str = Field(
        default="1.0",
        validation_alias="NL2MSG_PROTOCOL_VERSION",
        description="Self-description protocol version accepted during discovery."
    )
    discovery_cache_ttl_sec: float = Field(
        default=3600,
        validation_alias="NL2MSG_DISCOVERY_CACHE_TTL_SEC",
        description="Seconds a discovered protocol document stays fresh in the cache."
    )
    encoding_cache_ttl_sec: float = Field(
        default=1800,
        validation_alias="NL2MSG_ENCODING_CACHE_TTL_SEC",
        description="Seconds a learned per-target encoding preference is honoured."
    )

    max_extraction_attempts: int = Field(
        default=5,
        ge=1,
        validation_alias="NL2MSG_MAX_EXTRACTION_ATTEMPTS",
        description="Upper bound on parameter-extraction strategies tried per request."
    )

    protocol_match_threshold: float = Field(
        default=0.7,
        validation_alias="NL2MSG_PROTOCOL_MATCH_THRESHOLD",
        description="Confidence a handler match must exceed to decide the operation type."
    )
    nlp_min_score: float = Field(
        default=0.6,
        validation_alias="NL2MSG_NLP_MIN_SCORE",
        description="Minimum verb strength for natural-language intent detection."
    )
    handler_match_threshold: float = Field(
        default=0.3,
        validation_alias="NL2MSG_HANDLER_MATCH_THRESHOLD",
        description="Minimum score for a handler to be considered a candidate at all."
    )

    high_value_threshold: float = Field(
        default=100000,
        validation_alias="NL2MSG_HIGH_VALUE_THRESHOLD",
        description="Amounts above this are high-value and always require confirmation."
    )

    dispatch_breaker_fail_max: int = Field(
        default=5,
        validation_alias="NL2MSG_DISPATCH_BREAKER_FAIL_MAX",
        description="Consecutive transport failures before the dispatch breaker opens."
    )
    dispatch_breaker_reset_sec: int = Field(
        default=30,
        validation_alias="NL2MSG_DISPATCH_BREAKER_RESET_SEC",
        description="Seconds the dispatch breaker stays open before a trial call."
    )

    log_level: str = Field(default="INFO", validation_alias="NL2MSG_LOG_LEVEL")
    log_json: bool = Field(
        default=False,
        validation_alias="NL2MSG_LOG_JSON",
        description="Emit JSON log lines instead of the plain text format."
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    def configure_env(self, env: str) -> None:
        """Loads environment-specific variables and reloads settings."""
        if not env:
            return

        load_dotenv(f".env.{env}", override=True)
        new_settings = Settings()
        self.__dict__.update(new_settings.__dict__)


settings = Settings()

# Configure logging during import
from nl2msg.common.logger import configure_logging
configure_logging(level=settings.log_level, json_format=settings.log_json)
