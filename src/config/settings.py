"""Application settings loaded from environment variables via pydantic-settings.

# ─── HOW SETTINGS WORK (Junior Developer Guide) ───────────────────────
#
# This class uses pydantic-settings to automatically read configuration
# from TWO sources (in priority order):
#
#   1. **Environment variables** -- e.g., ANTHROPIC_API_KEY=sk-ant-...
#      (highest priority -- always wins)
#   2. **.env file** -- key=value lines in the project root .env file
#      (lower priority -- used for local development)
#
# The mapping is automatic: field name `anthropic_api_key` maps to env var
# `ANTHROPIC_API_KEY` (pydantic-settings uppercases and matches).
#
# Per-run knobs (consensus, skip_storage, model_key) are NOT settings; they
# travel with each call as ProcessingOptions.  Settings only supplies the
# defaults those options start from.
# ──────────────────────────────────────────────────────────────────────
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """posterGraph application settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # === Vision Providers ===
    # Empty string = "not configured" → build_processor() skips the provider.
    anthropic_api_key: str = ""
    anthropic_vision_model: str = "claude-sonnet-4-20250514"
    openai_api_key: str = ""
    openai_base_url: str = ""
    openai_vision_model: str = "gpt-4o"
    default_model_key: str = "anthropic"
    vision_max_tokens: int = 4000

    # === Phase thresholds ===
    type_confidence_threshold: float = 0.7
    artist_confidence_threshold: float = 0.6
    venue_confidence_threshold: float = 0.6
    event_confidence_threshold: float = 0.5

    # === Review ===
    review_pass_threshold: float = 0.7
    review_min_correction_confidence: float = 0.5

    # === Consensus defaults ===
    consensus_min_agreement_ratio: float = 0.5
    consensus_model_timeout_ms: int = 60000
    consensus_parallel: bool = True

    # === Reference lookups (enrichment) ===
    musicbrainz_app_name: str = "posterGraph"
    musicbrainz_app_version: str = "0.1.0"
    musicbrainz_contact: str = ""
    discogs_user_token: str = ""
    tmdb_api_key: str = ""
    enrichment_min_match_confidence: float = 0.7

    # === Batch / caching ===
    batch_inter_image_delay_ms: int = 100
    poster_type_cache_ttl: int = 300

    # === App Config ===
    app_env: str = "development"
    log_level: str = "INFO"

    def get_available_vision_providers(self) -> list[str]:
        """Return the model keys of vision providers with credentials configured."""
        providers: list[str] = []
        if self.anthropic_api_key:
            providers.append("anthropic")
        if self.openai_api_key:
            providers.append("openai")
        return providers
