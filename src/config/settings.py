"""
Recommender configuration.

Every setting comes from an environment variable (or `.env`) of the same
name, case-insensitive. Pydantic validates types when the settings are
first loaded, so a bad value stops the process at startup rather than
failing a request later.

Which settings are *required* depends on the data source: Snowflake
credentials matter only when mock mode is off. `validate_required_fields`
reports what is missing for the current mode.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Recommender settings.

    List-valued settings (api_keys, cors_origins) are comma-separated
    strings in the environment; use the *_list properties to read them.
    """

    # HTTP surface
    api_title: str = "Coach Resource Recommender API"
    api_version: str = "v1"
    api_keys: str = Field(
        default="dev-key-1,dev-key-2",
        description="Accepted X-API-Key values. Several keys allow rotation."
    )
    cors_origins: str = Field(
        default="http://localhost:3000",
        description="Allowed browser origins, comma-separated. '*' allows all."
    )

    # Data source
    snowflake_mock_mode: bool = Field(
        default=False,
        description="Serve from the in-memory repository instead of Snowflake."
    )
    mock_seed_path: Optional[str] = Field(
        default=None,
        description="JSON file of coaches, students and resources loaded into the in-memory repository."
    )
    snowflake_account: str = Field(default="", description="Account identifier")
    snowflake_user: str = Field(default="", description="Service user")
    snowflake_password: str = Field(default="", description="Password, when not using a key pair")
    snowflake_private_key_path: Optional[str] = Field(
        default=None,
        description="PEM private key file for key-pair auth"
    )
    snowflake_private_key_base64: Optional[str] = Field(
        default=None,
        description="Base64 PEM private key, for deployments without a key file"
    )
    snowflake_database: str = "COACH_TRAINING"
    snowflake_schema: str = "RECOMMENDATIONS"
    snowflake_warehouse: str = "COMPUTE_WH"
    snowflake_role: Optional[str] = None

    # Recommendation behavior
    recommendation_default_limit: int = Field(
        default=20,
        description="Recommendations returned when the caller doesn't ask for a specific number."
    )
    resource_batch_limit: int = Field(
        default=500,
        description="Maximum resources scored per request, newest first."
    )
    similar_resource_candidate_limit: int = Field(
        default=50,
        description="Maximum same-type candidates considered for related resources."
    )
    default_recommendation_limit: int = Field(
        default=10,
        description="Size of the new-coach list shown to coaches without students."
    )
    default_recommendation_score: int = Field(
        default=80,
        ge=0,
        le=100,
        description="Relevance score shown on the new-coach list."
    )
    trending_window_days: int = Field(
        default=7,
        ge=1,
        description="Look-back window for trending resources."
    )
    similar_coach_limit: int = Field(
        default=5,
        description="Maximum similar coaches used for collaborative recommendations."
    )

    log_level: str = Field(default="INFO", description="Root log level name")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @property
    def api_keys_list(self) -> list[str]:
        return _split_csv(self.api_keys)

    @property
    def cors_origins_list(self) -> list[str]:
        if self.cors_origins.strip() == "*":
            return ["*"]
        return _split_csv(self.cors_origins)

    def validate_required_fields(self) -> list[str]:
        """
        Names of the settings missing for the current data source.

        An empty list means the service is fully configured. Kept out of
        pydantic validation because what's required changes with mock
        mode.
        """
        missing = []

        if not self.api_keys_list:
            missing.append("API_KEYS")

        if self.snowflake_mock_mode:
            return missing

        for name in ("snowflake_account", "snowflake_user"):
            if not getattr(self, name):
                missing.append(name.upper())

        has_key = self.snowflake_private_key_path or self.snowflake_private_key_base64
        if not (self.snowflake_password or has_key):
            missing.append("SNOWFLAKE_PASSWORD or SNOWFLAKE_PRIVATE_KEY_PATH")

        return missing


def _split_csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


@lru_cache()
def get_settings() -> Settings:
    """
    Process-wide settings, loaded on first call.

    Tests that change environment variables call
    get_settings.cache_clear() before and after.
    """
    return Settings()
