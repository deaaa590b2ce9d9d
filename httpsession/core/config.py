"""
Application configuration using Pydantic Settings.

Configuration values can be set via environment variables or .env file.
Connection profiles are keyed by name; a profile is the set of parameters a
relational session store needs to reach its database.
"""

from typing import Dict, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL

from httpsession.core.exceptions import ConfigurationError


class ConnectionProfile(BaseModel):
    """Named connection parameters for a relational backend"""

    driver: str = "sqlite"
    host: Optional[str] = None
    port: Optional[int] = None
    user: Optional[str] = None
    password: Optional[str] = None
    database: Optional[str] = None
    encoding: str = "utf8"
    autocommit: bool = True

    @property
    def is_sqlite(self) -> bool:
        return self.driver.split("+")[0] == "sqlite"

    def to_url(self) -> URL:
        """Render the profile as a SQLAlchemy URL"""
        query: Dict[str, str] = {}
        dialect = self.driver.split("+")[0]
        if dialect == "mysql":
            query["charset"] = self.encoding
        elif dialect == "postgresql":
            query["client_encoding"] = self.encoding

        return URL.create(
            drivername=self.driver,
            username=self.user,
            password=self.password,
            host=self.host,
            port=self.port,
            database=self.database,
            query=query,
        )


def _default_profiles() -> Dict[str, ConnectionProfile]:
    return {"default": ConnectionProfile(driver="sqlite", database="./data/sessions.db")}


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application settings
    app_name: str = "HTTP Session Store"
    version: str = "1.0.0"
    debug: bool = False
    dev_mode: bool = False
    host: str = "0.0.0.0"
    port: int = 8500

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    # Session store selection; see httpsession.stores.registry for known tags
    session_store_backend: str = "memory"
    session_connection: str = "default"
    connection_profiles: Dict[str, ConnectionProfile] = Field(default_factory=_default_profiles)

    # Garbage collection runs on gc_probability out of gc_divisor closed sessions
    session_gc_probability: int = 1
    session_gc_divisor: int = 100
    session_gc_maxlifetime: int = 1440

    # Rate limiting for the admin garbage collection endpoint
    rate_limit_gc_endpoint: str = "5/minute"

    # Optional Redis URL for distributed rate limiting
    redis_url: Optional[str] = None

    @field_validator("session_gc_divisor")
    @classmethod
    def validate_gc_divisor(cls, value: int) -> int:
        if value < 1:
            raise ValueError("session_gc_divisor must be at least 1")
        return value

    @field_validator("session_gc_probability", "session_gc_maxlifetime")
    @classmethod
    def validate_non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("value must not be negative")
        return value

    def get_connection_profile(self, name: Optional[str] = None) -> ConnectionProfile:
        """
        Look up a connection profile by name.

        Args:
            name: Profile name, defaults to ``session_connection``

        Returns:
            The matching ConnectionProfile

        Raises:
            ConfigurationError: If no profile with that name is configured
        """
        profile_name = name or self.session_connection
        try:
            return self.connection_profiles[profile_name]
        except KeyError:
            raise ConfigurationError(
                f"Unknown connection profile: {profile_name!r}"
            ) from None


# Global settings instance
settings = Settings()
