"""Configuration schema for meetjoin.

Defines Pydantic models for loading and validating configuration from YAML
files and environment variables. The issuance strategy is decided here,
once, from what is configured.
"""

import os
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

SUPPORTED_CODECS = ("vp8", "h264", "vp9", "av1")


class ResolverStrategy(Enum):
    """Credential issuance strategy selected at configuration time.

    - REMOTE: POST to the issuance service (token endpoint template)
    - LOCAL: sign a token locally with the LiveKit key pair
    - NONE: nothing configured, every resolution fails
    """

    REMOTE = "remote"
    LOCAL = "local"
    NONE = "none"


class IssuanceServiceConfig(BaseModel):
    """Remote issuance service configuration."""

    token_endpoint: str = Field(
        default="",
        description="Issuance URL template, '{id}' is replaced with the EventId",
    )
    timeout_s: float = Field(
        default=10.0, gt=0, le=120.0, description="Issuance request timeout in seconds"
    )

    @field_validator("token_endpoint")
    @classmethod
    def validate_token_endpoint(cls, v: str) -> str:
        """Validate that a configured endpoint is an HTTP(S) URL."""
        v = v.strip()
        if v and not v.startswith(("http://", "https://")):
            raise ValueError(f"token_endpoint must be an http(s) URL, got '{v}'")
        return v


class SigningConfig(BaseModel):
    """Local LiveKit token signing configuration."""

    enabled: bool = Field(default=True, description="Allow local signing as fallback")
    url: str = Field(default="", description="LiveKit server URL handed to clients")
    api_key: str = Field(default="", description="LiveKit API key")
    api_secret: str = Field(default="", description="LiveKit API secret")

    def missing_fields(self) -> list[str]:
        """Names of the settings local signing still needs."""
        missing = []
        if not self.url:
            missing.append("url")
        if not self.api_key:
            missing.append("api_key")
        if not self.api_secret:
            missing.append("api_secret")
        return missing


class IssuanceConfig(BaseModel):
    """Credential issuance configuration."""

    service: IssuanceServiceConfig = Field(default_factory=IssuanceServiceConfig)
    signing: SigningConfig = Field(default_factory=SigningConfig)

    @property
    def strategy(self) -> ResolverStrategy:
        """Active strategy. Remote issuance takes precedence over local signing."""
        if self.service.token_endpoint:
            return ResolverStrategy.REMOTE
        if self.signing.enabled and (
            self.signing.url or self.signing.api_key or self.signing.api_secret
        ):
            return ResolverStrategy.LOCAL
        return ResolverStrategy.NONE


class SessionDefaultsConfig(BaseModel):
    """Defaults applied when building a session configuration."""

    default_codec: str = Field(default="vp9", description="Video codec when none is requested")
    hq: bool = Field(default=False, description="Publish high quality simulcast layers")

    @field_validator("default_codec")
    @classmethod
    def validate_default_codec(cls, v: str) -> str:
        """Validate that the codec is one LiveKit can publish."""
        v = v.lower()
        if v not in SUPPORTED_CODECS:
            raise ValueError(f"default_codec must be one of {list(SUPPORTED_CODECS)}, got '{v}'")
        return v


class UIConfig(BaseModel):
    """Cosmetic toggles reported to clients."""

    show_settings_menu: bool = Field(default=False, description="Show the settings menu")


class ServerConfig(BaseModel):
    """Connection-details HTTP endpoint configuration."""

    host: str = Field(default="127.0.0.1", description="Bind host address")
    port: int = Field(default=3000, ge=1024, le=65535, description="Bind port")


def _truthy(value: str) -> bool:
    return value.lower() in ("true", "1", "yes")


class AppConfig(BaseModel):
    """Root meetjoin configuration."""

    issuance: IssuanceConfig = Field(default_factory=IssuanceConfig)
    session: SessionDefaultsConfig = Field(default_factory=SessionDefaultsConfig)
    ui: UIConfig = Field(default_factory=UIConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate logging level name."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}, got '{v}'")
        return v.upper()

    @staticmethod
    def _apply_env_overrides(data: dict) -> dict:
        """Overlay environment variables onto raw configuration data."""
        issuance = data.setdefault("issuance", {})
        service = issuance.setdefault("service", {})
        signing = issuance.setdefault("signing", {})
        session = data.setdefault("session", {})
        ui = data.setdefault("ui", {})
        server = data.setdefault("server", {})

        if token_endpoint := os.getenv("TOKEN_ENDPOINT"):
            service["token_endpoint"] = token_endpoint
        if timeout := os.getenv("TOKEN_ENDPOINT_TIMEOUT_S"):
            service["timeout_s"] = float(timeout)

        if livekit_url := os.getenv("LIVEKIT_URL"):
            signing["url"] = livekit_url
        if livekit_api_key := os.getenv("LIVEKIT_API_KEY"):
            signing["api_key"] = livekit_api_key
        if livekit_api_secret := os.getenv("LIVEKIT_API_SECRET"):
            signing["api_secret"] = livekit_api_secret

        if codec := os.getenv("DEFAULT_VIDEO_CODEC"):
            session["default_codec"] = codec
        if hq := os.getenv("HQ"):
            session["hq"] = _truthy(hq)

        if show_settings := os.getenv("SHOW_SETTINGS_MENU"):
            ui["show_settings_menu"] = _truthy(show_settings)

        if host := os.getenv("HOST"):
            server["host"] = host
        if port := os.getenv("PORT"):
            server["port"] = int(port)

        if log_level := os.getenv("LOG_LEVEL"):
            data["log_level"] = log_level

        return data

    @classmethod
    def from_yaml(cls, path: Path) -> "AppConfig":
        """Load configuration from YAML file with environment variable overrides.

        A ``.env`` file in the working directory is loaded first; variables
        already set in the process environment win.

        Args:
            path: Path to YAML configuration file

        Returns:
            Loaded configuration

        Raises:
            FileNotFoundError: If configuration file doesn't exist
            ValueError: If YAML is invalid or validation fails
        """
        import yaml  # type: ignore[import-untyped]
        from dotenv import find_dotenv, load_dotenv

        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        load_dotenv(find_dotenv(usecwd=True))

        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ValueError(f"Configuration root must be a mapping: {path}")

        return cls.model_validate(cls._apply_env_overrides(data))

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Build configuration from defaults and environment variables only."""
        from dotenv import find_dotenv, load_dotenv

        load_dotenv(find_dotenv(usecwd=True))
        return cls.model_validate(cls._apply_env_overrides({}))

    @classmethod
    def from_yaml_with_defaults(cls, path: Path | None = None) -> "AppConfig":
        """Load configuration from YAML or fall back to environment-only config.

        Args:
            path: Optional path to YAML configuration file

        Returns:
            Loaded configuration
        """
        if path is not None and path.exists():
            return cls.from_yaml(path)

        return cls.from_env()
