"""
Configuration for the OKX trading gateway.

Loads settings from environment variables (prefix ``OKX_``) or a ``.env``
file.

Environment Variables:
    OKX_API_KEY                     API key
    OKX_SECRET_KEY                  API secret
    OKX_PASSPHRASE                  API passphrase
    OKX_BASE_URL                    API host (default: https://www.okx.com)
    OKX_SIMULATED                   Demo trading (default: false)
    OKX_CACHE_TTL_SECONDS           Balance/positions cache TTL (default: 15)
    OKX_LEVERAGE_COOLDOWN_SECONDS   Wait after a leverage change (default: 5)
    OKX_INST_TYPE                   Instrument type for metadata (default: FUTURES)
    OKX_MARGIN_MODE                 Margin mode sent on orders (default: cross)
    OKX_REQUEST_TIMEOUT             HTTP timeout in seconds (default: 10)
    OKX_MAX_RETRIES                 Attempts for retryable failures (default: 3)
"""

from pydantic_settings import BaseSettings, SettingsConfigDict

from okx_gateway.execution import GatewayConfig


class Settings(BaseSettings):
    """Gateway settings loaded from environment."""

    # Credentials
    api_key: str = ""
    secret_key: str = ""
    passphrase: str = ""

    # API
    base_url: str = "https://www.okx.com"
    simulated: bool = False
    request_timeout: float = 10.0
    max_retries: int = 3

    # Gateway
    cache_ttl_seconds: float = 15.0
    leverage_cooldown_seconds: float = 5.0
    inst_type: str = "FUTURES"
    margin_mode: str = "cross"

    model_config = SettingsConfigDict(
        env_prefix="OKX_",
        env_file=".env",
        extra="ignore",
    )

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_key and self.secret_key and self.passphrase)

    @property
    def gateway_config(self) -> GatewayConfig:
        """Get gateway configuration."""
        return GatewayConfig(
            cache_ttl_seconds=self.cache_ttl_seconds,
            leverage_cooldown_seconds=self.leverage_cooldown_seconds,
            margin_mode=self.margin_mode,
            inst_type=self.inst_type,
        )
