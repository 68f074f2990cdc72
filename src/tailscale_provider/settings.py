"""Provider configuration.

Values given in the provider block take precedence, anything left out is
read from the environment.
"""

from __future__ import annotations

from pydantic import AliasChoices, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from yarl import URL

from .const import DEFAULT_BASE_URL, DEFAULT_TAILNET, DEFAULT_USER_AGENT
from .exceptions import ProviderConfigurationError


class ProviderSettings(BaseSettings):
    """Settings of the Tailscale provider."""

    model_config = SettingsConfigDict(
        extra="ignore",
        populate_by_name=True,
    )

    api_key: SecretStr = Field(
        default=SecretStr(""),
        validation_alias=AliasChoices("TAILSCALE_API_KEY"),
        description=(
            "The API key to use for authenticating requests to the API. "
            "Conflicts with 'oauth_client_id' and 'oauth_client_secret'."
        ),
    )
    oauth_client_id: str = Field(
        default="",
        validation_alias=AliasChoices("TAILSCALE_OAUTH_CLIENT_ID", "OAUTH_CLIENT_ID"),
        description="The OAuth application's ID when using OAuth client credentials.",
    )
    oauth_client_secret: SecretStr = Field(
        default=SecretStr(""),
        validation_alias=AliasChoices(
            "TAILSCALE_OAUTH_CLIENT_SECRET", "OAUTH_CLIENT_SECRET"
        ),
        description=(
            "The OAuth application's secret when using OAuth client credentials."
        ),
    )
    scopes: list[str] = Field(
        default_factory=list,
        description="The OAuth 2.0 scopes to request for the access token.",
    )
    tailnet: str = Field(
        default=DEFAULT_TAILNET,
        validation_alias=AliasChoices("TAILSCALE_TAILNET"),
        description=(
            "The organization name of the tailnet in which to perform actions. "
            "Defaults to the tailnet that owns the credentials."
        ),
    )
    base_url: str = Field(
        default=DEFAULT_BASE_URL,
        validation_alias=AliasChoices("TAILSCALE_BASE_URL"),
        description="The base URL of the Tailscale API.",
    )
    user_agent: str = Field(
        default="",
        description="User-Agent header for API requests.",
    )
    request_timeout: float = Field(
        default=60.0,
        gt=0,
        description="Timeout per request (seconds).",
    )

    @field_validator("base_url")
    @classmethod
    def _check_base_url(cls, value: str) -> str:
        url = URL(value)
        if not url.is_absolute():
            msg = f"could not parse baseURL {value!r}"
            raise ValueError(msg)
        return value

    @property
    def effective_user_agent(self) -> str:
        """User agent sent to the API, the provider's own when unset."""
        return self.user_agent or DEFAULT_USER_AGENT

    @property
    def uses_oauth(self) -> bool:
        """Whether requests authenticate with OAuth client credentials."""
        secret = self.oauth_client_secret.get_secret_value()
        return bool(self.oauth_client_id and secret)

    def check_credentials(self) -> None:
        """Validate the combination of tailnet and credentials.

        Raises
        ------
            ProviderConfigurationError: The tailnet is empty, or the
                credentials are missing, incomplete or conflicting.

        """
        if not self.tailnet:
            msg = "tailscale provider argument 'tailnet' is empty"
            raise ProviderConfigurationError(msg)

        api_key = self.api_key.get_secret_value()
        client_id = self.oauth_client_id
        client_secret = self.oauth_client_secret.get_secret_value()

        msg = ""
        if not api_key and not client_id and not client_secret:
            msg = (
                "tailscale provider credentials are empty - set `api_key` or "
                "'oauth_client_id' and 'oauth_client_secret'"
            )
        elif api_key and (client_id or client_secret):
            msg = (
                "tailscale provider credentials are conflicting - `api_key` "
                "conflicts with 'oauth_client_id' and 'oauth_client_secret'"
            )
        elif not api_key and not client_id:
            msg = "tailscale provider argument 'oauth_client_id' is empty"
        elif not api_key and not client_secret:
            msg = "tailscale provider argument 'oauth_client_secret' is empty"
        if msg:
            raise ProviderConfigurationError(msg)
