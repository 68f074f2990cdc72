"""Asynchronous client for the Tailscale API."""

from __future__ import annotations

import asyncio
import socket
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any, Self

import orjson
from aiohttp import BasicAuth
from aiohttp.client import ClientError, ClientSession
from aiohttp.hdrs import METH_DELETE, METH_GET, METH_PATCH, METH_POST, METH_PUT
from multidict import CIMultiDictProxy
from yarl import URL

from .const import DEFAULT_BASE_URL, DEFAULT_TAILNET, DEFAULT_USER_AGENT, LOGGER
from .exceptions import (
    TailscaleAPIError,
    TailscaleAuthenticationError,
    TailscaleConnectionError,
    TailscaleError,
    TailscaleNotFoundError,
    TailscalePreconditionFailedError,
)
from .models import (
    APIErrorBody,
    AWSExternalID,
    Contacts,
    Device,
    DeviceRoutes,
    Devices,
    DNSConfiguration,
    DNSPreferences,
    Key,
    KeyCapabilities,
    Keys,
    LogstreamConfiguration,
    OAuthToken,
    PostureIntegration,
    PostureIntegrations,
    TailnetSettings,
    User,
    Users,
    Webhook,
)
from .policy import Policy
from .storage import InMemoryTokenStorage, TokenStorage

API_ERRORS: dict[int, type[TailscaleAPIError]] = {
    401: TailscaleAuthenticationError,
    403: TailscaleAuthenticationError,
    404: TailscaleNotFoundError,
    412: TailscalePreconditionFailedError,
}


@dataclass
# pylint: disable-next=too-many-instance-attributes,too-many-public-methods
class Tailscale:
    """Main class for handling connections with the Tailscale API.

    Authenticates either with an API key or with OAuth client credentials,
    in which case access tokens are minted on demand and kept in the
    token storage until shortly before they expire.
    """

    tailnet: str = DEFAULT_TAILNET
    api_key: str | None = None
    oauth_client_id: str | None = None
    oauth_client_secret: str | None = None
    oauth_scopes: list[str] = field(default_factory=list)

    base_url: str = DEFAULT_BASE_URL
    user_agent: str = DEFAULT_USER_AGENT
    request_timeout: float = 8.0
    session: ClientSession | None = None
    token_storage: TokenStorage = field(default_factory=InMemoryTokenStorage)

    _close_session: bool = False

    def _url(self, uri: str) -> URL:
        """Build the absolute URL of an API path, without '/api/v2/'."""
        return URL(self.base_url).join(URL(f"/api/v2/{uri}"))

    async def _send(
        self,
        uri: str,
        *,
        method: str = METH_GET,
        data: Any = None,
        form: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        authenticated: bool = True,
    ) -> tuple[str, CIMultiDictProxy[str]]:
        """Handle a request to the Tailscale API.

        A generic method for sending/handling HTTP requests done against
        the Tailscale API.

        Args:
        ----
            uri: Request URI, without '/api/v2/'.
            method: HTTP Method to use.
            data: JSON serializable payload to send to the Tailscale API.
            form: Form fields to send instead of a JSON payload.
            params: Query parameters.
            headers: Additional request headers.
            authenticated: Whether to attach credentials to the request.

        Returns:
        -------
            The response body and the response headers.

        Raises:
        ------
            TailscaleAuthenticationError: If the credentials are invalid.
            TailscaleNotFoundError: The requested object does not exist.
            TailscaleConnectionError: An error occurred while communicating with
                the Tailscale API.
            TailscaleAPIError: Received an unexpected response from the Tailscale
                API.

        """
        url = self._url(uri)

        request_headers = {
            "Accept": "application/json",
            "User-Agent": self.user_agent,
        }
        if headers:
            request_headers.update(headers)

        auth: BasicAuth | None = None
        if authenticated:
            auth = await self._authenticate(request_headers)

        if self.session is None:
            self.session = ClientSession()
            self._close_session = True

        LOGGER.debug("%s %s", method, url.path)
        try:
            async with asyncio.timeout(self.request_timeout):
                response = await self.session.request(
                    method,
                    url,
                    json=data if form is None else None,
                    data=form,
                    params=params,
                    auth=auth,
                    headers=request_headers,
                )
                text = await response.text()
        except asyncio.TimeoutError as exception:
            msg = "Timeout occurred while connecting to the Tailscale API"
            raise TailscaleConnectionError(msg) from exception
        except (
            ClientError,
            socket.gaierror,
        ) as exception:
            msg = "Error occurred while communicating with the Tailscale API"
            raise TailscaleConnectionError(msg) from exception

        if response.status >= 400:
            raise self._api_error(response.status, text, response.reason)

        return text, response.headers

    async def _request(self, uri: str, **kwargs: Any) -> str:
        """Handle a request to the Tailscale API, returning the body only."""
        text, _ = await self._send(uri, **kwargs)
        return text

    @staticmethod
    def _api_error(status: int, text: str, reason: str | None) -> TailscaleAPIError:
        """Translate a non-successful response into an exception."""
        try:
            body = APIErrorBody.from_json(text)
        except (ValueError, LookupError, TypeError):
            body = APIErrorBody(message=text.strip() or reason or "unknown error")
        if not body.message:
            body.message = reason or "unknown error"
        error = API_ERRORS.get(status, TailscaleAPIError)
        return error(body.message, status, body.data)

    async def _authenticate(self, headers: dict[str, str]) -> BasicAuth | None:
        """Attach credentials to a request.

        Returns
        -------
            Basic auth for API keys, None when a bearer token was added to
            the headers instead.

        """
        if self.api_key:
            return BasicAuth(self.api_key)
        if self.oauth_client_id and self.oauth_client_secret:
            headers["Authorization"] = f"Bearer {await self._access_token()}"
            return None
        msg = "No API key or OAuth client credentials configured"
        raise TailscaleError(msg)

    async def _access_token(self) -> str:
        """Return a valid OAuth access token, minting a new one when needed."""
        if access_token := await self.token_storage.get_valid_token():
            return access_token

        form = {
            "client_id": self.oauth_client_id or "",
            "client_secret": self.oauth_client_secret or "",
            "grant_type": "client_credentials",
        }
        if self.oauth_scopes:
            form["scope"] = " ".join(self.oauth_scopes)

        LOGGER.debug("Requesting OAuth access token for %s", self.oauth_client_id)
        data = await self._request(
            "oauth/token", method=METH_POST, form=form, authenticated=False
        )
        token = OAuthToken.from_json(data)
        expires_at = datetime.now(tz=UTC) + timedelta(seconds=token.expires_in)
        await self.token_storage.set_token(token.access_token, expires_at)
        return token.access_token

    # Devices

    async def devices(
        self, filters: dict[str, list[str]] | None = None
    ) -> dict[str, Device]:
        """Get devices information from the Tailscale API.

        Args:
        ----
            filters: Top-level device properties and the values to match.

        Returns:
        -------
            Returns a dictionary of Tailscale devices, keyed by device id,
            in the order the API returned them.

        """
        params: list[tuple[str, str]] = [("fields", "all")]
        for name, values in (filters or {}).items():
            params.extend((name, value) for value in values)
        text, _ = await self._send(f"tailnet/{self.tailnet}/devices", params=params)
        return Devices.from_json(text).devices

    async def device(self, device_id: str) -> Device:
        """Get a single device."""
        data = await self._request(f"device/{device_id}", params={"fields": "all"})
        return Device.from_json(data)

    async def authorize_device(
        self, device_id: str, *, authorized: bool = True
    ) -> None:
        """Authorize (or de-authorize) a device to join the tailnet."""
        await self._request(
            f"device/{device_id}/authorized",
            method=METH_POST,
            data={"authorized": authorized},
        )

    async def tag_device(self, device_id: str, *, tags: list[str]) -> None:
        """Replace the tags of a device."""
        await self._request(
            f"device/{device_id}/tags", method=METH_POST, data={"tags": tags}
        )

    async def set_device_key(
        self, device_id: str, *, key_expiry_disabled: bool
    ) -> None:
        """Update the key properties of a device."""
        await self._request(
            f"device/{device_id}/key",
            method=METH_POST,
            data={"keyExpiryDisabled": key_expiry_disabled},
        )

    async def device_routes(self, device_id: str) -> DeviceRoutes:
        """Get the subnet routes advertised by and enabled for a device."""
        data = await self._request(f"device/{device_id}/routes")
        return DeviceRoutes.from_json(data)

    async def set_device_routes(
        self, device_id: str, routes: list[str]
    ) -> DeviceRoutes:
        """Replace the enabled subnet routes of a device."""
        data = await self._request(
            f"device/{device_id}/routes", method=METH_POST, data={"routes": routes}
        )
        return DeviceRoutes.from_json(data) if data.strip() else DeviceRoutes()

    async def delete_device(self, device_id: str) -> None:
        """Remove a device from the tailnet."""
        await self._request(f"device/{device_id}", method=METH_DELETE)

    # Keys

    async def keys(self) -> list[Key]:
        """List the keys of the tailnet."""
        data = await self._request(f"tailnet/{self.tailnet}/keys")
        return Keys.from_json(data).keys

    async def get_key(self, key_id: str) -> Key:
        """Get the metadata of a key; the secret itself is never returned."""
        data = await self._request(f"tailnet/{self.tailnet}/keys/{key_id}")
        return Key.from_json(data)

    # pylint: disable-next=too-many-arguments
    async def create_auth_key(
        self,
        *,
        reusable: bool = False,
        ephemeral: bool = False,
        preauthorized: bool = False,
        tags: list[str] | None = None,
        expiry_seconds: int | None = None,
        description: str | None = None,
    ) -> Key:
        """Create a pre-authentication key for registering devices."""
        capabilities = KeyCapabilities()
        create = capabilities.devices.create
        create.reusable = reusable
        create.ephemeral = ephemeral
        create.preauthorized = preauthorized
        create.tags = tags or []

        payload: dict[str, Any] = {"capabilities": capabilities.to_dict()}
        if expiry_seconds is not None:
            payload["expirySeconds"] = expiry_seconds
        if description is not None:
            payload["description"] = description

        data = await self._request(
            f"tailnet/{self.tailnet}/keys", method=METH_POST, data=payload
        )
        return Key.from_json(data)

    async def create_oauth_client(
        self, *, description: str, scopes: list[str], tags: list[str]
    ) -> Key:
        """Create an OAuth client."""
        data = await self._request(
            f"tailnet/{self.tailnet}/keys",
            method=METH_POST,
            data={
                "keyType": "client",
                "description": description,
                "scopes": scopes,
                "tags": tags,
            },
        )
        return Key.from_json(data)

    async def update_oauth_client(
        self, key_id: str, *, description: str, scopes: list[str], tags: list[str]
    ) -> Key:
        """Replace the description, scopes and tags of an OAuth client."""
        data = await self._request(
            f"tailnet/{self.tailnet}/keys/{key_id}",
            method=METH_PUT,
            data={
                "keyType": "client",
                "description": description,
                "scopes": scopes,
                "tags": tags,
            },
        )
        return Key.from_json(data)

    async def create_federated_identity(self, **identity: Any) -> Key:
        """Create a federated identity.

        Args:
        ----
            identity: description, scopes, tags, audience, subject, issuer
                and custom_claim_rules of the identity.

        """
        data = await self._request(
            f"tailnet/{self.tailnet}/keys",
            method=METH_POST,
            data={"keyType": "federated", **_federated_identity_payload(identity)},
        )
        return Key.from_json(data)

    async def update_federated_identity(self, key_id: str, **identity: Any) -> Key:
        """Replace the settings of a federated identity."""
        data = await self._request(
            f"tailnet/{self.tailnet}/keys/{key_id}",
            method=METH_PUT,
            data={"keyType": "federated", **_federated_identity_payload(identity)},
        )
        return Key.from_json(data)

    async def delete_key(self, key_id: str) -> None:
        """Delete (revoke) a key."""
        await self._request(f"tailnet/{self.tailnet}/keys/{key_id}", method=METH_DELETE)

    # Policy file

    async def policy(self) -> Policy:
        """Get the policy file of the tailnet as JSON, with its ETag."""
        text, headers = await self._send(f"tailnet/{self.tailnet}/acl")
        return Policy(document=orjson.loads(text), etag=headers.get("ETag"))

    async def update_policy(
        self, document: dict[str, Any], *, etag: str | None = None
    ) -> Policy:
        """Replace the policy file of the tailnet.

        Args:
        ----
            document: The new policy document.
            etag: Only replace the policy if its current ETag matches.

        """
        headers = {"If-Match": etag} if etag else None
        text, response_headers = await self._send(
            f"tailnet/{self.tailnet}/acl",
            method=METH_POST,
            data=document,
            headers=headers,
        )
        updated = orjson.loads(text) if text.strip() else document
        return Policy(document=updated, etag=response_headers.get("ETag"))

    # DNS

    async def nameservers(self) -> list[str]:
        """List the global DNS nameservers."""
        data = await self._request(f"tailnet/{self.tailnet}/dns/nameservers")
        return orjson.loads(data).get("dns") or []

    async def set_nameservers(self, nameservers: list[str]) -> None:
        """Replace the global DNS nameservers."""
        await self._request(
            f"tailnet/{self.tailnet}/dns/nameservers",
            method=METH_POST,
            data={"dns": nameservers},
        )

    async def search_paths(self) -> list[str]:
        """List the DNS search paths."""
        data = await self._request(f"tailnet/{self.tailnet}/dns/searchpaths")
        return orjson.loads(data).get("searchPaths") or []

    async def set_search_paths(self, search_paths: list[str]) -> None:
        """Replace the DNS search paths."""
        await self._request(
            f"tailnet/{self.tailnet}/dns/searchpaths",
            method=METH_POST,
            data={"searchPaths": search_paths},
        )

    async def dns_preferences(self) -> DNSPreferences:
        """Get the DNS preferences (MagicDNS)."""
        data = await self._request(f"tailnet/{self.tailnet}/dns/preferences")
        return DNSPreferences.from_json(data)

    async def set_dns_preferences(self, *, magic_dns: bool) -> None:
        """Replace the DNS preferences; MagicDNS requires nameservers."""
        await self._request(
            f"tailnet/{self.tailnet}/dns/preferences",
            method=METH_POST,
            data=DNSPreferences(magic_dns=magic_dns).to_dict(),
        )

    async def split_dns(self) -> dict[str, list[str]]:
        """Get the split DNS nameservers keyed by domain."""
        data = await self._request(f"tailnet/{self.tailnet}/dns/split-dns")
        return {
            domain: nameservers or []
            for domain, nameservers in (orjson.loads(data) or {}).items()
        }

    async def update_split_dns(
        self, changes: dict[str, list[str]]
    ) -> dict[str, list[str]]:
        """Update split DNS for the given domains; an empty list removes one."""
        data = await self._request(
            f"tailnet/{self.tailnet}/dns/split-dns", method=METH_PATCH, data=changes
        )
        return (orjson.loads(data) or {}) if data.strip() else {}

    async def set_split_dns(self, split_dns: dict[str, list[str]]) -> None:
        """Replace the whole split DNS map."""
        await self._request(
            f"tailnet/{self.tailnet}/dns/split-dns", method=METH_PUT, data=split_dns
        )

    async def dns_configuration(self) -> DNSConfiguration:
        """Get the complete DNS configuration."""
        data = await self._request(f"tailnet/{self.tailnet}/dns/configuration")
        return DNSConfiguration.from_json(data)

    async def set_dns_configuration(self, configuration: DNSConfiguration) -> None:
        """Replace the complete DNS configuration."""
        await self._request(
            f"tailnet/{self.tailnet}/dns/configuration",
            method=METH_POST,
            data=configuration.to_dict(),
        )

    # Webhooks

    async def webhooks(self) -> list[Webhook]:
        """List the webhook endpoints of the tailnet."""
        data = await self._request(f"tailnet/{self.tailnet}/webhooks")
        return [
            Webhook.from_dict(webhook)
            for webhook in orjson.loads(data).get("webhooks") or []
        ]

    async def webhook(self, endpoint_id: str) -> Webhook:
        """Get a webhook endpoint."""
        data = await self._request(f"webhooks/{endpoint_id}")
        return Webhook.from_json(data)

    async def create_webhook(
        self, *, endpoint_url: str, provider_type: str, subscriptions: list[str]
    ) -> Webhook:
        """Create a webhook endpoint; the response holds the signing secret."""
        data = await self._request(
            f"tailnet/{self.tailnet}/webhooks",
            method=METH_POST,
            data={
                "endpointUrl": endpoint_url,
                "providerType": provider_type,
                "subscriptions": subscriptions,
            },
        )
        return Webhook.from_json(data)

    async def update_webhook(
        self, endpoint_id: str, subscriptions: list[str]
    ) -> Webhook:
        """Replace the subscriptions of a webhook endpoint."""
        data = await self._request(
            f"webhooks/{endpoint_id}",
            method=METH_PATCH,
            data={"subscriptions": subscriptions},
        )
        return Webhook.from_json(data)

    async def delete_webhook(self, endpoint_id: str) -> None:
        """Delete a webhook endpoint."""
        await self._request(f"webhooks/{endpoint_id}", method=METH_DELETE)

    # Contacts

    async def contacts(self) -> Contacts:
        """Get the contact preferences of the tailnet."""
        data = await self._request(f"tailnet/{self.tailnet}/contacts")
        return Contacts.from_json(data)

    async def update_contact(self, contact_type: str, *, email: str) -> None:
        """Update the email address of one contact preference."""
        await self._request(
            f"tailnet/{self.tailnet}/contacts/{contact_type}",
            method=METH_PATCH,
            data={"email": email},
        )

    # Tailnet settings

    async def tailnet_settings(self) -> TailnetSettings:
        """Get the settings of the tailnet."""
        data = await self._request(f"tailnet/{self.tailnet}/settings")
        return TailnetSettings.from_json(data)

    async def update_tailnet_settings(self, changes: dict[str, Any]) -> None:
        """Update only the given settings, keyed by their API field names."""
        await self._request(
            f"tailnet/{self.tailnet}/settings", method=METH_PATCH, data=changes
        )

    # Device posture

    async def posture_integrations(self) -> list[PostureIntegration]:
        """List the posture integrations of the tailnet."""
        data = await self._request(f"tailnet/{self.tailnet}/posture/integrations")
        return PostureIntegrations.from_json(data).integrations

    async def posture_integration(self, integration_id: str) -> PostureIntegration:
        """Get a posture integration."""
        data = await self._request(f"posture/integrations/{integration_id}")
        return PostureIntegration.from_json(data)

    async def create_posture_integration(
        self, *, provider: str, client_secret: str, **details: str
    ) -> PostureIntegration:
        """Create a posture integration.

        Args:
        ----
            provider: The posture data provider.
            client_secret: Secret used to authenticate with the provider.
            details: cloud_id, client_id and tenant_id of the integration.

        """
        payload = {
            "provider": provider,
            "clientSecret": client_secret,
            **_posture_details(details),
        }
        data = await self._request(
            f"tailnet/{self.tailnet}/posture/integrations",
            method=METH_POST,
            data=payload,
        )
        return PostureIntegration.from_json(data)

    async def update_posture_integration(
        self, integration_id: str, *, client_secret: str | None = None, **details: str
    ) -> PostureIntegration:
        """Update a posture integration."""
        payload: dict[str, Any] = _posture_details(details)
        if client_secret is not None:
            payload["clientSecret"] = client_secret
        data = await self._request(
            f"posture/integrations/{integration_id}",
            method=METH_PATCH,
            data=payload,
        )
        return PostureIntegration.from_json(data)

    async def delete_posture_integration(self, integration_id: str) -> None:
        """Delete a posture integration."""
        await self._request(
            f"posture/integrations/{integration_id}", method=METH_DELETE
        )

    # Log streaming

    async def logstream_configuration(self, log_type: str) -> LogstreamConfiguration:
        """Get the log streaming configuration of a log type."""
        data = await self._request(f"tailnet/{self.tailnet}/logging/{log_type}/stream")
        return LogstreamConfiguration.from_json(data)

    async def set_logstream_configuration(
        self, log_type: str, configuration: dict[str, Any]
    ) -> None:
        """Replace the log streaming configuration of a log type."""
        await self._request(
            f"tailnet/{self.tailnet}/logging/{log_type}/stream",
            method=METH_PUT,
            data=configuration,
        )

    async def delete_logstream_configuration(self, log_type: str) -> None:
        """Stop streaming a log type."""
        await self._request(
            f"tailnet/{self.tailnet}/logging/{log_type}/stream", method=METH_DELETE
        )

    async def create_aws_external_id(self, *, reusable: bool = False) -> AWSExternalID:
        """Mint (or reuse) an AWS external ID for role based S3 streaming."""
        data = await self._request(
            f"tailnet/{self.tailnet}/aws-external-id",
            method=METH_POST,
            data={"reusable": reusable},
        )
        return AWSExternalID.from_json(data)

    # Users

    async def users(
        self, *, user_type: str | None = None, role: str | None = None
    ) -> list[User]:
        """List the users of the tailnet, optionally filtered."""
        params = {}
        if user_type:
            params["type"] = user_type
        if role:
            params["role"] = role
        data = await self._request(f"tailnet/{self.tailnet}/users", params=params)
        return Users.from_json(data).users

    async def user(self, user_id: str) -> User:
        """Get a user."""
        data = await self._request(f"users/{user_id}")
        return User.from_json(data)

    async def close(self) -> None:
        """Close open client session."""
        if self.session and self._close_session:
            await self.session.close()

    async def __aenter__(self) -> Self:
        """Async enter.

        Returns
        -------
            The Tailscale object.

        """
        return self

    async def __aexit__(self, *_exc_info: object) -> None:
        """Async exit.

        Args:
        ----
            _exc_info: Exec type.

        """
        await self.close()


def _federated_identity_payload(identity: dict[str, Any]) -> dict[str, Any]:
    """Map keyword arguments to the API's federated identity fields."""
    return {
        "description": identity.get("description", ""),
        "scopes": identity.get("scopes") or [],
        "tags": identity.get("tags") or [],
        "audience": identity.get("audience", ""),
        "subject": identity.get("subject", ""),
        "issuer": identity.get("issuer", ""),
        "customClaimRules": identity.get("custom_claim_rules") or {},
    }


def _posture_details(details: dict[str, str]) -> dict[str, str]:
    """Map keyword arguments to the API's posture integration fields."""
    names = {"cloud_id": "cloudId", "client_id": "clientId", "tenant_id": "tenantId"}
    return {names[key]: value for key, value in details.items() if key in names}
