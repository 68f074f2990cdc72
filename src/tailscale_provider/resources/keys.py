"""Keys of the tailnet: auth keys, OAuth clients and federated identities."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..const import LOGGER, RecreateIfInvalid
from ..exceptions import DiagnosticError, TailscaleError, TailscaleNotFoundError
from ..schema import (
    Attribute,
    AttributeType,
    Plan,
    Resource,
    ResourceData,
    api_errors,
    diagnostics_error,
    format_time,
    is_url_with_https,
    max_length,
    one_of,
)

if TYPE_CHECKING:
    from ..models import Key
    from ..tailscale import Tailscale

DESCRIPTION_LIMIT = max_length(50, "description must be 50 characters or less")


def should_recreate_if_invalid(reusable: bool, recreate_if_invalid: str) -> bool:
    """Return whether an invalid key should be created again.

    Reusable keys are recreated by default. Invalid single-use keys are
    assumed to have been used and are left alone, recreating them would
    needlessly touch everything that depends on the key.
    """
    if recreate_if_invalid == RecreateIfInvalid.ALWAYS:
        return True
    if recreate_if_invalid == RecreateIfInvalid.NEVER:
        return False
    return reusable


class TailnetKeyResource(Resource):
    """Pre-authentication key for registering new devices.

    Every setting forces a new key. The secret is only known right after
    creation.
    """

    type_name = "tailscale_tailnet_key"
    description = (
        "The tailnet_key resource allows you to create pre-authentication keys "
        "that can register new nodes without needing to sign in via a web browser."
    )
    schema = {
        "reusable": Attribute(
            AttributeType.BOOL,
            optional=True,
            force_new=True,
            description=(
                "Indicates if the key is reusable or single-use. Defaults to "
                "`false`."
            ),
        ),
        "ephemeral": Attribute(
            AttributeType.BOOL,
            optional=True,
            force_new=True,
            description="Indicates if the key is ephemeral. Defaults to `false`.",
        ),
        "tags": Attribute(
            AttributeType.SET,
            element=AttributeType.STRING,
            optional=True,
            force_new=True,
            description=(
                "List of tags to apply to the machines authenticated by the key."
            ),
        ),
        "preauthorized": Attribute(
            AttributeType.BOOL,
            optional=True,
            force_new=True,
            description=(
                "Determines whether or not the machines authenticated by the key "
                "will be authorized for the tailnet by default. Defaults to `false`."
            ),
        ),
        "key": Attribute(
            AttributeType.STRING,
            computed=True,
            sensitive=True,
            description="The authentication key",
        ),
        "expiry": Attribute(
            AttributeType.INT,
            optional=True,
            force_new=True,
            description=(
                "The expiry of the key in seconds. Defaults to `7776000` (90 days)."
            ),
        ),
        "created_at": Attribute(
            AttributeType.STRING,
            computed=True,
            description="The creation timestamp of the key in RFC3339 format",
        ),
        "expires_at": Attribute(
            AttributeType.STRING,
            computed=True,
            description="The expiry timestamp of the key in RFC3339 format",
        ),
        "description": Attribute(
            AttributeType.STRING,
            optional=True,
            force_new=True,
            description=(
                "A description of the key consisting of alphanumeric characters. "
                'Defaults to `""`.'
            ),
        ),
        "invalid": Attribute(
            AttributeType.BOOL,
            computed=True,
            description=(
                "Indicates whether the key is invalid (e.g. expired, revoked or "
                "has been deleted)."
            ),
        ),
        "recreate_if_invalid": Attribute(
            AttributeType.STRING,
            optional=True,
            validators=(one_of(*RecreateIfInvalid),),
            description=(
                "Determines whether the key should be created again if it becomes "
                "invalid. By default, reusable keys will be recreated, but "
                "single-use keys will not. Possible values: 'always', 'never'."
            ),
        ),
    }

    async def create(self, client: Tailscale, data: ResourceData) -> None:
        expiry, has_expiry = data.get_ok("expiry")
        description, has_description = data.get_ok("description")
        with api_errors("Failed to create key"):
            key = await client.create_auth_key(
                reusable=data.get("reusable"),
                ephemeral=data.get("ephemeral"),
                preauthorized=data.get("preauthorized"),
                tags=list(data.get("tags")),
                expiry_seconds=expiry if has_expiry else None,
                description=description if has_description else None,
            )

        data.id = key.key_id
        data.set("key", key.key)
        data.set("created_at", format_time(key.created))
        data.set("expires_at", format_time(key.expires))
        data.set("invalid", key.invalid)

    async def read(self, client: Tailscale, data: ResourceData) -> None:
        recreate = should_recreate_if_invalid(
            data.get("reusable"), data.get("recreate_if_invalid")
        )
        try:
            key = await client.get_key(data.id)
        except TailscaleNotFoundError:
            if recreate:
                LOGGER.debug("Key %s is gone, it will be created again", data.id)
                data.id = ""
            return
        except TailscaleError as exception:
            raise DiagnosticError(
                diagnostics_error(exception, "Failed to fetch key")
            ) from exception

        # Expired keys are still returned for a while, `invalid` tells them apart.
        if key.invalid and recreate:
            LOGGER.debug("Key %s is invalid, it will be created again", data.id)
            data.id = ""
            return

        data.id = key.key_id
        create = key.capabilities.devices.create
        data.set("reusable", create.reusable)
        data.set("ephemeral", create.ephemeral)
        data.set("created_at", format_time(key.created))
        data.set("expires_at", format_time(key.expires))
        data.set("description", key.description)
        data.set("invalid", key.invalid)

    async def delete(self, client: Tailscale, data: ResourceData) -> None:
        try:
            await client.delete_key(data.id)
        except TailscaleNotFoundError:
            # Used single-use keys may already be gone.
            return
        except TailscaleError as exception:
            raise DiagnosticError(
                diagnostics_error(exception, "Failed to delete key")
            ) from exception

    async def customize_plan(
        self, client: Tailscale, data: ResourceData, plan: Plan
    ) -> None:
        """Replace the key when a new `recreate_if_invalid` applies to it."""
        if not data.has_change("recreate_if_invalid"):
            return
        if not should_recreate_if_invalid(
            data.get("reusable"), data.get("recreate_if_invalid")
        ):
            return
        try:
            key = await client.get_key(data.id)
        except TailscaleNotFoundError:
            plan.force_new("recreate_if_invalid")
            return
        except TailscaleError as exception:
            LOGGER.debug("Could not look up key %s: %s", data.id, exception)
            return
        if key.invalid:
            plan.force_new("recreate_if_invalid")


def _client_schema(kind: str, description_suffix: str) -> dict[str, Attribute]:
    """Attributes shared by OAuth clients and federated identities."""
    return {
        "description": Attribute(
            AttributeType.STRING,
            optional=True,
            validators=(DESCRIPTION_LIMIT,),
            description=(
                f"A description of the {kind} consisting of alphanumeric "
                'characters. Defaults to `""`.'
            ),
        ),
        "scopes": Attribute(
            AttributeType.SET,
            element=AttributeType.STRING,
            required=True,
            description=f"Scopes to grant to the {kind}.",
        ),
        "tags": Attribute(
            AttributeType.SET,
            element=AttributeType.STRING,
            optional=True,
            description=(
                f"A list of tags that access tokens generated for the {kind} will "
                "be able to assign to devices. Mandatory if the scopes include "
                '"devices:core" or "auth_keys".'
            ),
        ),
        "id": Attribute(
            AttributeType.STRING,
            computed=True,
            description=(
                f"The client ID, also known as the key id. {description_suffix}"
            ),
        ),
        "created_at": Attribute(
            AttributeType.STRING,
            computed=True,
            description="The creation timestamp of the key in RFC3339 format",
        ),
        "updated_at": Attribute(
            AttributeType.STRING,
            computed=True,
            description="The updated timestamp of the key in RFC3339 format",
        ),
        "user_id": Attribute(
            AttributeType.STRING,
            computed=True,
            description=(
                f"ID of the user who created this {kind}, empty for ones created "
                "by other trust credentials."
            ),
        ),
    }


def _set_key_metadata(data: ResourceData, key: Key) -> None:
    data.id = key.key_id
    data.set("id", key.key_id)
    data.set("created_at", format_time(key.created))
    data.set("updated_at", format_time(key.updated))
    data.set("user_id", key.user_id)


async def _delete_key(client: Tailscale, key_id: str, message: str) -> None:
    try:
        await client.delete_key(key_id)
    except TailscaleNotFoundError:
        return
    except TailscaleError as exception:
        raise DiagnosticError(diagnostics_error(exception, message)) from exception


class OAuthClientResource(Resource):
    """OAuth client for programmatic access to the Tailscale API."""

    type_name = "tailscale_oauth_client"
    description = (
        "The oauth_client resource allows you to create OAuth clients to "
        "programmatically interact with the Tailscale API."
    )
    importable = True
    schema = {
        **_client_schema(
            "OAuth client",
            "Used with the client secret to generate access tokens.",
        ),
        "key": Attribute(
            AttributeType.STRING,
            computed=True,
            sensitive=True,
            description=(
                "The client secret, also known as the key. Used with the client "
                "ID to generate access tokens."
            ),
        ),
    }

    async def create(self, client: Tailscale, data: ResourceData) -> None:
        with api_errors("Failed to create oauth client"):
            key = await client.create_oauth_client(
                description=data.get("description"),
                scopes=list(data.get("scopes")),
                tags=list(data.get("tags")),
            )
        _set_key_metadata(data, key)
        data.set("key", key.key)
        await self.read(client, data)

    async def read(self, client: Tailscale, data: ResourceData) -> None:
        with api_errors("Failed to fetch key"):
            key = await client.get_key(data.id)
        _set_key_metadata(data, key)
        data.set("description", key.description)
        data.set("scopes", key.scopes)
        data.set("tags", key.tags)

    async def update(self, client: Tailscale, data: ResourceData) -> None:
        with api_errors("Failed to update oauth client"):
            key = await client.update_oauth_client(
                data.id,
                description=data.get("description"),
                scopes=list(data.get("scopes")),
                tags=list(data.get("tags")),
            )
        _set_key_metadata(data, key)
        await self.read(client, data)

    async def delete(self, client: Tailscale, data: ResourceData) -> None:
        await _delete_key(client, data.id, "Failed to delete oauth client")


class FederatedIdentityResource(Resource):
    """Trust relation letting OIDC workloads mint API access tokens."""

    type_name = "tailscale_federated_identity"
    description = (
        "The federated_identity resource allows you to create federated "
        "identities to programmatically interact with the Tailscale API using "
        "workload identity federation."
    )
    importable = True
    schema = {
        **_client_schema(
            "federated identity",
            "Used with an OIDC identity token to generate access tokens.",
        ),
        "audience": Attribute(
            AttributeType.STRING,
            optional=True,
            computed=True,
            description=(
                "The value used when matching against the `aud` claim from an "
                "OIDC identity token. Tailscale generates a secure audience "
                "when left out."
            ),
        ),
        "subject": Attribute(
            AttributeType.STRING,
            required=True,
            description=(
                "The pattern used when matching against the `sub` claim from an "
                "OIDC identity token. Patterns can include `*` characters."
            ),
        ),
        "issuer": Attribute(
            AttributeType.STRING,
            required=True,
            validators=(is_url_with_https,),
            description=(
                "The issuer of the OIDC identity token used in the token "
                "exchange. Must be a valid and publicly reachable https:// URL."
            ),
        ),
        "custom_claim_rules": Attribute(
            AttributeType.MAP,
            element=AttributeType.STRING,
            optional=True,
            description=(
                "A map of claim names to pattern strings used to match against "
                "arbitrary claims in the OIDC identity token."
            ),
        ),
    }

    @staticmethod
    def _identity(data: ResourceData) -> dict[str, object]:
        return {
            "description": data.get("description"),
            "scopes": list(data.get("scopes")),
            "tags": list(data.get("tags")),
            "audience": data.get("audience"),
            "subject": data.get("subject"),
            "issuer": data.get("issuer"),
            "custom_claim_rules": dict(data.get("custom_claim_rules")),
        }

    async def create(self, client: Tailscale, data: ResourceData) -> None:
        with api_errors("Failed to create federated identity"):
            key = await client.create_federated_identity(**self._identity(data))
        _set_key_metadata(data, key)
        data.set("audience", key.audience)
        await self.read(client, data)

    async def read(self, client: Tailscale, data: ResourceData) -> None:
        with api_errors("Failed to fetch key"):
            key = await client.get_key(data.id)
        _set_key_metadata(data, key)
        data.set("description", key.description)
        data.set("scopes", key.scopes)
        data.set("tags", key.tags)
        data.set("audience", key.audience)
        data.set("subject", key.subject)
        data.set("issuer", key.issuer)
        data.set("custom_claim_rules", key.custom_claim_rules)

    async def update(self, client: Tailscale, data: ResourceData) -> None:
        with api_errors("Failed to update federated identity"):
            key = await client.update_federated_identity(
                data.id, **self._identity(data)
            )
        _set_key_metadata(data, key)
        data.set("audience", key.audience)
        await self.read(client, data)

    async def delete(self, client: Tailscale, data: ResourceData) -> None:
        await _delete_key(client, data.id, "Failed to delete federated identity")
