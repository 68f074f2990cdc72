"""Policy file (ACL) of the tailnet."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ..const import DEFAULT_ACL_ETAG, LOGGER
from ..exceptions import (
    DiagnosticError,
    TailscaleError,
    TailscalePreconditionFailedError,
    ValidationError,
)
from ..policy import PolicyError, format_policy, parse_policy, same_policy
from ..schema import (
    Attribute,
    AttributeType,
    Resource,
    ResourceData,
    api_errors,
    create_uuid,
    diagnostics_error,
)

if TYPE_CHECKING:
    from ..tailscale import Tailscale

OVERWRITE_HINT = (
    "! You seem to be trying to overwrite a non-default ACL with a tailscale_acl "
    "resource.\nBefore doing this, please import your existing ACL into state "
    "using:\n import tailscale_acl acl\n(got error {error!r})"
)


def validate_acl(value: Any) -> None:
    """Check that the policy parses and only uses known fields."""
    try:
        parse_policy(value)
    except PolicyError as exception:
        msg = f"Invalid ACL: {exception}"
        raise ValidationError(msg) from exception


def same_acl_text(old: str, new: str) -> bool:
    """Suppress diffs between two texts of the same policy."""
    try:
        return same_policy(parse_policy(old), parse_policy(new))
    except PolicyError:
        return False


class ACLResource(Resource):
    """Manages the policy file of the tailnet.

    The resource overwrites the whole policy file. Creating it only succeeds
    while the tailnet still uses the default policy, existing policies have
    to be imported first.
    """

    type_name = "tailscale_acl"
    description = (
        "The acl resource allows you to configure a Tailscale ACL. Note that "
        "this resource will completely overwrite existing ACL contents."
    )
    importable = True
    schema = {
        "acl": Attribute(
            AttributeType.STRING,
            required=True,
            validators=(validate_acl,),
            diff_suppress=same_acl_text,
            description=(
                "The policy that defines which devices and users are allowed "
                "to connect in your network, in JSON or HuJSON"
            ),
        ),
    }

    async def create(self, client: Tailscale, data: ResourceData) -> None:
        document = _parse(data.get("acl"))
        try:
            await client.update_policy(document, etag=DEFAULT_ACL_ETAG)
        except TailscalePreconditionFailedError as exception:
            hint = TailscaleError(OVERWRITE_HINT.format(error=str(exception)))
            raise DiagnosticError(
                diagnostics_error(hint, "Failed to set ACL")
            ) from exception
        except TailscaleError as exception:
            raise DiagnosticError(
                diagnostics_error(exception, "Failed to set ACL")
            ) from exception
        data.id = create_uuid()

    async def read(self, client: Tailscale, data: ResourceData) -> None:
        with api_errors("Failed to fetch ACL"):
            policy = await client.policy()

        if current := data.get("acl"):
            if same_policy(_parse(current), policy.document):
                LOGGER.debug("Remote policy matches the stored one, keeping it")
                return
        data.set("acl", format_policy(policy.document))

    async def update(self, client: Tailscale, data: ResourceData) -> None:
        if not data.has_change("acl"):
            return
        document = _parse(data.get("acl"))
        with api_errors("Failed to set ACL"):
            await client.update_policy(document)

    async def delete(self, client: Tailscale, data: ResourceData) -> None:
        """Leave the policy file in place."""


def _parse(text: str) -> dict[str, Any]:
    try:
        return parse_policy(text)
    except PolicyError as exception:
        raise DiagnosticError(
            diagnostics_error(exception, "Failed to unmarshal ACL")
        ) from exception
