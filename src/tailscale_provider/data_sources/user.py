"""Data sources describing users of the tailnet."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ..const import UserRole, UserType
from ..exceptions import DiagnosticError
from ..schema import (
    Attribute,
    AttributeType,
    DataSource,
    Diagnostic,
    ResourceData,
    Schema,
    Severity,
    api_errors,
    create_uuid,
    format_time,
    one_of,
)

if TYPE_CHECKING:
    from ..models import User
    from ..tailscale import Tailscale

USER_ATTRIBUTES: Schema = {
    "display_name": Attribute(
        AttributeType.STRING, computed=True, description="The name of the user."
    ),
    "profile_pic_url": Attribute(
        AttributeType.STRING,
        computed=True,
        description="The profile pic URL for the user.",
    ),
    "tailnet_id": Attribute(
        AttributeType.STRING,
        computed=True,
        description="The tailnet that owns the user.",
    ),
    "created": Attribute(
        AttributeType.STRING,
        computed=True,
        description="The time the user joined their tailnet.",
    ),
    "type": Attribute(
        AttributeType.STRING,
        computed=True,
        description=(
            "The type of relation this user has to the tailnet associated with "
            "the request."
        ),
    ),
    "role": Attribute(
        AttributeType.STRING, computed=True, description="The role of the user."
    ),
    "status": Attribute(
        AttributeType.STRING, computed=True, description="The status of the user."
    ),
    "device_count": Attribute(
        AttributeType.INT,
        computed=True,
        description="Number of devices the user owns.",
    ),
    "last_seen": Attribute(
        AttributeType.STRING,
        computed=True,
        description=(
            "The later of either: a) The last time any of the user's nodes were "
            "connected to the network or b) The last time the user authenticated "
            "to any tailscale service, including the admin panel."
        ),
    ),
    "currently_connected": Attribute(
        AttributeType.BOOL,
        computed=True,
        description=(
            "true when the user has a node currently connected to the control "
            "server."
        ),
    ),
}


def user_to_state(user: User) -> dict[str, Any]:
    """Flatten a user into data source attributes."""
    return {
        "id": user.user_id,
        "display_name": user.display_name,
        "login_name": user.login_name,
        "profile_pic_url": user.profile_pic_url,
        "tailnet_id": user.tailnet_id,
        "created": format_time(user.created),
        "type": user.type,
        "role": user.role,
        "status": user.status,
        "device_count": user.device_count,
        "last_seen": format_time(user.last_seen),
        "currently_connected": user.currently_connected,
    }


class UserDataSource(DataSource):
    """A single user, looked up by id or login name."""

    type_name = "tailscale_user"
    description = "The user data source describes a single user in a tailnet"
    schema = {
        **USER_ATTRIBUTES,
        "id": Attribute(
            AttributeType.STRING,
            optional=True,
            exactly_one_of=("id", "login_name"),
            description="The unique identifier for the user.",
        ),
        "login_name": Attribute(
            AttributeType.STRING,
            optional=True,
            exactly_one_of=("id", "login_name"),
            description="The emailish login name of the user.",
        ),
    }

    async def read(self, client: Tailscale, data: ResourceData) -> None:
        if user_id := data.get("id"):
            with api_errors("Failed to fetch user with id %s", user_id):
                user = await client.user(user_id)
        else:
            login_name = data.get("login_name")
            with api_errors("Failed to fetch users"):
                users = await client.users()
            user = next((u for u in users if u.login_name == login_name), None)
            if user is None:
                msg = f"Could not find user with login name {login_name}"
                raise DiagnosticError(
                    [Diagnostic(severity=Severity.ERROR, summary=msg)]
                )

        data.id = user.user_id
        for key, value in user_to_state(user).items():
            data.set(key, value)


class UsersDataSource(DataSource):
    """Users of the tailnet, optionally filtered by type and role."""

    type_name = "tailscale_users"
    description = "The users data source describes a list of users in a tailnet"
    schema = {
        "type": Attribute(
            AttributeType.STRING,
            optional=True,
            validators=(one_of(*UserType),),
            description=(
                "Filter the results to only include users of a specific type. "
                "Valid values are `member` or `shared`."
            ),
        ),
        "role": Attribute(
            AttributeType.STRING,
            optional=True,
            validators=(one_of(*UserRole),),
            description=(
                "Filter the results to only include users with a specific role. "
                "Valid values are `owner`, `member`, `admin`, `it-admin`, "
                "`network-admin`, `billing-admin`, and `auditor`."
            ),
        ),
        "users": Attribute(
            AttributeType.BLOCK_LIST,
            computed=True,
            description="The list of users in the tailnet",
            element={
                **USER_ATTRIBUTES,
                "id": Attribute(
                    AttributeType.STRING,
                    computed=True,
                    description="The unique identifier for the user.",
                ),
                "login_name": Attribute(
                    AttributeType.STRING,
                    computed=True,
                    description="The emailish login name of the user.",
                ),
            },
        ),
    }

    async def read(self, client: Tailscale, data: ResourceData) -> None:
        with api_errors("Failed to fetch users"):
            users = await client.users(
                user_type=data.get("type") or None, role=data.get("role") or None
            )
        data.set("users", [user_to_state(user) for user in users])
        data.id = create_uuid()
