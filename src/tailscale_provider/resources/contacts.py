"""Contact preferences of the tailnet."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..const import ContactType
from ..schema import (
    Attribute,
    AttributeType,
    Resource,
    ResourceData,
    api_errors,
    create_uuid,
)

if TYPE_CHECKING:
    from ..models import Contact
    from ..tailscale import Tailscale

DELETE_DETAIL = (
    "This resource has been successfully destroyed, but values in tailscale "
    "will remain set.\nSee https://tailscale.com/kb/1224/contact-preferences "
    "to learn more."
)


def _contact_block(description: str) -> Attribute:
    return Attribute(
        AttributeType.BLOCK_SET,
        required=True,
        max_items=1,
        min_items=1,
        description=description,
        element={
            "email": Attribute(
                AttributeType.STRING,
                required=True,
                description="Email address to send communications to",
            ),
        },
    )


def _contact_to_blocks(contact: Contact) -> list[dict[str, str]]:
    return [{"email": contact.email}]


class ContactsResource(Resource):
    """Where Tailscale sends account, support and security communications."""

    type_name = "tailscale_contacts"
    description = (
        "The contacts resource allows you to configure contact details for "
        "your Tailscale network."
    )
    importable = True
    schema = {
        ContactType.ACCOUNT.value: _contact_block(
            "Configuration for communications about important changes to your tailnet"
        ),
        ContactType.SUPPORT.value: _contact_block(
            "Configuration for communications about misconfigurations in your tailnet"
        ),
        ContactType.SECURITY.value: _contact_block(
            "Configuration for communications about security issues affecting "
            "your tailnet"
        ),
    }

    @staticmethod
    async def _update_contact(
        client: Tailscale, data: ResourceData, contact_type: str
    ) -> None:
        email = data.get(contact_type)[0]["email"]
        with api_errors("Failed to create contacts"):
            await client.update_contact(contact_type, email=email)

    async def create(self, client: Tailscale, data: ResourceData) -> None:
        for contact_type in ContactType:
            await self._update_contact(client, data, contact_type.value)
        data.id = create_uuid()
        await self.read(client, data)

    async def read(self, client: Tailscale, data: ResourceData) -> None:
        with api_errors("Failed to fetch contacts"):
            contacts = await client.contacts()
        data.set(ContactType.ACCOUNT.value, _contact_to_blocks(contacts.account))
        data.set(ContactType.SUPPORT.value, _contact_to_blocks(contacts.support))
        data.set(ContactType.SECURITY.value, _contact_to_blocks(contacts.security))

    async def update(self, client: Tailscale, data: ResourceData) -> None:
        for contact_type in ContactType:
            if data.has_change(contact_type.value):
                await self._update_contact(client, data, contact_type.value)
        await self.read(client, data)

    async def delete(self, client: Tailscale, data: ResourceData) -> None:
        """Contacts cannot be unset, only forgotten."""
        data.warn(
            "Destroying tailscale_contacts does not unset contact values on tailscale",
            DELETE_DETAIL,
        )
