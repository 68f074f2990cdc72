"""The Tailscale provider: configuration, registry and lifecycle driver."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Self

import pydantic
from aiohttp.client import ClientSession

from .const import LOGGER
from .data_sources import DATA_SOURCES
from .exceptions import DiagnosticError, ProviderConfigurationError, ProviderError
from .resources import RESOURCES
from .schema import (
    Diagnostic,
    Plan,
    ResourceData,
    Severity,
    has_error,
    validate_config,
)
from .settings import ProviderSettings
from .tailscale import Tailscale

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Mapping

    from .schema import DataSource, Resource
    from .storage import TokenStorage


@dataclass
class ResourceState:
    """Outcome of a lifecycle operation.

    An empty ``id`` after a read means the remote object is gone and the
    resource should be dropped from state.
    """

    id: str
    attributes: dict[str, Any] = field(default_factory=dict)
    diagnostics: list[Diagnostic] = field(default_factory=list)

    @property
    def removed(self) -> bool:
        """Whether the resource no longer exists."""
        return not self.id


class Provider:
    """Exposes the Tailscale API as declarative resources and data sources."""

    def __init__(
        self,
        *,
        session: ClientSession | None = None,
        token_storage: TokenStorage | None = None,
    ) -> None:
        """Initialize the provider.

        Args:
        ----
            session: Session shared by all API requests, one is created
                when left out.
            token_storage: Storage for OAuth access tokens.

        """
        self.session = session
        self.token_storage = token_storage
        self.client: Tailscale | None = None
        self.settings: ProviderSettings | None = None
        self.resources: dict[str, Resource] = {
            resource.type_name: resource() for resource in RESOURCES
        }
        self.data_sources: dict[str, DataSource] = {
            data_source.type_name: data_source() for data_source in DATA_SOURCES
        }

    def configure(self, **config: Any) -> Tailscale:
        """Validate the provider configuration and create the API client.

        Args:
        ----
            config: Provider block values; unset values are read from the
                environment.

        Returns:
        -------
            The configured Tailscale API client.

        Raises:
        ------
            ProviderConfigurationError: The configuration is invalid.

        """
        try:
            settings = ProviderSettings(**config)
        except pydantic.ValidationError as exception:
            messages = "; ".join(str(error["msg"]) for error in exception.errors())
            raise ProviderConfigurationError(messages) from exception
        settings.check_credentials()

        kwargs: dict[str, Any] = {
            "tailnet": settings.tailnet,
            "base_url": settings.base_url,
            "user_agent": settings.effective_user_agent,
            "request_timeout": settings.request_timeout,
            "session": self.session,
        }
        if self.token_storage is not None:
            kwargs["token_storage"] = self.token_storage
        if settings.uses_oauth:
            kwargs["oauth_client_id"] = settings.oauth_client_id
            secret = settings.oauth_client_secret.get_secret_value()
            kwargs["oauth_client_secret"] = secret
            kwargs["oauth_scopes"] = settings.scopes
        else:
            kwargs["api_key"] = settings.api_key.get_secret_value()

        LOGGER.debug(
            "Configured provider for tailnet %s using %s",
            settings.tailnet,
            "OAuth client credentials" if settings.uses_oauth else "an API key",
        )
        self.settings = settings
        self.client = Tailscale(**kwargs)
        return self.client

    def resource(self, type_name: str) -> Resource:
        """Look up a resource type."""
        try:
            return self.resources[type_name]
        except KeyError as exception:
            msg = f"unknown resource type {type_name!r}"
            raise ProviderError(msg) from exception

    def data_source(self, type_name: str) -> DataSource:
        """Look up a data source type."""
        try:
            return self.data_sources[type_name]
        except KeyError as exception:
            msg = f"unknown data source type {type_name!r}"
            raise ProviderError(msg) from exception

    def validate(self, type_name: str, config: Mapping[str, Any]) -> list[Diagnostic]:
        """Validate the configuration of a resource or data source."""
        if type_name in self.resources:
            schema = self.resources[type_name].schema
        else:
            schema = self.data_source(type_name).schema
        return validate_config(schema, config)

    async def plan(
        self,
        type_name: str,
        config: Mapping[str, Any],
        *,
        resource_id: str = "",
        state: Mapping[str, Any] | None = None,
    ) -> Plan:
        """Compute the changes needed to reach the desired configuration."""
        resource = self.resource(type_name)
        _raise_on_error(validate_config(resource.schema, config))

        if not resource_id:
            changes = {
                key: (None, value)
                for key, value in config.items()
                if value is not None
            }
            return Plan(create=True, changes=changes)

        data = ResourceData(
            resource.schema, resource_id=resource_id, state=state, config=config
        )
        plan = Plan()
        for key, attribute in resource.schema.items():
            if data.has_change(key):
                plan.changes[key] = (data.get_prior(key), data.get(key))
                if attribute.force_new:
                    plan.force_new(key)

        await resource.customize_plan(self._client(), data, plan)
        LOGGER.debug("Planned %s for %s %s", plan.action, type_name, resource_id)
        return plan

    async def create(self, type_name: str, config: Mapping[str, Any]) -> ResourceState:
        """Create a resource."""
        resource = self.resource(type_name)
        _raise_on_error(validate_config(resource.schema, config))
        data = ResourceData(resource.schema, config=config)
        await self._run(resource.create, data, "create", type_name)
        return _result(data)

    async def read(
        self, type_name: str, resource_id: str, state: Mapping[str, Any]
    ) -> ResourceState:
        """Refresh the state of a resource."""
        resource = self.resource(type_name)
        data = ResourceData(resource.schema, resource_id=resource_id, state=state)
        await self._run(resource.read, data, "read", type_name)
        return _result(data)

    async def update(
        self,
        type_name: str,
        resource_id: str,
        state: Mapping[str, Any],
        config: Mapping[str, Any],
    ) -> ResourceState:
        """Update a resource in place."""
        resource = self.resource(type_name)
        _raise_on_error(validate_config(resource.schema, config))
        data = ResourceData(
            resource.schema, resource_id=resource_id, state=state, config=config
        )
        await self._run(resource.update, data, "update", type_name)
        return _result(data)

    async def delete(
        self, type_name: str, resource_id: str, state: Mapping[str, Any]
    ) -> ResourceState:
        """Delete a resource; the returned state carries warnings only."""
        resource = self.resource(type_name)
        data = ResourceData(resource.schema, resource_id=resource_id, state=state)
        await self._run(resource.delete, data, "delete", type_name)
        return ResourceState(id="", diagnostics=data.diagnostics)

    async def apply(
        self,
        type_name: str,
        config: Mapping[str, Any],
        *,
        resource_id: str = "",
        state: Mapping[str, Any] | None = None,
    ) -> ResourceState:
        """Plan and carry out whatever brings the resource to its configuration."""
        plan = await self.plan(
            type_name, config, resource_id=resource_id, state=state
        )
        match plan.action:
            case "create":
                return await self.create(type_name, config)
            case "replace":
                deleted = await self.delete(type_name, resource_id, state or {})
                created = await self.create(type_name, config)
                created.diagnostics[0:0] = deleted.diagnostics
                return created
            case "update":
                return await self.update(type_name, resource_id, state or {}, config)
        return ResourceState(id=resource_id, attributes=dict(state or {}))

    async def import_resource(self, type_name: str, resource_id: str) -> ResourceState:
        """Bring an existing remote object under management."""
        resource = self.resource(type_name)
        if not resource.importable:
            msg = f"resource {type_name} does not support import"
            raise ProviderError(msg)

        data = ResourceData(resource.schema, resource_id=resource_id)
        await self._run(resource.import_state, data, "import", type_name)
        await self._run(resource.read, data, "read", type_name)
        if not data.id:
            msg = f"Cannot import non-existent remote object {type_name} {resource_id}"
            raise DiagnosticError([Diagnostic(severity=Severity.ERROR, summary=msg)])
        return _result(data)

    async def read_data_source(
        self, type_name: str, config: Mapping[str, Any]
    ) -> ResourceState:
        """Read a data source."""
        data_source = self.data_source(type_name)
        _raise_on_error(validate_config(data_source.schema, config))
        data = ResourceData(data_source.schema, config=config)
        await self._run(data_source.read, data, "read", type_name)
        return _result(data)

    def _client(self) -> Tailscale:
        if self.client is None:
            msg = "provider is not configured"
            raise ProviderError(msg)
        return self.client

    async def _run(
        self,
        handler: Callable[[Tailscale, ResourceData], Awaitable[None]],
        data: ResourceData,
        action: str,
        type_name: str,
    ) -> None:
        """Run a lifecycle handler, logging what it reports."""
        client = self._client()
        LOGGER.debug("Running %s of %s %s", action, type_name, data.id or "(new)")
        try:
            await handler(client, data)
        except DiagnosticError as exception:
            for diagnostic in exception.diagnostics:
                LOGGER.debug("%s %s failed: %s", type_name, action, diagnostic.summary)
            exception.diagnostics[0:0] = data.diagnostics
            raise
        for diagnostic in data.diagnostics:
            if diagnostic.severity == Severity.WARNING:
                LOGGER.warning("%s: %s", type_name, diagnostic.summary)

    async def close(self) -> None:
        """Close the API client."""
        if self.client is not None:
            await self.client.close()

    async def __aenter__(self) -> Self:
        """Async enter.

        Returns
        -------
            The Provider object.

        """
        return self

    async def __aexit__(self, *_exc_info: object) -> None:
        """Async exit.

        Args:
        ----
            _exc_info: Exec type.

        """
        await self.close()


def _raise_on_error(diagnostics: list[Diagnostic]) -> None:
    if has_error(diagnostics):
        raise DiagnosticError(diagnostics)


def _result(data: ResourceData) -> ResourceState:
    if not data.id:
        return ResourceState(id="", diagnostics=data.diagnostics)
    return ResourceState(
        id=data.id, attributes=data.state(), diagnostics=data.diagnostics
    )

