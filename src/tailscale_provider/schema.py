"""Attribute schemas, resource data and diagnostics of the declarative layer.

Resources and data sources describe their attributes with a mapping of
names to :class:`Attribute`. Lifecycle handlers receive a
:class:`ResourceData` that exposes the desired configuration together with
the state remembered from the previous run, and collects the new state.
"""

from __future__ import annotations

import ipaddress
import re
import uuid
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING, Any, ClassVar

import orjson
from yarl import URL

from .exceptions import (
    DiagnosticError,
    TailscaleAPIError,
    TailscaleError,
    ValidationError,
)

if TYPE_CHECKING:
    from .tailscale import Tailscale

Validator = Callable[[Any], None]
DiffSuppressFunc = Callable[[Any, Any], bool]


class AttributeType(StrEnum):
    """Kinds of values an attribute can hold."""

    STRING = "string"
    BOOL = "bool"
    INT = "int"
    LIST = "list"
    SET = "set"
    MAP = "map"
    BLOCK_LIST = "block_list"
    BLOCK_SET = "block_set"


SCALAR_TYPES = {
    AttributeType.STRING: str,
    AttributeType.BOOL: bool,
    AttributeType.INT: int,
}
COLLECTION_TYPES = {
    AttributeType.LIST,
    AttributeType.SET,
    AttributeType.BLOCK_LIST,
    AttributeType.BLOCK_SET,
}


@dataclass
# pylint: disable-next=too-many-instance-attributes
class Attribute:
    """Schema of one attribute of a resource or data source.

    ``element`` holds the scalar type of list, set and map members, or the
    nested schema of block lists and block sets.
    """

    type: AttributeType
    description: str = ""
    required: bool = False
    optional: bool = False
    computed: bool = False
    default: Any = None
    force_new: bool = False
    sensitive: bool = False
    element: AttributeType | dict[str, Attribute] | None = None
    min_items: int = 0
    max_items: int = 0
    validators: tuple[Validator, ...] = ()
    exactly_one_of: tuple[str, ...] = ()
    diff_suppress: DiffSuppressFunc | None = None

    def zero(self) -> Any:
        """Return the value an unset attribute reads as."""
        if self.default is not None:
            return self.default
        if self.type in COLLECTION_TYPES:
            return []
        if self.type == AttributeType.MAP:
            return {}
        return SCALAR_TYPES[self.type]()

    def with_defaults(self, value: Any) -> Any:
        """Fill in the defaults of nested block attributes left out of a value."""
        if not isinstance(self.element, dict) or not isinstance(value, list | tuple):
            return value
        return [_block_with_defaults(self.element, block) for block in value]

    def equal(self, old: Any, new: Any) -> bool:
        """Compare two values of this attribute the way a plan does."""
        old = self.with_defaults(self.zero() if old is None else old)
        new = self.with_defaults(self.zero() if new is None else new)
        if self.diff_suppress is not None and self.diff_suppress(old, new):
            return True
        if self.type in (AttributeType.SET, AttributeType.BLOCK_SET):
            return sorted(map(_canonical, old)) == sorted(map(_canonical, new))
        return old == new


def _block_with_defaults(schema: dict[str, Attribute], block: Any) -> Any:
    if not isinstance(block, Mapping):
        return block
    filled = dict(block)
    for key, attribute in schema.items():
        value = filled.get(key)
        if value is None:
            if attribute.default is not None:
                filled[key] = attribute.default
        else:
            filled[key] = attribute.with_defaults(value)
    return filled


def _canonical(value: Any) -> bytes:
    return orjson.dumps(value, option=orjson.OPT_SORT_KEYS)


Schema = dict[str, Attribute]


class Severity(StrEnum):
    """Severity of a diagnostic."""

    ERROR = "error"
    WARNING = "warning"


@dataclass
class Diagnostic:
    """A message reported back to the user about a lifecycle operation."""

    severity: Severity
    summary: str
    detail: str = ""
    path: tuple[Any, ...] = ()


def has_error(diagnostics: list[Diagnostic]) -> bool:
    """Return whether any diagnostic is an error."""
    return any(d.severity == Severity.ERROR for d in diagnostics)


def diagnostics_error(
    err: Exception | None, message: str, *args: Any
) -> list[Diagnostic]:
    """Describe a failure, expanding the per-user details of API errors.

    Args:
    ----
        err: The exception that caused the failure, if any.
        message: printf-style summary of what failed.
        args: Arguments for the summary.

    Returns:
    -------
        One error diagnostic for the failure, followed by one for each
        user error reported by the Tailscale API.

    """
    diagnostics = [
        Diagnostic(
            severity=Severity.ERROR,
            summary=message % args if args else message,
            detail=str(err) if err is not None else "",
        )
    ]
    if isinstance(err, TailscaleAPIError):
        diagnostics.extend(
            Diagnostic(
                severity=Severity.ERROR,
                summary=f"user: {details.user}\nerror: {error}",
            )
            for details in err.data
            for error in details.errors
        )
    return diagnostics


def diagnostics_error_with_path(
    err: Exception | None, message: str, path: tuple[Any, ...], *args: Any
) -> list[Diagnostic]:
    """Like :func:`diagnostics_error`, pointing every diagnostic at an attribute."""
    diagnostics = diagnostics_error(err, message, *args)
    for diagnostic in diagnostics:
        diagnostic.path = path
    return diagnostics


class ResourceData:
    """Configuration, prior state and new state of one resource instance.

    Reads go to the values set during this operation first, then to the
    desired configuration (when there is one) and finally to the prior
    state. Unset attributes read as their zero value.
    """

    def __init__(
        self,
        schema: Schema,
        *,
        resource_id: str = "",
        state: Mapping[str, Any] | None = None,
        config: Mapping[str, Any] | None = None,
    ) -> None:
        """Initialize resource data.

        Args:
        ----
            schema: Attributes of the resource.
            resource_id: Identifier remembered from the previous run.
            state: Attributes remembered from the previous run.
            config: Desired attributes, None while reading or deleting.

        """
        self.schema = schema
        self.id = resource_id
        self._state = dict(state or {})
        self._config = (
            {
                key: schema[key].with_defaults(value) if key in schema else value
                for key, value in config.items()
            }
            if config is not None
            else None
        )
        self._new: dict[str, Any] = {}
        self.diagnostics: list[Diagnostic] = []

    def _attribute(self, key: str) -> Attribute:
        try:
            return self.schema[key]
        except KeyError as exception:
            msg = f"unknown attribute {key!r}"
            raise KeyError(msg) from exception

    def get(self, key: str) -> Any:
        """Return the current value of an attribute."""
        attribute = self._attribute(key)
        if key in self._new:
            return self._new[key]
        if self._config is not None:
            value = self._config.get(key)
            if value is None and attribute.computed:
                value = self._state.get(key)
        else:
            value = self._state.get(key)
        return attribute.zero() if value is None else value

    def get_ok(self, key: str) -> tuple[Any, bool]:
        """Return the value of an attribute and whether it is set to non-zero."""
        value = self.get(key)
        return value, bool(value)

    def get_raw(self, key: str) -> Any:
        """Return the configured value, None when left unset."""
        self._attribute(key)
        if self._config is None:
            return None
        return self._config.get(key)

    def get_prior(self, key: str) -> Any:
        """Return the value remembered from the previous run."""
        attribute = self._attribute(key)
        value = self._state.get(key)
        return attribute.zero() if value is None else value

    def set(self, key: str, value: Any) -> None:
        """Record the new value of an attribute."""
        self._attribute(key)
        self._new[key] = value

    def has_change(self, key: str) -> bool:
        """Return whether the desired value differs from the prior state."""
        if self._config is None:
            return False
        attribute = self._attribute(key)
        new = self._config.get(key)
        if new is None and attribute.computed:
            return False
        return not attribute.equal(self._state.get(key), new)

    def has_changes(self, *keys: str) -> bool:
        """Return whether any of the attributes changed."""
        return any(self.has_change(key) for key in keys)

    def warn(self, summary: str, detail: str = "") -> None:
        """Attach a warning to the result of the operation."""
        self.diagnostics.append(
            Diagnostic(severity=Severity.WARNING, summary=summary, detail=detail)
        )

    def state(self) -> dict[str, Any]:
        """Return the complete new state, every attribute present."""
        result: dict[str, Any] = {}
        for key, attribute in self.schema.items():
            value = self.get(key)
            result[key] = attribute.zero() if value is None else value
        return result


def validate_config(
    schema: Schema, config: Mapping[str, Any], path: tuple[Any, ...] = ()
) -> list[Diagnostic]:
    """Check a configuration against a schema.

    Returns
    -------
        An error diagnostic for every problem found.

    """
    diagnostics: list[Diagnostic] = []

    def fail(message: str, where: tuple[Any, ...]) -> None:
        diagnostics.append(
            Diagnostic(severity=Severity.ERROR, summary=message, path=where)
        )

    for key in config:
        if key not in schema:
            fail(f'An argument named "{key}" is not expected here.', (*path, key))

    for key, attribute in schema.items():
        where = (*path, key)
        value = config.get(key)

        if attribute.exactly_one_of and key == attribute.exactly_one_of[0]:
            set_keys = [
                k for k in attribute.exactly_one_of if config.get(k) is not None
            ]
            if len(set_keys) != 1:
                names = ", ".join(f"`{k}`" for k in attribute.exactly_one_of)
                fail(f"exactly one of {names} must be specified", where)

        if value is None:
            if attribute.required:
                fail(
                    f'The argument "{key}" is required, but no definition was found.',
                    where,
                )
            continue
        if attribute.computed and not (attribute.optional or attribute.required):
            fail(f'Value for unconfigurable attribute "{key}" cannot be set.', where)
            continue

        try:
            check_type(attribute, value)
        except ValidationError as exception:
            fail(str(exception), where)
            continue

        if attribute.type in COLLECTION_TYPES:
            if attribute.min_items and len(value) < attribute.min_items:
                fail(f"Attribute requires {attribute.min_items} item minimum", where)
            if attribute.max_items and len(value) > attribute.max_items:
                fail(f"Attribute supports {attribute.max_items} item maximum", where)
            if isinstance(attribute.element, dict):
                for index, block in enumerate(value):
                    diagnostics.extend(
                        validate_config(attribute.element, block, (*where, index))
                    )

        for validator in attribute.validators:
            members = (
                value
                if attribute.type in (AttributeType.LIST, AttributeType.SET)
                else [value]
            )
            for member in members:
                try:
                    validator(member)
                except ValidationError as exception:
                    fail(str(exception), where)

    return diagnostics


def check_type(attribute: Attribute, value: Any) -> None:
    """Raise ValidationError if the value does not fit the attribute type."""
    expected: type | tuple[type, ...]
    if attribute.type in SCALAR_TYPES:
        expected = SCALAR_TYPES[attribute.type]
        # bool is an int subclass.
        if isinstance(value, bool) and expected is int:
            msg = f"expected {attribute.type}, got bool"
            raise ValidationError(msg)
        if not isinstance(value, expected):
            msg = f"expected {attribute.type}, got {type(value).__name__}"
            raise ValidationError(msg)
        return

    if attribute.type == AttributeType.MAP:
        if not isinstance(value, dict):
            msg = f"expected map, got {type(value).__name__}"
            raise ValidationError(msg)
        members = list(value.values())
    else:
        if not isinstance(value, list | tuple):
            msg = f"expected {attribute.type}, got {type(value).__name__}"
            raise ValidationError(msg)
        members = list(value)

    if isinstance(attribute.element, dict):
        for member in members:
            if not isinstance(member, dict):
                msg = f"expected block, got {type(member).__name__}"
                raise ValidationError(msg)
    elif attribute.element is not None:
        for member in members:
            check_type(Attribute(type=attribute.element), member)


def one_of(*values: str) -> Validator:
    """Validate that a string is one of the allowed values."""

    def validate(value: Any) -> None:
        if value not in values:
            allowed = ", ".join(repr(str(v)) for v in values)
            msg = f"expected to be one of [{allowed}], got {value!r}"
            raise ValidationError(msg)

    return validate


def int_between(low: int, high: int) -> Validator:
    """Validate that an integer lies within an inclusive range."""

    def validate(value: Any) -> None:
        if not low <= value <= high:
            msg = f"expected to be in the range ({low} - {high}), got {value}"
            raise ValidationError(msg)

    return validate


def max_length(length: int, message: str = "") -> Validator:
    """Validate that a string is at most ``length`` characters long."""

    def validate(value: Any) -> None:
        if len(value) > length:
            msg = message or (
                f"expected length to be in the range (0 - {length}), got {value!r}"
            )
            raise ValidationError(msg)

    return validate


def is_cidr(value: Any) -> None:
    """Validate that a string is an IPv4 or IPv6 network in CIDR notation."""
    try:
        ipaddress.ip_network(value, strict=False)
    except ValueError as exception:
        msg = f"expected a valid CIDR network, got {value!r}: {exception}"
        raise ValidationError(msg) from exception
    if "/" not in value:
        msg = f"expected a valid CIDR network, got {value!r}"
        raise ValidationError(msg)


def is_url_with_scheme(*schemes: str) -> Validator:
    """Validate that a string is an absolute URL with one of the schemes."""

    def validate(value: Any) -> None:
        url = URL(value)
        if url.scheme not in schemes or not url.host:
            allowed = ", ".join(schemes)
            msg = f"expected to have a url with schema of: {allowed}, got {value}"
            raise ValidationError(msg)

    return validate


is_url_with_http_or_https = is_url_with_scheme("http", "https")
is_url_with_https = is_url_with_scheme("https")


_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")


def parse_duration(value: str) -> float:
    """Parse a duration such as ``"1m30s"`` or ``"1.5h"`` into seconds.

    Raises
    ------
        ValueError: The value is not a valid duration.

    """
    text = value.strip()
    sign = 1.0
    if text[:1] in "+-" and text:
        sign = -1.0 if text[0] == "-" else 1.0
        text = text[1:]
    if text == "0":
        return 0.0
    if not text:
        msg = f"invalid duration {value!r}"
        raise ValueError(msg)

    seconds = 0.0
    position = 0
    while position < len(text):
        match = _DURATION_PART.match(text, position)
        if match is None:
            msg = f"invalid duration {value!r}"
            raise ValueError(msg)
        seconds += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        position = match.end()
    return sign * seconds


def duration_greater_than(minimum: float) -> Validator:
    """Validate that a string is a duration longer than ``minimum`` seconds."""

    def validate(value: Any) -> None:
        try:
            seconds = parse_duration(value)
        except ValueError as exception:
            raise ValidationError(str(exception)) from exception
        if seconds <= minimum:
            msg = f"duration must be greater than {minimum:g}s, got {value}"
            raise ValidationError(msg)

    return validate


@contextmanager
def api_errors(message: str, *args: Any) -> Iterator[None]:
    """Turn Tailscale errors raised in the block into a DiagnosticError."""
    try:
        yield
    except TailscaleError as exception:
        diagnostics = diagnostics_error(exception, message, *args)
        raise DiagnosticError(diagnostics) from exception


def format_time(value: datetime | None) -> str:
    """Format a timestamp as RFC 3339, unset timestamps as an empty string."""
    if value is None:
        return ""
    return value.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


def create_uuid() -> str:
    """Identifier for resources the API has no identifier for."""
    return str(uuid.uuid4())


@dataclass
class Plan:
    """Changes needed to bring a resource to its desired configuration."""

    create: bool = False
    changes: dict[str, tuple[Any, Any]] = field(default_factory=dict)
    requires_replace: list[str] = field(default_factory=list)

    def force_new(self, key: str) -> None:
        """Require replacing the resource because of the given attribute."""
        if key not in self.requires_replace:
            self.requires_replace.append(key)

    @property
    def action(self) -> str:
        """One of create, replace, update or noop."""
        if self.create:
            return "create"
        if self.requires_replace:
            return "replace"
        if self.changes:
            return "update"
        return "noop"


class Resource:
    """Managed resource: an attribute schema plus lifecycle handlers.

    Handlers receive the API client and the resource data. They report
    failures by raising DiagnosticError and warnings through
    :meth:`ResourceData.warn`. A read that clears the id reports the
    resource as gone.
    """

    type_name: ClassVar[str] = ""
    description: ClassVar[str] = ""
    schema: ClassVar[Schema] = {}
    importable: ClassVar[bool] = False

    async def create(self, client: Tailscale, data: ResourceData) -> None:
        """Create the remote object."""
        raise NotImplementedError

    async def read(self, client: Tailscale, data: ResourceData) -> None:
        """Refresh the state from the remote object."""
        raise NotImplementedError

    async def update(self, client: Tailscale, data: ResourceData) -> None:
        """Apply in-place changes; nothing to do by default."""

    async def delete(self, client: Tailscale, data: ResourceData) -> None:
        """Delete the remote object."""
        raise NotImplementedError

    async def customize_plan(
        self, client: Tailscale, data: ResourceData, plan: Plan
    ) -> None:
        """Adjust a computed plan; most resources leave it as it is."""

    async def import_state(self, client: Tailscale, data: ResourceData) -> None:
        """Prepare the data of an imported object before it is read."""


class DataSource:
    """Read-only view on remote objects."""

    type_name: ClassVar[str] = ""
    description: ClassVar[str] = ""
    schema: ClassVar[Schema] = {}

    async def read(self, client: Tailscale, data: ResourceData) -> None:
        """Look up the remote objects and fill in the computed attributes."""
        raise NotImplementedError
