"""Parsing and comparison of tailnet policy files (ACLs).

Policy files are written in HuJSON: JSON with comments and trailing
commas. They are parsed as JSON5, then checked to use nothing but JSON
tokens, comments and trailing commas. The API matches top-level and rule
field names case-insensitively, so ``"ACLs"`` and ``"acls"`` describe the
same policy. Two documents are considered the same policy when they are
equal after both are brought into canonical form.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

import json5
import orjson

from .const import LOGGER

# Canonical spelling of every top-level field the provider understands.
POLICY_FIELDS = {
    name.lower(): name
    for name in (
        "acls",
        "attrConfig",
        "autoApprovers",
        "defaultSrcPosture",
        "derpMap",
        "disableIPv4",
        "grants",
        "groups",
        "hosts",
        "ipsets",
        "nodeAttrs",
        "oneCGNATRoute",
        "postures",
        "randomizeClientPort",
        "ssh",
        "sshTests",
        "tagOwners",
        "tests",
    )
}

# Fields of the rule objects listed in each rule section.
RULE_FIELDS = {
    section: {name.lower(): name for name in names}
    for section, names in {
        "acls": ("action", "proto", "ports", "users", "src", "dst", "srcPosture"),
        "grants": ("src", "dst", "ip", "app", "via", "srcPosture"),
        "nodeAttrs": ("target", "attr", "app", "ipPool"),
        "ssh": (
            "action",
            "src",
            "dst",
            "users",
            "checkPeriod",
            "recorder",
            "enforceRecorder",
            "acceptEnv",
            "srcPosture",
        ),
        "sshTests": ("src", "dst", "accept", "check", "deny"),
        "tests": (
            "src",
            "proto",
            "accept",
            "deny",
            "allow",
            "user",
            "srcPostureAttrs",
        ),
    }.items()
}

UNKNOWN_FIELD_HINT = (
    "This error may be caused by a new policy feature that is not yet "
    "supported by this provider. If you are using a valid policy field, "
    "please raise an issue."
)

_HUJSON_TOKEN = re.compile(
    r"""
    (?P<space>[ \t\r\n]+)
    |(?P<comment>//[^\n]*|/\*.*?\*/)
    |(?P<string>"(?:[^"\\\x00-\x1f]|\\(?:["\\/bfnrt]|u[0-9a-fA-F]{4}))*")
    |(?P<number>-?(?:0|[1-9][0-9]*)(?:\.[0-9]+)?(?:[eE][+-]?[0-9]+)?(?![\w.]))
    |(?P<literal>(?:true|false|null)(?!\w))
    |(?P<punct>[{}\[\]:,])
    """,
    re.VERBOSE | re.DOTALL,
)


class PolicyError(ValueError):
    """The policy document could not be parsed."""


@dataclass
class Policy:
    """Policy file of a tailnet as returned by the API."""

    document: dict[str, Any]
    etag: str | None = None


def parse_policy(text: str) -> dict[str, Any]:
    """Parse a HuJSON policy file, rejecting fields the provider does not know.

    Raises
    ------
        PolicyError: The text is not valid HuJSON, is not an object, or
            uses an unknown top-level or rule field.

    """
    try:
        document = json5.loads(text)
    except ValueError as exception:
        raise PolicyError(str(exception)) from exception
    _check_hujson_syntax(text)

    if not isinstance(document, dict):
        msg = "policy must be a JSON object"
        raise PolicyError(msg)

    for key, value in document.items():
        name = POLICY_FIELDS.get(key.lower())
        if name is None:
            msg = f'unknown field "{key}". ({UNKNOWN_FIELD_HINT})'
            raise PolicyError(msg)
        if name in RULE_FIELDS and value is not None:
            _check_rules(name, value)
    return document


def _check_hujson_syntax(text: str) -> None:
    """Raise PolicyError for JSON5 extensions HuJSON does not allow."""
    position = 0
    while position < len(text):
        match = _HUJSON_TOKEN.match(text, position)
        if match is None:
            msg = f"invalid character {text[position]!r} at offset {position}"
            raise PolicyError(msg)
        position = match.end()


def _check_rules(section: str, rules: Any) -> None:
    if not isinstance(rules, list) or not all(isinstance(r, dict) for r in rules):
        msg = f'"{section}" must be a list of objects'
        raise PolicyError(msg)
    fields = RULE_FIELDS[section]
    for rule in rules:
        for key in rule:
            if key.lower() not in fields:
                msg = f'unknown field "{key}" in "{section}". ({UNKNOWN_FIELD_HINT})'
                raise PolicyError(msg)


def _is_empty(value: Any) -> bool:
    return value is None or value is False or value in ("", [], {})


def _fold_fields(value: Any) -> Any:
    """Lower-case the field names of an object and drop its empty fields."""
    if not isinstance(value, dict):
        return value
    return {
        str(key).lower(): item for key, item in value.items() if not _is_empty(item)
    }


def _fold_derp_map(value: Any) -> Any:
    derp_map = _fold_fields(value)
    if isinstance(derp_map, dict) and isinstance(derp_map.get("regions"), dict):
        regions = {}
        for region_id, region in derp_map["regions"].items():
            region = _fold_fields(region)
            if isinstance(region, dict) and isinstance(region.get("nodes"), list):
                region["nodes"] = [_fold_fields(node) for node in region["nodes"]]
            regions[region_id] = region
        derp_map["regions"] = regions
    return derp_map


def canonicalize(document: dict[str, Any]) -> dict[str, Any]:
    """Return the canonical form used to compare two policy documents.

    Only field names defined by the policy format are folded; user data
    such as group names, CIDRs and capability names keeps its case.
    """
    canonical: dict[str, Any] = {}
    for key, value in document.items():
        name = POLICY_FIELDS.get(key.lower(), key)
        if _is_empty(value):
            continue
        if name in RULE_FIELDS and isinstance(value, list):
            value = [_fold_fields(rule) for rule in value]
        elif name == "autoApprovers":
            value = _fold_fields(value)
        elif name == "derpMap":
            value = _fold_derp_map(value)
        canonical[name] = value
    return canonical


def same_policy(first: dict[str, Any], second: dict[str, Any]) -> bool:
    """Return whether two policy documents describe the same policy."""
    same = canonicalize(first) == canonicalize(second)
    LOGGER.debug("Compared policy documents, equivalent: %s", same)
    return same


def format_policy(document: dict[str, Any], *, indent: bool = True) -> str:
    """Render a policy document as JSON."""
    option = orjson.OPT_INDENT_2 if indent else 0
    return orjson.dumps(document, option=option).decode()
