"""Managed resources of the Tailscale provider."""

from .acl import ACLResource
from .contacts import ContactsResource
from .device import (
    DeviceAuthorizationResource,
    DeviceKeyResource,
    DeviceSubnetRoutesResource,
    DeviceTagsResource,
)
from .dns import (
    DNSConfigurationResource,
    DNSNameserversResource,
    DNSPreferencesResource,
    DNSSearchPathsResource,
    DNSSplitNameserversResource,
)
from .keys import FederatedIdentityResource, OAuthClientResource, TailnetKeyResource
from .logstream import AWSExternalIDResource, LogstreamConfigurationResource
from .posture import PostureIntegrationResource
from .tailnet_settings import TailnetSettingsResource
from .webhook import WebhookResource

RESOURCES = (
    ACLResource,
    DNSNameserversResource,
    DNSPreferencesResource,
    DNSSearchPathsResource,
    DNSSplitNameserversResource,
    DNSConfigurationResource,
    DeviceSubnetRoutesResource,
    DeviceAuthorizationResource,
    TailnetKeyResource,
    DeviceTagsResource,
    DeviceKeyResource,
    WebhookResource,
    ContactsResource,
    TailnetSettingsResource,
    PostureIntegrationResource,
    LogstreamConfigurationResource,
    AWSExternalIDResource,
    OAuthClientResource,
    FederatedIdentityResource,
)

__all__ = [
    "RESOURCES",
    "ACLResource",
    "AWSExternalIDResource",
    "ContactsResource",
    "DNSConfigurationResource",
    "DNSNameserversResource",
    "DNSPreferencesResource",
    "DNSSearchPathsResource",
    "DNSSplitNameserversResource",
    "DeviceAuthorizationResource",
    "DeviceKeyResource",
    "DeviceSubnetRoutesResource",
    "DeviceTagsResource",
    "FederatedIdentityResource",
    "LogstreamConfigurationResource",
    "OAuthClientResource",
    "PostureIntegrationResource",
    "TailnetKeyResource",
    "TailnetSettingsResource",
    "WebhookResource",
]
