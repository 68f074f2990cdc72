"""Log streaming to SIEM systems."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import orjson

from ..const import (
    CompressionFormat,
    LogstreamDestination,
    LogType,
    S3AuthenticationType,
)
from ..exceptions import DiagnosticError, TailscaleError, TailscaleNotFoundError
from ..schema import (
    Attribute,
    AttributeType,
    Resource,
    ResourceData,
    api_errors,
    diagnostics_error,
    one_of,
)

if TYPE_CHECKING:
    from ..tailscale import Tailscale

# Attribute name to API field name, for everything sent when streaming is set up.
REQUEST_FIELDS = {
    "destination_type": "destinationType",
    "url": "url",
    "user": "user",
    "token": "token",
    "upload_period_minutes": "uploadPeriodMinutes",
    "compression_format": "compressionFormat",
    "s3_bucket": "s3Bucket",
    "s3_region": "s3Region",
    "s3_key_prefix": "s3KeyPrefix",
    "s3_authentication_type": "s3AuthenticationType",
    "s3_access_key_id": "s3AccessKeyId",
    "s3_secret_access_key": "s3SecretAccessKey",
    "s3_role_arn": "s3RoleArn",
    "s3_external_id": "s3ExternalId",
    "gcs_credentials": "gcsCredentials",
    "gcs_bucket": "gcsBucket",
    "gcs_key_prefix": "gcsKeyPrefix",
}

# Secrets are never returned by the API.
WRITE_ONLY = frozenset({"token", "s3_secret_access_key"})


def same_json(old: str, new: str) -> bool:
    """Suppress diffs between two encodings of the same JSON document."""
    try:
        return orjson.loads(old) == orjson.loads(new)
    except orjson.JSONDecodeError:
        return False


def _optional(kind: AttributeType, description: str, **kwargs: Any) -> Attribute:
    return Attribute(kind, optional=True, description=description, **kwargs)


class LogstreamConfigurationResource(Resource):
    """Streaming of one log type, identified by the log type."""

    type_name = "tailscale_logstream_configuration"
    description = (
        "The logstream_configuration resource allows you to configure streaming "
        "configuration or network flow logs to a supported security information "
        "and event management (SIEM) system."
    )
    importable = True
    schema = {
        "log_type": Attribute(
            AttributeType.STRING,
            required=True,
            force_new=True,
            validators=(one_of(*LogType),),
            description=(
                "The type of logs to stream. Valid values are `configuration` "
                "(configuration audit logs) and `network` (network flow logs)."
            ),
        ),
        "destination_type": Attribute(
            AttributeType.STRING,
            required=True,
            validators=(one_of(*LogstreamDestination),),
            description=(
                "The type of SIEM platform to stream to. Valid values are "
                "`axiom`, `cribl`, `datadog`, `elastic`, `gcs`, `panther`, "
                "`splunk`, and `s3`."
            ),
        ),
        "url": _optional(
            AttributeType.STRING,
            "The URL to which log streams are being posted. If destination_type "
            "is 's3' and you want to use the official Amazon S3 endpoint, leave "
            "this empty.",
        ),
        "user": _optional(
            AttributeType.STRING,
            "The username with which log streams to this endpoint are "
            "authenticated. Defaults to 'user' if not set.",
            default="user",
        ),
        "token": _optional(
            AttributeType.STRING,
            "The token/password with which log streams to this endpoint should "
            "be authenticated, required unless destination_type is 's3'.",
            sensitive=True,
        ),
        "upload_period_minutes": _optional(
            AttributeType.INT,
            "An optional number of minutes to wait in between uploading new logs.",
        ),
        "compression_format": _optional(
            AttributeType.STRING,
            "The compression algorithm used for logs. Valid values are `none`, "
            "`zstd` or `gzip`. Defaults to `none`.",
            default=CompressionFormat.NONE.value,
            validators=(one_of(*CompressionFormat),),
        ),
        "s3_bucket": _optional(
            AttributeType.STRING,
            "The S3 bucket name. Required if destination_type is 's3'.",
        ),
        "s3_region": _optional(
            AttributeType.STRING,
            "The region in which the S3 bucket is located. Required if "
            "destination_type is 's3'.",
        ),
        "s3_key_prefix": _optional(
            AttributeType.STRING,
            "An optional S3 key prefix to prepend to the auto-generated S3 key name.",
        ),
        "s3_authentication_type": _optional(
            AttributeType.STRING,
            "The type of authentication to use for S3. Valid values are "
            "`accesskey` and `rolearn`.",
            validators=(one_of(*S3AuthenticationType),),
        ),
        "s3_access_key_id": _optional(
            AttributeType.STRING,
            "The S3 access key ID. Required if s3_authentication_type is 'accesskey'.",
        ),
        "s3_secret_access_key": _optional(
            AttributeType.STRING,
            "The S3 secret access key. Required if s3_authentication_type is "
            "'accesskey'.",
            sensitive=True,
        ),
        "s3_role_arn": _optional(
            AttributeType.STRING,
            "ARN of the AWS IAM role that Tailscale should assume. Required if "
            "s3_authentication_type is 'rolearn'.",
        ),
        "s3_external_id": _optional(
            AttributeType.STRING,
            "The AWS External ID that Tailscale supplies when assuming the role. "
            "It can be obtained via the tailscale_aws_external_id resource.",
        ),
        "gcs_credentials": _optional(
            AttributeType.STRING,
            "The encoded string of JSON that is used to authenticate for "
            "workload identity in GCS",
            diff_suppress=same_json,
        ),
        "gcs_bucket": _optional(AttributeType.STRING, "The name of the GCS bucket"),
        "gcs_scopes": _optional(
            AttributeType.SET,
            "The GCS scopes needed to be able to write in the bucket",
            element=AttributeType.STRING,
        ),
        "gcs_key_prefix": _optional(
            AttributeType.STRING, "The GCS key prefix for the bucket"
        ),
    }

    async def create(self, client: Tailscale, data: ResourceData) -> None:
        log_type = data.get("log_type")
        configuration = {
            field: data.get(name) for name, field in REQUEST_FIELDS.items()
        }
        configuration["gcsScopes"] = list(data.get("gcs_scopes"))
        with api_errors("Failed to create logstream configuration"):
            await client.set_logstream_configuration(log_type, configuration)
        data.id = log_type
        await self.read(client, data)

    update = create

    async def read(self, client: Tailscale, data: ResourceData) -> None:
        try:
            logstream = await client.logstream_configuration(data.id)
        except TailscaleNotFoundError:
            data.id = ""
            return
        except TailscaleError as exception:
            raise DiagnosticError(
                diagnostics_error(exception, "Failed to fetch logstream configuration")
            ) from exception

        remote = logstream.to_dict()
        data.set("log_type", logstream.log_type)
        for name, field in REQUEST_FIELDS.items():
            if name not in WRITE_ONLY:
                data.set(name, remote[field])
        data.set("gcs_scopes", logstream.gcs_scopes)

    async def delete(self, client: Tailscale, data: ResourceData) -> None:
        with api_errors("Failed to delete logstream configuration"):
            await client.delete_logstream_configuration(data.id)


class AWSExternalIDResource(Resource):
    """External ID Tailscale presents when assuming an AWS role for S3 streaming."""

    type_name = "tailscale_aws_external_id"
    description = (
        "The aws_external_id resource allows you to mint an AWS External ID that "
        "Tailscale can use to assume an AWS IAM role for streaming logs to S3."
    )
    schema = {
        "external_id": Attribute(
            AttributeType.STRING,
            computed=True,
            description=(
                "The External ID that Tailscale will supply when assuming your "
                "role. You must reference this in your IAM role's trust policy."
            ),
        ),
        "tailscale_aws_account_id": Attribute(
            AttributeType.STRING,
            computed=True,
            description=(
                "The AWS account from which Tailscale will assume your role. You "
                "must reference this in your IAM role's trust policy."
            ),
        ),
    }

    async def create(self, client: Tailscale, data: ResourceData) -> None:
        with api_errors("Failed to create AWS External ID"):
            external_id = await client.create_aws_external_id(reusable=False)
        data.id = external_id.external_id
        data.set("external_id", external_id.external_id)
        data.set("tailscale_aws_account_id", external_id.tailscale_aws_account_id)

    async def read(self, client: Tailscale, data: ResourceData) -> None:
        """External IDs cannot be looked up, keep what was created."""

    async def delete(self, client: Tailscale, data: ResourceData) -> None:
        """External IDs cannot be deleted."""
