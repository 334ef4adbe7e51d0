"""Secret reference resolution for tokens and database passwords.

A configured value may be a literal or a reference into a cloud secret
store. References are resolved once, when configuration is loaded.
"""

from __future__ import annotations

import json
import logging
import os

logger = logging.getLogger("catalog_sync.secrets")

_AWS_PREFIX = "aws-secret://"
_GCP_PREFIX = "gcp-secret://"

_METADATA_PROJECT_URL = (
    "http://metadata.google.internal/computeMetadata/v1/project/project-id"
)


def resolve_secret(value: str) -> str:
    """Resolve a secret reference to its plaintext value.

    Supported formats:
      - "aws-secret://okta-token"          -> AWS Secrets Manager
      - "aws-secret://catalog-sync#token"  -> AWS Secrets Manager (JSON key)
      - "gcp-secret://okta-token"          -> GCP Secret Manager, latest version
      - "gcp-secret://projects/p/secrets/s/versions/3"
      - anything else                      -> returned unchanged
    """
    if value.startswith(_AWS_PREFIX):
        return _resolve_aws_secret(value[len(_AWS_PREFIX):])
    if value.startswith(_GCP_PREFIX):
        return _resolve_gcp_secret(value[len(_GCP_PREFIX):])
    return value


def _resolve_aws_secret(ref: str) -> str:
    import boto3

    secret_name, _, json_key = ref.partition("#")
    client = boto3.client(
        "secretsmanager", region_name=os.environ.get("AWS_REGION", "us-east-1")
    )
    secret_string = client.get_secret_value(SecretId=secret_name)["SecretString"]
    logger.debug("Resolved AWS secret %s", secret_name)

    if json_key:
        return str(json.loads(secret_string)[json_key])
    return secret_string


def _resolve_gcp_secret(ref: str) -> str:
    from google.cloud import secretmanager

    if ref.startswith("projects/"):
        name = ref
    else:
        project = os.environ.get("GCP_PROJECT_ID") or _gcp_project_from_metadata()
        name = f"projects/{project}/secrets/{ref}/versions/latest"

    client = secretmanager.SecretManagerServiceClient()
    response = client.access_secret_version(request={"name": name})
    logger.debug("Resolved GCP secret %s", name)
    return response.payload.data.decode("UTF-8")


def _gcp_project_from_metadata() -> str:
    """Project id from the metadata server (Cloud Run / GCE only)."""
    import requests

    try:
        resp = requests.get(
            _METADATA_PROJECT_URL,
            headers={"Metadata-Flavor": "Google"},
            timeout=2,
        )
        resp.raise_for_status()
    except requests.RequestException as exc:
        raise RuntimeError(
            "Cannot determine GCP project ID. Set GCP_PROJECT_ID env var."
        ) from exc
    return resp.text


def resolve_database_url() -> str:
    """DATABASE_URL if set, otherwise assembled from PG_* variables."""
    url = os.environ.get("DATABASE_URL", "")
    if url:
        return resolve_secret(url)

    host = os.environ.get("PG_HOST", "localhost")
    port = os.environ.get("PG_PORT", "5432")
    user = os.environ.get("PG_USER", "catalog")
    password = resolve_secret(os.environ.get("PG_PASSWORD", "localdev-change-me"))
    database = os.environ.get("PG_DATABASE", "catalog")

    return f"postgresql://{user}:{password}@{host}:{port}/{database}"
