"""Secret-manager references in configuration values.

A config value such as AUTH0_CLIENT_SECRET may hold a reference instead of
the plaintext:

  - "aws-secret://name"               -> AWS Secrets Manager, whole SecretString
  - "aws-secret://name#key"           -> AWS Secrets Manager, one key of a JSON secret
  - "gcp-secret://NAME"               -> GCP Secret Manager, latest version
  - "gcp-secret://projects/P/secrets/NAME/versions/V"
  - anything else                     -> used as-is
"""

from __future__ import annotations

import json
import logging
import os

logger = logging.getLogger("ingestion.secrets")

_AWS_PREFIX = "aws-secret://"
_GCP_PREFIX = "gcp-secret://"
_METADATA_PROJECT_URL = (
    "http://metadata.google.internal/computeMetadata/v1/project/project-id"
)


def resolve_secret(value: str) -> str:
    """Return the plaintext behind ``value``, fetching it if it is a reference."""
    if value.startswith(_AWS_PREFIX):
        logger.debug("Resolving secret from AWS Secrets Manager")
        return _aws_secret(value[len(_AWS_PREFIX):])
    if value.startswith(_GCP_PREFIX):
        logger.debug("Resolving secret from GCP Secret Manager")
        return _gcp_secret(value[len(_GCP_PREFIX):])
    return value


def _aws_secret(ref: str) -> str:
    import boto3

    secret_id, _, json_key = ref.partition("#")
    client = boto3.client(
        "secretsmanager", region_name=os.environ.get("AWS_REGION", "us-east-1")
    )
    secret_string = client.get_secret_value(SecretId=secret_id)["SecretString"]
    if json_key:
        return str(json.loads(secret_string)[json_key])
    return secret_string


def _gcp_secret(ref: str) -> str:
    from google.cloud import secretmanager

    if ref.startswith("projects/"):
        name = ref
    else:
        project = os.environ.get("GCP_PROJECT_ID") or _gcp_metadata_project()
        name = f"projects/{project}/secrets/{ref}/versions/latest"

    client = secretmanager.SecretManagerServiceClient()
    response = client.access_secret_version(request={"name": name})
    return response.payload.data.decode("UTF-8")


def _gcp_metadata_project() -> str:
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
    """DATABASE_URL, else a URL assembled from PG_*; empty when neither is set."""
    url = os.environ.get("DATABASE_URL", "")
    if url:
        return resolve_secret(url)

    host = os.environ.get("PG_HOST", "")
    if not host:
        return ""

    port = os.environ.get("PG_PORT", "5432")
    user = os.environ.get("PG_USER", "auth0_ingest")
    password = resolve_secret(os.environ.get("PG_PASSWORD", ""))
    database = os.environ.get("PG_DATABASE", "identity_graph")
    return f"postgresql://{user}:{password}@{host}:{port}/{database}"
