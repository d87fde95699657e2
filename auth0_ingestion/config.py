"""Configuration via environment variables with cloud-native secret support.

Supports:
  - Environment variables (local dev)
  - .env files loaded by python-dotenv
  - AWS Secrets Manager (aws-secret://name#key) for the client secret and DB password
  - GCP Secret Manager (gcp-secret://name)
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field, replace
from typing import Optional

from dotenv import load_dotenv

from auth0_ingestion.errors import ConfigurationFault, IntegrationValidationError
from auth0_ingestion.pagination import (
    DEFAULT_ALPHABET,
    DEFAULT_CEILING,
    DEFAULT_MAX_DEPTH,
    MAX_PAGE_SIZE,
    RESULT_WINDOW,
    check_settings,
)
from auth0_ingestion.secrets import resolve_database_url, resolve_secret

_SCHEME = re.compile(r"^https?://")


@dataclass(frozen=True)
class DatabaseConfig:
    url: str
    min_connections: int = 1
    max_connections: int = 4


@dataclass(frozen=True)
class Auth0Config:
    client_id: str
    client_secret: str
    domain: str  # tenant.region.auth0.com, no scheme
    audience: str  # https://tenant.region.auth0.com/api/v2/


@dataclass(frozen=True)
class PaginationConfig:
    max_depth: int = DEFAULT_MAX_DEPTH
    ceiling: int = DEFAULT_CEILING
    page_size: int = MAX_PAGE_SIZE
    alphabet: str = DEFAULT_ALPHABET


@dataclass(frozen=True)
class SchedulerConfig:
    auth0_interval_min: int = 60
    misfire_grace_time: int = 300
    max_retries: int = 3


@dataclass(frozen=True)
class IngestionConfig:
    instance_id: str
    auth0: Auth0Config
    database: Optional[DatabaseConfig] = None  # None = dry run, nothing persisted
    pagination: PaginationConfig = field(default_factory=PaginationConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    batch_size: int = 500


def normalize_auth0_config(auth0: Auth0Config) -> Auth0Config:
    """Check required fields and coerce domain/audience into the shapes Auth0 expects."""
    if not (auth0.client_id and auth0.client_secret and auth0.domain and auth0.audience):
        raise IntegrationValidationError(
            "Config requires all of {clientId, clientSecret, domain, audience}"
        )

    # domain must not carry a scheme
    domain = _SCHEME.sub("", auth0.domain).rstrip("/")

    audience = auth0.audience
    if not _SCHEME.match(audience):
        audience = "https://" + audience
    if "auth0.com" not in audience:
        raise IntegrationValidationError(
            "Problem with config {audience}. Should be a subdomain of auth0.com."
        )
    if not audience.endswith("/"):
        audience += "/"

    return replace(auth0, domain=domain, audience=audience)


def load_config() -> IngestionConfig:
    """Load configuration from environment variables.

    DATABASE_URL (or PG_*) is optional; without it the job runs dry and only
    logs what it collected. The client secret may be a secret-manager reference.
    """
    load_dotenv()

    instance_id = os.environ.get("INSTANCE_ID", "")
    if not instance_id:
        raise ValueError("INSTANCE_ID environment variable is required")

    auth0 = Auth0Config(
        client_id=os.environ.get("AUTH0_CLIENT_ID", ""),
        client_secret=resolve_secret(os.environ.get("AUTH0_CLIENT_SECRET", "")),
        domain=os.environ.get("AUTH0_DOMAIN", ""),
        audience=os.environ.get("AUTH0_AUDIENCE", ""),
    )

    database = None
    db_url = resolve_database_url()
    if db_url:
        database = DatabaseConfig(
            url=db_url,
            min_connections=int(os.environ.get("DB_MIN_CONNECTIONS", "1")),
            max_connections=int(os.environ.get("DB_MAX_CONNECTIONS", "4")),
        )

    pagination = PaginationConfig(
        max_depth=int(os.environ.get("AUTH0_MAX_DEPTH", str(DEFAULT_MAX_DEPTH))),
        ceiling=int(os.environ.get("AUTH0_USER_CEILING", str(DEFAULT_CEILING))),
        page_size=int(os.environ.get("AUTH0_PAGE_SIZE", str(MAX_PAGE_SIZE))),
        alphabet=os.environ.get("AUTH0_ID_ALPHABET", DEFAULT_ALPHABET),
    )
    check_settings(
        ceiling=pagination.ceiling,
        page_size=pagination.page_size,
        alphabet=pagination.alphabet,
    )
    if pagination.max_depth < 0:
        raise ConfigurationFault(
            f"AUTH0_MAX_DEPTH must not be negative, got {pagination.max_depth}",
            max_depth=pagination.max_depth,
        )
    if pagination.ceiling > RESULT_WINDOW:
        raise ConfigurationFault(
            f"AUTH0_USER_CEILING must not exceed the {RESULT_WINDOW}-result search window, "
            f"got {pagination.ceiling}",
            ceiling=pagination.ceiling,
        )

    scheduler = SchedulerConfig(
        auth0_interval_min=int(os.environ.get("AUTH0_SYNC_INTERVAL_MIN", "60")),
        max_retries=int(os.environ.get("SCHEDULER_MAX_RETRIES", "3")),
    )

    return IngestionConfig(
        instance_id=instance_id,
        auth0=auth0,
        database=database,
        pagination=pagination,
        scheduler=scheduler,
        batch_size=int(os.environ.get("INGESTION_BATCH_SIZE", "500")),
    )
