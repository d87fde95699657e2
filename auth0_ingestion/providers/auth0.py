"""Auth0 provider: account, users and clients (applications)."""

from __future__ import annotations

import logging
from typing import Optional

from auth0_ingestion.base_provider import BaseProvider, IntegrationStep
from auth0_ingestion.client import APIClient
from auth0_ingestion.config import IngestionConfig, normalize_auth0_config
from auth0_ingestion.converters import (
    ACCOUNT_ENTITY_TYPE,
    CLIENT_ENTITY_TYPE,
    USER_ENTITY_TYPE,
    create_account_entity,
    create_client_entity,
    create_direct_relationship,
    create_user_entity,
    get_account_weblink,
)
from auth0_ingestion.db import Database
from auth0_ingestion.job_state import JobState

logger = logging.getLogger("ingestion.auth0")

DATA_ACCOUNT_ENTITY = "DATA_ACCOUNT_ENTITY"


def validate_invocation(config: IngestionConfig, api_client: Optional[APIClient] = None) -> APIClient:
    """Normalise the Auth0 settings and prove the credentials work.

    Returns an APIClient built from the normalised settings.
    """
    auth0 = normalize_auth0_config(config.auth0)
    api_client = api_client or APIClient(auth0, config.pagination)
    api_client.verify_authentication()
    logger.info("Auth0 credentials verified", extra={"provider": Auth0Provider.PROVIDER_NAME})
    return api_client


class Auth0Provider(BaseProvider):
    PROVIDER_NAME = "auth0"

    def __init__(
        self,
        config: IngestionConfig,
        db: Optional[Database] = None,
        api_client: Optional[APIClient] = None,
    ) -> None:
        super().__init__(config, db)
        self.auth0 = normalize_auth0_config(config.auth0)
        self.api_client = api_client or APIClient(self.auth0, config.pagination)

    def steps(self) -> list[IntegrationStep]:
        return [
            IntegrationStep(
                id="fetch-account",
                name="Fetch Account Details",
                handler=self.fetch_account_details,
                entity_types=(ACCOUNT_ENTITY_TYPE,),
            ),
            IntegrationStep(
                id="fetch-users",
                name="Fetch Users",
                handler=self.fetch_users,
                entity_types=(USER_ENTITY_TYPE,),
                relationship_types=("auth0_account_has_user",),
                depends_on=("fetch-account",),
            ),
            IntegrationStep(
                id="fetch-clients",
                name="Fetch Clients",
                handler=self.fetch_clients,
                entity_types=(CLIENT_ENTITY_TYPE,),
                relationship_types=("auth0_account_has_client",),
                depends_on=("fetch-account",),
            ),
        ]

    def fetch_account_details(self, job_state: JobState) -> int:
        account = job_state.add_entity(
            create_account_entity(self.instance_id, get_account_weblink(self.auth0.domain))
        )
        job_state.set_data(DATA_ACCOUNT_ENTITY, account)
        return 1

    def _account(self, job_state: JobState) -> dict:
        account = job_state.get_data(DATA_ACCOUNT_ENTITY)
        if account is None:
            raise RuntimeError("fetch-account must run before this step")
        return account

    def fetch_users(self, job_state: JobState) -> int:
        account = self._account(job_state)

        def ingest(user: dict) -> None:
            entity = job_state.add_entity(create_user_entity(user, account["webLink"]))
            job_state.add_relationship(create_direct_relationship("HAS", account, entity))

        count = self.api_client.iterate_users(ingest)
        logger.info("Collected %d Auth0 users", count, extra={"entity_type": USER_ENTITY_TYPE})
        return count

    def fetch_clients(self, job_state: JobState) -> int:
        account = self._account(job_state)

        def ingest(client: dict) -> None:
            entity = job_state.add_entity(create_client_entity(client, account["webLink"]))
            job_state.add_relationship(create_direct_relationship("HAS", account, entity))

        count = self.api_client.iterate_clients(ingest)
        logger.info("Collected %d Auth0 clients", count, extra={"entity_type": CLIENT_ENTITY_TYPE})
        return count
