"""Auth0 Management API v2 client.

Endpoints: https://auth0.com/docs/api/management/v2
User search syntax: https://auth0.com/docs/manage-users/user-search/user-search-query-syntax
"""

from __future__ import annotations

import logging
import time
from typing import Any, Optional

import requests

from auth0_ingestion.config import Auth0Config, PaginationConfig
from auth0_ingestion.errors import ConfigurationFault, IntegrationProviderAuthenticationError
from auth0_ingestion.pagination import (
    MAX_PAGE_SIZE,
    Consumer,
    ResultPage,
    enumerate_collection,
    iterate_pages,
)

logger = logging.getLogger("ingestion.client")

REQUIRED_SCOPES = ("read:users", "read:clients")
# Refresh the token this many seconds before Auth0 says it expires.
TOKEN_EXPIRY_MARGIN_S = 60


def user_search_query(suffix: str) -> Optional[str]:
    """Lucene query for "user_id ends with suffix"; None matches every user."""
    if not suffix:
        return None
    return f"user_id:*{suffix}"


class Auth0ManagementClient:
    """Client-credentials authenticated access to /api/v2.

    The token is fetched lazily and reused until shortly before it expires
    (Auth0 defaults to 24 hours). Non-2xx responses raise requests.HTTPError.
    """

    def __init__(
        self,
        config: Auth0Config,
        session: Optional[requests.Session] = None,
        timeout: float = 30.0,
    ) -> None:
        self._config = config
        self._base = f"https://{config.domain}"
        self._session = session or requests.Session()
        self._timeout = timeout
        self._token: Optional[str] = None
        self._token_expires_at = 0.0
        # None when the token response did not report its scope
        self.granted_scopes: Optional[set[str]] = None

    def _access_token(self) -> str:
        if self._token and time.monotonic() < self._token_expires_at:
            return self._token

        logger.debug("Requesting management API token for %s", self._config.domain)
        resp = self._session.post(
            f"{self._base}/oauth/token",
            json={
                "grant_type": "client_credentials",
                "client_id": self._config.client_id,
                "client_secret": self._config.client_secret,
                "audience": self._config.audience,
            },
            timeout=self._timeout,
        )
        resp.raise_for_status()
        data = resp.json()
        self._token = data["access_token"]
        expires_in = int(data.get("expires_in", 86400))
        self._token_expires_at = time.monotonic() + max(expires_in - TOKEN_EXPIRY_MARGIN_S, 0)
        scope = data.get("scope")
        self.granted_scopes = set(scope.split()) if scope is not None else None
        return self._token

    def _get(self, path: str, params: dict[str, Any]) -> Any:
        resp = self._session.get(
            f"{self._base}{path}",
            params=params,
            headers={"Authorization": f"Bearer {self._access_token()}"},
            timeout=self._timeout,
        )
        resp.raise_for_status()
        return resp.json()

    @staticmethod
    def _page_params(page: int, per_page: int) -> dict[str, Any]:
        if not 1 <= per_page <= MAX_PAGE_SIZE:
            raise ConfigurationFault(
                f"per_page must be between 1 and {MAX_PAGE_SIZE}, got {per_page}"
            )
        return {"page": page, "per_page": per_page}

    def list_users(
        self,
        q: Optional[str] = None,
        page: int = 0,
        per_page: int = 50,
        include_totals: bool = False,
    ) -> Any:
        """GET /api/v2/users.

        Returns a list of users, or with include_totals a dict holding
        "users" and "total". Auth0 never pages past the first 1000 matches
        of a query, though "total" may report more.
        """
        params = self._page_params(page, per_page)
        if include_totals:
            params["include_totals"] = "true"
        if q:
            params["q"] = q
            params["search_engine"] = "v3"
        return self._get("/api/v2/users", params)

    def list_clients(self, page: int = 0, per_page: int = 50) -> list[dict]:
        """GET /api/v2/clients (applications)."""
        return self._get("/api/v2/clients", self._page_params(page, per_page))


class APIClient:
    """What the ingestion steps use: auth verification and per-record iteration."""

    def __init__(
        self,
        auth0: Auth0Config,
        pagination: Optional[PaginationConfig] = None,
        management_client: Optional[Auth0ManagementClient] = None,
    ) -> None:
        self.auth0 = auth0
        self.pagination = pagination or PaginationConfig()
        self.management_client = management_client or Auth0ManagementClient(auth0)

    def verify_authentication(self) -> None:
        """Cheapest possible authenticated call, then check the token's scope."""
        try:
            self.management_client.list_users(page=0, per_page=1)
        except requests.RequestException as exc:
            response = exc.response
            raise IntegrationProviderAuthenticationError(
                endpoint=self.auth0.domain,
                status=response.status_code if response is not None else None,
                status_text=response.reason if response is not None else str(exc),
                cause=exc,
            ) from exc

        granted = self.management_client.granted_scopes
        if granted is None:
            return
        missing = [s for s in REQUIRED_SCOPES if s not in granted]
        if missing:
            raise IntegrationProviderAuthenticationError(
                endpoint=self.auth0.domain,
                status=403,
                status_text=f"token is missing scopes: {', '.join(missing)}",
            )

    def _fetch_user_page(self, suffix: str, page: int, per_page: int) -> ResultPage:
        data = self.management_client.list_users(
            q=user_search_query(suffix),
            page=page,
            per_page=per_page,
            include_totals=True,
        )
        return ResultPage(items=data.get("users", []), total=data.get("total", 0))

    def iterate_users(
        self,
        iteratee: Consumer,
        depth: int = 0,
        suffix: str = "",
        ceiling: Optional[int] = None,
        page_size: Optional[int] = None,
    ) -> int:
        """Call ``iteratee`` once per user, subdividing past the 1000-result window.

        The keyword overrides exist so small tenants can still exercise
        subdivision and multi-page paths.
        """
        p = self.pagination
        return enumerate_collection(
            self._fetch_user_page,
            iteratee,
            max_depth=p.max_depth,
            depth=depth,
            suffix=suffix,
            ceiling=p.ceiling if ceiling is None else ceiling,
            page_size=p.page_size if page_size is None else page_size,
            alphabet=p.alphabet,
        )

    def iterate_clients(self, iteratee: Consumer) -> int:
        """Call ``iteratee`` once per client (application)."""
        return iterate_pages(
            lambda page, per_page: self.management_client.list_clients(
                page=page, per_page=per_page
            ),
            iteratee,
            page_size=self.pagination.page_size,
        )
