"""Shared fixtures: a synthetic Auth0 user directory and ready-made configs."""

from __future__ import annotations

import random

import pytest

from auth0_ingestion.config import Auth0Config, IngestionConfig, PaginationConfig
from auth0_ingestion.pagination import DEFAULT_ALPHABET, ResultPage


def make_user_ids(count: int, seed: int = 7, alphabet: str = DEFAULT_ALPHABET) -> list[str]:
    """Unique auth0|<24 chars> ids drawn from ``alphabet``, like Auth0 generates them."""
    rng = random.Random(seed)
    ids: set[str] = set()
    while len(ids) < count:
        ids.add("auth0|" + "".join(rng.choice(alphabet) for _ in range(24)))
    return sorted(ids)


class FakeUserDirectory:
    """In-memory stand-in for GET /api/v2/users?include_totals=true.

    Like Auth0, only the first ``window`` matches of any query can be paged
    through. ``report_true_total`` controls whether "total" is the real match
    count or is capped at the window.
    """

    def __init__(self, user_ids, window: int = 1000, report_true_total: bool = True):
        self.users = [{"user_id": uid, "name": uid} for uid in user_ids]
        self.window = window
        self.report_true_total = report_true_total
        self.calls: list[tuple[str, int, int]] = []

    def fetch_page(self, suffix: str, page: int, per_page: int) -> ResultPage:
        self.calls.append((suffix, page, per_page))
        matches = [u for u in self.users if u["user_id"].endswith(suffix)]
        visible = matches[: self.window]
        total = len(matches) if self.report_true_total else len(visible)
        return ResultPage(items=visible[page * per_page : (page + 1) * per_page], total=total)

    def list_users(self, q=None, page=0, per_page=50, include_totals=False):
        suffix = q.split("*", 1)[1] if q else ""
        result = self.fetch_page(suffix, page, per_page)
        if include_totals:
            return {"users": result.items, "total": result.total}
        return result.items


@pytest.fixture
def auth0_config() -> Auth0Config:
    return Auth0Config(
        client_id="dummy-acme-client-id",
        client_secret="dummy-acme-client-secret",
        domain="dev-acme.us.auth0.com",
        audience="dev-acme.us.auth0.com/api/v2",
    )


@pytest.fixture
def ingestion_config(auth0_config) -> IngestionConfig:
    return IngestionConfig(
        instance_id="instance-1",
        auth0=auth0_config,
        pagination=PaginationConfig(),
        batch_size=2,
    )


@pytest.fixture
def user_ids():
    return make_user_ids


@pytest.fixture
def directory():
    """Factory: directory(count_or_ids, window=..., report_true_total=...)."""

    def build(users, window: int = 1000, report_true_total: bool = True) -> FakeUserDirectory:
        ids = make_user_ids(users) if isinstance(users, int) else list(users)
        return FakeUserDirectory(ids, window=window, report_true_total=report_true_total)

    return build
