"""Map Auth0 API objects onto graph entities and relationships."""

from __future__ import annotations

import json
from typing import Any

ACCOUNT_ENTITY_TYPE = "auth0_account"
USER_ENTITY_TYPE = "auth0_user"
CLIENT_ENTITY_TYPE = "auth0_client"

# Free-form metadata of unknown content
USER_REDACTED_FIELDS = ("user_metadata", "app_metadata")
CLIENT_REDACTED_FIELDS = (
    # credentials and key material
    "client_secret",
    "jwt_configuration",
    "signing_keys",
    "encryption_key",
    # objects of unknown content
    "addons",
    "client_metadata",
    "mobile",
    "native_social_login",
)


def get_account_weblink(domain: str) -> str:
    """Dashboard URL for a tenant.region.auth0.com domain, else ""."""
    portions = domain.split(".")
    if len(portions) > 2 and portions[2] == "auth0":
        return f"https://manage.auth0.com/dashboard/{portions[1]}/{portions[0]}/"
    return ""


def redact(source: dict, fields: tuple[str, ...]) -> dict:
    return {k: v for k, v in source.items() if k not in fields}


def _entity(source: dict, assign: dict[str, Any]) -> dict:
    entity = dict(assign)
    entity["_rawData"] = [{"name": "default", "rawData": source}]
    return entity


def create_account_entity(instance_id: str, weblink: str) -> dict:
    return _entity(
        {"id": "Auth0 Account", "name": "Auth0 Account"},
        {
            "_key": f"auth0-account:{instance_id}",
            "_type": ACCOUNT_ENTITY_TYPE,
            "_class": "Account",
            "name": "Auth0 Account",
            "displayName": "Auth0 Account",
            "webLink": weblink,
        },
    )


def create_user_entity(user: dict, account_weblink: str) -> dict:
    user = redact(user, USER_REDACTED_FIELDS)
    user_id = user.get("user_id") or ""
    # "|" in the id is not a valid URI character; "auth0|" is 6 chars
    weblink = f"{account_weblink}users/auth0%7C{user_id[6:]}"
    return _entity(
        user,
        {
            "_key": user_id,
            "_type": USER_ENTITY_TYPE,
            "_class": "User",
            "name": user.get("name"),
            "displayName": user.get("name"),
            "username": user.get("username") or "",
            "nickname": user.get("nickname"),
            "email": user.get("email"),
            "webLink": weblink,
            "userId": user_id,
            "emailVerified": user.get("email_verified"),
            "phoneNumber": user.get("phone_number"),
            "phoneVerified": user.get("phone_verified"),
            "createdAt": user.get("created_at"),
            "updatedAt": user.get("updated_at"),
            "identities": json.dumps(user.get("identities")),
            "picture": user.get("picture"),
            "multifactor": user.get("multifactor"),
            "lastIp": user.get("last_ip"),
            "lastLogin": user.get("last_login"),
            "loginsCount": user.get("logins_count"),
            "blocked": user.get("blocked"),
            "givenName": user.get("given_name"),
            "familyName": user.get("family_name"),
        },
    )


def create_client_entity(client: dict, account_weblink: str) -> dict:
    client = redact(client, CLIENT_REDACTED_FIELDS)
    client_id = client.get("client_id") or ""
    refresh = client.get("refresh_token") or {}
    return _entity(
        client,
        {
            "_key": client_id,
            "_type": CLIENT_ENTITY_TYPE,
            "_class": "Application",
            "name": client.get("name"),
            "displayName": client.get("name"),
            "webLink": f"{account_weblink}applications/{client_id}/settings",
            "clientId": client_id,
            "tenant": client.get("tenant"),
            "description": client.get("description"),
            "global": client.get("global"),
            "appType": client.get("app_type"),
            "logoUri": client.get("logo_uri"),
            "isFirstParty": client.get("is_first_party"),
            "oidcConformant": client.get("oidc_conformant"),
            "callbacks": client.get("callbacks"),
            "allowedOrigins": client.get("allowed_origins"),
            "webOrigins": client.get("web_origins"),
            "clientAliases": client.get("client_aliases"),
            "allowedClients": client.get("allowed_clients"),
            "allowedLogoutUrls": client.get("allowed_logout_urls"),
            "grantTypes": client.get("grant_types"),
            "sso": client.get("sso"),
            "ssoDisabled": client.get("sso_disabled"),
            "crossOriginAuth": client.get("cross_origin_auth"),
            "crossOriginLoc": client.get("cross_origin_loc"),
            "customLoginPageOn": client.get("custom_login_page_on"),
            "customLoginPage": client.get("custom_login_page"),
            "customLoginPagePreview": client.get("custom_login_page_preview"),
            "formTemplate": client.get("form_template"),
            "tokenEndpointAuthMethod": client.get("token_endpoint_auth_method"),
            "initiateLoginUri": client.get("initiate_login_uri"),
            "organizationUsage": client.get("organization_usage"),
            "organizationRequireBehavior": client.get("organization_require_behavior"),
            # Useful for posture analysis even though they describe token lifetimes
            "tokenExpirationType": refresh.get("expiration_type"),
            "tokenTokenLifetime": refresh.get("token_lifetime"),
            "tokenInfiniteTokenLifetime": refresh.get("infinite_token_lifetime"),
            "tokenIdleTokenLifetime": refresh.get("idle_token_lifetime"),
            "tokenInfiniteIdleTokenLifetime": refresh.get("infinite_idle_token_lifetime"),
        },
    )


def create_direct_relationship(_class: str, from_entity: dict, to_entity: dict) -> dict:
    """HAS relationship between two entities, e.g. auth0_account_has_user."""
    verb = _class.lower()
    from_type = from_entity["_type"]
    to_type = to_entity["_type"]
    prefix = from_type.split("_", 1)[0] + "_"
    target = to_type[len(prefix):] if to_type.startswith(prefix) else to_type
    return {
        "_key": f"{from_entity['_key']}|{verb}|{to_entity['_key']}",
        "_type": f"{from_type}_{verb}_{target}",
        "_class": _class,
        "_fromEntityKey": from_entity["_key"],
        "_toEntityKey": to_entity["_key"],
        "displayName": _class,
    }
