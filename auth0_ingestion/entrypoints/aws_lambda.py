"""AWS Lambda handler for Auth0 ingestion.

Deployed as a Lambda function triggered by an EventBridge schedule. The event
body is ignored except for an optional {"action": "validate"}, which checks
config and credentials without ingesting.
"""

from __future__ import annotations

import json
import logging
import os

from auth0_ingestion.cli import run_sync
from auth0_ingestion.config import load_config
from auth0_ingestion.db import Database
from auth0_ingestion.errors import IntegrationProviderAuthenticationError, IntegrationValidationError
from auth0_ingestion.logging_config import configure_logging
from auth0_ingestion.providers.auth0 import validate_invocation

logger = logging.getLogger("ingestion.lambda")


def handler(event: dict, context) -> dict:
    """Lambda entry point."""
    configure_logging(os.environ.get("LOG_LEVEL", "INFO"))
    action = (event or {}).get("action", "sync")
    logger.info("Lambda invoked with action=%s", action)

    config = load_config()

    if action == "validate":
        try:
            validate_invocation(config)
        except (IntegrationValidationError, IntegrationProviderAuthenticationError) as exc:
            return {"statusCode": 400, "body": json.dumps({"error": str(exc)})}
        return {"statusCode": 200, "body": json.dumps({"valid": True})}
    if action != "sync":
        return {"statusCode": 400, "body": f"Unknown action '{action}'"}

    db = Database(config.database) if config.database else None
    try:
        results = run_sync(config, db)
        logger.info("Sync complete: %s", results)
        return {"statusCode": 200, "body": json.dumps({"results": results})}
    except Exception as exc:
        logger.error("Sync failed: %s", exc, exc_info=True)
        return {"statusCode": 500, "body": json.dumps({"error": str(exc)})}
    finally:
        if db is not None:
            db.close()
