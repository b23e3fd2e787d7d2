"""API handler for the JCash backend.

Runs inside the private-isolated subnets behind API Gateway. The only AWS
call it makes is reading the database credential secret, which it reaches
through the Secrets Manager interface endpoint.
"""

import json
import logging
import os
from typing import Any, Dict, Optional

import boto3

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Credentials": "false",
    "Content-Type": "application/json",
}

# Secret fields safe to report; never the password
PUBLIC_SECRET_FIELDS = ("engine", "host", "port", "dbname", "username")

_secrets_client = None


def _get_secrets_client():
    global _secrets_client
    if _secrets_client is None:
        _secrets_client = boto3.client("secretsmanager")
    return _secrets_client


def _response(status_code: int, body: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "statusCode": status_code,
        "headers": dict(CORS_HEADERS),
        "body": json.dumps(body),
    }


def _route(event: Dict[str, Any]) -> str:
    """Path below /api for proxy requests, or the full path otherwise."""
    path_params = event.get("pathParameters") or {}
    if path_params.get("proxy"):
        return path_params["proxy"].strip("/")
    return (event.get("path") or "").strip("/")


def database_status(secret_id: Optional[str]) -> Dict[str, Any]:
    """Describe the database from its credential secret without exposing credentials."""
    if not secret_id:
        raise RuntimeError("SECRET_ID is not configured")
    secret = _get_secrets_client().get_secret_value(SecretId=secret_id)
    values = json.loads(secret.get("SecretString") or "{}")
    return {field: values[field] for field in PUBLIC_SECRET_FIELDS if field in values}


def handler(event, context):
    """Lambda entry point for API Gateway proxy events."""
    method = event.get("httpMethod", "GET")
    route = _route(event)
    logger.info(f"{method} {route or '/'}")

    try:
        if method == "GET" and route == "health":
            return _response(200, {"status": "ok", "env": os.environ.get("ENV", "development")})

        if method == "GET" and route == "db/status":
            return _response(200, {"database": database_status(os.environ.get("SECRET_ID"))})

        if route == "test" and method == "GET":
            return _response(200, {"message": "ok"})

        if route == "test" and method == "POST":
            payload = json.loads(event.get("body") or "{}")
            return _response(200, {"received": payload})

        return _response(404, {"error": f"No route for {method} /{route}"})

    except json.JSONDecodeError:
        return _response(400, {"error": "Request body must be JSON"})
    except Exception as e:
        logger.error(f"Handler error on {method} /{route}: {type(e).__name__}")
        return _response(500, {"error": "Internal server error"})
