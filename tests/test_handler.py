"""Tests for the API Lambda handler."""

import json

import pytest

from jcash.functions import handler as api_handler

SECRET_ARN = "arn:aws:secretsmanager:us-east-1:123456789012:secret:jcash-db-AbCdEf"


@pytest.fixture
def secrets_client(mocker):
    client = mocker.Mock()
    client.get_secret_value.return_value = {
        "SecretString": json.dumps({
            "engine": "postgres",
            "host": "jcash.cluster-abc.us-east-1.rds.amazonaws.com",
            "port": 5432,
            "dbname": "JCashDB-dev",
            "username": "postgres",
            "password": "super-secret-password",
        })
    }
    mocker.patch.object(api_handler, "_get_secrets_client", return_value=client)
    return client


def _proxy_event(method: str, proxy: str, body=None) -> dict:
    return {
        "httpMethod": method,
        "path": f"/api/{proxy}",
        "pathParameters": {"proxy": proxy},
        "body": body,
    }


def _body(response: dict) -> dict:
    return json.loads(response["body"])


def test_health(monkeypatch):
    monkeypatch.setenv("ENV", "staging")
    response = api_handler.handler(_proxy_event("GET", "health"), None)

    assert response["statusCode"] == 200
    assert _body(response) == {"status": "ok", "env": "staging"}
    assert response["headers"]["Access-Control-Allow-Origin"] == "*"


def test_db_status_hides_credentials(monkeypatch, secrets_client):
    monkeypatch.setenv("SECRET_ID", SECRET_ARN)
    response = api_handler.handler(_proxy_event("GET", "db/status"), None)

    assert response["statusCode"] == 200
    assert _body(response)["database"]["dbname"] == "JCashDB-dev"
    assert "password" not in response["body"]
    assert "super-secret-password" not in response["body"]
    secrets_client.get_secret_value.assert_called_once_with(SecretId=SECRET_ARN)


def test_db_status_without_secret_id(monkeypatch, secrets_client):
    monkeypatch.delenv("SECRET_ID", raising=False)
    response = api_handler.handler(_proxy_event("GET", "db/status"), None)

    assert response["statusCode"] == 500
    assert _body(response) == {"error": "Internal server error"}
    secrets_client.get_secret_value.assert_not_called()


def test_secret_store_failure_is_not_leaked(monkeypatch, secrets_client):
    monkeypatch.setenv("SECRET_ID", SECRET_ARN)
    secrets_client.get_secret_value.side_effect = RuntimeError(f"AccessDenied for {SECRET_ARN}")

    response = api_handler.handler(_proxy_event("GET", "db/status"), None)

    assert response["statusCode"] == 500
    assert SECRET_ARN not in response["body"]


def test_explicit_test_routes():
    get = api_handler.handler({"httpMethod": "GET", "path": "/test"}, None)
    post = api_handler.handler({"httpMethod": "POST", "path": "/test", "body": '{"amount": 10}'}, None)

    assert get["statusCode"] == 200
    assert _body(get) == {"message": "ok"}
    assert post["statusCode"] == 200
    assert _body(post) == {"received": {"amount": 10}}


def test_invalid_json_body():
    response = api_handler.handler({"httpMethod": "POST", "path": "/test", "body": "{nope"}, None)
    assert response["statusCode"] == 400


def test_unknown_route():
    response = api_handler.handler(_proxy_event("DELETE", "accounts/1"), None)

    assert response["statusCode"] == 404
    assert "DELETE /accounts/1" in _body(response)["error"]
