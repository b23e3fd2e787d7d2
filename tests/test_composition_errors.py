"""Invalid configuration must fail before any resource is composed."""

import pytest
from aws_cdk import App, Stack
from pydantic import ValidationError

from infra.jcash_backend_construct import JCashBackendConstruct
from infra.jcash_backend_stack import JCashBackendStack


@pytest.mark.parametrize("config", [
    {"stage": "Prod"},
    {"stage": "prod env"},
    {"stage": "1dev"},
    {"stage": "a-very-long-stage-name"},
    {"network": {"cidr": "10.0.0.300/20"}},
    {"network": {"cidr": "10.0.0.1/20"}},
    {"network": {"cidr": "10.0.0.0/24"}},
    {"network": {"cidr": "10.0.0.0/8"}},
    {"network": {"cidr": "fd00::/56"}},
    {"api": {"style": "graphql"}},
    {"netwrok": {"cidr": "10.0.0.0/16"}},
    {"database": {"retain": True}},
])
def test_invalid_config_creates_nothing(config):
    stack = Stack(App(), "ErrorStack")

    with pytest.raises(ValidationError):
        JCashBackendConstruct(stack, "Backend", config=config)

    assert stack.node.try_find_child("Backend") is None


def test_invalid_stack_config_creates_no_stack():
    app = App()

    with pytest.raises(ValidationError):
        JCashBackendStack(app, "BadStack", config={"stage": "Not Valid"})

    assert app.node.try_find_child("BadStack") is None


def test_explicit_stage_overrides_config():
    stack = Stack(App(), "OverrideStack")
    backend = JCashBackendConstruct(stack, "Backend", config={"stage": "dev"}, stage="prod")

    assert backend.stage == "prod"
    assert backend.names.database_name == "JCashDB-prod"
