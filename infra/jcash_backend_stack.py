"""JCash backend CDK Stack.

Hosts the JCashBackendConstruct, publishes its entry points as stack outputs
and applies consistent tagging.
"""

from typing import Any, Dict, Union

from pydantic import BaseModel

from aws_cdk import (
    CfnOutput,
    Stack,
    Tags,
)
from constructs import Construct

from jcash.config import coerce_config

from infra.jcash_backend_construct import JCashBackendConstruct


class JCashBackendStack(Stack):
    """CDK Stack for the JCash backend."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        # `config` may be a plain dict or an AppConfig
        config: Union[Dict[str, Any], BaseModel, None] = None,
        **kwargs
    ) -> None:
        """Initialize the JCash backend stack.

        Args:
            scope: CDK scope
            construct_id: Stack identifier
            config: Configuration from the config loader
            **kwargs: Additional stack arguments
        """
        # Validate first so an invalid config never yields a half-built stack
        app_config = coerce_config(config)
        super().__init__(scope, construct_id, **kwargs)

        self.config = app_config
        self.backend = JCashBackendConstruct(self, "JCashBackend", config=app_config)

        CfnOutput(
            self, "ApiUrl",
            value=self.backend.api.url,
            description="Base URL of the JCash API stage",
        )
        CfnOutput(
            self, "ApiFunctionName",
            value=self.backend.api_function.function_name,
        )

        self._apply_tags()

    def _apply_tags(self) -> None:
        """Apply consistent tags to all resources."""
        tags = {
            "Application": "JCash",
            "Stage": self.config.stage,
            "Environment": self.config.deploy_env,
            "ManagedBy": "CDK"
        }

        for key, value in tags.items():
            Tags.of(self).add(key, value)
