"""JCash backend construct.

Composes the JCash backend in strict dependency order:
- VPC with public and private-isolated subnets and no NAT gateways
- A single security group that only admits its own members
- A private-isolated RDS subnet group and an Aurora Serverless cluster
- A Secrets Manager interface endpoint for the isolated subnets
- Lambda functions that may read only the cluster's credential secret
- An API Gateway front door for the API function
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from aws_cdk import (
    BundlingOptions,
    Duration,
    RemovalPolicy,
)
from aws_cdk import (
    aws_apigateway as apigateway,
)
from aws_cdk import (
    aws_ec2 as ec2,
)
from aws_cdk import (
    aws_iam as iam,
)
from aws_cdk import (
    aws_lambda as _lambda,
)
from aws_cdk import (
    aws_rds as rds,
)
from aws_cdk import (
    aws_secretsmanager as secretsmanager,
)
from constructs import Construct

import jcash
from jcash.config import SUBNET_CIDR_MASK, AppConfig, coerce_config

logger = logging.getLogger(__name__)

FUNCTIONS_DIR = Path(jcash.__file__).resolve().parent / "functions"

DEFAULT_TIMEOUT_SECONDS = 30
DEFAULT_MEMORY_SIZE = 256

SECRET_READ_ACTION = "secretsmanager:GetSecretValue"

CORS_RESPONSE_HEADERS = {
    "Access-Control-Allow-Headers": (
        "'Content-Type,X-Amz-Date,Authorization,X-Api-Key,X-Amz-Security-Token,X-Amz-User-Agent'"
    ),
    "Access-Control-Allow-Origin": "'*'",
    "Access-Control-Allow-Credentials": "'false'",
    "Access-Control-Allow-Methods": "'OPTIONS,GET,PUT,POST,DELETE'",
}


class CompositionError(ValueError):
    """Raised when the backend resources cannot be wired together consistently."""


class FunctionOptions(BaseModel):
    """Overrides passed through to a Lambda function."""
    model_config = ConfigDict(extra="forbid", arbitrary_types_allowed=True)

    function_name: Optional[str] = None
    memory_size: Optional[int] = Field(default=None, ge=128, le=10240)
    # seconds
    timeout: Optional[int] = Field(default=None, gt=0, le=900)
    environment: Dict[str, str] = Field(default_factory=dict)
    bundling: Optional[BundlingOptions] = None
    code: Optional[_lambda.Code] = None


def secret_read_statement(secret: Optional[secretsmanager.ISecret]) -> iam.PolicyStatement:
    """Build the only statement a backend function gets: read one secret."""
    if secret is None:
        raise CompositionError(
            "Database cluster has no credential secret; refusing to grant a secret read "
            "permission without a concrete resource ARN"
        )
    return iam.PolicyStatement(
        effect=iam.Effect.ALLOW,
        actions=[SECRET_READ_ACTION],
        resources=[secret.secret_arn],
    )


class JCashBackendConstruct(Construct):
    """VPC, Aurora Serverless data tier, Lambda compute and API Gateway for JCash.

    Example:
        ```python
        backend = JCashBackendConstruct(self, "JCashBackend", config={"stage": "prod"})
        CfnOutput(self, "ApiUrl", value=backend.api.url)
        ```
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        config: Union[Dict[str, Any], BaseModel, None] = None,
        stage: Optional[str] = None,
    ) -> None:
        """Compose the backend.

        Args:
            scope: CDK scope
            construct_id: Construct ID
            config: AppConfig or a plain dict with the same shape
            stage: Explicit stage, overriding the one in config

        Raises:
            pydantic.ValidationError: If the configuration is invalid. Raised
                before any child construct is created.
            CompositionError: If the data tier exposes no credential secret.
        """
        app_config = coerce_config(config, stage=stage)
        super().__init__(scope, construct_id)

        self.config: AppConfig = app_config
        self.names = app_config.names
        self.stage = self.names.stage

        logger.info(f"Composing JCash backend for stage {self.stage} ({app_config.api.style} API)")

        self.vpc = self.generate_vpc()
        self.security_group = self.generate_security_group(self.vpc)
        self.subnet_group = self.generate_subnet_group(self.vpc)

        self.aurora_cluster = self.generate_aurora_cluster(
            vpc=self.vpc,
            subnet_group=self.subnet_group,
            security_group=self.security_group,
        )

        self.vpc_endpoint = self.generate_vpc_endpoint(vpc=self.vpc, security_group=self.security_group)

        proxy_style = app_config.api.style == "proxy"
        self.api_function = self.generate_function(
            "ApiHandlerFunction",
            handler="handler",
            entry="handler",
            connection_reuse=proxy_style,
        )

        if proxy_style:
            self.api = self.generate_proxy_api(self.api_function)
        else:
            self.api = self.generate_explicit_api(self.api_function)

    @property
    def removal_policy(self) -> RemovalPolicy:
        return RemovalPolicy.RETAIN if self.config.retain_database else RemovalPolicy.DESTROY

    def generate_vpc(self) -> ec2.Vpc:
        """Create the VPC: public and private-isolated tiers in two AZs, no NAT."""
        logger.debug(f"Creating VPC {self.config.network.cidr}")
        return ec2.Vpc(
            self, "JCashVPC",
            ip_addresses=ec2.IpAddresses.cidr(self.config.network.cidr),
            nat_gateways=0,
            max_azs=2,
            enable_dns_hostnames=True,
            enable_dns_support=True,
            subnet_configuration=[
                ec2.SubnetConfiguration(
                    name="public",
                    subnet_type=ec2.SubnetType.PUBLIC,
                    cidr_mask=SUBNET_CIDR_MASK,
                ),
                ec2.SubnetConfiguration(
                    name="private",
                    subnet_type=ec2.SubnetType.PRIVATE_ISOLATED,
                    cidr_mask=SUBNET_CIDR_MASK,
                ),
            ],
        )

    def generate_security_group(self, vpc: ec2.IVpc) -> ec2.SecurityGroup:
        """Create the security group shared by the cluster, the endpoint and the functions."""
        security_group = ec2.SecurityGroup(
            self, "JCashSecurityGroup",
            vpc=vpc,
            security_group_name=self.names.security_group_name,
            description="JCash internal security boundary",
        )
        # Members only; no CIDR source is ever admitted
        security_group.add_ingress_rule(
            security_group,
            ec2.Port.all_traffic(),
            "allow internal security group access",
        )
        return security_group

    def generate_subnet_group(self, vpc: ec2.IVpc) -> rds.SubnetGroup:
        return rds.SubnetGroup(
            self, "JCashRDSSubnetGroup",
            vpc=vpc,
            subnet_group_name=self.names.subnet_group_name,
            vpc_subnets=ec2.SubnetSelection(subnet_type=ec2.SubnetType.PRIVATE_ISOLATED),
            removal_policy=self.removal_policy,
            description="private isolated subnet group for db",
        )

    def generate_aurora_cluster(
        self,
        *,
        vpc: ec2.IVpc,
        subnet_group: rds.ISubnetGroup,
        security_group: ec2.ISecurityGroup,
    ) -> rds.ServerlessCluster:
        """Create the Aurora Serverless PostgreSQL cluster.

        Credentials are generated into a Secrets Manager secret; only the
        secret's ARN is ever handed to compute.
        """
        logger.info(
            f"Creating Aurora Serverless cluster with database {self.names.database_name} "
            f"(removal policy {'retain' if self.config.retain_database else 'destroy'})"
        )
        return rds.ServerlessCluster(
            self, "JCashAuroraCluster",
            engine=rds.DatabaseClusterEngine.AURORA_POSTGRESQL,
            parameter_group=rds.ParameterGroup.from_parameter_group_name(
                self, "JCashParameterGroup", "default.aurora-postgresql10"
            ),
            default_database_name=self.names.database_name,
            enable_data_api=True,
            vpc=vpc,
            subnet_group=subnet_group,
            security_groups=[security_group],
            removal_policy=self.removal_policy,
        )

    def generate_vpc_endpoint(
        self,
        *,
        vpc: ec2.IVpc,
        security_group: ec2.ISecurityGroup,
    ) -> ec2.InterfaceVpcEndpoint:
        """Create the Secrets Manager endpoint so isolated functions can reach the secret."""
        return ec2.InterfaceVpcEndpoint(
            self, "SecretsManagerEndpoint",
            service=ec2.InterfaceVpcEndpointAwsService.SECRETS_MANAGER,
            vpc=vpc,
            private_dns_enabled=True,
            subnets=ec2.SubnetSelection(subnet_type=ec2.SubnetType.PRIVATE_ISOLATED),
            security_groups=[security_group],
            # open=True would add an ingress rule from the VPC CIDR
            open=False,
        )

    def get_lambda_role_policy(self) -> iam.PolicyStatement:
        return secret_read_statement(self.aurora_cluster.secret)

    def generate_function(
        self,
        construct_id: str,
        *,
        handler: str,
        entry: str,
        options: Union[FunctionOptions, Dict[str, Any], None] = None,
        connection_reuse: bool = True,
    ) -> _lambda.Function:
        """Create a Lambda function inside the data tier's network boundary.

        Args:
            construct_id: Construct ID of the function
            handler: Handler function name inside the entry module
            entry: Module name under jcash/functions/ (without .py)
            options: Overrides for name, memory, timeout, environment, bundling or code
            connection_reuse: Inject the connection-reuse hint variable

        Returns:
            The function, holding exactly one statement that reads the cluster secret.
        """
        if not isinstance(options, FunctionOptions):
            options = FunctionOptions.model_validate(options or {})

        # Fails before the function exists when there is no secret
        policy = self.get_lambda_role_policy()

        environment = {"ENV": self.config.deploy_env}
        if connection_reuse:
            environment["AWS_NODEJS_CONNECTION_REUSE_ENABLED"] = "1"
        environment.update(options.environment)
        environment["SECRET_ID"] = self.aurora_cluster.secret.secret_arn

        code = options.code or _lambda.Code.from_asset(
            str(FUNCTIONS_DIR),
            exclude=["**/__pycache__", "**/*.pyc"],
            bundling=options.bundling,
        )

        function_name = options.function_name or self.names.function_name(handler)
        logger.info(f"Creating function {function_name} ({entry}.{handler})")

        fn = _lambda.Function(
            self, construct_id,
            runtime=_lambda.Runtime.PYTHON_3_11,
            function_name=function_name,
            handler=f"{entry}.{handler}",
            code=code,
            timeout=Duration.seconds(options.timeout or DEFAULT_TIMEOUT_SECONDS),
            memory_size=options.memory_size or DEFAULT_MEMORY_SIZE,
            environment=environment,
            vpc=self.vpc,
            vpc_subnets=ec2.SubnetSelection(subnet_type=ec2.SubnetType.PRIVATE_ISOLATED),
            security_groups=[self.security_group],
        )
        fn.add_to_role_policy(policy)

        return fn

    def generate_proxy_api(self, handler: _lambda.IFunction) -> apigateway.LambdaRestApi:
        """Expose the function as ANY /api/{proxy+}."""
        api = apigateway.LambdaRestApi(
            self, "JCashAPI",
            rest_api_name=self.names.api_name,
            description="The JCash API Service",
            handler=handler,
            proxy=False,
            deploy_options=apigateway.StageOptions(stage_name=self.names.api_stage_name),
        )
        api_path = api.root.add_resource("api")
        api_path.add_proxy(any_method=True)
        return api

    def generate_explicit_api(self, handler: _lambda.IFunction) -> apigateway.RestApi:
        """Expose the function as GET and POST /test with a mock CORS preflight."""
        api = apigateway.RestApi(
            self, "JCashTestAPI",
            rest_api_name=self.names.api_name,
            description="The JCash API Service",
            deploy_options=apigateway.StageOptions(stage_name=self.names.api_stage_name),
        )
        test_path = api.root.add_resource("test")
        integration = apigateway.LambdaIntegration(handler)
        test_path.add_method("GET", integration)
        test_path.add_method("POST", integration)
        add_cors_options(test_path)
        return api


def add_cors_options(resource: apigateway.IResource) -> apigateway.Method:
    """Answer OPTIONS on the resource with a fixed 200 and permissive CORS headers.

    The mock integration never evaluates the request body.
    """
    return resource.add_method(
        "OPTIONS",
        apigateway.MockIntegration(
            integration_responses=[
                apigateway.IntegrationResponse(
                    status_code="200",
                    response_parameters={
                        f"method.response.header.{name}": value
                        for name, value in CORS_RESPONSE_HEADERS.items()
                    },
                )
            ],
            passthrough_behavior=apigateway.PassthroughBehavior.NEVER,
            request_templates={"application/json": '{"statusCode": 200}'},
        ),
        method_responses=[
            apigateway.MethodResponse(
                status_code="200",
                response_parameters={
                    f"method.response.header.{name}": True
                    for name in CORS_RESPONSE_HEADERS
                },
            )
        ],
    )
