"""CDK App entry point for the JCash backend infrastructure."""

import logging
import os
from typing import Optional

from aws_cdk import App, Environment

from jcash.config import is_aws_deploy_allowed, load_config

from infra.jcash_backend_stack import JCashBackendStack


def main(app: Optional[App] = None) -> App:
    """Main CDK app entry point.

    Args:
        app: App to synthesize into. A new one is created when omitted.
    """
    if app is None:
        app = App()

    # Stage may come from `cdk synth -c stage=prod` or the STAGE env var
    stage = app.node.try_get_context("stage")
    config = load_config(stage)

    logging.basicConfig(
        level=config.logging.level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    # Safety check for AWS deployment
    if not is_aws_deploy_allowed():
        print("WARNING: ALLOW_AWS_DEPLOY not set. This is a dry-run synthesis only.")
        print("Set ALLOW_AWS_DEPLOY=1 to enable actual AWS deployments.")

    env = Environment(
        account=os.getenv("CDK_DEFAULT_ACCOUNT"),
        region=config.aws.region
    )

    JCashBackendStack(
        app,
        f"JCash-{config.stage}",
        config=config,
        env=env,
        description=f"JCash backend infrastructure for stage {config.stage}"
    )

    app.synth()
    return app


if __name__ == "__main__":
    main()
