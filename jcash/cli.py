"""Command line interface for the JCash backend infrastructure.

Examples:
  # Show the stage-qualified resource names
  jcash names --stage prod

  # Synthesize the CloudFormation assembly for a stage
  jcash synth --stage prod --outdir cdk.out
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from .config import load_config
from .naming import resource_names


def _names(args: argparse.Namespace) -> int:
    try:
        names = resource_names(args.stage)
    except ValueError as e:
        print(str(e), file=sys.stderr)
        return 2

    data = names.model_dump()
    data["function_name"] = names.function_name(args.handler)
    print(json.dumps(data, indent=2))
    return 0


def _synth(args: argparse.Namespace) -> int:
    # Imported lazily so `names` works without loading the CDK
    from aws_cdk import App

    from infra.jcash_backend_stack import JCashBackendStack

    # pydantic's ValidationError is a ValueError too
    try:
        config = load_config(args.stage, config_dir=args.config_dir)
    except ValueError as e:
        print(f"Invalid configuration:\n{e}", file=sys.stderr)
        return 2

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else config.logging.level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    outdir = Path(args.outdir)
    app = App(outdir=str(outdir))
    stack = JCashBackendStack(app, f"JCash-{config.stage}", config=config)
    assembly = app.synth()

    template = assembly.get_stack_by_name(stack.stack_name).template
    print(json.dumps({
        "stack": stack.stack_name,
        "outdir": str(outdir),
        "resources": len(template.get("Resources", {})),
    }, indent=2))
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="jcash", description="JCash backend infrastructure")
    subparsers = parser.add_subparsers(dest="command", required=True)

    names_parser = subparsers.add_parser("names", help="Print stage-qualified resource names")
    names_parser.add_argument("--stage", default=None, help="Deployment stage (default: dev)")
    names_parser.add_argument("--handler", default="handler", help="Handler used in the function name")
    names_parser.set_defaults(func=_names)

    synth_parser = subparsers.add_parser("synth", help="Synthesize the CloudFormation assembly")
    synth_parser.add_argument("--stage", default=None, help="Deployment stage (default: STAGE or dev)")
    synth_parser.add_argument("--config-dir", default=None, help="Directory with <stage>.yml files")
    synth_parser.add_argument("--outdir", default="cdk.out", help="Output directory for the assembly")
    synth_parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    synth_parser.set_defaults(func=_synth)

    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
