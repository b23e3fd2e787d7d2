"""Noxfile for the JCash backend infrastructure.

Sessions:
- tests: pytest with coverage over the CDK code and the Lambda handler
- synth: synthesize every packaged stage from an installed (non-editable) wheel
- lint / format / typecheck / security
"""

import shutil
from pathlib import Path

import nox

PYTHON_VERSIONS = ["3.11"]

PACKAGE_DIR = "jcash"
INFRA_DIR = "infra"
TESTS_DIR = "tests"
STAGES = ["dev", "prod"]

nox.options.sessions = ["tests", "lint", "typecheck"]


@nox.session(python=PYTHON_VERSIONS)
def tests(session):
    """Run the test suite with coverage."""
    session.install(".[test]")
    session.run(
        "pytest",
        f"--cov={PACKAGE_DIR}",
        f"--cov={INFRA_DIR}",
        "--cov-report=term-missing",
        "--cov-fail-under=80",
        *session.posargs,
    )


@nox.session(python=PYTHON_VERSIONS)
@nox.parametrize("stage", STAGES)
def synth(session, stage):
    """Synthesize one stage from a regular install, outside the source tree."""
    session.install(".")
    tmp = session.create_tmp()
    # Run from the temp dir so nothing is picked up from the checkout
    with session.chdir(tmp):
        session.run("jcash", "synth", "--stage", stage, "--outdir", f"cdk.out-{stage}")


@nox.session(python=PYTHON_VERSIONS)
def lint(session):
    session.install("ruff")
    session.run("ruff", "check", PACKAGE_DIR, INFRA_DIR, TESTS_DIR, "noxfile.py")


@nox.session(python=PYTHON_VERSIONS)
def format(session):
    session.install("black", "ruff")
    session.run("black", PACKAGE_DIR, INFRA_DIR, TESTS_DIR, "noxfile.py")
    session.run("ruff", "check", "--fix", PACKAGE_DIR, INFRA_DIR, TESTS_DIR)


@nox.session(python=PYTHON_VERSIONS)
def typecheck(session):
    """Type check the CDK code and the Lambda handler."""
    session.install(".[test]", "mypy", "types-PyYAML", "boto3-stubs[secretsmanager]")
    session.run("mypy", PACKAGE_DIR, INFRA_DIR)


@nox.session(python=PYTHON_VERSIONS)
def security(session):
    """Static security scan of the CDK code and the Lambda asset."""
    session.install("bandit[toml]")
    session.run("bandit", "-r", PACKAGE_DIR, INFRA_DIR)


@nox.session(python=False)
def clean(session):
    """Remove synthesized assemblies, build output and caches."""
    for name in ("cdk.out", "build", "dist", "htmlcov", ".coverage"):
        path = Path(name)
        if path.is_dir():
            session.log(f"Removing directory: {path}")
            shutil.rmtree(path)
        elif path.is_file():
            session.log(f"Removing file: {path}")
            path.unlink()
    for pattern in ("*.egg-info", "**/__pycache__", ".*_cache"):
        for path in Path(".").glob(pattern):
            session.log(f"Removing directory: {path}")
            shutil.rmtree(path)
