"""Stage-qualified resource names.

Every named resource carries the stage as a suffix so several stages can be
deployed into the same account without collisions.
"""

import re

from pydantic import BaseModel

APP_NAME = "JCash"
FUNCTION_PREFIX = "jcash"
DEFAULT_STAGE = "dev"

STAGE_PATTERN = re.compile(r"^[a-z][a-z0-9-]{0,15}$")


class ResourceNames(BaseModel):
    """Names derived from a single stage."""
    stage: str
    database_name: str
    security_group_name: str
    subnet_group_name: str
    api_name: str
    api_stage_name: str

    def function_name(self, handler: str) -> str:
        return f"{FUNCTION_PREFIX}-{handler}-{self.stage}"


def validate_stage(stage: str) -> str:
    """Return the stage unchanged, or raise ValueError if it cannot be used as a name suffix."""
    if not STAGE_PATTERN.match(stage or ""):
        raise ValueError(
            f"Invalid stage {stage!r}: expected lowercase letters, digits or '-', "
            "starting with a letter, at most 16 characters"
        )
    return stage


def resource_names(stage: str | None = None) -> ResourceNames:
    """Build the stage-qualified names used by the backend construct."""
    stage = validate_stage(stage or DEFAULT_STAGE)
    return ResourceNames(
        stage=stage,
        database_name=f"{APP_NAME}DB-{stage}",
        security_group_name=f"{APP_NAME}-Security-Group-{stage}",
        # RDS lowercases subnet group names
        subnet_group_name=f"{FUNCTION_PREFIX}-rds-subnet-group-{stage}",
        api_name=f"{APP_NAME}-API-{stage}",
        api_stage_name=stage,
    )
