"""
Environment-driven settings for the pipeline Lambdas.
"""

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from image_pipeline.exceptions import ConfigurationError

DEFAULT_IMAGE_EXTENSIONS = (".jpeg", ".png")

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _split_extensions(raw: str) -> tuple[str, ...]:
    extensions = []
    for part in raw.split(","):
        part = part.strip().lower()
        if not part:
            continue
        extensions.append(part if part.startswith(".") else f".{part}")
    return tuple(extensions)


@dataclass(frozen=True)
class Settings:
    """Settings shared by every handler; required keys are checked per component."""
    aws_region: str = "us-east-1"
    localstack_endpoint: Optional[str] = None
    log_level: str = "INFO"
    image_table_name: Optional[str] = None
    ses_email_from: Optional[str] = None
    ses_email_to: Optional[str] = None
    ses_region: Optional[str] = None
    report_batch_item_failures: bool = True
    deadline_safety_ms: int = 1000
    allowed_extensions: tuple[str, ...] = field(default=DEFAULT_IMAGE_EXTENSIONS)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ

        try:
            deadline_safety_ms = int(env.get("DEADLINE_SAFETY_MS", "1000"))
        except ValueError:
            raise ConfigurationError(
                message="DEADLINE_SAFETY_MS must be an integer",
                config_key="DEADLINE_SAFETY_MS",
            )

        extensions = _split_extensions(env.get("ALLOWED_IMAGE_EXTENSIONS", ""))

        return cls(
            aws_region=env.get("AWS_REGION", "us-east-1"),
            localstack_endpoint=env.get("LOCALSTACK_ENDPOINT") or None,
            log_level=env.get("LOG_LEVEL", "INFO"),
            image_table_name=env.get("IMAGE_TABLE_NAME") or None,
            ses_email_from=env.get("SES_EMAIL_FROM") or None,
            ses_email_to=env.get("SES_EMAIL_TO") or None,
            ses_region=env.get("SES_REGION") or None,
            report_batch_item_failures=(
                env.get("REPORT_BATCH_ITEM_FAILURES", "true").strip().lower() in _TRUE_VALUES
            ),
            deadline_safety_ms=deadline_safety_ms,
            allowed_extensions=extensions or DEFAULT_IMAGE_EXTENSIONS,
        )

    def require(self, *names: str) -> None:
        """Raise ConfigurationError for the first unset setting in ``names``."""
        for name in names:
            if not getattr(self, name):
                raise ConfigurationError(
                    message=f"{name.upper()} environment variable is not set",
                    config_key=name.upper(),
                )
