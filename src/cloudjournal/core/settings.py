"""
Agent settings, resolved once at startup from the environment.

Only the destination stream is required; everything else has a value that
works for a typical host shipping its systemd journal.
"""
import os
from typing import Any, ClassVar, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from cloudjournal.utility.exceptions import ConfigError

DEFAULT_CURSOR_FILE = "/var/lib/cloudjournal/current-cursor"

# PutLogEvents accepts at most 10,000 events per request
MAX_BATCH_SIZE = 10_000


class ShipperSettings(BaseModel):
    """
    Immutable configuration for one shipping agent.

    Example:
        ```python
        settings = ShipperSettings.load_from_env()
        settings.batch_size  # 500 unless BATCH_SIZE is set
        ```
    """

    model_config = ConfigDict(frozen=True)

    # Destination
    log_group_name: str = Field(..., description="Destination log group")
    log_stream_name: str = Field(..., description="Destination log stream")
    region: Optional[str] = Field(
        default=None, description="AWS region (default: boto3 resolution chain)"
    )
    endpoint_url: Optional[str] = Field(
        default=None, description="Alternate ingestion endpoint"
    )
    sink_type: str = Field(default="cloudwatch", description="Remote sink type")

    # Source
    journal_type: str = Field(default="systemd", description="Journal source type")
    journal_path: Optional[str] = Field(
        default=None, description="Journal file (ndjson) or directory (systemd)"
    )

    # Shipping loop
    batch_size: int = Field(
        default=500,
        ge=1,
        le=MAX_BATCH_SIZE,
        description="Max records per read/upload cycle",
    )
    cursor_file: str = Field(
        default=DEFAULT_CURSOR_FILE, description="Cursor persistence location"
    )
    poll_interval: float = Field(
        default=0.5, gt=0, description="Idle wait between empty reads (seconds)"
    )

    # Upload retries
    upload_retries: int = Field(default=5, ge=1, description="Attempts per upload")
    upload_retry_delay: float = Field(
        default=1.0, gt=0, description="Initial backoff between attempts (seconds)"
    )
    upload_timeout: float = Field(
        default=60.0, gt=0, description="Timeout per upload attempt (seconds)"
    )

    @field_validator("log_group_name", "log_stream_name", "cursor_file")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("must not be empty")
        return v

    @field_validator("journal_type")
    @classmethod
    def validate_journal_type(cls, v: str) -> str:
        valid_types = ["systemd", "ndjson"]
        if v not in valid_types:
            raise ValueError(f"Journal type must be one of {valid_types}, got '{v}'")
        return v

    @field_validator("sink_type")
    @classmethod
    def validate_sink_type(cls, v: str) -> str:
        valid_types = ["cloudwatch"]
        if v not in valid_types:
            raise ValueError(f"Sink type must be one of {valid_types}, got '{v}'")
        return v

    # Environment variable -> field
    ENV_VARS: ClassVar[Dict[str, str]] = {
        "LOG_GROUP_NAME": "log_group_name",
        "LOG_STREAM_NAME": "log_stream_name",
        "BATCH_SIZE": "batch_size",
        "JOURNAL_CURSOR_FILE": "cursor_file",
        "JOURNAL_TYPE": "journal_type",
        "JOURNAL_PATH": "journal_path",
        "LOGS_ENDPOINT_URL": "endpoint_url",
    }

    @classmethod
    def load_from_env(
        cls, environ: Optional[Mapping[str, str]] = None, **overrides: Any
    ) -> "ShipperSettings":
        """
        Load settings from environment variables.

        Args:
            environ: Mapping to read from (default: os.environ)
            **overrides: Field values that win over the environment

        Raises:
            ConfigError: If a required variable is missing or a value is invalid
        """
        environ = os.environ if environ is None else environ

        data: Dict[str, Any] = {}
        for var, field in cls.ENV_VARS.items():
            value = environ.get(var)
            if value is not None and value != "":
                data[field] = value

        region = environ.get("AWS_REGION") or environ.get("AWS_DEFAULT_REGION")
        if region:
            data["region"] = region

        data.update(overrides)

        for var in ("LOG_GROUP_NAME", "LOG_STREAM_NAME"):
            if cls.ENV_VARS[var] not in data:
                raise ConfigError(f"Missing {var} environment variable")

        try:
            settings = cls(**data)
        except ValidationError as e:
            field_to_var = {field: var for var, field in cls.ENV_VARS.items()}
            problems = []
            for error in e.errors():
                field = error["loc"][0] if error["loc"] else ""
                name = field_to_var.get(field, field)
                problems.append(f"{name}: {error['msg']}")
            raise ConfigError(
                "Invalid configuration: " + "; ".join(problems)
            ) from e

        if settings.journal_type == "ndjson" and not settings.journal_path:
            raise ConfigError("JOURNAL_PATH is required when JOURNAL_TYPE=ndjson")

        return settings

    def get_home_options(self) -> Dict[str, Any]:
        """Options for JournalHome.create()."""
        options: Dict[str, Any] = {"type": self.journal_type}
        if self.journal_path:
            options["path"] = self.journal_path
        return options

    def get_sink_options(self) -> Dict[str, Any]:
        """Options for LogSink.create()."""
        return {
            "type": self.sink_type,
            "log_group_name": self.log_group_name,
            "log_stream_name": self.log_stream_name,
            "region": self.region,
            "endpoint_url": self.endpoint_url,
        }
