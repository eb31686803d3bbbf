import os
from typing import Mapping, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from .constants import HANDLER_ENV, LOG_LEVEL_ENV, RUNTIME_API_ENV, TASK_ROOT_ENV
from .errors import ConfigError


class RuntimeConfig(BaseModel):
    """Settings the bootstrap reads from the execution environment."""

    runtime_api: str = Field(description="host:port authority of the control plane")
    task_root: str = Field(description="Directory holding the function code")
    handler: str = Field(default="", description="Handler reference, entry::method")
    log_level: str = Field(default="INFO")

    model_config = {"frozen": True}

    @field_validator("runtime_api")
    @classmethod
    def _authority_only(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError(f"{RUNTIME_API_ENV} must not be empty")
        if "://" in value:
            raise ValueError(f"{RUNTIME_API_ENV} must be host:port, got {value!r}")
        return value.rstrip("/")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "RuntimeConfig":
        """
        Build the configuration from environment variables.

        Raises:
            ConfigError: If the control-plane authority is missing or invalid
        """
        env = os.environ if environ is None else environ

        runtime_api = env.get(RUNTIME_API_ENV)
        if runtime_api is None:
            raise ConfigError(f"{RUNTIME_API_ENV} is not set")

        try:
            return cls(
                runtime_api=runtime_api,
                task_root=env.get(TASK_ROOT_ENV) or os.getcwd(),
                handler=env.get(HANDLER_ENV, ""),
                log_level=env.get(LOG_LEVEL_ENV, "INFO"),
            )
        except ValidationError as e:
            raise ConfigError(str(e)) from e
