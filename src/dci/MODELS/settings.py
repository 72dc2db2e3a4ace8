"""
Settings controlling how compose instances are built, started and stopped.
"""
import os
import shlex
from pathlib import Path
from typing import List, Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_service_name() -> str:
    return Path.cwd().name.lower()


def _default_state_file() -> str:
    return str(Path.home() / ".dci" / "instances.json")


class ComposeSettings(BaseSettings):
    """
    Configuration for a project using compose instances.
    Every field can be set through a DCI_<FIELD> environment variable or a .env file.
    """
    model_config = SettingsConfigDict(env_prefix="DCI_", env_file=".env", extra="ignore")

    compose_file: str = "docker-compose.yml"
    service_name: str = Field(default_factory=_default_service_name)
    no_build: bool = False
    remove_containers_on_shutdown: bool = True
    container_start_timeout_seconds: int = Field(default=500, ge=0)
    # Limit for a single docker invocation, unlimited when unset
    command_timeout_seconds: Optional[int] = Field(default=None, gt=0)
    docker_binary: str = "docker"
    compose_command: str = "docker compose"
    state_file: str = Field(default_factory=_default_state_file)

    @field_validator("service_name")
    @classmethod
    def _lowercase_service_name(cls, value: str) -> str:
        return value.lower()

    @field_validator("state_file")
    @classmethod
    def _expand_state_file(cls, value: str) -> str:
        return os.path.expanduser(value)

    @property
    def compose_argv(self) -> List[str]:
        """
        The compose command split into arguments, e.g. ['docker', 'compose'].
        """
        return shlex.split(self.compose_command)

    @classmethod
    def load(cls, env_file: Optional[str] = ".env", **overrides) -> "ComposeSettings":
        """
        Builds settings from defaults, a .env file, the process environment and
        explicit overrides, later sources taking precedence.

        :param env_file: Path to a .env file. Ignored when missing, not read when None.
        :param overrides: Field values that win over everything else. None values are ignored.
        :return: Validated settings.
        """
        values = {k: v for k, v in overrides.items() if v is not None}
        return cls(_env_file=env_file, **values)
