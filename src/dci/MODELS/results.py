"""
Outcomes of the start workflow.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from ..errors import DciError
from .instance import InstanceRecord
from ..REGISTRY.session_registry import SessionRegistry


class StartState(str, Enum):
    """
    Stages of the start workflow. A failure records the stage it happened in.
    """
    IDLE = "idle"
    BUILDING_IMAGE = "building_image"
    PULLING_IMAGES = "pulling_images"
    STARTING_COMPOSE = "starting_compose"
    RESOLVING_SERVICES = "resolving_services"
    PERSISTED = "persisted"
    ROLLING_BACK = "rolling_back"
    FAILED = "failed"


@dataclass(frozen=True)
class StartSuccess:
    """The instance is running, resolved and recorded in the registry."""
    registry: SessionRegistry
    instance: InstanceRecord

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class StartFailure:
    """
    The instance could not be started. registry is the unchanged input registry.
    instance_name is None when the failure happened before a name was generated.
    """
    registry: SessionRegistry
    failed_state: StartState
    error: DciError
    instance_name: Optional[str] = None
    rolled_back: bool = False

    @property
    def ok(self) -> bool:
        return False

    @property
    def message(self) -> str:
        if self.instance_name:
            return f"Error starting Docker Compose instance {self.instance_name}: {self.error.message}"
        return f"Error starting Docker Compose instance: {self.error.message}"


StartResult = Union[StartSuccess, StartFailure]
