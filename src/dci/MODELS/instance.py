"""
Models describing running Docker Compose instances and their services.
"""
from typing import List, Any, Optional
from enum import Enum
from pydantic import BaseModel, ConfigDict


class ImageSource(str, Enum):
    """
    Where the image for a service comes from.
    """
    CACHE = "cache"
    DEFINED = "defined"
    BUILD = "build"


class PortMapping(BaseModel):
    """
    Maps a port declared in the compose file to the port exposed on the Docker host.
    An empty host_port means the container port is not published.
    """
    model_config = ConfigDict(frozen=True)

    host_port: str = ""
    container_port: str
    is_debug_port: bool = False


class ServiceRecord(BaseModel):
    """
    A single compose service. container_id and container_host stay empty until
    the service has been resolved against a running container.
    """
    model_config = ConfigDict(frozen=True)

    service_name: str
    image_name: str
    image_source: ImageSource = ImageSource.DEFINED
    ports: List[PortMapping] = []
    container_id: str = ""
    container_host: str = ""

    @property
    def version_tag(self) -> str:
        """
        Tag portion of the image name, 'latest' when none is given.
        """
        image = self.image_name.split("@", 1)[0]
        last_colon = image.rfind(":")
        if last_colon == -1 or "/" in image[last_colon + 1:]:
            return "latest"
        return image[last_colon + 1:]

    @property
    def is_resolved(self) -> bool:
        return bool(self.container_id)


class InstanceRecord(BaseModel):
    """
    A running, uniquely named Docker Compose instance.

    owner_service_name ties the instance to the project that started it so that
    a bare 'stop' only tears down that project's instances.
    """
    instance_name: str
    owner_service_name: str
    manifest_path: str
    services: List[ServiceRecord] = []
    metadata: Optional[Any] = None
