# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Invocation of the docker and docker compose binaries.
"""
import json
import logging
import os
import platform
import subprocess
from typing import Any, Dict, List, Mapping, Optional, Protocol
from urllib.parse import urlparse

from ..errors import CommandError, ResolutionError

log = logging.getLogger(__name__)

COMPOSE_PROJECT_LABEL = "com.docker.compose.project"
COMPOSE_SERVICE_LABEL = "com.docker.compose.service"


class ContainerCommands(Protocol):
    """
    Operations the instance lifecycle needs from a container runtime.
    Every method raises CommandError when the underlying invocation fails.
    """

    def pull(self, image_name: str) -> None:
        ...

    def build(self, manifest_path: str) -> None:
        ...

    def up(self, instance_name: str, manifest_path: str) -> None:
        ...

    def stop(self, instance_name: str, manifest_path: str) -> None:
        ...

    def remove_containers(self, instance_name: str, manifest_path: str) -> None:
        ...

    def list_container_id(self, instance_name: str, service_name: str) -> str:
        """Return the id of the container running the service, or '' if none exists yet."""
        ...

    def inspect(self, container_id: str) -> Dict[str, Any]:
        """Return the 'docker inspect' document of a container."""
        ...

    def is_virtualized_host(self) -> bool:
        """True when the Docker daemon runs inside a virtual machine (docker-machine)."""
        ...

    def virtual_host_ip(self) -> str:
        ...


class DockerCommands:
    """
    ContainerCommands backed by the docker CLI.
    """

    def __init__(self,
                 docker_binary: str = "docker",
                 compose_argv: Optional[List[str]] = None,
                 environ: Optional[Mapping[str, str]] = None,
                 timeout: Optional[int] = None):
        """
        :param docker_binary: Name or path of the docker binary.
        :param compose_argv: Command used for compose, e.g. ['docker', 'compose'] or ['docker-compose'].
        :param environ: Environment used for detection and passed to child processes.
        :param timeout: Seconds before a single invocation is abandoned. None waits forever.
        """
        self.docker_binary = docker_binary
        self.compose_argv = compose_argv or [docker_binary, "compose"]
        self.environ = dict(os.environ if environ is None else environ)
        self.timeout = timeout

    def _run(self, command: List[str]) -> str:
        """
        Runs a command and returns its stdout.

        :param command: Command and arguments to execute.
        :return: Captured standard output.
        :raises CommandError: If the command exits non-zero, times out or cannot be started.
        """
        log.debug("Running: %s", " ".join(command))
        try:
            result = subprocess.run(
                command,
                env=self.environ,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                shell=False,
            )
        except FileNotFoundError as e:
            raise CommandError(command, 127, str(e)) from e
        except subprocess.TimeoutExpired as e:
            raise CommandError(command, -1, f"timed out after {self.timeout}s") from e

        if result.returncode != 0:
            log.debug("Command failed (%s): %s", result.returncode, result.stderr)
            raise CommandError(command, result.returncode, result.stderr or "")
        return result.stdout or ""

    def _compose(self, instance_name: Optional[str], manifest_path: str, *args: str) -> str:
        command = list(self.compose_argv)
        if instance_name is not None:
            command += ["-p", instance_name]
        command += ["-f", manifest_path, *args]
        return self._run(command)

    def pull(self, image_name: str) -> None:
        self._run([self.docker_binary, "pull", image_name])

    def build(self, manifest_path: str) -> None:
        self._compose(None, manifest_path, "build")

    def up(self, instance_name: str, manifest_path: str) -> None:
        self._compose(instance_name, manifest_path, "up", "-d")

    def stop(self, instance_name: str, manifest_path: str) -> None:
        self._compose(instance_name, manifest_path, "stop")

    def remove_containers(self, instance_name: str, manifest_path: str) -> None:
        # -v also removes the anonymous volumes attached to the containers
        self._compose(instance_name, manifest_path, "rm", "-f", "-v")

    def list_container_id(self, instance_name: str, service_name: str) -> str:
        out = self._run([
            self.docker_binary, "ps", "--all", "--quiet",
            "--filter", f"label={COMPOSE_PROJECT_LABEL}={instance_name}",
            "--filter", f"label={COMPOSE_SERVICE_LABEL}={service_name}",
        ])
        ids = [line.strip() for line in out.splitlines() if line.strip()]
        return ids[0] if ids else ""

    def inspect(self, container_id: str) -> Dict[str, Any]:
        out = self._run([self.docker_binary, "inspect", "--type=container", container_id])
        try:
            documents = json.loads(out)
        except json.JSONDecodeError as e:
            raise ResolutionError(container_id, f"Cannot parse inspect output for container {container_id}: {e}") from e
        if isinstance(documents, list):
            if not documents:
                raise ResolutionError(container_id, f"No inspect output for container {container_id}")
            return documents[0]
        return documents

    def is_virtualized_host(self) -> bool:
        # boot2docker / docker-machine on macOS and Windows
        if not self.environ.get("DOCKER_MACHINE_NAME"):
            return False
        return platform.system() in ("Darwin", "Windows")

    def virtual_host_ip(self) -> str:
        machine = self.environ.get("DOCKER_MACHINE_NAME", "default")
        try:
            ip = self._run(["docker-machine", "ip", machine]).strip()
            if ip:
                return ip
        except CommandError as e:
            log.debug("docker-machine ip failed, falling back to DOCKER_HOST: %s", e)

        host = urlparse(self.environ.get("DOCKER_HOST", "")).hostname
        if not host:
            raise CommandError(["docker-machine", "ip", machine], 1, "Cannot determine the Docker VM address")
        return host
