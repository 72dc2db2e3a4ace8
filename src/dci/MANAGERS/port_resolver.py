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
Resolution of the host ports and host address through which a container is reachable.
"""
from typing import Any, Dict, List, Optional, Tuple

from ..MODELS.instance import PortMapping
from ..RUNNERS.docker_commands import ContainerCommands
from ..UTILS.console import ConsolePrinter

DEFAULT_TRANSPORT = "tcp"


def normalize_port(container_port: str) -> str:
    """
    Returns the key docker inspect uses for a port, e.g. '80' -> '80/tcp'.
    Ports that already name a transport are returned unchanged.
    """
    if "/" in container_port:
        return container_port
    return f"{container_port}/{DEFAULT_TRANSPORT}"


class GatewayHostStrategy:
    """
    Reaches containers through the gateway of their Docker network.
    Used when the Docker daemon runs directly on this machine.
    """
    name = "gateway"

    def host(self, inspection: Dict[str, Any]) -> str:
        settings = inspection.get("NetworkSettings") or {}
        gateway = settings.get("Gateway") or ""
        if gateway:
            return gateway
        # Containers on user defined compose networks only report per-network gateways
        for network in (settings.get("Networks") or {}).values():
            if network and network.get("Gateway"):
                return network["Gateway"]
        return ""


class VirtualMachineHostStrategy:
    """
    Reaches containers through the virtual machine that hosts the Docker daemon
    (boot2docker / docker-machine).
    """
    name = "virtual-machine"

    def __init__(self, commands: ContainerCommands):
        self.commands = commands

    def host(self, inspection: Dict[str, Any]) -> str:
        return self.commands.virtual_host_ip()


class PortResolver:
    """
    Maps the ports declared for a service to the ports published on the Docker host.
    """

    def __init__(self, commands: ContainerCommands, printer: Optional[ConsolePrinter] = None):
        """
        :param commands: Container runtime used to inspect containers.
        :param printer: Output for progress messages.
        """
        self.commands = commands
        self.printer = printer or ConsolePrinter()
        self._strategy = None

    @property
    def host_strategy(self):
        """
        The host strategy for this environment, detected on first use.
        """
        if self._strategy is None:
            if self.commands.is_virtualized_host():
                self.printer.info("Docker VM environment detected. Using the docker-machine IP for the container.")
                self._strategy = VirtualMachineHostStrategy(self.commands)
            else:
                self.printer.info("Local Docker environment detected. Using the host from the container.")
                self._strategy = GatewayHostStrategy()
        return self._strategy

    def resolve(self, container_id: str, declared_ports: List[PortMapping]) -> Tuple[List[PortMapping], str]:
        """
        Inspects a container once and resolves all of its ports and its host.

        :param container_id: Id of a running container.
        :param declared_ports: Ports as declared in the compose file.
        :return: New port mappings with host ports filled in, and the container host.
        """
        self.printer.info(f"Inspecting container {container_id} to get the port mappings")
        inspection = self.commands.inspect(container_id)
        return self.resolve_ports(inspection, declared_ports), self.host_strategy.host(inspection)

    @staticmethod
    def resolve_ports(inspection: Dict[str, Any], declared_ports: List[PortMapping]) -> List[PortMapping]:
        """
        Looks up the published host port of every declared port.

        :param inspection: A docker inspect document.
        :param declared_ports: Ports as declared in the compose file.
        :return: Resolved mappings. Unpublished ports get an empty host_port.
        """
        published = (inspection.get("NetworkSettings") or {}).get("Ports") or {}
        resolved = []
        for port in declared_ports:
            bindings = published.get(normalize_port(port.container_port))
            resolved.append(PortMapping(
                host_port=_first_host_port(bindings),
                container_port=port.container_port,
                is_debug_port=port.is_debug_port,
            ))
        return resolved


def _first_host_port(bindings: Any) -> str:
    if isinstance(bindings, dict):
        bindings = [bindings]
    for binding in bindings or []:
        host_port = (binding or {}).get("HostPort")
        if host_port:
            return str(host_port)
    return ""
