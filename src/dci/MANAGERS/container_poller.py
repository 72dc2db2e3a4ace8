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
Discovery of the containers started for an instance.

'compose up -d' returns before every container exists, so the poller asks the
runtime at a fixed interval until the container shows up or the start timeout
expires.
"""
import time
from typing import Callable, Optional

from tenacity import RetryCallState, RetryError, Retrying, retry_if_result, stop_after_delay, wait_fixed

from ..errors import ResolutionError
from ..MODELS.instance import ServiceRecord
from ..RUNNERS.docker_commands import ContainerCommands
from ..UTILS.console import ConsolePrinter
from .port_resolver import PortResolver

POLL_INTERVAL_SECONDS = 2.0


class ContainerPoller:
    """
    Waits for the container of a service and resolves how to reach it.
    """

    def __init__(self,
                 commands: ContainerCommands,
                 resolver: Optional[PortResolver] = None,
                 printer: Optional[ConsolePrinter] = None,
                 interval: float = POLL_INTERVAL_SECONDS,
                 sleep: Callable[[float], None] = time.sleep):
        """
        Initializes the poller.

        :param commands: Container runtime to query.
        :param resolver: Resolver for ports and host once the container is known.
        :param printer: Output for progress messages.
        :param interval: Seconds between two queries.
        :param sleep: Function used to wait between queries.
        """
        self.commands = commands
        self.printer = printer or ConsolePrinter()
        self.resolver = resolver or PortResolver(commands, self.printer)
        self.interval = interval
        self.sleep = sleep

    def resolve(self, instance_name: str, service_name: str, timeout: float) -> str:
        """
        Blocks until the container of a service exists.

        :param instance_name: Compose project name of the instance.
        :param service_name: Service as named in the compose file.
        :param timeout: Seconds to wait before giving up.
        :return: The container id.
        :raises ResolutionError: If no container appeared within the timeout.
        """
        deadline = time.monotonic() + timeout

        def announce(retry_state: RetryCallState):
            remaining = max(0, int(deadline - time.monotonic()))
            self.printer.info(
                f"Waiting for container Id to be available for service '{service_name}' "
                f"time remaining: {remaining}"
            )

        retrying = Retrying(
            stop=stop_after_delay(timeout),
            wait=wait_fixed(self.interval),
            retry=retry_if_result(lambda container_id: not container_id),
            before_sleep=announce,
            sleep=self.sleep,
        )
        try:
            container_id = retrying(self.commands.list_container_id, instance_name, service_name)
        except RetryError as e:
            self.printer.error(f"Cannot determine container Id for service: {service_name}")
            raise ResolutionError(service_name) from e

        self.printer.info(f"{service_name} Container Id: {container_id}")
        return container_id

    def resolve_service(self, instance_name: str, service: ServiceRecord, timeout: float) -> ServiceRecord:
        """
        Resolves the container, ports and host of a service.

        :param instance_name: Compose project name of the instance.
        :param service: The pre-resolution service.
        :param timeout: Seconds to wait for the container.
        :return: A new, resolved ServiceRecord. The given one is left untouched.
        """
        container_id = self.resolve(instance_name, service.service_name, timeout)
        try:
            ports, host = self.resolver.resolve(container_id, service.ports)
        except ResolutionError as e:
            raise ResolutionError(
                service.service_name,
                f"Cannot inspect container {container_id} for service {service.service_name}: {e.message}",
            ) from e

        return service.model_copy(update={
            "ports": ports,
            "container_id": container_id,
            "container_host": host,
        })
