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
Start, stop and listing of uniquely named Docker Compose instances.
"""
import logging
import os
import random
from typing import Callable, Iterable, List, Optional

from ..errors import DciError
from ..MODELS.instance import InstanceRecord
from ..MODELS.results import StartFailure, StartResult, StartState, StartSuccess
from ..MODELS.settings import ComposeSettings
from ..PARSERS.compose_parser import ComposeManifest
from ..REGISTRY.instance_store import InstanceStore
from ..REGISTRY.session_registry import SessionRegistry
from ..RUNNERS.docker_commands import ContainerCommands
from ..UTILS.console import ConsolePrinter
from .container_poller import ContainerPoller
from .image_coordinator import ImageCoordinator

log = logging.getLogger(__name__)


def generate_instance_name() -> str:
    """
    Random instance name. Collisions with running instances are possible but unlikely.
    """
    return str(random.randint(0, 999999))


class InstanceOrchestrator:
    """
    Runs the start and stop workflows of compose instances.

    The registry of running instances is passed in and returned explicitly;
    the orchestrator persists it after a successful start and after every stop.
    """

    def __init__(self,
                 settings: ComposeSettings,
                 commands: ContainerCommands,
                 store: InstanceStore,
                 printer: Optional[ConsolePrinter] = None,
                 manifest: Optional[ComposeManifest] = None,
                 poller: Optional[ContainerPoller] = None,
                 images: Optional[ImageCoordinator] = None,
                 name_generator: Callable[[], str] = generate_instance_name):
        """
        Initializes the orchestrator.

        :param settings: Project configuration.
        :param commands: Container runtime.
        :param store: Persistence for the registry.
        :param printer: Console output.
        :param manifest: Compose file reader and rewriter.
        :param poller: Container discovery. Built from commands when omitted.
        :param images: Image build and pull coordination. Built from commands when omitted.
        :param name_generator: Produces new instance names.
        """
        self.settings = settings
        self.commands = commands
        self.store = store
        self.printer = printer or ConsolePrinter()
        self.manifest = manifest or ComposeManifest()
        self.poller = poller or ContainerPoller(commands, printer=self.printer)
        self.images = images or ImageCoordinator(commands, self.printer)
        self.name_generator = name_generator

    def start(self, registry: SessionRegistry, skip_pull: bool = False, skip_build: bool = False) -> StartResult:
        """
        Builds and pulls images, starts a new instance and resolves all of its services.

        Nothing is retried. A failure once containers may exist stops and removes
        them before returning; the instance is only recorded when every service resolved.

        :param registry: The currently tracked instances.
        :param skip_pull: Use locally cached images instead of pulling.
        :param skip_build: Use the current local image instead of building.
        :return: StartSuccess with the updated registry, or StartFailure with the unchanged one.
        """
        compose_file = self.settings.compose_file
        self.printer.bold("Creating Local Docker Compose Environment")
        self.printer.bold(f"Reading Compose File: {compose_file}")

        try:
            content = self.manifest.read(compose_file)
            manifest_path, services = self.manifest.rewrite(
                content, output_dir=os.path.dirname(os.path.abspath(compose_file)))
        except DciError as e:
            return self._fail(registry, StartState.BUILDING_IMAGE, e)

        try:
            self.images.build_image(manifest_path, no_build=self.settings.no_build, skip_build=skip_build)
        except DciError as e:
            self.manifest.discard(manifest_path)
            return self._fail(registry, StartState.BUILDING_IMAGE, e)

        try:
            self.images.pull_images(services, skip_pull=skip_pull)
        except DciError as e:
            self.manifest.discard(manifest_path)
            return self._fail(registry, StartState.PULLING_IMAGES, e)

        instance_name = self.name_generator()
        log.debug("Starting instance %s from %s", instance_name, manifest_path)

        try:
            self.commands.up(instance_name, manifest_path)
        except DciError as e:
            rolled_back = self._rollback(instance_name, manifest_path)
            return self._fail(registry, StartState.STARTING_COMPOSE, e, instance_name, rolled_back)

        timeout = self.settings.container_start_timeout_seconds
        try:
            resolved = [self.poller.resolve_service(instance_name, s, timeout) for s in services]
        except DciError as e:
            rolled_back = self._rollback(instance_name, manifest_path)
            return self._fail(registry, StartState.RESOLVING_SERVICES, e, instance_name, rolled_back)

        instance = InstanceRecord(
            instance_name=instance_name,
            owner_service_name=self.settings.service_name,
            manifest_path=manifest_path,
            services=resolved,
        )
        self.printer.instance_table(instance)

        updated = registry.add(instance)
        self.store.save(updated)
        return StartSuccess(registry=updated, instance=instance)

    def stop(self, registry: SessionRegistry, instance_names: Optional[Iterable[str]] = None) -> SessionRegistry:
        """
        Stops instances and removes them from the registry.

        Each instance is stopped independently. An instance whose stop fails is
        reported and stays in the registry, since it may still be running.

        :param registry: The currently tracked instances.
        :param instance_names: Instances to stop. None or empty stops every
                               instance owned by the configured service name.
        :return: The registry without the stopped instances.
        """
        names = list(dict.fromkeys(instance_names or []))
        if names:
            for name in names:
                if name not in registry:
                    self.printer.warning(f"Instance {name} is not a running Docker Compose instance. Ignoring.")
            targets = {name for name in names if name in registry}
        else:
            targets = {i.instance_name for i in registry.owned_by(self.settings.service_name)}

        to_remove = [i for i in registry if i.instance_name in targets]
        if not to_remove:
            self.printer.warning("No local Docker Compose instances found to stop from current project.")

        stopped = []
        for instance in to_remove:
            self.printer.bold(f"Stopping and removing local Docker instance: {instance.instance_name}")
            try:
                self._shutdown(instance.instance_name, instance.manifest_path,
                               remove=self.settings.remove_containers_on_shutdown)
            except DciError as e:
                self.printer.warning(f"Failed to stop instance {instance.instance_name}: {e.message}")
                continue
            self.manifest.discard(instance.manifest_path)
            stopped.append(instance.instance_name)

        updated = registry.remove(stopped)
        self.store.save(updated)
        return updated

    def list_instances(self, registry: SessionRegistry) -> Optional[List[InstanceRecord]]:
        """
        :param registry: The currently tracked instances.
        :return: All tracked instances, or None when nothing is running.
        """
        if registry.is_empty():
            return None
        return registry.all()

    def _shutdown(self, instance_name: str, manifest_path: str, remove: bool):
        self.commands.stop(instance_name, manifest_path)
        if remove:
            self.commands.remove_containers(instance_name, manifest_path)

    def _rollback(self, instance_name: str, manifest_path: str) -> bool:
        """
        Stops and removes whatever a failed start created.
        Removal is attempted even when stopping failed, 'rm -f' also kills running containers.

        :return: True if both cleanup commands succeeded.
        """
        self.printer.error(f"Error starting Docker Compose instance {instance_name}. Shutting down containers...")
        cleaned = True
        for cleanup in (self.commands.stop, self.commands.remove_containers):
            try:
                cleanup(instance_name, manifest_path)
            except DciError as e:
                self.printer.warning(f"Cleanup of instance {instance_name} failed: {e.message}")
                cleaned = False
        self.manifest.discard(manifest_path)
        return cleaned

    def _fail(self, registry: SessionRegistry, failed_state: StartState, error: DciError,
              instance_name: Optional[str] = None, rolled_back: bool = False) -> StartFailure:
        log.debug("Start failed during %s: %s", failed_state.value, error)
        self.printer.error(error.message)
        return StartFailure(
            registry=registry,
            failed_state=failed_state,
            error=error,
            instance_name=instance_name,
            rolled_back=rolled_back,
        )
