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
Shared fixtures. FakeCommands stands in for the docker CLI and records every call.
"""
import pytest
import yaml

from dci.errors import CommandError
from dci.MANAGERS.container_poller import ContainerPoller
from dci.MODELS.instance import ImageSource, InstanceRecord, PortMapping, ServiceRecord
from dci.MODELS.settings import ComposeSettings
from dci.REGISTRY.instance_store import InstanceStore
from dci.UTILS.console import ConsolePrinter


class FakeCommands:
    """
    Recording ContainerCommands.

    container_ids maps a service name to the id returned by list_container_id,
    or to a list of successive answers. fail holds operation names, or
    (operation, first argument) pairs, that raise CommandError.
    """

    def __init__(self, container_ids=None, inspections=None, fail=None,
                 virtualized=False, vm_ip="192.168.99.100"):
        self.container_ids = dict(container_ids or {})
        self.inspections = dict(inspections or {})
        self.fail = set(fail or [])
        self.virtualized = virtualized
        self.vm_ip = vm_ip
        self.calls = []

    def _record(self, name, *args):
        self.calls.append((name, *args))
        if name in self.fail or (args and (name, args[0]) in self.fail):
            raise CommandError([name, *args], 1, f"{name} failed")

    def called(self, name):
        return [call for call in self.calls if call[0] == name]

    def pull(self, image_name):
        self._record("pull", image_name)

    def build(self, manifest_path):
        self._record("build", manifest_path)

    def up(self, instance_name, manifest_path):
        self._record("up", instance_name, manifest_path)

    def stop(self, instance_name, manifest_path):
        self._record("stop", instance_name, manifest_path)

    def remove_containers(self, instance_name, manifest_path):
        self._record("remove_containers", instance_name, manifest_path)

    def list_container_id(self, instance_name, service_name):
        self._record("list_container_id", instance_name, service_name)
        answer = self.container_ids.get(service_name, "")
        if isinstance(answer, list):
            return answer.pop(0) if answer else ""
        return answer

    def inspect(self, container_id):
        self._record("inspect", container_id)
        return self.inspections.get(container_id, {})

    def is_virtualized_host(self):
        return self.virtualized

    def virtual_host_ip(self):
        self._record("virtual_host_ip")
        return self.vm_ip


def make_inspection(ports=None, gateway="172.17.0.1"):
    """Builds a minimal docker inspect document. ports maps '80/tcp' to a host port."""
    return {
        "NetworkSettings": {
            "Ports": {key: ([{"HostIp": "0.0.0.0", "HostPort": value}] if value else None)
                      for key, value in (ports or {}).items()},
            "Gateway": gateway,
        }
    }


def make_instance(name, owner="myproject", manifest_path="/tmp/.dci-compose-x.yml"):
    return InstanceRecord(
        instance_name=name,
        owner_service_name=owner,
        manifest_path=manifest_path,
        services=[
            ServiceRecord(
                service_name="web",
                image_name="nginx:1.21",
                image_source=ImageSource.DEFINED,
                ports=[PortMapping(host_port="32768", container_port="80")],
                container_id=f"{name}-web",
                container_host="172.17.0.1",
            )
        ],
    )


@pytest.fixture
def commands():
    return FakeCommands()


@pytest.fixture
def printer():
    return ConsolePrinter(color=False)


@pytest.fixture
def compose_file(tmp_path):
    """A compose file with a single 'web' service."""
    path = tmp_path / "docker-compose.yml"
    path.write_text(yaml.safe_dump({
        "services": {
            "web": {"image": "nginx", "ports": ["80"]},
        }
    }))
    return path


@pytest.fixture
def settings(tmp_path, compose_file):
    return ComposeSettings(
        _env_file=None,
        compose_file=str(compose_file),
        service_name="myproject",
        state_file=str(tmp_path / "state" / "instances.json"),
        container_start_timeout_seconds=0,
    )


@pytest.fixture
def store(settings):
    return InstanceStore(settings.state_file)


@pytest.fixture
def poller(commands, printer):
    return ContainerPoller(commands, printer=printer, sleep=lambda seconds: None)
