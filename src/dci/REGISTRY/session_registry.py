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
The set of compose instances currently tracked as running.
"""
from typing import Dict, Iterable, List, Optional

from ..MODELS.instance import InstanceRecord


class SessionRegistry:
    """
    Running instances keyed by instance name.

    A registry is never modified in place: add, remove and replace return a new
    registry, so a caller holding an older one keeps a consistent view.
    """

    def __init__(self, instances: Optional[Iterable[InstanceRecord]] = None):
        """
        Initialize the registry.

        Args:
            instances: Initial records. A later record replaces an earlier one with the same name.
        """
        self._instances: Dict[str, InstanceRecord] = {}
        for instance in instances or []:
            self._instances[instance.instance_name] = instance

    def add(self, instance: InstanceRecord) -> "SessionRegistry":
        """
        Return a registry that also tracks the given instance.

        Args:
            instance: A started and fully resolved instance.

        Returns:
            New SessionRegistry.
        """
        return SessionRegistry([*self._instances.values(), instance])

    def remove(self, instance_names: Iterable[str]) -> "SessionRegistry":
        """
        Return a registry without the named instances. Unknown names are ignored.
        """
        names = set(instance_names)
        return SessionRegistry(i for i in self._instances.values() if i.instance_name not in names)

    def replace(self, instances: Iterable[InstanceRecord]) -> "SessionRegistry":
        """Return a registry holding exactly the given instances."""
        return SessionRegistry(instances)

    def get(self, instance_name: str) -> Optional[InstanceRecord]:
        return self._instances.get(instance_name)

    def all(self) -> List[InstanceRecord]:
        """All tracked instances."""
        return list(self._instances.values())

    def owned_by(self, service_name: str) -> List[InstanceRecord]:
        """
        Instances started by the given project.

        Args:
            service_name: The owning project's service name, compared case-insensitively.

        Returns:
            Matching instances.
        """
        owner = service_name.lower()
        return [i for i in self._instances.values() if i.owner_service_name.lower() == owner]

    @property
    def instance_names(self) -> List[str]:
        return list(self._instances.keys())

    def is_empty(self) -> bool:
        return not self._instances

    def __len__(self) -> int:
        return len(self._instances)

    def __contains__(self, instance_name: object) -> bool:
        return instance_name in self._instances

    def __iter__(self):
        return iter(self.all())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SessionRegistry):
            return NotImplemented
        return self._instances == other._instances

    def __repr__(self) -> str:
        return f"SessionRegistry({self.instance_names})"
