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
Durable storage for the session registry.
Keeps the list of running instances in a JSON file so that a later invocation
can list or stop what an earlier one started.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import ValidationError

from ..MODELS.instance import InstanceRecord
from .session_registry import SessionRegistry

log = logging.getLogger(__name__)


class InstanceStore:
    """
    Loads and saves the session registry.
    """

    def __init__(self, state_file: Optional[str] = None):
        """
        Initialize the store.

        Args:
            state_file: Path of the JSON state file. Defaults to ~/.dci/instances.json
        """
        if state_file:
            self.state_file = Path(state_file)
        else:
            self.state_file = Path.home() / ".dci" / "instances.json"

    def load(self) -> SessionRegistry:
        """
        Load the registry from disk.

        Returns:
            The persisted registry, or an empty one if nothing is stored or the
            file cannot be read.
        """
        if not self.state_file.exists():
            return SessionRegistry()

        try:
            with open(self.state_file, 'r') as f:
                data: Dict[str, Any] = json.load(f)
            instances = [InstanceRecord.model_validate(item) for item in data.get("instances", [])]
        except (json.JSONDecodeError, OSError, ValidationError, AttributeError) as e:
            log.warning("Ignoring unreadable instance state file %s: %s", self.state_file, e)
            return SessionRegistry()

        return SessionRegistry(instances)

    def save(self, registry: SessionRegistry) -> None:
        """
        Save the registry to disk. An empty registry removes the state file so
        that "nothing running" and "no state" look the same.

        Args:
            registry: The registry to persist.
        """
        if registry.is_empty():
            self.clear()
            return

        self.state_file.parent.mkdir(parents=True, exist_ok=True)
        payload = {"instances": [i.model_dump(mode="json") for i in registry.all()]}

        # Atomic replace
        fd, tmp_path = tempfile.mkstemp(dir=str(self.state_file.parent), suffix=".tmp")
        try:
            with os.fdopen(fd, 'w') as f:
                json.dump(payload, f, indent=2)
            os.replace(tmp_path, self.state_file)
        except OSError:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise
        log.debug("Saved %d instance(s) to %s", len(registry), self.state_file)

    def clear(self) -> None:
        """Remove all persisted state."""
        if self.state_file.exists():
            self.state_file.unlink()
            log.debug("Removed instance state file %s", self.state_file)
