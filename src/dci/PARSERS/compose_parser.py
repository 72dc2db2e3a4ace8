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
Reading and rewriting of Docker Compose files for uniquely named instances.
"""
import os
import re
import tempfile
import yaml
from typing import Dict, Any, List, Optional, Set, Tuple
from ..MODELS.instance import ImageSource, PortMapping, ServiceRecord
from ..UTILS.string_interpolation import EnvironmentInterpolator
from ..errors import ManifestError

REWRITTEN_PREFIX = ".dci-compose-"


class ComposeManifest:
    """
    Turns a docker-compose.yml into the service list of an instance and a
    rewritten compose file that several instances can run side by side.
    """
    SKIP_PULL_TAG = "<skipPull>"
    LOCAL_BUILD_TAG = "<localBuild>"
    # JDWP style debug agents, e.g. -agentlib:jdwp=transport=dt_socket,server=y,address=*:5005
    DEBUG_ADDRESS_RE = re.compile(r'address=(?:[^\s,]*:)?(\d+)')

    def __init__(self, context: Optional[Dict[str, str]] = None):
        """
        Initializes the manifest provider with an optional environment context for interpolation.

        :param context: A dictionary of environment variables for interpolation.
        """
        self.context = context if context is not None else dict(os.environ)

    def read(self, compose_path: str) -> str:
        """
        Reads a compose file.

        :param compose_path: Path to the compose file.
        :return: Raw file content.
        :raises ManifestError: If the file does not exist or cannot be read.
        """
        try:
            with open(compose_path, 'r') as f:
                return f.read()
        except OSError as e:
            raise ManifestError(f"Cannot read compose file {compose_path}: {e}") from e

    def rewrite(self, content: str, output_dir: Optional[str] = None) -> Tuple[str, List[ServiceRecord]]:
        """
        Processes custom image tags and port declarations and saves the result.

        :param content: YAML content of the compose file.
        :param output_dir: Directory for the rewritten file. Keep it next to the
                           original so relative build contexts and volumes still resolve.
        :return: Path of the rewritten compose file and the declared services.
        :raises ManifestError: If the content is not a compose file with services.
        """
        data = self.parse(content)

        services = []
        for name, spec in data['services'].items():
            if spec is None:
                spec = data['services'][name] = {}
            if not isinstance(spec, dict):
                raise ManifestError(f"Service {name} must be a mapping, got: {spec!r}")
            services.append(self._process_service(name, spec))

        fd, path = tempfile.mkstemp(prefix=REWRITTEN_PREFIX, suffix=".yml", dir=output_dir)
        with os.fdopen(fd, 'w') as f:
            yaml.safe_dump(self._escape(data), f, sort_keys=False)
        return path, services

    def parse(self, content: str) -> Dict[str, Any]:
        """
        Parses the YAML document and interpolates variables in its string values.
        Substituted values never change the structure of the document.

        :param content: YAML content of the compose file.
        :return: The compose document.
        """
        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise ManifestError(f"Invalid compose file: {e}") from e

        data = self._interpolate(data)
        if not isinstance(data, dict) or not isinstance(data.get('services'), dict) or not data['services']:
            raise ManifestError("Compose file does not declare any services")
        return data

    def _interpolate(self, node: Any) -> Any:
        if isinstance(node, str):
            return EnvironmentInterpolator.interpolate(node, self.context)
        if isinstance(node, dict):
            return {key: self._interpolate(value) for key, value in node.items()}
        if isinstance(node, list):
            return [self._interpolate(value) for value in node]
        return node

    @classmethod
    def _escape(cls, node: Any) -> Any:
        """
        Escapes every $ so compose reads the rewritten file's values literally.
        """
        if isinstance(node, str):
            return node.replace('$', '$$')
        if isinstance(node, dict):
            return {key: cls._escape(value) for key, value in node.items()}
        if isinstance(node, list):
            return [cls._escape(value) for value in node]
        return node

    @staticmethod
    def discard(manifest_path: str):
        """
        Deletes a compose file produced by rewrite. Other files are left alone.

        :param manifest_path: Path returned by rewrite.
        """
        if os.path.basename(manifest_path).startswith(REWRITTEN_PREFIX) and os.path.exists(manifest_path):
            os.remove(manifest_path)

    def _process_service(self, name: str, spec: Dict[str, Any]) -> ServiceRecord:
        """
        Reads one service and rewrites its image and ports in place.

        :param name: The name of the service.
        :param spec: The service specification dictionary, modified in place.
        :return: The pre-resolution ServiceRecord.
        """
        image = str(spec.get('image', '') or '')
        if image.endswith(self.SKIP_PULL_TAG):
            image = image[:-len(self.SKIP_PULL_TAG)]
            source = ImageSource.CACHE
        elif image.endswith(self.LOCAL_BUILD_TAG):
            image = image[:-len(self.LOCAL_BUILD_TAG)]
            source = ImageSource.BUILD
        elif 'build' in spec:
            source = ImageSource.BUILD
        else:
            source = ImageSource.DEFINED

        if image:
            spec['image'] = image
        else:
            image = name

        debug_ports = self._debug_ports(spec.get('environment'))

        ports = []
        rewritten = []
        for p in spec.get('ports') or []:
            container_port, entry = self._parse_port(name, p)
            ports.append(PortMapping(
                container_port=container_port,
                is_debug_port=container_port.split('/')[0] in debug_ports,
            ))
            rewritten.append(entry)
        if 'ports' in spec:
            spec['ports'] = rewritten

        return ServiceRecord(service_name=name, image_name=image, image_source=source, ports=ports)

    def _parse_port(self, service_name: str, port: Any) -> Tuple[str, Any]:
        """
        Extracts the container port from a port declaration and drops any fixed
        host port so Docker assigns one per instance.

        :param service_name: Service owning the port, for error messages.
        :param port: Short ("8080:80/udp") or long (dict) port syntax.
        :return: The container port as declared and the rewritten declaration.
        """
        if isinstance(port, dict):
            if 'target' not in port:
                raise ManifestError(f"Port of service {service_name} has no target: {port}")
            container_port = str(port['target'])
            if port.get('protocol'):
                container_port = f"{container_port}/{port['protocol']}"
            entry = {k: v for k, v in port.items() if k != 'published'}
            return container_port, entry

        if isinstance(port, (int, str)) and str(port).strip():
            text = str(port).strip()
            mapping, _, transport = text.partition('/')
            parts = mapping.rsplit(':', 2)
            container_port = parts[-1] + (f"/{transport}" if transport else "")
            if len(parts) == 3 and parts[0]:
                # Keep the bind address, let Docker pick the host port
                return container_port, f"{parts[0]}::{container_port}"
            return container_port, container_port

        raise ManifestError(f"Invalid port declaration for service {service_name}: {port!r}")

    def _debug_ports(self, environment: Any) -> Set[str]:
        """
        Finds ports a debug agent listens on from the service environment.

        :param environment: List of KEY=VALUE strings or a mapping.
        :return: Debug port numbers.
        """
        if isinstance(environment, dict):
            values = [str(v) for v in environment.values() if v is not None]
        elif isinstance(environment, list):
            values = [str(e).split('=', 1)[1] for e in environment if '=' in str(e)]
        else:
            values = []

        ports = set()
        for value in values:
            ports.update(self.DEBUG_ADDRESS_RE.findall(value))
        return ports
