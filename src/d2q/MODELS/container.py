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
The container model: everything a Quadlet `.container` file can express.
"""
import copy
import re
from dataclasses import dataclass, field
from typing import Any, List, Optional

from ..exceptions import FieldValidationError
from ..UTILS.quoting import escape_value
from .sections import AutoUpdate, NotifyOption, PullPolicy

NAME_PATTERN = re.compile(r'^[a-zA-Z0-9][a-zA-Z0-9_.-]*$')
PORT_PATTERN = re.compile(r'^(\d+:)?\d+(/(?:tcp|udp|sctp))?$')
PROTOCOL_SUFFIX = re.compile(r'/(?:tcp|udp|sctp)$')


def _require_text(value: Any, what: str, field_name: str) -> str:
    if not value or not isinstance(value, str) or not value.strip():
        raise FieldValidationError(f"{what} must be a non-empty string", field=field_name)
    return value.strip()


def image_to_name(image: str) -> str:
    """
    Derives a container name from an image reference:
    'docker.io/library/nginx:1.25' becomes 'nginx'.

    A digest (image@sha256:...) is dropped before the tag.
    """
    if "@" in image:
        image = image.rsplit("@", 1)[0]
    return image.split('/')[-1].split(':')[0]


def _check_port_range(port: str) -> None:
    for part in PROTOCOL_SUFFIX.sub('', port).split(':'):
        try:
            number = int(part)
        except ValueError:
            raise FieldValidationError(f"Invalid port format: {port}", field="publish_port") from None
        if number < 1 or number > 65535:
            raise FieldValidationError(f"Port {number} is out of valid range (1-65535)", field="publish_port")


@dataclass
class Container:
    """
    A Podman container as described by the [Container] section of a Quadlet file.

    Scalars left as None and empty lists are not written out. `read_only_tmpfs`
    is tri-state: None keeps the Quadlet default, False disables it explicitly.
    """

    # Identity
    image: str = ""
    container_name: Optional[str] = None
    exec: Optional[str] = None
    entrypoint: Optional[str] = None
    rootfs: Optional[str] = None
    pod: Optional[str] = None

    # Capabilities and devices
    add_capability: List[str] = field(default_factory=list)
    drop_capability: List[str] = field(default_factory=list)
    add_device: List[str] = field(default_factory=list)

    # Storage
    mount: List[str] = field(default_factory=list)
    volume: List[str] = field(default_factory=list)
    tmpfs: List[str] = field(default_factory=list)

    # Networking
    network: List[str] = field(default_factory=list)
    network_alias: List[str] = field(default_factory=list)
    publish_port: List[str] = field(default_factory=list)
    expose_host_port: List[str] = field(default_factory=list)
    ip: Optional[str] = None
    ip6: Optional[str] = None
    dns: List[str] = field(default_factory=list)
    dns_option: List[str] = field(default_factory=list)
    dns_search: List[str] = field(default_factory=list)
    host_name: Optional[str] = None

    # Environment
    environment: List[str] = field(default_factory=list)
    environment_file: List[str] = field(default_factory=list)
    environment_host: bool = False

    # Security
    no_new_privileges: bool = False
    security_label_disable: bool = False
    security_label_file_type: Optional[str] = None
    security_label_level: Optional[str] = None
    security_label_nested: bool = False
    security_label_type: Optional[str] = None
    seccomp_profile: Optional[str] = None
    mask: List[str] = field(default_factory=list)
    unmask: List[str] = field(default_factory=list)
    secret: List[str] = field(default_factory=list)

    # User and group
    user: Optional[str] = None
    group: Optional[str] = None
    group_add: List[str] = field(default_factory=list)
    user_ns: Optional[str] = None
    uid_map: List[str] = field(default_factory=list)
    gid_map: List[str] = field(default_factory=list)
    sub_uid_map: Optional[str] = None
    sub_gid_map: Optional[str] = None

    # Runtime
    read_only: bool = False
    read_only_tmpfs: Optional[bool] = None
    run_init: bool = False
    working_dir: Optional[str] = None
    timezone: Optional[str] = None
    shm_size: Optional[str] = None

    # Health checks
    health_cmd: Optional[str] = None
    health_interval: Optional[str] = None
    health_on_failure: Optional[str] = None
    health_retries: Optional[str] = None
    health_start_period: Optional[str] = None
    health_timeout: Optional[str] = None
    health_startup_cmd: Optional[str] = None
    health_startup_interval: Optional[str] = None
    health_startup_retries: Optional[str] = None
    health_startup_success: Optional[str] = None
    health_startup_timeout: Optional[str] = None

    # Systemd integration
    notify: NotifyOption = NotifyOption.CONMON
    stop_signal: Optional[str] = None
    stop_timeout: Optional[str] = None

    # Logging
    log_driver: Optional[str] = None
    log_opt: List[str] = field(default_factory=list)

    # Metadata
    label: List[str] = field(default_factory=list)
    annotation: List[str] = field(default_factory=list)

    # Resources
    pids_limit: Optional[str] = None
    ulimit: List[str] = field(default_factory=list)
    sysctl: List[str] = field(default_factory=list)

    # Lifecycle
    auto_update: Optional[str] = None
    pull: Optional[str] = None

    # Raw `podman run` arguments with no dedicated key
    podman_args: Optional[str] = None

    # Compose-only values translated into [Unit]/[Service] by the orchestrator
    depends_on: List[str] = field(default_factory=list)
    restart: Optional[str] = None

    def set_image(self, image: str) -> "Container":
        self.image = _require_text(image, "Image", "image")
        return self

    def set_container_name(self, name: str) -> "Container":
        """
        Sets the container name.

        :raises FieldValidationError: If the name does not start with an
            alphanumeric character or contains anything besides
            alphanumerics, '_', '.' and '-'.
        """
        name = _require_text(name, "Container name", "container_name")
        if not NAME_PATTERN.match(name):
            raise FieldValidationError(
                "Container name must start with alphanumeric character and contain only "
                "alphanumeric characters, underscores, periods, and hyphens",
                field="container_name",
            )
        self.container_name = name
        return self

    def set_exec(self, command: Optional[str]) -> "Container":
        if command is not None and not isinstance(command, str):
            raise FieldValidationError("Exec command must be a string", field="exec")
        self.exec = command or None
        return self

    def add_publish_port(self, port: str) -> "Container":
        """
        Adds a published port: "host:container" or "container", optionally
        followed by "/tcp", "/udp" or "/sctp".

        :raises FieldValidationError: On any other shape, or a port outside 1-65535.
        """
        port = _require_text(port, "Port", "publish_port")
        if not PORT_PATTERN.match(port):
            raise FieldValidationError(
                'Port must be in format "host:container" or "container", '
                'optionally with protocol "/tcp", "/udp", or "/sctp"',
                field="publish_port",
            )
        _check_port_range(port)
        self.publish_port.append(port)
        return self

    def add_environment(self, env: str) -> "Container":
        env = _require_text(env, "Environment variable", "environment")
        if '=' not in env:
            raise FieldValidationError('Environment variable must be in format "KEY=value"', field="environment")
        self.environment.append(env)
        return self

    def add_volume(self, volume: str) -> "Container":
        volume = _require_text(volume, "Volume", "volume")
        if ':' not in volume and not volume.startswith('/'):
            raise FieldValidationError(
                'Volume must be in format "source:destination" or an absolute path', field="volume"
            )
        self.volume.append(volume)
        return self

    def add_label(self, label: str) -> "Container":
        label = _require_text(label, "Label", "label")
        if '=' not in label:
            raise FieldValidationError('Label must be in format "key=value"', field="label")
        self.label.append(label)
        return self

    def set_pod(self, pod: Optional[str]) -> "Container":
        self.pod = pod
        return self

    def set_pull(self, policy: str) -> "Container":
        """
        Sets the image pull policy (always, missing, never or newer).

        :raises FieldValidationError: On any other policy.
        """
        try:
            self.pull = PullPolicy(policy).value
        except ValueError:
            raise FieldValidationError(f"Unknown pull policy: {policy}", field="pull") from None
        return self

    def set_auto_update(self, policy: str) -> "Container":
        try:
            self.auto_update = AutoUpdate(policy).value
        except ValueError:
            raise FieldValidationError(f"Unknown auto-update policy: {policy}", field="auto_update") from None
        return self

    def add_podman_args(self, flag: str, value: Optional[Any] = None) -> "Container":
        """
        Appends a raw `podman run` flag, with an optional escaped value.
        """
        args = [self.podman_args] if self.podman_args else []
        args.append(flag)
        if value is not None:
            args.append(escape_value(value))
        self.podman_args = " ".join(args)
        return self

    def get_default_name(self) -> str:
        """
        The explicit container name, or one derived from the image.
        """
        if self.container_name:
            return self.container_name
        return image_to_name(self.image)

    def validate(self) -> None:
        """
        Re-checks invariants that must hold before serialization.

        :raises FieldValidationError: If the image is missing or a port is malformed.
        """
        if not self.image:
            raise FieldValidationError("Image is required", field="image")
        for port in self.publish_port:
            _check_port_range(port)

    def clone(self) -> "Container":
        """
        Returns an independent copy; list fields are copied element-wise.
        """
        return copy.deepcopy(self)
