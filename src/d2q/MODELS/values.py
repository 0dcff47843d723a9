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
Structured forms of the text values stored on a Container.

Each type parses the string written after `Key=` in a unit file and renders
back to it, so generated lines can be checked against what was configured.
"""
from dataclasses import dataclass, field
from typing import List, Optional

from ..exceptions import FieldValidationError

PROTOCOLS = ("tcp", "udp", "sctp")


@dataclass
class PortMapping:
    """
    A published port.

    Examples:
        - 8080:80 -> host 8080, container 80, tcp
        - 80/udp -> host 80, container 80, udp
    """

    host_port: str
    container_port: str
    protocol: str = "tcp"

    @classmethod
    def parse(cls, port: str) -> "PortMapping":
        """
        Parse a `PublishPort=` value.

        Args:
            port: Port string such as '8080:80/udp'.

        Returns:
            Parsed PortMapping.
        """
        protocol = "tcp"
        spec = port.strip()
        if "/" in spec:
            spec, protocol = spec.split("/", 1)
            if protocol not in PROTOCOLS:
                raise FieldValidationError(f"Unknown port protocol '{protocol}' in {port}", field="port")
        if ":" in spec:
            host_port, container_port = spec.split(":", 1)
        else:
            host_port = container_port = spec
        if not host_port or not container_port:
            raise FieldValidationError(f"Invalid port mapping: {port}", field="port")
        return cls(host_port=host_port, container_port=container_port, protocol=protocol)

    def __str__(self) -> str:
        if self.host_port == self.container_port:
            base = self.host_port
        else:
            base = f"{self.host_port}:{self.container_port}"
        if self.protocol == "tcp":
            return base
        return f"{base}/{self.protocol}"


@dataclass
class Volume:
    """
    A `source:destination[:options]` volume specification.
    """

    source: str
    destination: str
    options: List[str] = field(default_factory=list)

    @classmethod
    def parse(cls, volume: str) -> "Volume":
        parts = volume.split(":")
        if len(parts) < 2:
            raise FieldValidationError(f"Invalid volume format: {volume}", field="volume")
        options = parts[2].split(",") if len(parts) > 2 and parts[2] else []
        return cls(source=parts[0], destination=parts[1], options=options)

    @property
    def read_only(self) -> bool:
        return "ro" in self.options

    def __str__(self) -> str:
        result = f"{self.source}:{self.destination}"
        if self.options:
            result += ":" + ",".join(self.options)
        return result


@dataclass
class _KeyValue:
    key: str
    value: str = ""

    @classmethod
    def parse(cls, entry: str):
        """
        Splits on the first '='; an entry without '=' gets an empty value.
        """
        if "=" not in entry:
            return cls(key=entry, value="")
        key, value = entry.split("=", 1)
        return cls(key=key, value=value)

    def __str__(self) -> str:
        return f"{self.key}={self.value}"


class Environment(_KeyValue):
    """An environment variable, `KEY=value`."""


class Label(_KeyValue):
    """A container label, `key=value`."""


@dataclass
class Mount:
    """
    A `--mount` specification rendered as `type=...,source=...,destination=...`.
    """

    type: str
    source: Optional[str] = None
    destination: Optional[str] = None
    options: List[str] = field(default_factory=list)

    @classmethod
    def parse(cls, mount: str) -> "Mount":
        mount_type = None
        source = None
        destination = None
        options: List[str] = []
        for item in mount.split(","):
            key, _, value = item.partition("=")
            if key == "type":
                mount_type = value
            elif key in ("source", "src"):
                source = value
            elif key in ("destination", "dst", "target"):
                destination = value
            else:
                options.append(item)
        if not mount_type:
            raise FieldValidationError(f"Mount is missing a type: {mount}", field="mount")
        return cls(type=mount_type, source=source, destination=destination, options=options)

    def __str__(self) -> str:
        result = f"type={self.type}"
        if self.source:
            result += f",source={self.source}"
        if self.destination:
            result += f",destination={self.destination}"
        if self.options:
            result += "," + ",".join(self.options)
        return result


@dataclass
class Device:
    """
    A `host[:container[:permissions]]` device mapping.
    """

    host_device: str
    container_device: Optional[str] = None
    permissions: Optional[str] = None

    def __post_init__(self):
        if not self.container_device:
            self.container_device = self.host_device

    @classmethod
    def parse(cls, device: str) -> "Device":
        parts = device.split(":")
        return cls(
            host_device=parts[0],
            container_device=parts[1] if len(parts) > 1 else None,
            permissions=parts[2] if len(parts) > 2 else None,
        )

    def __str__(self) -> str:
        result = f"{self.host_device}:{self.container_device}"
        if self.permissions:
            result += f":{self.permissions}"
        return result
