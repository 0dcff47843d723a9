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
Models for the systemd sections that surround the [Container] block, and the
options a caller passes to generation.
"""
from enum import Enum
from typing import Any, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from ..UTILS.normalize import scalar_to_str, to_str_list


class NotifyOption(str, Enum):
    """
    How the container reports readiness to systemd.
    """
    CONMON = "conmon"
    CONTAINER = "container"
    HEALTHY = "healthy"


class PullPolicy(str, Enum):
    ALWAYS = "always"
    MISSING = "missing"
    NEVER = "never"
    NEWER = "newer"


class AutoUpdate(str, Enum):
    REGISTRY = "registry"
    LOCAL = "local"


class RestartPolicy(str, Enum):
    """
    Restart policies a compose service may declare.
    """
    NO = "no"
    ALWAYS = "always"
    ON_FAILURE = "on-failure"
    UNLESS_STOPPED = "unless-stopped"


def _aliases(*names: str) -> AliasChoices:
    return AliasChoices(*names)


class _Section(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def is_empty(self) -> bool:
        """True when no field holds a value worth rendering."""
        return not any(getattr(self, name) for name in type(self).model_fields)


def _coerce_list(value: Any) -> List[str]:
    return to_str_list(value)


def _coerce_scalar(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return scalar_to_str(value)


class Unit(_Section):
    """
    [Unit] section: description and ordering/dependency edges.
    """
    description: Optional[str] = Field(default=None, validation_alias=_aliases("description", "Description"))
    wants: List[str] = Field(default_factory=list, validation_alias=_aliases("wants", "Wants"))
    requires: List[str] = Field(default_factory=list, validation_alias=_aliases("requires", "Requires"))
    binds_to: List[str] = Field(
        default_factory=list, validation_alias=_aliases("binds_to", "bindsTo", "bindTo", "BindsTo")
    )
    after: List[str] = Field(default_factory=list, validation_alias=_aliases("after", "After"))
    before: List[str] = Field(default_factory=list, validation_alias=_aliases("before", "Before"))

    @field_validator("wants", "requires", "binds_to", "after", "before", mode="before")
    @classmethod
    def coerce_lists(cls, value: Any) -> List[str]:
        return _coerce_list(value)


class Service(_Section):
    """
    [Service] section: supervision behaviour of the generated unit.
    """
    restart: Optional[str] = Field(default=None, validation_alias=_aliases("restart", "Restart"))
    restart_sec: Optional[str] = Field(
        default=None, validation_alias=_aliases("restart_sec", "restartSec", "RestartSec")
    )
    timeout_start_sec: Optional[str] = Field(
        default=None, validation_alias=_aliases("timeout_start_sec", "timeoutStartSec", "TimeoutStartSec")
    )
    timeout_stop_sec: Optional[str] = Field(
        default=None, validation_alias=_aliases("timeout_stop_sec", "timeoutStopSec", "TimeoutStopSec")
    )

    @field_validator("restart", "restart_sec", "timeout_start_sec", "timeout_stop_sec", mode="before")
    @classmethod
    def coerce_scalars(cls, value: Any) -> Optional[str]:
        return _coerce_scalar(value)


class Install(_Section):
    """
    [Install] section: which targets pull the unit in when enabled.
    """
    wanted_by: List[str] = Field(default_factory=list, validation_alias=_aliases("wanted_by", "wantedBy", "WantedBy"))
    required_by: List[str] = Field(
        default_factory=list, validation_alias=_aliases("required_by", "requiredBy", "RequiredBy")
    )

    @field_validator("wanted_by", "required_by", mode="before")
    @classmethod
    def coerce_lists(cls, value: Any) -> List[str]:
        return _coerce_list(value)


class Globals(_Section):
    """
    Extra arguments passed to podman itself rather than to `podman run`.
    """
    podman_args: Optional[str] = Field(
        default=None, validation_alias=_aliases("podman_args", "podmanArgs", "PodmanArgs")
    )


class GenerationOptions(BaseModel):
    """
    Everything a caller may supply around a container when generating a unit.
    Every key is optional; an absent key omits the corresponding lines.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: Optional[str] = None
    unit: Optional[Unit] = None
    service: Optional[Service] = None
    install: Optional[Install] = None
    globals: Optional[Globals] = None

    @classmethod
    def from_value(cls, options: Any) -> "GenerationOptions":
        """
        Accepts None, an existing GenerationOptions or a plain mapping.
        """
        if options is None:
            return cls()
        if isinstance(options, GenerationOptions):
            return options
        return cls.model_validate(options)
