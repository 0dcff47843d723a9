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
Merging of caller-supplied systemd sections with values derived from compose.

Lists are unioned (caller entries first, derived entries appended, duplicates
dropped); scalars keep the caller value unless it is absent.
"""
from typing import Iterable, List, Optional

from ..MODELS.sections import RestartPolicy, Service, Unit

RESTART_MAP = {
    RestartPolicy.NO.value: "no",
    RestartPolicy.ALWAYS.value: "always",
    RestartPolicy.ON_FAILURE.value: "on-failure",
    RestartPolicy.UNLESS_STOPPED.value: "always",
}


def merge_list(caller: Iterable[str], derived: Iterable[str]) -> List[str]:
    merged: List[str] = []
    for item in list(caller) + list(derived):
        if item not in merged:
            merged.append(item)
    return merged


def merge_scalar(caller: Optional[str], derived: Optional[str]) -> Optional[str]:
    return caller if caller else derived


def translate_restart(restart: Optional[str]) -> Optional[str]:
    """
    Maps a compose restart policy onto systemd's Restart= value.

    Unknown policies (including `on-failure:N`) map to None and are dropped.
    """
    if restart is None:
        return None
    return RESTART_MAP.get(restart)


def merge_unit(caller: Optional[Unit], depends_on: List[str]) -> Optional[Unit]:
    """
    Adds `<dep>.service` to After= and Wants= for every compose dependency.

    :return: The caller's unit when there is nothing to add, otherwise a new Unit.
    """
    if not depends_on:
        return caller
    base = caller or Unit()
    services = [f"{dep}.service" for dep in depends_on]
    return base.model_copy(update={
        "after": merge_list(base.after, services),
        "wants": merge_list(base.wants, services),
    })


def merge_service(caller: Optional[Service], restart: Optional[str]) -> Optional[Service]:
    """
    Fills Restart= from the compose restart policy unless the caller set it.
    """
    translated = translate_restart(restart)
    if translated is None:
        return caller
    base = caller or Service()
    return base.model_copy(update={"restart": merge_scalar(base.restart, translated)})
