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
Quoting of values written into unit files.
"""
from typing import Any


def escape_value(value: Any) -> str:
    """
    Wraps a value in double quotes when it contains a space.

    Backslashes are escaped first, then double quotes, so the result can be
    read back unambiguously. Values without a space are returned unchanged.

    :param value: The raw value.
    :return: The value as it should appear after `Key=`.
    """
    if not isinstance(value, str):
        value = str(value)
    if " " not in value:
        return value
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def unescape_value(value: str) -> str:
    """
    Reverses `escape_value` for a value read back from a unit file.
    """
    if len(value) >= 2 and value.startswith('"') and value.endswith('"'):
        inner = value[1:-1]
        out = []
        i = 0
        while i < len(inner):
            ch = inner[i]
            if ch == "\\" and i + 1 < len(inner) and inner[i + 1] in ('\\', '"'):
                out.append(inner[i + 1])
                i += 2
                continue
            out.append(ch)
            i += 1
        return "".join(out)
    return value
