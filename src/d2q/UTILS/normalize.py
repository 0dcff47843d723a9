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
Helpers that fold the many shapes a compose field can take into one.
"""
from typing import Any, List


def scalar_to_str(value: Any) -> str:
    """
    Renders a decoded YAML scalar the way it was written in the document.

    :param value: A string, number, boolean or None.
    :return: Its text form; booleans become 'true'/'false', None becomes ''.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def to_list(value: Any) -> List[Any]:
    """
    Helper to ensure a value is a list.

    :param value: None, a scalar, or a sequence.
    :return: A new list; scalars are wrapped, None becomes empty.
    """
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def to_str_list(value: Any) -> List[str]:
    """
    Same as `to_list`, with every element rendered through `scalar_to_str`.
    """
    return [scalar_to_str(v) for v in to_list(value)]


def to_key_value_list(value: Any) -> List[str]:
    """
    Flattens a mapping or a list into "KEY=VALUE" strings.

    Given {key1: value1, key2: None} returns ["key1=value1", "key2="];
    lists are passed through (rendered as text) in their original order.

    :param value: A mapping, a sequence, a single string or None.
    :return: List of "KEY=VALUE" strings in iteration order.
    """
    if value is None:
        return []
    if isinstance(value, dict):
        return [f"{k}={scalar_to_str(v)}" for k, v in value.items()]
    return to_str_list(value)


def join_tokens(value: Any) -> str:
    """
    Joins a command given as a sequence of tokens with single spaces.

    No shell quoting is added; a scalar is returned as text unchanged.
    """
    if isinstance(value, (list, tuple)):
        return " ".join(scalar_to_str(v) for v in value)
    return scalar_to_str(value)
