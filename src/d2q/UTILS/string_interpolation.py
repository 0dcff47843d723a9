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
Utilities for interpolating ${VAR} references in compose text.
"""
import logging
import re
from typing import Dict, List

logger = logging.getLogger(__name__)

# Group 1: VAR name, group 2: '-' or '+', group 3: default or alternate value
_PATTERN = re.compile(r'\$\{([^}:]+)(?::(-|\+)([^}]*))?\}')
_ESCAPED_DOLLAR = "\x00d2q-dollar\x00"


class EnvironmentInterpolator:
    """
    Utility for interpolating environment variables in strings.
    Supports ${VAR}, ${VAR:-default}, ${VAR:+value} and the $$ escape.
    """
    @staticmethod
    def interpolate(template: str, context: Dict[str, str]) -> str:
        """
        Interpolates environment variables in the template string using the provided context.

        An unset ${VAR} without modifier resolves to an empty string, as in
        Compose, and is reported once through the module logger.

        :param template: The string containing ${VAR} placeholders.
        :param context: The environment variables context.
        :return: The interpolated string.
        """
        missing: List[str] = []

        def replace(match):
            var_name = match.group(1)
            modifier = match.group(2)
            alt_value = match.group(3)

            value = context.get(var_name)

            if modifier == '-':
                return value if value else alt_value
            if modifier == '+':
                return alt_value if value else ''
            if value is None:
                if var_name not in missing:
                    missing.append(var_name)
                return ''
            return value

        protected = template.replace('$$', _ESCAPED_DOLLAR)
        result = _PATTERN.sub(replace, protected)
        for name in missing:
            logger.warning("Variable %s is not set, substituting an empty string", name)
        return result.replace(_ESCAPED_DOLLAR, '$')
