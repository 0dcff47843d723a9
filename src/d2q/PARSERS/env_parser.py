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
Parser for .env files used as interpolation context for compose documents.
"""
from typing import Dict, Tuple, Optional


class EnvParser:
    """
    Parser for .env files.
    """
    @staticmethod
    def parse(env_path: str) -> Dict[str, str]:
        """
        Parses an .env file from a path.

        Args:
            env_path (str): Path to the .env file.

        Returns:
            Dict[str, str]: Variables in file order.
        """
        with open(env_path, 'r', encoding='utf-8') as f:
            content = f.read()
        return EnvParser.parse_from_string(content)

    @staticmethod
    def parse_from_string(content: str) -> Dict[str, str]:
        """
        Parses variables from a string.

        Blank lines, comment lines and lines without '=' are skipped. A
        leading `export ` is accepted. Quoted values keep everything between
        the quotes; unquoted values lose a trailing `# comment`.
        """
        env: Dict[str, str] = {}
        for raw_line in content.splitlines():
            entry = EnvParser._parse_line(raw_line)
            if entry is not None:
                key, value = entry
                env[key] = value
        return env

    @staticmethod
    def _parse_line(line: str) -> Optional[Tuple[str, str]]:
        line = line.strip()
        if not line or line.startswith('#') or '=' not in line:
            return None
        if line.startswith('export '):
            line = line[len('export '):].lstrip()

        key, value = line.split('=', 1)
        key = key.strip()
        value = value.strip()
        if not key:
            return None

        if value[:1] in ('"', "'"):
            quote = value[0]
            end = value.find(quote, 1)
            while end != -1 and value[end - 1] == '\\':
                end = value.find(quote, end + 1)
            if end != -1:
                return key, value[1:end].replace(f'\\{quote}', quote)
            return key, value
        if ' #' in value:
            value = value.split(' #', 1)[0].rstrip()
        return key, value
