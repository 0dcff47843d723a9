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
Converts `docker run` invocations into compose-shaped documents.
"""
import argparse
import logging
import shlex
from typing import Any, Dict, List, Sequence, Union

from ..exceptions import RunCommandError
from ..MODELS.container import image_to_name

logger = logging.getLogger(__name__)

RunCommand = Union[str, Sequence[str]]


class _NonExitingArgumentParser(argparse.ArgumentParser):
    """argparse reports problems through exceptions instead of exiting."""

    def error(self, message):
        raise RunCommandError(f"Invalid argument found: {message}")


def _build_parser() -> argparse.ArgumentParser:
    parser = _NonExitingArgumentParser(prog="docker run", add_help=False)
    parser.add_argument('-d', '--detach', action='store_true')
    parser.add_argument('--rm', action='store_true')
    parser.add_argument('--name')
    parser.add_argument('-p', '--publish', action='append', default=[])
    parser.add_argument('-v', '--volume', action='append', default=[])
    parser.add_argument('-e', '--env', action='append', default=[])
    parser.add_argument('--env-file', action='append', default=[])
    parser.add_argument('-l', '--label', action='append', default=[])
    parser.add_argument('--network', '--net', action='append', default=[])
    parser.add_argument('--network-alias', action='append', default=[])
    parser.add_argument('--ip')
    parser.add_argument('--restart')
    parser.add_argument('-h', '--hostname')
    parser.add_argument('-u', '--user')
    parser.add_argument('-w', '--workdir')
    parser.add_argument('--entrypoint')
    parser.add_argument('--cap-add', action='append', default=[])
    parser.add_argument('--cap-drop', action='append', default=[])
    parser.add_argument('--device', action='append', default=[])
    parser.add_argument('--dns', action='append', default=[])
    parser.add_argument('--read-only', action='store_true')
    parser.add_argument('--init', action='store_true')
    parser.add_argument('--tmpfs', action='append', default=[])
    parser.add_argument('--privileged', action='store_true')
    parser.add_argument('-t', '--tty', action='store_true')
    parser.add_argument('-i', '--interactive', action='store_true')
    parser.add_argument('-m', '--memory')
    parser.add_argument('--cpus')
    parser.add_argument('--security-opt', action='append', default=[])
    parser.add_argument('--health-cmd')
    parser.add_argument('--health-interval')
    parser.add_argument('--health-timeout')
    parser.add_argument('--health-retries')
    parser.add_argument('--health-start-period')
    parser.add_argument('--no-healthcheck', action='store_true')
    parser.add_argument('--ulimit', action='append', default=[])
    parser.add_argument('--sysctl', action='append', default=[])
    parser.add_argument('--add-host', action='append', default=[])
    parser.add_argument('--log-driver')
    parser.add_argument('--log-opt', action='append', default=[])
    parser.add_argument('--pull')
    parser.add_argument('--shm-size')
    parser.add_argument('--pids-limit')
    parser.add_argument('--expose', action='append', default=[])
    parser.add_argument('--stop-signal')
    parser.add_argument('--stop-timeout')
    parser.add_argument('--dns-search', action='append', default=[])
    parser.add_argument('--dns-option', '--dns-opt', action='append', default=[])
    parser.add_argument('--group-add', action='append', default=[])
    parser.add_argument('--userns')
    parser.add_argument('--annotation', action='append', default=[])
    parser.add_argument('image')
    parser.add_argument('command', nargs=argparse.REMAINDER)
    return parser


class DockerRunParser:
    """
    Turns a `docker run` command into the compose document describing the
    same single service. Any callable with the signature of `to_compose` can
    stand in for it in the orchestrator.
    """
    PREFIXES = (('docker', 'run'), ('podman', 'run'), ('docker', 'container', 'run'),
                ('podman', 'container', 'run'))

    def __init__(self):
        self.parser = _build_parser()

    def __call__(self, command: RunCommand) -> Dict[str, Any]:
        return self.to_compose(command)

    def tokenize(self, command: RunCommand) -> List[str]:
        """
        Splits a command string the way a POSIX shell would and drops a
        leading `docker run` / `podman run`.

        :raises RunCommandError: If the quoting is unbalanced.
        """
        if isinstance(command, str):
            try:
                args = shlex.split(command)
            except ValueError as e:
                raise RunCommandError(f"Could not parse the command: {e}") from e
        else:
            args = [str(a) for a in command]

        for prefix in self.PREFIXES:
            if tuple(args[:len(prefix)]) == prefix:
                return args[len(prefix):]
        return args

    def to_compose(self, command: RunCommand) -> Dict[str, Any]:
        """
        Converts a docker run command to a compose mapping with one service.

        :param command: The command as a string or a list of arguments.
        :return: {'services': {name: spec}}
        :raises RunCommandError: If no image is given or an option is malformed.
        """
        args = self.tokenize(command)
        if not args:
            raise RunCommandError("No image specified in the docker run command")

        parsed = self.parser.parse_args(args)
        service: Dict[str, Any] = {'image': parsed.image}
        if parsed.command:
            service['command'] = parsed.command
        if parsed.name:
            service['container_name'] = parsed.name

        simple = (
            ('ports', parsed.publish), ('volumes', parsed.volume), ('environment', parsed.env),
            ('env_file', parsed.env_file), ('labels', parsed.label), ('cap_add', parsed.cap_add),
            ('cap_drop', parsed.cap_drop), ('devices', parsed.device), ('dns', parsed.dns),
            ('tmpfs', parsed.tmpfs), ('security_opt', parsed.security_opt),
            ('restart', parsed.restart), ('hostname', parsed.hostname), ('user', parsed.user),
            ('working_dir', parsed.workdir), ('entrypoint', parsed.entrypoint),
            ('mem_limit', parsed.memory), ('cpus', parsed.cpus),
            ('ulimits', parsed.ulimit), ('sysctls', parsed.sysctl), ('extra_hosts', parsed.add_host),
            ('pull_policy', parsed.pull), ('shm_size', parsed.shm_size), ('pids_limit', parsed.pids_limit),
            ('expose', parsed.expose), ('stop_signal', parsed.stop_signal),
            ('stop_grace_period', parsed.stop_timeout), ('dns_search', parsed.dns_search),
            ('dns_opt', parsed.dns_option), ('group_add', parsed.group_add),
            ('userns_mode', parsed.userns), ('annotations', parsed.annotation),
        )
        for key, value in simple:
            if value:
                service[key] = value

        flags = (
            ('read_only', parsed.read_only), ('init', parsed.init), ('privileged', parsed.privileged),
            ('tty', parsed.tty), ('stdin_open', parsed.interactive),
        )
        for key, value in flags:
            if value:
                service[key] = True

        if parsed.network:
            service['networks'] = self._networks(parsed)

        if parsed.log_driver or parsed.log_opt:
            logging_config: Dict[str, Any] = {}
            if parsed.log_driver:
                logging_config['driver'] = parsed.log_driver
            if parsed.log_opt:
                logging_config['options'] = list(parsed.log_opt)
            service['logging'] = logging_config

        healthcheck = self._healthcheck(parsed)
        if healthcheck:
            service['healthcheck'] = healthcheck

        name = parsed.name or image_to_name(parsed.image)
        logger.debug("Converted run command for image %s into service %s", parsed.image, name)
        return {'services': {name: service}}

    @staticmethod
    def _networks(parsed: argparse.Namespace) -> Any:
        if not parsed.network_alias and not parsed.ip:
            return list(parsed.network)
        networks: Dict[str, Any] = {name: None for name in parsed.network}
        first = parsed.network[0]
        config: Dict[str, Any] = {}
        if parsed.network_alias:
            config['aliases'] = list(parsed.network_alias)
        if parsed.ip:
            config['ipv4_address'] = parsed.ip
        networks[first] = config
        return networks

    @staticmethod
    def _healthcheck(parsed: argparse.Namespace) -> Dict[str, Any]:
        if parsed.no_healthcheck:
            return {'disable': True}
        healthcheck = {}
        for key, value in (
            ('test', parsed.health_cmd), ('interval', parsed.health_interval),
            ('timeout', parsed.health_timeout), ('retries', parsed.health_retries),
            ('start_period', parsed.health_start_period),
        ):
            if value:
                healthcheck[key] = value
        return healthcheck
