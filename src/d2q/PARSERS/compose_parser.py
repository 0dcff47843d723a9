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
Parser turning Docker Compose documents into Container models.
"""
import logging
import os
import re
from typing import Any, Dict, List, Mapping, Optional

import yaml

from ..exceptions import (
    FieldValidationError,
    ServiceDefinitionError,
    StructuralError,
    UnsupportedFeatureError,
    UnsupportedFeatureWarning,
)
from ..MODELS.container import Container
from ..UTILS.normalize import join_tokens, scalar_to_str, to_key_value_list, to_list, to_str_list
from ..UTILS.string_interpolation import EnvironmentInterpolator

logger = logging.getLogger(__name__)

UNSUPPORTED_TOP_LEVEL = ('configs', 'secrets')
UNSUPPORTED_SERVICE_FEATURES = ('external_links', 'links', 'network_mode', 'secrets', 'configs', 'deploy')

# Quadlet writes this label itself from AutoUpdate=
AUTO_UPDATE_LABEL = 'io.containers.autoupdate'
PULL_POLICY_ALIASES = {'if_not_present': 'missing'}

_SECONDS = re.compile(r'^(\d+)s?$')


class ComposeParser:
    """
    Parser for docker-compose documents.

    Unsupported per-service features are collected in `diagnostics` and have
    no effect on the produced containers.
    """
    def __init__(self, context: Optional[Dict[str, str]] = None):
        """
        Initializes the parser with an optional environment context for interpolation.

        :param context: A dictionary of environment variables for interpolation.
        """
        self.context = context if context is not None else dict(os.environ)
        self.diagnostics: List[UnsupportedFeatureWarning] = []

    def parse_file(self, compose_path: str) -> Dict[str, Container]:
        """
        Parses a compose file from a path.

        :param compose_path: Path to the compose file.
        :return: Containers keyed by service name, in document order.
        """
        with open(compose_path, 'r', encoding='utf-8') as f:
            content = f.read()
        return self.parse_from_string(content)

    def parse_from_string(self, content: str) -> Dict[str, Container]:
        """
        Interpolates ${VAR} references, decodes the YAML and parses the result.

        :param content: YAML content of the compose file.
        :return: Containers keyed by service name, in document order.
        """
        return self.parse(self.load(content))

    def load(self, content: str) -> Any:
        """
        Decodes compose YAML text after variable interpolation.

        :raises StructuralError: If the text is not valid YAML.
        """
        content = EnvironmentInterpolator.interpolate(content, self.context)
        try:
            return yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise StructuralError(f"Invalid compose file format: {e}") from e

    def parse(self, document: Any) -> Dict[str, Container]:
        """
        Maps every service of a decoded compose document to a Container.

        :param document: The decoded compose mapping.
        :return: Containers keyed by service name, in document order.
        :raises StructuralError: If the document has no services.
        :raises UnsupportedFeatureError: If top-level configs or secrets are used.
        :raises ServiceDefinitionError: If a service has neither image nor build.
        :raises FieldValidationError: If a field value has invalid syntax.
        """
        self.validate(document)

        containers: Dict[str, Container] = {}
        for name, spec in document['services'].items():
            containers[name] = self.parse_service(name, spec, document)
        return containers

    def validate(self, document: Any) -> None:
        """
        Checks the document shape before any service is mapped.

        Resets `diagnostics` and fills it with warnings for ignored per-service features.
        """
        self.diagnostics = []

        if not isinstance(document, Mapping):
            raise StructuralError("Invalid compose file format: expected a mapping at the top level")

        services = document.get('services')
        if not services:
            raise StructuralError("Compose file must contain at least one service")
        if not isinstance(services, Mapping):
            raise StructuralError("'services' must be a mapping of service names to definitions")

        for feature in UNSUPPORTED_TOP_LEVEL:
            if document.get(feature):
                raise UnsupportedFeatureError(f"Compose feature '{feature}' is not yet supported", feature=feature)

        for name, spec in services.items():
            self._validate_service(name, spec)

    def _validate_service(self, name: str, spec: Any) -> None:
        if not isinstance(spec, Mapping):
            raise ServiceDefinitionError(f"Service '{name}' must be a mapping", service=name)
        if not spec.get('image') and not spec.get('build'):
            raise ServiceDefinitionError(f"Service '{name}' must have either 'image' or 'build'", service=name)

        for feature in UNSUPPORTED_SERVICE_FEATURES:
            if spec.get(feature):
                warning = UnsupportedFeatureWarning(name, feature)
                logger.warning("%s", warning)
                self.diagnostics.append(warning)

    def parse_service(self, name: str, spec: Mapping[str, Any], document: Optional[Mapping[str, Any]] = None) -> Container:
        """
        Parses a single service definition from a compose document.

        :param name: The name of the service.
        :param spec: The service specification dictionary.
        :param document: The whole document, for named volume context.
        :return: A populated Container.
        :raises FieldValidationError: Naming the service, if a field is malformed.
        """
        try:
            return self._parse_service(name, spec, document or {})
        except FieldValidationError as e:
            if e.service is not None:
                raise
            raise FieldValidationError(f"Service '{name}': {e}", field=e.field, service=name) from e

    def _parse_service(self, name: str, spec: Mapping[str, Any], document: Mapping[str, Any]) -> Container:
        logger.debug("Mapping service %s", name)
        container = Container()

        # Image
        if spec.get('image'):
            container.set_image(scalar_to_str(spec['image']))
        elif spec.get('build'):
            container.set_image(f"{name}.build")
        else:
            raise ServiceDefinitionError(f"Service '{name}' must have either 'image' or 'build'", service=name)

        container.set_container_name(scalar_to_str(spec.get('container_name') or name))

        # Execution
        if spec.get('command'):
            container.set_exec(join_tokens(spec['command']))
        if spec.get('entrypoint'):
            container.entrypoint = join_tokens(spec['entrypoint'])

        # Networking and storage
        for port in to_list(spec.get('ports')):
            container.add_publish_port(self._port_spec(port))

        top_level_volumes = document.get('volumes') or {}
        for volume in to_list(spec.get('volumes')):
            self._add_volume(volume, container, top_level_volumes)

        # Environment
        for env in to_key_value_list(spec.get('environment')):
            container.add_environment(env)

        for env_file in to_list(spec.get('env_file')):
            if isinstance(env_file, Mapping):
                env_file = env_file.get('path')
            if env_file:
                container.environment_file.append(scalar_to_str(env_file))

        for label in to_key_value_list(spec.get('labels')):
            key, _, value = label.partition('=')
            if key == AUTO_UPDATE_LABEL:
                container.set_auto_update(value)
            else:
                container.add_label(label)

        if spec.get('networks'):
            self._parse_networks(spec['networks'], container)

        if spec.get('hostname'):
            container.host_name = scalar_to_str(spec['hostname'])

        if spec.get('user') is not None and spec.get('user') != '':
            user = scalar_to_str(spec['user'])
            if ':' in user:
                container.user, container.group = user.split(':', 1)
            else:
                container.user = user

        if spec.get('working_dir'):
            container.working_dir = scalar_to_str(spec['working_dir'])

        # Handled in the [Service] section by the orchestrator
        restart = spec.get('restart')
        if restart is False:
            restart = 'no'
        if restart:
            container.restart = scalar_to_str(restart)

        # Security
        for opt in to_str_list(spec.get('security_opt')):
            if opt == 'no-new-privileges:true':
                container.no_new_privileges = True
            elif opt.startswith('label=disable'):
                container.security_label_disable = True
            else:
                container.add_podman_args('--security-opt', opt)

        container.add_capability.extend(to_str_list(spec.get('cap_add')))
        container.drop_capability.extend(to_str_list(spec.get('cap_drop')))
        container.add_device.extend(to_str_list(spec.get('devices')))
        container.dns.extend(to_str_list(spec.get('dns')))
        container.dns_option.extend(to_str_list(spec.get('dns_opt')))
        container.dns_search.extend(to_str_list(spec.get('dns_search')))
        container.group_add.extend(to_str_list(spec.get('group_add')))

        if spec.get('read_only'):
            container.read_only = True
        if spec.get('init'):
            container.run_init = True

        container.tmpfs.extend(to_str_list(spec.get('tmpfs')))

        # Flags without a dedicated Quadlet key
        if spec.get('privileged'):
            container.add_podman_args('--privileged')
        if spec.get('tty'):
            container.add_podman_args('--tty')
        if spec.get('stdin_open'):
            container.add_podman_args('--interactive')
        if spec.get('mem_limit'):
            container.add_podman_args('--memory', scalar_to_str(spec['mem_limit']))
        if spec.get('cpus'):
            container.add_podman_args('--cpus', scalar_to_str(spec['cpus']))
        for host in to_key_value_list(spec.get('extra_hosts')):
            container.add_podman_args('--add-host', host.replace('=', ':', 1))

        if spec.get('healthcheck'):
            self._parse_healthcheck(spec['healthcheck'], container)

        self._parse_resources(spec, container)

        # Translated into [Unit] ordering by the orchestrator
        depends_on = spec.get('depends_on')
        if isinstance(depends_on, Mapping):
            depends_on = list(depends_on.keys())
        container.depends_on = to_str_list(depends_on)

        return container

    def _port_spec(self, port: Any) -> str:
        """
        Normalizes one `ports` entry to the short "published:target[/protocol]" form.
        """
        if isinstance(port, Mapping):
            spec = ''
            if port.get('published'):
                spec += f"{scalar_to_str(port['published'])}:"
            spec += scalar_to_str(port.get('target'))
            protocol = port.get('protocol')
            if protocol and protocol != 'tcp':
                spec += f"/{protocol}"
            return spec
        return scalar_to_str(port)

    def _add_volume(self, volume: Any, container: Container, top_level_volumes: Mapping[str, Any]) -> None:
        if not isinstance(volume, Mapping):
            volume = scalar_to_str(volume)
            source = volume.split(':', 1)[0] if ':' in volume else None
            if source and not source.startswith(('/', '.', '~', '$')) and source not in top_level_volumes:
                logger.debug("Volume '%s' is not declared under top-level volumes", source)
            container.add_volume(volume)
            return

        if volume.get('type') == 'tmpfs':
            spec = scalar_to_str(volume.get('target'))
            options = volume.get('tmpfs') or {}
            if not isinstance(options, Mapping):
                raise FieldValidationError("tmpfs volume options must be a mapping", field="volume")
            size = options.get('size')
            if size:
                spec += f":size={scalar_to_str(size)}"
            container.tmpfs.append(spec)
            return

        spec = ''
        if volume.get('source'):
            spec += f"{scalar_to_str(volume['source'])}:"
        spec += scalar_to_str(volume.get('target'))
        if volume.get('read_only'):
            spec += ':ro'
        container.add_volume(spec)

    def _parse_networks(self, networks: Any, container: Container) -> None:
        if not isinstance(networks, Mapping):
            for network in to_list(networks):
                if isinstance(network, str):
                    container.network.append(network)
            return

        for network_name, config in networks.items():
            network_spec = network_name
            if isinstance(config, Mapping):
                options = []
                if config.get('ipv4_address'):
                    options.append(f"ip={config['ipv4_address']}")
                if config.get('ipv6_address'):
                    options.append(f"ip6={config['ipv6_address']}")
                container.network_alias.extend(to_str_list(config.get('aliases')))
                if options:
                    network_spec += ':' + ','.join(options)
            container.network.append(network_spec)

    def _parse_healthcheck(self, healthcheck: Any, container: Container) -> None:
        if not isinstance(healthcheck, Mapping):
            raise FieldValidationError("healthcheck must be a mapping", field="healthcheck")
        if healthcheck.get('disable'):
            container.health_cmd = 'none'
            return

        if healthcheck.get('test'):
            container.health_cmd = join_tokens(healthcheck['test'])
        if healthcheck.get('interval'):
            container.health_interval = scalar_to_str(healthcheck['interval'])
        if healthcheck.get('timeout'):
            container.health_timeout = scalar_to_str(healthcheck['timeout'])
        if healthcheck.get('retries'):
            container.health_retries = scalar_to_str(healthcheck['retries'])
        if healthcheck.get('start_period'):
            container.health_start_period = scalar_to_str(healthcheck['start_period'])

    def _parse_resources(self, spec: Mapping[str, Any], container: Container) -> None:
        """
        Keys that map onto dedicated Quadlet fields the way podman-compose reads them.
        """
        container.sysctl.extend(to_key_value_list(spec.get('sysctls')))

        ulimits = spec.get('ulimits')
        if isinstance(ulimits, Mapping):
            for name, limit in ulimits.items():
                container.ulimit.append(f"{name}={self._ulimit_value(limit)}")
        else:
            container.ulimit.extend(to_str_list(ulimits))

        if spec.get('pids_limit'):
            container.pids_limit = scalar_to_str(spec['pids_limit'])
        if spec.get('shm_size'):
            container.shm_size = scalar_to_str(spec['shm_size'])
        if spec.get('stop_signal'):
            container.stop_signal = scalar_to_str(spec['stop_signal'])
        if spec.get('stop_grace_period'):
            period = scalar_to_str(spec['stop_grace_period'])
            match = _SECONDS.match(period)
            container.stop_timeout = match.group(1) if match else period

        logging_config = spec.get('logging')
        if isinstance(logging_config, Mapping):
            if logging_config.get('driver'):
                container.log_driver = scalar_to_str(logging_config['driver'])
            container.log_opt.extend(to_key_value_list(logging_config.get('options')))

        pull_policy = spec.get('pull_policy')
        if pull_policy and pull_policy != 'build':
            pull_policy = scalar_to_str(pull_policy)
            container.set_pull(PULL_POLICY_ALIASES.get(pull_policy, pull_policy))

        if spec.get('userns_mode'):
            container.user_ns = scalar_to_str(spec['userns_mode'])

        container.annotation.extend(to_key_value_list(spec.get('annotations')))
        container.expose_host_port.extend(to_str_list(spec.get('expose')))

    @staticmethod
    def _ulimit_value(limit: Any) -> str:
        if isinstance(limit, Mapping):
            if not limit.keys() & {'soft', 'hard'}:
                raise FieldValidationError("ulimit expects at least one soft or hard limit", field="ulimit")
            soft = limit.get('soft', limit.get('hard'))
            hard = limit.get('hard', limit.get('soft'))
            return f"{soft}:{hard}"
        return scalar_to_str(limit)
