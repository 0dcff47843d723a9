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
Orchestration of run commands and compose documents into Quadlet units.
"""
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from ..CONVERTERS.to_quadlet import QuadletGenerator
from ..exceptions import RunCommandError, UnsupportedFeatureWarning
from ..MODELS.container import Container
from ..MODELS.quadlet_file import QuadletFile
from ..MODELS.sections import GenerationOptions
from ..PARSERS.compose_parser import ComposeParser
from ..PARSERS.run_parser import DockerRunParser, RunCommand
from .section_merger import merge_service, merge_unit

logger = logging.getLogger(__name__)

RunConverter = Callable[[RunCommand], Mapping[str, Any]]


class QuadletOrchestrator:
    """
    Entry point for every conversion: run commands and compose documents go
    through the same per-service mapping, section merging and rendering.
    """
    def __init__(self, compose_parser: Optional[ComposeParser] = None,
                 run_converter: Optional[RunConverter] = None):
        """
        Initializes the orchestrator.

        :param compose_parser: Parser used for compose documents.
        :param run_converter: Callable turning a run command into a compose mapping.
        """
        self.compose_parser = compose_parser or ComposeParser()
        self.run_converter = run_converter or DockerRunParser()
        self.generator = QuadletGenerator

    @property
    def diagnostics(self) -> List[UnsupportedFeatureWarning]:
        """Warnings collected by the last conversion."""
        return list(self.compose_parser.diagnostics)

    def docker_run_to_quadlet(self, command: RunCommand, options: Optional[Any] = None) -> str:
        """
        Converts a docker run command into the text of a single unit.

        :param command: Command string or argument list.
        :param options: GenerationOptions or an equivalent mapping.
        :return: The unit file text.
        """
        return self.docker_run_to_quadlet_file(command, options).content

    def docker_run_to_quadlet_file(self, command: RunCommand, options: Optional[Any] = None) -> QuadletFile:
        document = self.parse_docker_run(command)
        self.compose_parser.validate(document)
        services = document['services']
        if len(services) != 1:
            raise RunCommandError(f"Expected exactly one service from the run command, got {len(services)}")
        name, spec = next(iter(services.items()))
        return self._convert_service(name, spec, document, GenerationOptions.from_value(options))

    def compose_to_quadlet(self, document: Union[str, Mapping[str, Any]],
                           options: Optional[Any] = None) -> List[QuadletFile]:
        """
        Converts a compose document into one unit per service.

        :param document: Compose YAML text or an already decoded mapping.
        :param options: GenerationOptions or an equivalent mapping, applied to every service.
        :return: Units in the document's service order.
        """
        if isinstance(document, str):
            document = self.compose_parser.load(document)
        options = GenerationOptions.from_value(options)

        self.compose_parser.validate(document)
        files = []
        for name, spec in document['services'].items():
            files.append(self._convert_service(name, spec, document, options))
        logger.info("Generated %d Quadlet unit(s)", len(files))
        return files

    def container_to_quadlet(self, container: Container, options: Optional[Any] = None) -> str:
        """
        Validates a container and renders it.

        :raises FieldValidationError: If the container is not valid.
        """
        container.validate()
        return self.generator.generate_file(container, options)

    def parse_docker_run(self, command: RunCommand) -> Dict[str, Any]:
        """
        Runs the configured converter and returns its compose mapping.
        """
        document = self.run_converter(command)
        return dict(document)

    def parse_compose(self, document: Union[str, Mapping[str, Any]]) -> List[Container]:
        """
        Parses a compose document into containers without rendering them.
        """
        if isinstance(document, str):
            document = self.compose_parser.load(document)
        return list(self.compose_parser.parse(document).values())

    def from_docker_run(self, command: RunCommand, options: Optional[Any] = None) -> str:
        return self.docker_run_to_quadlet(command, options)

    def from_compose(self, compose_path: str, options: Optional[Any] = None) -> List[QuadletFile]:
        """
        Reads a compose file and converts it.
        """
        with open(compose_path, 'r', encoding='utf-8') as f:
            content = f.read()
        return self.compose_to_quadlet(content, options)

    def _convert_service(self, name: str, spec: Mapping[str, Any], document: Mapping[str, Any],
                         options: GenerationOptions) -> QuadletFile:
        container = self.compose_parser.parse_service(name, spec, document)
        service_options = options.model_copy(update={
            "name": name,
            "unit": merge_unit(options.unit, container.depends_on),
            "service": merge_service(options.service, container.restart),
        })
        content = self.container_to_quadlet(container, service_options)
        return QuadletFile(filename=f"{name}.container", content=content)


def create_orchestrator(**kwargs) -> QuadletOrchestrator:
    """
    Convenience function to create a new orchestrator.
    """
    return QuadletOrchestrator(**kwargs)
