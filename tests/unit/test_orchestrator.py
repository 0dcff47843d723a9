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
Unit tests for the QuadletOrchestrator.
"""
import pytest
from d2q.exceptions import (
    FieldValidationError,
    RunCommandError,
    ServiceDefinitionError,
    StructuralError,
    UnsupportedFeatureError,
)
from d2q.MANAGERS.quadlet_orchestrator import QuadletOrchestrator, create_orchestrator
from d2q.MODELS.container import Container
from d2q.MODELS.sections import GenerationOptions, Unit
from d2q.PARSERS.compose_parser import ComposeParser


@pytest.fixture
def orchestrator():
    return QuadletOrchestrator(compose_parser=ComposeParser(context={}))


class TestCompose:
    def test_single_service(self, orchestrator):
        files = orchestrator.compose_to_quadlet({"services": {"web": {
            "image": "nginx", "ports": ["80:80"], "environment": {"NODE_ENV": "production"},
        }}})
        assert len(files) == 1
        assert files[0].filename == "web.container"
        assert files[0].content == (
            "[Container]\nImage=nginx\nContainerName=web\nPublishPort=80:80\nEnvironment=NODE_ENV=production\n"
        )

    def test_order_follows_document(self, orchestrator):
        files = orchestrator.compose_to_quadlet(
            "services:\n  zeta:\n    image: a\n  alpha:\n    image: b\n  mid:\n    image: c\n"
        )
        assert [f.filename for f in files] == ["zeta.container", "alpha.container", "mid.container"]

    def test_depends_on_translated(self, orchestrator):
        files = orchestrator.compose_to_quadlet({"services": {
            "web": {"image": "nginx", "depends_on": ["db"], "restart": "unless-stopped"},
            "db": {"image": "postgres"},
        }})
        web = files[0].content
        assert web.startswith("[Unit]\nWants=db.service\nAfter=db.service\n\n[Container]\n")
        assert web.endswith("[Service]\nRestart=always\n")
        assert "[Unit]" not in files[1].content

    def test_caller_options_merge(self, orchestrator):
        options = {
            "unit": {"description": "App", "after": ["network-online.target"]},
            "service": {"restart": "on-failure"},
            "install": {"wanted_by": ["default.target"]},
        }
        files = orchestrator.compose_to_quadlet({"services": {
            "web": {"image": "nginx", "depends_on": {"db": {"condition": "service_started"}}, "restart": "always"},
        }}, options)
        assert files[0].content.startswith(
            "[Unit]\nDescription=App\nWants=db.service\nAfter=network-online.target db.service\n"
        )
        assert "[Service]\nRestart=on-failure\n" in files[0].content
        assert files[0].content.endswith("[Install]\nWantedBy=default.target\n")

    def test_options_not_mutated(self, orchestrator):
        options = GenerationOptions(unit=Unit(after=["x.target"]))
        orchestrator.compose_to_quadlet({"services": {"web": {"image": "a", "depends_on": ["db"]}}}, options)
        assert options.unit.after == ["x.target"]
        assert options.name is None

    def test_diagnostics(self, orchestrator):
        orchestrator.compose_to_quadlet({"services": {"web": {"image": "a", "links": ["db"]}}})
        assert [(d.service, d.feature) for d in orchestrator.diagnostics] == [("web", "links")]

    def test_error_before_any_output(self, orchestrator):
        with pytest.raises(ServiceDefinitionError):
            orchestrator.compose_to_quadlet({"services": {"ok": {"image": "a"}, "bad": {}}})

    @pytest.mark.parametrize("document,error", [
        ({}, StructuralError),
        ("services: {}", StructuralError),
        ({"services": {"a": {"image": "x"}}, "secrets": {"s": {}}}, UnsupportedFeatureError),
        ({"services": {"a": {"image": "x", "ports": ["99999"]}}}, FieldValidationError),
    ])
    def test_errors(self, orchestrator, document, error):
        with pytest.raises(error):
            orchestrator.compose_to_quadlet(document)

    def test_parse_compose_returns_containers(self, orchestrator):
        containers = orchestrator.parse_compose("services:\n  web:\n    image: nginx\n")
        assert len(containers) == 1
        assert containers[0].image == "nginx"

    def test_from_compose_reads_file(self, orchestrator, tmp_path):
        path = tmp_path / "compose.yaml"
        path.write_text("services:\n  web:\n    image: nginx\n")
        files = orchestrator.from_compose(str(path))
        assert files[0].content == "[Container]\nImage=nginx\nContainerName=web\n"


class TestDockerRun:
    def test_end_to_end(self, orchestrator):
        text = orchestrator.docker_run_to_quadlet(
            "docker run -d --name web -p 8080:80 -e 'MSG=hello world' --restart unless-stopped nginx"
        )
        assert text == (
            "[Container]\n"
            "Image=nginx\n"
            "ContainerName=web\n"
            "PublishPort=8080:80\n"
            'Environment="MSG=hello world"\n'
            "\n"
            "[Service]\n"
            "Restart=always\n"
        )

    def test_name_from_image(self, orchestrator):
        unit_file = orchestrator.docker_run_to_quadlet_file(["docker", "run", "docker.io/library/redis:7"])
        assert unit_file.filename == "redis.container"
        assert "ContainerName=redis\n" in unit_file.content

    def test_invalid_port(self, orchestrator):
        with pytest.raises(FieldValidationError):
            orchestrator.from_docker_run("docker run -p 0:80 nginx")

    def test_missing_image(self, orchestrator):
        with pytest.raises(RunCommandError):
            orchestrator.docker_run_to_quadlet("docker run -d")

    def test_custom_converter(self):
        def converter(command):
            return {"services": {"custom": {"image": command}}}

        orchestrator = QuadletOrchestrator(compose_parser=ComposeParser(context={}), run_converter=converter)
        assert orchestrator.docker_run_to_quadlet("alpine") == "[Container]\nImage=alpine\nContainerName=custom\n"

    def test_converter_must_yield_one_service(self):
        def converter(command):
            return {"services": {"a": {"image": "x"}, "b": {"image": "y"}}}

        orchestrator = QuadletOrchestrator(compose_parser=ComposeParser(context={}), run_converter=converter)
        with pytest.raises(RunCommandError):
            orchestrator.docker_run_to_quadlet("ignored")


class TestContainer:
    def test_container_to_quadlet_validates(self, orchestrator):
        with pytest.raises(FieldValidationError):
            orchestrator.container_to_quadlet(Container())

    def test_container_to_quadlet(self, orchestrator):
        c = Container().set_image("nginx")
        assert orchestrator.container_to_quadlet(c, {"install": {"wanted_by": "default.target"}}) == (
            "[Container]\nImage=nginx\n\n[Install]\nWantedBy=default.target\n"
        )


def test_create_orchestrator():
    parser = ComposeParser(context={})
    assert create_orchestrator(compose_parser=parser).compose_parser is parser
