"""
Unit tests for converting docker run commands into compose documents.
"""
import pytest
from d2q.exceptions import RunCommandError
from d2q.MANAGERS.quadlet_orchestrator import QuadletOrchestrator
from d2q.PARSERS.compose_parser import ComposeParser
from d2q.PARSERS.run_parser import DockerRunParser


@pytest.fixture
def parser():
    return DockerRunParser()


def only_service(document):
    assert list(document) == ['services']
    assert len(document['services']) == 1
    return next(iter(document['services'].items()))


class TestTokenize:
    @pytest.mark.parametrize("command", [
        "docker run nginx",
        "podman run nginx",
        "docker container run nginx",
        "nginx",
    ])
    def test_strips_prefix(self, parser, command):
        assert parser.tokenize(command) == ["nginx"]

    def test_list_input(self, parser):
        assert parser.tokenize(["docker", "run", "-p", 80, "nginx"]) == ["-p", "80", "nginx"]

    def test_shell_quoting(self, parser):
        args = parser.tokenize("docker run -e 'MSG=hello world' nginx")
        assert args == ["-e", "MSG=hello world", "nginx"]

    def test_unbalanced_quotes(self, parser):
        with pytest.raises(RunCommandError):
            parser.tokenize("docker run -e 'MSG=oops nginx")


class TestToCompose:
    def test_minimal(self, parser):
        name, service = only_service(parser.to_compose("docker run nginx:1.25"))
        assert name == "nginx"
        assert service == {'image': 'nginx:1.25'}

    def test_name_becomes_service_key(self, parser):
        name, service = only_service(parser("docker run --name web -d --rm nginx"))
        assert name == "web"
        assert service['container_name'] == "web"

    def test_repeatable_options(self, parser):
        _, service = only_service(parser.to_compose(
            "docker run -p 8080:80 -p 443:443 -v data:/data -e A=1 --env B=2 "
            "-l app=web --cap-add NET_ADMIN --cap-drop ALL --device /dev/fuse --dns 1.1.1.1 "
            "--tmpfs /tmp --security-opt no-new-privileges:true nginx"
        ))
        assert service['ports'] == ['8080:80', '443:443']
        assert service['volumes'] == ['data:/data']
        assert service['environment'] == ['A=1', 'B=2']
        assert service['labels'] == ['app=web']
        assert service['cap_add'] == ['NET_ADMIN']
        assert service['cap_drop'] == ['ALL']
        assert service['devices'] == ['/dev/fuse']
        assert service['dns'] == ['1.1.1.1']
        assert service['tmpfs'] == ['/tmp']
        assert service['security_opt'] == ['no-new-privileges:true']

    def test_scalars_and_flags(self, parser):
        _, service = only_service(parser.to_compose(
            "docker run --restart unless-stopped -h box -u 1000:1000 -w /srv --entrypoint /init "
            "-m 512m --cpus 2 --read-only --init --privileged -it alpine"
        ))
        assert service['restart'] == 'unless-stopped'
        assert service['hostname'] == 'box'
        assert service['user'] == '1000:1000'
        assert service['working_dir'] == '/srv'
        assert service['entrypoint'] == '/init'
        assert service['mem_limit'] == '512m'
        assert service['cpus'] == '2'
        for flag in ('read_only', 'init', 'privileged', 'tty', 'stdin_open'):
            assert service[flag] is True

    def test_command_after_image(self, parser):
        _, service = only_service(parser.to_compose("docker run alpine sh -c 'echo hi' -v"))
        assert service['image'] == 'alpine'
        assert service['command'] == ['sh', '-c', 'echo hi', '-v']

    def test_networks_plain(self, parser):
        _, service = only_service(parser.to_compose("docker run --network front --net back nginx"))
        assert service['networks'] == ['front', 'back']

    def test_networks_with_alias_and_ip(self, parser):
        _, service = only_service(parser.to_compose(
            "docker run --network front --network-alias www --ip 10.0.0.5 nginx"
        ))
        assert service['networks'] == {'front': {'aliases': ['www'], 'ipv4_address': '10.0.0.5'}}

    def test_healthcheck(self, parser):
        _, service = only_service(parser.to_compose(
            "docker run --health-cmd 'curl -f http://localhost' --health-interval 30s --health-retries 3 nginx"
        ))
        assert service['healthcheck'] == {
            'test': 'curl -f http://localhost', 'interval': '30s', 'retries': '3',
        }

    def test_no_healthcheck(self, parser):
        _, service = only_service(parser.to_compose("docker run --no-healthcheck nginx"))
        assert service['healthcheck'] == {'disable': True}


class TestErrors:
    @pytest.mark.parametrize("command", ["", "docker run", "docker run -d"])
    def test_missing_image(self, parser, command):
        with pytest.raises(RunCommandError):
            parser.to_compose(command)

    def test_unknown_flag(self, parser):
        with pytest.raises(RunCommandError):
            parser.to_compose("docker run --frobnicate nginx")

    def test_missing_option_value(self, parser):
        with pytest.raises(RunCommandError):
            parser.to_compose("docker run -p")

    def test_flags_after_image_belong_to_command(self, parser):
        _, service = only_service(parser.to_compose("docker run nginx --name other"))
        assert 'container_name' not in service
        assert service['command'] == ['--name', 'other']


def test_digest_pinned_image_name(parser):
    name, service = only_service(parser.to_compose("docker run nginx@sha256:0123abcd"))
    assert name == "nginx"
    assert service['image'] == "nginx@sha256:0123abcd"

    text = QuadletOrchestrator(compose_parser=ComposeParser(context={})).docker_run_to_quadlet(
        "docker run docker.io/library/nginx@sha256:0123abcd"
    )
    assert "Image=docker.io/library/nginx@sha256:0123abcd\n" in text
    assert "ContainerName=nginx\n" in text


@pytest.mark.parametrize("flags,compose_keys,expected_line", [
    ("--ulimit nofile=1024:2048", {"ulimits": {"nofile": {"soft": 1024, "hard": 2048}}}, "Ulimit=nofile=1024:2048"),
    ("--sysctl net.core.somaxconn=1024", {"sysctls": {"net.core.somaxconn": 1024}},
     "Sysctl=net.core.somaxconn=1024"),
    ("--add-host db:10.0.0.2", {"extra_hosts": ["db:10.0.0.2"]}, "PodmanArgs=--add-host db:10.0.0.2"),
    ("--log-driver journald --log-opt tag=web", {"logging": {"driver": "journald", "options": {"tag": "web"}}},
     "LogOpt=tag=web"),
    ("--pull always", {"pull_policy": "always"}, "Pull=always"),
    ("--shm-size 1g", {"shm_size": "1g"}, "ShmSize=1g"),
    ("--pids-limit 100", {"pids_limit": 100}, "PidsLimit=100"),
    ("--expose 80", {"expose": [80]}, "ExposeHostPort=80"),
    ("--stop-signal SIGINT --stop-timeout 20", {"stop_signal": "SIGINT", "stop_grace_period": "20s"},
     "StopTimeout=20"),
    ("--dns-search example.com --dns-option ndots:2", {"dns_search": "example.com", "dns_opt": ["ndots:2"]},
     "DNSOption=ndots:2"),
    ("--group-add wheel", {"group_add": ["wheel"]}, "GroupAdd=wheel"),
    ("--userns keep-id", {"userns_mode": "keep-id"}, "UserNS=keep-id"),
    ("--annotation run.oci.keep_original_groups=1", {"annotations": {"run.oci.keep_original_groups": 1}},
     "Annotation=run.oci.keep_original_groups=1"),
])
def test_run_flags_match_compose(flags, compose_keys, expected_line):
    orchestrator = QuadletOrchestrator(compose_parser=ComposeParser(context={}))
    from_run = orchestrator.docker_run_to_quadlet(f"docker run {flags} nginx")
    from_compose = orchestrator.compose_to_quadlet({"services": {"nginx": {"image": "nginx", **compose_keys}}})
    assert from_run == from_compose[0].content
    assert f"{expected_line}\n" in from_run
