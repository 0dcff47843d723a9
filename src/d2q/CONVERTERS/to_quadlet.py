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
Converters for rendering Container models as Podman Quadlet unit files.
"""
from typing import Any, Dict, List, Optional, Tuple

from jinja2 import Environment as TemplateEnvironment

from ..MODELS.container import Container
from ..MODELS.sections import GenerationOptions, Globals, Install, NotifyOption, Service, Unit
from ..UTILS.quoting import escape_value

Entries = List[Tuple[str, str]]

QUADLET_TEMPLATE = """\
{% for section in sections %}{% if not loop.first %}
{% endif %}[{{ section.name }}]
{% for key, value in section.entries %}{{ key }}={{ value }}
{% endfor %}{% endfor %}"""

# (Quadlet key, Container attribute, kind) in output order.
#   scalar  - one line when set
#   list    - one line per element
#   flag    - `=true` when set
#   escaped - one line per element, quoted when it contains a space
#   spaced  - all elements on one line, joined by spaces
#   colon   - all elements on one line, joined by ':'
CONTAINER_FIELDS: List[Tuple[str, str, str]] = [
    ("Image", "image", "scalar"),
    ("ContainerName", "container_name", "scalar"),
    ("Exec", "exec", "scalar"),
    ("PublishPort", "publish_port", "list"),
    ("ExposeHostPort", "expose_host_port", "list"),
    ("Volume", "volume", "list"),
    ("Mount", "mount", "list"),
    ("Environment", "environment", "escaped"),
    ("EnvironmentFile", "environment_file", "list"),
    ("EnvironmentHost", "environment_host", "flag"),
    ("Label", "label", "escaped"),
    ("Network", "network", "list"),
    ("NetworkAlias", "network_alias", "list"),
    ("AddCapability", "add_capability", "spaced"),
    ("DropCapability", "drop_capability", "spaced"),
    ("AddDevice", "add_device", "list"),
    ("DNS", "dns", "dns"),
    ("DNSOption", "dns_option", "list"),
    ("DNSSearch", "dns_search", "list"),
    ("NoNewPrivileges", "no_new_privileges", "flag"),
    ("SecurityLabelDisable", "security_label_disable", "flag"),
    ("SecurityLabelFileType", "security_label_file_type", "scalar"),
    ("SecurityLabelLevel", "security_label_level", "scalar"),
    ("SecurityLabelNested", "security_label_nested", "flag"),
    ("SecurityLabelType", "security_label_type", "scalar"),
    ("SeccompProfile", "seccomp_profile", "scalar"),
    ("Mask", "mask", "colon"),
    ("Unmask", "unmask", "colon"),
    ("User", "user", "scalar"),
    ("Group", "group", "scalar"),
    ("GroupAdd", "group_add", "list"),
    ("UserNS", "user_ns", "scalar"),
    ("UIDMap", "uid_map", "list"),
    ("GIDMap", "gid_map", "list"),
    ("SubUIDMap", "sub_uid_map", "scalar"),
    ("SubGIDMap", "sub_gid_map", "scalar"),
    ("ReadOnly", "read_only", "flag"),
    ("ReadOnlyTmpfs", "read_only_tmpfs", "tristate"),
    ("RunInit", "run_init", "flag"),
    ("WorkingDir", "working_dir", "scalar"),
    ("HostName", "host_name", "scalar"),
    ("Timezone", "timezone", "scalar"),
    ("ShmSize", "shm_size", "scalar"),
    ("Tmpfs", "tmpfs", "list"),
    ("HealthCmd", "health_cmd", "scalar"),
    ("HealthInterval", "health_interval", "scalar"),
    ("HealthOnFailure", "health_on_failure", "scalar"),
    ("HealthRetries", "health_retries", "scalar"),
    ("HealthStartPeriod", "health_start_period", "scalar"),
    ("HealthTimeout", "health_timeout", "scalar"),
    ("HealthStartupCmd", "health_startup_cmd", "scalar"),
    ("HealthStartupInterval", "health_startup_interval", "scalar"),
    ("HealthStartupRetries", "health_startup_retries", "scalar"),
    ("HealthStartupSuccess", "health_startup_success", "scalar"),
    ("HealthStartupTimeout", "health_startup_timeout", "scalar"),
    ("Notify", "notify", "notify"),
    ("StopSignal", "stop_signal", "scalar"),
    ("StopTimeout", "stop_timeout", "scalar"),
    ("Pod", "pod", "scalar"),
    ("LogDriver", "log_driver", "scalar"),
    ("LogOpt", "log_opt", "list"),
    ("Annotation", "annotation", "escaped"),
    ("PidsLimit", "pids_limit", "scalar"),
    ("Ulimit", "ulimit", "list"),
    ("Sysctl", "sysctl", "list"),
    ("AutoUpdate", "auto_update", "scalar"),
    ("Pull", "pull", "scalar"),
    ("Secret", "secret", "list"),
    ("Rootfs", "rootfs", "scalar"),
    ("Entrypoint", "entrypoint", "scalar"),
    ("IP", "ip", "scalar"),
    ("IP6", "ip6", "scalar"),
    ("PodmanArgs", "podman_args", "scalar"),
]

_NOTIFY_VALUES = {
    NotifyOption.CONTAINER: "true",
    NotifyOption.HEALTHY: "healthy",
}


def _field_entries(key: str, value: Any, kind: str) -> Entries:
    if kind == "scalar":
        return [(key, str(value))] if value not in (None, "") else []
    if kind == "list":
        return [(key, str(v)) for v in value]
    if kind == "escaped":
        return [(key, escape_value(v)) for v in value]
    if kind == "flag":
        return [(key, "true")] if value else []
    if kind == "tristate":
        return [(key, "false")] if value is False else []
    if kind == "spaced":
        return [(key, " ".join(value))] if value else []
    if kind == "colon":
        return [(key, ":".join(value))] if value else []
    if kind == "dns":
        if "none" in value:
            return [(key, "none")]
        return [(key, str(v)) for v in value]
    if kind == "notify":
        notify = _NOTIFY_VALUES.get(NotifyOption(value)) if value else None
        return [(key, notify)] if notify else []
    raise ValueError(f"Unknown field kind: {kind}")


class QuadletGenerator:
    """
    Renders a Container and optional systemd sections as Quadlet text.

    Sections are written as [Unit], [Container], [GlobalArgs], [Service],
    [Install], separated by one blank line; sections without content are left out.
    """
    template = TemplateEnvironment(keep_trailing_newline=True, autoescape=False).from_string(QUADLET_TEMPLATE)

    @classmethod
    def generate_file(cls, container: Container, options: Optional[Any] = None) -> str:
        """
        Generates the complete unit file for a container.

        :param container: The container to render; it is not modified.
        :param options: GenerationOptions or an equivalent mapping.
        :return: The unit file text.
        """
        options = GenerationOptions.from_value(options)

        sections = []
        if options.unit is not None and not options.unit.is_empty():
            sections.append({"name": "Unit", "entries": cls.unit_entries(options.unit)})
        sections.append({"name": "Container", "entries": cls.container_entries(container)})
        if options.globals is not None and not options.globals.is_empty():
            sections.append({"name": "GlobalArgs", "entries": cls.globals_entries(options.globals)})
        if options.service is not None and not options.service.is_empty():
            sections.append({"name": "Service", "entries": cls.service_entries(options.service)})
        if options.install is not None and not options.install.is_empty():
            sections.append({"name": "Install", "entries": cls.install_entries(options.install)})

        return cls.template.render(sections=sections)

    @staticmethod
    def container_entries(container: Container) -> Entries:
        entries: Entries = []
        for key, attribute, kind in CONTAINER_FIELDS:
            entries.extend(_field_entries(key, getattr(container, attribute), kind))
        return entries

    @staticmethod
    def unit_entries(unit: Unit) -> Entries:
        entries: Entries = []
        if unit.description:
            entries.append(("Description", unit.description))
        for key, values in (("Wants", unit.wants), ("Requires", unit.requires), ("BindsTo", unit.binds_to),
                            ("After", unit.after), ("Before", unit.before)):
            if values:
                entries.append((key, " ".join(values)))
        return entries

    @staticmethod
    def service_entries(service: Service) -> Entries:
        entries: Entries = []
        for key, value in (("Restart", service.restart), ("RestartSec", service.restart_sec),
                           ("TimeoutStartSec", service.timeout_start_sec),
                           ("TimeoutStopSec", service.timeout_stop_sec)):
            if value:
                entries.append((key, value))
        return entries

    @staticmethod
    def install_entries(install: Install) -> Entries:
        entries: Entries = []
        if install.wanted_by:
            entries.append(("WantedBy", " ".join(install.wanted_by)))
        if install.required_by:
            entries.append(("RequiredBy", " ".join(install.required_by)))
        return entries

    @staticmethod
    def globals_entries(globals_: Globals) -> Entries:
        return [("PodmanArgs", globals_.podman_args)] if globals_.podman_args else []


def parse_quadlet(content: str) -> Dict[str, Entries]:
    """
    Reads unit text back into {section: [(key, value), ...]} preserving order.

    Values are returned exactly as written, quotes included; comment and
    blank lines are skipped.
    """
    sections: Dict[str, Entries] = {}
    current: Optional[Entries] = None
    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line or line.startswith(('#', ';')):
            continue
        if line.startswith('[') and line.endswith(']'):
            current = sections.setdefault(line[1:-1], [])
            continue
        if current is None or '=' not in line:
            raise ValueError(f"Unexpected line outside a section: {raw_line}")
        key, value = line.split('=', 1)
        current.append((key, value))
    return sections
