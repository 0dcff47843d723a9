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
Command Line Interface for D2Q.
"""
import logging
import os
from typing import List

import click

from ..exceptions import QuadletError
from ..MANAGERS.quadlet_orchestrator import QuadletOrchestrator
from ..MODELS.quadlet_file import QuadletFile
from ..MODELS.sections import GenerationOptions, Globals, Install, Service, Unit
from ..PARSERS.compose_parser import ComposeParser
from ..PARSERS.env_parser import EnvParser


def _generation_options(func):
    """
    Options shared by every conversion command.
    """
    options = [
        click.option('--out', '-o', default=None, help='Write units into this directory instead of stdout'),
        click.option('--description', default=None, help='[Unit] Description='),
        click.option('--wants', multiple=True, help='[Unit] Wants= (repeatable)'),
        click.option('--requires', multiple=True, help='[Unit] Requires= (repeatable)'),
        click.option('--after', multiple=True, help='[Unit] After= (repeatable)'),
        click.option('--before', multiple=True, help='[Unit] Before= (repeatable)'),
        click.option('--restart', default=None, help='[Service] Restart=, overrides the compose policy'),
        click.option('--restart-sec', default=None, help='[Service] RestartSec='),
        click.option('--timeout-start-sec', default=None, help='[Service] TimeoutStartSec='),
        click.option('--wanted-by', multiple=True, help='[Install] WantedBy= (repeatable)'),
        click.option('--required-by', multiple=True, help='[Install] RequiredBy= (repeatable)'),
        click.option('--podman-args', default=None, help='[GlobalArgs] PodmanArgs='),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def build_options(params: dict) -> GenerationOptions:
    """
    Builds GenerationOptions from CLI parameters, leaving out empty sections.
    """
    unit = Unit(description=params.get('description'), wants=list(params.get('wants', ())),
                requires=list(params.get('requires', ())), after=list(params.get('after', ())),
                before=list(params.get('before', ())))
    service = Service(restart=params.get('restart'), restart_sec=params.get('restart_sec'),
                      timeout_start_sec=params.get('timeout_start_sec'))
    install = Install(wanted_by=list(params.get('wanted_by', ())),
                      required_by=list(params.get('required_by', ())))
    globals_ = Globals(podman_args=params.get('podman_args'))
    return GenerationOptions(
        unit=None if unit.is_empty() else unit,
        service=None if service.is_empty() else service,
        install=None if install.is_empty() else install,
        globals=None if globals_.is_empty() else globals_,
    )


def _emit(files: List[QuadletFile], out: str):
    """
    Writes units into `out`, or prints them separated by their file names.
    """
    if out:
        os.makedirs(out, exist_ok=True)
        for unit_file in files:
            with open(os.path.join(out, unit_file.filename), 'w', encoding='utf-8') as f:
                f.write(unit_file.content)
        click.echo(f"Quadlet files generated in {out}")
        return

    for index, unit_file in enumerate(files):
        if len(files) > 1:
            if index:
                click.echo()
            click.echo(f"# {unit_file.filename}")
        click.echo(unit_file.content, nl=False)


@click.group()
@click.option('--verbose', '-v', is_flag=True, help='Log mapping details')
@click.option('--quiet', '-q', is_flag=True, help='Only log errors')
@click.pass_context
def cli(ctx, verbose, quiet):
    """
    D2Q - Docker to Quadlet converter.

    Turns docker run commands and compose files into Podman Quadlet units.
    """
    ctx.ensure_object(dict)
    level = logging.WARNING
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR
    logging.basicConfig(level=level, format='%(levelname)s %(name)s: %(message)s')


@cli.command(context_settings={'ignore_unknown_options': True, 'allow_interspersed_args': False})
@_generation_options
@click.argument('command', nargs=-1, type=click.UNPROCESSED, required=True)
@click.pass_context
def run(ctx, command, out, **params):
    """Convert a docker run command, e.g. `d2q run -- -p 80:80 nginx`."""
    orchestrator = QuadletOrchestrator()
    try:
        unit_file = orchestrator.docker_run_to_quadlet_file(list(command), build_options(params))
    except QuadletError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)
    _emit([unit_file], out)


@cli.command()
@click.option('--file', '-f', default='docker-compose.yml', help='Compose file path')
@click.option('--env-file', default=None, type=click.Path(exists=True, dir_okay=False),
              help='Variables used for ${VAR} interpolation (defaults to .env next to the file)')
@_generation_options
@click.pass_context
def compose(ctx, file, env_file, out, **params):
    """Convert every service of a compose file."""
    if not os.path.exists(file):
        click.echo(f"Error: {file} not found.", err=True)
        ctx.exit(1)

    context = dict(os.environ)
    dotenv_path = env_file or os.path.join(os.path.dirname(os.path.abspath(file)), '.env')
    if os.path.exists(dotenv_path):
        context.update(EnvParser.parse(dotenv_path))

    orchestrator = QuadletOrchestrator(compose_parser=ComposeParser(context))
    try:
        files = orchestrator.from_compose(file, build_options(params))
    except QuadletError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)
    _emit(files, out)


def main():
    """
    Main entry point for the CLI.
    """
    cli(obj={})


if __name__ == '__main__':
    main()
