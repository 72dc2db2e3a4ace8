"""
Command Line Interface for DCI.
"""
import logging
import click
from pydantic import ValidationError
from ..MODELS.settings import ComposeSettings
from ..MANAGERS.instance_orchestrator import InstanceOrchestrator
from ..REGISTRY.instance_store import InstanceStore
from ..RUNNERS.docker_commands import DockerCommands
from ..UTILS.console import ConsolePrinter


@click.group()
@click.option('--file', '-f', 'compose_file', default=None, help='Compose file path [default: docker-compose.yml]')
@click.option('--service-name', default=None, help='Project owning the instances [default: current directory name]')
@click.option('--state-file', default=None, help='File tracking running instances [default: ~/.dci/instances.json]')
@click.option('--env-file', default='.env', show_default=True, help='File with DCI_* settings')
@click.option('--no-color', is_flag=True, help='Disable colored output')
@click.option('--verbose', '-v', is_flag=True, help='Log every docker invocation')
@click.pass_context
def cli(ctx, compose_file, service_name, state_file, env_file, no_color, verbose):
    """
    DCI - disposable Docker Compose instances.

    Starts uniquely named copies of a Docker Compose environment, prints how to
    reach their services, and stops them again.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)

    try:
        settings = ComposeSettings.load(
            env_file=env_file,
            compose_file=compose_file,
            service_name=service_name,
            state_file=state_file,
        )
    except ValidationError as e:
        raise click.UsageError(f"Invalid configuration: {e}")

    printer = ctx.obj.get('printer') or ConsolePrinter(color=not no_color)
    commands = ctx.obj.get('commands') or DockerCommands(
        settings.docker_binary, settings.compose_argv, timeout=settings.command_timeout_seconds)
    store = InstanceStore(settings.state_file)

    ctx.obj['settings'] = settings
    ctx.obj['printer'] = printer
    ctx.obj['store'] = store
    ctx.obj['orchestrator'] = InstanceOrchestrator(settings, commands, store, printer)


@cli.command()
@click.option('--skip-pull', is_flag=True, help='Use locally cached images instead of pulling from the registry')
@click.option('--skip-build', is_flag=True, help='Use the current local image instead of building a new one')
@click.pass_context
def up(ctx, skip_pull, skip_build):
    """Start a new Docker Compose instance."""
    orchestrator = ctx.obj['orchestrator']
    result = orchestrator.start(ctx.obj['store'].load(), skip_pull=skip_pull, skip_build=skip_build)
    if not result.ok:
        raise click.ClickException(result.message)
    ctx.obj['printer'].bold(f"Started Docker Compose instance: {result.instance.instance_name}")


@cli.command()
@click.argument('instance_names', nargs=-1)
@click.pass_context
def stop(ctx, instance_names):
    """Stop instances. Without INSTANCE_NAMES stops every instance of this project."""
    orchestrator = ctx.obj['orchestrator']
    orchestrator.stop(ctx.obj['store'].load(), instance_names)


@cli.command()
@click.pass_context
def instances(ctx):
    """Print connection information for all running instances."""
    orchestrator = ctx.obj['orchestrator']
    printer = ctx.obj['printer']
    running = orchestrator.list_instances(ctx.obj['store'].load())
    if running is None:
        printer.info("There are no currently running Docker Compose instances detected.")
        return
    for instance in running:
        printer.instance_table(instance)


def main():
    """
    Main entry point for the CLI.
    """
    cli(obj={})


if __name__ == '__main__':
    main()
