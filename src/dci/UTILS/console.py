"""
Console output for instance lifecycle commands.
"""
import click
from jinja2 import Template
from ..MODELS.instance import InstanceRecord

INSTANCE_TABLE_TEMPLATE = """\
{{ title }}
{{ header }}
{{ rule }}
{% for row in rows -%}
{{ row }}
{% endfor -%}
{{ footer }}"""

COLUMNS = ["Service", "Host:Port", "Tag Version", "Image Source", "Container Port", "Container Id", "IsDebug"]


class ConsolePrinter:
    """
    Writes progress, warnings, errors and connection tables to the terminal.
    """
    def __init__(self, color: bool = True):
        """
        :param color: Whether to style output. Disable for plain logs.
        """
        self.color = color
        self.template = Template(INSTANCE_TABLE_TEMPLATE)

    def info(self, text: str):
        click.echo(text)

    def bold(self, text: str):
        click.secho(text, bold=self.color)

    def warning(self, text: str):
        click.secho(text, fg="yellow" if self.color else None)

    def error(self, text: str):
        click.secho(text, fg="red" if self.color else None, err=True)

    def instance_table(self, instance: InstanceRecord):
        """
        Prints connection information for every port of every service of an instance.

        :param instance: A resolved instance.
        """
        click.echo(self.render_instance_table(instance))

    def render_instance_table(self, instance: InstanceRecord) -> str:
        """
        Renders the connection table for an instance.

        :param instance: A resolved instance.
        :return: The table as text.
        """
        rows = []
        for service in instance.services:
            for port in service.ports:
                host_port = f"{service.container_host}:{port.host_port}" if port.host_port else "-"
                rows.append([
                    service.service_name,
                    host_port,
                    service.version_tag,
                    service.image_source.value,
                    port.container_port,
                    service.container_id[:12] if service.is_resolved else "-",
                    "YES" if port.is_debug_port else "NO",
                ])

        widths = [len(c) for c in COLUMNS]
        for row in rows:
            widths = [max(w, len(cell)) for w, cell in zip(widths, row)]

        def fmt(cells):
            return "  ".join(cell.ljust(w) for cell, w in zip(cells, widths)).rstrip()

        return self.template.render(
            title=f"Docker Compose instance: {instance.instance_name} ({instance.owner_service_name})",
            header=fmt(COLUMNS),
            rule="-" * len(fmt(COLUMNS)),
            rows=[fmt(r) for r in rows],
            footer=f"Instance Id: {instance.instance_name}   Compose File: {instance.manifest_path}",
        )
