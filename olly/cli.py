"""CLI commands for olly."""

import json

import click
import yaml
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from .components import COMPONENT_ARGS, COMPONENTS
from .components.vmalert import build_rules
from .config import StackConfig, load_stack_config
from .encoding import dump_yaml

console = Console()

# components whose configuration documents do not depend on other components
RENDERABLE = ["loki", "tempo", "alertmanager", "grafana", "vmalert"]


def _load(path: str | None) -> StackConfig:
    try:
        return load_stack_config(path)
    except ValidationError as e:
        console.print(f"[red]Invalid stack configuration {path}:[/red]\n{e}")
        raise SystemExit(1)
    except yaml.YAMLError as e:
        console.print(f"[red]YAML parse error in {path}: {e}[/red]")
        raise SystemExit(1)


def render_documents(config: StackConfig, section: str) -> dict[str, str]:
    """Configuration documents a component mounts, keyed by file name."""
    if section == "vmalert":
        # notifiers and storage only affect container flags
        return {"alerts.yaml": dump_yaml(build_rules(config.vmalert.alerts))}

    args = config.args_for(section, COMPONENT_ARGS[section])
    return COMPONENTS[section].documents(args)


@click.group()
@click.option("-c", "--config", "config_path", default=None, help="Stack configuration file (YAML)")
@click.pass_context
def main(ctx: click.Context, config_path: str | None) -> None:
    """olly - Monitoring stack on Kubernetes."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


@main.command("components")
@click.pass_context
def list_components(ctx: click.Context) -> None:
    """List the components of the stack."""
    config = _load(ctx.obj["config_path"])

    table = Table(title=f"Components ({len(COMPONENTS)} total)")
    table.add_column("Section", style="cyan")
    table.add_column("Class")
    table.add_column("Type")
    table.add_column("Image")
    table.add_column("Ports")
    table.add_column("Capabilities")

    for section, component in COMPONENTS.items():
        settings = getattr(config, section)
        ports = ", ".join(f"{name}:{port}" for name, port in component.ports.items())
        table.add_row(
            section,
            component.__name__,
            component.component_type.value,
            f"{component.image}:{settings.tag or config.tag}",
            ports,
            ", ".join(c.__name__ for c in component.provides),
        )

    console.print(table)


@main.command("render")
@click.argument("component", type=click.Choice(RENDERABLE))
@click.pass_context
def render(ctx: click.Context, component: str) -> None:
    """Print the configuration files a component mounts."""
    config = _load(ctx.obj["config_path"])

    for filename, document in render_documents(config, component).items():
        console.print(f"[bold]# {filename}[/bold]")
        click.echo(document)


@main.command("config")
@click.option("-f", "--format", "fmt", default="yaml", type=click.Choice(["yaml", "json"]), help="Output format")
@click.pass_context
def show_config(ctx: click.Context, fmt: str) -> None:
    """Validate and print the resolved stack configuration."""
    config = _load(ctx.obj["config_path"])

    if fmt == "json":
        click.echo(json.dumps(config.model_dump(), indent=2))
    else:
        click.echo(config.to_yaml())


if __name__ == "__main__":
    main()
