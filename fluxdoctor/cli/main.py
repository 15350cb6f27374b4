"""Command line for the fluxdoctor diagnostics.

Each command loads configuration, connects to the cluster from the
current kubeconfig (or in-cluster service account), runs one diagnostic
operation and prints the report. Error results exit with status 1.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable

import click

from fluxdoctor.app import build_diagnostician, connect_kubernetes
from fluxdoctor.config import load_config
from fluxdoctor.diagnostics import FluxDiagnostician
from fluxdoctor.models.config import FluxDoctorConfig
from fluxdoctor.models.report import DiagnosticResult
from fluxdoctor.observability.logging import setup_logging

Operation = Callable[[FluxDiagnostician], Awaitable[DiagnosticResult]]


async def _run_with_cluster(config: FluxDoctorConfig, operation: Operation) -> DiagnosticResult:
    try:
        api_client = await connect_kubernetes()
    except Exception as exc:
        raise click.ClickException(f"cannot load Kubernetes configuration: {exc}") from exc
    try:
        return await operation(build_diagnostician(api_client, config.diagnostics))
    finally:
        await api_client.close()


def _execute(ctx: click.Context, operation: Operation) -> None:
    config: FluxDoctorConfig = ctx.obj["config"]
    result = asyncio.run(_run_with_cluster(config, operation))

    if ctx.obj["as_json"]:
        click.echo(json.dumps({"report": result.text, "is_error": result.is_error, "error": result.error_code}))
    else:
        click.echo(result.text.rstrip("\n"), err=result.is_error)

    if result.is_error:
        ctx.exit(1)


@click.group()
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False),
    default=None,
    help="Override FLUXDOCTOR_LOG_LEVEL.",
)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def cli(ctx: click.Context, log_level: str | None, as_json: bool) -> None:
    """Read-only diagnostics for FluxCD Kustomizations and HelmReleases."""
    try:
        config = load_config()
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc
    if log_level:
        config.log.level = log_level.lower()
    setup_logging(config.log.level, json_output=False)
    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    ctx.obj["as_json"] = as_json


@cli.command()
@click.argument("kind")
@click.argument("namespace")
@click.argument("name")
@click.pass_context
def diagnose(ctx: click.Context, kind: str, namespace: str, name: str) -> None:
    """Diagnose one Kustomization (ks) or HelmRelease (hr)."""
    _execute(ctx, lambda d: d.diagnose_resource(kind, namespace, name))


@cli.command()
@click.pass_context
def system(ctx: click.Context) -> None:
    """Cluster-wide FluxCD health report."""
    _execute(ctx, lambda d: d.diagnose_system())


@cli.command()
@click.argument("kind")
@click.argument("namespace")
@click.argument("name")
@click.pass_context
def tree(ctx: click.Context, kind: str, namespace: str, name: str) -> None:
    """Show the source, dependency and inventory tree of a resource."""
    _execute(ctx, lambda d: d.get_resource_tree(kind, namespace, name))


@cli.command()
@click.pass_context
def serve(ctx: click.Context) -> None:
    """Run the REST API service."""
    from fluxdoctor.app import main

    asyncio.run(main(ctx.obj["config"]))
