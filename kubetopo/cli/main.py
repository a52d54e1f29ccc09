"""kubetopo command-line interface.

Queries run directly against the cluster selected by the usual in-cluster
or kubeconfig resolution; ``serve`` starts the REST API instead.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import click

from kubetopo import __version__
from kubetopo.api.schemas import ImpactResponse, TrafficFlowResponse
from kubetopo.config import load_config
from kubetopo.errors import InvalidTargetError, KubeTopoError
from kubetopo.impact.analyzer import analyze_impact
from kubetopo.models.config import KubeTopoConfig
from kubetopo.models.impact import ImpactRequest
from kubetopo.models.traffic import TrafficFlowRequest
from kubetopo.observability.logging import setup_logging
from kubetopo.traffic.analyzer import analyze_traffic_flow

T = TypeVar("T")


async def _with_cluster(
    query: Callable[[Any, Any, KubeTopoConfig], Awaitable[T]],
    request: Any,
    config: KubeTopoConfig,
) -> T:
    from kubetopo.cluster.kube import KubeClusterReader

    reader = await KubeClusterReader.connect(config.cluster)
    try:
        return await query(reader, request, config)
    finally:
        await reader.close()


def _run(query: Callable[[Any, Any, KubeTopoConfig], Awaitable[T]], request: Any) -> T:
    config = load_config()
    setup_logging(config.log.level, json_output=False)
    try:
        return asyncio.run(_with_cluster(query, request, config))
    except InvalidTargetError as exc:
        raise click.UsageError(str(exc)) from exc
    except KubeTopoError as exc:
        raise click.ClickException(str(exc)) from exc


@click.group()
@click.version_option(__version__, prog_name="kubetopo")
def cli() -> None:
    """Traffic-flow and impact analysis for Kubernetes."""


@cli.command()
@click.argument("kind")
@click.argument("name")
@click.option("-n", "--namespace", default=None, help="Namespace of the start object.")
@click.option("--no-istio", is_flag=True, help="Skip VirtualService/DestinationRule/Gateway discovery.")
@click.option("--from-pod", default=None, help="Source pod for NetworkPolicy evaluation.")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["json", "mermaid"]),
    default="json",
    show_default=True,
)
def traffic(
    kind: str,
    name: str,
    namespace: str | None,
    no_istio: bool,
    from_pod: str | None,
    output_format: str,
) -> None:
    """Show how traffic reaches KIND/NAME."""
    request = TrafficFlowRequest(
        kind=kind,
        name=name,
        namespace=namespace,
        include_istio=not no_istio,
        from_kind="Pod" if from_pod else None,
        from_name=from_pod,
        from_namespace=namespace if from_pod else None,
    )
    result = _run(analyze_traffic_flow, request)
    if output_format == "mermaid":
        click.echo(result.mermaid)
        for warning in result.warnings:
            click.echo(f"%% warning: {warning}")
        return
    click.echo(TrafficFlowResponse.model_validate(result).model_dump_json(indent=2))


@cli.command()
@click.argument("kind")
@click.argument("name")
@click.option("-n", "--namespace", default=None, help="Namespace of the target object.")
@click.option(
    "--action",
    type=click.Choice(["delete", "update"]),
    default="delete",
    show_default=True,
)
@click.option("--change-summary", default=None, help="Short description of the planned update.")
def impact(
    kind: str,
    name: str,
    namespace: str | None,
    action: str,
    change_summary: str | None,
) -> None:
    """Show what depends on KIND/NAME."""
    request = ImpactRequest(
        kind=kind,
        name=name,
        namespace=namespace,
        action=action,
        change_summary=change_summary,
    )
    result = _run(analyze_impact, request)
    click.echo(ImpactResponse.model_validate(result).model_dump_json(indent=2))


@cli.command()
def serve() -> None:
    """Run the REST API until SIGTERM/SIGINT."""
    from kubetopo.app import main

    asyncio.run(main())
