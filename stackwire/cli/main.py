"""stackwire command-line interface.

Commands:
- stackwire validate <path>: build the graph and report every declaration error
- stackwire plan <path>: print the ordered, access-wired deployment plan
- stackwire simulate <path>: run the plan against the dry-run provisioner
- stackwire flowise: print the plan of the built-in Flowise stack
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import replace
from typing import Any, NoReturn

import click

from stackwire.config import load_config
from stackwire.errors import DeclarationError, StackwireError
from stackwire.loader import load_stack
from stackwire.models.config import ConflictPolicy, StackwireConfig
from stackwire.models.plan import DeploymentPlan
from stackwire.models.references import split_target
from stackwire.observability.logging import LOG_FORMATS, bind_run_context, setup_logging
from stackwire.planner.planner import plan_stack
from stackwire.provisioning.dry_run import DryRunProvisioner
from stackwire.provisioning.executor import PlanExecutor
from stackwire.stacks.flowise import FlowiseStackConfig, build_flowise_stack

_POLICIES = [policy.value for policy in ConflictPolicy]


def _report_errors(exc: StackwireError) -> NoReturn:
    errors = exc.errors if isinstance(exc, DeclarationError) else (exc,)
    for error in errors:
        click.echo(f"error: {error}", err=True)
    raise click.exceptions.Exit(2)


def _config(ctx: click.Context, conflicts: str | None = None, concurrency: int | None = None) -> StackwireConfig:
    config: StackwireConfig = ctx.obj
    planner = config.planner
    if conflicts is not None:
        planner = replace(planner, conflict_policy=ConflictPolicy(conflicts))
    if concurrency is not None:
        planner = replace(planner, max_concurrency=concurrency)
    return replace(config, planner=planner)


def _emit(data: dict[str, Any]) -> None:
    click.echo(json.dumps(data, indent=2, sort_keys=False))


def _render_text(plan: DeploymentPlan) -> None:
    for index, layer in enumerate(plan.layers):
        click.echo(f"layer {index}: {', '.join(layer)}")
    click.echo("access:")
    for edge in plan.edges:
        source = f" <- {edge.source_field}" if edge.source_field else ""
        principal = f" as {edge.principal}" if edge.principal is not None else ""
        click.echo(
            f"  {edge.from_node} -> {edge.to_node} [{edge.channel.value} {edge.scope}] "
            f"{edge.origin.value}{source}{principal}"
        )
    for conflict in plan.conflicts:
        click.echo(
            f"conflict: {conflict.explicit.from_node} -> {conflict.explicit.to_node} "
            f"[{conflict.explicit.channel.value}] explicit '{conflict.explicit.scope}' "
            f"kept over implicit '{conflict.implicit.scope}'"
        )


@click.group()
@click.option("--log-level", default=None, type=click.Choice(["debug", "info", "warning", "error"]))
@click.option("--log-format", default=None, type=click.Choice(LOG_FORMATS))
@click.pass_context
def cli(ctx: click.Context, log_level: str | None, log_format: str | None) -> None:
    """Compile cloud resource topologies into ordered, access-wired plans."""
    try:
        config = load_config()
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc
    setup_logging(log_level or config.log.level, log_format or config.log.format, cache_loggers=False)
    bind_run_context(command=ctx.invoked_subcommand)
    ctx.obj = config


@cli.command("validate")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
def validate(path: str) -> None:
    """Build the stack graph and report every declaration error."""
    try:
        graph = load_stack(path).build()
    except StackwireError as exc:
        _report_errors(exc)
    click.echo(f"ok: {graph.node_count} nodes, {graph.edge_count} dependencies, {len(graph.consumptions)} consumptions")


@cli.command("plan")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option("--format", "output_format", default="json", type=click.Choice(["json", "text"]))
@click.option("--conflicts", default=None, type=click.Choice(_POLICIES), help="Conflict policy override")
@click.pass_context
def plan(ctx: click.Context, path: str, output_format: str, conflicts: str | None) -> None:
    """Print the deployment plan for a topology document."""
    config = _config(ctx, conflicts=conflicts)
    try:
        deployment = plan_stack(load_stack(path).build(), config.planner)
    except StackwireError as exc:
        _report_errors(exc)
    if output_format == "text":
        _render_text(deployment)
    else:
        _emit(deployment.to_dict())


@cli.command("simulate")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option("--fail", "fail_nodes", multiple=True, help="Node to fail during the dry run")
@click.option("--omit", multiple=True, help="node.attribute the dry run should never produce")
@click.option("--concurrency", type=click.IntRange(min=1), default=None)
@click.pass_context
def simulate(
    ctx: click.Context,
    path: str,
    fail_nodes: tuple[str, ...],
    omit: tuple[str, ...],
    concurrency: int | None,
) -> None:
    """Run the plan against the dry-run provisioner and print the run report."""
    config = _config(ctx, concurrency=concurrency)
    omitted: dict[str, set[str]] = {}
    for target in omit:
        try:
            node_id, attribute = split_target(target)
        except ValueError as exc:
            raise click.BadParameter(str(exc), param_hint="--omit") from exc
        omitted.setdefault(node_id, set()).add(attribute)
    try:
        deployment = plan_stack(load_stack(path).build(), config.planner)
    except StackwireError as exc:
        _report_errors(exc)

    provisioner = DryRunProvisioner(fail=fail_nodes, omit=omitted)
    executor = PlanExecutor(provisioner, max_concurrency=config.planner.max_concurrency)
    report = asyncio.run(executor.run(deployment))
    _emit(report.to_dict())
    if not report.complete:
        raise click.exceptions.Exit(1)


@cli.command("flowise")
@click.option("--public-db-ingress", is_flag=True, help="Declare open database ingress from any source")
@click.option("--format", "output_format", default="json", type=click.Choice(["json", "text"]))
@click.option("--conflicts", default=None, type=click.Choice(_POLICIES), help="Conflict policy override")
@click.pass_context
def flowise(ctx: click.Context, public_db_ingress: bool, output_format: str, conflicts: str | None) -> None:
    """Print the plan of the built-in Flowise stack."""
    config = _config(ctx, conflicts=conflicts)
    builder = build_flowise_stack(FlowiseStackConfig(allow_public_database_ingress=public_db_ingress))
    try:
        deployment = plan_stack(builder.build(), config.planner)
    except StackwireError as exc:
        _report_errors(exc)
    if output_format == "text":
        _render_text(deployment)
    else:
        _emit(deployment.to_dict())
