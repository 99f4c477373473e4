"""Workflow Simulator CLI"""
import asyncio
import json
import logging
import random
import sys
from pathlib import Path

import click
from dotenv import load_dotenv

from .config import load_settings
from .errors import SimulationError, WorkflowError
from .executor import GraphExecutor, random_execute
from .runner import SimulationRunner
from .snapshot import export_workflow, load_workflow_file
from .validation import validate_workflow


def _fail(message):
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


def _load(workflow_file):
    try:
        return load_workflow_file(workflow_file)
    except WorkflowError as e:
        _fail(e)


@click.group()
@click.option('--config', 'config_path', default=None, help='Path to a YAML settings file')
@click.pass_context
def cli(ctx, config_path):
    """Workflow Simulator CLI"""
    load_dotenv()
    settings = load_settings(config_path)
    logging.basicConfig(
        level=settings.log_level.upper(),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    ctx.obj = settings


@cli.command()
@click.argument('workflow_file', type=click.Path(exists=True, dir_okay=False))
@click.option('--start', 'start_step_id', default=None, help='Start step id (defaults to the first start step)')
@click.option('--max-steps', type=int, default=None, help='Abort branches after this many steps')
@click.option('--seed', type=int, default=None, help='Seed for the random stand-in step action')
@click.pass_obj
def run(settings, workflow_file, start_step_id, max_steps, seed):
    """Test-run a workflow and print its log"""
    workflow = _load(workflow_file)
    if start_step_id is None:
        starts = workflow.start_steps()
        if not starts:
            _fail("Workflow has no start step; pass --start")
        start_step_id = starts[0].id

    executor = GraphExecutor(
        execute_fn=random_execute(
            settings.random_step_type,
            settings.failure_probability,
            rng=random.Random(seed),
        ),
        max_steps=max_steps or settings.max_steps,
    )
    runner = SimulationRunner(executor=executor)

    try:
        result = asyncio.run(runner.run(workflow, start_step_id))
    except SimulationError as e:
        _print_log(runner)
        _fail(e)

    _print_log(runner)
    click.echo(json.dumps(result.to_dict(), indent=2))
    if not result.success:
        sys.exit(1)


def _print_log(runner):
    for entry in runner.tracker.state.log:
        step = f" [{entry.step_id}]" if entry.step_id else ""
        click.echo(f"{entry.level.value:>7}{step} {entry.message}")


@cli.command()
@click.argument('workflow_file', type=click.Path(exists=True, dir_okay=False))
def validate(workflow_file):
    """Check a workflow for structural problems"""
    report = validate_workflow(_load(workflow_file))
    for issue in report.errors + report.warnings:
        click.echo(f"{issue.type}: {issue.message}")
    for cycle in report.cycles:
        click.echo(f"cycle: {' -> '.join(cycle)}")
    if not report.valid:
        sys.exit(1)
    click.echo("Workflow is valid")


@cli.command()
@click.argument('workflow_file', type=click.Path(exists=True, dir_okay=False))
@click.option('--format', 'fmt', type=click.Choice(['json', 'yaml']), default='json')
@click.option('--compact', is_flag=True, help='Single-line JSON output')
@click.option('--output', type=click.Path(dir_okay=False), default=None)
def export(workflow_file, fmt, compact, output):
    """Re-emit a workflow as a snapshot envelope"""
    text = export_workflow(_load(workflow_file), pretty=not compact, fmt=fmt)
    if output:
        Path(output).write_text(text, encoding='utf-8')
        click.echo(f"Wrote {output}")
    else:
        click.echo(text)


@cli.command()
@click.option('--host', default=None, help='Host to bind to')
@click.option('--port', type=int, default=None, help='Port to bind to')
@click.pass_obj
def serve(settings, host, port):
    """Start the API server"""
    import uvicorn

    from .api import create_app

    app = create_app(SimulationRunner.from_settings(settings))
    host = host or settings.api_host
    port = port or settings.api_port
    click.echo(f"Starting API server on {host}:{port}")
    uvicorn.run(app, host=host, port=port)


def main():
    """Main entry point"""
    cli()


if __name__ == '__main__':
    main()
