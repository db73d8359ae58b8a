"""
CLI for running the build pipeline.
"""
import asyncio
import click
import json
import logging
import os
from typing import Optional, Tuple

from ..config.global_config_loader import GlobalConfig, load_global_config
from ..core.enums import EventType, RunStatus
from ..core.models import ChangeEvent, PipelineResult
from ..pipeline import Pipeline
from .common import setup_logging


async def run_pipeline(
    global_cfg: GlobalConfig,
    event: ChangeEvent,
    head: Optional[str] = None,
    base: Optional[str] = None,
    build_number: Optional[int] = None
) -> PipelineResult:
    pipeline = await Pipeline.from_config(global_cfg)
    async with pipeline:
        event = await pipeline.collect_changes(event, head=head, base=base)
        return await pipeline.handle(event, build_number=build_number)


def report(result: PipelineResult):
    """Print the result and map failures to a non-zero exit"""
    click.echo(json.dumps(result.to_dict(), indent=2))
    if result.status == RunStatus.FAILED:
        raise click.ClickException(result.error or "Pipeline failed")
    if result.status == RunStatus.CANCELLED:
        raise click.ClickException("Run was cancelled")


@click.command()
@click.option('--event-type', type=click.Choice([e.value for e in EventType]), required=True,
              help='Trigger type')
@click.option('--branch', required=True, help='Branch the trigger refers to')
@click.option('--pr', 'pr_number', type=int, default=None, help='Pull request number')
@click.option('--sha', default=None, help='Commit SHA being built')
@click.option('--release-name', default=None, help='Release name override (manual only)')
@click.option('--path', 'paths', multiple=True, help='Changed path (repeatable)')
@click.option('--base', default=None, help='Base commit for git diff')
@click.option('--build-number', type=int, default=None, help='Build number issued by the CI platform')
@click.option('--config', 'config_path', default=None, help='Path to apkgate YAML config')
@click.option('--log-level', default='INFO', help='Log level')
def run(
    event_type: str,
    branch: str,
    pr_number: Optional[int],
    sha: Optional[str],
    release_name: Optional[str],
    paths: Tuple[str, ...],
    base: Optional[str],
    build_number: Optional[int],
    config_path: Optional[str],
    log_level: str
):
    """Evaluate, build and publish for a single trigger"""
    setup_logging(log_level)
    logger = logging.getLogger(__name__)

    global_cfg = load_global_config(config_path)
    event = ChangeEvent(
        event_type=EventType(event_type),
        branch=branch,
        changed_paths=frozenset(paths),
        release_name_override=release_name,
        commit_sha=sha,
        pr_number=pr_number,
    )

    try:
        result = asyncio.run(run_pipeline(global_cfg, event, head=sha, base=base, build_number=build_number))
    except Exception as e:
        logger.error(f"Pipeline failed: {e}", exc_info=True)
        raise click.ClickException(str(e))

    report(result)


@click.command('from-github')
@click.option('--config', 'config_path', default=None, help='Path to apkgate YAML config')
@click.option('--log-level', default='INFO', help='Log level')
def from_github(config_path: Optional[str], log_level: str):
    """Run the pipeline for the current GitHub Actions event"""
    setup_logging(log_level)
    logger = logging.getLogger(__name__)

    event_name = os.environ.get('GITHUB_EVENT_NAME')
    if not event_name:
        raise click.ClickException("GITHUB_EVENT_NAME is not set, not running under GitHub Actions?")

    payload = {}
    event_path = os.environ.get('GITHUB_EVENT_PATH')
    if event_path and os.path.exists(event_path):
        with open(event_path, 'r', encoding='utf-8') as f:
            payload = json.load(f)

    global_cfg = load_global_config(config_path)
    try:
        event = ChangeEvent.from_github(
            event_name=event_name,
            payload=payload,
            ref_name=os.environ.get('GITHUB_HEAD_REF') or os.environ.get('GITHUB_REF_NAME', ''),
            sha=os.environ.get('GITHUB_SHA'),
        )
    except ValueError as e:
        raise click.ClickException(f"Unsupported event {event_name}: {e}")

    base = None
    if event.event_type == EventType.PULL_REQUEST:
        base = ((payload.get('pull_request') or {}).get('base') or {}).get('sha')
    elif event.event_type == EventType.PUSH:
        base = payload.get('before')

    run_number = os.environ.get('GITHUB_RUN_NUMBER')
    build_number = int(run_number) if run_number else None

    try:
        result = asyncio.run(
            run_pipeline(global_cfg, event, head=event.commit_sha, base=base, build_number=build_number)
        )
    except Exception as e:
        logger.error(f"Pipeline failed: {e}", exc_info=True)
        raise click.ClickException(str(e))

    report(result)
