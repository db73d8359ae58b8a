"""
CLI for change detection.
"""
import asyncio
import click
import json
import logging
import os
from typing import Optional, Tuple

from ..config.global_config_loader import load_global_config
from ..core.enums import EventType
from ..core.models import BuildDecision, ChangeEvent
from ..gate.change_gate import ChangeGate
from ..gate.git_diff import GitDiffCollector
from ..gate.rules import PathRuleSet
from .common import setup_logging


def write_github_output(decision: BuildDecision, output_path: Optional[str] = None):
    """Expose the decision as step outputs when running under GitHub Actions"""
    output_path = output_path or os.environ.get('GITHUB_OUTPUT')
    if not output_path:
        return
    with open(output_path, 'a', encoding='utf-8') as f:
        f.write(f"should_build={'true' if decision.should_build else 'false'}\n")
        f.write(f"matched_rules={','.join(sorted(decision.matched_rules))}\n")


@click.command()
@click.option('--path', 'paths', multiple=True, help='Changed path (repeatable)')
@click.option('--paths-file', type=click.Path(exists=True, dir_okay=False), default=None,
              help='File with one changed path per line')
@click.option('--base', default=None, help='Base commit for git diff')
@click.option('--head', default=None, help='Head commit for git diff')
@click.option('--rule', 'rules', multiple=True, help='Override configured rules (repeatable)')
@click.option('--event-type', type=click.Choice([e.value for e in EventType]), default=EventType.PUSH.value,
              help='Trigger type, manual always builds')
@click.option('--config', 'config_path', default=None, help='Path to apkgate YAML config')
@click.option('--log-level', default='INFO', help='Log level')
def evaluate(
    paths: Tuple[str, ...],
    paths_file: Optional[str],
    base: Optional[str],
    head: Optional[str],
    rules: Tuple[str, ...],
    event_type: str,
    config_path: Optional[str],
    log_level: str
):
    """Decide whether changed paths require an Android build"""
    setup_logging(log_level)
    logger = logging.getLogger(__name__)

    global_cfg = load_global_config(config_path)
    rule_set = PathRuleSet(rules or global_cfg.gate.rules)

    changed = list(paths)
    if paths_file:
        with open(paths_file, 'r', encoding='utf-8') as f:
            changed.extend(line.strip() for line in f if line.strip())

    if not changed and head:
        collector = GitDiffCollector(global_cfg.build.workdir)
        try:
            changed = asyncio.run(collector.changed_paths(head, base))
        except Exception as e:
            logger.error(f"Could not collect changes: {e}", exc_info=True)
            raise click.ClickException(str(e))

    event = ChangeEvent(
        event_type=EventType(event_type),
        branch=os.environ.get('GITHUB_REF_NAME', ''),
        changed_paths=frozenset(changed),
    )
    decision = ChangeGate(rule_set).evaluate_event(event)
    write_github_output(decision)
    click.echo(json.dumps(decision.to_dict(), indent=2))
