"""
Change detection for Android builds.
Matches changed paths against glob rules and collects diffs from git.
"""

from .rules import DEFAULT_RULES, PathRule, PathRuleSet, compile_glob, normalize_path
from .change_gate import ChangeGate, evaluate
from .git_diff import GitDiffCollector

__all__ = [
    'DEFAULT_RULES',
    'PathRule',
    'PathRuleSet',
    'compile_glob',
    'normalize_path',
    'ChangeGate',
    'evaluate',
    'GitDiffCollector',
]
