from typing import Iterable

from .enums import EventType, Provenance
from .models import ChangeEvent


def is_protected_branch(branch: str, protected_branches: Iterable[str]) -> bool:
    return branch in set(protected_branches)


def classify_provenance(event: ChangeEvent, protected_branches: Iterable[str]) -> Provenance:
    """Push and manual triggers on a protected branch are trusted, nothing else is"""
    if event.event_type == EventType.PULL_REQUEST:
        return Provenance.UNTRUSTED
    if is_protected_branch(event.branch, protected_branches):
        return Provenance.TRUSTED
    return Provenance.UNTRUSTED
