"""
Markdown rendered into pull request comments, release bodies and step summaries.
"""
from typing import Optional

from ..core.exceptions import StepFailed
from ..core.models import BuildArtifact, ChangeEvent, PublishReceipt

COMMENT_MARKER = "<!-- apkgate:android-test-build -->"


def release_marker(build_number: int, event_type: str) -> str:
    """Hidden marker identifying a release by (build_number, event_type)"""
    return f"<!-- apkgate:build={build_number}:event={event_type} -->"


def format_size(size_bytes: int) -> str:
    if size_bytes < 1024:
        return f"{size_bytes} B"
    if size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    return f"{size_bytes / (1024 * 1024):.1f} MB"


def render_artifact_summary(
    artifact: BuildArtifact,
    receipt: PublishReceipt,
    app_name: str
) -> str:
    lines = [
        COMMENT_MARKER,
        f"### 📱 {app_name} Android test build #{artifact.build_number}",
        "",
        "| | |",
        "|---|---|",
        f"| Artifact | `{receipt.name}` |",
        f"| Size | {format_size(artifact.size_bytes)} |",
        f"| SHA256 | `{artifact.sha256}` |",
        f"| Download | [{receipt.name}]({receipt.location}) |",
    ]
    if receipt.retention_days:
        lines.append(f"| Retention | {receipt.retention_days} days |")
    return "\n".join(lines) + "\n"


def render_release_body(artifact: BuildArtifact, event: ChangeEvent) -> str:
    lines = [
        release_marker(artifact.build_number, event.event_type.value),
        f"Android test build #{artifact.build_number} ({artifact.flavor.value})",
        "",
        f"- Branch: `{event.branch}`",
    ]
    if event.commit_sha:
        lines.append(f"- Commit: `{event.commit_sha}`")
    lines.extend([
        f"- Size: {format_size(artifact.size_bytes)}",
        f"- SHA256: `{artifact.sha256}`",
        "",
        "⚠️ Test build, not for production use.",
    ])
    return "\n".join(lines) + "\n"


def render_failure_summary(error: Exception, run_id: Optional[str] = None) -> str:
    lines = [
        COMMENT_MARKER,
        "### ❌ Android test build failed",
        "",
        f"{error}",
    ]
    if isinstance(error, StepFailed):
        lines.append("")
        lines.append(f"Step: `{error.step_name}`")
        if error.diagnostic_ref:
            lines.append(f"Diagnostics: `{error.diagnostic_ref}`")
    if run_id:
        lines.append(f"Run: `{run_id}`")
    return "\n".join(lines) + "\n"
