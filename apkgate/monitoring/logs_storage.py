import json
import shutil
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Dict, Any
import logging


class RunLogsStorage:
    """
    File-based storage for pipeline run logs.

    Layout:
        <logs_dir>/<run_id>/run.log      JSON lines from the run's loggers
        <logs_dir>/<run_id>/<step>.log   raw stdout/stderr of a build step
    """

    def __init__(self, logs_dir: str = "./data/logs", max_runs: int = 50):
        self.logs_dir = Path(logs_dir)
        self.max_runs = max_runs
        self.logger = logging.getLogger(__name__)

        self.logs_dir.mkdir(parents=True, exist_ok=True)

    def run_dir(self, run_id: str) -> Path:
        run_dir = self.logs_dir / run_id
        run_dir.mkdir(parents=True, exist_ok=True)
        return run_dir

    def run_log_path(self, run_id: str) -> Path:
        return self.run_dir(run_id) / "run.log"

    def step_log_path(self, run_id: str, step_name: str) -> Path:
        return self.run_dir(run_id) / f"{step_name}.log"

    def start_run(self, run_id: str) -> Path:
        """Create the run directory and prune old runs"""
        run_dir = self.run_dir(run_id)
        self._cleanup_old_runs(keep=run_id)
        return run_dir

    def append_log(self, run_id: str, timestamp: datetime, level: str, message: str, logger_name: Optional[str] = None) -> None:
        """Append a single log entry for a given run as a JSON line."""
        entry: Dict[str, Any] = {
            "timestamp": timestamp.isoformat(),
            "level": level,
            "message": message,
            "run_id": run_id,
        }
        if logger_name:
            entry["logger"] = logger_name

        with open(self.run_log_path(run_id), "a", encoding="utf-8") as f:
            f.write(json.dumps(entry, ensure_ascii=False) + "\n")

    def get_run_logs(self, run_id: str, level: Optional[str] = None, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Read logs for a specific run.

        Returns list of dicts with keys: timestamp (datetime), level, message, run_id.
        """
        run_file = self.logs_dir / run_id / "run.log"
        if not run_file.exists():
            return []

        logs: List[Dict[str, Any]] = []
        with open(run_file, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    data = json.loads(line)
                except json.JSONDecodeError as parse_err:
                    self.logger.debug(f"Skipping malformed log line in {run_file}: {parse_err}")
                    continue
                if level and data.get("level") != level.upper():
                    continue
                if isinstance(data.get("timestamp"), str):
                    data["timestamp"] = datetime.fromisoformat(data["timestamp"])
                logs.append(data)

        if limit is not None and limit >= 0:
            logs = logs[-limit:]

        return logs

    def list_runs(self) -> List[str]:
        """Run ids, most recent first"""
        run_dirs = sorted(
            (p for p in self.logs_dir.iterdir() if p.is_dir()),
            key=lambda x: x.stat().st_mtime,
            reverse=True,
        )
        return [p.name for p in run_dirs]

    def _cleanup_old_runs(self, keep: Optional[str] = None) -> None:
        """Keep only the latest N runs by modification time."""
        run_ids = [r for r in self.list_runs() if r != keep]
        limit = self.max_runs - 1 if keep else self.max_runs

        for old_run in run_ids[max(limit, 0):]:
            try:
                shutil.rmtree(self.logs_dir / old_run)
                self.logger.debug(f"Removed old run logs: {old_run}")
            except OSError as e:
                self.logger.warning(f"Failed to remove old run logs {old_run}: {e}")
