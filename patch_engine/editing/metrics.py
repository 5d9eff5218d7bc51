"""
Edit metrics — records the outcome of each applied edit in a JSONL log file.
"""

from __future__ import annotations

import json
import logging
import os
from collections import Counter
from datetime import datetime, timezone

logger = logging.getLogger(__name__)

DEFAULT_METRICS_DIR = ".patch_engine"
_METRICS_FILE = "edit_metrics.jsonl"


def _metrics_path(
    project_root: str | None = None,
    metrics_dir: str = DEFAULT_METRICS_DIR,
) -> str:
    """Return the absolute path to the metrics file."""
    base = project_root or os.getcwd()
    return os.path.join(base, metrics_dir, _METRICS_FILE)


def log_edit_metric(
    data: dict,
    project_root: str | None = None,
    metrics_dir: str = DEFAULT_METRICS_DIR,
) -> None:
    """Append a single edit metric entry to the JSONL log.

    Parameters
    ----------
    data:
        Metric fields to log (file, success, changes_applied, strategy,
        error_kind, ...).
    project_root:
        Optional project root directory. Defaults to CWD.
    metrics_dir:
        Directory under *project_root* holding the log.
    """
    path = _metrics_path(project_root, metrics_dir)
    entry = {"timestamp": datetime.now(timezone.utc).isoformat()}
    entry.update(data)

    try:
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "a", encoding="utf-8") as f:
            f.write(json.dumps(entry) + "\n")
    except OSError as exc:
        logger.warning("[PatchApply] Failed to write metrics: %s", exc)


def read_edit_stats(
    last_n: int = 50,
    project_root: str | None = None,
    metrics_dir: str = DEFAULT_METRICS_DIR,
) -> dict:
    """Compute rolling statistics from the metrics log.

    Returns
    -------
    dict
        ``total_edits``, ``success_rate``, ``already_applied_rate``,
        ``avg_changes`` and ``strategies`` (percent per strategy).
    """
    path = _metrics_path(project_root, metrics_dir)

    entries: list[dict] = []
    if os.path.isfile(path):
        try:
            with open(path, "r", encoding="utf-8") as f:
                for line in f:
                    line = line.strip()
                    if line:
                        try:
                            entries.append(json.loads(line))
                        except json.JSONDecodeError:
                            continue
        except OSError as exc:
            logger.warning("[PatchApply] Failed to read metrics: %s", exc)

    entries = entries[-last_n:]

    if not entries:
        return {
            "total_edits": 0,
            "success_rate": 0.0,
            "already_applied_rate": 0.0,
            "avg_changes": 0.0,
            "strategies": {},
        }

    total = len(entries)
    successes = [e for e in entries if e.get("success", False)]
    already = sum(1 for e in successes if e.get("changes_applied", 0) == 0)
    changes = [e.get("changes_applied", 0) for e in successes]
    strategies = Counter(e.get("strategy") or "unknown" for e in entries)

    return {
        "total_edits": total,
        "success_rate": len(successes) / total * 100,
        "already_applied_rate": already / total * 100,
        "avg_changes": sum(changes) / len(changes) if changes else 0.0,
        "strategies": {
            strategy: count / total * 100
            for strategy, count in strategies.most_common()
        },
    }
