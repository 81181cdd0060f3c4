"""Runtime settings, read from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from .history import MAX_HISTORY

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass
class EngineSettings:
    """Settings for the tool server.

    Attributes:
        output_dir:    Where ``save_project`` writes YAML recipes.
        history_limit: Undo steps kept per flow.
        log_level:     Root log level name for the server process.
    """
    output_dir: Path
    history_limit: int = MAX_HISTORY
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> EngineSettings:
        limit = os.environ.get("VECTORFLOW_HISTORY_LIMIT", str(MAX_HISTORY))
        try:
            history_limit = int(limit)
        except ValueError:
            raise ValueError(f"VECTORFLOW_HISTORY_LIMIT must be an integer, got {limit!r}")
        if history_limit < 1:
            raise ValueError(f"VECTORFLOW_HISTORY_LIMIT must be positive, got {history_limit}")

        return cls(
            output_dir=Path(os.environ.get(
                "VECTORFLOW_OUTPUT_DIR", Path.home() / ".vectorflow" / "projects",
            )),
            history_limit=history_limit,
            log_level=os.environ.get("VECTORFLOW_LOG_LEVEL", "INFO").upper(),
        )
