"""
CLI entry point using Typer.

Provides developer commands for the session engine:
- exercises: List registered exercise presets
- show-config: Show a preset's session configuration
- replay: Replay a recorded JSONL log and print snapshots
"""

from .app import app
from .commands import exercises, replay  # noqa: F401

__all__ = ["app"]


if __name__ == "__main__":
    app()
