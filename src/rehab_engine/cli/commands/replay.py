"""Replay command: drive an engine through a recorded JSONL log."""

import json
import warnings
from pathlib import Path
from typing import Annotated

import typer

from ...core.exercises.registry import create_session
from ...core.models import ScoreSnapshot
from ...core.phase_machine import StalledPhaseWarning
from ...io.replay_log import ReplayLog, replay
from ...io.serializers import ValidationError, snapshot_to_dict
from .. import views
from ..app import ExerciseArgument, JsonOption, app


def select_rows(snapshots: list[ScoreSnapshot], every: int) -> list[tuple[int, ScoreSnapshot]]:
    """
    Pick the snapshots worth printing.

    Keeps every N-th record, every phase transition and the final record.
    Record numbers are 1-based.
    """
    rows = []
    last = len(snapshots)
    for number, snap in enumerate(snapshots, 1):
        if number % every == 0 or snap.transitioned or number == last:
            rows.append((number, snap))
    return rows


@app.command("replay")
def replay_log(
    exercise_id: ExerciseArgument,
    log_path: Annotated[
        Path,
        typer.Argument(help="Path to a JSONL replay log of ticks and actions"),
    ],
    every: Annotated[
        int,
        typer.Option("--every", "-n", min=1, help="Print every N-th record (transitions are always shown)"),
    ] = 1,
    json_out: JsonOption = False,
) -> None:
    """
    Replay a recorded session log and print the resulting snapshots.
    """
    try:
        session = create_session(exercise_id)
    except ValueError as e:
        views.print_error(str(e))
        raise typer.Exit(1)

    log = ReplayLog(log_path)
    if not log.exists():
        views.print_error(f"Replay log not found: {log.log_path}")
        raise typer.Exit(1)

    try:
        records = log.load_records()
    except (FileNotFoundError, ValidationError) as e:
        views.print_error(str(e))
        raise typer.Exit(1)

    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always", StalledPhaseWarning)
        try:
            snapshots = replay(session, records)
        except ValueError as e:
            views.print_error(str(e))
            raise typer.Exit(1)

    messages = [str(w.message) for w in caught]
    rows = select_rows(snapshots, every)

    if json_out:
        print(json.dumps({
            "exercise_id": session.exercise_id,
            "records": len(records),
            "warnings": messages,
            "snapshots": [dict(record=number, **snapshot_to_dict(snap)) for number, snap in rows],
        }, indent=2))
        return

    views.print_snapshots(rows, title=f"Replay: {session.exercise_id} ({log.log_path.name})")
    for message in messages:
        views.print_warning(message)

    if snapshots and snapshots[-1].is_complete:
        views.print_success(f"Session complete after {len(records)} records.")
    elif snapshots:
        views.print_info(f"Session ended in phase '{snapshots[-1].phase}' after {len(records)} records.")
