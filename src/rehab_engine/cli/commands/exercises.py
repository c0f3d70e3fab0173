"""Preset commands: exercises, show-config."""

import dataclasses
import json

import typer

from ...core.exercises.registry import EXERCISE_REGISTRY, get_exercise
from .. import views
from ..app import ExerciseArgument, JsonOption, app


@app.command("exercises")
def list_exercises(json_out: JsonOption = False) -> None:
    """
    List the registered exercise presets.
    """
    presets = sorted(EXERCISE_REGISTRY.values(), key=lambda p: p.exercise_id)

    if json_out:
        print(json.dumps([
            {
                "exercise_id": p.exercise_id,
                "display_name": p.display_name,
                "kind": p.kind,
                "description": p.description,
            }
            for p in presets
        ], indent=2))
        return

    views.console.print(views.format_preset_table(presets))


@app.command("show-config")
def show_config(exercise_id: ExerciseArgument, json_out: JsonOption = False) -> None:
    """
    Show the session configuration of one preset.
    """
    try:
        preset = get_exercise(exercise_id)
    except ValueError as e:
        views.print_error(str(e))
        raise typer.Exit(1)

    if json_out:
        print(json.dumps({
            "exercise_id": preset.exercise_id,
            "kind": preset.kind,
            "config": dataclasses.asdict(preset.config),
        }, indent=2))
        return

    views.console.print(views.format_config_table(preset))
    if preset.description:
        views.print_info(preset.description)
