"""Shared Typer app object and shared option types."""

from typing import Annotated

import typer

# Shared EXERCISE argument type used across all commands
ExerciseArgument = Annotated[
    str,
    typer.Argument(help="Exercise ID, e.g. joint_mobility, grip_strength (see 'exercises')"),
]

JsonOption = Annotated[
    bool,
    typer.Option("--json", "-j", help="Output as JSON for machine processing"),
]

app = typer.Typer(
    name="rehab-engine",
    help="Deterministic exercise-session engine for hand and arm rehabilitation.",
    no_args_is_help=True,
)
