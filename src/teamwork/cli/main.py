import json
import os
import sys
from pathlib import Path
from typing import Any, List, NoReturn, Optional

import typer
from pydantic import ValidationError as PydanticValidationError

from teamwork.claims import ClaimProtocol
from teamwork.config import Settings, get_config_manager
from teamwork.errors import TeamworkError
from teamwork.locking import LockManager
from teamwork.models import Complexity, Role, TaskStatus, choices, parse_enum
from teamwork.models.task_store import TaskStore
from teamwork.utils.jsonl_logger import setup_logging
from teamwork.waves import WavePlanStore, wave_progress

app = typer.Typer(help="Coordinate tasks between parallel workers through the filesystem.")


class Workspace:
    """Components wired from the loaded settings for one invocation."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.locks = LockManager(settings.lock)
        self.store = TaskStore(settings.tasks_dir, self.locks)
        self.claims = ClaimProtocol(self.store)
        self.plans = WavePlanStore(settings.root_dir, self.locks, settings.waves_filename)

    def owner(self, owner: Optional[str]) -> str:
        return owner or self.settings.default_owner or f"worker-{os.getpid()}"


def _fail(message: str) -> NoReturn:
    print(f"Error: {message}", file=sys.stderr)
    sys.exit(1)


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False))


def _split(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


@app.callback()
def main(
    ctx: typer.Context,
    root: Optional[Path] = typer.Option(
        None, "--root", "-r", help="Project directory (default: TEAMWORK_ROOT_DIR or .teamwork)"
    ),
):
    """Load settings and configure logging for the invoked command."""
    try:
        settings = get_config_manager(root).reload_config()
    except PydanticValidationError as e:
        _fail(f"Invalid configuration: {e}")
    setup_logging(settings.logging)
    ctx.obj = Workspace(settings)


# Task commands
@app.command()
def task_create(
    ctx: typer.Context,
    task_id: str = typer.Argument(..., help="Task ID"),
    subject: str = typer.Argument(..., help="Short task subject"),
    description: str = typer.Option("", help="Task description (defaults to subject)"),
    role: str = typer.Option(Role.WORKER.value, help=f"One of: {', '.join(choices(Role))}"),
    complexity: str = typer.Option(
        Complexity.STANDARD.value, help=f"One of: {', '.join(choices(Complexity))}"
    ),
    blocked_by: str = typer.Option("", help="Comma-separated prerequisite task IDs"),
    criteria: Optional[List[str]] = typer.Option(None, "--criterion", help="Acceptance criterion"),
    wave: Optional[int] = typer.Option(None, help="Wave hint"),
):
    """Create a new task."""
    workspace: Workspace = ctx.obj
    try:
        task = workspace.store.create(
            {
                "id": task_id,
                "subject": subject,
                "description": description,
                "role": parse_enum(Role, role, "role"),
                "complexity": parse_enum(Complexity, complexity, "complexity"),
                "blocked_by": _split(blocked_by),
                "criteria": criteria or [],
                "wave": wave,
            }
        )
    except TeamworkError as e:
        _fail(e.message)
    _print_json(task.to_json_dict())


@app.command()
def task_get(ctx: typer.Context, task_id: str = typer.Argument(..., help="Task ID")):
    """Show one task."""
    workspace: Workspace = ctx.obj
    try:
        task = workspace.store.read(task_id)
    except TeamworkError as e:
        _fail(e.message)
    _print_json(task.to_json_dict())


@app.command()
def task_list(
    ctx: typer.Context,
    status: Optional[str] = typer.Option(None, help=f"One of: {', '.join(choices(TaskStatus))}"),
    role: Optional[str] = typer.Option(None, help="Filter by role"),
    owner: Optional[str] = typer.Option(None, help="Filter by claiming owner"),
    available: bool = typer.Option(False, "--available", help="Only claimable tasks"),
    stats: bool = typer.Option(False, "--stats", help="Print status counts instead"),
):
    """List tasks sorted by id."""
    workspace: Workspace = ctx.obj
    try:
        if stats:
            _print_json(workspace.store.stats().model_dump())
            return
        if available:
            tasks = workspace.store.available(role)
        else:
            wanted_role = parse_enum(Role, role, "role") if role else None
            tasks = workspace.store.list(lambda t: wanted_role is None or t.role == wanted_role)
        if status:
            wanted_status = parse_enum(TaskStatus, status, "status")
            tasks = [t for t in tasks if t.status == wanted_status]
        if owner:
            tasks = [t for t in tasks if t.claimed_by == owner]
    except TeamworkError as e:
        _fail(e.message)
    _print_json([t.to_json_dict() for t in tasks])


@app.command()
def task_claim(
    ctx: typer.Context,
    task_id: str = typer.Argument(..., help="Task ID"),
    owner: Optional[str] = typer.Option(None, "--owner", "-o", help="Claiming worker id"),
    role: Optional[str] = typer.Option(None, help="Worker role; must match the task role"),
):
    """Claim an open task."""
    workspace: Workspace = ctx.obj
    try:
        task = workspace.claims.claim(task_id, workspace.owner(owner), role)
    except TeamworkError as e:
        _fail(e.message)
    _print_json(task.to_json_dict())


@app.command()
def task_release(
    ctx: typer.Context,
    task_id: str = typer.Argument(..., help="Task ID"),
    owner: Optional[str] = typer.Option(None, "--owner", "-o", help="Worker holding the claim"),
):
    """Release a claimed task back to open."""
    workspace: Workspace = ctx.obj
    try:
        task = workspace.claims.release(task_id, workspace.owner(owner))
    except TeamworkError as e:
        _fail(e.message)
    _print_json(task.to_json_dict())


@app.command()
def task_resolve(
    ctx: typer.Context,
    task_id: str = typer.Argument(..., help="Task ID"),
    owner: Optional[str] = typer.Option(None, "--owner", "-o", help="Worker holding the claim"),
    evidence: Optional[List[str]] = typer.Option(
        None, "--evidence", "-e", help="Evidence text, or a JSON evidence object"
    ),
):
    """Resolve a claimed task with evidence."""
    workspace: Workspace = ctx.obj
    items: List[Any] = []
    for item in evidence or []:
        if item.lstrip().startswith("{"):
            try:
                items.append(json.loads(item))
            except json.JSONDecodeError as e:
                _fail(f"Invalid evidence JSON: {e}")
        else:
            items.append(item)
    try:
        task = workspace.claims.resolve(task_id, workspace.owner(owner), items)
    except TeamworkError as e:
        _fail(e.message)
    _print_json(task.to_json_dict())


@app.command()
def task_delete(
    ctx: typer.Context,
    task_id: str = typer.Argument(..., help="Task ID"),
    owner: Optional[str] = typer.Option(None, "--owner", "-o", help="Owner id for the task lock"),
    force: bool = typer.Option(False, "--force", help="Delete even if other tasks depend on it"),
):
    """Delete an open task."""
    workspace: Workspace = ctx.obj
    try:
        orphaned = workspace.store.delete(task_id, workspace.owner(owner), force=force)
    except TeamworkError as e:
        _fail(e.message)
    _print_json({"deleted": task_id, "orphaned_dependents": orphaned})


@app.command()
def task_validate(ctx: typer.Context):
    """Validate every task file against the task schema."""
    workspace: Workspace = ctx.obj
    results = workspace.store.validate_tasks()
    _print_json(
        [{"path": r.path, "valid": r.valid, "errors": r.errors} for r in results]
    )
    if any(not r.valid for r in results):
        sys.exit(1)


# Wave commands
@app.command()
def wave_calculate(
    ctx: typer.Context,
    owner: Optional[str] = typer.Option(None, "--owner", "-o", help="Owner id for the plan lock"),
):
    """Compute dependency waves from the current tasks and save them."""
    workspace: Workspace = ctx.obj
    try:
        state = workspace.plans.plan(workspace.store, workspace.owner(owner))
    except TeamworkError as e:
        _fail(e.message)
    _print_json(state.to_json_dict())


@app.command()
def wave_update(
    ctx: typer.Context,
    wave_id: int = typer.Argument(..., help="Wave number"),
    status: str = typer.Argument(..., help="New wave status"),
    owner: Optional[str] = typer.Option(None, "--owner", "-o", help="Owner id for the plan lock"),
):
    """Change the status of a wave."""
    workspace: Workspace = ctx.obj
    try:
        state = workspace.plans.update_wave_status(wave_id, status, workspace.owner(owner))
    except TeamworkError as e:
        _fail(e.message)
    _print_json(state.to_json_dict())


@app.command()
def wave_append(
    ctx: typer.Context,
    task_ids: List[str] = typer.Argument(..., help="Task IDs for the new wave"),
    owner: Optional[str] = typer.Option(None, "--owner", "-o", help="Owner id for the plan lock"),
):
    """Append a wave for tasks added after planning."""
    workspace: Workspace = ctx.obj
    try:
        for task_id in task_ids:
            workspace.store.read(task_id)
        state = workspace.plans.append_wave(task_ids, workspace.owner(owner))
    except TeamworkError as e:
        _fail(e.message)
    _print_json(state.to_json_dict())


@app.command()
def wave_status(ctx: typer.Context):
    """Show the wave plan with per-wave task progress."""
    workspace: Workspace = ctx.obj
    try:
        state = workspace.plans.read()
    except TeamworkError as e:
        _fail(e.message)
    _print_json(
        {
            "total_waves": state.total_waves,
            "current_wave": state.current_wave,
            "waves": wave_progress(state, workspace.store.list()),
        }
    )


if __name__ == "__main__":
    app()
