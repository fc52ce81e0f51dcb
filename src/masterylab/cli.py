"""CLI entry point for MasteryLab."""

import json
import sys

import click
from loguru import logger


def _load(course_id: str):
    from masterylab.courses.registry import CourseRegistry

    registry = CourseRegistry()
    course = registry.get_course(course_id)
    if course is None:
        raise click.ClickException(f"Unknown course: {course_id}")
    return course, registry.load_bank(course)


def _runner(ctx: click.Context, course_id: str):
    from masterylab.engine.session_runner import SessionRunner
    from masterylab.state.store import KeyValueStore

    settings = ctx.obj["settings"]
    course, bank = _load(course_id)
    return SessionRunner(
        bank=bank,
        store=KeyValueStore(db_path=settings.db_path),
        mastery_config=course.mastery or settings.mastery,
        selection=settings.selection,
        course_id=course.id,
    )


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging on stderr")
@click.pass_context
def main(ctx: click.Context, verbose: bool) -> None:
    """MasteryLab: sequential-then-adaptive mastery quizzes."""
    from masterylab.config.settings import Settings

    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "WARNING")
    ctx.ensure_object(dict)
    ctx.obj["settings"] = Settings.load()


@main.command()
@click.pass_context
def courses(ctx: click.Context) -> None:
    """List available courses, marking those with saved progress."""
    from masterylab.courses.registry import CourseRegistry
    from masterylab.state.store import KeyValueStore, session_key

    registry = CourseRegistry()
    saved = set(KeyValueStore(db_path=ctx.obj["settings"].db_path).keys())
    for course in registry.list_courses():
        bank = registry.load_bank(course)
        marker = " [saved session]" if session_key(course.id) in saved else ""
        click.echo(f"  {course.id}: {course.title} ({len(bank)} items){marker}")


@main.command()
@click.argument("course_id")
def items(course_id: str) -> None:
    """List the items of a course in presentation order."""
    _, bank = _load(course_id)
    for idx, item in enumerate(bank):
        click.echo(f"  [{idx}] {item.id} ({item.mechanic.value}, {item.objective_id}): {item.stimulus}")


@main.command()
@click.argument("course_id")
@click.pass_context
def status(ctx: click.Context, course_id: str) -> None:
    """Show saved progress and mastery for a course."""
    runner = _runner(ctx, course_id)
    if not runner.resume():
        click.echo("No session in progress.")
        return
    summary = runner.summary()
    mastery = summary["mastery"]
    seen = sum(1 for c in summary["seenCounts"] if c > 0)
    click.echo(f"Item: {runner.current_item.id} ({summary['currentItemIndex'] + 1}/{len(runner.bank)})")
    click.echo(f"Seen: {seen}/{len(runner.bank)}  Missed: {len(summary['incorrectSet'])}")
    click.echo(
        f"Streak: {mastery['streak']}  Avg: {mastery['avgLatencyMs'] / 1000:.1f}s  "
        f"Hints: {mastery['totalHints']}  Mastery: {'met' if mastery['masteryMet'] else 'not yet'}"
    )


@main.command()
@click.argument("course_id")
@click.pass_context
def telemetry(ctx: click.Context, course_id: str) -> None:
    """Dump the telemetry log as JSON lines."""
    runner = _runner(ctx, course_id)
    for event in runner.telemetry.events():
        click.echo(json.dumps(event))


@main.command()
@click.argument("course_id")
@click.confirmation_option(prompt="Discard saved progress for this course?")
@click.pass_context
def reset(ctx: click.Context, course_id: str) -> None:
    """Discard the saved session for a course."""
    runner = _runner(ctx, course_id)
    runner.restart()
    click.echo(f"Session for {course_id} cleared.")


@main.command()
def serve() -> None:
    """Run the JSON-lines server on stdin/stdout."""
    from masterylab.server.__main__ import run

    run()
