"""dayplan CLI - recurring plans and time blocks."""

import json
import logging
import sys
from datetime import date, datetime, tzinfo

import click

from .config import Config, load_config
from .core.recurrence import RecurrenceRuleError, describe, deserialize, generate_future_occurrences
from .core.timeblocks import FixedBreakError, InvalidTransitionError, TimeBlock
from .ports.record_store import StoreError
from .workflows import (
    BlockNotFoundError,
    PartialTransitionError,
    day_blocks,
    day_conflicts,
    delete_block,
    get_store,
    get_task,
    load_task_recurrence,
    log_block,
    plan_recurring_task,
    schedule_task,
    sync_fixed_breaks,
)

EXPECTED_ERRORS = (
    BlockNotFoundError,
    FixedBreakError,
    InvalidTransitionError,
    PartialTransitionError,
    RecurrenceRuleError,
    StoreError,
)


def _fail(message: str) -> None:
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


def _parse_datetime(value: str | None, tz: tzinfo) -> datetime | None:
    """Parse an ISO datetime; naive values are taken in the configured zone."""
    if not value:
        return None
    try:
        dt = datetime.fromisoformat(value)
    except ValueError:
        raise click.BadParameter(f"not an ISO datetime: {value}")
    return dt.replace(tzinfo=tz) if dt.tzinfo is None else dt.astimezone(tz)


def _parse_day(value: str | None, config: Config) -> date:
    if not value:
        return datetime.now(config.zone).date()
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise click.BadParameter(f"not a YYYY-MM-DD date: {value}", param_hint="--date")


def _block_json(block: TimeBlock, tz: tzinfo) -> dict:
    record = block.to_record(tz)
    record["duration"] = block.duration()
    record["state"] = block.state.value
    return record


def _show_blocks(blocks: list[TimeBlock], as_json: bool, tz: tzinfo, empty_msg: str) -> None:
    if as_json:
        click.echo(json.dumps([_block_json(b, tz) for b in blocks], indent=2))
        return
    if not blocks:
        click.echo(empty_msg)
        return
    for block in blocks:
        minutes = block.duration()
        length = f"{minutes} min" if minutes is not None else "?"
        click.echo(f"  [{block.id}] {block.format_time():11} {block.title} ({block.state.value}, {length})")


@click.group()
@click.version_option(package_name="dayplan")
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(ctx, debug: bool):
    """dayplan - recurring plans and time blocks."""
    if debug:
        logging.basicConfig(
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            level=logging.DEBUG,
        )
    ctx.ensure_object(dict)
    if "config" not in ctx.obj:
        ctx.obj["config"] = load_config()


@main.command("describe")
@click.argument("rule_json")
@click.pass_obj
def describe_cmd(obj, rule_json: str):
    """Describe a serialized recurrence rule."""
    rule = deserialize(rule_json, obj["config"].zone)
    if rule is None:
        _fail("invalid recurrence rule")
    click.echo(describe(rule))


@main.command()
@click.argument("rule_json")
@click.option("--count", "-n", default=10, show_default=True, help="Maximum occurrences to list")
@click.option("--from", "start_from", default=None, help="Earliest occurrence (ISO datetime), defaults to now")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_obj
def occurrences(obj, rule_json: str, count: int, start_from: str | None, as_json: bool):
    """List upcoming occurrences of a recurrence rule."""
    config: Config = obj["config"]
    rule = deserialize(rule_json, config.zone)
    if rule is None:
        _fail("invalid recurrence rule")
    start = _parse_datetime(start_from, config.zone) or datetime.now(config.zone)

    dates = generate_future_occurrences(rule, count, start)
    if as_json:
        click.echo(json.dumps([d.isoformat() for d in dates], indent=2))
        return
    click.echo(describe(rule))
    for d in dates:
        click.echo(f"  {d.strftime('%a %Y-%m-%d %H:%M')}")


@main.command()
@click.option("--date", "-d", "target_date", default=None, help="Day to show (YYYY-MM-DD), defaults to today")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_obj
def blocks(obj, target_date: str | None, as_json: bool):
    """List a day's time blocks."""
    config: Config = obj["config"]
    day = _parse_day(target_date, config)
    try:
        day_list = day_blocks(get_store(config), day, config.zone)
    except StoreError as e:
        _fail(str(e))
    _show_blocks(day_list, as_json, config.zone, f"No time blocks on {day}.")


@main.command()
@click.argument("task_id", type=int)
@click.option("--count", "-n", default=7, show_default=True, help="Occurrences to plan")
@click.option("--done", default=0, show_default=True, help="Occurrences already planned")
@click.pass_obj
def plan(obj, task_id: int, count: int, done: int):
    """Plan upcoming occurrences of a recurring task."""
    config: Config = obj["config"]
    now = datetime.now(config.zone)
    try:
        store = get_store(config)
        task = get_task(store, task_id)
        rule = load_task_recurrence(task, config.zone)
        if rule is None:
            click.echo(f"Task {task_id} does not repeat; use 'dayplan schedule' instead.")
            return
        planned = plan_recurring_task(store, task, rule, count, now, config, occurrence_count=done)
    except EXPECTED_ERRORS as e:
        _fail(str(e))

    click.echo(describe(rule))
    _show_blocks(planned, False, config.zone, "Nothing left to plan.")


@main.command()
@click.argument("task_id", type=int)
@click.pass_obj
def schedule(obj, task_id: int):
    """Schedule a task into the next free slot today."""
    config: Config = obj["config"]
    try:
        store = get_store(config)
        block = schedule_task(store, get_task(store, task_id), datetime.now(config.zone), config)
    except EXPECTED_ERRORS as e:
        _fail(str(e))

    if block is None:
        _fail("no free slot left today")
    click.echo(f"✓ Scheduled '{block.title}' {block.format_time()}")


@main.command("log")
@click.argument("block_id", type=int)
@click.option("--start", default=None, help="Actual start (ISO datetime), defaults to the plan")
@click.option("--end", default=None, help="Actual end (ISO datetime), defaults to the plan")
@click.option("--pomodoro", is_flag=True, help="Record as a pomodoro session")
@click.pass_obj
def log_cmd(obj, block_id: int, start: str | None, end: str | None, pomodoro: bool):
    """Record a planned block as done."""
    config: Config = obj["config"]
    try:
        logged = log_block(
            get_store(config),
            block_id,
            _parse_datetime(start, config.zone),
            _parse_datetime(end, config.zone),
            from_pomodoro=pomodoro,
            tz=config.zone,
        )
    except EXPECTED_ERRORS as e:
        _fail(str(e))
    click.echo(f"✓ Logged '{logged.title}' {logged.format_time()} ({logged.duration()} min)")


@main.command("delete")
@click.argument("block_id", type=int)
@click.pass_obj
def delete_cmd(obj, block_id: int):
    """Delete a planned or logged block."""
    config: Config = obj["config"]
    try:
        delete_block(get_store(config), block_id, config.zone)
    except EXPECTED_ERRORS as e:
        _fail(str(e))
    click.echo(f"✓ Deleted block {block_id}")


@main.command()
@click.option("--date", "-d", "target_date", default=None, help="Day to sync (YYYY-MM-DD), defaults to today")
@click.pass_obj
def breaks(obj, target_date: str | None):
    """Create missing fixed breaks and drop orphaned ones."""
    config: Config = obj["config"]
    day = _parse_day(target_date, config)
    try:
        added, removed = sync_fixed_breaks(get_store(config), day, config)
    except EXPECTED_ERRORS as e:
        _fail(str(e))
    click.echo(f"Fixed breaks for {day}: {len(added)} added, {len(removed)} removed")


@main.command()
@click.option("--date", "-d", "target_date", default=None, help="Day to check (YYYY-MM-DD), defaults to today")
@click.option("--gap", default=0, show_default=True, help="Minimum gap between blocks, in minutes")
@click.pass_obj
def conflicts(obj, target_date: str | None, gap: int):
    """Show overlapping time blocks."""
    config: Config = obj["config"]
    day = _parse_day(target_date, config)
    try:
        pairs = day_conflicts(get_store(config), day, config, gap)
    except StoreError as e:
        _fail(str(e))

    if not pairs:
        click.echo(f"No conflicts on {day}.")
        return
    for a, b in pairs:
        click.echo(f"  {a.format_time()} {a.title}  <->  {b.format_time()} {b.title}")


if __name__ == "__main__":
    main()
