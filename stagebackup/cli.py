"""
Command line interface for stagebackup.

Provides commands: run, schedule, validate.
"""

import sys

import click

from stagebackup import __version__, create_manager
from stagebackup.config import get_config
from stagebackup.properties import read_backup_list


def _run_options(func):
    func = click.option(
        "--env",
        "config_name",
        type=click.Choice(["development", "production"]),
        help="Configuration to use (default: STAGEBACKUP_ENV or production)",
    )(func)
    func = click.option(
        "--log-file",
        type=click.Path(dir_okay=False),
        help="File to log to (default: console)",
    )(func)
    return _job_options(func)


def _job_options(func):
    func = click.option(
        "--backup-list",
        type=click.Path(exists=True, dir_okay=False),
        help="File listing one job file path per line",
    )(func)
    func = click.option(
        "--properties",
        "properties",
        multiple=True,
        type=click.Path(dir_okay=False),
        help="Job file to run (repeatable)",
    )(func)
    return func


def _collect_job_paths(properties, backup_list):
    """Job files named directly come first, then those from the backup list."""
    paths = list(properties)
    if backup_list:
        try:
            paths.extend(read_backup_list(backup_list))
        except (OSError, UnicodeDecodeError) as e:
            raise click.UsageError(f"Could not read backup list {backup_list}: {e}")
    if not paths:
        raise click.UsageError("Specify at least one --properties file or a --backup-list")
    return paths


@click.group()
@click.version_option(version=__version__, prog_name="stagebackup")
def main():
    """
    stagebackup - retrieve staged files from remote servers and purge old copies.
    """
    pass


@main.command()
@_run_options
def run(properties, backup_list, log_file, config_name):
    """
    Run every backup job once.

    Exits with status 1 if any job failed.
    """
    paths = _collect_job_paths(properties, backup_list)
    manager = create_manager(paths, config_name=config_name, log_file=log_file)
    summary = manager.run()

    if summary["errors"]:
        click.echo(f"*** ERROR *** {len(summary['errors'])} backup error(s):", err=True)
        for error in summary["errors"]:
            click.echo(f"  {error}", err=True)
        sys.exit(1)


@main.command()
@_run_options
@click.option("--cron", help="Crontab expression (default: SCHEDULE_CRON)")
def schedule(properties, backup_list, log_file, config_name, cron):
    """
    Run the backup jobs repeatedly on a cron schedule.

    Example:

        stagebackup schedule --cron "0 2 * * *" --properties site.properties
    """
    from stagebackup.scheduler import init_scheduler, start_scheduler, stop_scheduler

    paths = _collect_job_paths(properties, backup_list)
    config = get_config(config_name)
    cron = cron or config.SCHEDULE_CRON
    if not cron:
        raise click.UsageError("Specify --cron or set SCHEDULE_CRON")

    manager = create_manager(paths, config_name=config_name, log_file=log_file)
    try:
        init_scheduler(manager, cron, timezone=config.SCHEDULER_TIMEZONE)
    except ValueError as e:
        raise click.UsageError(f"Invalid cron expression {cron!r}: {e}")

    try:
        start_scheduler()
    except (KeyboardInterrupt, SystemExit):
        pass
    finally:
        stop_scheduler()


@main.command()
@_job_options
def validate(properties, backup_list):
    """
    Check job files without running any command.
    """
    from stagebackup.backup.executor import load_job
    from stagebackup.backup.retrievers import RETRIEVERS
    from stagebackup.models import ConfigurationError, SSHRetrieverConfig

    paths = _collect_job_paths(properties, backup_list)
    failed = False

    for path in paths:
        try:
            job = load_job(path)
            if job.retriever_type not in RETRIEVERS:
                raise ConfigurationError(f"Invalid retriever type: {job.retriever_type}")
            SSHRetrieverConfig.from_properties(job.retriever_props)
        except ConfigurationError as e:
            failed = True
            click.echo(f"INVALID {path}: {e}", err=True)
            continue
        click.echo(
            f"OK {path}: {len(job.instructions)} instruction(s), "
            f"days_till_purge={job.retention.days_till_purge}"
        )

    if failed:
        sys.exit(1)


if __name__ == "__main__":
    main()
