# dropsync/cli/run_job.py
"""
Run one job from the command line, e.g. from a cron entry:

    dropsync-job listing
    dropsync-job scheduled-removal --count 10
"""

import asyncio
import logging
import sys

import click

from dropsync.core.enums import JobType
from dropsync.core.logging_config import configure_logging
from dropsync.database import dispose_engine, init_models
from dropsync.dependencies import get_container

logger = logging.getLogger(__name__)

JOB_CHOICES = [job.value.replace("_", "-") for job in JobType]


async def _run(job_type: JobType, count=None):
    await init_models()
    container = get_container()
    try:
        if job_type == JobType.SCHEDULED_REMOVAL and count is not None:
            return await container.removal_service.run_scheduled_removal(count)
        return await container.run_job(job_type)
    finally:
        await dispose_engine()


@click.command()
@click.argument("job", type=click.Choice(JOB_CHOICES))
@click.option("--count", type=int, default=None, help="Listings to remove (scheduled-removal only)")
def main(job, count):
    """Run a dropsync job once and exit."""
    configure_logging()
    job_type = JobType(job.replace("-", "_"))
    try:
        result = asyncio.run(_run(job_type, count))
    except Exception as e:
        logger.exception(f"Job {job_type.value} failed: {e}")
        sys.exit(1)
    click.echo(f"{job_type.value}: {result}")


if __name__ == "__main__":
    main()
