"""
Admin CLI for inspecting and maintaining the models database.

Provides commands to create the tables, seal and unseal values, look at
raw records, and manage pipeline jobs and secrets.
"""

import asyncio
import json
import logging
import os
import sys
from pathlib import Path

import click

from sd_common.errors import ModelError
from sd_models import FactoryRegistry, JobFactory, SecretFactory
from sd_models.sealing import seal as seal_value
from sd_models.sealing import unseal as unseal_value
from sd_persistence import SQLiteDatastore

logger = logging.getLogger(__name__)


def get_db_path() -> str:
    """Get the database path from environment variable or default."""
    return os.environ.get("SD_DB_PATH", str(Path.home() / ".sd" / "models.db"))


def get_table_prefix() -> str:
    return os.environ.get("SD_TABLE_PREFIX", "")


def get_password() -> str:
    """Get the sealing password, exiting if it is not configured."""
    password = os.environ.get("SD_SEALING_PASSWORD")
    if not password:
        click.echo("Error: SD_SEALING_PASSWORD is not set", err=True)
        sys.exit(1)
    return password


def get_datastore() -> SQLiteDatastore:
    """Get the datastore instance."""
    db_path = get_db_path()
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    return SQLiteDatastore(db_path, prefix=get_table_prefix())


def run_async(coro):
    """Helper to run async functions in CLI commands."""
    try:
        return asyncio.run(coro)
    except ModelError as e:
        logger.error(f"Command failed: {e}", exc_info=True)
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@click.group()
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    default="WARNING",
    help="Logging level (default: WARNING)",
)
def cli(log_level: str):
    """SD Admin - Maintain the pipeline models database."""
    logging.basicConfig(
        level=getattr(logging, log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@cli.command()
def init():
    """Create the database tables."""

    async def initialize():
        datastore = get_datastore()
        try:
            await datastore.initialize()
            click.echo(f"✓ Database initialized at {datastore.db_path}")
        finally:
            await datastore.close()

    run_async(initialize())


@cli.command()
@click.argument("value")
def seal(value: str):
    """Seal VALUE with the configured password."""
    click.echo(run_async(seal_value(value, get_password())))


@cli.command()
@click.argument("sealed")
def unseal(sealed: str):
    """Unseal SEALED with the configured password."""
    click.echo(run_async(unseal_value(sealed, get_password())))


@cli.command()
@click.argument("table")
@click.argument("record_id")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
def show(table: str, record_id: str, json_output: bool):
    """Show the stored record RECORD_ID of TABLE."""

    async def show_record():
        datastore = get_datastore()
        await datastore.initialize()

        try:
            schema = datastore.schemas.get(table)
            if schema is None:
                click.echo(f"Error: Unknown table: {table}", err=True)
                sys.exit(1)

            key = record_id
            if not schema.derived_id and record_id.isdigit():
                key = int(record_id)

            record = await datastore.get({"table": table, "params": {"id": key}})
            if record is None:
                click.echo(f"Error: Record not found: {table} {record_id}", err=True)
                sys.exit(1)

            if json_output:
                click.echo(json.dumps(record, indent=2, default=str))
                return

            click.echo(f"\n{schema.name.capitalize()} {record_id}:")
            for field in schema.all_keys:
                click.echo(f"  {field + ':':<20} {record.get(field)}")
            click.echo()

        finally:
            await datastore.close()

    run_async(show_record())


@cli.command()
@click.argument("pipeline_id", type=int)
@click.option("--archived", is_flag=True, help="List archived jobs instead")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
def jobs(pipeline_id: int, archived: bool, json_output: bool):
    """List the jobs of PIPELINE_ID."""

    async def list_jobs():
        datastore = get_datastore()
        await datastore.initialize()

        try:
            registry = FactoryRegistry()
            factory = registry.get_instance(JobFactory, {"datastore": datastore})
            records = await factory.list(
                {"params": {"pipeline_id": pipeline_id, "archived": archived}}
            )

            if json_output:
                click.echo(json.dumps([job.to_json() for job in records], indent=2))
                return

            if not records:
                click.echo("No jobs found.")
                return

            click.echo(f"\n{'ID':<42} {'Name':<30} {'State':<10}")
            click.echo("-" * 84)
            for job in records:
                click.echo(f"{job.id:<42} {job.name:<30} {job.state or '':<10}")
            click.echo()

        finally:
            await datastore.close()

    run_async(list_jobs())


@cli.group()
def secret():
    """Manage pipeline secrets."""
    pass


def get_secret_factory(datastore: SQLiteDatastore, password: str) -> SecretFactory:
    registry = FactoryRegistry()
    return registry.get_instance(
        SecretFactory, {"datastore": datastore, "password": password}
    )


@secret.command("set")
@click.argument("pipeline_id", type=int)
@click.argument("name")
@click.argument("value")
@click.option("--allow-in-pr", is_flag=True, help="Expose the secret to PR jobs")
def secret_set(pipeline_id: int, name: str, value: str, allow_in_pr: bool):
    """Store secret NAME for PIPELINE_ID, replacing any existing value."""
    password = get_password()

    async def set_secret():
        datastore = get_datastore()
        await datastore.initialize()

        try:
            factory = get_secret_factory(datastore, password)
            existing = await factory.get({"pipeline_id": pipeline_id, "name": name})

            if existing is None:
                record = await factory.create(
                    {
                        "pipeline_id": pipeline_id,
                        "name": name,
                        "value": value,
                        "allow_in_pr": allow_in_pr,
                    }
                )
                click.echo(f"✓ Secret {name} created ({record.id})")
                return

            existing.value = value
            existing.allow_in_pr = allow_in_pr
            await existing.update()
            click.echo(f"✓ Secret {name} updated ({existing.id})")

        finally:
            await datastore.close()

    run_async(set_secret())


@secret.command("list")
@click.argument("pipeline_id", type=int)
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
def secret_list(pipeline_id: int, json_output: bool):
    """List secret names of PIPELINE_ID (values are never shown)."""
    password = get_password()

    async def list_secrets():
        datastore = get_datastore()
        await datastore.initialize()

        try:
            factory = get_secret_factory(datastore, password)
            records = await factory.list({"params": {"pipeline_id": pipeline_id}})
            rows = [
                {"id": s.id, "name": s.name, "allow_in_pr": bool(s.allow_in_pr)}
                for s in records
            ]

            if json_output:
                click.echo(json.dumps(rows, indent=2))
                return

            if not rows:
                click.echo("No secrets found.")
                return

            click.echo(f"\n{'Name':<30} {'Allowed in PR':<14}")
            click.echo("-" * 45)
            for row in rows:
                click.echo(f"{row['name']:<30} {'yes' if row['allow_in_pr'] else 'no':<14}")
            click.echo()

        finally:
            await datastore.close()

    run_async(list_secrets())


if __name__ == "__main__":
    cli()
