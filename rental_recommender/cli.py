"""
Command-line entry point for the rental recommendation engine
"""

import asyncio
import json
import logging
import sys
from typing import List, Optional

import click
from rich.console import Console
from rich.table import Table

from .core.config import EngineConfig, load_config
from .core.engine import RecommendationEngine
from .core.exceptions import RecommenderError, UpstreamUnavailableError
from .core.models import Recommendation, Strategy
from .storage.postgres_store import PostgresRentalStore
from .storage.rental_store import RentalDataStore

console = Console()


def configure_logging(level: str):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def build_store(config: EngineConfig) -> RentalDataStore:
    if not config.database_url:
        raise click.UsageError(
            "No database configured; set RENTAL_RECOMMENDER_DATABASE_URL or database_url in the config file"
        )
    return PostgresRentalStore(config.database_url)


def render(recommendations: List[Recommendation], title: str, as_json: bool):
    if as_json:
        click.echo(json.dumps([rec.to_dict() for rec in recommendations], indent=2))
        return

    if not recommendations:
        console.print("[yellow]No eligible products to recommend[/yellow]")
        return

    table = Table(title=title)
    table.add_column("Rank", justify="right")
    table.add_column("Product", justify="right")
    table.add_column("Name")
    table.add_column("Score", justify="right")
    table.add_column("Strategy")
    for rec in recommendations:
        table.add_row(
            str(rec.rank),
            str(rec.product_id),
            rec.product.name,
            f"{rec.score:.3f}",
            rec.strategy.value,
        )
    console.print(table)


async def _run(config: EngineConfig, action):
    engine = RecommendationEngine(build_store(config), config)
    try:
        return await action(engine)
    finally:
        await engine.shutdown()


@click.group()
@click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False), default=None,
              help="YAML configuration file")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[str]):
    """Rental product recommendations"""
    try:
        config = load_config(config_path)
    except RecommenderError as e:
        raise click.ClickException(str(e)) from e
    configure_logging(config.log_level)
    ctx.obj = config


@cli.command()
@click.argument("user_id", type=int)
@click.option("--strategy", type=click.Choice([s.value for s in Strategy]), default=Strategy.USER_BASED.value,
              show_default=True)
@click.option("--limit", type=click.IntRange(min=1), default=None, help="Number of recommendations")
@click.option("--json", "as_json", is_flag=True, help="Print JSON instead of a table")
@click.pass_obj
def recommend(config: EngineConfig, user_id: int, strategy: str, limit: Optional[int], as_json: bool):
    """Recommend products for USER_ID"""
    try:
        recommendations = asyncio.run(
            _run(config, lambda engine: engine.recommend(user_id, strategy, limit))
        )
    except UpstreamUnavailableError as e:
        raise click.ClickException(str(e)) from e
    render(recommendations, f"Recommendations for user {user_id} ({strategy})", as_json)


@cli.command()
@click.option("--limit", type=click.IntRange(min=1), default=None, help="Number of products")
@click.option("--json", "as_json", is_flag=True, help="Print JSON instead of a table")
@click.pass_obj
def popular(config: EngineConfig, limit: Optional[int], as_json: bool):
    """Most popular available products"""
    try:
        recommendations = asyncio.run(
            _run(config, lambda engine: engine.recommend_popular(None, limit))
        )
    except UpstreamUnavailableError as e:
        raise click.ClickException(str(e)) from e
    render(recommendations, "Popular products", as_json)


@cli.command()
@click.pass_obj
def health(config: EngineConfig):
    """Check the rental store and cache"""
    result = asyncio.run(_run(config, lambda engine: engine.health_check()))
    click.echo(json.dumps(result, indent=2))
    if result["status"] == "unhealthy":
        sys.exit(1)


def main():
    """Main entry point for the command-line interface"""
    cli()


if __name__ == "__main__":
    main()
