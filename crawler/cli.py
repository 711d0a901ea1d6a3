"""
Simple CLI to run the miner and extractors manually.
"""
from __future__ import annotations

import asyncio
import json
import logging

import click
from dotenv import load_dotenv

load_dotenv()

import miner  # noqa: E402
from miner.errors import MinerError  # noqa: E402
from miner.generation import GenerationRequest  # noqa: E402
from miner.models import GenerationTask, VideoSource  # noqa: E402


def _echo(payload) -> None:
    click.echo(json.dumps(payload, ensure_ascii=False, indent=2))


def _run(coro):
    try:
        return asyncio.run(coro)
    except MinerError as exc:
        raise click.ClickException(exc.message) from exc


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Log adapter activity to stderr.")
def cli(verbose: bool):
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING)


@cli.command()
@click.argument("url")
@click.option(
    "--source",
    "sources",
    multiple=True,
    type=click.Choice([source.value for source in VideoSource]),
    help="Only query these sources (repeatable). Defaults come from config/sources.yaml.",
)
def mine(url: str, sources):
    result = _run(miner.mine_product_videos(url, list(sources) or None))
    _echo(result.to_dict())


@cli.command()
@click.argument("url")
def shopee(url: str):
    _echo(_run(miner.extract_shopee_product(url)).to_dict())


@cli.command("shopee-video")
@click.argument("url")
def shopee_video(url: str):
    _echo(_run(miner.extract_shopee_video(url)).to_dict())


@cli.command()
@click.argument("url")
def sora(url: str):
    _echo(_run(miner.extract_sora_video(url)).to_dict())


@cli.command()
@click.argument("prompt")
@click.option("--aspect-ratio", default="16:9", show_default=True)
@click.option("--duration", default=5, show_default=True, type=int)
@click.option("--mode", default="Fast", show_default=True, type=click.Choice(["Fast", "Standard"]))
def seedance(prompt: str, aspect_ratio: str, duration: int, mode: str):
    """Create a generation task and poll it until it finishes."""

    def report(task: GenerationTask) -> None:
        click.echo(f"{task.status.value} {task.progress:.0f}% ({task.elapsed:.0f}s)", err=True)

    request = GenerationRequest(prompt=prompt, aspect_ratio=aspect_ratio, duration=duration, mode=mode)
    _echo(_run(miner.generate_video(request, on_update=report)).to_dict())


if __name__ == "__main__":  # pragma: no cover
    cli()
