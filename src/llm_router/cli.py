import asyncio
import json

import click

from . import __version__
from .backends.base import GenerateOptions, TaskType
from .config import get_settings
from .exceptions import BackendError, ConfigurationError, NoProviderAvailable
from .orchestrator import LLMRouter
from .telemetry import metrics_collector, setup_logging
from .usage import InMemoryUsageTracker


def get_version():
    return __version__


def build_router() -> LLMRouter:
    settings = get_settings()
    return LLMRouter.from_settings(
        settings, usage_tracker=InMemoryUsageTracker(max_entries=settings.usage_max_entries)
    )


async def _status():
    async with build_router() as router:
        return await router.discover_backends()


async def _models():
    async with build_router() as router:
        return await router.list_all_models()


async def _generate(prompt: str, options: GenerateOptions, stream: bool):
    async with build_router() as router:
        if not stream:
            response = await router.generate(prompt, options)
            click.echo(response.text)
            return
        async with router.stream_generate(prompt, options) as chunks:
            async for chunk in chunks:
                click.echo(chunk.text, nl=False)
        click.echo()


@click.group()
@click.option("--log-level", default=None, help="Override LOG_LEVEL.")
def cli(log_level):
    setup_logging(level=log_level)
    metrics_collector.enabled = get_settings().metrics_enabled


@cli.command()
@click.option("--format", default="text", type=click.Choice(["text", "json"]))
def version(format):
    if format == "json":
        click.echo(json.dumps({"version": get_version()}))
    else:
        click.echo(f"v{get_version()}")


@cli.command()
@click.option("--format", default="text", type=click.Choice(["text", "json"]))
def status(format):
    """Probe every backend and show which are available."""
    statuses = asyncio.run(_status())
    if format == "json":
        click.echo(json.dumps([s.to_dict() for s in statuses], indent=2))
        return
    for s in statuses:
        state = "up" if s.available else "down"
        click.echo(f"{s.backend:<12} {s.kind:<6} {state:<5} {len(s.models)} models")


@cli.command()
def models():
    """List models offered by the healthy backends."""
    for model in asyncio.run(_models()):
        details = ", ".join(d for d in (model.size, model.quantization) if d)
        suffix = f" ({details})" if details else ""
        click.echo(f"{model.backend}: {model.id}{suffix}")


@cli.command()
@click.argument("name", required=False)
def strategy(name):
    """Show the routing strategy, or set and persist it."""
    router = build_router()
    if name is None:
        click.echo(router.get_strategy().value)
        return
    try:
        chosen = router.set_strategy(name)
    except ConfigurationError as e:
        raise click.BadParameter(e.message, param_hint="NAME")
    click.echo(f"Strategy set to {chosen.value}")


@cli.command()
@click.argument("prompt")
@click.option(
    "--task",
    default=TaskType.GENERAL.value,
    type=click.Choice([t.value for t in TaskType]),
)
@click.option("--model", default=None)
@click.option("--temperature", default=None, type=float)
@click.option("--max-tokens", default=None, type=int)
@click.option("--system", "system_prompt", default=None)
@click.option("--stream", is_flag=True)
def generate(prompt, task, model, temperature, max_tokens, system_prompt, stream):
    """Generate a completion through the router."""
    options = GenerateOptions(
        model=model,
        temperature=temperature,
        max_tokens=max_tokens,
        system_prompt=system_prompt,
        task_type=TaskType(task),
    )
    try:
        asyncio.run(_generate(prompt, options, stream))
    except NoProviderAvailable as e:
        raise click.ClickException(e.message)
    except BackendError as e:
        raise click.ClickException(str(e))


if __name__ == "__main__":
    cli()
