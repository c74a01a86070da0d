"""Entry point when the package is executed as a module."""

import json
import sys
from dataclasses import asdict, is_dataclass

import click
from pydantic import BaseModel

from .agents.demo.agent import OrderDeskAgentBuilder
from .platform.agent.errors import AgentError
from .platform.agent.messages import ChunkKind
from .platform.agent.runtime import Runtime
from .platform.observability.logging import configure_logging
from .platform.settings import get_settings


def _render(value) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, BaseModel):
        return value.model_dump_json(indent=2)
    if is_dataclass(value) and not isinstance(value, type):
        value = asdict(value)
    return json.dumps(value, indent=2, default=str)


@click.group()
def main():
    """Run tool-calling agents from the command line."""


@main.command()
@click.argument("prompt")
@click.option("--provider", type=click.Choice(["mock", "litellm"]), default="mock", show_default=True)
@click.option("--client", default=None, help="Client identifier, e.g. a LiteLLM model string")
@click.option("--max-iterations", type=int, default=5, show_default=True)
@click.option("--stream", is_flag=True, help="Stream a single exchange as tagged chunks")
@click.option("--log-level", default=None, help="Overrides LOGGING__LEVEL")
@click.option("--json-logs/--console-logs", default=None, help="Overrides LOGGING__JSON_OUTPUT")
def run(prompt, provider, client, max_iterations, stream, log_level, json_logs):
    """Run the order desk demo agent on PROMPT."""
    settings = get_settings()
    configure_logging(
        (log_level or settings.logging.level).upper(),
        json_output=settings.logging.json_output if json_logs is None else json_logs,
    )

    try:
        config = OrderDeskAgentBuilder(provider=provider, client=client, max_iterations=max_iterations).build()
        runtime = Runtime(config, settings=settings)
        if stream:
            for chunk in runtime.stream(prompt):
                if chunk.kind is ChunkKind.DONE:
                    click.echo()
                    click.echo(f"[done] model={chunk.data.model} usage={chunk.data.usage}", err=True)
                elif chunk.kind is ChunkKind.CONTENT:
                    click.echo(_render(chunk.data), nl=False)
                else:
                    click.echo(f"[{chunk.kind}] {_render(chunk.data)}", err=True)
        else:
            result = runtime.call(prompt)
            click.echo(_render(result.output))
    except AgentError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    sys.exit(main())
