"""Command-line chat for llmsfree."""

from __future__ import annotations

import asyncio
import logging
import sys

import click
import httpx
from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape

from llmsfree.config import ChatOptions, LLMsFreeConfig, load_config
from llmsfree.core.chat_client import LLMsFreeChatClient, create_chat_client
from llmsfree.errors import LLMsFreeError
from llmsfree.types import Prompt, system_message, user_message

console = Console()


def build_prompt(text: str, system: str | None, model: str | None) -> Prompt:
    messages = [user_message(text)]
    if system:
        messages.insert(0, system_message(system))
    return Prompt(messages=messages, options=ChatOptions(model=model) if model else None)


async def _call(client: LLMsFreeChatClient, prompt: Prompt) -> None:
    response = await client.call(prompt)
    if response.result is None:
        console.print("[yellow]No response from the model.[/yellow]")
        return
    content = response.result.content
    console.print(Markdown(content) if isinstance(content, str) else content)


async def _stream(client: LLMsFreeChatClient, prompt: Prompt) -> None:
    async for response in client.stream(prompt):
        for generation in response.generations:
            if isinstance(generation.content, str):
                console.print(generation.content, end="", markup=False, highlight=False)
    console.print()


async def _run(config: LLMsFreeConfig, prompt: Prompt, stream: bool) -> None:
    async with create_chat_client(config) as client:
        if stream:
            await _stream(client, prompt)
        else:
            await _call(client, prompt)


@click.command()
@click.argument("prompt")
@click.option("--config", "-c", "config_path", default=None,
              help="Path to llmsfree.yaml (auto-detected from CWD or ~/.config/llmsfree/)")
@click.option("--model", "-m", default=None, help="Model code, e.g. kimi, qwen, glm-4")
@click.option("--system", "-s", default=None, help="System message sent before the prompt")
@click.option("--stream", is_flag=True, help="Stream the answer as it is generated")
@click.option("--verbose", "-v", is_flag=True, help="Verbose logging")
def main(prompt: str, config_path: str | None, model: str | None,
         system: str | None, stream: bool, verbose: bool):
    """Send PROMPT to a free-api chat-completions gateway and print the answer."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)

    config = load_config(config_path)
    try:
        asyncio.run(_run(config, build_prompt(prompt, system, model), stream))
    except (ValueError, LLMsFreeError, httpx.HTTPError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
