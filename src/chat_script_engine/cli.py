"""CLI tool for inspecting and running chat scripts."""

import asyncio
import json
from pathlib import Path
from typing import Optional

import typer
from typing_extensions import Annotated

from chat_script_engine.app import ChatScriptApp, build_application
from chat_script_engine.chat.session import ChatSession
from chat_script_engine.config import EngineConfig
from chat_script_engine.execution.errors import (
    ComponentNotRegistered,
    InvalidScriptDefinition,
    UnknownFeature,
)
from chat_script_engine.models.chat import ChatMessage
from chat_script_engine.observability.logging import setup_logging
from chat_script_engine.scripts.loader import load_script_file

app = typer.Typer(help="Chat Script Engine CLI")
components_app = typer.Typer(help="Inspect registered components")
scripts_app = typer.Typer(help="Inspect and validate scripts")

app.add_typer(components_app, name="components")
app.add_typer(scripts_app, name="scripts")

CHAT_HELP = (
    "Commands: /back, /reset, /progress, "
    "/component {json} (send data to the last component), /quit"
)


@app.callback()
def main(
    log_level: Annotated[
        Optional[str],
        typer.Option(
            help="Log level for JSON logs on stderr "
            "[default: CHAT_SCRIPTS_LOG_LEVEL or WARNING]"
        ),
    ] = None,
):
    setup_logging(log_level, default="WARNING")


def get_app(script_file: Optional[Path] = None) -> ChatScriptApp:
    application = build_application(EngineConfig.from_env())
    if script_file is not None:
        application.add_script(load_script_file(script_file))
    return application


@components_app.command("list")
def components_list():
    """Lists registered component type keys and their default parameters."""
    registry = get_app().components
    for type_key in registry.list_type_keys():
        entry = registry.get(type_key)
        typer.echo(f"{type_key}: {json.dumps(entry.default_params)}")


@scripts_app.command("list")
def scripts_list():
    """Lists the built-in scripts by feature."""
    store = get_app().scripts
    for definition in store.list_definitions():
        typer.echo(
            f"[{definition.feature}] {definition.id}: {definition.name} "
            f"({definition.total_steps} steps)"
        )
        for index, step in enumerate(definition.steps, start=1):
            typer.echo(f"  {index}. {step.id} - {step.display_name}")


@scripts_app.command("validate")
def scripts_validate(
    file_path: Annotated[
        Path, typer.Argument(help="Path to script YAML file")
    ],
):
    """Validates a script YAML file against the document schema."""
    if not file_path.exists():
        typer.echo(f"Error: File not found: {file_path}", err=True)
        raise typer.Exit(code=1)

    try:
        definition = load_script_file(file_path, strict_hooks=False)
    except InvalidScriptDefinition as e:
        typer.echo(f"Validation Error: {e.detail}", err=True)
        raise typer.Exit(code=1)

    # unregistered components only degrade to plain text, so they warn
    registry = get_app().components
    for step in definition.steps:
        if step.component is None:
            continue
        try:
            registry.require(step.component.type_key)
        except ComponentNotRegistered as e:
            typer.echo(f"Warning: step {step.id}: {e.detail}", err=True)

    typer.echo(
        f"Script file {file_path} is valid: {definition.id} "
        f"for feature {definition.feature} ({definition.total_steps} steps)."
    )


def _render(message: ChatMessage) -> None:
    typer.echo(f"assistant> {message.content}")
    if message.component is not None:
        props = json.dumps(message.component.props or {}, ensure_ascii=False)
        typer.echo(f"  [component {message.component.type}] {props}")


async def _chat_loop(session: ChatSession, feature: str) -> None:
    _render(await session.initialize(feature))
    typer.echo(CHAT_HELP)
    while True:
        text = typer.prompt("you", prompt_suffix="> ")
        command, _, argument = text.strip().partition(" ")
        if command == "/quit":
            return
        if command == "/back":
            _render(session.go_back())
        elif command == "/reset":
            _render(await session.reset())
        elif command == "/progress":
            current, total = session.progress()
            typer.echo(f"step {current} of {total}")
        elif command == "/component":
            target = next(
                (m for m in reversed(session.messages) if m.component is not None),
                None,
            )
            if target is None:
                typer.echo("No component to send data to.", err=True)
                continue
            try:
                data = json.loads(argument or "{}")
            except json.JSONDecodeError as e:
                typer.echo(f"Invalid JSON: {e}", err=True)
                continue
            reply = await session.handle_component_update(target.id, data)
            if reply is not None:
                _render(reply)
        else:
            reply = await session.send_message(text)
            if reply is not None:
                _render(reply)


@app.command("chat")
def chat(
    feature: Annotated[str, typer.Argument(help="Feature to open the chat with")],
    script_file: Annotated[
        Optional[Path],
        typer.Option("--script", help="YAML script serving the feature"),
    ] = None,
):
    """Runs an interactive chat session in the terminal."""
    try:
        application = get_app(script_file)
    except InvalidScriptDefinition as e:
        typer.echo(f"Error: {e.detail}", err=True)
        raise typer.Exit(code=1)

    if not application.dispatcher.has_handler(feature):
        typer.echo(
            f"Error: {UnknownFeature(feature).detail}. Available: "
            f"{', '.join(application.dispatcher.list_features())}",
            err=True,
        )
        raise typer.Exit(code=1)

    asyncio.run(_chat_loop(application.new_session(), feature))


if __name__ == "__main__":
    app()
