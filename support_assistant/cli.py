"""
Main CLI for the Support Assistant.

Subcommands: ingest, ask, chat, status, clear-db
"""

import asyncio
import logging
import sys

import click
from support_assistant.config import AssistantConfig, ConfigError, load_config
from support_assistant.errors import ConnectivityError
from support_assistant.rag.engine import ChatEngine
from support_assistant.service import AssistantService


def _load(ctx) -> AssistantConfig:
    try:
        return load_config(ctx.obj.get('config'))
    except ConfigError as e:
        click.echo(click.style(f"✗ Config error: {e}", fg="red"), err=True)
        sys.exit(1)


def _start_service(ctx) -> AssistantService:
    service = asyncio.run(AssistantService.start(_load(ctx)))
    if not service.available:
        click.echo(click.style("✗ Chat service not available (see log)", fg="red"), err=True)
        sys.exit(1)
    return service


@click.group()
@click.version_option()
@click.option('--config', type=click.Path(exists=True), help='Config file path')
@click.option('--verbose', '-v', is_flag=True, help='Debug logging')
@click.pass_context
def cli(ctx, config, verbose):
    """Support Assistant - answers questions from your own documents only."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )
    ctx.ensure_object(dict)
    ctx.obj['config'] = config


@cli.command()
@click.option('--dir', 'dir_path', type=click.Path(file_okay=False), help='Documents folder')
@click.pass_context
def ingest(ctx, dir_path):
    """Chunk, embed and index every .txt, .md and .pdf file in the folder."""
    cfg = _load(ctx)
    engine = ChatEngine(cfg.as_dict())

    async def run():
        await engine.initialize_vector_store()
        return await engine.process_documents(dir_path or cfg.get_documents_dir())

    try:
        report = asyncio.run(run())
    except ConnectivityError as e:
        click.echo(click.style(f"✗ {engine.vector_error or e}", fg="red"), err=True)
        sys.exit(1)

    click.echo(click.style(
        f"✓ Indexed {report.chunks} chunk(s) from {len(report.files)} file(s) "
        f"in {report.elapsed_ms / 1000:.2f}s",
        fg="green",
    ))
    for name in report.skipped:
        click.echo(click.style(f"  skipped (no text): {name}", fg="yellow"))
    for name, reason in report.failures.items():
        click.echo(click.style(f"  ✗ {name}: {reason}", fg="red"), err=True)
    if not report.ok:
        sys.exit(1)


@cli.command()
@click.argument('question')
@click.option('--model', help='Chat model override')
@click.option('--temperature', type=float, help='Sampling temperature')
@click.option('--max-tokens', type=int, help='Max output tokens')
@click.pass_context
def ask(ctx, question, model, temperature, max_tokens):
    """Ask a single question."""
    service = _start_service(ctx)
    options = {'model': model, 'temperature': temperature, 'max_tokens': max_tokens}

    async def run():
        session = (await service.create_session()).data
        return await service.send_message(question, session.id, options)

    response = asyncio.run(run())
    if not response.success:
        click.echo(click.style(f"✗ {response.error}", fg="red"), err=True)
        sys.exit(1)
    click.echo(response.data.content)


@cli.command()
@click.option('--user', 'user_id', help='User id attached to the session')
@click.pass_context
def chat(ctx, user_id):
    """Interactive chat in one session (empty line or Ctrl-D to quit)."""
    service = _start_service(ctx)

    async def run():
        session = (await service.create_session(user_id)).data
        click.echo(click.style(f"[session {session.id}]", fg="blue"))
        while True:
            try:
                text = await asyncio.to_thread(input, "you> ")
            except EOFError:
                break
            if not text.strip():
                break
            click.echo("assistant> ", nl=False)
            response = await service.stream_message(
                text, session.id, on_delta=lambda d: click.echo(d, nl=False)
            )
            click.echo()
            if not response.success:
                click.echo(click.style(f"✗ {response.error}", fg="red"), err=True)

    asyncio.run(run())


@cli.command()
@click.pass_context
def status(ctx):
    """Show model, vector database and embedding status."""
    cfg = _load(ctx)

    async def run():
        service = await AssistantService.start(cfg)
        return await service.get_service_status()

    response = asyncio.run(run())
    if not response.success:
        click.echo(click.style(f"✗ {response.error}", fg="red"), err=True)
        sys.exit(1)
    for name, ok in response.data.to_dict().items():
        mark = click.style("✓", fg="green") if ok else click.style("✗", fg="red")
        click.echo(f"{mark} {name}")


@cli.command('clear-db')
@click.option('--confirm', is_flag=True, help='Skip confirmation')
@click.pass_context
def clear_db(ctx, confirm):
    """Delete every record from the vector index."""
    cfg = _load(ctx)
    if not confirm:
        click.echo("This will delete all indexed documents and messages.")
        if not click.confirm("Continue?"):
            return

    engine = ChatEngine(cfg.as_dict())

    async def run():
        await engine.initialize_vector_store()
        await engine.clear_index()

    try:
        asyncio.run(run())
    except ConnectivityError as e:
        click.echo(click.style(f"✗ {engine.vector_error or e}", fg="red"), err=True)
        sys.exit(1)
    click.echo(click.style("✓ Index cleared", fg="green"))


if __name__ == '__main__':
    cli()
