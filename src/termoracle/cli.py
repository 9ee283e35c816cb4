"""Command-line interface for termoracle.

Provides the main entry point for the interactive chat session plus a
few diagnostic commands for running individual components.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Callable
from pathlib import Path

logger = logging.getLogger(__name__)

EXIT_WORDS = {"exit", "quit"}
MIN_RESULTS, MAX_RESULTS = 1, 20


def _result_count(value: str) -> int:
    """argparse type for --max-results, bounded like the search tool."""
    try:
        count = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid int value: {value!r}") from None
    if not MIN_RESULTS <= count <= MAX_RESULTS:
        raise argparse.ArgumentTypeError(f"must be between {MIN_RESULTS} and {MAX_RESULTS}")
    return count


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="termoracle",
        description="Terminal research assistant that searches the web and analyses images",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to YAML configuration file (default: config/termoracle.yaml)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("chat", help="Start the interactive session (default)")

    search_parser = subparsers.add_parser("search", help="Run one search and print the tool output")
    search_parser.add_argument("query", type=str, help="Search query")
    search_parser.add_argument(
        "--max-results", type=_result_count, default=None,
        help="Number of results to request (1-20)",
    )

    render_parser = subparsers.add_parser("render", help="Render local images as a terminal grid")
    render_parser.add_argument("paths", type=Path, nargs="+", help="Image files to render")

    history_parser = subparsers.add_parser("history", help="Replay a persisted conversation log")
    history_parser.add_argument(
        "path", type=Path, nargs="?", default=None,
        help="Log file (default: history.path from the configuration)",
    )

    return parser.parse_args(argv)


def is_exit_command(text: str) -> bool:
    """True for the inputs that end the session."""
    stripped = text.strip()
    return not stripped or stripped.lower() in EXIT_WORDS


def _build_renderer(settings):
    from termoracle.display.grid import GridRenderer

    d = settings.display
    return GridRenderer(
        fallback_width=d.fallback_width,
        min_width=d.min_image_width,
        max_width=d.max_image_width,
        spacing=d.spacing,
        max_description_lines=d.max_description_lines,
    )


def _build_search_backend(settings):
    from termoracle.search.valyu import ValyuSearchBackend

    return ValyuSearchBackend(
        api_key=settings.valyu_api_key.get_secret_value(),
        base_url=settings.search.base_url,
        search_type=settings.search.search_type,
        timeout=settings.search.timeout,
    )


def _build_search_adapter(settings, backend):
    from termoracle.search.adapter import SearchToolAdapter

    s = settings.search
    return SearchToolAdapter(
        backend,
        max_price=s.max_price,
        snippet_chars=s.snippet_chars,
        max_snippets=s.max_snippets,
        max_images=s.max_images,
    )


async def _run_turn(agent, presenter, user_input: str) -> None:
    """Drive one turn of the agent loop, printing its events as they arrive."""
    from termoracle.domain.models import TextDelta, ToolCallEvent, ToolResultEvent, TurnComplete

    async for event in agent.run_turn(user_input):
        if isinstance(event, TextDelta):
            presenter.text_delta(event)
        elif isinstance(event, ToolCallEvent):
            presenter.tool_call(event)
        elif isinstance(event, ToolResultEvent):
            presenter.tool_result(event)
        elif isinstance(event, TurnComplete):
            presenter.turn_complete(event)


def _shutdown(runner: asyncio.AbstractEventLoop, *resources) -> None:
    """Cancel whatever an interrupt left running, then release resources."""
    pending = asyncio.all_tasks(runner)
    for task in pending:
        task.cancel()
    if pending:
        runner.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
    for resource in resources:
        runner.run_until_complete(resource.disconnect())
    runner.run_until_complete(runner.shutdown_asyncgens())
    runner.close()


def _chat(settings, read_input: Callable[[str], str] = input) -> None:
    """Initialize all components and run the read-eval-print loop.

    Input is read on the main thread, so Ctrl-C at the prompt or during
    a turn ends the session straight away.
    """
    from termoracle.agent.loop import AgentLoop
    from termoracle.agent.session import SessionState
    from termoracle.conversation.log import ConversationLog
    from termoracle.display.console import ConsolePresenter
    from termoracle.images.pipeline import ImagePipeline
    from termoracle.llm import create_provider

    presenter = ConsolePresenter()
    provider = create_provider(settings)
    logger.info("Using %s provider (model=%s)", provider.name, provider.model)
    if not settings.valyu_api_key.get_secret_value():
        logger.warning("VALYU_API_KEY is not set, web searches will fail")

    session = SessionState(log=ConversationLog(settings.history.path), provider=provider)
    pipeline = ImagePipeline(
        describer=provider,
        counter=session.image_ids,
        image_dir=settings.images.directory,
        download_timeout=settings.images.download_timeout,
        max_dimension=settings.images.max_dimension,
        jpeg_quality=settings.images.jpeg_quality,
    )
    backend = _build_search_backend(settings)
    agent = AgentLoop(
        session=session,
        search=_build_search_adapter(settings, backend),
        images=pipeline,
        renderer=_build_renderer(settings),
        max_steps=settings.agent.max_steps,
        enforce_image_analysis=settings.agent.enforce_image_analysis,
        replay_tool_turns=settings.agent.replay_tool_turns,
    )

    presenter.banner()
    runner = asyncio.new_event_loop()
    try:
        while True:
            try:
                user_input = read_input(presenter.prompt())
            except EOFError:
                break
            if is_exit_command(user_input):
                break

            try:
                runner.run_until_complete(_run_turn(agent, presenter, user_input.strip()))
            except Exception as e:
                logger.exception("Turn failed")
                presenter.error(str(e))
    except KeyboardInterrupt:
        logger.info("Interrupted, ending session")
        print()
    finally:
        _shutdown(runner, backend, pipeline)
    presenter.farewell()


async def _search(settings, args) -> None:
    """Run the search tool adapter once and print what the model would see."""
    backend = _build_search_backend(settings)
    adapter = _build_search_adapter(settings, backend)
    async with backend:
        outcome = await adapter.run(
            args.query, args.max_results or settings.search.default_results
        )
    for block in outcome.to_blocks():
        print(block)
        print()


def _render(settings, paths: list[Path]) -> None:
    """Render local image files through the grid renderer."""
    from termoracle.domain.models import ImageAnalysis

    entries = [
        ImageAnalysis(
            image_id=f"IMG{i}",
            url=p.resolve().as_uri(),
            filename=p.name,
            storage_path=p if p.exists() else None,
            description=str(p),
        )
        for i, p in enumerate(paths, start=1)
    ]
    _build_renderer(settings).render(entries)


def _history(settings, path: Path | None) -> None:
    """Print the turns of a persisted conversation log."""
    from termoracle.conversation.log import ConversationLog

    log = ConversationLog.load(path or settings.history.path)
    for index, turn in enumerate(log.snapshot(), start=1):
        if turn.is_text:
            print(f"[{index}] {turn.role.value}: {turn.content}")
            continue
        for call in turn.tool_calls:
            print(f"[{index}] {turn.role.value}: call {call.tool_name} {call.args}")
        for result in turn.tool_results:
            status = "error" if result.is_error else "ok"
            print(f"[{index}] {turn.role.value}: result {result.tool_name} ({status})")


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the termoracle CLI."""
    args = parse_args(argv)

    from termoracle.config.settings import ConfigurationError, load_settings
    from termoracle.conversation.log import PersistenceError
    from termoracle.utils.logging import setup_logging

    settings = load_settings(args.config)

    if args.verbose:
        settings.logging.level = "DEBUG"

    setup_logging(settings.logging)

    command = args.command or "chat"
    try:
        if command == "chat":
            logger.info("Starting interactive session")
            _chat(settings)
        elif command == "search":
            asyncio.run(_search(settings, args))
        elif command == "render":
            _render(settings, args.paths)
        elif command == "history":
            _history(settings, args.path)
    except ConfigurationError as e:
        print(f"\x1b[31m{e}\x1b[0m", file=sys.stderr)
        sys.exit(1)
    except PersistenceError as e:
        print(f"Cannot replay history: {e}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        print()


if __name__ == "__main__":
    main()
