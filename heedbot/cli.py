"""heedbot command line — classify hand-authored threads from a terminal.

Usage:
    heedbot classify --interest-example 1 --example 1
    heedbot classify --interest "Only sales messages" --thread thread.json --contract bare
    heedbot export --example 3 > thread.json
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from loguru import logger

from heedbot import __version__
from heedbot.classifier import NotificationClassifier, Resolution
from heedbot.config import Settings, load_settings, parse_contract
from heedbot.lab.examples import INTEREST_EXAMPLES, THREAD_EXAMPLES, example_interest, example_thread
from heedbot.lab.threads import dump_thread, load_thread, request_from_thread
from heedbot.observatory.module_metrics import InMemoryEventStore, ModuleMetrics
from heedbot.providers.base import LLMProvider
from heedbot.providers.litellm_provider import LiteLLMProvider
from heedbot.providers.record_replay import CACHE_MODES, CacheMode, RecordReplayProvider

EXIT_OK = 0
EXIT_USAGE = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="heedbot",
        description="Decide whether a chat message deserves a notification.",
    )
    parser.add_argument("--version", action="version", version=f"heedbot {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="log pipeline events to stderr")
    sub = parser.add_subparsers(dest="command", required=True)

    classify = sub.add_parser("classify", help="classify the newest message of a thread")
    interest = classify.add_mutually_exclusive_group(required=True)
    interest.add_argument("--interest", help="what the subscriber wants to be notified about")
    interest.add_argument("--interest-example", choices=sorted(INTEREST_EXAMPLES))
    thread = classify.add_mutually_exclusive_group(required=True)
    thread.add_argument("--thread", type=Path, help="JSON thread file")
    thread.add_argument("--example", choices=sorted(THREAD_EXAMPLES), help="built-in sample thread")
    classify.add_argument("--contract", choices=["bare", "json"], help="output contract (default: from env)")
    classify.add_argument("--timeout", type=float, help="overall deadline in seconds")
    classify.add_argument("--cache-dir", type=Path, help="record/replay cache directory")
    classify.add_argument("--cache-mode", choices=CACHE_MODES, help="cache mode (default: replay_or_live; needs --cache-dir)")
    classify.add_argument("--env-file", type=Path, help=".env file with GMI_API_KEY etc.")
    classify.add_argument("--show-events", action="store_true", help="print recorded pipeline events")

    export = sub.add_parser("export", help="print a built-in sample thread as JSON")
    export.add_argument("--example", choices=sorted(THREAD_EXAMPLES), required=True)

    return parser


def configure_logging(verbose: bool) -> None:
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "WARNING")


def build_provider(
    settings: Settings,
    cache_dir: Path | None,
    cache_mode: str | None,
    store: InMemoryEventStore | None = None,
) -> LLMProvider:
    """Real provider, optionally wrapped in the record/replay cache."""
    endpoint = settings.endpoint
    mode = CacheMode(cache_mode or CacheMode.REPLAY_OR_LIVE)
    if not endpoint.api_key and not (cache_dir is not None and mode is CacheMode.REPLAY):
        logger.warning("GMI_API_KEY is not set; live endpoint calls will fail")
    provider: LLMProvider = LiteLLMProvider(
        api_key=endpoint.api_key,
        api_base=endpoint.api_base,
        default_model=settings.classifier.classification_model,
        provider_prefix=endpoint.provider_prefix,
        timeout=endpoint.timeout,
    )
    if cache_dir is not None:
        provider = RecordReplayProvider(provider, cache_dir, mode=mode, metrics=ModuleMetrics("cache", store))
    return provider


def format_resolution(resolution: Resolution) -> str:
    verdict = resolution.verdict
    lines = [
        f"Notification shown: {'yes' if verdict.should_notify else 'no'}",
        f"Confidence: {verdict.confidence}",
        f"Priority: {verdict.priority.name}",
        f"Reason: {verdict.reason or '-'}",
    ]
    if resolution.repair_calls:
        lines.append(f"Repair calls: {resolution.repair_calls}")
    if resolution.failed:
        lines.append(f"Pipeline failed ({resolution.failure.value}): {resolution.detail}")
    return "\n".join(lines)


async def run_classify(args: argparse.Namespace, provider: LLMProvider | None = None) -> int:
    settings = load_settings(env_file=args.env_file)
    config = settings.classifier
    if args.contract:
        config = config.with_contract(parse_contract(args.contract))

    interest = args.interest if args.interest is not None else example_interest(args.interest_example)
    messages = load_thread(args.thread) if args.thread else example_thread(args.example)
    request = request_from_thread(interest, messages, max_context=config.max_context)
    logger.info(
        f"Classifying message from {request.target.sender} "
        f"({len(request.context)} context, contract={config.contract.value})"
    )

    store = InMemoryEventStore()
    if provider is None:
        provider = build_provider(settings, args.cache_dir, args.cache_mode, store)
    classifier = NotificationClassifier(
        provider,
        config=config,
        metrics=ModuleMetrics("classifier", store),
    )
    resolution = await classifier.classify_outcome(request, timeout=args.timeout)

    print(format_resolution(resolution))
    if isinstance(provider, RecordReplayProvider):
        print(provider.stats.summary())
    if args.show_events:
        for event in store.events:
            timing = f" {event.duration_ms}ms" if event.duration_ms is not None else ""
            print(f"[{event.module}/{event.event_type}{timing}] {event.data}")
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command == "classify" and args.cache_mode and args.cache_dir is None:
        parser.error("--cache-mode requires --cache-dir")
    configure_logging(args.verbose)

    try:
        if args.command == "export":
            print(dump_thread(example_thread(args.example)))
            return EXIT_OK
        return asyncio.run(run_classify(args))
    except (OSError, ValueError) as e:
        print(f"heedbot: error: {e}", file=sys.stderr)
        return EXIT_USAGE


if __name__ == "__main__":
    sys.exit(main())
