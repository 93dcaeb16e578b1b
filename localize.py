"""Synchronise locale files with a source locale.

Reads ``<LOCALES_DIR>/<SOURCE>.json``, translates the keys every target locale is missing (or whose
source text changed since the last run) through the configured providers and writes the target files
back. Provider API keys are read from ``<PROVIDER>_API_KEY`` environment variables.

``fix`` re-translates existing translations that break the length rules instead.

Example:
    python localize.py --targets fr,de --provider openai
    python localize.py fix --length strict
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Final, NoReturn

from config.loader import LENGTH_MODES, ConfigLoader, ConfigLoaderError
from core.cache.inflight_manager import InFlightManager
from core.cache.response_cache import ResponseCache
from core.orchestrator import Orchestrator
from core.shutdown import ShutdownRegistry
from core.sync.translator import LocaleTranslator
from core.trans.interface import TranslateExceptionError
from core.trans.manager import ProviderManager
from core.trans.rate_limiter import RateLimiter
from core.version import VERSION
from models.config_models import Config
from models.translation_models import GlobalStats
from utils.file_utils import FileUtils, FileUtilsError
from utils.logger_utils import LoggerUtils

CFG_FILE: Final[str] = "localize.ini"
COMMANDS: Final[tuple[str, ...]] = ("translate", "fix")


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> NoReturn:
        print(f"\n{message}\n", file=sys.stderr)
        self.print_help(sys.stderr)
        raise SystemExit(2)


def parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        argv (list[str] | None): Arguments to parse; ``sys.argv[1:]`` when None.

    Returns:
        argparse.Namespace: Parsed arguments.
    """
    parser = _ArgumentParser(
        description=f"Translate locale files with fallback providers (v{VERSION})",
        epilog="Example: python localize.py --targets fr,de --provider openai",
    )
    parser.add_argument(
        "command",
        nargs="?",
        default="translate",
        choices=COMMANDS,
        help="translate missing keys (default) or fix translations that break the length rules",
    )
    parser.add_argument("--config", dest="config", default=CFG_FILE, metavar="FILE", help="INI configuration file")
    parser.add_argument("--source", dest="source", metavar="LANG", help="Override the source language")
    parser.add_argument("--targets", dest="targets", metavar="LANGS", help="Comma separated target languages")
    parser.add_argument("--provider", dest="provider", metavar="NAME", help="Override the primary provider")
    parser.add_argument("--locales-dir", dest="locales_dir", metavar="DIR", help="Directory holding the locales")
    parser.add_argument(
        "--concurrency", dest="concurrency", type=int, metavar="N", help="Concurrent translations limit"
    )
    parser.add_argument("--length", dest="length", choices=LENGTH_MODES, help="Length check mode")
    parser.add_argument("--force", action="store_true", help="Re-translate every key")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def load_config(args: argparse.Namespace) -> Config:
    """Load the configuration file and apply CLI overrides.

    Raises:
        ConfigLoaderError: If the configuration file cannot be loaded.
    """
    script_name: str = Path(sys.argv[0]).stem
    overrides: dict[str, object] = {
        key: value for key, value in vars(args).items() if key not in ("config", "command")
    }
    return ConfigLoader(config_filename=args.config, script_name=script_name, **overrides).config


def print_summary(stats: GlobalStats) -> None:
    """Print the per-language result table and the totals."""
    print("-" * 50)
    for lang, lang_stats in stats.languages.items():
        if lang_stats.error:
            print(f"{lang:>8}: ERROR {lang_stats.error}")
            continue
        print(
            f"{lang:>8}: {lang_stats.added} added, {lang_stats.failed} failed, "
            f"{lang_stats.skipped} skipped ({lang_stats.time_ms:.0f} ms)"
        )
    print("-" * 50)
    print(f"Total: {stats.total}, success: {stats.success}, failed: {stats.failed}, skipped: {stats.skipped}")
    if stats.by_category:
        categories: str = ", ".join(f"{name}={count}" for name, count in sorted(stats.by_category.items()))
        print(f"Categories: {categories}")
    hit_rate: float = float(stats.cache.get("hit_rate", 0.0))
    print(f"Cache hit rate: {hit_rate:.0%}, duration: {stats.total_duration:.1f}s")


async def run(config: Config, command: str = "translate") -> int:
    """Build the components, run ``command`` on the source file and tear everything down.

    SIGINT/SIGTERM run the shutdown hooks; the first one cancels the translation task.

    Returns:
        int: Process exit code; 1 when any item or language failed, 130 when interrupted.
    """
    shutdown = ShutdownRegistry()
    main_task: asyncio.Task[int] | None = asyncio.current_task()

    async def cancel_main() -> None:
        if main_task is not None and not main_task.done():
            main_task.cancel()

    shutdown.register("cancel", cancel_main)
    shutdown.install_signal_handlers()
    rate_limiter: RateLimiter = RateLimiter.from_config(config)
    providers = ProviderManager(config, rate_limiter)
    try:
        chain = await providers.initialize()
        print(f"Providers: {', '.join(providers.provider_names)}")
        orchestrator = Orchestrator(
            config,
            chain,
            rate_limiter,
            cache=ResponseCache.from_config(config),
            inflight=InFlightManager.from_config(config),
            shutdown=shutdown,
        )
        translator = LocaleTranslator(config, orchestrator, root_dir=Path.cwd())
        source_file: Path = Path(config.GENERAL.LOCALES_DIR) / f"{config.GENERAL.SOURCE}.json"
        if command == "fix":
            stats: GlobalStats = await translator.fix_file(source_file)
        else:
            stats = await translator.translate_file(source_file)
    except asyncio.CancelledError:
        if not shutdown.is_shut_down:
            raise
        print("\nInterrupted.", file=sys.stderr)
        return 130
    finally:
        shutdown.unregister("cancel")
        await shutdown.run()
        shutdown.remove_signal_handlers()
        await providers.close()
        rate_limiter.destroy()

    print_summary(stats)
    failed_languages: bool = any(lang_stats.error for lang_stats in stats.languages.values())
    return 1 if stats.failed or failed_languages else 0


def main(argv: list[str] | None = None) -> int:
    """Entry point: parse arguments, set up logging, load the configuration and run.

    Returns:
        int: Process exit code.
    """
    args: argparse.Namespace = parse_arguments(argv)
    try:
        config: Config = load_config(args)
    except ConfigLoaderError as err:
        print("\nError: Failed to load configuration file.", file=sys.stderr)
        print(f"Details: {err}", file=sys.stderr)
        return 1

    log_file: str = str(FileUtils.resolve_path(config.GENERAL.LOG_FILE)) if config.GENERAL.LOG_FILE else ""
    logger_utils = LoggerUtils(log_file)
    if config.GENERAL.DEBUG or config.ADVANCED.DEBUG:
        logger_utils.set_level("DEBUG")

    print(f"Locale sync v{VERSION}: {config.GENERAL.SOURCE} -> {', '.join(config.GENERAL.TARGETS) or '(none)'}")
    try:
        return asyncio.run(run(config, args.command))
    except (FileUtilsError, TranslateExceptionError) as err:
        print(f"\nError: {err}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\n\nCancelled by user.", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
