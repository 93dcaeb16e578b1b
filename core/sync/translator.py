"""File level locale synchronisation.

``LocaleTranslator`` keeps the target locale files next to a source file up to date: it diffs the source
against the state of the previous run, queues the keys each target file needs, hands them to the
orchestrator, writes the results back and removes keys that were deleted from the source. ``fix_file``
re-translates existing translations that break the length rules.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import asdict
from pathlib import Path
from typing import TYPE_CHECKING, Any

from core.sync.state_manager import StateManager
from core.trans.context import ContextProcessor
from core.trans.validator import DefaultQualityValidator
from models.state_models import ComparisonResult
from models.translation_models import GlobalStats, LanguageStats, TranslationItem, TranslationResult
from utils.file_utils import FileUtils, FileUtilsError
from utils.logger_utils import LoggerUtils
from utils.object_utils import ObjectUtils

if TYPE_CHECKING:
    import logging

    from core.orchestrator import Orchestrator
    from models.config_models import Config
    from models.quality_models import QualityIssue
    from models.translation_models import ContextData

__all__: list[str] = ["LocaleTranslator"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)


class LocaleTranslator:
    """Synchronises target locale files with a source locale file."""

    def __init__(
        self,
        config: Config,
        orchestrator: Orchestrator,
        state_manager: StateManager | None = None,
        *,
        root_dir: str | Path | None = None,
    ) -> None:
        """Initialize the translator.

        Args:
            config (Config): Validated configuration (targets, sync and concurrency options).
            orchestrator (Orchestrator): Orchestrator shared by all target languages.
            state_manager (StateManager | None): State persistence; built from the configuration when omitted.
            root_dir (str | Path | None): Project root holding the state directory. Defaults to the working
                directory.
        """
        self.config: Config = config
        self.orchestrator: Orchestrator = orchestrator
        self.root_dir: Path = Path(root_dir) if root_dir is not None else Path.cwd()
        self.state_manager: StateManager = state_manager or StateManager.from_config(config, self.root_dir)

    @property
    def sync_enabled(self) -> bool:
        return self.config.SYNC.ENABLED

    async def translate_file(self, source_file: str | Path, force: bool = False) -> GlobalStats:
        """Translate a source locale file into every configured target language.

        Args:
            source_file (str | Path): Source locale JSON file, e.g. ``locales/en.json``.
            force (bool): Re-translate every key, even those with an up-to-date translation.

        Returns:
            GlobalStats: Statistics of the run.

        Raises:
            FileUtilsError: If the source file is missing or is not a JSON object.
        """
        source_path: Path = FileUtils.resolve_path(source_file)
        FileUtils.validate_file_path(source_path, ".json")
        force = force or self.config.TRANSLATION.FORCE_UPDATE

        stats = GlobalStats(start_time=time.time())
        flattened: dict[str, Any] = ObjectUtils.flatten(FileUtils.read_json(source_path))
        logger.info("Source file '%s' contains %d translation keys", source_path.name, len(flattened))

        current_state: dict[str, str] = StateManager.generate_state(flattened)
        comparison: ComparisonResult = self._compare_state(flattened, current_state)
        stats.details["comparison"] = asdict(StateManager.get_comparison_stats(comparison))
        if not comparison.has_changes:
            logger.info("No changes in the source since the last run")

        failed_keys: set[str] = set()
        targets: list[str] = [lang for lang in self.config.GENERAL.TARGETS if lang != source_path.stem]
        batch: int = max(1, self.config.TRANSLATION.LANGUAGE_CONCURRENCY)
        for index in range(0, len(targets), batch):
            await asyncio.gather(
                *(
                    self._process_language(
                        lang, source_path, flattened, comparison, stats, failed_keys, force=force
                    )
                    for lang in targets[index : index + batch]
                )
            )

        self._persist_state(current_state, failed_keys)

        stats.end_time = time.time()
        stats.total_duration = stats.end_time - stats.start_time
        stats.cache = self.orchestrator.get_cache_stats()
        logger.info(
            "Run finished in %.1fs: %d success, %d failed, %d skipped",
            stats.total_duration,
            stats.success,
            stats.failed,
            stats.skipped,
        )
        return stats

    async def fix_file(self, source_file: str | Path) -> GlobalStats:
        """Re-translate existing translations that violate the length rules.

        Target languages are checked one after another. Only keys whose translation fails the length check
        are sent to the orchestrator; a successful result replaces the translation, a failed one leaves it
        as it is. The state file is not touched.

        Args:
            source_file (str | Path): Source locale JSON file.

        Returns:
            GlobalStats: ``total`` counts the length issues found, ``success`` the fixed ones.

        Raises:
            FileUtilsError: If the source file is missing or is not a JSON object.
        """
        source_path: Path = FileUtils.resolve_path(source_file)
        FileUtils.validate_file_path(source_path, ".json")

        stats = GlobalStats(start_time=time.time())
        flattened: dict[str, Any] = ObjectUtils.flatten(FileUtils.read_json(source_path))
        validator: DefaultQualityValidator = DefaultQualityValidator.length_only(self.config)
        context_processor: ContextProcessor = ContextProcessor.from_config(self.config)
        logger.info("Checking translation lengths in '%s' mode", validator.length_mode)

        for lang in (lang for lang in self.config.GENERAL.TARGETS if lang != source_path.stem):
            await self._fix_language(lang, source_path, flattened, validator, context_processor, stats)

        stats.end_time = time.time()
        stats.total_duration = stats.end_time - stats.start_time
        stats.cache = self.orchestrator.get_cache_stats()
        if stats.total:
            logger.info("Fixed %d of %d length issues", stats.success, stats.total)
        else:
            logger.info("No length issues found in any language")
        return stats

    async def _fix_language(
        self,
        lang: str,
        source_path: Path,
        flattened: dict[str, Any],
        validator: DefaultQualityValidator,
        context_processor: ContextProcessor,
        stats: GlobalStats,
    ) -> None:
        started: float = time.perf_counter()
        lang_stats = LanguageStats()
        stats.languages[lang] = lang_stats
        target_path: Path = source_path.with_name(f"{lang}.json")

        try:
            FileUtils.validate_file_path(target_path, ".json")
            target: dict[str, Any] = ObjectUtils.flatten(FileUtils.read_json(target_path))

            items: list[TranslationItem] = []
            for key, translated in target.items():
                source: Any = flattened.get(key)
                if not (isinstance(source, str) and source and isinstance(translated, str)):
                    continue
                context: ContextData = context_processor.analyze(source)
                issues: list[QualityIssue] = validator.check_length(
                    source, translated, {"target_lang": lang, "category": context.category}
                )
                if not issues:
                    lang_stats.skipped += 1
                    continue
                logger.debug("Length issue in '%s' [%s]: %s", key, lang, issues[0].message)
                items.append(
                    TranslationItem(key=key, text=source, target_lang=lang, existing=translated, context=context)
                )

            if not items:
                logger.info("No length issues found in '%s'", lang)
                return

            logger.info("Found %d length issues in '%s'", len(items), lang)
            results: list[TranslationResult] = await self.orchestrator.process_translations(items)
            for item, result in zip(items, results, strict=True):
                lang_stats.processed += 1
                stats.total += 1
                if result.success:
                    target[item.key] = result.translated
                    lang_stats.added += 1
                    stats.success += 1
                else:
                    lang_stats.failed += 1
                    stats.failed += 1

            if lang_stats.added:
                FileUtils.write_json(target_path, ObjectUtils.unflatten(target), sort_keys=True)
            logger.info("Fixed %d/%d translations in '%s'", lang_stats.added, len(items), lang)
        except (FileUtilsError, OSError) as err:
            lang_stats.error = str(err)
            logger.warning("Could not check '%s': %s", target_path.name, err)
        finally:
            lang_stats.time_ms = (time.perf_counter() - started) * 1000

    def _compare_state(self, flattened: dict[str, Any], current: dict[str, str]) -> ComparisonResult:
        """Compare the source with the state of the previous run."""
        if not self.sync_enabled:
            return ComparisonResult(unchanged_keys=tuple(flattened))

        previous: dict[str, str] = self.state_manager.load_state()
        comparison: ComparisonResult = StateManager.compare_states(previous, current)
        logger.info(
            "State comparison: %d new, %d modified, %d deleted, %d unchanged",
            len(comparison.new_keys),
            len(comparison.modified_keys),
            len(comparison.deleted_keys),
            len(comparison.unchanged_keys),
        )
        return comparison

    def _persist_state(self, current: dict[str, str], failed_keys: set[str]) -> None:
        """Save the state of this run without the keys that failed in any language.

        Those keys are reported as new by the next run and translated again.
        """
        if not self.sync_enabled:
            return
        if failed_keys:
            logger.info("%d failed keys are left out of the state and retried next run", len(failed_keys))
        state: dict[str, str] = {key: digest for key, digest in current.items() if key not in failed_keys}
        if not self.state_manager.save_state(state):
            logger.warning("State could not be saved; the next run will re-check every key")

    def _collect_items(
        self,
        lang: str,
        flattened: dict[str, Any],
        target: dict[str, Any],
        comparison: ComparisonResult,
        lang_stats: LanguageStats,
        *,
        force: bool,
    ) -> list[TranslationItem]:
        new_keys: frozenset[str] = frozenset(comparison.new_keys)
        modified_keys: frozenset[str] = frozenset(comparison.modified_keys)
        items: list[TranslationItem] = []
        for key, value in flattened.items():
            if not isinstance(value, str):
                # Non-text leaves (numbers, lists) are copied verbatim.
                if key not in target:
                    target[key] = value
                lang_stats.skipped += 1
                continue
            is_new: bool = key in new_keys
            is_modified: bool = key in modified_keys
            if key in target and not (force or is_new or is_modified):
                lang_stats.skipped += 1
                continue
            existing: Any = target.get(key)
            items.append(
                TranslationItem(
                    key=key,
                    text=value,
                    target_lang=lang,
                    existing=existing if isinstance(existing, str) else None,
                    is_new=is_new,
                    is_modified=is_modified,
                )
            )
        return items

    def _remove_deleted_keys(self, target: dict[str, Any], comparison: ComparisonResult) -> int:
        if not (self.sync_enabled and self.config.SYNC.REMOVE_DELETED_KEYS):
            return 0
        removed: int = 0
        for key in comparison.deleted_keys:
            if key in target:
                del target[key]
                removed += 1
        return removed

    async def _process_language(
        self,
        lang: str,
        source_path: Path,
        flattened: dict[str, Any],
        comparison: ComparisonResult,
        stats: GlobalStats,
        failed_keys: set[str],
        *,
        force: bool,
    ) -> None:
        started: float = time.perf_counter()
        lang_stats = LanguageStats()
        stats.languages[lang] = lang_stats
        target_path: Path = source_path.with_name(f"{lang}.json")

        try:
            exists: bool = target_path.exists()
            target: dict[str, Any] = ObjectUtils.flatten(FileUtils.read_json(target_path, default={}))
            if not exists:
                logger.info("Creating new translation file for '%s'", lang)

            removed: int = self._remove_deleted_keys(target, comparison) if exists else 0
            if removed:
                logger.info("Removed %d deleted keys from '%s'", removed, target_path.name)

            items: list[TranslationItem] = self._collect_items(
                lang, flattened, target, comparison, lang_stats, force=force
            )
            stats.skipped += lang_stats.skipped

            if items:
                logger.info("Found %d missing translations for '%s'", len(items), lang)
                results: list[TranslationResult] = await self.orchestrator.process_translations(items)
                self._apply_results(items, results, target, lang_stats, stats, failed_keys)

            if items or removed or not exists:
                FileUtils.write_json(target_path, ObjectUtils.unflatten(target), sort_keys=True)
                logger.info("Translations saved: %s", target_path.name)
            else:
                logger.info("All translations exist for '%s'", lang)
        except (FileUtilsError, OSError) as err:
            lang_stats.error = str(err)
            failed_keys.update(comparison.new_keys, comparison.modified_keys)
            logger.error("Error processing '%s': %s", lang, err)
        finally:
            lang_stats.time_ms = (time.perf_counter() - started) * 1000

    @staticmethod
    def _apply_results(
        items: list[TranslationItem],
        results: list[TranslationResult],
        target: dict[str, Any],
        lang_stats: LanguageStats,
        stats: GlobalStats,
        failed_keys: set[str],
    ) -> None:
        """Write results into the flattened target and update the counters.

        A failed item keeps its existing translation if there is one, otherwise the source text. Its key is
        added to ``failed_keys``.
        """
        categories: dict[str, dict[str, Any]] = stats.details.setdefault("categories", {})
        for item, result in zip(items, results, strict=True):
            lang_stats.processed += 1
            stats.total += 1
            stats.by_category[result.category] = stats.by_category.get(result.category, 0) + 1
            detail: dict[str, Any] = categories.setdefault(result.category, {"total_confidence": 0.0, "samples": 0})
            detail["total_confidence"] += item.context.confidence if item.context else 0.0
            detail["samples"] += 1

            if result.success:
                target[item.key] = result.translated
                lang_stats.added += 1
                stats.success += 1
            else:
                target[item.key] = item.existing if item.existing is not None else item.text
                failed_keys.add(item.key)
                lang_stats.failed += 1
                stats.failed += 1
