"""Content-hash state tracking for incremental synchronisation.

The state of a run is a mapping of every flattened source key to the SHA-256 digest of its value.
Comparing the previous and the current state yields the new, modified, deleted and unchanged keys,
independently of how the source file is formatted.
"""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any, ClassVar, Final, Self

from core.trans.interface import StateCorruptError
from core.version import VERSION
from models.state_models import ComparisonResult, ComparisonStats, StateMetadata
from utils.file_utils import FileUtils, InvalidJsonFileError
from utils.logger_utils import LoggerUtils
from utils.string_utils import StringUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Iterable, Mapping

    from models.config_models import Config

__all__: list[str] = ["StateManager"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

METADATA_KEY: Final[str] = "_metadata"


class StateManager:
    """Load, save and compare the persisted key-to-hash state.

    Attributes:
        STATE_VERSION (str): Format version written into the state metadata.
        DEFAULT_STATE_DIR (str): State directory relative to the project root.
        DEFAULT_STATE_FILE (str): State file name inside the state directory.
    """

    STATE_VERSION: ClassVar[str] = "1.0.0"
    DEFAULT_STATE_DIR: ClassVar[str] = ".localize-cache"
    DEFAULT_STATE_FILE: ClassVar[str] = "localization.state.json"

    def __init__(
        self,
        root_dir: str | Path,
        *,
        state_dir: str = DEFAULT_STATE_DIR,
        state_file: str = DEFAULT_STATE_FILE,
        tool_version: str = VERSION,
    ) -> None:
        self._state_path: Path = Path(root_dir) / state_dir / state_file
        self._tool_version: str = tool_version

    @classmethod
    def from_config(cls, config: Config, root_dir: str | Path) -> Self:
        return cls(root_dir, state_dir=config.SYNC.STATE_DIR, state_file=config.SYNC.STATE_FILE)

    @property
    def state_path(self) -> Path:
        return self._state_path

    @staticmethod
    def generate_state(flattened: Mapping[str, Any]) -> dict[str, str]:
        """Hash every leaf value of a flattened locale map.

        Args:
            flattened (Mapping[str, Any]): Flattened source locale.

        Returns:
            dict[str, str]: Key to SHA-256 hex digest.
        """
        return {key: StringUtils.content_hash(value) for key, value in flattened.items()}

    @staticmethod
    def compare_states(previous: Mapping[str, Any], current: Mapping[str, Any]) -> ComparisonResult:
        """Classify keys by comparing two states. The ``_metadata`` entry is ignored.

        Args:
            previous (Mapping[str, Any]): State of the last run (empty on first run).
            current (Mapping[str, Any]): State of this run.

        Returns:
            ComparisonResult: Keys in each class, in the iteration order of their source state.
        """
        new_keys: list[str] = []
        modified_keys: list[str] = []
        unchanged_keys: list[str] = []
        for key, digest in current.items():
            if key == METADATA_KEY:
                continue
            if key not in previous:
                new_keys.append(key)
            elif previous[key] != digest:
                modified_keys.append(key)
            else:
                unchanged_keys.append(key)

        deleted_keys: list[str] = [key for key in previous if key != METADATA_KEY and key not in current]
        return ComparisonResult(
            new_keys=tuple(new_keys),
            modified_keys=tuple(modified_keys),
            deleted_keys=tuple(deleted_keys),
            unchanged_keys=tuple(unchanged_keys),
        )

    def load_state(self) -> dict[str, str]:
        """Read the previous state.

        A missing file means first run. An unreadable or malformed file is logged and treated the same
        way, so a corrupt state only costs a full re-check, never a failed run.

        Returns:
            dict[str, str]: Key to hash, without metadata.
        """
        if not self._state_path.exists():
            logger.info("No previous state at '%s'; treating as first run", self._state_path)
            return {}

        try:
            raw: dict[str, Any] = FileUtils.read_json(self._state_path)
        except InvalidJsonFileError as err:
            logger.warning("%s; starting from an empty state", StateCorruptError(str(err)))
            return {}

        state: dict[str, str] = {}
        for key, value in raw.items():
            if key == METADATA_KEY:
                continue
            if not isinstance(value, str):
                logger.warning("Ignoring malformed state entry '%s'", key)
                continue
            state[key] = value
        logger.debug("Loaded %d state entries from '%s'", len(state), self._state_path)
        return state

    def save_state(self, state: Mapping[str, str]) -> bool:
        """Persist a state together with its metadata.

        Failures are logged and reported through the return value; they never abort a run.

        Args:
            state (Mapping[str, str]): Key to hash.

        Returns:
            bool: True if the file was written.
        """
        metadata = StateMetadata(
            last_updated=datetime.now(UTC).isoformat(),
            version=self.STATE_VERSION,
            tool_version=self._tool_version,
        )
        document: dict[str, Any] = {key: value for key, value in state.items() if key != METADATA_KEY}
        document[METADATA_KEY] = metadata.to_dict()
        try:
            FileUtils.write_json(self._state_path, document)
        except OSError as err:
            logger.error("Failed to save state to '%s': %s", self._state_path, err)
            return False
        logger.debug("Saved %d state entries to '%s'", len(document) - 1, self._state_path)
        return True

    def load_metadata(self) -> StateMetadata | None:
        """Read only the metadata block of the state file, if there is a readable one."""
        try:
            raw: dict[str, Any] = FileUtils.read_json(self._state_path, default={})
        except InvalidJsonFileError:
            return None
        block: Any = raw.get(METADATA_KEY)
        if not isinstance(block, dict):
            return None
        return StateMetadata.from_dict(block, infer_missing=True)

    @staticmethod
    def get_comparison_stats(comparison: ComparisonResult) -> ComparisonStats:
        """Summarise a comparison as counts and a change rate in percent."""
        total: int = len(comparison.new_keys) + len(comparison.modified_keys) + len(comparison.unchanged_keys)
        changed: int = len(comparison.new_keys) + len(comparison.modified_keys)
        return ComparisonStats(
            total=total,
            new=len(comparison.new_keys),
            modified=len(comparison.modified_keys),
            deleted=len(comparison.deleted_keys),
            unchanged=len(comparison.unchanged_keys),
            change_rate=round(changed / total * 100, 2) if total else 0.0,
        )

    def cleanup_state(self, current_keys: Iterable[str]) -> dict[str, str]:
        """Drop state entries whose keys no longer exist and persist the result.

        Args:
            current_keys (Iterable[str]): Keys that still exist in the source.

        Returns:
            dict[str, str]: The cleaned state.
        """
        keep: set[str] = set(current_keys)
        state: dict[str, str] = self.load_state()
        cleaned: dict[str, str] = {key: value for key, value in state.items() if key in keep}
        removed: int = len(state) - len(cleaned)
        if removed:
            logger.info("Removed %d obsolete state entries", removed)
            self.save_state(cleaned)
        return cleaned
