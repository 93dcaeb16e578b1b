"""Models for the persisted synchronisation state and the results derived from it."""

from __future__ import annotations

from dataclasses import dataclass

from dataclasses_json import DataClassJsonMixin, LetterCase, dataclass_json

__all__: list[str] = ["ComparisonResult", "ComparisonStats", "StateMetadata"]


@dataclass_json(letter_case=LetterCase.CAMEL)
@dataclass
class StateMetadata(DataClassJsonMixin):
    """Metadata block stored under ``_metadata`` in the state file.

    Attributes:
        last_updated (str): ISO 8601 timestamp of the last save.
        version (str): State file format version.
        tool_version (str): Version of the tool that wrote the file.
    """

    last_updated: str = ""
    version: str = "1.0.0"
    tool_version: str = ""


@dataclass_json(letter_case=LetterCase.CAMEL)
@dataclass(frozen=True)
class ComparisonResult(DataClassJsonMixin):
    """Difference between two state records.

    Attributes:
        new_keys (tuple[str, ...]): Keys present only in the current state.
        modified_keys (tuple[str, ...]): Keys present in both with differing hashes.
        deleted_keys (tuple[str, ...]): Keys present only in the previous state.
        unchanged_keys (tuple[str, ...]): Keys present in both with equal hashes.
    """

    new_keys: tuple[str, ...] = ()
    modified_keys: tuple[str, ...] = ()
    deleted_keys: tuple[str, ...] = ()
    unchanged_keys: tuple[str, ...] = ()

    @property
    def has_changes(self) -> bool:
        return bool(self.new_keys or self.modified_keys or self.deleted_keys)


@dataclass
class ComparisonStats:
    """Counts derived from a ComparisonResult.

    Attributes:
        total (int): Keys in the current state.
        new (int): New keys.
        modified (int): Modified keys.
        deleted (int): Deleted keys.
        unchanged (int): Unchanged keys.
        change_rate (float): Share of new and modified keys in the current state, in percent.
    """

    total: int = 0
    new: int = 0
    modified: int = 0
    deleted: int = 0
    unchanged: int = 0
    change_rate: float = 0.0
