from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence, Union

from .errors import ConfigurationError
from .models import InsertOptions

DEFAULT_SET_SIZE = 500


@dataclass
class WorkerConfig:
    columns: Optional[Sequence[str]] = None
    set_size: int = DEFAULT_SET_SIZE
    ignore: bool = False
    update_duplicates: Union[bool, Sequence[str]] = False
    update_columns: Optional[Sequence[str]] = None
    return_primary_keys: bool = False

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        validate_set_size(self.set_size)
        if isinstance(self.update_duplicates, str):
            # a bare string would otherwise be read as a list of characters
            self.update_duplicates = [self.update_duplicates]
        if self.ignore and self.update_duplicates:
            raise ConfigurationError(
                "ignore and update_duplicates are mutually exclusive"
            )
        if self.ignore and self.return_primary_keys:
            raise ConfigurationError(
                "return_primary_keys cannot be combined with ignore"
            )
        if self.update_columns is not None and not self.update_duplicates:
            raise ConfigurationError(
                "update_columns requires update_duplicates"
            )

    def insert_options(self) -> InsertOptions:
        update = self.update_duplicates
        if not isinstance(update, bool):
            update = tuple(update)
        return InsertOptions(
            ignore_duplicates=self.ignore,
            update_on_duplicate=update,
            update_columns=(
                tuple(self.update_columns) if self.update_columns is not None else None
            ),
            return_primary_keys=self.return_primary_keys,
        )


def validate_set_size(set_size: int) -> int:
    if isinstance(set_size, bool) or not isinstance(set_size, int):
        raise ConfigurationError(
            f"set_size must be an int, got {type(set_size).__name__}"
        )
    if set_size <= 0:
        raise ConfigurationError(f"set_size must be > 0, got {set_size}")
    return set_size
