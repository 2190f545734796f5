from dataclasses import dataclass
from typing import Any, Optional, Tuple, Union


@dataclass(frozen=True)
class InsertOptions:
    """
    Conflict and returning behaviour for one generated INSERT.

    update_on_duplicate is either a flag (use the table's natural conflict
    target) or a tuple of conflict-target column names.
    """
    ignore_duplicates: bool = False
    update_on_duplicate: Union[bool, Tuple[str, ...]] = False
    update_columns: Optional[Tuple[str, ...]] = None
    return_primary_keys: bool = False


@dataclass(frozen=True)
class ExecutionResult:
    """
    Outcome of a single flush.

    returned_keys follows the order of the rows in the batch. Returning keys
    is refused together with ignore, since skipped rows would leave gaps.
    """
    affected_row_count: int
    row_count: int = 0  # rows sent in the batch
    # only populated when primary keys were requested
    returned_keys: Optional[Tuple[Any, ...]] = None
