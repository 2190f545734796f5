from .catalog import reflect_table
from .session import DbSession, EngineExecutor, InsertExecutor

__all__ = [
    "DbSession",
    "EngineExecutor",
    "InsertExecutor",
    "reflect_table",
]
