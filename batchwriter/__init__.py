from .config import WorkerConfig
from .db.session import DbSession, EngineExecutor
from .rows import USE_DEFAULT
from .worker import Worker, bulk_insert, open_worker

__all__ = [
    "Worker",
    "WorkerConfig",
    "DbSession",
    "EngineExecutor",
    "USE_DEFAULT",
    "open_worker",
    "bulk_insert",
]
