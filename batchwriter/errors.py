class BatchWriterError(Exception):
    """Base exception for batchwriter errors."""


class ConfigurationError(BatchWriterError):
    """Bad worker configuration (unknown column, conflicting options, ...)."""


class UnsupportedOptionError(ConfigurationError):
    """Option requested that the active dialect cannot express."""


class RowShapeError(BatchWriterError):
    """Row does not match the worker's column set."""


class ExecutionError(BatchWriterError):
    """Any failure while executing a flushed statement."""


class ConstraintViolationError(ExecutionError):
    """The database rejected the batch because of a constraint."""


class ConnectionLostError(ExecutionError):
    """The connection failed or was invalidated during execution."""


class SyntaxRejectedError(ExecutionError):
    """The database refused to parse the generated statement."""
