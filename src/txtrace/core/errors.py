class TracerError(Exception):
    pass


class InvalidTransactionHashError(TracerError, ValueError):
    pass


class DataSourceError(TracerError):
    pass


class RateLimitError(DataSourceError):
    pass


class TraceNotFoundError(DataSourceError):
    pass
