class RpcError(Exception):
    """Base for all chain RPC failures; carries the endpoint that failed."""

    def __init__(self, message: str, *, endpoint: str = "") -> None:
        super().__init__(message)
        self.endpoint = endpoint


class RpcTimeoutError(RpcError):
    pass


class RpcRateLimitedError(RpcError):
    pass


class RpcServerError(RpcError):
    def __init__(self, message: str, *, endpoint: str = "", status_code: int | None = None) -> None:
        super().__init__(message, endpoint=endpoint)
        self.status_code = status_code


class RpcMalformedResponseError(RpcServerError):
    pass


class RpcProtocolError(RpcError):
    """The node answered with a JSON-RPC error object."""

    def __init__(self, message: str, *, endpoint: str = "", code: int | None = None) -> None:
        super().__init__(message, endpoint=endpoint)
        self.code = code


class RpcExhaustedError(RpcError):
    """Every endpoint failed for one call."""

    def __init__(self, method: str, last_error: RpcError, attempts: int) -> None:
        super().__init__(
            f"{method} failed on all endpoints after {attempts} attempts: {last_error}",
            endpoint=last_error.endpoint,
        )
        self.method = method
        self.last_error = last_error
        self.attempts = attempts
