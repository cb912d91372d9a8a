class StackpressException(Exception):
    pass


class ValidationException(StackpressException):
    pass


class RandomSourceException(StackpressException):
    pass


class GatewayException(StackpressException):
    """A create/get against the cluster failed for a specific resource."""

    def __init__(self, message: str, *, kind: str, name: str) -> None:
        self.kind = kind
        self.name = name
        super().__init__(message)


class NotFoundException(GatewayException):
    pass


class ReadinessTimeoutException(StackpressException):
    def __init__(self, message: str, *, kind: str, name: str, timeout: float) -> None:
        self.kind = kind
        self.name = name
        self.timeout = timeout
        super().__init__(message)


class ProvisioningCancelledException(StackpressException):
    pass
