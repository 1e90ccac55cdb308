class ServiceError(Exception):
    pass


class TransientServiceError(ServiceError):
    pass


class RateLimitedError(TransientServiceError):
    pass


class ServiceOverloadedError(TransientServiceError):
    pass


class ServiceNetworkError(TransientServiceError):
    pass


class NetworkTimeoutError(TransientServiceError):
    def __init__(self, url: str, timeout_seconds: float):
        super().__init__(f"Network timeout after {timeout_seconds}s: {url}")
        self.url = url
        self.timeout_seconds = timeout_seconds


class GeminiConfigurationError(ServiceError):
    pass


class GeminiPromptError(ServiceError):
    pass


class EmptyResponseError(ServiceError):
    pass
