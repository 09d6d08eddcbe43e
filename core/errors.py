from __future__ import annotations


class BotError(RuntimeError):
    pass


class ValidationError(BotError):
    pass


class CapabilityUnavailable(BotError):
    def __init__(self, capability: str, detail: str = "") -> None:
        self.capability = capability
        self.detail = detail
        message = f"{capability} is unavailable"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class PersistenceUnavailable(CapabilityUnavailable):
    def __init__(self, detail: str = "") -> None:
        super().__init__("file store", detail)


class OversizedInput(BotError):
    def __init__(self, size_bytes: int, limit_bytes: int) -> None:
        self.size_bytes = int(size_bytes)
        self.limit_bytes = int(limit_bytes)
        super().__init__(f"size {self.size_bytes} bytes exceeds limit {self.limit_bytes} bytes")


class PinNotFound(BotError):
    def __init__(self, pin: str) -> None:
        self.pin = pin
        super().__init__(f"no file registered for pin {pin!r}")


class RegistryExhausted(BotError):
    def __init__(self, attempts: int) -> None:
        self.attempts = int(attempts)
        super().__init__(f"no unique pin after {self.attempts} attempts")


class DownstreamFailure(BotError):
    pass


class DownstreamTimeout(DownstreamFailure):
    pass
