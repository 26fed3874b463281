from __future__ import annotations


class RegistryFetchError(RuntimeError):
    """A registry or state snapshot could not be fetched from Home Assistant."""

    def __init__(self, *, source: str, message: str, status_code: int | None = None) -> None:
        self.source = source
        self.message = message
        self.status_code = status_code
        super().__init__(f"{source}: {message}")

    def to_error_detail(self) -> dict[str, str | int | None]:
        return {
            "error_code": "registry_fetch_failed",
            "source": self.source,
            "status_code": self.status_code,
            "message": self.message,
        }
