from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class Principal:
    """
    The result of a successful validation.

    username is None for the stateless strategy, which only proves that the
    caller holds the server secret.
    """

    strategy: str
    username: str | None = None


@runtime_checkable
class AuthStrategy(Protocol):
    """
    Capability interface shared by every session strategy.

    The web layer only talks to this interface; deployment settings pick
    the implementation.
    """

    name: str
    session_seconds: int
    required_fields: tuple[str, ...]

    def login(self, fields: dict[str, str]) -> str:
        """Exchange login fields for a session artifact."""
        ...

    def validate(self, artifact: str, now: float | None = None) -> Principal: ...

    def revoke(self, artifact: str) -> None: ...

    def sweep(self, now: float | None = None) -> int: ...

    def close(self) -> None: ...
