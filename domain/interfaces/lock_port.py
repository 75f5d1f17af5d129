from typing import AsyncContextManager
from typing_extensions import Protocol


class LockPort(Protocol):
    """Protocol for advisory locks keyed by an arbitrary string."""

    def hold(self, key: str) -> AsyncContextManager[None]:
        """
        Hold the lock for `key` for the duration of an `async with` block.

        Different keys never block each other.
        """
        ...


def enrollment_lock_key(enrollment_id: str) -> str:
    """Key shared by invoice creation and the rollover of one enrollment."""
    return f"enrollment:{enrollment_id}"
