"""Process-wide runtime health record for the simulation driver."""
from __future__ import annotations

import time
import traceback
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Dict, Mapping, Optional

PHASE_IDLE = "idle"
PHASE_OK = "ok"


@dataclass(frozen=True)
class FrameErrorSnapshot:
    message: str
    kind: str
    stack: str
    context: Mapping[str, Any]
    timestamp: float

    @classmethod
    def capture(
        cls, error: BaseException, context: Optional[Mapping[str, Any]], timestamp: float
    ) -> "FrameErrorSnapshot":
        stack = "".join(traceback.format_exception(type(error), error, error.__traceback__))
        return cls(
            message=str(error),
            kind=type(error).__name__,
            stack=stack,
            context=MappingProxyType(dict(context or {})),
            timestamp=timestamp,
        )


@dataclass(frozen=True)
class RuntimeSnapshot:
    """Immutable view of the diagnostic record, republished after each tick."""

    ok: bool = True
    phase: str = PHASE_IDLE
    consecutive_errors: int = 0
    total_errors: int = 0
    last_error: Optional[FrameErrorSnapshot] = None
    last_error_at: Optional[float] = None

    def as_dict(self) -> Dict[str, Any]:
        last_error = None
        if self.last_error is not None:
            last_error = {
                "message": self.last_error.message,
                "kind": self.last_error.kind,
                "stack": self.last_error.stack,
                "context": dict(self.last_error.context),
                "timestamp": self.last_error.timestamp,
            }
        return {
            "ok": self.ok,
            "phase": self.phase,
            "consecutiveErrors": self.consecutive_errors,
            "totalErrors": self.total_errors,
            "lastError": last_error,
            "lastErrorAt": self.last_error_at,
        }


_published = RuntimeSnapshot()


def publish_runtime_snapshot(snapshot: RuntimeSnapshot) -> None:
    global _published
    _published = snapshot


def runtime_snapshot() -> RuntimeSnapshot:
    """Return the most recently published diagnostic record."""

    return _published


@dataclass
class RuntimeDiagnostics:
    """Mutable health record owned by a single simulation driver."""

    ok: bool = True
    phase: str = PHASE_IDLE
    consecutive_errors: int = 0
    total_errors: int = 0
    last_error: Optional[FrameErrorSnapshot] = None
    last_error_at: Optional[float] = None
    publisher: Callable[[RuntimeSnapshot], None] = field(
        default=publish_runtime_snapshot, repr=False, compare=False
    )
    clock: Callable[[], float] = field(default=time.time, repr=False, compare=False)

    def record_frame_error(
        self,
        phase: str,
        error: BaseException,
        context: Optional[Mapping[str, Any]] = None,
    ) -> RuntimeSnapshot:
        now = self.clock()
        self.consecutive_errors += 1
        self.total_errors += 1
        self.ok = False
        self.phase = phase
        self.last_error = FrameErrorSnapshot.capture(error, context, now)
        self.last_error_at = now
        return self.publish()

    def clear_frame_error(self) -> RuntimeSnapshot:
        self.ok = True
        self.phase = PHASE_OK
        self.consecutive_errors = 0
        self.last_error = None
        return self.publish()

    def snapshot(self) -> RuntimeSnapshot:
        return RuntimeSnapshot(
            ok=self.ok,
            phase=self.phase,
            consecutive_errors=self.consecutive_errors,
            total_errors=self.total_errors,
            last_error=self.last_error,
            last_error_at=self.last_error_at,
        )

    def publish(self) -> RuntimeSnapshot:
        snapshot = self.snapshot()
        self.publisher(snapshot)
        return snapshot


_runtime_diagnostics = RuntimeDiagnostics()


def runtime_diagnostics() -> RuntimeDiagnostics:
    """Return the process-wide diagnostic record used by the host driver."""

    return _runtime_diagnostics


__all__ = [
    "FrameErrorSnapshot",
    "PHASE_IDLE",
    "PHASE_OK",
    "RuntimeDiagnostics",
    "RuntimeSnapshot",
    "publish_runtime_snapshot",
    "runtime_diagnostics",
    "runtime_snapshot",
]
