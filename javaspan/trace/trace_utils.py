# javaspan/trace/trace_utils.py
from __future__ import annotations

import contextlib
import contextvars
import hashlib
import json
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union


_CURRENT_TRACER: contextvars.ContextVar[Optional["TraceLogger"]] = contextvars.ContextVar(
    "CURRENT_TRACER", default=None
)


def get_tracer() -> Optional["TraceLogger"]:
    return _CURRENT_TRACER.get()


@contextlib.contextmanager
def using_tracer(tracer: "TraceLogger"):
    token = _CURRENT_TRACER.set(tracer)
    try:
        yield tracer
    finally:
        _CURRENT_TRACER.reset(token)


def digest_obj(obj: Any) -> str:
    """
    Hash inputs and outputs (whole source files, edits) instead of logging them.
    """
    if obj is None:
        return ""
    s = json.dumps(obj, ensure_ascii=False, sort_keys=True, default=str)
    return hashlib.sha1(s.encode("utf-8", errors="ignore")).hexdigest()


def _text_size(obj: Any) -> int:
    if isinstance(obj, str):
        return len(obj)
    if isinstance(obj, dict):
        return sum(len(v) for v in obj.values() if isinstance(v, str))
    return 0


@dataclass
class TraceSpan:
    tracer: "TraceLogger"
    stage: str
    tool: str
    input_obj: Any = None
    extra: Dict[str, Any] = field(default_factory=dict)
    _start: float = 0.0
    _output_obj: Any = None

    def set_output(self, output_obj: Any) -> None:
        self._output_obj = output_obj

    def add_extra(self, **kwargs: Any) -> None:
        self.extra.update(kwargs)

    def __enter__(self) -> "TraceSpan":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.tracer.write({
            "stage": self.stage,
            "tool": self.tool,
            "input_digest": digest_obj(self.input_obj),
            "output_digest": digest_obj(self._output_obj),
            "latency_ms": int((time.perf_counter() - self._start) * 1000),
            "ok": exc is None,
            "error_type": exc_type.__name__ if exc_type else "",
            "text_chars": _text_size(self.input_obj),
            "extra": self.extra,
        })
        # never swallow the exception
        return False


class _NullSpan:
    """Stand-in returned by ``trace_span`` when no tracer is active."""

    def set_output(self, output_obj: Any) -> None:
        pass

    def add_extra(self, **kwargs: Any) -> None:
        pass

    def __enter__(self) -> "_NullSpan":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        return False


class TraceLogger:
    """
    Appends one JSON record per span to ``trace_path``:
      run_id, stage, tool, input_digest, output_digest, latency_ms, ok, error_type, text_chars, extra
    """

    def __init__(self, *, run_id: str, trace_path: Path) -> None:
        self.run_id = run_id
        self.trace_path = Path(trace_path)
        self.trace_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def write(self, record: Dict[str, Any]) -> None:
        line = json.dumps({"run_id": self.run_id, **record}, ensure_ascii=False, default=str)
        with self._lock:
            with self.trace_path.open("a", encoding="utf-8") as f:
                f.write(line + "\n")


def trace_span(*, stage: str, tool: str, input_obj: Any = None) -> Union[TraceSpan, _NullSpan]:
    """Span on the current tracer, or a no-op span when tracing is off."""
    tracer = get_tracer()
    if tracer is None:
        return _NullSpan()
    return TraceSpan(tracer=tracer, stage=stage, tool=tool, input_obj=input_obj)
