"""
Trace records for engine calls.

``@traced_engine`` wraps a pure engine function and, after each call, logs
one ``INVOICE_ENGINE_TRACE`` record carrying the engine name and version,
a fingerprint of the inputs that matter and how long the call took.  Two
calls with equal fingerprints received equal inputs, which is what makes
"why did this invoice total change?" answerable from logs alone.

The fingerprint is the first 16 hex characters of a SHA-256 over a
canonical rendering of the selected arguments.  Dict keys are sorted and
dataclasses are rendered field by field, so the rendering does not depend
on insertion order or object identity.

    @traced_engine("totals.uniform", "1.0", fingerprint_fields=("items", "tax_rate"))
    def compute_uniform_totals(items, tax_rate=0): ...
"""

from __future__ import annotations

import dataclasses
import functools
import hashlib
import inspect
import time
from collections.abc import Callable, Mapping
from decimal import Decimal
from enum import Enum
from typing import Any

from invoice_kernel.logging_config import get_logger

_logger = get_logger("engines.tracer")

TRACE_MESSAGE = "INVOICE_ENGINE_TRACE"


@functools.singledispatch
def canonical(value: Any) -> str:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return canonical({f.name: getattr(value, f.name) for f in dataclasses.fields(value)})
    return str(value)


@canonical.register(type(None))
def _(value) -> str:
    return "null"


@canonical.register
def _(value: str) -> str:
    # str-valued enums dispatch here before Enum
    return value.value if isinstance(value, Enum) else value


@canonical.register(bool)
@canonical.register(int)
@canonical.register(float)
@canonical.register(Decimal)
def _(value) -> str:
    return str(value)


@canonical.register
def _(value: Enum) -> str:
    return str(value.value)


@canonical.register
def _(value: Mapping) -> str:
    pairs = sorted(value.items(), key=lambda kv: str(kv[0]))
    return "{" + ",".join(f"{k}:{canonical(v)}" for k, v in pairs) + "}"


@canonical.register(list)
@canonical.register(tuple)
def _(value) -> str:
    return "[" + ",".join(canonical(v) for v in value) + "]"


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    arguments: Mapping[str, Any],
) -> str:
    """16-hex-character digest of ``arguments`` restricted to ``fingerprint_fields``.

    A field missing from ``arguments`` hashes the same as an explicit None.
    """
    rendered = "|".join(
        f"{name}={canonical(arguments.get(name))}" for name in fingerprint_fields
    )
    return hashlib.sha256(rendered.encode("utf-8")).hexdigest()[:16]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
    summarize: Callable[[Any], Mapping[str, Any]] | None = None,
) -> Callable:
    """
    Decorate an engine function so every call emits a trace record.

    ``fingerprint_fields`` names parameters of the wrapped function; they
    are bound against its signature, so positional and keyword calls
    fingerprint alike.  ``summarize``, when given, maps the result to extra
    fields added to the record (for example the computed total).
    """

    def decorator(func: Callable) -> Callable:
        signature = inspect.signature(func)

        def fingerprint(args: tuple, kwargs: dict) -> str:
            if not fingerprint_fields:
                return ""
            bound = signature.bind(*args, **kwargs)
            bound.apply_defaults()
            return compute_input_fingerprint(fingerprint_fields, bound.arguments)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            input_fingerprint = fingerprint(args, kwargs)

            started = time.perf_counter()
            result = func(*args, **kwargs)
            elapsed_ms = (time.perf_counter() - started) * 1000

            record = dict(summarize(result)) if summarize is not None else {}
            record.update(
                trace_type=TRACE_MESSAGE,
                engine_name=engine_name,
                engine_version=engine_version,
                input_fingerprint=input_fingerprint,
                duration_ms=round(elapsed_ms, 2),
                function=func.__qualname__,
            )
            _logger.info(TRACE_MESSAGE, extra=record)
            return result

        return wrapper

    return decorator
