import time
import json
import inspect
import logging
from typing import Optional
from contextlib import contextmanager
from functools import wraps

logger = logging.getLogger("architect.telemetry")


def emit_event(event: str, *, route: str, version: str, assessment_type: Optional[str] = None,
               question_count: Optional[int] = None, within_budget: Optional[bool] = None,
               refinement_status: Optional[str] = None, error_type: Optional[str] = None,
               latency_ms: Optional[int] = None, ok: Optional[bool] = None):
    payload = {
        "event": event,
        "route": route,
        "version": version,
        "assessment_type": assessment_type,
        "question_count": question_count,
        "within_budget": within_budget,
        "refinement_status": refinement_status,
        "error_type": error_type,
        "latency_ms": latency_ms,
        "ok": ok,
        "ts": time.time(),
    }
    # log as single-line JSON for easy parsing in prod
    logger.info("telemetry=%s", json.dumps(payload, separators=(",", ":")))


@contextmanager
def _api_call(route: str, version: str):
    t0 = time.time()
    err = None
    try:
        yield
    except Exception as e:
        err = e.__class__.__name__
        raise
    finally:
        emit_event("api_call", route=route, version=version,
                   latency_ms=int((time.time() - t0) * 1000), ok=err is None, error_type=err)


def instrument(route: str, version: str):
    """Emit one api_call event per invocation of the wrapped route."""
    def deco(fn):
        if inspect.iscoroutinefunction(fn):
            @wraps(fn)
            async def wrapped_async(*args, **kwargs):
                with _api_call(route, version):
                    return await fn(*args, **kwargs)
            return wrapped_async

        @wraps(fn)
        def wrapped(*args, **kwargs):
            with _api_call(route, version):
                return fn(*args, **kwargs)
        return wrapped
    return deco
