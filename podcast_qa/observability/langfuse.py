"""Langfuse tracing utilities.

Retrieval calls and agent turns are wrapped in Langfuse spans when
LANGFUSE_PUBLIC_KEY and LANGFUSE_SECRET_KEY are set. Without keys, or if the
Langfuse client misbehaves, spans degrade to a no-op context so a request is
never broken by tracing.
"""

import contextlib
import logging
import os
from typing import Any, Iterator, Optional

from langfuse import get_client

logger = logging.getLogger(__name__)

_INITIALIZED = False


def _is_langfuse_configured() -> bool:
    return bool(os.getenv("LANGFUSE_PUBLIC_KEY") and os.getenv("LANGFUSE_SECRET_KEY"))


def init_langfuse_observability() -> bool:
    """Initialize the Langfuse client once.

    Returns:
        True if Langfuse is configured and the auth check passed.
    """
    global _INITIALIZED
    if _INITIALIZED:
        return True

    if not _is_langfuse_configured():
        logger.info(
            "Langfuse keys not configured (LANGFUSE_PUBLIC_KEY/LANGFUSE_SECRET_KEY); tracing disabled."
        )
        return False

    try:
        if not get_client().auth_check():
            logger.error("Langfuse auth check failed; verify LANGFUSE_* environment variables.")
            return False
    except Exception as exc:
        logger.error(f"Langfuse initialization failed: {exc}")
        return False

    _INITIALIZED = True
    return True


def get_langfuse() -> Any:
    """Return the singleton Langfuse client."""
    return get_client()


@contextlib.contextmanager
def trace_span(name: str, input: Optional[dict] = None, metadata: Optional[dict] = None) -> Iterator[Any]:
    """Open a Langfuse span, or a no-op when tracing is off.

    Yields:
        The Langfuse observation, or None when tracing is disabled.
    """
    if not _is_langfuse_configured():
        yield None
        return

    try:
        observation_cm = get_langfuse().start_as_current_observation(as_type="span", name=name)
    except Exception as exc:
        logger.debug(f"[{name}] Langfuse observation start failed: {exc}")
        observation_cm = contextlib.nullcontext()

    with observation_cm as observation:
        if observation is not None:
            try:
                observation.update(input=input, metadata=metadata)
            except Exception as exc:
                logger.debug(f"[{name}] Langfuse observation update failed: {exc}")
        yield observation


def record_output(observation: Any, output: Any) -> None:
    """Attach an output to a span returned by trace_span (no-op for None)."""
    if observation is None:
        return
    try:
        observation.update(output=output)
    except Exception as exc:
        logger.debug(f"Langfuse observation update failed: {exc}")
