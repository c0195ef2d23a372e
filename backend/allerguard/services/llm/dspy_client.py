import threading
import time
from typing import Any

import dspy
from sqlalchemy.exc import SQLAlchemyError

from allerguard.config import settings
from allerguard.errors import UpstreamError
from allerguard.logging import get_logger
from allerguard.storage.db import get_session
from allerguard.storage.repositories import log_llm_call
from allerguard.utils.timing import _format_duration

logger = get_logger(__name__)

_call_slots = threading.BoundedSemaphore(max(1, settings.llm_max_concurrency))


def _make_lm(model: str) -> dspy.LM:
    # One request, one response: no litellm retries, no response cache.
    return dspy.LM(
        f"{settings.llm_provider}/{model}",
        api_key=settings.llm_api_key,
        temperature=settings.llm_temperature,
        max_tokens=settings.llm_max_tokens,
        timeout=settings.llm_timeout_s,
        num_retries=0,
        cache=False,
    )


def configure_dspy() -> bool:
    """Configure the process-wide LM once at startup. Returns False when no API key is set."""
    if not settings.llm_api_key:
        logger.warning("llm.configure api_key missing; ingredient analysis will use keyword matching")
        return False
    dspy.settings.configure(lm=_make_lm(settings.llm_model), trace=[])
    logger.info("llm.configure provider=%s model=%s", settings.llm_provider, settings.llm_model)
    return True


def is_configured() -> bool:
    return getattr(dspy.settings, "lm", None) is not None


def run_with_logging(
    prompt_name: str,
    prompt_version: str,
    fn: Any,
    **kwargs: Any,
) -> Any:
    """Run one LLM call under the concurrency cap, then audit it to LLMCallLog."""
    if not _call_slots.acquire(timeout=settings.llm_timeout_s):
        raise UpstreamError(f"no free LLM call slot after {settings.llm_timeout_s}s")
    start = time.time()
    logger.info("[TIMING] llm.call.start name=%s version=%s model=%s", prompt_name, prompt_version, settings.llm_model)
    try:
        result = fn(**kwargs)
    finally:
        _call_slots.release()
    latency_ms = int((time.time() - start) * 1000)
    _record_call(prompt_name, prompt_version, str(kwargs), str(result), latency_ms)
    logger.info(
        "[TIMING] llm.call.end name=%s latency_ms=%s (%s)",
        prompt_name,
        latency_ms,
        _format_duration(latency_ms),
    )
    return result


def _record_call(
    prompt_name: str, prompt_version: str, input_payload: str, output_payload: str, latency_ms: int
) -> None:
    try:
        with get_session() as session:
            log_llm_call(
                session=session,
                prompt_name=prompt_name,
                prompt_version=prompt_version,
                model=settings.llm_model,
                input_payload=input_payload,
                output_payload=output_payload,
                latency_ms=latency_ms,
            )
    except SQLAlchemyError as exc:
        logger.warning("llm.call.log_failed name=%s error=%s", prompt_name, exc)
