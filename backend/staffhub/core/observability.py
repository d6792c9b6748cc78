import logging

from fastapi import Request

from staffhub.core.api_response import get_request_id


def log_business_event(
    logger: logging.Logger,
    request: Request,
    *,
    event: str,
    level: int = logging.INFO,
    **fields,
) -> None:
    chunks = [f"event={event}", f"request_id={get_request_id(request)}"]
    for key, value in fields.items():
        chunks.append(f"{key}={value}")
    logger.log(level, "business_event %s", " ".join(chunks))
