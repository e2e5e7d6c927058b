from __future__ import annotations

import logging
import traceback
from typing import Any

from app.core.config import settings
from app.services.privacy import redact_secrets_text, sanitize_for_log
from app.services.supabase_rest import SupabaseRest

logger = logging.getLogger(__name__)

_STACK_LIMIT = 8000


async def log_system_error(
    *,
    route: str,
    message: str,
    user_id: str | None = None,
    correlation_id: str | None = None,
    err: BaseException | None = None,
    meta: dict[str, Any] | None = None,
) -> None:
    # Best-effort; a failed audit write must not change the response.
    try:
        stack = None
        if err is not None:
            raw_stack = "".join(
                traceback.format_exception(type(err), err, err.__traceback__)
            )[:_STACK_LIMIT]
            stack = redact_secrets_text(raw_stack)

        merged_meta = dict(meta or {})
        if correlation_id:
            merged_meta["correlation_id"] = correlation_id

        row: dict[str, Any] = {
            "route": sanitize_for_log(route),
            "message": sanitize_for_log(message),
            "stack": stack,
            "user_id": user_id,
            "meta": sanitize_for_log(merged_meta),
        }
        # Audit table is written with the service role only.
        sb = SupabaseRest(
            str(settings.supabase_url), settings.supabase_service_role_key
        )
        await sb.insert_one(
            "system_errors", bearer_token=settings.supabase_service_role_key, row=row
        )
    except Exception:
        logger.debug("system_errors write failed", exc_info=True)
