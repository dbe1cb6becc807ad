"""TVBox subscription route — merged sites and live channels."""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from portal.dependencies import get_settings, get_subscription_service
from portal.models.config import Settings
from portal.services.auth_service import get_username_from_cookie
from portal.services.subscription_service import SubscribeOptions, SubscriptionService, resolve_base_url

logger = logging.getLogger(__name__)

router = APIRouter(tags=["subscribe"])

NO_CACHE = {"Cache-Control": "no-cache, no-store, must-revalidate"}


@router.get("/api/tvbox/subscribe")
async def tvbox_subscribe(
    request: Request,
    token: Optional[str] = Query(None),
    ad_filter: Optional[str] = Query(None, alias="adFilter"),
    origin: Optional[str] = Query(None),
    settings: Settings = Depends(get_settings),
    subscriptions: SubscriptionService = Depends(get_subscription_service),
):
    if not settings.subscribe_enabled:
        return JSONResponse(status_code=403, content={"error": "Subscription is disabled"})

    if not settings.subscribe_token or token != settings.subscribe_token:
        return JSONResponse(status_code=401, content={"error": "Invalid subscription token"})

    try:
        base_url = resolve_base_url(settings.site_base, origin, request.headers)
        options = SubscribeOptions(
            base_url=base_url,
            ad_filter=ad_filter == "true",
            subscribe_token=settings.subscribe_token,
        )
        logger.info(f"TVBox subscription base_url={base_url} ad_filter={options.ad_filter}")
        document = await subscriptions.generate(get_username_from_cookie(request), options)
    except Exception as e:
        logger.error(f"Failed to generate TVBox subscription: {e}")
        return JSONResponse(status_code=500, content={"error": "Failed to generate subscription", "details": str(e)})

    return JSONResponse(content=document, headers=NO_CACHE)
