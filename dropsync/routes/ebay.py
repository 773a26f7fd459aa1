# dropsync/routes/ebay.py
"""
eBay OAuth redirect targets.

``/ebay/callback/store`` is what the RuName accept URL points at in
production: it only records the code, and whichever process is waiting on
the flow polls for it. ``/ebay/callback`` exchanges the code directly and is
only useful when the redirect lands on the process that started the flow.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import HTMLResponse

from dropsync.core.enums import TokenService
from dropsync.core.exceptions import APIError, AuthError, PersistenceError
from dropsync.dependencies import ServiceContainer, get_container

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ebay", tags=["ebay"])

SUCCESS_PAGE = """<html><body>
<h2>eBay authorization received</h2>
<p>You can close this window.</p>
</body></html>"""


@router.get("/callback/store", response_class=HTMLResponse)
async def store_callback(
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    container: ServiceContainer = Depends(get_container),
):
    """Record the authorization code for the polling process to claim."""
    if error or not code:
        logger.error(f"eBay authorization redirect without code: {error or 'missing code'}")
        raise HTTPException(status_code=400, detail=f"Authorization failed: {error or 'missing code'}")

    try:
        await container.pending_store.add(TokenService.CHANNEL.value, code, state)
    except PersistenceError as e:
        logger.error(f"Could not store eBay authorization code: {e}")
        raise HTTPException(status_code=500, detail="Could not store authorization code")

    logger.info("Stored eBay authorization code for pickup")
    return HTMLResponse(SUCCESS_PAGE)


@router.get("/callback", response_class=HTMLResponse)
async def direct_callback(
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    container: ServiceContainer = Depends(get_container),
):
    """Exchange the code in this process and wake anyone waiting on the flow."""
    manager = container.channel_tokens
    if error or not code:
        failure = AuthError(f"eBay authorization failed: {error or 'missing code'}")
        manager.complete_authorization(failure)
        raise HTTPException(status_code=400, detail=str(failure))

    try:
        await manager.exchange_authorization_code(code)
    except (AuthError, APIError) as e:
        # exchange_authorization_code has already rejected the waiters
        raise HTTPException(status_code=400, detail=f"Token exchange failed: {e}")

    return HTMLResponse(SUCCESS_PAGE)
