# dropsync/services/ebay/trading.py
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from xml.sax.saxutils import escape

import httpx
import xmltodict

from dropsync.core.config import Settings, get_settings
from dropsync.core.exceptions import ChannelAPIError, TransientAPIError, UnauthorizedError
from dropsync.schemas.channel import ChannelMessage

logger = logging.getLogger(__name__)

# Trading API answers HTTP 200 with these codes when the token is bad
AUTH_ERROR_CODES = {"931", "932", "21916984", "21917053"}


def _as_list(value) -> List[Any]:
    # xmltodict collapses a single child element into a dict
    if value is None:
        return []
    return value if isinstance(value, list) else [value]


class EbayTradingAPI:
    """Legacy XML Trading API calls used for buyer messages."""

    def __init__(self, token_manager, settings: Optional[Settings] = None):
        self.token_manager = token_manager
        self.settings = settings or get_settings()
        self.endpoint = self.settings.EBAY_TRADING_URL
        self.site_id = self.settings.EBAY_SITE_ID
        self.compatibility_level = '1155'

    async def _make_request(self, call_name: str, body: str, retry_on_auth_error: bool = True) -> Dict:
        """POST one Trading call and return the parsed ``<CallNameResponse>`` element."""
        auth_token = await self.token_manager.get_valid_token()

        headers = {
            'X-EBAY-API-CALL-NAME': call_name,
            'X-EBAY-API-SITEID': self.site_id,
            'X-EBAY-API-COMPATIBILITY-LEVEL': self.compatibility_level,
            'X-EBAY-API-IAF-TOKEN': auth_token,
            'Content-Type': 'text/xml'
        }
        xml_request = f"""<?xml version="1.0" encoding="utf-8"?>
        <{call_name}Request xmlns="urn:ebay:apis:eBLBaseComponents">
            {body}
        </{call_name}Request>"""

        try:
            async with httpx.AsyncClient(timeout=30.0) as client:
                response = await client.post(self.endpoint, headers=headers, content=xml_request)
        except httpx.RequestError as e:
            raise TransientAPIError(f"Network error in {call_name}: {str(e)}")

        if response.status_code >= 500:
            raise TransientAPIError(f"{call_name} server error {response.status_code}", response.status_code)

        result = {}
        if response.text:
            result = xmltodict.parse(response.text).get(f'{call_name}Response') or {}

        error_codes = {str(error.get('ErrorCode')) for error in _as_list(result.get('Errors'))}
        if response.status_code == 401 or error_codes & AUTH_ERROR_CODES:
            if retry_on_auth_error:
                logger.warning(f"{call_name} rejected the token, refreshing and retrying once")
                self.token_manager.invalidate(auth_token)
                return await self._make_request(call_name, body, retry_on_auth_error=False)
            raise UnauthorizedError(f"{call_name} unauthorized after token refresh", 401)

        if response.status_code != 200:
            raise ChannelAPIError(f"{call_name} failed: {response.status_code} {response.text}", response.status_code)

        if result.get('Ack') not in ('Success', 'Warning'):
            messages = "; ".join(
                str(error.get('LongMessage') or error.get('ShortMessage')) for error in _as_list(result.get('Errors'))
            )
            raise ChannelAPIError(f"{call_name} failed: {messages or 'no Ack in response'}")

        return result

    async def get_messages(self, since: datetime) -> List[ChannelMessage]:
        """
        Buyer messages received since ``since``.

        Args:
            since: lower bound on the receive date

        Returns:
            List of ChannelMessage, oldest first as eBay returns them
        """
        if since.tzinfo is None:
            since = since.replace(tzinfo=timezone.utc)
        start = since.astimezone(timezone.utc).strftime('%Y-%m-%dT%H:%M:%S.000Z')
        body = f"""<DetailLevel>ReturnMessages</DetailLevel>
            <StartTime>{start}</StartTime>"""

        result = await self._make_request('GetMyMessages', body)
        messages = _as_list((result.get('Messages') or {}).get('Message'))

        return [
            ChannelMessage(
                message_id=str(message.get('MessageID')),
                sender=message.get('Sender'),
                subject=message.get('Subject'),
                body=message.get('Text'),
                item_id=message.get('ItemID'),
                received_at=message.get('ReceiveDate'),
            )
            for message in messages
            if message.get('MessageID')
        ]

    async def reply_to_message(self, item_id: str, text: str, recipient: Optional[str] = None,
                               subject: str = "Response to your inquiry") -> bool:
        """Send a member message to the buyer about ``item_id``."""
        recipient_xml = f"<RecipientID>{escape(recipient)}</RecipientID>" if recipient else ""
        body = f"""<ItemID>{escape(item_id)}</ItemID>
            <MemberMessage>
                <Subject>{escape(subject)}</Subject>
                <Body>{escape(text)}</Body>
                <QuestionType>General</QuestionType>
                {recipient_xml}
            </MemberMessage>"""

        await self._make_request('AddMemberMessageAAQToPartner', body)
        return True
