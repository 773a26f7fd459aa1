# dropsync/services/customer_messages.py

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from dropsync.core.config import Settings, get_settings
from dropsync.core.enums import JobStatus, JobType
from dropsync.core.exceptions import AuthError, PersistenceError
from dropsync.schemas.channel import ChannelMessage
from dropsync.services.responses import find_escalation_keyword, generate_response

logger = logging.getLogger(__name__)


class CustomerMessageHandler:
    """
    Answers eBay buyer messages with canned replies.

    Messages mentioning an escalation keyword (refund, damaged...) get no
    automatic reply and are stored as escalated for a human to pick up.
    """

    def __init__(self, channel, message_store, job_store=None, settings: Optional[Settings] = None):
        self.channel = channel
        self.message_store = message_store
        self.job_store = job_store
        self.settings = settings or get_settings()
        self.escalation_keywords = self.settings.escalation_keywords
        self.last_check_time = datetime.now(timezone.utc) - timedelta(hours=self.settings.MESSAGE_LOOKBACK_HOURS)

    async def process_messages(self) -> Dict[str, int]:
        summary = {"received": 0, "responded": 0, "escalated": 0, "skipped": 0}
        since = self.last_check_time
        logger.info(f"Checking messages since {since.isoformat()}")

        try:
            messages = await self.channel.get_messages(since)
            self.last_check_time = datetime.now(timezone.utc)
            summary["received"] = len(messages)
            logger.info(f"Found {len(messages)} new messages")

            for message in messages:
                outcome = await self.handle_message(message)
                summary[outcome] += 1
                await asyncio.sleep(self.settings.MESSAGE_ITEM_DELAY_SECONDS)
        except Exception as e:
            logger.error(f"Error in customer message handler: {e}")
            await self._record(JobStatus.FAILED, str(e))
            raise

        await self._record(JobStatus.SUCCESS, str(summary))
        return summary

    async def handle_message(self, message: ChannelMessage) -> str:
        """Reply to or escalate one message. Returns the outcome key."""
        if await self.message_store.exists(message.message_id):
            logger.debug(f"Message {message.message_id} already processed, skipping")
            return "skipped"

        record = {
            "message_id": message.message_id,
            "buyer_username": message.sender,
            "subject": message.subject,
            "content": message.body,
            "received_at": message.received_at,
        }

        keyword = find_escalation_keyword(message.body, self.escalation_keywords)
        if keyword:
            logger.info(f"Message {message.message_id} mentions '{keyword}', flagging for manual review")
            await self._save(escalated=True, escalated_at=datetime.now(timezone.utc),
                             escalation_reason=f"Keyword: {keyword}", **record)
            return "escalated"

        try:
            if not message.item_id:
                raise ValueError("message has no item id to reply on")
            response = generate_response(message.body, message.sender)
            await self.channel.reply_to_message(message.item_id, response, recipient=message.sender)
        except AuthError:
            raise
        except Exception as e:
            logger.error(f"Error handling message {message.message_id}: {e}")
            await self._save(escalated=True, escalated_at=datetime.now(timezone.utc),
                             escalation_reason=f"Error: {e}", **record)
            return "escalated"

        await self._save(responded=True, responded_at=datetime.now(timezone.utc), response=response, **record)
        logger.info(f"Successfully responded to message {message.message_id}")
        return "responded"

    async def _save(self, **fields) -> None:
        try:
            await self.message_store.save(**fields)
        except PersistenceError as e:
            logger.error(f"Could not store message {fields.get('message_id')}: {e}")

    async def _record(self, status: JobStatus, message: str) -> None:
        if self.job_store is None:
            return
        try:
            await self.job_store.record_run(JobType.MESSAGES, status, message)
        except PersistenceError as e:
            logger.error(f"Could not record message run: {e}")
