"""Chat screen synchronisation.

``ConversationSync`` keeps a ``ConversationTimeline`` in step with the
server: it loads history pages, performs optimistic sends, reports read
receipts and applies WebSocket events as they arrive.
"""

from typing import Any

import structlog

from storefront.client.api_client import StorefrontAPIClient
from storefront.domain.conversation import ConversationTimeline, TimelineMessage

logger = structlog.get_logger()


class ConversationSync:
    """Drives one conversation timeline with the HTTP client.

    Attributes:
        chat_id: Chat being displayed.
        viewer_id: The signed-in user.
        timeline: Merged view of the conversation.
    """

    def __init__(
        self,
        client: StorefrontAPIClient,
        chat_id: str,
        viewer_id: str,
        timeline: ConversationTimeline | None = None,
    ) -> None:
        self.client = client
        self.chat_id = chat_id
        self.viewer_id = viewer_id
        self.timeline = timeline or ConversationTimeline()
        self._next_page = 1

    # -------------------------------------------------------------------------
    # History
    # -------------------------------------------------------------------------

    async def load_initial(self) -> int:
        """Load the newest page of history.

        Returns:
            Number of messages added to the timeline.
        """
        self._next_page = 1
        return await self.load_older()

    async def load_older(self) -> int:
        """Load the next page back in time.

        Returns:
            Number of messages added (0 once history is exhausted or on error).
        """
        if self._next_page > 1 and not self.timeline.has_more:
            return 0
        response = await self.client.list_messages(self.chat_id, page=self._next_page)
        if not response.success:
            logger.warning(
                "Failed to load chat history",
                chat_id=self.chat_id,
                page=self._next_page,
                error_code=response.error.error_code,
            )
            return 0
        data = response.data
        added = self.timeline.load_page(data["items"], data["page_size"])
        if not data.get("has_more", False):
            self.timeline.has_more = False
        self._next_page += 1
        return added

    # -------------------------------------------------------------------------
    # Sending
    # -------------------------------------------------------------------------

    async def send(
        self,
        text: str,
        reply_to_message_id: str | None = None,
        media_url: str | None = None,
        media_type: str | None = None,
    ) -> TimelineMessage | None:
        """Show a message immediately, then confirm or fail it.

        Returns:
            The timeline entry after the server answered.
        """
        entry = self.timeline.add_pending(
            self.viewer_id,
            text,
            reply_to_message_id=reply_to_message_id,
            media_url=media_url,
            media_type=media_type,
        )
        return await self._deliver(entry)

    async def retry(self, client_id: str) -> TimelineMessage | None:
        """Resend a failed message with its original client id."""
        entry = self.timeline.retry(client_id)
        if entry is None:
            return None
        return await self._deliver(entry)

    async def _deliver(self, entry: TimelineMessage) -> TimelineMessage | None:
        response = await self.client.send_message(
            self.chat_id,
            text=entry.message,
            media_url=entry.media_url,
            media_type=entry.media_type,
            reply_to_message_id=entry.reply_to_message_id,
            client_id=entry.client_id,
        )
        if response.success:
            return self.timeline.confirm(entry.client_id, response.data)

        logger.warning(
            "Message send failed",
            chat_id=self.chat_id,
            client_id=entry.client_id,
            error_code=response.error.error_code,
        )
        return self.timeline.fail(entry.client_id, response.error.error_code)

    # -------------------------------------------------------------------------
    # Receipts
    # -------------------------------------------------------------------------

    async def mark_read(self) -> int:
        """Mark incoming messages read on the server, then locally.

        Entries stay unread when the server call fails, so the next call
        tries again.

        Returns:
            Number of timeline entries changed.
        """
        if not self.timeline.unread_for(self.viewer_id):
            return 0
        response = await self.client.mark_read(self.chat_id)
        if not response.success:
            logger.warning(
                "Failed to mark chat read",
                chat_id=self.chat_id,
                error_code=response.error.error_code,
            )
            return 0
        return self.timeline.mark_read_by(self.viewer_id)

    # -------------------------------------------------------------------------
    # Realtime
    # -------------------------------------------------------------------------

    def handle_event(self, event: dict[str, Any]) -> bool:
        """Apply one WebSocket event to the timeline.

        Returns:
            True if the event concerned this conversation and was applied.
        """
        kind = event.get("type")
        if event.get("chat_id") not in (None, self.chat_id):
            return False
        if kind == "message.created":
            self.timeline.apply_insert(event["message"])
            return True
        if kind == "message.updated":
            return self.timeline.apply_update(event["message"]) is not None
        if kind == "presence.sync":
            self.timeline.apply_presence(event.get("participants", []), self.viewer_id)
            return True
        return False

    @property
    def unread_count(self) -> int:
        """Incoming messages the viewer has not read."""
        return self.timeline.unread_for(self.viewer_id)
