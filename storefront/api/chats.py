"""Chat API endpoints.

REST endpoints for chat lists, history, sending and receipts, plus two
WebSocket feeds:

- ``/chats/{chat_id}/ws``: events of one chat (``message.created``,
  ``message.updated``, ``presence.sync``). Clients send ``typing``,
  ``read`` and ``ping`` frames.
- ``/chats/feed``: the caller's ``chat.activity`` events for chat lists and
  unread badges.

WebSockets authenticate with ``?token=<session token>``.
"""

import asyncio
import json
from typing import Annotated, Any

import structlog
from fastapi import (
    APIRouter,
    Depends,
    Query,
    Request,
    Response,
    WebSocket,
    WebSocketDisconnect,
    status,
)

from storefront.api.converters import (
    inquiry_to_response,
    message_to_schema,
    product_to_summary,
    report_to_response,
    user_to_public,
)
from storefront.api.dependencies import CurrentUser, DbSession
from storefront.api.schemas import (
    ChatListResponse,
    ChatSummarySchema,
    CountResponse,
    ErrorResponse,
    MessageCreateRequest,
    MessagePageResponse,
    MessageSchema,
    ReportCreateRequest,
    ReportReasonsResponse,
    ReportResponse,
    UnreadResponse,
)
from storefront.application.chat_service import ChatService, ChatSummary, get_chat_service
from storefront.application.identity_service import get_identity_service
from storefront.application.presence import get_presence_registry
from storefront.application.realtime import get_event_hub
from storefront.domain import REPORT_REASONS, DomainError, User
from storefront.infrastructure.database import session_scope

logger = structlog.get_logger()

router = APIRouter(prefix="/chats", tags=["Chats"])

# WebSocket close codes (4000-4999 are application defined)
WS_UNAUTHORIZED = 4401
WS_FORBIDDEN = 4403
WS_NOT_FOUND = 4404


# ============================================================================
# Dependencies
# ============================================================================


def get_service(request: Request, session: DbSession) -> ChatService:
    """Get chat service with request ID."""
    request_id = getattr(request.state, "request_id", None)
    return get_chat_service(session, request_id=request_id)


# ============================================================================
# Converters
# ============================================================================


async def summary_to_schema(summary: ChatSummary, service: ChatService) -> ChatSummarySchema:
    """Convert a ChatSummary to its schema."""
    last_message = None
    if summary.last_message:
        last_message = message_to_schema(await service.enrich(summary.last_message))
    return ChatSummarySchema(
        id=summary.chat.id,
        inquiry=inquiry_to_response(summary.inquiry, summary.chat.id),
        other_user=user_to_public(summary.other_user),
        product=product_to_summary(summary.product) if summary.product else None,
        last_message=last_message,
        unread_count=summary.unread_count,
        last_activity=summary.last_activity,
    )


# ============================================================================
# Chat List
# ============================================================================


@router.get("", response_model=ChatListResponse, summary="My chats")
async def list_chats(
    user: CurrentUser,
    service: Annotated[ChatService, Depends(get_service)],
) -> ChatListResponse:
    """The caller's chats, most recent activity first."""
    summaries = await service.list_chats(user)
    return ChatListResponse(
        items=[await summary_to_schema(s, service) for s in summaries],
        total_unread=sum(s.unread_count for s in summaries),
    )


@router.get("/unread", response_model=UnreadResponse, summary="Unread badge")
async def unread_count(
    user: CurrentUser,
    service: Annotated[ChatService, Depends(get_service)],
) -> UnreadResponse:
    """Unread messages across all of the caller's chats."""
    return UnreadResponse(total_unread=await service.total_unread(user))


@router.get(
    "/report-reasons",
    response_model=ReportReasonsResponse,
    summary="Report reasons",
)
async def report_reasons() -> ReportReasonsResponse:
    """Reasons accepted when reporting a chat."""
    return ReportReasonsResponse(reasons=list(REPORT_REASONS))


@router.get(
    "/{chat_id}",
    response_model=ChatSummarySchema,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Get a chat",
)
async def get_chat(
    chat_id: str,
    user: CurrentUser,
    service: Annotated[ChatService, Depends(get_service)],
) -> ChatSummarySchema:
    """A single chat summary."""
    return await summary_to_schema(await service.get_chat(chat_id, user), service)


# ============================================================================
# Messages
# ============================================================================


@router.get(
    "/{chat_id}/messages",
    response_model=MessagePageResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Message history",
)
async def list_messages(
    chat_id: str,
    user: CurrentUser,
    service: Annotated[ChatService, Depends(get_service)],
    page: Annotated[int, Query(ge=1, description="1 = latest messages")] = 1,
) -> MessagePageResponse:
    """A page of history in chronological order.

    Page 1 holds the newest messages; increase ``page`` to scroll back.
    """
    result = await service.list_messages(chat_id, user, page)
    return MessagePageResponse(
        items=[message_to_schema(m) for m in result.messages],
        page=result.page,
        page_size=result.page_size,
        has_more=result.has_more,
    )


@router.post(
    "/{chat_id}/messages",
    response_model=MessageSchema,
    status_code=status.HTTP_201_CREATED,
    responses={
        200: {"model": MessageSchema, "description": "Duplicate client_id"},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
    summary="Send a message",
)
async def send_message(
    chat_id: str,
    body: MessageCreateRequest,
    response: Response,
    user: CurrentUser,
    service: Annotated[ChatService, Depends(get_service)],
) -> MessageSchema:
    """Send a text or media message.

    Resending with the same ``client_id`` returns the stored message with
    status 200 instead of creating a duplicate.
    """
    result = await service.send_message(
        chat_id,
        user,
        text=body.message,
        media_url=body.media_url,
        media_type=body.media_type,
        reply_to_message_id=body.reply_to_message_id,
        client_id=body.client_id,
    )
    if not result.created:
        response.status_code = status.HTTP_200_OK
    return message_to_schema(await service.enrich(result.message))


@router.post(
    "/{chat_id}/read",
    response_model=CountResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Mark messages read",
)
async def mark_read(
    chat_id: str,
    user: CurrentUser,
    service: Annotated[ChatService, Depends(get_service)],
) -> CountResponse:
    """Mark every message from the other participant as read."""
    return CountResponse(updated=await service.mark_read(chat_id, user))


@router.post(
    "/{chat_id}/delivered",
    response_model=CountResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Mark messages delivered",
)
async def mark_delivered(
    chat_id: str,
    user: CurrentUser,
    service: Annotated[ChatService, Depends(get_service)],
) -> CountResponse:
    """Mark every message from the other participant as delivered."""
    return CountResponse(updated=await service.mark_delivered(chat_id, user))


@router.post(
    "/{chat_id}/report",
    response_model=ReportResponse,
    status_code=status.HTTP_201_CREATED,
    responses={403: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
    summary="Report a chat",
)
async def report_chat(
    chat_id: str,
    body: ReportCreateRequest,
    user: CurrentUser,
    service: Annotated[ChatService, Depends(get_service)],
) -> ReportResponse:
    """Report the other participant for review by the moderators."""
    report = await service.report_chat(chat_id, user, body.reason, body.details)
    return report_to_response(report)


# ============================================================================
# WebSockets
# ============================================================================


async def _websocket_user(websocket: WebSocket, token: str | None) -> User | None:
    """Resolve the session of a WebSocket from ``?token=`` or the header."""
    if not token:
        auth_header = websocket.headers.get("Authorization", "")
        scheme, _, value = auth_header.partition(" ")
        token = value.strip() if scheme.lower() == "bearer" else None
    if not token:
        return None
    async with session_scope() as session:
        return await get_identity_service(session).resolve_session(token)


def _close_code(error: DomainError) -> int:
    if error.status_code == status.HTTP_404_NOT_FOUND:
        return WS_NOT_FOUND
    return WS_FORBIDDEN


def _send_local(queue: asyncio.Queue, frame: dict[str, Any], **context: str) -> None:
    """Queue a frame for this socket only; dropped when the socket lags."""
    try:
        queue.put_nowait(frame)
    except asyncio.QueueFull:
        logger.warning("Dropping frame for slow socket", frame_type=frame.get("type"), **context)


async def _forward(websocket: WebSocket, queue: asyncio.Queue) -> None:
    """Write queued events to the socket until cancelled."""
    while True:
        event = await queue.get()
        await websocket.send_json(event)


async def _stop(task: asyncio.Task, **context: str) -> None:
    """Cancel a background task and wait for it to finish."""
    task.cancel()
    (outcome,) = await asyncio.gather(task, return_exceptions=True)
    if isinstance(outcome, Exception):
        logger.warning("Socket task failed", error=str(outcome), **context)


def _presence_sync(chat_id: str) -> dict[str, Any]:
    return {
        "type": "presence.sync",
        "chat_id": chat_id,
        "participants": get_presence_registry().snapshot(chat_id),
    }


async def _expire_typing(chat_id: str) -> None:
    """Broadcast a fresh ``presence.sync`` whenever a typing flag lapses."""
    presence = get_presence_registry()
    interval = presence.ttl.total_seconds() / 2
    while True:
        await asyncio.sleep(interval)
        if presence.expire_typing(chat_id):
            get_event_hub().publish_chat(chat_id, _presence_sync(chat_id))


async def _mark(chat_id: str, user: User, read: bool) -> int:
    """Update receipts in a unit of work of their own."""
    async with session_scope() as session:
        service = get_chat_service(session)
        if read:
            return await service.mark_read(chat_id, user)
        return await service.mark_delivered(chat_id, user)


@router.websocket("/feed")
async def user_feed(websocket: WebSocket, token: str | None = None) -> None:
    """Stream the caller's ``chat.activity`` events."""
    user = await _websocket_user(websocket, token)
    if user is None:
        await websocket.close(code=WS_UNAUTHORIZED)
        return

    await websocket.accept()
    hub = get_event_hub()
    queue = hub.subscribe_user(user.id)
    forwarder = asyncio.create_task(_forward(websocket, queue))
    try:
        while True:
            try:
                frame = json.loads(await websocket.receive_text())
            except ValueError:
                frame = None
            if isinstance(frame, dict) and frame.get("type") == "ping":
                _send_local(queue, {"type": "pong"}, user_id=user.id)
    except WebSocketDisconnect:
        pass
    finally:
        await _stop(forwarder, user_id=user.id)
        hub.unsubscribe_user(user.id, queue)


@router.websocket("/{chat_id}/ws")
async def chat_socket(websocket: WebSocket, chat_id: str, token: str | None = None) -> None:
    """Stream one chat's events and accept typing/read/ping frames.

    On join the participant's pending incoming messages are marked
    delivered and everyone in the chat receives a fresh ``presence.sync``.
    Typing flags that are not refreshed lapse after the presence TTL,
    followed by another ``presence.sync``.
    """
    user = await _websocket_user(websocket, token)
    if user is None:
        await websocket.close(code=WS_UNAUTHORIZED)
        return

    try:
        async with session_scope() as session:
            _, inquiry = await get_chat_service(session).load_chat(chat_id, user)
    except DomainError as e:
        await websocket.close(code=_close_code(e))
        return

    await websocket.accept()
    hub = get_event_hub()
    presence = get_presence_registry()
    is_participant = user.id in inquiry.participants()

    queue = hub.subscribe_chat(chat_id)
    tasks = [
        asyncio.create_task(_forward(websocket, queue)),
        asyncio.create_task(_expire_typing(chat_id)),
    ]
    if is_participant:
        presence.join(chat_id, user.id)
        hub.publish_chat(chat_id, _presence_sync(chat_id))
    else:
        _send_local(queue, _presence_sync(chat_id), chat_id=chat_id)
    logger.info("Chat socket opened", chat_id=chat_id, user_id=user.id)

    try:
        if is_participant:
            await _mark(chat_id, user, read=False)
        while True:
            try:
                frame = json.loads(await websocket.receive_text())
            except ValueError:
                _send_local(
                    queue, {"type": "error", "error_code": "INVALID_FRAME"}, chat_id=chat_id
                )
                continue
            kind = frame.get("type") if isinstance(frame, dict) else None

            if kind == "ping":
                presence.touch(chat_id, user.id)
                _send_local(queue, {"type": "pong"}, chat_id=chat_id)
            elif kind == "typing" and is_participant:
                presence.set_typing(chat_id, user.id, bool(frame.get("typing", True)))
                hub.publish_chat(chat_id, _presence_sync(chat_id))
            elif kind == "read" and is_participant:
                try:
                    await _mark(chat_id, user, read=True)
                except DomainError as e:
                    _send_local(
                        queue, {"type": "error", "error_code": e.error_code}, chat_id=chat_id
                    )
            else:
                _send_local(
                    queue, {"type": "error", "error_code": "UNSUPPORTED_FRAME"}, chat_id=chat_id
                )
    except WebSocketDisconnect:
        pass
    finally:
        for task in tasks:
            await _stop(task, chat_id=chat_id)
        hub.unsubscribe_chat(chat_id, queue)
        if is_participant:
            presence.leave(chat_id, user.id)
            hub.publish_chat(chat_id, _presence_sync(chat_id))
        logger.info("Chat socket closed", chat_id=chat_id, user_id=user.id)
