"""
quizmize.api.routes.chat — Group realtime channel
===================================================

One websocket per browser tab at ``/api/ws/groups/{group_id}``.  The
socket receives every realtime event for the group (feed, votes, XP,
chat) and may send chat messages as ``{"content": "..."}``.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from quizmize.api.deps import EngineDep, HubDep, decode_token, token_from_request
from quizmize.database.engine import run_db
from quizmize.errors import QuizmizeError
from quizmize.realtime import hub as rt
from quizmize.services import account_service, chat_service, group_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/ws", tags=["realtime"])


@router.websocket("/groups/{group_id}")
async def group_channel(websocket: WebSocket, group_id: int, engine: EngineDep, hub: HubDep):
    token = token_from_request(websocket) or websocket.query_params.get("token")
    account_id = decode_token(token)
    if account_id is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    try:
        await run_db(group_service.require_group_member, engine, group_id, account_id)
        account = await run_db(account_service.get_account, engine, account_id)
    except QuizmizeError:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    if account is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    user = {"userId": str(account.id), "userName": account.full_name or account.email}

    await websocket.accept()
    hub.connect(group_id, websocket, account.id)
    await hub.publish(group_id, rt.USER_JOINED_CHAT, user)
    await hub.publish_online_count(group_id)

    try:
        while True:
            try:
                data = await websocket.receive_json()
            except ValueError:
                await websocket.send_json(
                    {"event": "error", "data": {"error": "Messages must be JSON"}}
                )
                continue
            content = data.get("content") if isinstance(data, dict) else None
            try:
                message = await run_db(
                    chat_service.post_message, engine, group_id, account.id, content
                )
            except QuizmizeError as exc:
                await websocket.send_json({"event": "error", "data": {"error": exc.message}})
                continue
            await hub.publish(group_id, rt.CHAT_MESSAGE, message)
    except WebSocketDisconnect:
        pass
    finally:
        hub.disconnect(group_id, websocket)
        await hub.publish(group_id, rt.USER_LEFT_CHAT, user)
        await hub.publish_online_count(group_id)
