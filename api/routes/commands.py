"""
Command routes: undo a previously executed command by id.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends

from api.dependencies import get_current_user_id, get_handler
from api.middleware import get_request_id
from api.responses import command_response
from application.commands import CommandHandler


router = APIRouter(prefix="/commands", tags=["Commands"])


@router.post("/{command_id}/undo")
async def undo_command(
    command_id: str,
    user_id: str = Depends(get_current_user_id),
    handler: CommandHandler = Depends(get_handler),
):
    result = await handler.undo(command_id, caller_id=user_id)
    return command_response(result, request_id=get_request_id())
