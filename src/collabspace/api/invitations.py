"""Invitation routes — invite by email, list pending, accept/decline."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from collabspace.auth.dependencies import get_current_user
from collabspace.auth.strategies import CurrentUser
from collabspace.db.engine import get_db
from collabspace.realtime.broadcaster import Broadcaster
from collabspace.realtime.stream import get_broadcaster
from collabspace.schemas.collab import InvitationCreate, InvitationResponse
from collabspace.services.invitation_service import InvitationService, invitation_to_dict

router = APIRouter(prefix="/invitations")


def _svc(
    db: AsyncSession = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> InvitationService:
    return InvitationService(db, broadcaster)


@router.get("")
async def list_invitations(
    user: CurrentUser = Depends(get_current_user),
    svc: InvitationService = Depends(_svc),
):
    return [invitation_to_dict(inv) for inv in await svc.list_pending(user)]


@router.post("", status_code=201)
async def create_invitation(
    body: InvitationCreate,
    user: CurrentUser = Depends(get_current_user),
    svc: InvitationService = Depends(_svc),
):
    invitation = await svc.invite(user, body.project_id, body.invited_user_email)
    return invitation_to_dict(invitation)


@router.patch("")
async def respond_to_invitation(
    body: InvitationResponse,
    user: CurrentUser = Depends(get_current_user),
    svc: InvitationService = Depends(_svc),
):
    invitation = await svc.respond(user, body.id, body.action)
    return invitation_to_dict(invitation)
