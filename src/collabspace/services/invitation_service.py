"""Invitation service — inviting users into projects and answering invites.

Learn: Two realtime events come out of here:
- `invitation-received` to the invitee when an invitation is created
- `member-joined` to the existing members when an invitation is accepted

Both are sent after the state change is committed.
"""

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from collabspace.auth.strategies import CurrentUser
from collabspace.db.models import Invitation, Project, User, utcnow
from collabspace.errors import Forbidden, InvalidInput, NotFound
from collabspace.realtime.broadcaster import Broadcaster
from collabspace.realtime.events import INVITATION_RECEIVED, MEMBER_JOINED
from collabspace.services.membership import parse_uuid, project_members, user_in_project
from collabspace.services.project_service import ProjectService

ACTIONS = {"accept": "accepted", "decline": "declined"}


def invitation_to_dict(inv: Invitation) -> dict[str, Any]:
    return {
        "id": str(inv.id),
        "projectId": str(inv.project_id),
        "projectName": inv.project_name,
        "inviterId": str(inv.inviter_id),
        "inviterName": inv.inviter_name,
        "invitedUserId": str(inv.invited_user_id),
        "invitedUserEmail": inv.invited_user_email,
        "status": inv.status,
        "createdAt": inv.created_at.isoformat() if inv.created_at else None,
        "respondedAt": inv.responded_at.isoformat() if inv.responded_at else None,
    }


class InvitationService:
    def __init__(self, db: AsyncSession, broadcaster: Broadcaster):
        self.db = db
        self.broadcaster = broadcaster
        self.projects = ProjectService(db)

    async def list_pending(self, user: CurrentUser) -> list[Invitation]:
        result = await self.db.execute(
            select(Invitation)
            .where(
                Invitation.invited_user_id == user.id,
                Invitation.status == "pending",
            )
            .order_by(Invitation.created_at.desc())
        )
        return list(result.scalars().all())

    async def invite(
        self, user: CurrentUser, project_id: Any, invited_email: str
    ) -> Invitation:
        result = await self.db.execute(
            select(User).where(User.email == str(invited_email).strip())
        )
        invitee = result.scalars().first()
        if invitee is None:
            raise NotFound("user not found with that email")

        project = await self.projects.membership.get_project(project_id)
        if project is None:
            raise NotFound("project not found")
        if not user_in_project(user.id, project):
            raise Forbidden("you are not a member of this project")
        if user_in_project(invitee.id, project):
            raise InvalidInput("user is already a member of this project")

        existing = await self.db.execute(
            select(Invitation).where(
                Invitation.project_id == project.id,
                Invitation.invited_user_id == invitee.id,
                Invitation.status == "pending",
            )
        )
        if existing.scalars().first():
            raise InvalidInput("invitation already sent to this user")

        invitation = Invitation(
            project_id=project.id,
            project_name=project.name,
            inviter_id=user.id,
            inviter_name=user.display_name,
            invited_user_id=invitee.id,
            invited_user_email=invitee.email,
            status="pending",
        )
        self.db.add(invitation)
        await self.db.commit()

        await self.broadcaster.broadcast(
            invitee.id,
            {"type": INVITATION_RECEIVED, "invitation": invitation_to_dict(invitation)},
        )
        return invitation

    async def respond(
        self, user: CurrentUser, invitation_id: Any, action: str
    ) -> Invitation:
        if action not in ACTIONS:
            raise InvalidInput("action must be accept or decline")

        iid = parse_uuid(invitation_id)
        invitation = await self.db.get(Invitation, iid) if iid else None
        if invitation is None:
            raise NotFound("invitation not found")
        if str(invitation.invited_user_id) != str(user.id):
            raise Forbidden("you cannot respond to this invitation")
        if invitation.status != "pending":
            raise InvalidInput("invitation has already been responded to")

        invitation.status = ACTIONS[action]
        invitation.responded_at = utcnow()
        await self.db.commit()

        if action == "accept":
            project = await self.db.get(Project, invitation.project_id)
            if project is not None:
                await self.projects.add_member(project, user.id)
                await self.broadcaster.broadcast_many(
                    project_members(project),
                    {
                        "type": MEMBER_JOINED,
                        "projectId": str(project.id),
                        "projectName": invitation.project_name,
                        "userName": user.display_name,
                    },
                    exclude=user.id,
                )
        return invitation
