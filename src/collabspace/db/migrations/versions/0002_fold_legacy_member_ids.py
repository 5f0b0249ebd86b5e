"""Fold legacy member_ids into members

Learn: Older clients wrote project membership to `member_ids`, newer ones
to `members`, and reads had to consult both. This copies the union into
`members` (canonical entries first, duplicates dropped) and removes the
legacy column, so membership has exactly one source of truth.

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-01 09:30:00.000000
"""
import json
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

from collabspace.services.membership import merge_member_lists


# revision identifiers, used by Alembic.
revision: str = '0002'
down_revision: Union[str, None] = '0001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _as_list(value):
    if value is None:
        return []
    if isinstance(value, str):
        return json.loads(value)
    return list(value)


def upgrade() -> None:
    bind = op.get_bind()
    projects = sa.table(
        "projects",
        sa.column("id", sa.Uuid()),
        sa.column("members", sa.JSON()),
        sa.column("member_ids", sa.JSON()),
    )

    rows = bind.execute(
        sa.select(projects.c.id, projects.c.members, projects.c.member_ids)
    ).all()
    for row in rows:
        legacy = _as_list(row.member_ids)
        if not legacy:
            continue
        merged = merge_member_lists(_as_list(row.members), legacy)
        bind.execute(
            projects.update().where(projects.c.id == row.id).values(members=merged)
        )

    with op.batch_alter_table("projects") as batch:
        batch.drop_column("member_ids")


def downgrade() -> None:
    with op.batch_alter_table("projects") as batch:
        batch.add_column(sa.Column("member_ids", sa.JSON(), nullable=True))
