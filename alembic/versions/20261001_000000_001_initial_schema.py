"""Initial schema for programs, rosters, instruments and assessments.

Revision ID: 001
Revises:
Create Date: 2026-10-01 00:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    """Create initial database schema."""

    # Tracks
    op.create_table(
        "tracks",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_tracks"),
    )

    # Classrooms
    op.create_table(
        "classrooms",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("school_name", sa.String(255), nullable=True),
        sa.Column("age_band", sa.String(20), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_classrooms"),
    )

    # Children
    op.create_table(
        "children",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("first_name", sa.String(100), nullable=True),
        sa.Column("last_name", sa.String(100), nullable=True),
        sa.Column("display_code", sa.String(50), nullable=True),
        sa.Column("dob", sa.Date(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_children"),
    )

    # Instruments
    op.create_table(
        "child_instruments",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("instrument_type", sa.String(50), nullable=False),
        sa.Column("version", sa.String(20), nullable=False),
        sa.Column("questions", sa.JSON(), nullable=False),
        sa.Column("behavior_key", sa.JSON(), nullable=True),
        sa.Column("effective_from", sa.Date(), nullable=True),
        sa.Column("effective_to", sa.Date(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_child_instruments"),
    )
    op.create_index(
        "ix_child_instruments_instrument_type", "child_instruments", ["instrument_type"]
    )

    op.create_table(
        "teacher_instruments",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("instrument_key", sa.String(100), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("version", sa.String(20), nullable=False),
        sa.Column("sections", sa.JSON(), nullable=False),
        sa.Column("scale_labels", sa.JSON(), nullable=True),
        sa.Column("instructions", sa.Text(), nullable=True),
        sa.Column("styles", sa.JSON(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_teacher_instruments"),
    )
    op.create_index(
        "ix_teacher_instruments_instrument_key", "teacher_instruments", ["instrument_key"]
    )

    # Enrollments
    op.create_table(
        "enrollments",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("track_id", sa.Integer(), nullable=False),
        sa.Column("display_name", sa.String(255), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["track_id"], ["tracks.id"],
            name="fk_enrollments_track_id_tracks", ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_enrollments"),
    )
    op.create_index("ix_enrollments_user_id", "enrollments", ["user_id"])
    op.create_index("ix_enrollments_track_id", "enrollments", ["track_id"])

    # Activities
    op.create_table(
        "activities",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("track_id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("activity_type", sa.String(50), nullable=False),
        sa.Column("external_ref", sa.JSON(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["track_id"], ["tracks.id"],
            name="fk_activities_track_id_tracks", ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_activities"),
    )
    op.create_index("ix_activities_track_id", "activities", ["track_id"])

    op.create_table(
        "activity_states",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("enrollment_id", sa.Integer(), nullable=False),
        sa.Column("activity_id", sa.Integer(), nullable=False),
        sa.Column("completion_status", sa.String(20), nullable=False),
        sa.Column("completion_percent", sa.Integer(), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["enrollment_id"], ["enrollments.id"],
            name="fk_activity_states_enrollment_id_enrollments", ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["activity_id"], ["activities.id"],
            name="fk_activity_states_activity_id_activities", ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_activity_states"),
        sa.UniqueConstraint("enrollment_id", "activity_id", name="uq_activity_states_enrollment_id"),
    )

    # Rosters
    op.create_table(
        "teaching_assignments",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("enrollment_id", sa.Integer(), nullable=False),
        sa.Column("classroom_id", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["enrollment_id"], ["enrollments.id"],
            name="fk_teaching_assignments_enrollment_id_enrollments", ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["classroom_id"], ["classrooms.id"],
            name="fk_teaching_assignments_classroom_id_classrooms", ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_teaching_assignments"),
        sa.UniqueConstraint(
            "enrollment_id", "classroom_id", name="uq_teaching_assignments_enrollment_id"
        ),
    )
    op.create_index(
        "ix_teaching_assignments_enrollment_id", "teaching_assignments", ["enrollment_id"]
    )

    op.create_table(
        "child_classrooms",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("child_id", sa.Integer(), nullable=False),
        sa.Column("classroom_id", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["child_id"], ["children.id"],
            name="fk_child_classrooms_child_id_children", ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["classroom_id"], ["classrooms.id"],
            name="fk_child_classrooms_classroom_id_classrooms", ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_child_classrooms"),
        sa.UniqueConstraint("child_id", "classroom_id", name="uq_child_classrooms_child_id"),
    )
    op.create_index("ix_child_classrooms_classroom_id", "child_classrooms", ["classroom_id"])

    op.create_table(
        "child_track_snapshots",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("child_id", sa.Integer(), nullable=False),
        sa.Column("track_id", sa.Integer(), nullable=False),
        sa.Column("frozen_age_group", sa.String(20), nullable=False),
        sa.Column("dob_at_freeze", sa.Date(), nullable=True),
        sa.Column("age_months_at_freeze", sa.Integer(), nullable=True),
        sa.Column("frozen_at", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["child_id"], ["children.id"],
            name="fk_child_track_snapshots_child_id_children", ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["track_id"], ["tracks.id"],
            name="fk_child_track_snapshots_track_id_tracks", ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_child_track_snapshots"),
        sa.UniqueConstraint("child_id", "track_id", name="uq_child_track_snapshots_child_id"),
    )
    op.create_index("ix_child_track_snapshots_track_id", "child_track_snapshots", ["track_id"])

    # Child assessments
    op.create_table(
        "child_assessment_instances",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("enrollment_id", sa.Integer(), nullable=False),
        sa.Column("activity_id", sa.Integer(), nullable=True),
        sa.Column("track_id", sa.Integer(), nullable=False),
        sa.Column("classroom_id", sa.Integer(), nullable=True),
        sa.Column("phase", sa.String(10), nullable=False),
        sa.Column("instrument_age_band", sa.String(20), nullable=True),
        sa.Column("instrument_id", sa.Integer(), nullable=True),
        sa.Column("instrument_version", sa.String(20), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["enrollment_id"], ["enrollments.id"],
            name="fk_child_assessment_instances_enrollment_id_enrollments", ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["activity_id"], ["activities.id"],
            name="fk_child_assessment_instances_activity_id_activities", ondelete="SET NULL",
        ),
        sa.ForeignKeyConstraint(
            ["track_id"], ["tracks.id"],
            name="fk_child_assessment_instances_track_id_tracks", ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["classroom_id"], ["classrooms.id"],
            name="fk_child_assessment_instances_classroom_id_classrooms", ondelete="SET NULL",
        ),
        sa.ForeignKeyConstraint(
            ["instrument_id"], ["child_instruments.id"],
            name="fk_child_assessment_instances_instrument_id_child_instruments",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_child_assessment_instances"),
        sa.UniqueConstraint(
            "enrollment_id", "activity_id", name="uq_child_assessment_instances_enrollment_id"
        ),
    )
    op.create_index(
        "ix_child_assessment_instances_enrollment_id",
        "child_assessment_instances",
        ["enrollment_id"],
    )
    op.create_index(
        "ix_child_assessment_instances_track_id", "child_assessment_instances", ["track_id"]
    )

    op.create_table(
        "child_assessment_rows",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("instance_id", sa.Integer(), nullable=False),
        sa.Column("child_id", sa.Integer(), nullable=False),
        sa.Column("answers", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("skip_reason", sa.String(100), nullable=True),
        sa.Column("frozen_age_group", sa.String(20), nullable=True),
        sa.Column("instrument_id", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["instance_id"], ["child_assessment_instances.id"],
            name="fk_child_assessment_rows_instance_id_child_assessment_instances",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["child_id"], ["children.id"],
            name="fk_child_assessment_rows_child_id_children", ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["instrument_id"], ["child_instruments.id"],
            name="fk_child_assessment_rows_instrument_id_child_instruments",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_child_assessment_rows"),
        sa.UniqueConstraint("instance_id", "child_id", name="uq_child_assessment_rows_instance_id"),
    )
    op.create_index(
        "ix_child_assessment_rows_instance_id", "child_assessment_rows", ["instance_id"]
    )

    # Teacher self-assessments
    op.create_table(
        "teacher_assessment_instances",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("enrollment_id", sa.Integer(), nullable=False),
        sa.Column("activity_id", sa.Integer(), nullable=True),
        sa.Column("track_id", sa.Integer(), nullable=False),
        sa.Column("phase", sa.String(10), nullable=False),
        sa.Column("instrument_id", sa.Integer(), nullable=True),
        sa.Column("instrument_version", sa.String(20), nullable=True),
        sa.Column("responses", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["enrollment_id"], ["enrollments.id"],
            name="fk_teacher_assessment_instances_enrollment_id_enrollments", ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["activity_id"], ["activities.id"],
            name="fk_teacher_assessment_instances_activity_id_activities", ondelete="SET NULL",
        ),
        sa.ForeignKeyConstraint(
            ["track_id"], ["tracks.id"],
            name="fk_teacher_assessment_instances_track_id_tracks", ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["instrument_id"], ["teacher_instruments.id"],
            name="fk_teacher_assessment_instances_instrument_id_teacher_instruments",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_teacher_assessment_instances"),
        sa.UniqueConstraint(
            "enrollment_id", "track_id", "phase",
            name="uq_teacher_assessment_instances_enrollment_id",
        ),
    )
    op.create_index(
        "ix_teacher_assessment_instances_enrollment_id",
        "teacher_assessment_instances",
        ["enrollment_id"],
    )

    # Audit events
    op.create_table(
        "audit_events",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("actor_type", sa.String(50), nullable=False),
        sa.Column("actor_id", sa.Integer(), nullable=True),
        sa.Column("action", sa.String(100), nullable=False),
        sa.Column("entity_type", sa.String(100), nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("request_id", sa.String(64), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_audit_events"),
    )
    op.create_index("ix_audit_events_action", "audit_events", ["action"])
    op.create_index("ix_audit_events_entity_id", "audit_events", ["entity_id"])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table("audit_events")
    op.drop_table("teacher_assessment_instances")
    op.drop_table("child_assessment_rows")
    op.drop_table("child_assessment_instances")
    op.drop_table("child_track_snapshots")
    op.drop_table("child_classrooms")
    op.drop_table("teaching_assignments")
    op.drop_table("activity_states")
    op.drop_table("activities")
    op.drop_table("enrollments")
    op.drop_table("teacher_instruments")
    op.drop_table("child_instruments")
    op.drop_table("children")
    op.drop_table("classrooms")
    op.drop_table("tracks")
