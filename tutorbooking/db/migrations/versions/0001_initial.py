from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "tutors",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("display_name", sa.String(length=255)),
        sa.Column("email", sa.String(length=255), nullable=False, unique=True),
        sa.Column("hours_due", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("hours_due >= 0", name="ck_tutor_hours_due_non_negative"),
    )

    op.create_table(
        "tutor_availability_blocks",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tutor_id", sa.Integer(), sa.ForeignKey("tutors.id", ondelete="CASCADE"), index=True),
        sa.Column("starts_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ends_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("starts_at < ends_at", name="ck_availability_block_range"),
    )
    op.create_index(
        "ix_availability_block_tutor_range",
        "tutor_availability_blocks",
        ["tutor_id", "starts_at", "ends_at"],
    )

    op.create_table(
        "call_types",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("slug", sa.String(length=64), nullable=False, unique=True),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("duration_min", sa.Integer(), nullable=False, server_default="60"),
        sa.Column("active", sa.Boolean(), server_default=sa.true()),
    )
    op.execute(
        "INSERT INTO call_types (slug, name, duration_min, active) "
        "VALUES ('ripetizione', 'Ripetizione', 60, true)"
    )

    slot_status = postgresql.ENUM("free", "booked", name="slotstatus", create_type=False)
    slot_status.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "call_slots",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tutor_id", sa.Integer(), sa.ForeignKey("tutors.id", ondelete="CASCADE"), index=True),
        sa.Column("call_type_id", sa.Integer(), sa.ForeignKey("call_types.id")),
        sa.Column("starts_at", sa.DateTime(timezone=True), index=True),
        sa.Column("ends_at", sa.DateTime(timezone=True), index=True),
        sa.Column("duration_min", sa.Integer(), server_default="60"),
        sa.Column("status", slot_status, server_default="free"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("tutor_id", "starts_at", name="uq_call_slot_tutor_time"),
        sa.CheckConstraint("duration_min > 0", name="ck_call_slot_duration_positive"),
    )

    booking_status = postgresql.ENUM(
        "confirmed", "completed", "cancelled", name="bookingstatus", create_type=False
    )
    booking_status.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "call_bookings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("slot_id", sa.Integer(), sa.ForeignKey("call_slots.id", ondelete="SET NULL")),
        sa.Column("tutor_id", sa.Integer(), sa.ForeignKey("tutors.id", ondelete="CASCADE"), index=True),
        sa.Column("call_type_id", sa.Integer(), sa.ForeignKey("call_types.id")),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("note", sa.Text()),
        sa.Column("status", booking_status, server_default="confirmed"),
        sa.Column("calendar_event_id", sa.String(length=255)),
        sa.Column("booked_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_call_booking_slot", "call_bookings", ["slot_id"])

    op.create_table(
        "students",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("full_name", sa.String(length=255)),
        sa.Column("student_email", sa.String(length=255), index=True),
        sa.Column("parent_email", sa.String(length=255), index=True),
        sa.Column("hours_paid", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("hours_consumed", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column(
            "assigned_tutor_id",
            sa.Integer(),
            sa.ForeignKey("tutors.id", ondelete="SET NULL"),
            index=True,
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("hours_paid >= 0", name="ck_student_hours_paid_non_negative"),
        sa.CheckConstraint("hours_consumed >= 0", name="ck_student_hours_consumed_non_negative"),
    )

    op.create_table(
        "tutor_sessions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tutor_id", sa.Integer(), sa.ForeignKey("tutors.id", ondelete="CASCADE"), index=True),
        sa.Column("student_id", sa.Integer(), sa.ForeignKey("students.id", ondelete="CASCADE"), index=True),
        sa.Column("booking_id", sa.Integer(), sa.ForeignKey("call_bookings.id", ondelete="SET NULL")),
        sa.Column("duration", sa.Numeric(10, 2), nullable=False),
        sa.Column("happened_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("note", sa.Text()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("booking_id", name="uq_tutor_session_booking"),
    )

    op.create_table(
        "tutor_assignments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tutor_id", sa.Integer(), sa.ForeignKey("tutors.id", ondelete="CASCADE"), index=True),
        sa.Column("student_id", sa.Integer(), sa.ForeignKey("students.id", ondelete="CASCADE"), index=True),
        sa.Column("hourly_rate", sa.Numeric(10, 2)),
        sa.Column("consumed_baseline", sa.Numeric(10, 2), server_default="0"),
        sa.Column("role", sa.String(length=64), server_default="videolezione"),
        sa.UniqueConstraint("tutor_id", "student_id", name="uq_tutor_assignment_pair"),
    )


def downgrade() -> None:
    op.drop_table("tutor_assignments")
    op.drop_table("tutor_sessions")
    op.drop_table("students")
    op.drop_index("ix_call_booking_slot", table_name="call_bookings")
    op.drop_table("call_bookings")
    op.drop_table("call_slots")
    op.drop_table("call_types")
    op.drop_index("ix_availability_block_tutor_range", table_name="tutor_availability_blocks")
    op.drop_table("tutor_availability_blocks")
    op.drop_table("tutors")

    for enum_name in ["bookingstatus", "slotstatus"]:
        postgresql.ENUM(name=enum_name).drop(op.get_bind(), checkfirst=True)
