"""ProgressStep — a trackable milestone owned by one client.

A step represents either a whole package ("<package> - Package Setup"),
one component of a package, or a free-standing task.  Package-level steps
additionally carry three milestone deadlines (onboarding, first draft,
second draft), each with its own completion flag and date.

package_id / component_id are the explicit correlation keys.  Legacy rows
without them are matched to packages and components by title.
"""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from clientdesk.database import Base


class ProgressStep(Base):
    __tablename__ = "progress_steps"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    client_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # ── Correlation ──────────────────────────────────────────
    package_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("invoices.id", ondelete="SET NULL"), index=True
    )
    component_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("components.id", ondelete="SET NULL"), index=True
    )

    # ── Step ─────────────────────────────────────────────────
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    deadline: Mapped[datetime | None] = mapped_column(DateTime)
    completed: Mapped[bool] = mapped_column(Boolean, default=False)
    completed_date: Mapped[datetime | None] = mapped_column(DateTime)
    important: Mapped[bool] = mapped_column(Boolean, default=False)

    # ── Package milestones ───────────────────────────────────
    onboarding_deadline: Mapped[datetime | None] = mapped_column(DateTime)
    first_draft_deadline: Mapped[datetime | None] = mapped_column(DateTime)
    second_draft_deadline: Mapped[datetime | None] = mapped_column(DateTime)
    onboarding_completed: Mapped[bool] = mapped_column(Boolean, default=False)
    first_draft_completed: Mapped[bool] = mapped_column(Boolean, default=False)
    second_draft_completed: Mapped[bool] = mapped_column(Boolean, default=False)
    onboarding_completed_date: Mapped[datetime | None] = mapped_column(DateTime)
    first_draft_completed_date: Mapped[datetime | None] = mapped_column(DateTime)
    second_draft_completed_date: Mapped[datetime | None] = mapped_column(DateTime)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # ── Relationships ────────────────────────────────────────
    comments = relationship(
        "StepComment",
        back_populates="step",
        cascade="all, delete-orphan",
        order_by="StepComment.created_at",
        lazy="selectin",
    )


class StepComment(Base):
    __tablename__ = "progress_step_comments"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    step_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("progress_steps.id", ondelete="CASCADE"), nullable=False, index=True
    )
    username: Mapped[str] = mapped_column(String(255), nullable=False)
    text: Mapped[str] = mapped_column(Text, default="")
    attachment_url: Mapped[str | None] = mapped_column(Text)
    attachment_type: Mapped[str | None] = mapped_column(String(100))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    step = relationship("ProgressStep", back_populates="comments")
