"""
Application Model — an applicant's request to join a program.

Status lifecycle (explicit state machine):

    PENDING ──► APPROVED ──► COMPLETED
       │
       └──────► REJECTED

REJECTED and COMPLETED are terminal. COMPLETED is only reachable from
APPROVED. The (program_id, applicant_id) unique constraint is the source of
truth for "one application per applicant per program".
"""

import uuid
from datetime import datetime, timezone

from warisin.models import db

STATUS_PENDING = "PENDING"
STATUS_APPROVED = "APPROVED"
STATUS_REJECTED = "REJECTED"
STATUS_COMPLETED = "COMPLETED"

APPLICATION_STATUSES = [STATUS_PENDING, STATUS_APPROVED, STATUS_REJECTED, STATUS_COMPLETED]

APPLICATION_TRANSITIONS = {
    STATUS_PENDING:   [STATUS_APPROVED, STATUS_REJECTED],
    STATUS_APPROVED:  [STATUS_COMPLETED],
    STATUS_REJECTED:  [],
    STATUS_COMPLETED: [],
}


def validate_application_transition(old_status, new_status):
    """Return True if transition is valid, False otherwise."""
    allowed = APPLICATION_TRANSITIONS.get(old_status, [])
    return new_status in allowed


class Application(db.Model):
    __tablename__ = "applications"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    program_id = db.Column(
        db.String(36), db.ForeignKey("programs.id", ondelete="CASCADE"), nullable=False
    )
    applicant_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    message = db.Column(db.Text, nullable=False)
    motivation = db.Column(db.Text)
    cv_url = db.Column(db.String(500))
    cv_path = db.Column(db.String(500))  # blob-storage key, used for cleanup
    review_note = db.Column(db.Text)  # optional reason given on rejection
    status = db.Column(db.String(20), nullable=False, default=STATUS_PENDING)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.UniqueConstraint("program_id", "applicant_id", name="uq_application_program_applicant"),
        db.Index("ix_applications_applicant_id", "applicant_id"),
        db.Index("ix_applications_status", "status"),
    )

    # Relationships
    program = db.relationship("Program", back_populates="applications")
    applicant = db.relationship("User", back_populates="applications")

    def to_dict(self, include_program=False, include_applicant=False):
        d = {
            "id": self.id,
            "program_id": self.program_id,
            "applicant_id": self.applicant_id,
            "message": self.message,
            "motivation": self.motivation,
            "cv_url": self.cv_url,
            "status": self.status,
            "review_note": self.review_note,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_program and self.program:
            d["program"] = {
                "id": self.program.id,
                "title": self.program.title,
                "category": self.program.category.name if self.program.category else None,
                "artisan_id": self.program.artisan_id,
                "start_date": self.program.start_date.isoformat() if self.program.start_date else None,
            }
        if include_applicant and self.applicant:
            d["applicant"] = {
                "id": self.applicant.id,
                "name": self.applicant.name,
                "email": self.applicant.email,
                "location": self.applicant.location,
                "profile_image_url": self.applicant.profile_image_url,
            }
        return d
