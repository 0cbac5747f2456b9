"""
User Models — users and their role-specific profiles.

A user is created on the first successful identity-provider login and gets
exactly one role for life. Artisans carry an ArtisanProfile (story, expertise,
portfolio of works); applicants carry an ApplicantProfile filled in during
onboarding.
"""

import uuid
from datetime import datetime, timezone

from warisin.models import db

ROLE_ARTISAN = "ARTISAN"
ROLE_APPLICANT = "APPLICANT"
USER_ROLES = {ROLE_ARTISAN, ROLE_APPLICANT}


def _uuid():
    return str(uuid.uuid4())


# ═══════════════════════════════════════════════════════════════
# 1. USERS
# ═══════════════════════════════════════════════════════════════
class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    auth_id = db.Column(db.String(128), unique=True, nullable=False)
    email = db.Column(db.String(200), unique=True, nullable=False)
    name = db.Column(db.String(200))
    role = db.Column(db.String(20), nullable=False)  # ARTISAN | APPLICANT
    bio = db.Column(db.Text)
    location = db.Column(db.String(200))
    profile_image_url = db.Column(db.String(500))
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.Index("ix_users_role", "role"),
    )

    # Relationships
    artisan_profile = db.relationship(
        "ArtisanProfile", back_populates="user", uselist=False, cascade="all, delete-orphan",
    )
    applicant_profile = db.relationship(
        "ApplicantProfile", back_populates="user", uselist=False, cascade="all, delete-orphan",
    )
    programs = db.relationship(
        "Program", back_populates="artisan", lazy="dynamic", cascade="all, delete-orphan",
    )
    applications = db.relationship(
        "Application", back_populates="applicant", lazy="dynamic", cascade="all, delete-orphan",
    )
    sessions = db.relationship(
        "Session", back_populates="user", lazy="dynamic", cascade="all, delete-orphan",
    )

    @property
    def is_artisan(self):
        return self.role == ROLE_ARTISAN

    @property
    def is_applicant(self):
        return self.role == ROLE_APPLICANT

    def to_dict(self, include_profile=False):
        d = {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "role": self.role,
            "bio": self.bio,
            "location": self.location,
            "profile_image_url": self.profile_image_url,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_profile:
            profile = self.artisan_profile if self.is_artisan else self.applicant_profile
            d["profile"] = profile.to_dict() if profile else None
        return d


# ═══════════════════════════════════════════════════════════════
# 2. ARTISAN PROFILES
# ═══════════════════════════════════════════════════════════════
class ArtisanProfile(db.Model):
    __tablename__ = "artisan_profiles"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    user_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    story = db.Column(db.Text)
    expertise = db.Column(db.String(500))
    location = db.Column(db.String(200))
    image_url = db.Column(db.String(500))
    works = db.Column(db.JSON, default=list)  # ordered list of image URLs
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    user = db.relationship("User", back_populates="artisan_profile")

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "story": self.story,
            "expertise": self.expertise,
            "location": self.location,
            "image_url": self.image_url,
            "works": list(self.works or []),
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


# ═══════════════════════════════════════════════════════════════
# 3. APPLICANT PROFILES
# ═══════════════════════════════════════════════════════════════
class ApplicantProfile(db.Model):
    __tablename__ = "applicant_profiles"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    user_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    background = db.Column(db.Text)
    interests = db.Column(db.Text)
    portfolio_url = db.Column(db.String(500))
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    user = db.relationship("User", back_populates="applicant_profile")

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "background": self.background,
            "interests": self.interests,
            "portfolio_url": self.portfolio_url,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
