"""
Program Models — heritage categories and apprenticeship programs.

HeritageCategory is seeded reference data (Batik, Keramik, ...). A Program
belongs to one artisan and one category and stays open for applications
until the artisan closes it.
"""

import uuid
from datetime import datetime, timezone

from warisin.models import db

DEFAULT_CATEGORIES = [
    "Batik",
    "Keramik",
    "Anyaman",
    "Ukiran Kayu",
    "Tenun",
    "Perak",
    "Wayang",
    "Songket",
]


def _uuid():
    return str(uuid.uuid4())


# ═══════════════════════════════════════════════════════════════
# 1. HERITAGE CATEGORIES
# ═══════════════════════════════════════════════════════════════
class HeritageCategory(db.Model):
    __tablename__ = "heritage_categories"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    name = db.Column(db.String(100), unique=True, nullable=False)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    programs = db.relationship("Program", back_populates="category", lazy="dynamic")

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


# ═══════════════════════════════════════════════════════════════
# 2. PROGRAMS
# ═══════════════════════════════════════════════════════════════
class Program(db.Model):
    __tablename__ = "programs"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=False)
    duration = db.Column(db.String(100), nullable=False)  # free text, e.g. "3 bulan"
    location = db.Column(db.String(200))
    criteria = db.Column(db.Text)
    category_id = db.Column(
        db.String(36), db.ForeignKey("heritage_categories.id"), nullable=False
    )
    artisan_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    start_date = db.Column(db.Date)
    end_date = db.Column(db.Date)
    is_open = db.Column(db.Boolean, default=True, nullable=False)
    program_image_url = db.Column(db.String(500))
    video_url = db.Column(db.String(500))
    video_thumbnail_url = db.Column(db.String(500))
    gallery_urls = db.Column(db.JSON, default=list)
    gallery_thumbnails = db.Column(db.JSON, default=list)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.Index("ix_programs_artisan_id", "artisan_id"),
        db.Index("ix_programs_category_id", "category_id"),
        db.Index("ix_programs_is_open", "is_open"),
    )

    # Relationships
    artisan = db.relationship("User", back_populates="programs")
    category = db.relationship("HeritageCategory", back_populates="programs")
    applications = db.relationship(
        "Application", back_populates="program", lazy="dynamic", cascade="all, delete-orphan",
    )

    def to_dict(self, include_counts=False):
        d = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "duration": self.duration,
            "location": self.location,
            "criteria": self.criteria,
            "category_id": self.category_id,
            "category": self.category.name if self.category else None,
            "artisan_id": self.artisan_id,
            "artisan_name": self.artisan.name if self.artisan else None,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "is_open": self.is_open,
            "program_image_url": self.program_image_url,
            "video_url": self.video_url,
            "video_thumbnail_url": self.video_thumbnail_url,
            "gallery_urls": list(self.gallery_urls or []),
            "gallery_thumbnails": list(self.gallery_thumbnails or []),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_counts:
            d["application_count"] = self.applications.count()
        return d
