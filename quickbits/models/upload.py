"""Upload ledger models."""
import enum
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Text

from quickbits.db.database import Base


class Platform(str, enum.Enum):
    """Supported publishing platforms."""
    YOUTUBE = "youtube"
    TWITTER = "twitter"


class VideoUpload(Base):
    """A successful upload of one video to one platform."""

    __tablename__ = "video_uploads"

    video_id = Column(String(64), primary_key=True)
    # Plain string so rows written for platforms no longer configured survive
    platform = Column(String(32), primary_key=True)

    platform_id = Column(String(255), nullable=False)  # Remote id on the platform
    published_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<VideoUpload(video_id='{self.video_id}', platform='{self.platform}', platform_id='{self.platform_id}')>"

    def to_dict(self):
        """Convert to dictionary."""
        return {
            "video_id": self.video_id,
            "platform": self.platform,
            "platform_id": self.platform_id,
            "published_at": self.published_at.isoformat() if self.published_at else None,
        }


class UploadError(Base):
    """A failed upload attempt. Rows are only ever appended."""

    __tablename__ = "upload_errors"

    id = Column(Integer, primary_key=True, autoincrement=True)
    video_id = Column(String(64), nullable=False, index=True)
    platform = Column(String(32), nullable=False)

    error_message = Column(Text, nullable=False)
    stack_trace = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<UploadError(id={self.id}, video_id='{self.video_id}', platform='{self.platform}')>"

    def to_dict(self):
        """Convert to dictionary."""
        return {
            "id": self.id,
            "video_id": self.video_id,
            "platform": self.platform,
            "error_message": self.error_message,
            "stack_trace": self.stack_trace,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
