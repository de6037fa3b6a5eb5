"""ORM model for the session token issuance log."""

from sqlalchemy import Column, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import relationship

from kodbank.models.base import Base


class UserToken(Base):
    """
    One row per successful login. Never updated and never read during verification:
    the token signature and exp claim decide validity. Rows past expiry stay inert
    unless the retention job is enabled.
    """

    __tablename__ = "user_tokens"

    tid = Column(String(36), primary_key=True)
    token = Column(Text, nullable=False)
    user_id = Column(
        String(36),
        ForeignKey("users.uid", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    expiry = Column(DateTime(timezone=True), nullable=False, index=True)

    user = relationship("User", back_populates="tokens")
