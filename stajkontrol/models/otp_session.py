"""Company one-time password session."""

from sqlalchemy import Column, DateTime, Integer, String

from stajkontrol.db.base import Base


class CompanyOtpSession(Base):
    """One OTP issued to a company e-mail; consumed at most once."""

    __tablename__ = "company_otp_sessions"

    company_email = Column(String(255), nullable=False, index=True)
    code_hash = Column(String(64), nullable=False)  # HMAC-SHA256 hex
    expires_at = Column(DateTime, nullable=False)
    failed_attempts = Column(Integer, default=0, nullable=False)
    consumed_at = Column(DateTime)

    # Company token issued on successful verification
    session_expires_at = Column(DateTime)
    revoked_at = Column(DateTime)

    def __repr__(self):
        return f"<CompanyOtpSession {self.company_email}>"
