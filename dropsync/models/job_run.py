from sqlalchemy import Column, DateTime, Integer, String, Text

from dropsync.database import Base
from dropsync.models.api_token import utc_now


class JobRun(Base):
    """
    Last run of each job type, for status reporting.
    """

    __tablename__ = "job_runs"

    id = Column(Integer, primary_key=True)
    job_type = Column(String(64), nullable=False, unique=True)
    status = Column(String(32), nullable=False)
    message = Column(Text, nullable=True)
    last_run_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False)

    def __repr__(self) -> str:
        return f"<JobRun(type={self.job_type}, status={self.status}, last_run_at={self.last_run_at})>"
