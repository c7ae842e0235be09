from sqlalchemy import Column, String, Text, DateTime, ForeignKey, Integer, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from ..database import Base
from .cv import new_id, utcnow


class Job(Base):
    __tablename__ = "jobs"

    id = Column(String(32), primary_key=True, default=new_id)
    title = Column(String(255), nullable=False)
    department = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    # Free-form JSON, e.g. {"requiredSkills": ["python", "docker"]}
    requirements = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    applications = relationship("JobApplication", back_populates="job")


class CandidateProfile(Base):
    """Candidate record owned by the recruiter-facing CRUD layer."""
    __tablename__ = "candidate_profiles"

    id = Column(String(32), primary_key=True, default=new_id)
    full_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    applications = relationship("JobApplication", back_populates="candidate")


class JobApplication(Base):
    __tablename__ = "job_applications"

    id = Column(String(32), primary_key=True, default=new_id)
    job_id = Column(String(32), ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False, index=True)
    candidate_profile_id = Column(String(32), ForeignKey("candidate_profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    applied_at = Column(DateTime(timezone=True), default=utcnow)

    job = relationship("Job", back_populates="applications")
    candidate = relationship("CandidateProfile", back_populates="applications")
    cv_documents = relationship("CvDocument", back_populates="application")


class JobCandidateMatch(Base):
    """Committed match outcome; at most one row per (job, candidate)."""
    __tablename__ = "job_candidate_matches"
    __table_args__ = (
        UniqueConstraint("job_id", "candidate_profile_id", name="uq_job_candidate_match"),
    )

    id = Column(String(32), primary_key=True, default=new_id)
    job_id = Column(String(32), ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False, index=True)
    candidate_profile_id = Column(String(32), ForeignKey("candidate_profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    score = Column(Integer, nullable=False)
    matched_skills = Column(JSON, nullable=False, default=list)
    missing_skills = Column(JSON, nullable=False, default=list)
    explanation = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
