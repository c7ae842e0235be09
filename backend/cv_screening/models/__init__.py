from .cv import CvDocument, CvStatus, FailReason, AiOutput, AiOutputType
from .job import Job, CandidateProfile, JobApplication, JobCandidateMatch
from .processing_job import CvProcessingJob, ProcessingJobStatus

__all__ = [
    # CV documents
    "CvDocument", "CvStatus", "FailReason",
    "AiOutput", "AiOutputType",
    # Jobs and matching
    "Job", "CandidateProfile", "JobApplication", "JobCandidateMatch",
    # Processing queue
    "CvProcessingJob", "ProcessingJobStatus",
]
