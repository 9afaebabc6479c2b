from leadsweep.models.job import Job
from leadsweep.models.lead import Lead
from leadsweep.models.contact import Contact
from leadsweep.models.signal import Signal
from leadsweep.models.job_result import JobResult
from leadsweep.models.email_verification import EmailVerification
from leadsweep.models.ads_observation import AdsLibraryObservation
from leadsweep.models.run_log import JobRunLog
from leadsweep.models.stage_lease import StageLease

__all__ = [
    "Job",
    "Lead",
    "Contact",
    "Signal",
    "JobResult",
    "EmailVerification",
    "AdsLibraryObservation",
    "JobRunLog",
    "StageLease",
]
