from .submission import Submission, SubmissionStatus
from .annotation import Annotation
