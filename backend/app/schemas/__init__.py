from .submission import Submission, SubmissionBase, SubmissionPage, SubmissionStats
from .annotation import AnnotationSave
