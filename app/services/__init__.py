from .exam_catalog import ExamCatalog, exam_catalog
from .attempt_lifecycle import AttemptLifecycle, attempt_lifecycle
from .anti_cheat import AntiCheatCollector, anti_cheat_collector
from .expiry import AttemptExpirySweeper, attempt_expiry_sweeper
__all__ = [
    "ExamCatalog", "exam_catalog", "AttemptLifecycle", "attempt_lifecycle",
    "AntiCheatCollector", "anti_cheat_collector", "AttemptExpirySweeper", "attempt_expiry_sweeper",
]
