from fairness_audit.shared.config import Settings, get_config, reload_config
from fairness_audit.shared.records import (
    EducationLevel,
    FairnessContext,
    FeatureRecord,
    ProcessType,
    TimePeriod,
)

__all__ = [
    "get_config",
    "reload_config",
    "Settings",
    "EducationLevel",
    "FairnessContext",
    "FeatureRecord",
    "ProcessType",
    "TimePeriod",
]
