"""Alert classification, debouncing and persisted alert state."""

from heightwatch.alerting.classifier import classify, decide
from heightwatch.alerting.exceptions import AlertingError, PersistenceError
from heightwatch.alerting.state import AlertStateStore

__all__ = [
    "AlertStateStore",
    "AlertingError",
    "PersistenceError",
    "classify",
    "decide",
]
