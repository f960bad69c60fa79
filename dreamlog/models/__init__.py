from dreamlog.models.dialog import DialogMessage, DialogSummary
from dreamlog.models.dream import Dream
from dreamlog.models.kv_entry import KeyValueEntry

__all__ = ["DialogMessage", "DialogSummary", "Dream", "KeyValueEntry"]
