"""Feature switches"""

from timeline.config import Settings
from timeline.exceptions import FeatureDisabledException

DRIVE_INDEXING = "drive_indexing"
EMBEDDINGS = "embeddings"
CHAT = "chat"


def is_enabled(settings: Settings, feature: str) -> bool:
    flags = {
        DRIVE_INDEXING: settings.FEATURE_DRIVE_INDEXING_ENABLED,
        EMBEDDINGS: settings.FEATURE_EMBEDDINGS_ENABLED,
        CHAT: settings.FEATURE_CHAT_ENABLED,
    }
    return flags.get(feature, False)


def require_feature(settings: Settings, feature: str):
    if not is_enabled(settings, feature):
        raise FeatureDisabledException(feature)
