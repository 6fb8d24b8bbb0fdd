import re
import logging
from typing import List, Tuple

logger = logging.getLogger(__name__)


class FolderRouter:
    """
    Picks the Drive parent folder for a meeting topic.

    Keywords are tried in configured order and the first one found anywhere in
    the topic (case-insensitive) wins. Topics matching nothing go to the
    default folder.
    """

    def __init__(self, mapping: List[Tuple[str, str]], default_folder_id: str):
        self.mapping = [(keyword.lower(), folder_id) for keyword, folder_id in mapping if keyword]
        self.default_folder_id = default_folder_id

    def resolve(self, topic: str) -> str:
        topic_lower = (topic or "").lower()
        for keyword, folder_id in self.mapping:
            if keyword in topic_lower:
                logger.debug(f"Topic '{topic}' matched keyword '{keyword}'")
                return folder_id
        return self.default_folder_id


def strip_topic_prefix(topic: str, prefix: str) -> str:
    """
    Remove a configured organization prefix from a meeting topic.

    Only a prefix followed by " | " or whitespace is removed, so
    "Acme | Weekly Sync" and "Acme Weekly Sync" both become "Weekly Sync".
    """
    if not prefix or not topic.startswith(prefix):
        return topic
    return re.sub(rf"^{re.escape(prefix)}(\s\|\s|\s)", "", topic, count=1)
