import os
import logging

logger = logging.getLogger(__name__)


def ensure_directory(path: str) -> bool:
    """Create a project directory; returns False if it was already there."""
    if os.path.isdir(path):
        return False
    os.makedirs(path, exist_ok=True)
    logger.info(f"Created directory: {path}")
    return True


def create_file_if_missing(path: str, content: str) -> bool:
    """Write a scaffold file unless one exists; never overwrites user edits."""
    if os.path.exists(path):
        return False
    with open(path, 'w', encoding='utf-8') as f:
        f.write(content)
    logger.info(f"Created file: {path}")
    return True
