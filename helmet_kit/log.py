"""
Logging setup for applications embedding helmet_kit.

Library modules only create `logging.getLogger(__name__)` loggers; handlers
are configured here, by the application.
"""

from __future__ import annotations

import logging
import os
from typing import List, Optional


def setup_logging(level: str = "INFO", log_path: Optional[str] = None) -> None:
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_path:
        log_dir = os.path.dirname(log_path)
        if log_dir and not os.path.exists(log_dir):
            os.makedirs(log_dir)
        handlers.append(logging.FileHandler(log_path))

    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )
