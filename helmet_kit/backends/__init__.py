"""
Inference backends for helmet_kit.

Backends are kept in a separate module so core functionality (NMS/post-processing)
stays lightweight and can be used without installing inference runtimes.
Every backend exposes `run(batch) -> Dict[str, np.ndarray]` and `close()`.
"""

from __future__ import annotations

__all__ = []
