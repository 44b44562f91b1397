from __future__ import annotations


class HelmetKitError(Exception):
    """
    Base class for every error raised by helmet_kit.
    """


class ModelLoadError(HelmetKitError):
    """
    The model artifact is missing, corrupt, or the runtime could not build a session from it.
    """


class WarmupError(HelmetKitError):
    """
    The post-load warmup pass failed. `load()` logs this and keeps the model.
    """


class ShapeMismatchError(HelmetKitError, ValueError):
    """
    Raw output buffers disagree on the number of candidate boxes.
    """


class InvalidThresholdError(HelmetKitError, ValueError):
    pass


class UnknownClassError(HelmetKitError, LookupError):
    """
    A class id produced by the network has no registry entry (model/registry mismatch).
    """

    def __init__(self, class_id: int):
        super().__init__(f"Unknown class id: {class_id}")
        self.class_id = class_id
