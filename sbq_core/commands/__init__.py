from .parser import parse_batch, validate_batch
from .schema import ACTION_MODELS, BatchFile, CommandBase

__all__ = ["parse_batch", "validate_batch", "ACTION_MODELS", "BatchFile", "CommandBase"]
