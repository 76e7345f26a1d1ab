"""
Exception types for the blockflow framework.
"""


class BlockflowError(Exception):
    """Base class for all blockflow errors."""
    pass


class TemplateError(BlockflowError, ValueError):
    """
    Raised when a step/block template tree is malformed.

    Detected eagerly while the tree is being built (empty block, a Sequence
    nested inside another block, unknown child type), never mid-run.
    """
    pass


class ExperimentUsageError(BlockflowError, RuntimeError):
    """
    Raised when the experiment is driven incorrectly at run time.

    Examples: completing a step while no step is on screen, completing the
    same presentation twice, or starting an experiment that is already running.
    """
    pass
