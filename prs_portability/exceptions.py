"""
Error types raised by the PRS portability pipeline.

Numeric edge cases that only affect one ancestry group or one sample
(p-value of exactly 1, non-positive predicted variance, fewer than two
usable groups) are NOT errors: they come back as ``None`` on result
records so that the evaluation loop can carry on with other groups.
"""


class PRSPortabilityError(ValueError):
    """Base class for all pipeline input/model errors."""


class InvalidInput(PRSPortabilityError):
    """Input has the wrong shape: mismatched lengths, missing columns, ragged PCs."""


class InsufficientData(PRSPortabilityError):
    """Fewer observations than free parameters in a regression."""


class DegenerateDesign(PRSPortabilityError):
    """Collinear predictors - the least-squares fit is not unique."""
