"""
PRS Portability - cross-ancestry evaluation and calibration of polygenic scores
"""

__version__ = "0.1.0"

from .config import Config, load_config
from .exceptions import DegenerateDesign, InsufficientData, InvalidInput, PRSPortabilityError
from .prs.calibration import CalibratedScore, ScoreRecord, calibrate
from .prs.heterogeneity import GroupEstimate, HeterogeneityResult, estimate_heterogeneity

__all__ = [
    'Config', 'load_config',
    'PRSPortabilityError', 'InvalidInput', 'InsufficientData', 'DegenerateDesign',
    'ScoreRecord', 'CalibratedScore', 'calibrate',
    'GroupEstimate', 'HeterogeneityResult', 'estimate_heterogeneity',
]
