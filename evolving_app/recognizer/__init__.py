"""
Handwritten digit recognizer trained online over HTTP.
"""

from .model import DigitClassifier, ModelNotTrainedError, prepare_sample
from .service import RecognizerService

__all__ = [
    "DigitClassifier",
    "ModelNotTrainedError",
    "RecognizerService",
    "prepare_sample",
]
