"""
Behavioral biometrics: sample models, capture buffers and similarity verification.
"""

from backend_aether.biometrics.capture import BehaviorCaptureBuffer
from backend_aether.biometrics.models import (
    BiometricSample,
    KeystrokePattern,
    MouseMovement,
    TransactionTiming,
)
from backend_aether.biometrics.verifier import (
    BiometricConfig,
    BiometricScore,
    BiometricVerifier,
)

__all__ = [
    "BehaviorCaptureBuffer",
    "BiometricConfig",
    "BiometricSample",
    "BiometricScore",
    "BiometricVerifier",
    "KeystrokePattern",
    "MouseMovement",
    "TransactionTiming",
]
