"""
PCM5 Android Auto device state repair.

Fixes paired-device records in the PCM5 (MH2P) persistence database whose
userAcceptState was written as NATIVE_SELECTED instead of DISCLAIMER_ACCEPTED.
"""

__version__ = "1.0.0"
