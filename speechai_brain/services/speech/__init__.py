"""
Speech-to-text and text-to-speech adapters.
"""

from .google import GoogleSynthesizer, GoogleTranscriber

__all__ = ["GoogleSynthesizer", "GoogleTranscriber"]
