"""Shared utilities for the voice monitoring service."""

from .audio_io import decode_audio_bytes, download_recording, RecordingDownloadError
from .config_loader import load_config, get_nested_config

__all__ = [
    'decode_audio_bytes',
    'download_recording',
    'RecordingDownloadError',
    'load_config',
    'get_nested_config',
]
