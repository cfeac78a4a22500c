"""Data contracts shared between the decoder and the output adapters."""

from .sample import OscillatorStatus, DecodedSample

__all__ = ['OscillatorStatus', 'DecodedSample']
