"""
Sequence Recorder Module

Captures actions performed through the browser while teaching
mode is on and saves them as replayable sequences.
"""

from .sequence_recorder import SequenceRecorder, RecordingSession, RecordingState, RecordingStatus

__all__ = [
    "SequenceRecorder",
    "RecordingSession",
    "RecordingState",
    "RecordingStatus"
]
