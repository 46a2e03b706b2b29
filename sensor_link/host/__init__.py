"""Host side: frame reassembly, receive loop, commands and frame sinks."""

from .commander import HostCommander
from .display import CallbackSink, CollectingSink, FrameSink, LatestFrameSlot, PngFrameSink
from .reassembler import Frame, FrameReassembler, ReassemblerState, ReassemblyStats
from .receiver import HostReceiver, ReceiveResult

__all__ = [
    "CallbackSink",
    "CollectingSink",
    "Frame",
    "FrameReassembler",
    "FrameSink",
    "HostCommander",
    "HostReceiver",
    "LatestFrameSlot",
    "PngFrameSink",
    "ReassemblerState",
    "ReassemblyStats",
    "ReceiveResult",
]
