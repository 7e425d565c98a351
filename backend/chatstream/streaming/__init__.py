from chatstream.streaming.cancellation import CancellationToken
from chatstream.streaming.decoders import Decoder, DeltaTypedDecoder, EventTypedDecoder
from chatstream.streaming.lines import LineSource
from chatstream.streaming.pipeline import StreamHandle, StreamPipeline, collect_reply

__all__ = [
    "CancellationToken",
    "Decoder",
    "DeltaTypedDecoder",
    "EventTypedDecoder",
    "LineSource",
    "StreamHandle",
    "StreamPipeline",
    "collect_reply",
]
