from chatstream.utils.exceptions import ChatStreamError, ProviderError, StreamError
from chatstream.utils.time import utcnow

__all__ = ["ChatStreamError", "ProviderError", "StreamError", "utcnow"]
