from .client import API_VERSION, VkClient
from .errors import ApiCallError, ApiTransportError
from .queue import CallQueue, QueuedCall, unwrap_response
from .vk import VkApi

__all__ = [
    "API_VERSION",
    "ApiCallError",
    "ApiTransportError",
    "CallQueue",
    "QueuedCall",
    "VkApi",
    "VkClient",
    "unwrap_response",
]
