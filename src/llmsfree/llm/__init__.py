"""HTTP transport, stream decoding and aggregation for llmsfree."""

from llmsfree.llm.aggregator import aggregate, aggregate_all, merge_chunks
from llmsfree.llm.client import LLMsFreeApi
from llmsfree.llm.retry import RetryPolicy
from llmsfree.llm.sse import SSE_DONE, SSEDecoder, adecode_chunks

__all__ = [
    "LLMsFreeApi",
    "RetryPolicy",
    "SSEDecoder",
    "SSE_DONE",
    "adecode_chunks",
    "aggregate",
    "aggregate_all",
    "merge_chunks",
]
