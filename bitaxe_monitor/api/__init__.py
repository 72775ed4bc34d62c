"""Miner API clients."""

from .client import STATUS_PATH, HttpMinerClient, MinerClient, UnexpectedPayloadError, build_status_url

__all__ = [
    "HttpMinerClient",
    "MinerClient",
    "STATUS_PATH",
    "UnexpectedPayloadError",
    "build_status_url",
]
