"""Core build components for assetlink."""

from .collector import CollectionSummary, Collector, SkippedArtifact
from .engine import BuildEngine, BuildResult, BuildStats, build_engine
from .retry import RetryingFetcher, retrying_fetcher

__all__ = [
    "BuildEngine",
    "BuildResult",
    "BuildStats",
    "CollectionSummary",
    "Collector",
    "RetryingFetcher",
    "SkippedArtifact",
    "build_engine",
    "retrying_fetcher",
]
