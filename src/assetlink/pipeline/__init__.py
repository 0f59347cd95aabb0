"""Asset optimization pipeline."""

from .base import FetchedResource, Fetcher, SourceInput, TransformOutput
from .dispatch import PIPELINE_VERSION, Pipeline, output_name
from .remote import HttpFetcher
from .utilities import UtilityCatalog

__all__ = [
    "FetchedResource",
    "Fetcher",
    "HttpFetcher",
    "PIPELINE_VERSION",
    "Pipeline",
    "SourceInput",
    "TransformOutput",
    "UtilityCatalog",
    "output_name",
]
