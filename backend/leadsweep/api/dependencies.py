"""
Provider dependencies for the batch endpoints.

Each returns None by default, meaning "build the real client from
settings inside the stage" so that caller errors are reported before
configuration errors. Tests override these with fakes.
"""
from typing import Optional

from leadsweep.services.ads_library_client import AdsLibraryClient
from leadsweep.services.crawler import crawl_website
from leadsweep.services.error_logger import ErrorLogger, get_error_logger
from leadsweep.services.places_client import PlacesClient
from leadsweep.services.verifier_client import AnymailVerifierClient


def get_places_client() -> Optional[PlacesClient]:
    return None


def get_crawler():
    return crawl_website


def get_verifier_client() -> Optional[AnymailVerifierClient]:
    return None


def get_ads_library_client() -> Optional[AdsLibraryClient]:
    return None


def get_batch_error_logger() -> ErrorLogger:
    return get_error_logger()
