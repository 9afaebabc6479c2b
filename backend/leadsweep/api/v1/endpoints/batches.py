from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Optional

from leadsweep.api.dependencies import (
    get_ads_library_client,
    get_batch_error_logger,
    get_crawler,
    get_places_client,
    get_verifier_client,
)
from leadsweep.db.session import get_db
from leadsweep.schemas.batch import (
    AdsScanBatchRequest,
    AdsScanBatchResponse,
    CollectBatchRequest,
    CollectBatchResponse,
    EnrichBatchRequest,
    EnrichBatchResponse,
    VerifyBatchRequest,
    VerifyBatchResponse,
)
from leadsweep.services.ads_library_client import AdsLibraryClient
from leadsweep.services.ads_scan import AdsScanProcessor
from leadsweep.services.collection import CollectionStage
from leadsweep.services.enrichment import EnrichmentProcessor
from leadsweep.services.error_logger import ErrorLogger
from leadsweep.services.places_client import PlacesClient
from leadsweep.services.verification import VerificationProcessor
from leadsweep.services.verifier_client import AnymailVerifierClient

router = APIRouter()


@router.post("/collect", response_model=CollectBatchResponse)
async def run_collect_batch(
    request: CollectBatchRequest,
    db: Session = Depends(get_db),
    places: Optional[PlacesClient] = Depends(get_places_client),
    crawler=Depends(get_crawler),
    error_logger: ErrorLogger = Depends(get_batch_error_logger),
):
    """Run one collection batch: one (keyword, segment) query."""
    stage = CollectionStage(db, places=places, crawler=crawler, error_logger=error_logger)
    try:
        return await stage.run_batch(request.job_id)
    finally:
        # Close only a client we built here
        if places is None:
            await stage.places.close()


@router.post("/verify", response_model=VerifyBatchResponse)
async def run_verify_batch(
    request: VerifyBatchRequest,
    db: Session = Depends(get_db),
    client: Optional[AnymailVerifierClient] = Depends(get_verifier_client),
    error_logger: ErrorLogger = Depends(get_batch_error_logger),
):
    processor = VerificationProcessor(db, client=client, error_logger=error_logger)
    try:
        return await processor.run_batch(request)
    finally:
        if client is None and processor.client is not None:
            await processor.client.close()


@router.post("/enrich", response_model=EnrichBatchResponse)
async def run_enrich_batch(
    request: EnrichBatchRequest,
    db: Session = Depends(get_db),
    error_logger: ErrorLogger = Depends(get_batch_error_logger),
):
    processor = EnrichmentProcessor(db, error_logger=error_logger)
    return await processor.run_batch(request)


@router.post("/ads-scan", response_model=AdsScanBatchResponse)
async def run_ads_scan_batch(
    request: AdsScanBatchRequest,
    db: Session = Depends(get_db),
    client: Optional[AdsLibraryClient] = Depends(get_ads_library_client),
    error_logger: ErrorLogger = Depends(get_batch_error_logger),
):
    processor = AdsScanProcessor(db, client=client, error_logger=error_logger)
    try:
        return await processor.run_batch(request)
    finally:
        if client is None and processor.client is not None:
            await processor.client.close()
