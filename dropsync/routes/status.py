# dropsync/routes/status.py

from fastapi import APIRouter, Depends, HTTPException

from dropsync.core.enums import JobType, TokenService
from dropsync.dependencies import ServiceContainer, get_container
from dropsync.scheduler import get_scheduler_status

router = APIRouter(tags=["status"])


@router.get("/ebay/token-status")
async def token_status(container: ServiceContainer = Depends(get_container)):
    return container.token_manager(TokenService.CHANNEL).status()


@router.get("/status")
async def system_status(container: ServiceContainer = Depends(get_container)):
    """Token state per service, last job runs, listing counts and open escalations."""
    return {
        "tokens": {
            service.value: container.token_manager(service).status()
            for service in TokenService
        },
        "jobs": await container.job_store.last_runs(),
        "listings": {
            "active": await container.listing_store.count(active=True),
            "ended": await container.listing_store.count(active=False),
        },
        "open_escalations": len(await container.message_store.unresolved_escalations()),
        "scheduler": await get_scheduler_status(),
    }


@router.post("/jobs/{job}")
async def run_job(job: str, container: ServiceContainer = Depends(get_container)):
    """Run a job now and wait for it."""
    try:
        job_type = JobType(job)
    except ValueError:
        raise HTTPException(status_code=404, detail=f"Unknown job: {job}")

    result = await container.run_job(job_type)
    return {"job": job_type.value, "result": result}
