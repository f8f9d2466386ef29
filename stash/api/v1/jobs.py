"""Job tracking API: job list, active jobs, single job, notifications."""

from fastapi import APIRouter, HTTPException

router = APIRouter()

# These will be set by main.py during lifespan
_controller = None
_notifications = None


def set_controller(controller):
    global _controller
    _controller = controller


def set_notifications(notifications):
    global _notifications
    _notifications = notifications


def _require_controller():
    if _controller is None:
        raise HTTPException(status_code=503, detail="Job tracking not initialized")
    return _controller


@router.get("/jobs")
async def list_jobs():
    """Most recent jobs (newest first) as display rows, plus the badge summary."""
    controller = _require_controller()
    return {
        "jobs": [v.model_dump(by_alias=True, mode="json") for v in controller.views()],
        "summary": controller.summary().model_dump(by_alias=True),
    }


@router.get("/jobs/active")
async def list_active_jobs():
    controller = _require_controller()
    jobs = controller.active_jobs()
    return {
        "jobs": [j.model_dump(by_alias=True, mode="json") for j in jobs],
        "count": len(jobs),
    }


@router.get("/jobs/{job_id}")
async def get_job(job_id: int):
    controller = _require_controller()
    job = controller.get(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return job.model_dump(by_alias=True, mode="json")


@router.get("/notifications")
async def list_notifications():
    if _notifications is None:
        raise HTTPException(status_code=503, detail="Notifications not initialized")
    return {"notifications": [n.model_dump(mode="json") for n in _notifications.recent()]}
