import asyncio
from typing import Optional

from fastapi import APIRouter, HTTPException

from launch_sim.errors import InvalidConfig, InvalidInput
from launch_sim.schemas import ScenarioConfig, SweepRequest, reference_scenario
from launch_sim.services.scenario import run_scenario, run_sweep, summarize
from launch_sim.utils.json_safety import sanitize_floats


router = APIRouter()

# Sweep runs are CPU bound; keep them off the event loop and bounded.
SWEEP_MAX_WORKERS = 4


@router.post("/simulate")
async def api_simulate(data: Optional[ScenarioConfig] = None):
    loop = asyncio.get_running_loop()
    try:
        result = await loop.run_in_executor(None, run_scenario, data)
    except InvalidConfig as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return sanitize_floats(result.to_dict())


@router.post("/sweep")
async def api_sweep(data: SweepRequest):
    loop = asyncio.get_running_loop()
    try:
        results = await loop.run_in_executor(
            None, run_sweep, data.base, data.parameter, data.values, SWEEP_MAX_WORKERS
        )
    except (InvalidConfig, InvalidInput) as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return sanitize_floats({
        "parameter": data.parameter,
        "runs": [
            {"value": value, "summary": summarize(result)}
            for value, result in zip(data.values, results)
        ],
    })


@router.get("/reference")
async def api_reference():
    return reference_scenario().model_dump()


@router.get("/health")
async def health():
    return {"status": "ok"}
