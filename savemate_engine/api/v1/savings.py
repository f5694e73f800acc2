"""POST /v1/savings/simulate - Compare saving strategies for an amount"""

from fastapi import APIRouter

from savemate_engine.api.v1.schemas import SimulationRequest, SimulationResponse
from savemate_engine.domain.savings import find_optimal_rounding_multiple, simulate_scenarios

router = APIRouter()


@router.post("/savings/simulate", response_model=SimulationResponse)
def simulate(request_body: SimulationRequest):
    """What each common strategy would save on this expense"""
    scenarios = simulate_scenarios(request_body.amount)
    return SimulationResponse(
        **scenarios,
        optimal_rounding_multiple=find_optimal_rounding_multiple(request_body.amount),
    )
