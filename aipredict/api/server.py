"""
FastAPI server for the prediction dashboard and oracle operations.
Exposes market generation, AI finalization, faucet and contract reads.
"""
from datetime import datetime
from typing import Any, Optional

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
import uvicorn

from .. import database
from ..clients.chain_client import is_valid_address
from ..clients.pyth_client import pair_from_slug
from ..config import get_env_list
from ..errors import (
    ChainError,
    CompletionError,
    ContractReadError,
    FaucetCooldownError,
    GenerationError,
    InvalidAddressError,
    OutcomeFormatError,
    ResearchError,
)
from ..markets.models import PredictionStatus
from ..utils.logger import get_logger

logger = get_logger("api")

app = FastAPI(title="AI Predict Oracle API")

# Enable CORS for dashboard
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_env_list("CORS_ORIGINS", ["*"]),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Set by the oracle service before the server starts
_service: Optional[Any] = None


def set_service(service: Any) -> None:
    global _service
    _service = service


def get_service() -> Any:
    """Dependency returning the running oracle service."""
    if _service is None:
        raise RuntimeError("Oracle service not initialized")
    return _service


class TopicRequest(BaseModel):
    topic: Optional[str] = None


class DescriptionRequest(BaseModel):
    description: Optional[str] = None


class FaucetRequest(BaseModel):
    address: Optional[str] = None


def error_response(status_code: int, error: str, details: Optional[str] = None) -> JSONResponse:
    content = {"error": error}
    if details is not None:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


@app.get("/")
async def root():
    """Health check."""
    return {"status": "ok", "timestamp": datetime.utcnow().isoformat()}


# =============================================================================
# PRICE FEEDS
# =============================================================================

@app.get("/pyth-price/all")
async def api_all_prices(service=Depends(get_service)):
    """Get all reference prices."""
    try:
        prices = await service.pyth.get_all_prices()
    except Exception as e:
        logger.error(f"Error fetching prices: {e}")
        return error_response(500, "Failed to fetch prices", str(e))

    return JSONResponse(content={pair: quote.to_dict() for pair, quote in prices.items()})


@app.get("/pyth-price/{pair_slug}")
async def api_price(pair_slug: str, service=Depends(get_service)):
    """Get one reference price, e.g. /pyth-price/btc-usd."""
    pair = pair_from_slug(pair_slug)
    if pair is None:
        return error_response(404, f"Unknown price pair: {pair_slug}")

    try:
        quote = await service.pyth.get_price(pair)
    except Exception as e:
        logger.error(f"Error fetching {pair} price: {e}")
        return error_response(500, f"Failed to fetch {pair} price", str(e))

    return JSONResponse(content=quote.to_dict())


# =============================================================================
# GENERATION
# =============================================================================

@app.post("/generate-predictions")
async def api_generate_predictions(request: TopicRequest, service=Depends(get_service)):
    """Generate predictions for a topic and create them on the contract."""
    if not request.topic or not request.topic.strip():
        return error_response(400, "Topic is required")

    try:
        published = await service.generator.generate_and_publish(request.topic)
    except (ResearchError, CompletionError, GenerationError) as e:
        logger.error(f"Error generating predictions: {e}")
        return error_response(500, "Failed to generate predictions", str(e))

    return JSONResponse(content={"predictions": [p.to_dict() for p in published]})


@app.post("/test/generate-predictions")
async def api_test_generate_predictions(request: TopicRequest, service=Depends(get_service)):
    """Generate predictions for a topic without publishing them."""
    if not request.topic or not request.topic.strip():
        return error_response(400, "Topic is required")

    try:
        drafts = await service.generator.generate(request.topic)
    except (ResearchError, CompletionError, GenerationError) as e:
        logger.error(f"Error generating test predictions: {e}")
        return error_response(500, "Failed to generate predictions", str(e))

    return JSONResponse(content={"predictions": [d.to_dict() for d in drafts]})


# =============================================================================
# RESOLUTION
# =============================================================================

@app.post("/finalize-prediction/{prediction_id}")
async def api_finalize_prediction(prediction_id: int, service=Depends(get_service)):
    """Determine a prediction's outcome with AI and finalize it on chain."""
    try:
        result = await service.resolver.resolve(prediction_id)
    except ValueError as e:
        return error_response(400, str(e))
    except (ResearchError, CompletionError, OutcomeFormatError) as e:
        logger.error(f"Error determining outcome for prediction {prediction_id}: {e}")
        return error_response(500, "Failed to determine outcome", str(e))
    except ContractReadError as e:
        logger.error(f"Error reading prediction {prediction_id} from the blockchain: {e}")
        return error_response(500, "Failed to read prediction from the blockchain", str(e))
    except ChainError as e:
        logger.error(f"Error finalizing prediction {prediction_id} on the blockchain: {e}")
        return error_response(500, "Failed to finalize prediction on the blockchain", str(e))

    return JSONResponse(content=result.to_dict())


@app.post("/test/finalize-prediction")
async def api_test_finalize_prediction(request: DescriptionRequest, service=Depends(get_service)):
    """Determine an outcome for a description without touching the chain."""
    if not request.description or not request.description.strip():
        return error_response(400, "Prediction description is required")

    try:
        decision = await service.resolver.preview(request.description)
    except (ResearchError, CompletionError, OutcomeFormatError) as e:
        logger.error(f"Error in test finalize: {e}")
        return error_response(500, "Failed to determine outcome", str(e))

    return JSONResponse(content={
        "message": "Test prediction finalized successfully",
        "description": request.description,
        "outcome": decision.outcome,
        "confidence": decision.confidence,
        "explanation": decision.explanation,
    })


# =============================================================================
# CONTRACT READS
# =============================================================================

@app.get("/prediction/{prediction_id}")
async def api_prediction(prediction_id: int, service=Depends(get_service)):
    """Get prediction details from the contract."""
    try:
        prediction = await service.contract.get_prediction(prediction_id)
    except ChainError as e:
        return error_response(500, str(e))

    return JSONResponse(content=prediction.to_dict())


@app.get("/predictions")
async def api_predictions(status: Optional[str] = None, service=Depends(get_service)):
    """List predictions, optionally filtered by status (active, finalized, cancelled)."""
    status_filter = None
    if status:
        try:
            status_filter = PredictionStatus[status.upper()]
        except KeyError:
            return error_response(400, f"Unknown status: {status}")

    try:
        predictions = await service.contract.list_predictions(status=status_filter)
    except ChainError as e:
        return error_response(500, str(e))

    return JSONResponse(content={
        "predictions": [p.to_dict() for p in predictions],
        "count": len(predictions)
    })


@app.get("/user-stats/{address}")
async def api_user_stats(address: str, service=Depends(get_service)):
    """Get a user's prediction statistics from the contract."""
    if not is_valid_address(address):
        return error_response(400, "Valid Ethereum address is required")

    try:
        stats = await service.contract.get_user_stats(address)
    except ChainError as e:
        return error_response(500, str(e))

    return JSONResponse(content=stats.to_dict())


@app.get("/roles/{address}")
async def api_roles(address: str, service=Depends(get_service)):
    """Get the access-control roles held by an address."""
    if not is_valid_address(address):
        return error_response(400, "Valid Ethereum address is required")

    try:
        roles = await service.contract.get_roles(address)
    except ChainError as e:
        return error_response(500, str(e))

    return JSONResponse(content={"address": address, "roles": roles})


# =============================================================================
# FAUCET
# =============================================================================

@app.post("/request-eth")
async def api_request_eth(request: FaucetRequest, service=Depends(get_service)):
    """Send test ETH from the faucet wallet."""
    try:
        result = await service.faucet.dispense(request.address)
    except InvalidAddressError as e:
        return error_response(400, str(e))
    except FaucetCooldownError as e:
        response = error_response(429, str(e))
        response.headers["Retry-After"] = str(e.retry_after)
        return response
    except Exception as e:
        logger.error(f"Error in request-eth endpoint: {e}")
        return error_response(500, str(e))

    return JSONResponse(content=result.to_dict())


# =============================================================================
# HISTORY
# =============================================================================

@app.get("/history")
async def api_history(limit: int = 50):
    """Recent generated predictions, resolutions and faucet counters."""
    return JSONResponse(content={
        "generated": database.get_recent_generated(limit),
        "resolutions": database.get_recent_resolutions(limit),
        "stats": database.get_stats(),
    })


async def serve(service: Any, host: str = "0.0.0.0", port: int = 4000, log_level: str = "info") -> None:
    """Serve the API for a service until the server is told to exit."""
    set_service(service)
    server = uvicorn.Server(uvicorn.Config(app, host=host, port=port, log_level=log_level))
    service.register_server(server)
    await server.serve()
