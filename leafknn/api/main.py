"""
HTTP UI boundary: file uploads for training and prediction, state for
rendering counts and preview galleries, and a clear-data command.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import List

from fastapi import FastAPI, File, HTTPException, Request, UploadFile

from .schemas import (
    ClearResponse,
    HealthResponse,
    PredictionResponse,
    StateResponse,
    TrainResponse
)
from ..core.config import VERSION, debug_enabled, get_feature_extractor, get_storage
from ..core.errors import DimensionMismatch, NotTrained
from ..core.persistence import PersistenceGateway
from ..core.session import TrainingSession
from ..vector.images import ImageDecodeError
from ..util.logging import logger


def build_session() -> TrainingSession:
    """Create a session from the configured storage and feature extractor."""
    return TrainingSession(get_feature_extractor(), PersistenceGateway(get_storage()))


def create_app(session: TrainingSession = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.session = session or build_session()
        await app.state.session.start()
        logger.info(f"Session started: {app.state.session.status}")
        yield
        await app.state.session.gateway.storage.close()

    app = FastAPI(
        title="Leaf Health k-NN Classifier API",
        version=VERSION,
        description="Incrementally trained nearest-neighbor plant health classifier with local persistence",
        docs_url="/docs" if debug_enabled() else None,
        redoc_url="/redoc" if debug_enabled() else None,
        lifespan=lifespan
    )

    def get_session(request: Request) -> TrainingSession:
        return request.app.state.session

    @app.get("/health", response_model=HealthResponse)
    async def health_check_endpoint(request: Request):
        """Check system health."""
        session = get_session(request)
        storage_health = await session.gateway.storage.health_check()

        return HealthResponse(
            status="healthy" if storage_health else "degraded",
            version=VERSION,
            storage_health=storage_health,
            num_examples=session.store.num_examples()
        )

    @app.get("/state", response_model=StateResponse)
    def state_endpoint(request: Request):
        """Counts and preview galleries for rendering."""
        session = get_session(request)
        snapshot = session.snapshot()
        return StateResponse(
            counts=snapshot["counts"],
            previews=snapshot["previews"],
            class_names=session.class_names,
            status=session.status
        )

    @app.post("/train/{label}", response_model=TrainResponse)
    async def train_endpoint(label: int, request: Request, files: List[UploadFile] = File(...)):
        """Add uploaded images as examples of one class."""
        session = get_session(request)
        if label not in session.store.class_ids:
            raise HTTPException(status_code=400, detail=f"Invalid label: {label}")

        uploads = [await f.read() for f in files]
        report = await session.train(label, uploads)

        return TrainResponse(
            label=report.label,
            added=report.added,
            skipped=report.skipped,
            saved=report.saved,
            status=report.status,
            errors=report.errors,
            counts=session.counts
        )

    @app.post("/predict", response_model=PredictionResponse)
    async def predict_endpoint(request: Request, file: UploadFile = File(...)):
        """Classify an uploaded image."""
        session = get_session(request)
        data = await file.read()

        try:
            prediction = await asyncio.to_thread(session.predict, data)
        except NotTrained as e:
            raise HTTPException(status_code=409, detail=str(e))
        except (ImageDecodeError, DimensionMismatch) as e:
            raise HTTPException(status_code=400, detail=str(e))

        return PredictionResponse(
            label=prediction.label,
            class_name=prediction.class_name,
            confidence=prediction.confidence,
            percentage=f"{prediction.confidence * 100:.2f}%",
            confidences=prediction.confidences
        )

    @app.post("/clear", response_model=ClearResponse)
    async def clear_endpoint(request: Request):
        """Remove all training data, in memory and persisted."""
        session = get_session(request)
        cleared = await session.clear()
        return ClearResponse(cleared=cleared, status=session.status, counts=session.counts)

    return app


app = create_app()
