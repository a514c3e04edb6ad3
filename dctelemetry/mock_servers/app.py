"""FastAPI mock upstreams for exercising the acquisition layer."""

import asyncio
import os
import random
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Query


SITES = [("Barcelona", "BA"), ("Madrid", "MA"), ("Valencia", "VA")]
DATACENTERS = ["IT1", "IT2", "IT3"]
SENSOR_SHAPES = ("array", "status", "data", "embedded", "invalid")


def _power_item(index: int, rng: random.Random) -> Dict[str, Any]:
    site, prefix = rng.choice(SITES)
    amps = round(rng.uniform(5.0, 32.0), 2)
    return {
        "id": index,
        "rackId": 1000 + index,
        "rackName": f"{prefix}{index:05d}",
        "site": site,
        "dc": rng.choice(DATACENTERS),
        "maintenance": 0,
        "capacityKw": 7,
        "totalVolts": 230.0,
        "totalAmps": amps,
        "totalKw": round(amps * 0.23, 3),
        "totalKwh": round(rng.uniform(1000.0, 9000.0), 1),
        "phase": "Single Phase",
    }


def _sensor_item(index: int, rng: random.Random) -> Dict[str, Any]:
    site, prefix = rng.choice(SITES)
    return {
        "id": index,
        "nodeId": 200 + index,
        "sensorIndex": index % 4,
        "sensorType": "temperature_humidity",
        "rackId": 1000 + index,
        "rackName": f"{prefix}{index:05d}",
        "site": site,
        "dc": rng.choice(DATACENTERS),
        "temperature": round(rng.uniform(18.0, 32.0), 1),
        "humidity": round(rng.uniform(30.0, 70.0), 1),
        "lastUpdate": datetime.now(timezone.utc).isoformat(),
        "status": "valid",
    }


def _wrap_sensors(readings: List[Dict[str, Any]], shape: str) -> Any:
    if shape == "status":
        return {"status": "Success", "data": readings}
    if shape == "data":
        return {"data": readings}
    if shape == "embedded":
        return {"meta": {"count": len(readings)}, "readings": readings}
    if shape == "invalid":
        return {"message": "sensor gateway in maintenance"}
    return readings


def create_power_app(
    name: str = "racks-api",
    total_records: int = 62,
    random_seed: Optional[int] = None,
    error_rate: float = 0.0,
    extra_latency_ms: int = 0,
    report_count: bool = True
) -> FastAPI:
    """
    Create an OData-style rack power API.

    ``GET /odata/racks`` honours ``$skip`` and ``$top`` and answers with
    ``{"value": [...], "@odata.count": total}``.

    Args:
        name: Server name
        total_records: Number of racks served
        random_seed: Seed for deterministic data and errors
        error_rate: Probability of answering 503
        extra_latency_ms: Additional latency in milliseconds
        report_count: Whether to include ``@odata.count``

    Returns:
        FastAPI application
    """
    app = FastAPI(title=f"Mock API - {name}")
    rng = random.Random(random_seed)
    records = [_power_item(i + 1, rng) for i in range(total_records)]

    @app.get("/odata/racks")
    async def get_racks(
        skip: int = Query(0, alias="$skip", ge=0),
        top: Optional[int] = Query(None, alias="$top", ge=1)
    ):
        """Get a page of rack power readings."""
        if extra_latency_ms > 0:
            await asyncio.sleep(extra_latency_ms / 1000.0)

        if rng.random() < error_rate:
            raise HTTPException(status_code=503, detail="Simulated error")

        page = records[skip:skip + top] if top is not None else records[skip:]
        body: Dict[str, Any] = {"value": page}
        if report_count:
            body["@odata.count"] = total_records
        return body

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "healthy", "server": name}

    return app


def create_sensor_app(
    name: str = "sensors-api",
    sensor_count: int = 40,
    shape: str = "array",
    random_seed: Optional[int] = None,
    error_rate: float = 0.0
) -> FastAPI:
    """
    Create a sensor readings API answering ``GET /sensors`` in a chosen shape.

    Shapes: array, status ({status, data}), data ({data}), embedded
    ({meta, readings}) and invalid (no array at all).
    """
    if shape not in SENSOR_SHAPES:
        raise ValueError(f"Unknown sensor response shape: {shape}")

    app = FastAPI(title=f"Mock API - {name}")
    rng = random.Random(random_seed)
    readings = [_sensor_item(i + 1, rng) for i in range(sensor_count)]

    @app.get("/sensors")
    async def get_sensors():
        """Get all sensor readings."""
        if rng.random() < error_rate:
            raise HTTPException(status_code=502, detail="Simulated error")
        return _wrap_sensors(readings, shape)

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "healthy", "server": name}

    return app


def create_app() -> FastAPI:
    """
    Factory function for uvicorn --factory.

    Reads SERVER_NAME from environment to determine which server to create.
    Defaults to the racks API if not specified.
    """
    server_name = os.getenv("SERVER_NAME", "racks")
    seed = os.getenv("RANDOM_SEED")
    random_seed = int(seed) if seed is not None else None
    error_rate = float(os.getenv("ERROR_RATE", 0.0))

    if server_name == "sensors":
        return create_sensor_app(
            sensor_count=int(os.getenv("RECORDS", 40)),
            shape=os.getenv("SENSOR_SHAPE", "array"),
            random_seed=random_seed,
            error_rate=error_rate
        )

    return create_power_app(
        total_records=int(os.getenv("RECORDS", 62)),
        random_seed=random_seed,
        error_rate=error_rate,
        extra_latency_ms=int(os.getenv("EXTRA_LATENCY_MS", 0))
    )
