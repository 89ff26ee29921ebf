from __future__ import annotations

import io
import logging
from typing import Any, Dict, Optional

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field

from tokenomics.errors import InsufficientSupply, InvalidOptions, InvalidToken, SimulationError
from tokenomics.models.simulation import Simulation

logger = logging.getLogger(__name__)

app = FastAPI(title="Tokenomics Simulator")

DEFAULT_TOKEN: Dict[str, Any] = {
    "name": "Demo Token",
    "symbol": "DEMO",
    "total_supply": 1_000_000,
    "airdrop_percentage": 5,
    "burn_rate": 1,
}
DEFAULT_OPTIONS: Dict[str, Any] = {
    "total_users": 100,
    "market_volatility": 0.5,
    "duration": 30,
}


class SimulationRequest(BaseModel):
    """Body of POST /simulation. Token and options are validated by the engine."""

    name: str = Field("Simulation", min_length=1)
    description: Optional[str] = None
    token: Dict[str, Any]
    options: Dict[str, Any]


@app.exception_handler(SimulationError)
async def simulation_error_handler(request: Request, exc: SimulationError) -> JSONResponse:
    if isinstance(exc, (InvalidToken, InvalidOptions)):
        status_code = 422
    elif isinstance(exc, InsufficientSupply):
        status_code = 409
    else:
        status_code = 500
    content: Dict[str, Any] = {"error": exc.kind, "detail": str(exc)}
    if isinstance(exc, InsufficientSupply) and exc.report is not None:
        content["report"] = exc.report.model_dump(mode="json")
    logger.info("Simulation request failed with %s: %s", exc.kind, exc)
    return JSONResponse(status_code=status_code, content=content)


def _render_png(fig) -> bytes:
    buf = io.BytesIO()
    fig.savefig(
        buf,
        format="png",
        bbox_inches="tight",
        facecolor=fig.get_facecolor(),
        edgecolor="none",
    )
    return buf.getvalue()


def _run_and_plot(token: Dict[str, Any], options: Dict[str, Any]) -> bytes:
    simulation = Simulation.from_config(token, options, name="Chart")
    simulation.run()
    df = simulation.to_dataframe()
    # Dark theme for chart
    bg = "#0c0c14"
    fg = "#e8e8ea"
    accent = "#6aa1ff"
    fig, ax = plt.subplots(figsize=(8, 3), facecolor=bg)
    ax.set_facecolor(bg)
    ax.plot(df.index, df["price"], label="Price", color=accent, linewidth=1.8)
    ax.set_title(f"{token['name']} price", color=fg)
    ax.set_xlabel("Interval", color=fg)
    ax.set_ylabel("Price", color=fg)
    ax.tick_params(colors=fg, labelcolor=fg)
    for spine in ax.spines.values():
        spine.set_color((1, 1, 1, 0.12))
    ax.grid(True, color=(1, 1, 1, 0.15), linewidth=0.8)
    leg = ax.legend(loc="best")
    if leg:
        leg.get_frame().set_facecolor(bg)
        leg.get_frame().set_edgecolor((1, 1, 1, 0.1))
        for text in leg.get_texts():
            text.set_color(fg)
    png = _render_png(fig)
    plt.close(fig)
    return png


# Sync handlers: FastAPI runs them in its threadpool.
@app.get("/healthz")
def healthz() -> Dict[str, str]:
    return {"status": "ok"}


@app.post("/simulation", status_code=201)
def create_simulation(body: SimulationRequest) -> Dict[str, Any]:
    simulation = Simulation.from_config(
        body.token, body.options, name=body.name, description=body.description
    )
    simulation.run()
    return simulation.to_dict()


@app.get("/chart", response_class=Response)
def chart(
    total_users: Optional[int] = None,
    market_volatility: Optional[float] = None,
    duration: Optional[int] = None,
) -> Response:
    """Price chart of the default simulation as a PNG image."""
    options = dict(DEFAULT_OPTIONS)
    overrides = {"total_users": total_users, "market_volatility": market_volatility, "duration": duration}
    options.update({key: value for key, value in overrides.items() if value is not None})
    return Response(content=_run_and_plot(DEFAULT_TOKEN, options), media_type="image/png")
