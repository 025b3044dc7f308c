import logging
from typing import Literal, Optional

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from backend.app.remote import (
    ASSISTANT_ERROR,
    ASSISTANT_GREETING,
    LONG_DIVISION_ERROR,
    QUICK_QUESTIONS,
    ChatMessage,
    GeminiClient,
)
from engine import CalculationError, ErrorKind, FormatSettings, RemoteSolverError, evaluate_expression
from engine.graph import (
    DEFAULT_SCALE,
    DEFAULT_SIZE,
    edit_graph_expression,
    graph_expression,
    sample_curve,
)
from session import Calculator
from session import storage, themes

load_dotenv()

logger = logging.getLogger(__name__)


class EvaluateRequest(BaseModel):
    expression: str
    precision: Optional[int] = Field(default=None, ge=0, le=8)


class EvaluateResponse(BaseModel):
    display: str
    value: Optional[float] = None
    fraction: Optional[str] = None
    error: Optional[str] = None


class KeypadRequest(BaseModel):
    label: str


class HistoryItem(BaseModel):
    expression: str
    result: str
    timestamp: str
    entry: str


class SessionView(BaseModel):
    display: str
    fraction: Optional[str]
    state: str
    error: Optional[str] = None
    is_solving: bool
    panel: Optional[str]
    action: Optional[str] = None
    history: list[HistoryItem]


class Settings(BaseModel):
    theme: Literal["light", "dark", "custom"]
    custom_theme: Optional[dict[str, str]] = None
    rounding_precision: str


class SettingsUpdate(BaseModel):
    theme: Optional[Literal["light", "dark", "custom"]] = None
    custom_theme: Optional[dict[str, str]] = None
    rounding_precision: Optional[str] = None


class SolveRequest(BaseModel):
    equation: str


class SolveResponse(BaseModel):
    equation: str
    answer: str


class ChatTurn(BaseModel):
    role: Literal["user", "model"]
    text: str


class ChatRequest(BaseModel):
    history: list[ChatTurn] = []
    message: str


class AssistantIntro(BaseModel):
    greeting: str
    quick_questions: list[str]


class LongDivisionRequest(BaseModel):
    dividend: str
    divisor: str


class LongDivisionResponse(BaseModel):
    result: str


class GraphRequest(BaseModel):
    expression: Optional[str] = None  # defaults to the session display
    label: Optional[str] = None       # one graph-keypad press
    width: int = Field(default=DEFAULT_SIZE, gt=0, le=4000)
    height: int = Field(default=DEFAULT_SIZE, gt=0, le=4000)
    scale: float = Field(default=DEFAULT_SCALE, gt=0)


class GraphResponse(BaseModel):
    expression: str
    polylines: list[list[tuple[float, float]]]


def create_app(solver=None) -> FastAPI:
    """Build the API; *solver* defaults to a Gemini client configured from the environment."""
    app = FastAPI(title="SciCalc API")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.solver = solver if solver is not None else GeminiClient.from_env()
    app.state.calculator = None
    _register_routes(app)
    return app


def get_solver(request: Request):
    return request.app.state.solver


def get_calculator(request: Request) -> Calculator:
    """The single in-process calculator session, created on first use."""
    state = request.app.state
    if state.calculator is None:
        state.calculator = Calculator(settings=storage.get_format_settings(),
                                      solver=state.solver)
    return state.calculator


def _session_view(calc: Calculator, action: Optional[str] = None) -> SessionView:
    kind = ErrorKind.from_label(calc.display)
    return SessionView(
        display=calc.display,
        fraction=calc.fraction,
        state=calc.state.value,
        error=kind.name if kind else None,
        is_solving=calc.is_solving,
        panel=calc.panel,
        action=action,
        history=[
            HistoryItem(expression=h.expression, result=h.result,
                        timestamp=h.timestamp, entry=h.entry)
            for h in calc.history
        ],
    )


def _register_routes(app: FastAPI) -> None:

    @app.post("/api/evaluate", response_model=EvaluateResponse)
    def evaluate(req: EvaluateRequest):
        if req.precision is None:
            settings = storage.get_format_settings()
        else:
            settings = FormatSettings(precision=req.precision)
        try:
            result = evaluate_expression(req.expression, settings)
        except CalculationError as e:
            return EvaluateResponse(display=e.label, error=e.kind.name)
        return EvaluateResponse(display=result.display, value=result.value,
                                fraction=result.fraction)

    @app.post("/api/keypad", response_model=SessionView)
    async def keypad(req: KeypadRequest, calc: Calculator = Depends(get_calculator)):
        result = calc.press(req.label)
        if result.action == "solve":
            await calc.solve()
        return _session_view(calc, result.action)

    @app.get("/api/session", response_model=SessionView)
    def session(calc: Calculator = Depends(get_calculator)):
        return _session_view(calc)

    @app.get("/api/history", response_model=list[HistoryItem])
    def history(calc: Calculator = Depends(get_calculator)):
        return _session_view(calc).history

    @app.delete("/api/history", response_model=list[HistoryItem])
    def clear_history(calc: Calculator = Depends(get_calculator)):
        calc.clear_history()
        return []

    @app.get("/api/settings", response_model=Settings)
    def read_settings():
        return storage.get_settings()

    @app.put("/api/settings", response_model=Settings)
    def update_settings(req: SettingsUpdate, calc: Calculator = Depends(get_calculator)):
        changes = req.model_dump(exclude_none=True)
        if "custom_theme" in changes:
            try:
                changes["custom_theme"] = themes.validate_custom_theme(changes["custom_theme"])
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
        if "rounding_precision" in changes:
            raw = changes["rounding_precision"]
            if FormatSettings.from_setting(raw).as_setting() != raw.strip():
                raise HTTPException(
                    status_code=400,
                    detail="Rounding precision must be 'None' or an integer from 0 to 8.")
        if changes.get("theme") == "custom" and not (
                changes.get("custom_theme") or storage.get_settings()["custom_theme"]):
            raise HTTPException(status_code=400, detail="No custom theme has been saved.")

        if "custom_theme" in changes and "theme" not in changes:
            storage.save_custom_theme(changes.pop("custom_theme"))
        settings = storage.save_settings(changes)
        calc.apply_settings(storage.get_format_settings(settings))
        return settings

    @app.delete("/api/settings", response_model=Settings)
    def reset_settings(calc: Calculator = Depends(get_calculator)):
        storage.clear_all_data()
        settings = storage.get_settings()
        calc.apply_settings(storage.get_format_settings(settings))
        return settings

    @app.get("/api/theme", response_model=dict[str, str])
    def theme():
        return storage.active_palette()

    @app.post("/api/solve", response_model=SolveResponse)
    async def solve(req: SolveRequest, solver=Depends(get_solver)):
        equation = req.equation.strip()
        if not equation:
            raise HTTPException(status_code=400, detail="Equation cannot be empty.")
        try:
            answer = await solver.solve(equation)
        except RemoteSolverError as e:
            logger.warning("Remote solve of %r failed: %s", equation, e)
            raise HTTPException(status_code=502, detail=ErrorKind.SOLVER_FAILED.label)
        return SolveResponse(equation=equation, answer=answer)

    @app.get("/api/assistant", response_model=AssistantIntro)
    def assistant():
        return AssistantIntro(greeting=ASSISTANT_GREETING, quick_questions=list(QUICK_QUESTIONS))

    @app.post("/api/chat")
    async def chat(req: ChatRequest, solver=Depends(get_solver)):
        message = req.message.strip()
        if not message:
            raise HTTPException(status_code=400, detail="Message cannot be empty.")
        history = [ChatMessage(role=t.role, text=t.text) for t in req.history]

        async def _stream():
            try:
                async for chunk in solver.chat(history, message):
                    yield chunk
            except RemoteSolverError as e:
                logger.warning("Assistant chat failed: %s", e)
                yield ASSISTANT_ERROR

        return StreamingResponse(_stream(), media_type="text/plain; charset=utf-8")

    @app.post("/api/long-division", response_model=LongDivisionResponse)
    async def long_division(req: LongDivisionRequest, solver=Depends(get_solver)):
        try:
            result = await solver.long_division(req.dividend.strip(), req.divisor.strip())
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except RemoteSolverError as e:
            logger.warning("Long division %s / %s failed: %s", req.dividend, req.divisor, e)
            raise HTTPException(status_code=502, detail=LONG_DIVISION_ERROR)
        return LongDivisionResponse(result=result)

    @app.post("/api/graph", response_model=GraphResponse)
    def graph(req: GraphRequest, calc: Calculator = Depends(get_calculator)):
        if req.expression is None:
            expression = graph_expression(calc.display)
        else:
            expression = req.expression
        if req.label is not None:
            expression = edit_graph_expression(expression, req.label)
        polylines = sample_curve(expression, req.width, req.height, req.scale)
        return GraphResponse(expression=expression, polylines=polylines)


app = create_app()
