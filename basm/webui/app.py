from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from fastapi import FastAPI, HTTPException, Response, status
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, Field, validator

from basm.bf_interpreter import BrainfuckInterpreter, ExecutionError, ExecutionState
from basm.compiler import LINE_SEPARATOR, CodeGenerator
from basm.instructions import format_instruction
from basm.parser import ParseError, Parser
from basm.visualizer import VisualizerSession

from .session import SessionRecord, SessionStore

LANGUAGES = {"brainfuck", "basm"}


def _string_to_input_bytes(data: str) -> List[int]:
    return [ord(ch) for ch in data]


def _parse_error_detail(exc: ParseError) -> dict:
    return {"message": exc.message, "line": exc.line, "column": exc.column}


def _calculate_total_steps(code: str, input_template: List[int], cap: int = 10000) -> Tuple[int, bool]:
    interpreter = BrainfuckInterpreter()
    total = 0
    try:
        for state in interpreter.step(code, input_data=list(input_template), max_steps=cap):
            total = max(total, state.step)
    except ExecutionError:
        # Runs that stop early still report how far they got.
        return total, total >= cap
    return total, False


class CompileRequest(BaseModel):
    source: str


class CompiledInstruction(BaseModel):
    index: int
    line: int
    text: str
    fragment: str


class CompileResponse(BaseModel):
    code: str
    instructions: List[CompiledInstruction]


class SessionConfiguration(BaseModel):
    code: str = ""
    input: str = ""
    tape_window: int = Field(default=10, ge=0)
    max_steps: Optional[int] = Field(default=None, ge=1)
    history_limit: int = Field(default=200, ge=1)
    language: str = "brainfuck"

    @validator("language")
    def validate_language(cls, value: str) -> str:
        normalized = value.lower()
        if normalized not in LANGUAGES:
            raise ValueError("language must be either 'brainfuck' or 'basm'")
        return normalized


class SessionState(BaseModel):
    step: int
    pc: int
    command: Optional[str]
    pointer: int
    tape_start: int
    tape: List[int]
    output: str
    code_length: int
    instruction_index: Optional[int]


class SessionPayload(BaseModel):
    session_id: str
    language: str
    code: str
    original_source: Optional[str]
    instructions: Optional[List[str]]
    state: SessionState
    history: List[SessionState]
    finished: bool
    history_size: int
    breakpoints: List[int]
    hit_breakpoint: Optional[int]
    total_steps: int
    total_steps_capped: bool


class StepResponse(BaseModel):
    session_id: str
    language: str
    code: str
    states: List[SessionState]
    history: List[SessionState]
    finished: bool
    history_size: int
    breakpoints: List[int]
    hit_breakpoint: Optional[int]
    total_steps: int
    total_steps_capped: bool


class StepRequest(BaseModel):
    count: int = Field(default=1, ge=1)


class RunRequest(BaseModel):
    limit: Optional[int] = Field(default=None, ge=1)
    ignore_breakpoints: bool = False


class BreakpointRequest(BaseModel):
    pc: Optional[int] = Field(default=None, ge=0)
    instruction: Optional[int] = Field(default=None, ge=0)


def _serialize_state(session: VisualizerSession, state: ExecutionState) -> SessionState:
    return SessionState(
        step=state.step,
        pc=state.pc,
        command=state.command,
        pointer=state.pointer,
        tape_start=state.tape_start,
        tape=list(state.tape),
        output=state.output,
        code_length=state.code_length,
        instruction_index=session.instruction_at(state.pc),
    )


def _serialize_states(session: VisualizerSession, states: Sequence[ExecutionState]) -> List[SessionState]:
    return [_serialize_state(session, state) for state in states]


def _build_payload(record: SessionRecord) -> SessionPayload:
    session = record.session
    instructions = None
    if session.instructions is not None:
        instructions = [format_instruction(instruction) for instruction in session.instructions]
    return SessionPayload(
        session_id=record.session_id,
        language=record.language,
        code=session.code,
        original_source=record.original_source,
        instructions=instructions,
        state=_serialize_state(session, session.current_state()),
        history=_serialize_states(session, session.history),
        finished=session.is_finished(),
        history_size=len(session.history),
        breakpoints=session.list_breakpoints(),
        hit_breakpoint=session.hit_breakpoint,
        total_steps=record.total_steps,
        total_steps_capped=record.total_steps_capped,
    )


def _build_step_response(record: SessionRecord, states: Sequence[ExecutionState]) -> StepResponse:
    session = record.session
    return StepResponse(
        session_id=record.session_id,
        language=record.language,
        code=session.code,
        states=_serialize_states(session, states),
        history=_serialize_states(session, session.history),
        finished=session.is_finished(),
        history_size=len(session.history),
        breakpoints=session.list_breakpoints(),
        hit_breakpoint=session.hit_breakpoint,
        total_steps=record.total_steps,
        total_steps_capped=record.total_steps_capped,
    )


def create_app(
    store: Optional[SessionStore] = None,
    *,
    static_dir: Optional[Path] = None,
) -> FastAPI:
    session_store = store or SessionStore()
    app = FastAPI(title="basm WebUI API", version="0.1.0")

    static_directory = static_dir or Path(__file__).resolve().parent / "static"
    if static_directory.exists():
        app.mount("/static", StaticFiles(directory=str(static_directory)), name="static")

        @app.get("/", response_class=FileResponse)
        def serve_index() -> FileResponse:
            index_path = static_directory / "index.html"
            if not index_path.exists():
                raise HTTPException(
                    status_code=status.HTTP_404_NOT_FOUND,
                    detail="index.html not found",
                )
            return FileResponse(index_path)

    def _lookup(session_id: str) -> SessionRecord:
        try:
            return session_store.get(session_id)
        except KeyError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    @app.post("/api/compile", response_model=CompileResponse)
    def compile_source(payload: CompileRequest) -> CompileResponse:
        parser = Parser()
        try:
            program = parser.parse(payload.source)
        except ParseError as exc:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=_parse_error_detail(exc),
            ) from exc
        fragments = CodeGenerator().fragments(program)
        instructions = [
            CompiledInstruction(
                index=index,
                line=line,
                text=format_instruction(instruction),
                fragment=fragment,
            )
            for index, (instruction, line, fragment) in enumerate(
                zip(program, parser.instruction_lines, fragments)
            )
        ]
        code = "".join(fragment + LINE_SEPARATOR for fragment in fragments)
        return CompileResponse(code=code, instructions=instructions)

    @app.post("/api/session", response_model=SessionPayload, status_code=status.HTTP_201_CREATED)
    def create_session(payload: SessionConfiguration) -> SessionPayload:
        input_bytes = _string_to_input_bytes(payload.input)
        options = dict(
            tape_window=payload.tape_window,
            max_steps=payload.max_steps,
            history_limit=payload.history_limit,
        )
        try:
            if payload.language == "basm":
                session = VisualizerSession.from_source(payload.code, input_bytes, **options)
            else:
                session = VisualizerSession(payload.code, input_template=input_bytes, **options)
            total_steps, total_steps_capped = _calculate_total_steps(session.code, input_bytes)
        except ParseError as exc:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=_parse_error_detail(exc),
            ) from exc
        except ValueError as exc:
            # Unbalanced brackets in raw Brainfuck.
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=str(exc),
            ) from exc
        record = session_store.add(
            session,
            language=payload.language,
            total_steps=total_steps,
            total_steps_capped=total_steps_capped,
        )
        return _build_payload(record)

    @app.get("/api/session/{session_id}", response_model=SessionPayload)
    def get_session(session_id: str) -> SessionPayload:
        return _build_payload(_lookup(session_id))

    @app.post("/api/session/{session_id}/reset", response_model=SessionPayload)
    def reset_session(session_id: str) -> SessionPayload:
        _lookup(session_id)
        return _build_payload(session_store.reset(session_id))

    @app.post("/api/session/{session_id}/step", response_model=StepResponse)
    def step_session(session_id: str, payload: StepRequest) -> StepResponse:
        record = _lookup(session_id)
        try:
            states = record.session.step_forward(payload.count)
        except ExecutionError as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
        return _build_step_response(record, states)

    @app.post("/api/session/{session_id}/run", response_model=StepResponse)
    def run_session(session_id: str, payload: RunRequest) -> StepResponse:
        record = _lookup(session_id)
        session = record.session
        saved_breakpoints: Optional[set[int]] = None
        if payload.ignore_breakpoints:
            saved_breakpoints = set(session.breakpoints)
            session.clear_breakpoints()

        try:
            states = session.run_until_break(payload.limit)
        except ExecutionError as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
        finally:
            if saved_breakpoints is not None:
                session.breakpoints = saved_breakpoints
                session.hit_breakpoint = None

        return _build_step_response(record, states)

    @app.post("/api/session/{session_id}/breakpoints", response_model=SessionPayload)
    def add_breakpoint(session_id: str, payload: BreakpointRequest) -> SessionPayload:
        record = _lookup(session_id)
        if (payload.pc is None) == (payload.instruction is None):
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="Specify exactly one of 'pc' or 'instruction'",
            )
        if payload.pc is not None:
            record.session.add_breakpoint(payload.pc)
        else:
            try:
                record.session.add_instruction_breakpoint(payload.instruction)
            except IndexError as exc:
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
        return _build_payload(record)

    @app.delete("/api/session/{session_id}/breakpoints/{pc}", response_model=SessionPayload)
    def remove_breakpoint(session_id: str, pc: int) -> SessionPayload:
        record = _lookup(session_id)
        if not record.session.remove_breakpoint(pc):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Breakpoint not found at pc={pc}",
            )
        return _build_payload(record)

    @app.delete("/api/session/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
    def delete_session(session_id: str) -> Response:
        if not session_store.remove(session_id):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Unknown session id: {session_id}",
            )
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    return app


__all__ = ["create_app"]
