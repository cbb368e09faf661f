"""Test configuration and fixtures."""

import asyncio
import dataclasses
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from evolving_app.db.base import Base
from evolving_app.generation.base import Generator
from evolving_app.programs.types import (
    ProgramArtifact,
    ProgramInput,
    ProgramPhase,
    ProgramState,
)

BASE_TIME = datetime(2026, 1, 1, tzinfo=timezone.utc)


class FakeProgramStore:
    """In-memory stand-in for ProgramStore."""

    def __init__(self):
        self.state: Optional[ProgramState] = None
        self.inputs: List[ProgramInput] = []
        self.artifacts: Dict[int, ProgramArtifact] = {}
        self._next_input_id = 1
        self._next_artifact_id = 1

    def add_input(
        self,
        profile_id: str,
        input_text: str,
        iteration_id: Optional[int] = None,
    ) -> ProgramInput:
        item = ProgramInput(
            id=self._next_input_id,
            profile_id=profile_id,
            input_text=input_text,
            iteration_id=iteration_id,
            created_at=BASE_TIME + timedelta(seconds=self._next_input_id),
        )
        self._next_input_id += 1
        self.inputs.append(item)
        return item

    def force_phase(self, phase: ProgramPhase) -> ProgramState:
        current = self.state.current_iteration_id if self.state else None
        self.state = ProgramState(phase=phase, current_iteration_id=current)
        return self.state

    def get_state(self) -> Optional[ProgramState]:
        return self.state

    def set_state(self, phase: ProgramPhase, current_iteration_id: Optional[int]) -> None:
        self.state = ProgramState(phase=phase, current_iteration_id=current_iteration_id)

    def list_unattributed_inputs(self) -> List[ProgramInput]:
        return [i for i in self.inputs if i.iteration_id is None]

    def list_inputs_for_iteration(self, iteration_id: int) -> List[ProgramInput]:
        return [i for i in self.inputs if i.iteration_id == iteration_id]

    def attach_inputs(self, input_ids: List[int], iteration_id: int) -> int:
        ids = set(input_ids)
        self.inputs = [
            dataclasses.replace(i, iteration_id=iteration_id) if i.id in ids else i
            for i in self.inputs
        ]
        return len(ids)

    def insert_placeholder(self) -> int:
        artifact_id = self._next_artifact_id
        self._next_artifact_id += 1
        self.artifacts[artifact_id] = ProgramArtifact(
            id=artifact_id, code="", created_at=BASE_TIME
        )
        return artifact_id

    def update_code(self, artifact_id: int, code: str) -> None:
        self.artifacts[artifact_id] = dataclasses.replace(
            self.artifacts[artifact_id], code=code
        )

    def get_artifact(self, artifact_id: int) -> Optional[ProgramArtifact]:
        return self.artifacts.get(artifact_id)

    def publish_artifact(self, code: str) -> int:
        artifact_id = self.insert_placeholder()
        self.update_code(artifact_id, code)
        self.set_state(ProgramPhase.ITERATION, artifact_id)
        return artifact_id


class ScriptedGenerator(Generator):
    """Generator returning queued responses, optionally failing or stalling."""

    def __init__(self, responses: Optional[List[str]] = None, default: str = "```html\n<p>v</p>\n```"):
        self.responses = list(responses or [])
        self.default = default
        self.prompts: List[str] = []
        self.failures: List[Exception] = []
        self.gate: Optional[asyncio.Event] = None
        self.delay = 0.0

    @property
    def name(self) -> str:
        return "scripted"

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.gate is not None:
            await self.gate.wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.failures:
            raise self.failures.pop(0)
        if self.responses:
            return self.responses.pop(0)
        return self.default


@pytest.fixture
def fake_store() -> FakeProgramStore:
    return FakeProgramStore()


@pytest.fixture
def generator() -> ScriptedGenerator:
    return ScriptedGenerator()


@pytest.fixture
def db_engine():
    """In-memory SQLite engine with all tables created."""
    from evolving_app.db import models  # noqa: F401

    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
