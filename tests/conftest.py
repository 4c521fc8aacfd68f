# tests/conftest.py
import logging
from typing import List, Optional, Union, Callable

import pytest

from case_reasoning.config.settings import (
    EntityResolutionConfig, ContradictionDetectionConfig, SuspicionScoringConfig
)
from case_reasoning.core.exceptions import OracleUnavailableError
from case_reasoning.models.enums import FactType, TimeCertainty
from case_reasoning.models.fact import AtomicFact, FactSource, TimeReference
from case_reasoning.services.oracle import InferenceOracle
from case_reasoning.services.repository import InMemoryCaseRepository

CASE_ID = "case-1"


class FakeOracle(InferenceOracle):
    """Returns canned replies in order (the last one repeats) and records every prompt."""

    name = "fake"

    def __init__(self, replies: Union[str, List[str], Callable[[str], str]]):
        self.replies = replies
        self.prompts: List[str] = []

    def infer(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if callable(self.replies):
            return self.replies(prompt)
        if isinstance(self.replies, str):
            return self.replies
        index = min(len(self.prompts) - 1, len(self.replies) - 1)
        return self.replies[index]


class FailingOracle(InferenceOracle):
    """Always unreachable."""

    name = "failing"

    def __init__(self):
        self.calls = 0

    def infer(self, prompt: str) -> str:
        self.calls += 1
        raise OracleUnavailableError("oracle is down", oracle_name=self.name)


@pytest.fixture
def logger():
    return logging.getLogger("case_reasoning.tests")


@pytest.fixture
def repository():
    repo = InMemoryCaseRepository()
    repo.add_case(CASE_ID)
    return repo


@pytest.fixture
def er_config():
    return EntityResolutionConfig(enable_oracle=False)


@pytest.fixture
def er_oracle_config():
    return EntityResolutionConfig(enable_oracle=True)


@pytest.fixture
def cd_config():
    return ContradictionDetectionConfig(enable_oracle=False)


@pytest.fixture
def cd_oracle_config():
    return ContradictionDetectionConfig(enable_oracle=True)


@pytest.fixture
def ss_config():
    return SuspicionScoringConfig(enable_oracle=False, max_parallel_scores=2)


@pytest.fixture
def ss_oracle_config():
    return SuspicionScoringConfig(enable_oracle=True, enable_oracle_refinement=True)


def make_fact(fact_id: str, fact_type: FactType, subject: str, predicate: str,
              speaker: str = "", location: Optional[str] = None,
              earliest: Optional[str] = None, latest: Optional[str] = None,
              certainty: TimeCertainty = TimeCertainty.UNKNOWN, time_text: str = "",
              date_recorded: Optional[str] = None, case_id: str = CASE_ID, **kwargs) -> AtomicFact:
    time_reference = None
    if earliest or time_text:
        time_reference = TimeReference(earliest=earliest, latest=latest, certainty=certainty,
                                       original_text=time_text)
    return AtomicFact(
        id=fact_id,
        case_id=case_id,
        fact_type=fact_type,
        subject=subject,
        predicate=predicate,
        location=location,
        time_reference=time_reference,
        source=FactSource(speaker_name=speaker, date_recorded=date_recorded),
        **kwargs
    )
