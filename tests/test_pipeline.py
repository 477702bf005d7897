"""Tests for the use case pipeline and the run supervisor."""

from __future__ import annotations

import itertools
import json
import logging
import re
import threading

import pytest

from memevidence.core.config import (
    GenerationConfig,
    PipelineConfig,
    RetryConfig,
    TimeoutConfig,
)
from memevidence.core.result import GenerationFailed, SystemicFailureError
from memevidence.core.retry import BackoffPolicy
from memevidence.core.stats import GenerationStats
from memevidence.data.schema import EvidenceUseCase, Persona
from memevidence.generation.persistence import (
    evidence_file_path,
    load_evidence_items,
    save_evidence_to_file,
)
from memevidence.generation.pipeline import (
    VERIFICATION_FAILED,
    EvidencePipeline,
    UseCaseState,
)
from memevidence.generation.supervisor import GenerationSupervisor, PersonResult
from memevidence.llm.client import LLMClient, LLMResponse, MissingAPIKeyError
from memevidence.strategies import ChangingStrategy, TemporalStrategy, UserFactsStrategy
from memevidence.verification.answering import Judge
from memevidence.verification.executor import VerificationExecutor

EVIDENCE = "I keep the spare house key under the blue flower pot"
MODEL_ANSWER = "It is under the blue flower pot, near the door"


class FakeGenerationClient(LLMClient):
    """Routes use case, core and conversation prompts to canned replies.

    Conversations copy whatever evidence the prompt lists, so placement is
    valid unless ``bad_conversations`` asks otherwise.
    """

    def __init__(
        self,
        name: str = "gen-model",
        bad_cores: int = 0,
        bad_conversations: int = 0,
        core_error: Exception | None = None,
    ):
        self._name = name
        self.bad_cores = bad_cores
        self.bad_conversations = bad_conversations
        self.core_error = core_error
        self.calls = {"use_case": 0, "core": 0, "conversation": 0}
        self._lock = threading.Lock()

    @property
    def model_name(self) -> str:
        return self._name

    def _take(self, attr: str) -> bool:
        with self._lock:
            remaining = getattr(self, attr)
            if remaining > 0:
                setattr(self, attr, remaining - 1)
                return True
            return False

    def generate_content(self, prompt: str) -> LLMResponse:
        if "You write realistic conversations" in prompt:
            self.calls["conversation"] += 1
            evidence = re.findall(r"^\d+\. \[(\w+)\] (.+)$", prompt, re.MULTILINE)
            if self._take("bad_conversations"):
                evidence = [(speaker, "Something unrelated about the weather today") for speaker, _ in evidence]
            content = {
                "conversations": [
                    {
                        "messages": [
                            {"speaker": "User", "text": "Hey there, quick question about home stuff."},
                            {"speaker": speaker, "text": text},
                            {"speaker": "Assistant", "text": "Good to know, I will remember that."},
                        ]
                    }
                    for speaker, text in evidence
                ]
            }
        elif "You create the evidence core" in prompt:
            self.calls["core"] += 1
            if self.core_error is not None:
                raise self.core_error
            if self._take("bad_cores"):
                return LLMResponse(content="Sorry, I can't do that.", model_name=self._name)
            n = int(re.search(r"Exactly (\d+) evidence message", prompt).group(1))
            content = {
                "question": "Where is the spare house key?",
                "answer": "Under the blue flower pot",
                "message_evidences": [
                    {"speaker": "User", "text": EVIDENCE if i == 0 else f"Update {i}: the key moved to garage shelf {i}"}
                    for i in range(n)
                ],
            }
        else:
            self.calls["use_case"] += 1
            count = int(re.search(r"Generate (\d+) high-level", prompt).group(1))
            content = {
                "use_cases": [
                    {"id": i, "category": "Personal Life", "scenario_description": f"Scenario {i}"}
                    for i in range(1, count + 1)
                ]
            }
        return LLMResponse(content=json.dumps(content), model_name=self._name)


class RuleJudgeClient(LLMClient):
    """Answers correctly only when the evidence is in context; judges by the answer."""

    def __init__(self, always_wrong: bool = False):
        self.always_wrong = always_wrong

    @property
    def model_name(self) -> str:
        return "judge-model"

    def generate_content(self, prompt: str) -> LLMResponse:
        if prompt.startswith("Answer the question based on"):
            text = MODEL_ANSWER if EVIDENCE in prompt else "I have no idea."
        elif not self.always_wrong and "near the door" in prompt:
            text = "RIGHT"
        else:
            text = "WRONG"
        return LLMResponse(content=text, model_name="judge-model")


class ListClock:
    """Returns the scripted times in order, then repeats the last one."""

    def __init__(self, *times: float):
        self.times = list(times)

    def __call__(self) -> float:
        return self.times.pop(0) if len(self.times) > 1 else self.times[0]


def _config(**generation) -> PipelineConfig:
    return PipelineConfig(
        retry=RetryConfig(
            evidence_max_retries=3, conversation_max_retries=2, initial_delay_s=0, max_delay_s=0
        ),
        generation=GenerationConfig(**generation),
    )


def _executor(always_wrong: bool = False) -> VerificationExecutor:
    client = RuleJudgeClient(always_wrong)
    return VerificationExecutor(
        Judge(client, client, max_retries=1, policy=BackoffPolicy(initial_delay=0, max_delay=0))
    )


PERSONA = Persona("Personal", "Home Owner", "Owns a small house", id="person-1")
USE_CASE = EvidenceUseCase(1, "Personal Life", "The user mentions where the spare key is.", "uc-model")


def _pipeline(client=None, executor=None, config=None, stats=None, strategy=None, **kwargs):
    sleeps: list[float] = []
    pipeline = EvidencePipeline(
        strategy or UserFactsStrategy(1),
        client or FakeGenerationClient(),
        executor or _executor(),
        config or _config(),
        stats,
        sleep=sleeps.append,
        **kwargs,
    )
    return pipeline, sleeps


# ---------------------------------------------------------------------------
# EvidencePipeline
# ---------------------------------------------------------------------------


class TestEvidencePipeline:
    def test_accepted_first_attempt(self):
        pipeline, sleeps = _pipeline()
        outcome = pipeline.process(PERSONA, USE_CASE)

        assert outcome.state is UseCaseState.ACCEPTED
        assert outcome.accepted
        assert outcome.attempts == 1
        item = outcome.item
        assert item.person_id == "person-1"
        assert item.category == "Personal Life"
        assert item.core_model_name == "gen-model"
        assert item.use_case_model_name == "uc-model"
        assert item.conversations[0].contains_evidence is True
        assert [c.check_name for c in outcome.verification.checks] == [
            "with_evidence",
            "without_evidence",
        ]

        stats = pipeline.stats
        assert stats.evidence_cores_generated == 1
        assert stats.conversations_generated == 1
        assert stats.verification_attempts == 1
        assert stats.verification_passes == 1
        assert stats.evidence_items_completed == 1
        assert stats.total_retry_attempts == 1
        assert stats.successful_evidence_retries == 0
        assert stats.use_case_models == {"uc-model": 1}
        assert stats.core_models == {"gen-model": 1}
        assert stats.conversation_models == {"gen-model": 1}
        assert sleeps == []

    def test_retries_with_fresh_core_after_bad_core(self):
        client = FakeGenerationClient(bad_cores=2)
        pipeline, sleeps = _pipeline(client)
        outcome = pipeline.process(PERSONA, USE_CASE)

        assert outcome.accepted
        assert outcome.attempts == 3
        assert client.calls["core"] == 3
        assert pipeline.stats.successful_evidence_retries == 1
        assert pipeline.stats.total_retry_attempts == 3
        assert len(sleeps) == 2

    def test_conversation_retry_keeps_core(self):
        client = FakeGenerationClient(bad_conversations=1)
        pipeline, _ = _pipeline(client)
        outcome = pipeline.process(PERSONA, USE_CASE)

        assert outcome.accepted
        assert outcome.attempts == 1
        assert client.calls["core"] == 1
        assert client.calls["conversation"] == 2
        assert pipeline.stats.conversation_validation_attempts == 2
        assert pipeline.stats.conversation_validation_failures == 1
        assert pipeline.stats.validation_failure_categories == {"evidence_not_found": 1}

    def test_abandoned_after_failed_verification(self):
        client = FakeGenerationClient()
        pipeline, sleeps = _pipeline(client, _executor(always_wrong=True))
        outcome = pipeline.process(PERSONA, USE_CASE)

        assert outcome.state is UseCaseState.ABANDONED
        assert outcome.item is None
        assert outcome.attempts == 3
        assert outcome.error.category == VERIFICATION_FAILED
        assert outcome.verification.failure_reason.startswith("with_evidence:")
        assert client.calls["core"] == 3
        stats = pipeline.stats
        assert stats.evidence_cores_generated == 1
        assert stats.verification_failures == 3
        assert stats.abandoned_evidence_cores == 1
        assert stats.evidence_items_completed == 0
        assert len(sleeps) == 2

    def test_abandoned_without_core_not_counted_as_abandoned_core(self):
        pipeline, _ = _pipeline(FakeGenerationClient(bad_cores=10))
        outcome = pipeline.process(PERSONA, USE_CASE)
        assert outcome.state is UseCaseState.ABANDONED
        assert outcome.error.category == "decode_failed"
        assert pipeline.stats.abandoned_evidence_cores == 0

    def test_no_checks_accepts_without_judge_calls(self):
        pipeline, _ = _pipeline(strategy=TemporalStrategy(1), executor=_executor(always_wrong=True))
        outcome = pipeline.process(PERSONA, USE_CASE)
        assert outcome.accepted
        assert outcome.verification.checks == []

    def test_times_out_between_attempts(self):
        clock = ListClock(0.0, 10.0, 10_000.0)
        pipeline, _ = _pipeline(executor=_executor(always_wrong=True), clock=clock)
        outcome = pipeline.process(PERSONA, USE_CASE)

        assert outcome.state is UseCaseState.TIMED_OUT
        assert outcome.state.terminal
        assert outcome.attempts == 1
        assert pipeline.stats.use_cases_timed_out == 1
        assert pipeline.stats.abandoned_evidence_cores == 1

    def test_fatal_error_early_is_systemic(self):
        client = FakeGenerationClient(core_error=MissingAPIKeyError("no key"))
        pipeline, _ = _pipeline(client)
        with pytest.raises(SystemicFailureError, match="Early failure"):
            pipeline.process(PERSONA, USE_CASE)
        assert client.calls["core"] == 1

    def test_fatal_error_later_raises_generation_failed(self):
        stats = GenerationStats()
        stats.increment("people_completed")
        client = FakeGenerationClient(core_error=MissingAPIKeyError("no key"))
        pipeline, _ = _pipeline(client, stats=stats)
        with pytest.raises(GenerationFailed) as exc_info:
            pipeline.process(PERSONA, USE_CASE)
        assert exc_info.value.error.is_fatal

    def test_changing_strategy_runs_its_checks(self):
        pipeline, _ = _pipeline(strategy=ChangingStrategy(2))
        outcome = pipeline.process(PERSONA, USE_CASE)
        names = [c.check_name for c in outcome.verification.checks]
        assert names[:2] == ["with_evidence", "without_evidence"]
        # The fake judge still answers correctly from the first evidence message
        assert names[-1] == "partial_evidence_latest"
        assert not outcome.accepted

    def test_aborted_run_makes_no_calls(self):
        abort = threading.Event()
        abort.set()
        client = FakeGenerationClient()
        pipeline, _ = _pipeline(client, abort=abort)
        outcome = pipeline.process(PERSONA, USE_CASE)

        assert outcome.state is UseCaseState.ABANDONED
        assert outcome.attempts == 0
        assert client.calls == {"use_case": 0, "core": 0, "conversation": 0}

    def test_abort_during_core_skips_conversations(self):
        abort = threading.Event()

        class AbortingClient(FakeGenerationClient):
            def generate_content(self, prompt: str) -> LLMResponse:
                response = super().generate_content(prompt)
                if "You create the evidence core" in prompt:
                    abort.set()
                return response

        client = AbortingClient()
        pipeline, sleeps = _pipeline(client, abort=abort)
        outcome = pipeline.process(PERSONA, USE_CASE)

        assert outcome.state is UseCaseState.ABANDONED
        assert outcome.item is None
        assert client.calls["core"] == 1
        assert client.calls["conversation"] == 0
        assert pipeline.stats.evidence_items_completed == 0
        assert sleeps == []


# ---------------------------------------------------------------------------
# GenerationSupervisor
# ---------------------------------------------------------------------------


def _people(n: int) -> list[Persona]:
    return [Persona("Personal", f"Person {i}", "Someone", id=f"p{i}") for i in range(n)]


def _supervisor(tmp_path, config=None, executor=None, client=None, **kwargs):
    return GenerationSupervisor(
        UserFactsStrategy(1),
        client or FakeGenerationClient(),
        executor or _executor(),
        config or _config(people_to_process=2, use_cases_per_person=2),
        output_dir=tmp_path,
        checkpoint="abc123",
        sleep=lambda _: None,
        **kwargs,
    )


def _accepted_item():
    pipeline, _ = _pipeline()
    return pipeline.process(PERSONA, USE_CASE).item


class TestPlanning:
    def test_use_cases_per_person_from_expected_totals(self, tmp_path):
        supervisor = _supervisor(tmp_path, config=_config(people_to_process=50))
        assert supervisor.use_cases_per_person() == 100

    def test_use_cases_per_person_rounds_up(self, tmp_path):
        supervisor = GenerationSupervisor(
            ChangingStrategy(3),
            FakeGenerationClient(),
            _executor(),
            _config(people_to_process=7),
            output_dir=tmp_path,
        )
        # changing with 3 messages is sized by the 2-evidence total
        assert supervisor.use_cases_per_person() == 429

    def test_default_output_dir(self):
        config = _config()
        config.generation.output_root = "out"
        config.generation.version = "v2"
        supervisor = GenerationSupervisor(
            UserFactsStrategy(2), FakeGenerationClient(), _executor(), config
        )
        assert supervisor.output_dir.as_posix() == "out/user_facts/2_evidence/v2"

    def test_plan_tops_up_fewest_first(self, tmp_path):
        a, b, c = _people(3)
        item = _accepted_item()
        save_evidence_to_file(a, [item, item], tmp_path, checkpoint="old")
        save_evidence_to_file(c, [item], tmp_path, checkpoint="old")
        supervisor = _supervisor(tmp_path, config=_config(people_to_process=2, use_cases_per_person=3))

        assert [(p.id, n) for p, n in supervisor.plan([a, b, c])] == [("p1", 3), ("p2", 2)]

    def test_nothing_to_generate(self, tmp_path, capsys):
        (person,) = _people(1)
        item = _accepted_item()
        save_evidence_to_file(person, [item, item], tmp_path, checkpoint="old")
        client = FakeGenerationClient()
        supervisor = _supervisor(tmp_path, client=client)

        assert supervisor.run([person]) == []
        assert "Nothing to generate" in capsys.readouterr().out
        assert client.calls["use_case"] == 0


class TestFailureRate:
    def _result(self, total: int, accepted: int) -> PersonResult:
        item = _accepted_item()
        return PersonResult(_people(1)[0], total, items=[item] * accepted)

    def test_failure_rate(self):
        assert self._result(4, 1).failure_rate == 0.75
        assert PersonResult(_people(1)[0], 0).failure_rate == 0.0

    def test_all_failed_is_systemic(self, tmp_path):
        with pytest.raises(SystemicFailureError, match="All 3 use cases failed"):
            _supervisor(tmp_path)._check_failure_rate(self._result(3, 0))

    def test_above_fatal_rate_is_systemic(self, tmp_path):
        with pytest.raises(SystemicFailureError, match="Critical failure rate"):
            _supervisor(tmp_path)._check_failure_rate(self._result(100, 3))

    def test_above_warning_rate_logs(self, tmp_path, caplog):
        with caplog.at_level(logging.WARNING):
            _supervisor(tmp_path)._check_failure_rate(self._result(10, 2))
        assert "High failure rate" in caplog.text

    def test_healthy_rate_is_silent(self, tmp_path, caplog):
        with caplog.at_level(logging.WARNING):
            _supervisor(tmp_path)._check_failure_rate(self._result(10, 9))
        assert "failure rate" not in caplog.text


class TestRun:
    def test_generates_and_saves_per_person(self, tmp_path, capsys):
        people = _people(2)
        supervisor = _supervisor(tmp_path)
        results = supervisor.run(people)

        assert sorted(len(r.items) for r in results) == [2, 2]
        assert all(r.output_path is not None and r.output_path.exists() for r in results)
        stats = supervisor.stats
        assert stats.people_completed == 2
        assert stats.use_cases_completed == 4
        assert stats.evidence_items_completed == 4
        assert stats.files_generated == 2
        assert stats.total_people == 2
        assert stats.total_use_cases == 4

        items = load_evidence_items(tmp_path)
        assert len(items) == 4
        assert {i.person_id for i in items} == {"p0", "p1"}
        payload = json.loads(results[0].output_path.read_text())
        assert payload["checkpoint"] == "abc123"

        out = capsys.readouterr().out
        assert "GENERATION COMPLETE" in out
        assert f"Output: {tmp_path}" in out

    def test_second_run_tops_up(self, tmp_path):
        people = _people(1)
        _supervisor(tmp_path, config=_config(people_to_process=1, use_cases_per_person=2)).run(people)
        client = FakeGenerationClient()
        supervisor = _supervisor(
            tmp_path, client=client, config=_config(people_to_process=1, use_cases_per_person=3)
        )
        supervisor.run(people)
        assert client.calls["use_case"] == 1
        assert len(load_evidence_items(tmp_path)) == 3

    def test_all_use_cases_failing_aborts(self, tmp_path, capsys):
        supervisor = _supervisor(tmp_path, executor=_executor(always_wrong=True))
        with pytest.raises(SystemicFailureError):
            supervisor.run(_people(1))
        out = capsys.readouterr().out
        assert "SYSTEMIC FAILURE" in out
        assert "GENERATION COMPLETE" in out
        assert not list(tmp_path.glob("*.json"))

    def test_probe_batch_without_items_aborts(self, tmp_path):
        ticks = itertools.count()
        config = _config(people_to_process=5, use_cases_per_person=2)
        config.timeouts = TimeoutConfig(person_timeout_hours=0, enable_use_case_timeout=False)
        client = FakeGenerationClient()
        supervisor = _supervisor(
            tmp_path, config=config, client=client, clock=lambda: float(next(ticks))
        )
        with pytest.raises(SystemicFailureError, match="No evidence generated"):
            supervisor.run(_people(5))
        assert supervisor.stats.people_timed_out >= 2
        assert client.calls["core"] == 0
        # Only the probe batch was started
        assert client.calls["use_case"] <= config.generation.probe_batch_size

    def test_reporter_stopped(self, tmp_path):
        class Reporter:
            started = stopped = False

            def start(self):
                self.started = True

            def stop(self, final=True):
                self.stopped = True

        reporter = Reporter()
        _supervisor(tmp_path, reporter=reporter).run(_people(1))
        assert reporter.started and reporter.stopped


def _join_workers(timeout: float = 5.0) -> None:
    for thread in threading.enumerate():
        if thread.name.startswith(("person", "use-case")):
            thread.join(timeout)


class BlockingCoreClient(FakeGenerationClient):
    """Person 0 never gets a usable core; Person 1's core call waits for ``release``."""

    def __init__(self):
        super().__init__()
        self.release = threading.Event()
        self.person_1_waiting = threading.Event()
        self.person_1_core_calls = 0

    def generate_content(self, prompt: str) -> LLMResponse:
        if "You create the evidence core" in prompt:
            if "- Role: Person 1\n" in prompt:
                with self._lock:
                    self.person_1_core_calls += 1
                self.person_1_waiting.set()
                self.release.wait(5)
            elif "- Role: Person 0\n" in prompt:
                self.person_1_waiting.wait(5)
                return LLMResponse(content="Sorry, I can't do that.", model_name=self.model_name)
        return super().generate_content(prompt)


class UseCaseFailureClient(FakeGenerationClient):
    """Use case generation for roles starting with ``role`` raises ``error``.

    Without an error those roles get a single use case per call.
    """

    def __init__(self, role: str, error: Exception | None = None):
        super().__init__()
        self.role = role
        self.error = error
        self.failed_calls = 0

    def generate_content(self, prompt: str) -> LLMResponse:
        if "high-level scenario descriptions" in prompt and f"- Role: {self.role}" in prompt:
            with self._lock:
                self.failed_calls += 1
            if self.error is not None:
                raise self.error
            content = {"use_cases": [{"id": 1, "category": "Personal Life", "scenario_description": "Only one"}]}
            return LLMResponse(content=json.dumps(content), model_name=self.model_name)
        return super().generate_content(prompt)


class TestAbort:
    def test_systemic_failure_stops_people_already_running(self, tmp_path):
        client = BlockingCoreClient()
        supervisor = _supervisor(
            tmp_path, client=client, config=_config(people_to_process=2, use_cases_per_person=1)
        )
        try:
            with pytest.raises(SystemicFailureError, match="All 1 use cases failed for Person_0"):
                supervisor.run(_people(2))
            assert supervisor.abort.is_set()
        finally:
            client.release.set()
            _join_workers()

        # Person 1's in-flight core call finished, but nothing followed it
        assert client.person_1_core_calls == 1
        assert client.calls["conversation"] == 0
        assert not list(tmp_path.glob("*.json"))
        assert supervisor.stats.people_completed == 0

    def test_aborted_person_is_not_saved(self, tmp_path):
        supervisor = _supervisor(tmp_path)
        supervisor.abort.set()
        (person,) = _people(1)
        result = supervisor.process_person(person, 2)

        assert result.items == []
        assert result.output_path is None
        assert supervisor.stats.use_cases_completed == 0
        assert not evidence_file_path(person, tmp_path).exists()

    def test_new_run_clears_abort(self, tmp_path):
        supervisor = _supervisor(tmp_path)
        supervisor.abort.set()
        results = supervisor.run(_people(1))
        assert len(results[0].items) == 2


class TestPersonFailures:
    def test_catalog_error_fails_only_that_person(self, tmp_path, caplog):
        client = UseCaseFailureClient("Person 1", error=ConnectionError("connection reset"))
        config = _config(people_to_process=2, use_cases_per_person=2)
        supervisor = _supervisor(tmp_path, client=client, config=config)
        with caplog.at_level(logging.WARNING):
            results = supervisor.run(_people(2))

        by_id = {r.persona.id: r for r in results}
        assert len(by_id["p0"].items) == 2
        assert by_id["p1"].use_case_count == 0
        assert by_id["p1"].output_path is None
        assert client.failed_calls == config.retry.use_case_max_retries
        assert supervisor.stats.people_failed == 1
        assert supervisor.stats.people_completed == 1
        assert [p.name for p in tmp_path.glob("*.json")] == ["p0_Person_0.json"]
        assert "Skipping Person_1" in caplog.text
        assert "People Failed" in supervisor.stats.snapshot()

    def test_use_case_shortfall_fails_only_that_person(self, tmp_path):
        client = UseCaseFailureClient("Person 1")
        config = _config(people_to_process=2, use_cases_per_person=2, max_catalog_calls=1)
        supervisor = _supervisor(tmp_path, client=client, config=config)
        results = supervisor.run(_people(2))

        assert sum(len(r.items) for r in results) == 2
        assert supervisor.stats.people_failed == 1
        assert len(load_evidence_items(tmp_path)) == 2

    def test_every_catalog_failing_stops_after_first_batch(self, tmp_path):
        client = UseCaseFailureClient("Person", error=ConnectionError("connection reset"))
        supervisor = _supervisor(tmp_path, client=client)
        with pytest.raises(SystemicFailureError, match="No evidence generated after processing 2"):
            supervisor.run(_people(2))
        assert supervisor.abort.is_set()

    def test_missing_key_in_catalog_ends_run(self, tmp_path):
        client = UseCaseFailureClient("Person", error=MissingAPIKeyError("ANTHROPIC_API_KEY not set"))
        supervisor = _supervisor(tmp_path, client=client)
        with pytest.raises(MissingAPIKeyError):
            supervisor.run(_people(1))
        assert client.failed_calls == 1
        assert supervisor.abort.is_set()
        assert supervisor.stats.people_failed == 0


class TestPersonTimeout:
    def test_remaining_use_cases_skipped_and_progress_saved(self, tmp_path, caplog):
        config = _config(people_to_process=1, use_cases_per_person=3)
        config.threading.use_case_threads = 1
        config.timeouts = TimeoutConfig(person_timeout_hours=1, enable_use_case_timeout=False)
        client = FakeGenerationClient()
        # Deadline set at 0; the first use case starts at 0, the second two hours later
        clock = ListClock(0.0, 0.0, 7200.0)
        supervisor = _supervisor(tmp_path, config=config, client=client, clock=clock)
        with caplog.at_level(logging.WARNING):
            (result,) = supervisor.run(_people(1))

        assert result.timed_out
        assert result.use_case_count == 3
        assert len(result.items) == 1
        assert client.calls["core"] == 1
        assert len(load_evidence_items(tmp_path)) == 1
        stats = supervisor.stats
        assert stats.people_timed_out == 1
        assert stats.people_completed == 1
        assert stats.files_generated == 1
        assert not supervisor.abort.is_set()
        assert "timed out after 1.0 hours: 1/3 use cases completed" in caplog.text
