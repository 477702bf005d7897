"""Judge prompts and the judge itself.

An AnsweringEvaluation decides how a model's answer is compared with the
expected one (factual match, rubric, temporal tolerance, abstention...).
The Judge runs the two LLM steps every semantic check needs:

1. ``answer``: ask a model the question over a set of conversations
2. ``verdict``: ask the judge model for RIGHT or WRONG

Verdict parsing: a reply with both words is treated as WRONG (and
logged); a reply with neither is retried; exhausting retries yields None,
meaning "undetermined".

Public API:
    AnsweringEvaluation: Judge prompt strategy (abstract)
    DefaultAnsweringEvaluation, RubricBasedAnsweringEvaluation,
    TemporalAnsweringEvaluation, UserFactsAnsweringEvaluation,
    AbstentionAnsweringEvaluation: Concrete strategies
    Judge: Answering and verdict calls with retries
    build_conversation_context / build_answer_prompt: Prompt helpers
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from ..core.retry import BackoffPolicy, retry
from ..data.schema import Conversation, Message
from ..llm.client import LLMClient

logger = logging.getLogger(__name__)

_ANSWER_ONLY = (
    '**Answer only "RIGHT" or "WRONG". Do not provide any additional text, '
    "explanations, or reasoning.**"
)


class AnsweringEvaluation(ABC):
    """How to judge a model answer against the expected answer."""

    name: str = "default"

    @abstractmethod
    def judge_prompt(
        self,
        question: str,
        correct_answer: str,
        model_answer: str,
        evidence_messages: list[Message],
    ) -> str:
        """Build the RIGHT/WRONG judge prompt."""


class DefaultAnsweringEvaluation(AnsweringEvaluation):
    """Factual answers; paraphrase and accurate extra detail are fine."""

    name = "default"

    def judge_prompt(self, question, correct_answer, model_answer, evidence_messages):
        return f"""I will give you a Question, a Correct Answer and a Model's Response. Decide whether the Model's Response is correct and complete enough to answer the Question, compared with the Correct Answer.

Guidelines:
1. The response must contain all essential facts that answer the Question.
2. Paraphrasing is fine if the meaning and details match the Correct Answer.
3. Extra details that are accurate and do not contradict the Correct Answer are fine.
4. Missing any essential information the Question asks for makes it incorrect.
5. Judge whether the Question is answered, not whether every word of the Correct Answer is repeated.

{_ANSWER_ONLY}

Question: {question}
Correct Answer: {correct_answer}
Model Response: {model_answer}

Answer (RIGHT/WRONG):"""


class RubricBasedAnsweringEvaluation(AnsweringEvaluation):
    """The expected "answer" is a rubric the response must satisfy."""

    name = "rubric"

    def judge_prompt(self, question, correct_answer, model_answer, evidence_messages):
        return f"""You are a judge evaluating if a model's response meets the criteria in a rubric.

Question asked: {question}

Evaluation rubric: {correct_answer}

Model's response: {model_answer}

Guidelines:
- The response must satisfy ALL criteria in the rubric
- Partially meeting the criteria is WRONG
- The response must show clear understanding of the context

If the response satisfies the rubric: RIGHT
If it does not: WRONG

Respond with only RIGHT or WRONG."""


class TemporalAnsweringEvaluation(AnsweringEvaluation):
    """Time expressions may differ as long as they denote the same span."""

    name = "temporal"

    def judge_prompt(self, question, correct_answer, model_answer, evidence_messages):
        return f"""You are a judge determining if a model's temporal answer is correct.

Question: {question}

Correct answer: {correct_answer}

Model's answer: {model_answer}

Guidelines:
- Time calculations must be accurate
- Equivalent expressions are acceptable (3 months = about 90 days = about 13 weeks)
- Off-by-one errors in day counts are NOT acceptable

If the temporal answer is correct: RIGHT
If it is incorrect: WRONG

Respond with only RIGHT or WRONG."""


class UserFactsAnsweringEvaluation(AnsweringEvaluation):
    """Shows the judge the evidence the model had available."""

    name = "user_facts"

    def __init__(self, evidence_count: int):
        self.evidence_count = evidence_count

    def judge_prompt(self, question, correct_answer, model_answer, evidence_messages):
        if self.evidence_count == 1:
            evidence_text = evidence_messages[0].text if evidence_messages else ""
            evidence_block = f"**Evidence Message Available to the Model:**\n{evidence_text}"
            right_rule = "- The response reflects the information from the evidence message"
        else:
            numbered = "\n".join(
                f"Evidence Message {i + 1}: {m.text}" for i, m in enumerate(evidence_messages)
            )
            evidence_block = f"**Evidence Messages Available to the Model:**\n{numbered}"
            right_rule = (
                "- Information from most evidence messages is reflected in the response; "
                "minor omissions are acceptable if the main answer is correct"
            )

        return f"""You are evaluating whether a model's response correctly answers a question using the evidence it was given.

**Question Asked:**
{question}

{evidence_block}

**Correct Answer (what the response should convey):**
{correct_answer}

**Model's Response to Evaluate:**
{model_answer}

RIGHT when:
- The core answer matches the Correct Answer (exact phrasing not required)
{right_rule}
- Accurate extra detail does not make it wrong

WRONG when:
- The core answer contradicts or differs from the Correct Answer
- Critical information is missing or misunderstood
- The response does not answer the question

{_ANSWER_ONLY}

Answer (RIGHT/WRONG):"""


class AbstentionAnsweringEvaluation(AnsweringEvaluation):
    """Correct behaviour is to say the information is not available."""

    name = "abstention"

    def judge_prompt(self, question, correct_answer, model_answer, evidence_messages):
        return f"""You are evaluating an ABSTENTION test: the model SHOULD recognize that it lacks the information to answer.

Guidelines:
1. Refusing, saying "I don't know", or stating the information was never provided is RIGHT.
2. Pointing out what is known while noting what is missing is RIGHT.
3. Giving a specific answer that is not supported by the conversations is WRONG, even if plausible.

{_ANSWER_ONLY}

Question: {question}
Expected behaviour: {correct_answer or "indicate that the information is insufficient"}
Model Response: {model_answer}

Answer (RIGHT/WRONG):"""


def build_conversation_context(conversations: list[Conversation]) -> str:
    """Render conversations as numbered blocks of ``speaker: text`` lines."""
    blocks = []
    for idx, conversation in enumerate(conversations, start=1):
        lines = "\n".join(f"{m.speaker}: {m.text}" for m in conversation.messages)
        blocks.append(f"Conversation {idx}:\n{lines}")
    return "\n\n".join(blocks)


def build_answer_prompt(conversations: list[Conversation], question: str) -> str:
    return f"""Answer the question based on the conversations below. If the User refers to themselves ("I", "me", "my"), they are the person being asked about. Be direct and factual.

{build_conversation_context(conversations)}

Question: {question}

Answer:"""


class InvalidVerdictError(ValueError):
    """Judge reply contained neither RIGHT nor WRONG."""


def parse_verdict(reply: str) -> bool:
    """Map a judge reply to True (RIGHT) / False (WRONG).

    Raises:
        InvalidVerdictError: If the reply contains neither word.
    """
    text = reply.strip().lower()
    has_right = "right" in text
    has_wrong = "wrong" in text
    if has_right and has_wrong:
        logger.warning("Judge reply contains both RIGHT and WRONG: %r", reply[:200])
        return False
    if has_right:
        return True
    if has_wrong:
        return False
    raise InvalidVerdictError(f"Invalid judge reply: {reply[:200]!r}")


class Judge:
    """Answering model plus judge model, each call retried.

    Args:
        answer_client: Model that answers questions from conversations
        judge_client: Model that returns RIGHT/WRONG (defaults to answer_client)
        extra_answer_clients: Additional answering models for extensive checks
        max_retries: Attempts per call
        policy: Backoff between attempts
    """

    def __init__(
        self,
        answer_client: LLMClient,
        judge_client: LLMClient | None = None,
        extra_answer_clients: list[LLMClient] | None = None,
        max_retries: int = 3,
        policy: BackoffPolicy | None = None,
    ):
        self.answer_client = answer_client
        self.judge_client = judge_client or answer_client
        self.extra_answer_clients = list(extra_answer_clients or [])
        self.max_retries = max_retries
        self.policy = policy or BackoffPolicy()

    @property
    def answer_clients(self) -> list[LLMClient]:
        """All answering models, primary first (used by extensive checks)."""
        return [self.answer_client] + self.extra_answer_clients

    def answer(
        self,
        conversations: list[Conversation],
        question: str,
        client: LLMClient | None = None,
    ) -> str | None:
        """Ask ``question`` over ``conversations``; None when every attempt fails."""
        model = client or self.answer_client
        prompt = build_answer_prompt(conversations, question)
        try:
            return retry(
                lambda: model.generate_content(prompt).content,
                self.max_retries,
                self.policy,
            )
        except Exception as e:
            logger.warning(
                "Failed to get answer from %s after %d attempts: %s",
                model.model_name, self.max_retries, e,
            )
            return None

    def verdict(self, prompt: str) -> bool | None:
        """Run a RIGHT/WRONG prompt; None when undetermined."""
        try:
            return retry(
                lambda: parse_verdict(self.judge_client.generate_content(prompt).content),
                self.max_retries,
                self.policy,
            )
        except Exception as e:
            logger.warning("Judge verdict failed after %d attempts: %s", self.max_retries, e)
            return None

    def is_correct(
        self,
        question: str,
        correct_answer: str,
        model_answer: str,
        evidence_messages: list[Message],
        evaluation: AnsweringEvaluation,
    ) -> bool | None:
        prompt = evaluation.judge_prompt(question, correct_answer, model_answer, evidence_messages)
        return self.verdict(prompt)


__all__ = [
    "AnsweringEvaluation",
    "DefaultAnsweringEvaluation",
    "RubricBasedAnsweringEvaluation",
    "TemporalAnsweringEvaluation",
    "UserFactsAnsweringEvaluation",
    "AbstentionAnsweringEvaluation",
    "InvalidVerdictError",
    "Judge",
    "build_answer_prompt",
    "build_conversation_context",
    "parse_verdict",
]
