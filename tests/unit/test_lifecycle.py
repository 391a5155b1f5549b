"""Unit tests for SessionLifecycle: start, ask, grade, conclude."""

import uuid

import pytest

from quizengine.ai.types import SAFE_GRADE, SUMMARY_UNAVAILABLE, GradeVerdict, SessionSummary
from quizengine.engines.assessment.errors import AssessmentValidationError, InvariantViolation, NotFoundError
from quizengine.engines.assessment.exclusion_set import ExclusionSet
from quizengine.engines.assessment.history import AnswerHistory
from quizengine.engines.assessment.ladder import DifficultyLabel
from quizengine.engines.assessment.lifecycle import SessionLifecycle, SessionState
from quizengine.engines.assessment.score_ledger import ScoreLedger


def _verdict(correct: bool, delta: int) -> GradeVerdict:
    return GradeVerdict(is_correct=correct, explanation="ok" if correct else "no", difficulty_delta=delta)


class TestStart:
    """Starting sessions."""

    @pytest.mark.asyncio
    async def test_defaults(self, db_session, alice, fake_oracle, settings):
        """No topic or difficulty: random at novice-1."""
        lifecycle = SessionLifecycle(db_session, fake_oracle, settings)
        quiz = await lifecycle.start("alice")
        assert quiz.topic == "random"
        assert quiz.starting_difficulty == "novice-1"
        assert await lifecycle.state(quiz.id) == SessionState.CREATED
        assert await lifecycle.items(quiz.id) == []

    @pytest.mark.asyncio
    async def test_unknown_difficulty_starts_at_novice_3(self, db_session, alice, fake_oracle, settings):
        """An unknown start label resolves to novice-3."""
        quiz = await SessionLifecycle(db_session, fake_oracle, settings).start("alice", "chemistry", "wizard")
        assert quiz.starting_difficulty == "novice-3"
        assert quiz.topic == "chemistry"

    @pytest.mark.asyncio
    async def test_unknown_user(self, db_session, fake_oracle, settings):
        with pytest.raises(NotFoundError):
            await SessionLifecycle(db_session, fake_oracle, settings).start("ghost")

    @pytest.mark.asyncio
    async def test_unknown_session(self, db_session, fake_oracle, settings):
        with pytest.raises(NotFoundError):
            await SessionLifecycle(db_session, fake_oracle, settings).get(uuid.uuid4())


class TestGrade:
    """Grading the tail question."""

    @pytest.mark.asyncio
    async def test_alice_scenario(self, db_session, alice, make_oracle, settings):
        """novice-3 correct (+30 -> 30), then novice-4 wrong (-20 -> 10)."""
        oracle = make_oracle(verdicts=[_verdict(True, 1), _verdict(False, 0)])
        lifecycle = SessionLifecycle(db_session, oracle, settings)
        quiz = await lifecycle.start("alice", "biology", "novice-3")

        first = await lifecycle.ask(quiz.id)
        assert first.difficulty == DifficultyLabel.NOVICE_3
        assert await lifecycle.state(quiz.id) == SessionState.AWAITING_ANSWER

        outcome = await lifecycle.grade(quiz.id, "Mitochondria make ATP")
        assert outcome.points_delta == 30
        assert outcome.score_after == 30
        assert outcome.previous_difficulty == DifficultyLabel.NOVICE_3
        assert outcome.next_difficulty == DifficultyLabel.NOVICE_4
        assert await lifecycle.state(quiz.id) == SessionState.AWAITING_QUESTION

        second = await lifecycle.ask(quiz.id)
        assert second.ordinal == 2
        assert second.difficulty == DifficultyLabel.NOVICE_4

        outcome = await lifecycle.grade(quiz.id, "I am not sure")
        assert outcome.points_delta == -20
        assert outcome.score_after == 10
        assert outcome.next_difficulty == DifficultyLabel.NOVICE_4

        stats = await ScoreLedger(db_session).stats("alice")
        assert (stats.score, stats.answered, stats.correct) == (10, 2, 1)

    @pytest.mark.asyncio
    async def test_clamp_scenario(self, db_session, user_factory, make_oracle, settings):
        """Score 10, wrong answer at attending (-50) ends at 0."""
        await user_factory("carol", 10)
        oracle = make_oracle(verdicts=[_verdict(False, -1)])
        lifecycle = SessionLifecycle(db_session, oracle, settings)
        quiz = await lifecycle.start("carol", "surgery", "attending")
        await lifecycle.ask(quiz.id)

        outcome = await lifecycle.grade(quiz.id, "no idea at all")

        assert outcome.points_delta == -50
        assert outcome.score_after == 0
        assert outcome.next_difficulty == DifficultyLabel.RESIDENT_5
        board = await ScoreLedger(db_session).top(10)
        assert [(r.username, r.score) for r in board] == [("carol", 0)]

    @pytest.mark.asyncio
    async def test_throwing_grader_records_safe_default(self, db_session, alice, make_oracle, settings):
        """A grader exception is recorded as an incorrect answer."""
        oracle = make_oracle(verdicts=[RuntimeError("grader down")])
        lifecycle = SessionLifecycle(db_session, oracle, settings)
        quiz = await lifecycle.start("alice", "biology", "novice-2")
        await lifecycle.ask(quiz.id)

        outcome = await lifecycle.grade(quiz.id, "some answer here")

        assert outcome.is_correct is False
        assert outcome.explanation == SAFE_GRADE.explanation
        assert outcome.difficulty_delta == 0
        assert outcome.next_difficulty == DifficultyLabel.NOVICE_2
        assert outcome.points_delta == -10
        assert outcome.score_after == 0

        items = await lifecycle.items(quiz.id)
        assert items[0].is_graded
        assert items[0].is_correct is False

    @pytest.mark.asyncio
    async def test_history_is_recorded_newest_first(self, db_session, alice, fake_oracle, settings):
        """Every graded answer lands in the user's history."""
        lifecycle = SessionLifecycle(db_session, fake_oracle, settings)
        quiz = await lifecycle.start("alice", "biology", "novice-1")
        for answer in ("first answer", "second answer"):
            await lifecycle.ask(quiz.id)
            await lifecycle.grade(quiz.id, answer)

        records = await AnswerHistory(db_session, "alice").recent(10)
        assert [r.user_answer for r in records] == ["second answer", "first answer"]
        assert records[0].session_id == quiz.id
        assert records[1].difficulty == "novice-1"
        assert records[1].points_delta == 10

    @pytest.mark.asyncio
    async def test_empty_answer_is_rejected(self, db_session, alice, fake_oracle, settings):
        """Blank answers never reach the grader."""
        lifecycle = SessionLifecycle(db_session, fake_oracle, settings)
        quiz = await lifecycle.start("alice")
        await lifecycle.ask(quiz.id)
        with pytest.raises(AssessmentValidationError):
            await lifecycle.grade(quiz.id, "   ")
        assert fake_oracle.grade_calls == []

    @pytest.mark.asyncio
    async def test_nothing_to_grade(self, db_session, alice, fake_oracle, settings):
        """Grading before any question is asked is refused."""
        lifecycle = SessionLifecycle(db_session, fake_oracle, settings)
        quiz = await lifecycle.start("alice")
        with pytest.raises(InvariantViolation):
            await lifecycle.grade(quiz.id, "an answer")

    @pytest.mark.asyncio
    async def test_question_is_graded_once(self, db_session, alice, fake_oracle, settings):
        """A second answer to the same question is refused."""
        lifecycle = SessionLifecycle(db_session, fake_oracle, settings)
        quiz = await lifecycle.start("alice")
        await lifecycle.ask(quiz.id)
        await lifecycle.grade(quiz.id, "an answer")
        with pytest.raises(InvariantViolation):
            await lifecycle.grade(quiz.id, "another answer")
        assert (await ScoreLedger(db_session).stats("alice")).answered == 1

    @pytest.mark.asyncio
    async def test_ordinals_increase_by_one(self, db_session, alice, fake_oracle, settings):
        lifecycle = SessionLifecycle(db_session, fake_oracle, settings)
        quiz = await lifecycle.start("alice")
        for _ in range(4):
            await lifecycle.ask(quiz.id)
            await lifecycle.grade(quiz.id, "an answer")
        assert [item.ordinal for item in await lifecycle.items(quiz.id)] == [1, 2, 3, 4]


class TestConclude:
    """Concluding sessions."""

    @pytest.mark.asyncio
    async def test_conclude_after_three_questions(self, db_session, alice, make_oracle, settings):
        """Three graded questions: all excluded and the next number is 4."""
        oracle = make_oracle(
            questions=["Q1?", "Q2?", "Q3?"],
            verdicts=[_verdict(True, 1), _verdict(True, 1), _verdict(False, 0)],
            summary=SessionSummary(feedback="Good progress.", rating=DifficultyLabel.NOVICE_3),
        )
        lifecycle = SessionLifecycle(db_session, oracle, settings)
        quiz = await lifecycle.start("alice", "biology", "novice-1")
        for _ in range(3):
            await lifecycle.ask(quiz.id)
            await lifecycle.grade(quiz.id, "an answer")

        result = await lifecycle.conclude(quiz.id)

        # novice-1 +10, novice-2 +20, novice-3 -15
        assert result.session_points == 15
        assert result.added == 3
        assert result.new_exclusion_count == 3
        assert result.next_question_number == 4
        assert result.questions_asked == 3
        assert result.correct_answers == 2
        assert result.feedback == "Good progress."
        assert result.rating == DifficultyLabel.NOVICE_3
        assert await ExclusionSet(db_session, "alice").list() == ["Q1?", "Q2?", "Q3?"]
        assert await lifecycle.state(quiz.id) == SessionState.CONCLUDED
        assert len(oracle.summary_calls[0]) == 3

    @pytest.mark.asyncio
    async def test_numbering_continues_after_earlier_exclusions(self, db_session, alice, make_oracle, settings):
        """Two questions from earlier sessions plus three now: the next one is number 6."""
        await ExclusionSet(db_session, "alice").merge(["Earlier Q1?", "Earlier Q2?"])
        oracle = make_oracle(questions=["Q1?", "Q2?", "Q3?"])
        lifecycle = SessionLifecycle(db_session, oracle, settings)
        quiz = await lifecycle.start("alice", "biology", "novice-1")
        for _ in range(3):
            await lifecycle.ask(quiz.id)
            await lifecycle.grade(quiz.id, "an answer")

        result = await lifecycle.conclude(quiz.id)

        assert result.added == 3
        assert result.new_exclusion_count == 5
        assert result.next_question_number == 2 + 3 + 1
        assert await ExclusionSet(db_session, "alice").list() == [
            "Earlier Q1?", "Earlier Q2?", "Q1?", "Q2?", "Q3?",
        ]

    @pytest.mark.asyncio
    async def test_items_without_recorded_points_use_the_formula(self, db_session, alice, make_oracle, settings):
        """Graded rows written before points were stored are scored from their starting difficulty."""
        oracle = make_oracle(verdicts=[_verdict(True, 1), _verdict(False, 0)])
        lifecycle = SessionLifecycle(db_session, oracle, settings)
        quiz = await lifecycle.start("alice", "biology", "resident-1")
        for _ in range(2):
            await lifecycle.ask(quiz.id)
            await lifecycle.grade(quiz.id, "an answer")

        for item in await lifecycle.items(quiz.id):
            item.points_delta = None
        await db_session.flush()

        result = await lifecycle.conclude(quiz.id)

        # resident-1 correct (+50), then resident-2 wrong (-30)
        assert result.session_points == 50 - 30

    @pytest.mark.asyncio
    async def test_unanswered_question_is_excluded_but_scores_nothing(self, db_session, alice, make_oracle, settings):
        """An asked but unanswered question is still excluded."""
        oracle = make_oracle(questions=["Q1?", "Q2?"])
        lifecycle = SessionLifecycle(db_session, oracle, settings)
        quiz = await lifecycle.start("alice", "biology", "novice-1")
        await lifecycle.ask(quiz.id)
        await lifecycle.grade(quiz.id, "an answer")
        await lifecycle.ask(quiz.id)

        result = await lifecycle.conclude(quiz.id)

        assert result.added == 2
        assert result.session_points == 10
        assert result.questions_asked == 2
        assert result.correct_answers == 1

    @pytest.mark.asyncio
    async def test_empty_session_can_conclude(self, db_session, alice, fake_oracle, settings):
        """A session with no questions concludes cleanly."""
        lifecycle = SessionLifecycle(db_session, fake_oracle, settings)
        quiz = await lifecycle.start("alice")
        result = await lifecycle.conclude(quiz.id)
        assert result.added == 0
        assert result.next_question_number == 1
        assert result.session_points == 0

    @pytest.mark.asyncio
    async def test_conclude_twice(self, db_session, alice, fake_oracle, settings):
        lifecycle = SessionLifecycle(db_session, fake_oracle, settings)
        quiz = await lifecycle.start("alice")
        await lifecycle.conclude(quiz.id)
        with pytest.raises(InvariantViolation):
            await lifecycle.conclude(quiz.id)

    @pytest.mark.asyncio
    async def test_no_questions_or_answers_after_conclusion(self, db_session, alice, fake_oracle, settings):
        """A concluded session accepts no more questions or answers."""
        lifecycle = SessionLifecycle(db_session, fake_oracle, settings)
        quiz = await lifecycle.start("alice")
        await lifecycle.ask(quiz.id)
        await lifecycle.conclude(quiz.id)
        with pytest.raises(InvariantViolation):
            await lifecycle.ask(quiz.id)
        with pytest.raises(InvariantViolation):
            await lifecycle.grade(quiz.id, "late answer")

    @pytest.mark.asyncio
    async def test_failing_summary_falls_back(self, db_session, alice, make_oracle, settings):
        """A summary failure still concludes, with the fallback text."""
        oracle = make_oracle(summary=RuntimeError("summary down"))
        lifecycle = SessionLifecycle(db_session, oracle, settings)
        quiz = await lifecycle.start("alice", "biology", "resident-2")
        await lifecycle.ask(quiz.id)
        await lifecycle.grade(quiz.id, "an answer")

        result = await lifecycle.conclude(quiz.id)

        assert result.feedback == SUMMARY_UNAVAILABLE
        assert result.rating == DifficultyLabel.RESIDENT_2
        assert result.added == 1

    @pytest.mark.asyncio
    async def test_concluded_questions_are_not_asked_again(self, db_session, alice, make_oracle, settings):
        """Questions from a concluded session are skipped later, in any case."""
        oracle = make_oracle(questions=["What is DNA?", "what is dna?", "What is RNA?"])
        lifecycle = SessionLifecycle(db_session, oracle, settings)

        first = await lifecycle.start("alice", "biology")
        await lifecycle.ask(first.id)
        await lifecycle.conclude(first.id)

        second = await lifecycle.start("alice", "biology")
        supplied = await lifecycle.ask(second.id)

        assert supplied.question == "What is RNA?"
        assert supplied.ordinal == 1
