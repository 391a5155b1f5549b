"""Unit tests for ExclusionSet: normalization, merge idempotence, ordering."""

from unittest.mock import AsyncMock, patch

import pytest

from quizengine.engines.assessment.errors import InvariantViolation
from quizengine.engines.assessment.exclusion_set import ExclusionSet, clean_question, normalize_question


class TestNormalization:
    """Comparison form of question text."""

    def test_clean_collapses_whitespace_and_keeps_case(self):
        """Whitespace collapses; casing is kept."""
        assert clean_question("  What   is\n\tX?  ") == "What is X?"

    def test_normalize_casefolds(self):
        """Comparison ignores case."""
        assert normalize_question("What  IS x?") == normalize_question("what is X?")

    def test_none_is_empty(self):
        assert clean_question(None) == ""


class TestMerge:
    """Merging questions into a user's exclusion set."""

    @pytest.mark.asyncio
    async def test_merge_adds_in_order_and_collapses_duplicates(self, db_session):
        """Batch duplicates collapse to the first occurrence."""
        exclusions = ExclusionSet(db_session, "alice")
        added = await exclusions.merge(["What is X?", "what   is x?", "Define Y."])
        assert added == 2
        assert await exclusions.list() == ["What is X?", "Define Y."]
        assert await exclusions.count() == 2

    @pytest.mark.asyncio
    async def test_merge_is_idempotent(self, db_session):
        """Merging the same batch twice adds nothing the second time."""
        exclusions = ExclusionSet(db_session, "alice")
        batch = ["Q one?", "Q two?", "Q three?"]
        assert await exclusions.merge(batch) == 3
        assert await exclusions.merge(batch) == 0
        assert await exclusions.merge([q.upper() for q in batch]) == 0
        assert await exclusions.count() == 3

    @pytest.mark.asyncio
    async def test_new_entries_are_appended_after_existing(self, db_session):
        """Later merges append after earlier ones."""
        exclusions = ExclusionSet(db_session, "alice")
        await exclusions.merge(["First?"])
        await exclusions.merge(["Second?", "First?"])
        assert await exclusions.list() == ["First?", "Second?"]

    @pytest.mark.asyncio
    async def test_empty_and_oversized_entries_are_dropped(self, db_session):
        """Blank and over-length questions are skipped silently."""
        exclusions = ExclusionSet(db_session, "alice", max_length=20)
        added = await exclusions.merge(["", "   ", "x" * 21, "Short one?"])
        assert added == 1
        assert await exclusions.list() == ["Short one?"]

    @pytest.mark.asyncio
    async def test_contains_uses_normalized_form(self, db_session):
        """Membership is decided on the normalized text."""
        exclusions = ExclusionSet(db_session, "alice")
        await exclusions.merge(["What is the Krebs cycle?"])
        assert await exclusions.contains("what is  the krebs CYCLE?")
        assert not await exclusions.contains("What is glycolysis?")
        assert await exclusions.normalized_set() == {"what is the krebs cycle?"}

    @pytest.mark.asyncio
    async def test_sets_are_per_user(self, db_session):
        """One user's exclusions never affect another's."""
        await ExclusionSet(db_session, "alice").merge(["Shared question?"])
        bob = ExclusionSet(db_session, "bob")
        assert await bob.count() == 0
        assert await bob.merge(["Shared question?"]) == 1

    @pytest.mark.asyncio
    async def test_concurrent_merge_is_an_invariant_violation(self, db_session):
        """A row inserted by another merge after our read surfaces as 409, not a crash."""
        exclusions = ExclusionSet(db_session, "alice")
        await exclusions.merge(["What is X?"])

        # The other writer's row is invisible to this merge's dedup read
        with patch.object(ExclusionSet, "_existing_hashes", AsyncMock(return_value=set())):
            with pytest.raises(InvariantViolation):
                await exclusions.merge(["what is x?"])
