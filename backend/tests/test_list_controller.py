"""Tests for filtering, selection and optimistic archiving."""

import asyncio

import pytest
import pytest_asyncio

from conftest import FakeRepository, make_conversation
from triage.errors import BadRequest, NotFound, Unauthorized, UpstreamFailure
from triage.inbox.list_controller import ConversationListController
from triage.models.conversations import ConversationFilter, Direction


@pytest_asyncio.fixture
async def inbox(repository: FakeRepository) -> ConversationListController:
    controller = ConversationListController(repository, include_muted=False, limit=30)
    await controller.refresh()
    return controller


def _is_subsequence(sub: list[str], full: list[str]) -> bool:
    it = iter(full)
    return all(item in it for item in sub)


@pytest.mark.asyncio
async def test_unresponded_filter_shows_unread_and_unanswered(
    inbox: ConversationListController,
) -> None:
    assert inbox.visible_ids() == ["A", "C"]

    inbox.set_filter(ConversationFilter.ALL)
    assert inbox.visible_ids() == ["A", "B", "C"]


@pytest.mark.asyncio
async def test_filtered_view_is_order_preserving_subsequence() -> None:
    repo = FakeRepository(
        [
            make_conversation("1", last_from_me=True),
            make_conversation("2"),
            make_conversation("3", no_messages=True),
            make_conversation("4", last_from_me=True, unread=1),
            make_conversation("5", last_from_me=True),
        ]
    )
    inbox = ConversationListController(repo)
    await inbox.refresh()
    backing = [c.id for c in inbox.conversations()]

    for flt in ConversationFilter:
        inbox.set_filter(flt)
        assert _is_subsequence(inbox.visible_ids(), backing)
    inbox.set_filter(ConversationFilter.UNRESPONDED)
    assert inbox.visible_ids() == ["2", "3", "4"]


@pytest.mark.asyncio
async def test_refresh_requests_configured_page(
    inbox: ConversationListController, repository: FakeRepository
) -> None:
    assert repository.calls_to("list_conversations") == [("list_conversations", False, 30)]
    assert inbox.snapshot().total == 3


@pytest.mark.asyncio
async def test_select_ignores_hidden_conversation(inbox: ConversationListController) -> None:
    assert inbox.select("B") is False
    assert inbox.selected_id is None

    assert inbox.select("C") is True
    assert inbox.selected_id == "C"


@pytest.mark.asyncio
async def test_move_selection_wraps(inbox: ConversationListController) -> None:
    inbox.select("C")

    assert inbox.move_selection(Direction.NEXT) == "A"
    assert inbox.move_selection(Direction.PREV) == "C"


@pytest.mark.asyncio
async def test_move_selection_without_selection_steps_from_first(
    inbox: ConversationListController,
) -> None:
    assert inbox.move_selection(Direction.NEXT) == "C"

    inbox.select(None)
    assert inbox.move_selection(Direction.PREV) == "C"


@pytest.mark.asyncio
async def test_move_selection_on_empty_view_is_noop() -> None:
    inbox = ConversationListController(FakeRepository([make_conversation("B", last_from_me=True)]))
    await inbox.refresh()

    assert inbox.visible_ids() == []
    assert inbox.move_selection(Direction.NEXT) is None
    assert inbox.selected_id is None


@pytest.mark.asyncio
async def test_filter_change_clears_hidden_selection(inbox: ConversationListController) -> None:
    inbox.set_filter(ConversationFilter.ALL)
    inbox.select("B")

    inbox.set_filter(ConversationFilter.UNRESPONDED)

    assert inbox.selected_id is None


@pytest.mark.asyncio
async def test_refresh_keeps_selection_by_id(
    inbox: ConversationListController, repository: FakeRepository
) -> None:
    inbox.select("C")
    repository.conversations.insert(0, make_conversation("D", unread=3))

    await inbox.refresh()

    assert inbox.visible_ids() == ["D", "A", "C"]
    assert inbox.selected_id == "C"

    repository.conversations = [c for c in repository.conversations if c.id != "C"]
    await inbox.refresh()
    assert inbox.selected_id is None


@pytest.mark.asyncio
async def test_archive_selected_moves_to_new_first(
    inbox: ConversationListController, repository: FakeRepository
) -> None:
    inbox.select("A")

    result = await inbox.archive("A")

    assert result.success is True
    assert inbox.visible_ids() == ["C"]
    assert inbox.selected_id == "C"
    assert repository.calls_to("set_archived") == [("set_archived", "A", True)]


@pytest.mark.asyncio
async def test_archive_selected_moves_to_previous_neighbour(
    inbox: ConversationListController,
) -> None:
    inbox.set_filter(ConversationFilter.ALL)
    inbox.select("C")

    await inbox.archive("C")

    assert inbox.selected_id == "B"


@pytest.mark.asyncio
async def test_archive_last_row_clears_selection() -> None:
    inbox = ConversationListController(FakeRepository([make_conversation("A", unread=1)]))
    await inbox.refresh()
    inbox.select("A")

    await inbox.archive("A")

    assert inbox.visible_ids() == []
    assert inbox.selected_id is None


@pytest.mark.asyncio
async def test_archive_unselected_keeps_selection(inbox: ConversationListController) -> None:
    inbox.select("C")

    await inbox.archive("A")

    assert inbox.selected_id == "C"


@pytest.mark.asyncio
async def test_row_is_removed_before_mutation_resolves(
    inbox: ConversationListController, repository: FakeRepository
) -> None:
    repository.archive_gate = asyncio.Event()

    task = asyncio.create_task(inbox.archive("A"))
    await asyncio.sleep(0)

    assert "A" not in inbox.visible_ids()
    assert inbox.snapshot().pending_archive_ids == ["A"]

    repository.archive_gate.set()
    await task
    assert inbox.snapshot().pending_archive_ids == []


@pytest.mark.asyncio
async def test_refresh_during_archive_does_not_resurrect(
    inbox: ConversationListController, repository: FakeRepository
) -> None:
    repository.archive_gate = asyncio.Event()
    task = asyncio.create_task(inbox.archive("A"))
    await asyncio.sleep(0)

    # Upstream still lists A until the mutation lands
    await inbox.refresh()
    assert "A" not in inbox.visible_ids()

    repository.archive_gate.set()
    await task
    assert "A" not in inbox.visible_ids()


@pytest.mark.asyncio
async def test_refresh_fetched_before_archive_does_not_resurrect(
    inbox: ConversationListController, repository: FakeRepository
) -> None:
    repository.list_gate = asyncio.Event()
    refresh = asyncio.create_task(inbox.refresh())
    await asyncio.sleep(0)

    # Archive starts and completes while the refresh holds pre-archive data
    archive = asyncio.create_task(inbox.archive("A"))
    await asyncio.sleep(0)
    repository.list_gate.set()
    await asyncio.gather(refresh, archive)

    assert "A" not in inbox.visible_ids()

    repository.list_gate = None
    await inbox.refresh()
    assert "A" not in inbox.visible_ids()


@pytest.mark.asyncio
async def test_archive_failure_is_not_rolled_back(
    inbox: ConversationListController, repository: FakeRepository
) -> None:
    repository.archive_error = UpstreamFailure("connector down")

    with pytest.raises(UpstreamFailure):
        await inbox.archive("A")

    assert inbox.visible_ids() == ["C"]
    snapshot = inbox.snapshot()
    assert snapshot.pending_archive_ids == []
    assert snapshot.error is not None

    # Upstream still has A, so the next refresh reconciles it back
    await inbox.refresh()
    assert inbox.visible_ids() == ["A", "C"]


@pytest.mark.asyncio
async def test_unconfirmed_archive_raises(
    inbox: ConversationListController, repository: FakeRepository
) -> None:
    repository.archive_success = False

    with pytest.raises(UpstreamFailure):
        await inbox.archive("A")
    assert "A" not in inbox.visible_ids()


@pytest.mark.asyncio
async def test_duplicate_archive_is_ignored(
    inbox: ConversationListController, repository: FakeRepository
) -> None:
    repository.archive_gate = asyncio.Event()
    first = asyncio.create_task(inbox.archive("A"))
    await asyncio.sleep(0)

    await inbox.archive("A")
    repository.archive_gate.set()
    await first

    assert len(repository.calls_to("set_archived")) == 1


@pytest.mark.asyncio
async def test_archive_rejects_unknown_and_empty_ids(
    inbox: ConversationListController, repository: FakeRepository
) -> None:
    with pytest.raises(NotFound):
        await inbox.archive("missing")
    with pytest.raises(BadRequest):
        await inbox.archive("")

    assert inbox.visible_ids() == ["A", "C"]
    assert repository.calls_to("set_archived") == []


@pytest.mark.asyncio
async def test_refresh_failure_keeps_prior_state(
    inbox: ConversationListController, repository: FakeRepository
) -> None:
    inbox.select("A")
    repository.list_error = UpstreamFailure("timeout")

    with pytest.raises(UpstreamFailure):
        await inbox.refresh()

    snapshot = inbox.snapshot()
    assert [c.id for c in snapshot.conversations] == ["A", "C"]
    assert snapshot.selected_id == "A"
    assert snapshot.error == "timeout"
    assert snapshot.fatal is False
    assert snapshot.is_loading is False


@pytest.mark.asyncio
async def test_unauthorized_refresh_is_fatal(
    inbox: ConversationListController, repository: FakeRepository
) -> None:
    repository.list_error = Unauthorized("bad token")

    with pytest.raises(Unauthorized):
        await inbox.refresh()

    assert inbox.fatal is True


@pytest.mark.asyncio
async def test_stale_refresh_is_dropped(
    inbox: ConversationListController, repository: FakeRepository
) -> None:
    gate = asyncio.Event()
    repository.list_gate = gate
    slow = asyncio.create_task(inbox.refresh())
    await asyncio.sleep(0)

    repository.list_gate = None
    repository.conversations = [make_conversation("Z", unread=1)]
    await inbox.refresh()
    assert inbox.visible_ids() == ["Z"]

    # The older refresh lands last and must not overwrite the newer result
    gate.set()
    await slow
    assert inbox.visible_ids() == ["Z"]


@pytest.mark.asyncio
async def test_selection_invariant_holds_across_operations(
    inbox: ConversationListController, repository: FakeRepository
) -> None:
    inbox.set_filter(ConversationFilter.ALL)
    steps = [
        lambda: inbox.move_selection(Direction.NEXT),
        lambda: inbox.set_filter(ConversationFilter.UNRESPONDED),
        lambda: inbox.move_selection(Direction.PREV),
        lambda: inbox.set_filter(ConversationFilter.ALL),
        lambda: inbox.move_selection(Direction.NEXT),
    ]
    for step in steps:
        step()
        assert inbox.selected_id is None or inbox.selected_id in inbox.visible_ids()

    if inbox.selected_id:
        await inbox.archive(inbox.selected_id)
    assert inbox.selected_id is None or inbox.selected_id in inbox.visible_ids()

    await inbox.refresh()
    assert inbox.selected_id is None or inbox.selected_id in inbox.visible_ids()


@pytest.mark.asyncio
async def test_subscribers_are_notified(inbox: ConversationListController) -> None:
    events: list[str] = []
    unsubscribe = inbox.subscribe(lambda: events.append("changed"))

    inbox.set_filter(ConversationFilter.ALL)
    unsubscribe()
    inbox.set_filter(ConversationFilter.UNRESPONDED)

    assert events == ["changed"]


@pytest.mark.asyncio
async def test_refresh_started_during_archive_lands_after_success(
    inbox: ConversationListController, repository: FakeRepository
) -> None:
    repository.archive_gate = asyncio.Event()
    archive = asyncio.create_task(inbox.archive("A"))
    await asyncio.sleep(0)

    # This refresh fetches while upstream still lists A
    repository.list_gate = asyncio.Event()
    refresh = asyncio.create_task(inbox.refresh())
    await asyncio.sleep(0)

    repository.archive_gate.set()
    assert (await archive).success is True

    repository.list_gate.set()
    await refresh
    assert "A" not in inbox.visible_ids()


@pytest.mark.asyncio
async def test_loading_flag_covers_overlapping_refreshes(
    inbox: ConversationListController, repository: FakeRepository
) -> None:
    gate = asyncio.Event()
    repository.list_gate = gate
    slow = asyncio.create_task(inbox.refresh())
    await asyncio.sleep(0)
    assert inbox.snapshot().is_loading is True

    repository.list_gate = None
    await inbox.refresh()
    assert inbox.snapshot().is_loading is True

    gate.set()
    await slow
    assert inbox.snapshot().is_loading is False
