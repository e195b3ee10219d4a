"""Tests for concurrent batch analysis."""

import asyncio

from expiry_tracker.client.board import ImageBoard
from expiry_tracker.client.pipeline import TEXT_EXTRACTION_ERROR, BatchAnalysisPipeline
from expiry_tracker.domain.status import FreshnessStatus
from expiry_tracker.domain.vision import NO_TEXT_DETECTED, ProductFields
from tests.conftest import FakeHandoffApiClient, make_image


def test_batch_with_failures_settles_every_item(board: ImageBoard) -> None:
    client = FakeHandoffApiClient(
        fields={
            "a.jpg": ProductFields(product="Milk", expiry_date="2024-01-15"),
            "b.jpg": RuntimeError("timeout"),
            "c.jpg": ProductFields(product="Bread", expiry_date="2023-12-30"),
            "d.jpg": RuntimeError("bad gateway"),
            "e.jpg": ProductFields(product="Rice"),
        }
    )
    pipeline = BatchAnalysisPipeline(client=client, board=board)
    items = board.add_files([make_image(f"{name}.jpg") for name in "abcde"])

    result = asyncio.run(pipeline.analyze_batch(items))

    assert len(result.updated) == 3
    assert set(result.failed) == {items[1].id, items[3].id}
    assert pipeline.is_analyzing is False
    assert items[0].product == "Milk"
    assert items[0].status is FreshnessStatus.EXPIRING_SOON
    assert items[1].product == "product_2"
    assert items[2].status is FreshnessStatus.EXPIRED
    assert items[4].product == "Rice"
    assert items[4].expiry_date == ""


def test_current_values_are_sent_as_hints(board: ImageBoard) -> None:
    client = FakeHandoffApiClient()
    pipeline = BatchAnalysisPipeline(client=client, board=board)
    [item] = board.add_files([make_image("a.jpg")])
    board.set_expiry_date(item.id, "2024-02-01")

    asyncio.run(pipeline.analyze_batch([item]))

    assert client.field_calls == [("a.jpg", "product_1", "2024-02-01")]


def test_is_analyzing_while_batch_is_outstanding(board: ImageBoard) -> None:
    client = FakeHandoffApiClient()
    pipeline = BatchAnalysisPipeline(client=client, board=board)
    items = board.add_files([make_image("a.jpg"), make_image("b.jpg")])

    async def scenario() -> tuple[bool, bool]:
        client.gate = asyncio.Event()
        pipeline.dispatch(items)
        for _ in range(5):
            await asyncio.sleep(0)
        during = pipeline.is_analyzing
        client.gate.set()
        await pipeline.wait_idle()
        return during, pipeline.is_analyzing

    during, after = asyncio.run(scenario())

    assert during is True
    assert after is False


def test_item_removed_mid_flight_is_not_resurrected(board: ImageBoard) -> None:
    client = FakeHandoffApiClient(
        fields={
            "a.jpg": ProductFields(product="Milk", expiry_date="2024-01-15"),
            "b.jpg": ProductFields(product="Eggs", expiry_date="2024-01-20"),
        }
    )
    pipeline = BatchAnalysisPipeline(client=client, board=board)
    first, second = board.add_files([make_image("a.jpg"), make_image("b.jpg")])

    async def scenario():  # type: ignore[no-untyped-def]
        client.gate = asyncio.Event()
        batch = asyncio.create_task(pipeline.analyze_batch([first, second]))
        for _ in range(5):
            await asyncio.sleep(0)
        board.remove(first.id)
        client.gate.set()
        return await batch

    result = asyncio.run(scenario())

    assert result.removed == (first.id,)
    assert result.updated == (second.id,)
    assert board.get(first.id) is None
    assert [item.product for item in board.items] == ["Eggs"]


def test_text_extraction_sets_text_or_sentinels(board: ImageBoard) -> None:
    client = FakeHandoffApiClient(
        texts={"a.jpg": "EXP 01/2024", "b.jpg": "  ", "c.jpg": RuntimeError("boom")}
    )
    pipeline = BatchAnalysisPipeline(client=client, board=board)
    items = board.add_files([make_image(f"{name}.jpg") for name in "abc"])

    async def scenario() -> None:
        pipeline.dispatch(items)
        await pipeline.wait_idle()

    asyncio.run(scenario())

    assert [item.extracted_text for item in items] == [
        "EXP 01/2024",
        NO_TEXT_DETECTED,
        TEXT_EXTRACTION_ERROR,
    ]
    assert not any(item.is_extracting for item in items)


def test_dispatch_of_empty_batch_does_nothing(board: ImageBoard) -> None:
    pipeline = BatchAnalysisPipeline(client=FakeHandoffApiClient(), board=board)

    assert pipeline.dispatch([]) == []


def test_is_analyzing_as_soon_as_dispatch_returns(board: ImageBoard) -> None:
    client = FakeHandoffApiClient()
    pipeline = BatchAnalysisPipeline(client=client, board=board)
    items = board.add_files([make_image("a.jpg")])

    async def scenario() -> tuple[bool, bool]:
        client.gate = asyncio.Event()
        pipeline.dispatch(items)
        during = pipeline.is_analyzing
        client.gate.set()
        await pipeline.wait_idle()
        return during, pipeline.is_analyzing

    during, after = asyncio.run(scenario())

    assert during is True
    assert after is False


def test_add_files_dispatches_local_selection(board: ImageBoard) -> None:
    client = FakeHandoffApiClient(
        fields={"a.jpg": ProductFields(product="Milk", expiry_date="2024-01-15")},
        texts={"a.jpg": "BEST BEFORE 15/01/2024"},
    )
    pipeline = BatchAnalysisPipeline(client=client, board=board)

    async def scenario() -> list:
        items = pipeline.add_files([make_image("a.jpg"), make_image("b.jpg")])
        assert pipeline.is_analyzing is True
        await pipeline.wait_idle()
        return items

    items = asyncio.run(scenario())

    assert len(board) == 2
    assert items[0].product == "Milk"
    assert items[0].status is FreshnessStatus.EXPIRING_SOON
    assert items[0].extracted_text == "BEST BEFORE 15/01/2024"
    assert [call[0] for call in client.field_calls] == ["a.jpg", "b.jpg"]
    assert pipeline.is_analyzing is False
