import logging
import urllib.request

import anyio
import pytest

from tgbridge.telegram import (
    PollingLoop,
    PollState,
    TelegramBotApi,
    TelegramBotApiError,
    extract_update_id,
)


def test_extract_update_id() -> None:
    assert extract_update_id({"update_id": 1}) == 1
    assert extract_update_id({"update_id": "1"}) is None
    assert extract_update_id({}) is None


@pytest.mark.anyio
async def test_poll_once_advances_cursor_and_dispatches_in_order(
    make_api, logger
) -> None:
    api = make_api(
        batches=[
            [
                {"update_id": 10, "message": {"message_id": 100}},
                {"update_id": 11, "message": {"message_id": 101}},
            ]
        ]
    )
    handled: list[int] = []
    cursor_seen_by_handler: list[int] = []

    async def on_update(update: dict) -> None:
        handled.append(update["update_id"])
        cursor_seen_by_handler.append(loop.cursor)

    loop = PollingLoop(api=api, on_update=on_update, logger=logger, cursor=9)

    assert await loop.poll_once() == 2

    assert api.calls_for("getUpdates") == [{"offset": 10, "limit": 10, "timeout": 0}]
    assert handled == [10, 11]
    assert loop.cursor == 11
    # The cursor moves before the batch is handed out.
    assert cursor_seen_by_handler == [11, 11]
    assert loop.state is PollState.IDLE


@pytest.mark.anyio
async def test_poll_once_next_fetch_excludes_last_update(make_api, logger) -> None:
    api = make_api(batches=[[{"update_id": 10}], []])

    async def on_update(update: dict) -> None:
        pass

    loop = PollingLoop(api=api, on_update=on_update, logger=logger)
    await loop.poll_once()
    await loop.poll_once()

    assert [c["offset"] for c in api.calls_for("getUpdates")] == [1, 11]


@pytest.mark.anyio
async def test_poll_once_empty_batch_keeps_cursor(make_api, logger) -> None:
    api = make_api(batches=[[]])

    async def on_update(update: dict) -> None:
        raise AssertionError("no updates expected")

    loop = PollingLoop(api=api, on_update=on_update, logger=logger, cursor=5)

    assert await loop.poll_once() == 0
    assert loop.cursor == 5


@pytest.mark.anyio
async def test_poll_once_cursor_never_moves_backwards(make_api, logger) -> None:
    api = make_api(batches=[[{"update_id": 3}]])
    handled: list[int] = []

    async def on_update(update: dict) -> None:
        handled.append(update["update_id"])

    loop = PollingLoop(api=api, on_update=on_update, logger=logger, cursor=9)
    await loop.poll_once()

    assert loop.cursor == 9
    assert handled == [3]


@pytest.mark.anyio
async def test_poll_once_logs_fetch_errors(make_api, logger, caplog) -> None:
    api = make_api(batches=[TelegramBotApiError("Telegram getUpdates failed: boom")])

    async def on_update(update: dict) -> None:
        raise AssertionError("no updates expected")

    loop = PollingLoop(api=api, on_update=on_update, logger=logger, cursor=4)

    with caplog.at_level(logging.ERROR, logger=logger.name):
        assert await loop.poll_once() == 0

    assert "Telegram poll error" in caplog.text
    assert loop.cursor == 4
    assert loop.state is PollState.IDLE


@pytest.mark.anyio
async def test_poll_once_rejects_overlapping_cycles(make_api, logger) -> None:
    api = make_api(batches=[[{"update_id": 1}]])
    errors: list[Exception] = []

    async def on_update(update: dict) -> None:
        try:
            await loop.poll_once()
        except RuntimeError as e:
            errors.append(e)

    loop = PollingLoop(api=api, on_update=on_update, logger=logger)
    await loop.poll_once()

    assert [str(e) for e in errors] == ["A poll cycle is already in flight"]
    assert len(api.calls_for("getUpdates")) == 1


@pytest.mark.anyio
async def test_run_forever_survives_errors_until_stopped(make_api, logger) -> None:
    api = make_api(
        batches=[
            TelegramBotApiError("Telegram getUpdates failed: network error"),
            [],
            [{"update_id": 7}],
        ]
    )
    handled: list[int] = []

    async def on_update(update: dict) -> None:
        handled.append(update["update_id"])
        loop.stop()

    loop = PollingLoop(api=api, on_update=on_update, logger=logger, interval_ms=1)

    with anyio.fail_after(5):
        await loop.run_forever()

    assert handled == [7]
    assert len(api.calls_for("getUpdates")) == 3
    assert loop.state is PollState.STOPPED

    with pytest.raises(RuntimeError, match="stopped"):
        await loop.run_forever()
    with pytest.raises(RuntimeError, match="stopped"):
        await loop.poll_once()


def test_polling_loop_rejects_invalid_interval(fake_api, logger) -> None:
    async def on_update(update: dict) -> None:
        pass

    with pytest.raises(ValueError, match="interval_ms"):
        PollingLoop(api=fake_api, on_update=on_update, logger=logger, interval_ms=0)


@pytest.mark.anyio
async def test_poll_once_survives_socket_timeouts(monkeypatch, logger, caplog) -> None:
    def fake_urlopen(request, timeout):
        raise TimeoutError("timed out")

    monkeypatch.setattr(urllib.request, "urlopen", fake_urlopen)

    async def on_update(update: dict) -> None:
        raise AssertionError("no updates expected")

    loop = PollingLoop(
        api=TelegramBotApi(token="t"), on_update=on_update, logger=logger, cursor=7
    )

    with caplog.at_level(logging.ERROR, logger=logger.name):
        assert await loop.poll_once() == 0

    assert "Telegram getUpdates failed: network error" in caplog.text
    assert loop.cursor == 7
    assert loop.state is PollState.IDLE
