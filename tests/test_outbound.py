import logging

import anyio
import pytest

from tgbridge.telegram import (
    MAX_MESSAGE_LENGTH,
    InvalidPayloadError,
    OutboundChunker,
    OutboundEnvelope,
    apply_extra_options,
    split_into_chunks,
)


def test_apply_extra_options_leaves_plain_text_alone() -> None:
    payload = apply_extra_options({"text": "normal"})
    assert "parse_mode" not in payload


@pytest.mark.parametrize(
    "text",
    [
        "markdown *message*",
        "markdown _message_",
        "markdown `message`",
        "markdown [message](http://link.com)",
    ],
)
def test_apply_extra_options_detects_markdown(text: str) -> None:
    assert apply_extra_options({"text": text})["parse_mode"] == "Markdown"


def test_apply_extra_options_extra_keys_win() -> None:
    extra = {"parse_mode": "HTML", "nested": {"extra": True}, "null_object": None}
    payload = apply_extra_options({"text": "*bold*", "chat_id": 1}, extra)

    assert payload["parse_mode"] == "HTML"
    assert payload["nested"] == {"extra": True}
    assert payload["null_object"] is None
    assert payload["chat_id"] == 1


def test_apply_extra_options_can_override_chat_id() -> None:
    payload = apply_extra_options({"text": "x", "chat_id": 1}, {"chat_id": 2})
    assert payload["chat_id"] == 2


def test_split_into_chunks_short_text_is_single_chunk() -> None:
    text = "x" * MAX_MESSAGE_LENGTH
    assert split_into_chunks(text) == [text]


def test_split_into_chunks_ignores_newlines() -> None:
    text = ("a" * 999 + "\n") * 5
    assert len(text) == 5000

    chunks = split_into_chunks(text)

    assert [len(c) for c in chunks] == [4096, 904]
    assert chunks[0] == text[:4096]
    assert not chunks[0].endswith("\n")
    assert "".join(chunks) == text


def test_split_into_chunks_rejects_empty_text() -> None:
    with pytest.raises(InvalidPayloadError):
        split_into_chunks("")


@pytest.mark.anyio
async def test_api_send_single_chunk_is_one_call(fake_api, logger) -> None:
    chunker = OutboundChunker(fake_api, logger)
    outcomes: list = []

    await chunker.api_send(
        {"chat_id": 5, "text": "hello"}, lambda err, res: outcomes.append((err, res))
    )

    assert fake_api.calls_for("sendMessage") == [{"chat_id": 5, "text": "hello"}]
    assert len(outcomes) == 1
    assert outcomes[0][0] is None
    assert outcomes[0][1]["text"] == "hello"


@pytest.mark.anyio
async def test_api_send_long_text_is_sent_in_order(fake_api, logger) -> None:
    chunker = OutboundChunker(fake_api, logger)
    text = "a" * 4096 + "b" * 904
    outcomes: list = []

    await chunker.api_send(
        {"chat_id": 5, "text": text, "parse_mode": "Markdown"},
        lambda err, res: outcomes.append((err, res)),
    )

    sent = fake_api.calls_for("sendMessage")
    assert [p["text"] for p in sent] == ["a" * 4096, "b" * 904]
    assert all(p["chat_id"] == 5 and p["parse_mode"] == "Markdown" for p in sent)
    assert [err for err, _ in outcomes] == [None, None]


@pytest.mark.anyio
async def test_api_send_never_overlaps_chunks(logger) -> None:
    in_flight = 0
    max_in_flight = 0
    order: list[str] = []

    class _SlowApi:
        async def send_message(self, **params):
            nonlocal in_flight, max_in_flight
            in_flight += 1
            max_in_flight = max(max_in_flight, in_flight)
            await anyio.sleep(0.01)
            order.append(params["text"][0])
            in_flight -= 1
            return {"message_id": len(order)}

    chunker = OutboundChunker(_SlowApi(), logger)
    await chunker.api_send(
        {"chat_id": 1, "text": "a" * 4096 + "b" * 4096 + "c"},
        lambda err, res: None,
    )

    assert order == ["a", "b", "c"]
    assert max_in_flight == 1


@pytest.mark.anyio
async def test_api_send_reports_failures_per_chunk(make_api, logger) -> None:
    api = make_api(fail_methods={"sendMessage"})
    chunker = OutboundChunker(api, logger)
    errors: list = []

    await chunker.api_send(
        {"chat_id": 1, "text": "x" * 5000}, lambda err, res: errors.append((err, res))
    )

    assert len(api.calls_for("sendMessage")) == 2
    assert len(errors) == 2
    assert all(err is not None and res is None for err, res in errors)


@pytest.mark.anyio
async def test_api_send_awaits_async_callbacks(fake_api, logger) -> None:
    chunker = OutboundChunker(fake_api, logger)
    seen: list[int] = []

    async def callback(err, res) -> None:
        await anyio.sleep(0)
        seen.append(res["message_id"])

    await chunker.api_send({"chat_id": 1, "text": "y" * 4097}, callback)

    assert len(seen) == 2


@pytest.mark.anyio
async def test_api_send_rejects_empty_text(fake_api, logger) -> None:
    chunker = OutboundChunker(fake_api, logger)

    with pytest.raises(InvalidPayloadError):
        await chunker.api_send({"chat_id": 1, "text": ""}, lambda err, res: None)
    assert fake_api.calls == []


@pytest.mark.anyio
async def test_send_builds_payload_with_envelope_extras(fake_api, logger) -> None:
    chunker = OutboundChunker(fake_api, logger)
    envelope = OutboundEnvelope(
        room=-100, telegram={"disable_web_page_preview": True}
    )

    await chunker.send(envelope, "line *one*", "line two")

    assert fake_api.calls_for("sendMessage") == [
        {
            "chat_id": -100,
            "text": "line *one*\nline two",
            "parse_mode": "Markdown",
            "disable_web_page_preview": True,
        }
    ]


@pytest.mark.anyio
async def test_reply_sets_reply_target(fake_api, logger) -> None:
    chunker = OutboundChunker(fake_api, logger)

    await chunker.reply(OutboundEnvelope(room=42, message_id=7), "ok")

    assert fake_api.calls_for("sendMessage") == [
        {"chat_id": 42, "text": "ok", "reply_to_message_id": 7}
    ]


@pytest.mark.anyio
async def test_deliver_routes_on_reply_flag(fake_api, logger) -> None:
    chunker = OutboundChunker(fake_api, logger)

    await chunker.deliver(OutboundEnvelope(room=1, message_id=3), "plain")
    await chunker.deliver(OutboundEnvelope(room=1, message_id=3, reply=True), "reply")

    sent = fake_api.calls_for("sendMessage")
    assert "reply_to_message_id" not in sent[0]
    assert sent[1]["reply_to_message_id"] == 3


@pytest.mark.anyio
async def test_send_failure_is_logged_not_raised(make_api, logger, caplog) -> None:
    api = make_api(fail_methods={"sendMessage"})
    chunker = OutboundChunker(api, logger)

    with caplog.at_level(logging.INFO, logger=logger.name):
        await chunker.send(OutboundEnvelope(room=9), "hello")
        await chunker.reply(OutboundEnvelope(room=9, message_id=4), "hello")

    assert "Sending message to room 9 failed" in caplog.text
    assert "Reply to room/message 9/4 failed" in caplog.text
    assert len(api.calls_for("sendMessage")) == 2


@pytest.mark.anyio
async def test_send_success_is_logged(fake_api, logger, caplog) -> None:
    chunker = OutboundChunker(fake_api, logger)

    with caplog.at_level(logging.INFO, logger=logger.name):
        await chunker.send(OutboundEnvelope(room=9), "hello")

    assert "Sending message to room: 9" in caplog.text
