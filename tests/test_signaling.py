import pytest

from relay.errors import InvalidPayload, PayloadTooLarge

OFFER = {"type": "offer", "sdp": "v=0\r\no=- 46117317 2 IN IP4 127.0.0.1\r\n"}


@pytest.mark.asyncio
async def test_offer_is_forwarded_with_sender(signaling, connect, transport):
    a, b = connect("A", "B")
    delivered = await signaling.relay("offer", b, a, OFFER)

    assert delivered is True
    assert transport.sent == [("A", "offer", {"offer": OFFER, "from": "B"})]


@pytest.mark.asyncio
async def test_handle_parses_wire_message(signaling, connect, transport):
    a, b = connect("A", "B")
    candidate = {"candidate": "candidate:1 1 udp 2122260223 10.0.0.2 54321 typ host", "sdpMid": "0"}

    await signaling.handle("ice-candidate", a, {"target": b, "candidate": candidate})
    await signaling.handle("answer", b, {"target": a, "answer": {"type": "answer", "sdp": "v=0"}})

    assert transport.events("B", "ice-candidate") == [{"candidate": candidate, "from": "A"}]
    assert transport.events("A", "answer") == [{"answer": {"type": "answer", "sdp": "v=0"}, "from": "B"}]


@pytest.mark.asyncio
async def test_message_to_gone_target_is_dropped_silently(signaling, connect, controller, transport):
    a, b = connect("A", "B")
    await controller.disconnect(a)

    assert await signaling.relay("offer", b, a, OFFER) is False
    assert await signaling.relay("offer", b, "never-seen", OFFER) is False
    assert transport.sent == []


@pytest.mark.asyncio
async def test_oversized_payload_is_rejected(signaling, connect, transport):
    a, b = connect("A", "B")
    huge = {"type": "offer", "sdp": "a" * 100_001}

    with pytest.raises(PayloadTooLarge) as exc:
        await signaling.relay("offer", b, a, huge)
    assert exc.value.details["limit"] == 100_000
    assert transport.sent == []


@pytest.mark.asyncio
async def test_payload_at_the_limit_is_forwarded(signaling, connect, transport):
    a, b = connect("A", "B")
    payload = "a" * (100_000 - 2)  # two bytes of JSON quotes

    assert await signaling.relay("offer", b, a, payload) is True


@pytest.mark.asyncio
@pytest.mark.parametrize("sdp", [
    "a" * 99_990,       # exactly 100000 bytes
    "\u00e9" * 49_995,  # exactly 100000 bytes, two per character
    "\u00e9" * 30_000,  # 60010 bytes
])
async def test_size_is_measured_on_compact_utf8_json(signaling, connect, transport, sdp):
    a, b = connect("A", "B")
    # {"sdp":"..."} adds ten bytes around the value
    assert await signaling.relay("offer", b, a, {"sdp": sdp}) is True
    assert len(transport.events("A", "offer")) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("sdp", ["a" * 99_991, "\u00e9" * 49_995 + "a"])
async def test_one_byte_over_the_limit_is_rejected(signaling, connect, transport, sdp):
    a, b = connect("A", "B")
    with pytest.raises(PayloadTooLarge) as exc:
        await signaling.relay("offer", b, a, {"sdp": sdp})
    assert exc.value.details["size"] == 100_001
    assert transport.sent == []


@pytest.mark.asyncio
async def test_candidate_size_is_bounded_too(signaling, connect):
    a, b = connect("A", "B")
    with pytest.raises(PayloadTooLarge):
        await signaling.handle("ice-candidate", b, {"target": a, "candidate": {"candidate": "x" * 200_000}})


@pytest.mark.asyncio
@pytest.mark.parametrize("data", [
    None,
    "just a string",
    {"offer": OFFER},
    {"target": "", "offer": OFFER},
    {"target": "A"},
    {"target": "A", "offer": None},
    {"target": "A", "offer": {}},
    {"target": "A", "answer": OFFER},
])
async def test_malformed_offer_is_rejected(signaling, connect, transport, data):
    connect("A", "B")
    with pytest.raises(InvalidPayload):
        await signaling.handle("offer", "B", data)
    assert transport.sent == []


@pytest.mark.asyncio
async def test_unknown_kind_is_rejected(signaling, connect):
    a, b = connect("A", "B")
    with pytest.raises(InvalidPayload):
        await signaling.relay("renegotiate", a, b, OFFER)


@pytest.mark.asyncio
async def test_relay_does_not_require_shared_room(signaling, controller, connect, transport):
    a, b = connect("A", "B")
    await controller.create_room(a, "r1")

    assert await signaling.relay("offer", a, b, OFFER) is True
    assert transport.events("B", "offer") == [{"offer": OFFER, "from": "A"}]
