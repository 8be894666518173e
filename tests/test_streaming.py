"""Tests for the pixel stream codec, frame generator and stream transport"""

import asyncio
from unittest.mock import MagicMock, patch

import pytest

from wledlink.streaming import (
    PaletteFlowGenerator,
    build_header,
    encode_frame,
    pack_pixels,
    parse_header,
)
from wledlink.transports.stream import StreamTransport, SIMULATED_LED_COUNT


def test_header_bytes_rgb():
    header = build_header(300, offset=0, rgbw=False, sequence=5)
    assert header == bytes([0x41, 0x4C, 0x56, 0x01, 0x01, 0x05, 0x01, 0x2C, 0x00, 0x00, 0x00, 0x00])


def test_header_bytes_rgbw_with_offset():
    header = build_header(8, offset=0x010203, rgbw=True, sequence=255)
    assert header == bytes([0x41, 0x4C, 0x56, 0x01, 0x11, 0xFF, 0x00, 0x08, 0x00, 0x01, 0x02, 0x03])


def test_header_rejects_oversized_payload():
    with pytest.raises(ValueError):
        build_header(0x10000)


def test_encode_frame_parses_back():
    packet = encode_frame(b"\x01\x02\x03", sequence=9, offset=3)
    header = parse_header(packet)
    assert header["sequence"] == 9
    assert header["length"] == 3
    assert header["offset"] == 3
    assert header["rgbw"] is False
    assert packet[12:] == b"\x01\x02\x03"


def test_pack_pixels():
    assert pack_pixels([(1, 2, 3), (300, -1, 5)]) == bytes([1, 2, 3, 255, 0, 5])
    assert pack_pixels([(1, 2, 3)], rgbw=True) == bytes([1, 2, 3, 0])
    assert pack_pixels([(1, 2, 3, 4)], rgbw=False) == bytes([1, 2, 3])


def test_generator_frame_size():
    gen = PaletteFlowGenerator([[255, 0, 0], [0, 0, 255]], pixel_count=10)
    assert len(gen.next_frame(0.016)) == 30
    gen_rgbw = PaletteFlowGenerator([[255, 0, 0, 40]], pixel_count=10, rgbw=True)
    assert len(gen_rgbw.next_frame(0.016)) == 40


def test_generator_empty_palette_is_dark():
    gen = PaletteFlowGenerator([], pixel_count=4)
    assert gen.next_frame(1.0) == bytes(12)


def test_generator_speed_follows_elapsed_time():
    palette = [[255, 0, 0], [0, 255, 0], [0, 0, 255]]
    fast = PaletteFlowGenerator(palette, pixel_count=20)
    slow = PaletteFlowGenerator(palette, pixel_count=20)

    for _ in range(10):
        many = fast.next_frame(0.1)
    once = slow.next_frame(1.0)

    assert all(abs(a - b) <= 1 for a, b in zip(many, once))


@pytest.mark.asyncio
async def test_sequence_wraps_in_simulation():
    stream = StreamTransport("10.0.0.7", simulate=True)
    await stream.start()
    for _ in range(256):
        stream.send_frame(b"\x00\x00\x00")
    assert stream.sequence == 0
    stream.send_frame(b"\x00\x00\x00")
    assert stream.sequence == 1
    await stream.stop()


@pytest.mark.asyncio
async def test_sequence_advances_without_session():
    stream = StreamTransport("10.0.0.7", simulate=False)
    assert stream.send_frame(b"\x00\x00\x00") is False
    assert stream.sequence == 1


@pytest.mark.asyncio
async def test_send_frame_over_udp():
    sock = MagicMock()
    with patch("wledlink.transports.stream.socket.socket", return_value=sock):
        stream = StreamTransport("10.0.0.7", port=4048, simulate=False)
        await stream.start()
        assert stream.is_active

        assert stream.send_frame(b"\x01\x02\x03") is True
        assert stream.send_frame(b"\x04\x05\x06", rgbw=False) is True

        first, second = [c.args for c in sock.sendto.call_args_list]
        assert first[1] == ("10.0.0.7", 4048)
        assert parse_header(first[0])["sequence"] == 0
        assert parse_header(second[0])["sequence"] == 1
        assert second[0][12:] == b"\x04\x05\x06"

        await stream.stop()
    assert not stream.is_active
    sock.close.assert_called_once()


@pytest.mark.asyncio
async def test_send_error_is_not_raised():
    sock = MagicMock()
    sock.sendto.side_effect = OSError("network unreachable")
    with patch("wledlink.transports.stream.socket.socket", return_value=sock):
        stream = StreamTransport("10.0.0.7", simulate=False)
        await stream.start()
        assert stream.send_frame(b"\x01\x02\x03") is False
        assert stream.sequence == 1
        await stream.stop()


@pytest.mark.asyncio
async def test_generator_loop_runs_until_stopped():
    gen = PaletteFlowGenerator([[255, 0, 0], [0, 0, 255]], pixel_count=8)
    stream = StreamTransport("10.0.0.7", fps=200, simulate=True)
    await stream.start(gen)
    await asyncio.sleep(0.1)
    await stream.stop()

    assert not stream.is_active
    sent = stream.sequence
    assert sent > 0
    await asyncio.sleep(0.02)
    assert stream.sequence == sent


@pytest.mark.asyncio
async def test_restart_stops_previous_session():
    gen = PaletteFlowGenerator([[255, 0, 0]], pixel_count=4)
    stream = StreamTransport("10.0.0.7", fps=200, simulate=True)
    await stream.start(gen)
    first_task = stream._task
    await stream.start(gen)
    assert first_task.done()
    assert stream.is_active
    await stream.stop()


@pytest.mark.asyncio
async def test_led_count_falls_back_to_default():
    stream = StreamTransport("10.0.0.7", simulate=False)
    with patch.object(StreamTransport, "_fetch_led_count", return_value=None):
        assert await stream.get_led_count(default=60) == 60
    with patch.object(StreamTransport, "_fetch_led_count", return_value=144):
        assert await stream.get_led_count(default=60) == 144

    simulated = StreamTransport("10.0.0.7", simulate=True)
    assert await simulated.get_led_count() == SIMULATED_LED_COUNT


@pytest.mark.asyncio
async def test_start_without_host_opens_nothing():
    with patch("wledlink.transports.stream.socket.socket") as make_socket:
        stream = StreamTransport(None, simulate=False)
        await stream.start(PaletteFlowGenerator([(255, 0, 0)], pixel_count=4))
        assert not stream.is_active
        assert stream.send_frame(b"\x01\x02\x03") is False
        make_socket.assert_not_called()
