import asyncio

import pytest

from fnsplit.codec import binary_codec, compile_schema
from fnsplit.dispatch import DispatchTable, Dispatcher, Route
from fnsplit.errors import CodecError, DuplicateIdentifierError, UnknownMethodError
from fnsplit.protocol import IDENTIFIER

ADD_ID = 0x1234_5678_9ABC_DEF0


class Recorder:
    def __init__(self):
        self.calls = []

    def add(self, a, b):
        self.calls.append((a, b))
        return float(a) + float(b)

    async def slow_echo(self, text):
        self.calls.append((text,))
        await asyncio.sleep(0)
        return text.upper()


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def dispatcher(recorder):
    table = DispatchTable([
        Route(ADD_ID, "calc.add", recorder.add, ("u64", "i32"), "f32"),
        Route(42, "text.slow_echo", recorder.slow_echo, ("str",), "str"),
    ])
    return Dispatcher(table, binary_codec)


def request(identifier, args, annotation):
    return IDENTIFIER.pack(identifier) + binary_codec.encode(args, compile_schema(annotation))


class TestDispatcher:
    """Decode, invoke once, encode."""

    def test_known_identifier_invokes_once(self, dispatcher, recorder):
        response = asyncio.run(dispatcher(request(ADD_ID, (5, -2), "tuple[u64, i32]")))

        assert recorder.calls == [(5, -2)]
        assert binary_codec.decode(response, compile_schema("f32")) == 3.0

    def test_async_implementation_is_awaited(self, dispatcher, recorder):
        response = asyncio.run(dispatcher(request(42, ("hi",), "tuple[str]")))
        assert binary_codec.decode(response, compile_schema("str")) == "HI"
        assert recorder.calls == [("hi",)]

    def test_unknown_identifier(self, dispatcher, recorder):
        with pytest.raises(UnknownMethodError) as info:
            asyncio.run(dispatcher(request(ADD_ID ^ 1, (5, -2), "tuple[u64, i32]")))

        assert info.value.identifier == ADD_ID ^ 1
        assert recorder.calls == []

    def test_truncated_arguments_invoke_nothing(self, dispatcher, recorder):
        good = request(ADD_ID, (5, -2), "tuple[u64, i32]")
        with pytest.raises(CodecError):
            asyncio.run(dispatcher(good[:-1]))
        assert recorder.calls == []

    def test_trailing_bytes_invoke_nothing(self, dispatcher, recorder):
        good = request(ADD_ID, (5, -2), "tuple[u64, i32]")
        with pytest.raises(CodecError):
            asyncio.run(dispatcher(good + b"\x00"))
        assert recorder.calls == []

    def test_short_identifier(self, dispatcher, recorder):
        with pytest.raises(CodecError):
            asyncio.run(dispatcher(b"\x00\x01"))
        assert recorder.calls == []

    def test_unencodable_result(self, recorder):
        table = DispatchTable([Route(1, "bad", lambda: "not a number", (), "u8")])
        with pytest.raises(CodecError):
            asyncio.run(Dispatcher(table, binary_codec)(IDENTIFIER.pack(1)))

    def test_concurrent_requests(self, dispatcher, recorder):
        async def main():
            return await asyncio.gather(*(
                dispatcher(request(42, (f"m{i}",), "tuple[str]")) for i in range(20)
            ))

        responses = asyncio.run(main())
        decoded = [binary_codec.decode(r, compile_schema("str")) for r in responses]
        assert decoded == [f"M{i}" for i in range(20)]
        assert len(recorder.calls) == 20


class TestDispatchTable:
    def test_duplicate_identifier(self):
        with pytest.raises(DuplicateIdentifierError) as info:
            DispatchTable([Route(1, "a.f", print), Route(1, "b.g", print)])
        assert (info.value.path_a, info.value.path_b) == ("a.f", "b.g")

    def test_is_read_only(self):
        table = DispatchTable([Route(1, "a.f", print)])
        assert table[1].name == "a.f"
        assert list(table) == [1]
        with pytest.raises(TypeError):
            table[2] = Route(2, "b.g", print)
        with pytest.raises(TypeError):
            table._routes[2] = Route(2, "b.g", print)
