import socket
import threading

import pytest

from torrentkit.mse import RC4, Conn, CryptoMethod, MSEError, Stream, hash_skey

SKEY = b"1234"


def read_exactly(stream, size):
    buf = b""
    while len(buf) < size:
        chunk = stream.read(size - len(buf))
        assert chunk, "unexpected end of stream"
        buf += chunk
    return buf


def make_pair():
    s1, s2 = socket.socketpair()
    s1.settimeout(10)
    s2.settimeout(10)
    return Conn(s1), Conn(s2)


def run_outgoing(conn, skey, provide, payload, result):
    def target():
        try:
            result["selected"] = conn.handshake_outgoing(skey, provide, payload)
        except Exception as exc:  # collected for the main thread
            result["error"] = exc

    t = threading.Thread(target=target)
    t.start()
    return t


def known_key(seen=None):
    def get_skey(h):
        if seen is not None:
            seen.append(h)
        return SKEY if h == hash_skey(SKEY) else None

    return get_skey


def select_rc4(provided):
    return CryptoMethod.RC4 if provided & CryptoMethod.RC4 else 0


@pytest.mark.parametrize(
    "key,plain,expected",
    [
        (b"Key", b"Plaintext", "bbf316e8d940af0ad3"),
        (b"Wiki", b"pedia", "1021bf0420"),
    ],
)
def test_rc4_vectors(key, plain, expected):
    assert RC4(key).process(plain).hex() == expected


def test_rc4_chunks_match_whole():
    data = bytes(range(200))
    whole = RC4(b"secret").process(data)
    c = RC4(b"secret")
    assert c.process(data[:77]) + c.process(data[77:]) == whole
    assert RC4(b"secret").process(whole) == data


def test_rc4_invalid_key():
    with pytest.raises(ValueError):
        RC4(b"")
    with pytest.raises(ValueError):
        RC4(bytes(257))


def test_crypto_method_str():
    assert str(CryptoMethod.RC4) == "RC4"
    assert str(CryptoMethod.PLAIN_TEXT) == "PlainText"
    assert str(CryptoMethod(3)) == "unknown"


def test_stream_rc4_handshake_and_payloads():
    a, b = make_pair()
    result = {}
    t = run_outgoing(a, SKEY, CryptoMethod.RC4, b"payloadA", result)
    seen = []
    b.handshake_incoming(known_key(seen), lambda p: CryptoMethod.RC4 if p == CryptoMethod.RC4 else 0)
    assert read_exactly(b, 8) == b"payloadA"
    assert b.write(b"payloadB") == 8
    t.join(10)
    assert "error" not in result
    assert result["selected"] == CryptoMethod.RC4
    assert read_exactly(a, 8) == b"payloadB"
    assert seen == [hash_skey(SKEY)]

    a.write(b"ABCD")
    assert read_exactly(b, 4) == b"ABCD"
    a.close()
    b.close()


def test_plaintext_selected_sends_unencrypted():
    a, b = make_pair()
    result = {}
    provide = CryptoMethod.RC4 | CryptoMethod.PLAIN_TEXT
    t = run_outgoing(a, SKEY, provide, b"", result)
    b.handshake_incoming(known_key(), lambda p: CryptoMethod.PLAIN_TEXT)
    t.join(10)
    assert result["selected"] == CryptoMethod.PLAIN_TEXT
    a.write(b"hello")
    assert read_exactly(b.raw, 5) == b"hello"
    b.write(b"world")
    assert read_exactly(a, 5) == b"world"
    a.close()
    b.close()


def test_incoming_rejects_unknown_skey():
    a, b = make_pair()
    result = {}
    t = run_outgoing(a, b"other", CryptoMethod.RC4, b"", result)
    with pytest.raises(MSEError, match="invalid SKEY hash"):
        b.handshake_incoming(known_key(), select_rc4)
    b.close()
    t.join(10)
    assert "selected" not in result
    assert "error" in result
    a.close()


def test_incoming_refuses_all_methods():
    a, b = make_pair()
    result = {}
    t = run_outgoing(a, SKEY, CryptoMethod.PLAIN_TEXT, b"", result)
    with pytest.raises(MSEError, match="none of the provided methods are accepted"):
        b.handshake_incoming(known_key(), select_rc4)
    b.close()
    t.join(10)
    assert "error" in result
    a.close()


def test_incoming_selected_not_provided():
    a, b = make_pair()
    result = {}
    t = run_outgoing(a, SKEY, CryptoMethod.PLAIN_TEXT, b"", result)
    with pytest.raises(MSEError, match="selected crypto is not provided"):
        b.handshake_incoming(known_key(), lambda p: CryptoMethod.RC4)
    b.close()
    t.join(10)
    assert "error" in result
    a.close()


def test_outgoing_argument_errors():
    a, b = make_pair()
    with pytest.raises(MSEError, match="no crypto methods"):
        a.handshake_outgoing(SKEY, 0, b"")
    with pytest.raises(MSEError, match="too big"):
        a.handshake_outgoing(SKEY, CryptoMethod.RC4, bytes(0x10000))
    a.close()
    b.close()


def test_read_write_before_handshake():
    a, b = make_pair()
    s = Stream(a.raw)
    with pytest.raises(MSEError):
        s.read(1)
    with pytest.raises(MSEError):
        s.write(b"x")
    a.close()
    b.close()


def test_hash_skey_shape():
    h = hash_skey(b"abc")
    assert len(h) == 20
    assert h == hash_skey(b"abc")
    assert h != hash_skey(b"abd")