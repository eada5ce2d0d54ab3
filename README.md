# torrentkit

Building blocks for BitTorrent clients, in pure Python with no third-party
dependencies.

## What is inside

- `torrentkit.bitfield`: `Bitfield`, a fixed-length bit field stored most
  significant bit first. It has `set`, `clear`, `test`, `count`, `all`, `copy`
  and `hex`. `Bitfield.from_bytes` builds one over existing bytes and clears
  the unused bits of the last byte. `num_bytes` gives the bytes needed for a
  number of bits.
- `torrentkit.stree`: `SegmentTree`. Add closed intervals with `add_range`,
  call `build`, then use `query` and `contains`.
- `torrentkit.blocklist`: `Blocklist`, a thread-safe set of blocked IPv4
  ranges. `reload` reads CIDR rules one per line from any iterable of lines,
  either text or bytes. Blank lines and `#` comments are skipped. It raises
  `BlocklistError` if no line parses. `parse_cidr` turns one rule into its
  first and last address.
- `torrentkit.fast`: `generate_fast_set`, which gives the allowed-fast piece
  set of BEP 6.
- `torrentkit.peerpriority`: `calculate`, the peer priority of BEP 40 for two
  `(ip, port)` pairs, and `crc32c`.
- `torrentkit.externalip`: `is_public_ip`, `is_external` and
  `first_external_ip`, for the public IPv4 addresses of this host.
- `torrentkit.addrlist`: `AddrList`, a bounded list of `(ip, port)` peer
  addresses. `pop` returns the address with the highest priority first. When
  the list is full, the oldest entries are dropped. Addresses with port 0, the
  client's own address and blocked addresses are skipped.
- `torrentkit.magnet`: `Magnet.parse` for magnet links (`urn:btih:` in hex or
  base32, and `urn:btmh:`). `str(magnet)` gives the link back. Errors raise
  `MagnetError`.
- `torrentkit.bencode`: `encode` and `decode`. Errors raise `BencodeError`.
- `torrentkit.info`: `Info.from_bytes` parses an info dictionary.
  `new_info_bytes` hashes a file or a directory on disk into a new info
  dictionary. Also here are `calculate_piece_length`, `clean_name` and
  `clean_name_n`.
- `torrentkit.metainfo`: `MetaInfo.load` reads a `.torrent` file. It keeps
  only HTTP, HTTPS and UDP trackers and HTTP or HTTPS web seeds.
  `new_bytes` writes a new torrent file around an info dictionary.
- `torrentkit.infodownloader`: `InfoDownloader`, which requests metadata
  blocks of 16 KiB from a peer and collects them. Bad blocks raise
  `MetadataError`.
- `torrentkit.filesection`: `FileSection` and `Piece`, for reading and writing
  one piece that spans sections of several files.
- `torrentkit.clientid`: `client_id`, which extracts the client part of a
  peer ID.
- `torrentkit.logger`: `new_logger`, `set_handler`, `set_level` and
  `LogFormatter`. Every logger writes through one shared handler. By default
  that handler writes to standard error at INFO level.
- `torrentkit.mse`: Message Stream Encryption. `Stream` wraps any object that
  has `read` and `write`. `Conn` wraps a socket. It also provides `RC4`,
  `CryptoMethod` and `hash_skey`. Handshake failures raise `MSEError`.
- `torrentkit.btconn`: the peer handshake over TCP. `dial` returns a
  `DialResult` and `accept` returns an `AcceptResult`, each with or without
  encryption. Also here are `write_handshake`, `read_handshake1`,
  `read_handshake2` and `HandshakeError`.
- `torrentkit.handshaker`: `IncomingHandshaker` and `OutgoingHandshaker`.
  Each runs a handshake, for example in a thread, and puts itself on a queue
  when it is done.
- `torrentkit.acceptor`: `Acceptor`, which accepts sockets from a listener and
  puts them on a `queue.Queue`.
- `torrentkit.dhtannouncer`: `DHTAnnouncer`, which calls an announce function
  at one interval while more peers are needed and at another interval
  otherwise.

## Examples

```python
from torrentkit.magnet import Magnet

m = Magnet.parse(
    "magnet:?xt=urn:btih:F60CC95E3566AF84C1AB223FD4CE80FA88E6438A"
    "&dn=sample_torrent&tr=udp%3a%2f%2ftracker.rain%3a2710"
)
print(m.name, m.trackers)
print(str(m))
```

```python
from torrentkit.metainfo import MetaInfo

with open("example.torrent", "rb") as f:
    mi = MetaInfo.load(f)
print(mi.info.name, mi.info.length, mi.info.hash.hex())
```

```python
from torrentkit.blocklist import Blocklist

bl = Blocklist()
with open("blocklist.cidr", "rb") as f:
    bl.reload(f)
print(bl.blocked("6.1.2.3"))
```

```python
from torrentkit.bitfield import Bitfield

bf = Bitfield(10)
bf.set(0)
bf.set(9)
print(bf.hex(), bf.count())  # 8040 2
```

## What it does not do

torrentkit is a set of parts, not a complete client. It has no command-line
program and no download session. It does not talk to trackers, does not read
or write peer wire messages after the handshake, and does not store pieces on
disk. You build those pieces yourself on top of the modules above.

## Running the tests

```
pip install -e .[test]
pytest
```