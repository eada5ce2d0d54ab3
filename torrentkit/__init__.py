"""Building blocks for BitTorrent clients: bitfields, blocklists, magnet links, metainfo, encryption and peer handshakes."""

__version__ = "0.1.0"