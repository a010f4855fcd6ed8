"""GNSS location engine building blocks: NMEA sentences, XTRA messages, NI sessions, daemon control messages and named pipes."""

__version__ = "0.1.0"