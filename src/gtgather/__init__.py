"""
gtgather: Gather variant query results across cooperating participants.

Each participant queries its share of a variant array, encodes the result
into a byte buffer, and the group runs a two-phase gather (sizes, then
payloads) so a single coordinator can decode one ordered result stream.
"""

__version__ = "0.3.0"
