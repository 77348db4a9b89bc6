"""
RBO Django Store Adapter
=========================
KeyValueStore backed by one Django table: one row per key, the whole
collection stored as a JSON value.
"""
