"""
Output handling for untrusted LLM replies.
"""

from .parser import DecodeResult, Malformed, Ok, decode_json, decode_json_object

__all__ = [
    "DecodeResult",
    "Malformed",
    "Ok",
    "decode_json",
    "decode_json_object",
]
