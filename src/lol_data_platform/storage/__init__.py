"""Storage adapters: MongoDB source documents and S3 bronze objects."""

from .mongo import MongoMatchSource, build_match_query
from .s3 import S3ObjectStore, encode_record

__all__ = [
    "MongoMatchSource",
    "S3ObjectStore",
    "build_match_query",
    "encode_record",
]
