#!/usr/bin/env python3
"""
Create the MongoDB indexes used by the analytics repositories.

Usage:
    python scripts/create_indexes.py

The API also applies these on startup; run this ahead of a deploy so a
large collection is indexed before traffic arrives.
"""

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)) + '/..')

from document_store import DocumentStore, mask_credentials
from settings import settings

uri = settings.mongo_uri()
print('Connecting to', mask_credentials(uri))
store = DocumentStore(uri, settings.mongo_database, timeout_ms=settings.mongo_timeout_ms).open()
try:
    store.ensure_indexes()
    for coll in (store.activity_events, store.metric_buckets):
        print(f'{coll.name}:', ', '.join(sorted(coll.index_information())))
finally:
    store.close()
print('Indexes applied')
