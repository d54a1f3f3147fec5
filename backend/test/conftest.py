"""
Shared fixtures: no real Gemini, Hume or MongoDB is ever contacted.
Run from the repo root:  pytest
"""

import copy
from types import SimpleNamespace

import pytest
from pymongo import DESCENDING
from pymongo.errors import DuplicateKeyError

import db
import services.ai
import services.hume


class FakeCursor:
    def __init__(self, docs):
        self.docs = docs

    def sort(self, key, direction):
        self.docs = sorted(self.docs, key=lambda d: d.get(key) or "", reverse=direction == DESCENDING)
        return self

    def limit(self, n):
        self.docs = self.docs[:n]
        return self

    def __iter__(self):
        return iter(self.docs)


class FakeCollection:
    """The slice of pymongo.Collection that db.py uses, backed by a list."""

    def __init__(self):
        self.docs = []
        self.indexes = []

    @staticmethod
    def _matches(doc, query):
        return all(doc.get(k) == v for k, v in query.items())

    @staticmethod
    def _project(doc, projection):
        out = copy.deepcopy(doc)
        if projection and projection.get("_id") == 0:
            out.pop("_id", None)
        return out

    def insert_one(self, doc):
        if any(d["id"] == doc["id"] for d in self.docs):
            raise DuplicateKeyError(f"duplicate id {doc['id']}")
        stored = copy.deepcopy(doc)
        stored["_id"] = len(self.docs) + 1
        self.docs.append(stored)
        return SimpleNamespace(inserted_id=stored["_id"])

    def find_one(self, query, projection=None):
        for doc in self.docs:
            if self._matches(doc, query):
                return self._project(doc, projection)
        return None

    def find(self, query, projection=None):
        return FakeCursor([self._project(d, projection) for d in self.docs if self._matches(d, query)])

    def replace_one(self, query, replacement):
        for i, doc in enumerate(self.docs):
            if self._matches(doc, query):
                stored = copy.deepcopy(replacement)
                stored["_id"] = doc["_id"]
                self.docs[i] = stored
                return SimpleNamespace(matched_count=1, modified_count=1)
        return SimpleNamespace(matched_count=0, modified_count=0)

    def create_index(self, keys, **kwargs):
        self.indexes.append((keys, kwargs))


@pytest.fixture(autouse=True)
def offline(monkeypatch):
    """Every test runs as if no vendor keys were configured, unless it opts in."""
    monkeypatch.setattr(services.ai, "GEMINI_API_KEY", None)
    monkeypatch.setattr(services.hume, "HUME_API_KEY", None)


@pytest.fixture
def calls_collection(monkeypatch):
    collection = FakeCollection()
    monkeypatch.setattr(db, "calls_collection", collection)
    return collection


@pytest.fixture
def client(calls_collection):
    from app import app

    app.config["TESTING"] = True
    with app.test_client() as c:
        yield c
