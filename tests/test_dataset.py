"""Tests for evaluation/dataset.py: fixture loading."""
from __future__ import annotations

import json

import pytest

from evaluation.dataset import DatasetError, load_dataset
from schemas.config import EvaluationConfig
from schemas.models import QUERY_TYPES


def _write(path, payload) -> None:
    path.write_text(json.dumps(payload), encoding="utf-8")


class TestLoadDataset:
    def test_bundled_dataset(self):
        dataset = load_dataset(EvaluationConfig().dataset_path)
        assert len(dataset.queries) == dataset.metadata.total_queries
        assert {q.type for q in dataset.queries} == set(QUERY_TYPES)

    def test_missing_file(self, tmp_path):
        with pytest.raises(DatasetError, match="not found"):
            load_dataset(tmp_path / "missing.json")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(DatasetError, match="not valid JSON"):
            load_dataset(path)

    def test_schema_violation(self, tmp_path):
        path = tmp_path / "bad.json"
        _write(path, {"queries": [{"id": "q1", "type": "exact-match"}]})
        with pytest.raises(DatasetError, match="invalid"):
            load_dataset(path)

    def test_duplicate_ids(self, tmp_path):
        path = tmp_path / "dupes.json"
        query = {"id": "q1", "query": "logo", "type": "semantic"}
        _write(path, {"queries": [query, query]})
        with pytest.raises(DatasetError, match="q1"):
            load_dataset(path)

    def test_accepts_string_path(self, tmp_path):
        path = tmp_path / "ok.json"
        _write(path, {"queries": [{"id": "q1", "query": "logo", "type": "semantic"}]})
        assert load_dataset(str(path)).queries[0].id == "q1"
