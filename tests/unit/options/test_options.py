from __future__ import annotations

import pytest

from collection_filter.errors import ConfigurationError
from collection_filter.options import RunOptions


def test_defaults():
    options = RunOptions.parse({"collection_ids": ["a"]})

    assert options.collection_ids == ["a"]
    assert options.buffer_limit == 50_000
    assert options.parallel_loads == 1
    assert options.load_batch_size == 10_000
    assert options.load_offset == 0
    assert options.load_limit is None
    assert options.output_limit is None
    assert options.output_offset == 0
    assert options.ordered is True
    assert options.include_collection_id is False


def test_camel_case_aliases():
    options = RunOptions.parse(
        {
            "datasetIds": ["a", "b"],
            "filterMap": "mod:fn",
            "deduplicationKey": "url",
            "outputLimit": 10,
            "outputOffset": 2,
            "includeDatasetId": True,
            "parallelLoads": 4,
            "loadBatchSize": 500,
            "loadFields": ["url"],
            "bufferLimit": 100,
            "transformTimeout": 1.5,
        }
    )

    assert options.collection_ids == ["a", "b"]
    assert options.transform == "mod:fn"
    assert options.dedup_key == "url"
    assert options.output_limit == 10
    assert options.output_offset == 2
    assert options.include_collection_id is True
    assert options.parallel_loads == 4
    assert options.load_batch_size == 500
    assert options.load_fields == ["url"]
    assert options.buffer_limit == 100
    assert options.transform_timeout == 1.5


def test_legacy_single_collection_is_appended():
    options = RunOptions.parse({"datasetIds": ["a"], "datasetId": "b"})
    assert options.collection_ids == ["a", "b"]

    options = RunOptions.parse({"collectionId": "only"})
    assert options.collection_ids == ["only"]


def test_legacy_single_collection_not_duplicated():
    options = RunOptions.parse({"collection_ids": ["a"], "collection_id": "a"})
    assert options.collection_ids == ["a"]


@pytest.mark.parametrize(
    "data",
    [
        {},
        {"collection_ids": []},
        {"collection_ids": ["  "]},
        {"collection_ids": ["a"], "buffer_limit": 0},
        {"collection_ids": ["a"], "output_limit": 0},
        {"collection_ids": ["a"], "output_offset": -1},
        {"collection_ids": ["a"], "parallel_loads": 0},
        {"collection_ids": ["a"], "load_batch_size": -5},
        {"collection_ids": ["a"], "unknown_option": True},
    ],
)
def test_invalid_options_raise_configuration_error(data):
    with pytest.raises(ConfigurationError) as exc_info:
        RunOptions.parse(data)
    assert str(exc_info.value).startswith("Invalid configuration")


def test_configuration_error_is_value_error():
    with pytest.raises(ValueError):
        RunOptions.parse({})
