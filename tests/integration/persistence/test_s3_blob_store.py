"""Integration tests for S3BlobStore and BatchManager against LocalStack."""

from __future__ import annotations

import uuid

import pytest

from floodgate.batching.batch_manager import BatchManager
from floodgate.core.config import BatchConfig
from floodgate.core.exceptions import BlobNotFoundError
from floodgate.core.types import PROMOTE_ACTION
from floodgate.persistence.s3_backend import S3BlobStore
from tests.integration.conftest import LOCALSTACK_URL, ROOT, skip_no_localstack


@skip_no_localstack
class TestS3Integration:
    @pytest.fixture
    def store(self, seeded_bucket):
        return S3BlobStore(bucket=seeded_bucket, region="us-east-1", endpoint_url=LOCALSTACK_URL)

    def test_seeded_tracker(self, store):
        assert store.read(f"{ROOT}/promoteAction/tracker.json") == b'{"instanceKeys": []}'

    def test_missing_key(self, store):
        with pytest.raises(BlobNotFoundError):
            store.read(f"{ROOT}/nope/{uuid.uuid4().hex}.json")

    def test_batches_round_trip(self, store):
        key = f"/it-{uuid.uuid4().hex[:8]}"
        config = BatchConfig(batch_files_path=f"{ROOT}/{uuid.uuid4().hex[:8]}", max_files_per_batch=2)
        manager = BatchManager(PROMOTE_ACTION, store=store, config=config, instance_key=key).init()
        for name in ["a", "b", "c"]:
            manager.add_file(name)
        manager.finalize_instance({"fgRootFolder": key})

        reader = BatchManager(PROMOTE_ACTION, store=store, config=config).init()
        manifest = reader.get_instance_data()
        assert [b.num_files for b in manifest.dtls.batches_info] == [2, 1]
        files = reader.init_batch(1).get_files()
        assert [f.file for f in files] == ["a", "b"]

        reader.cleanup_files()
        assert store.list(f"{reader.instance_path}/") == []
