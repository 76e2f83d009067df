from unittest.mock import Mock

import pytest
from botocore.exceptions import ClientError

from cumulus_api.db import models
from cumulus_api.errors import PartialMirrorFailure, PartialRelocationFailure
from cumulus_api.relocation import (
    GRANULE,
    Destination,
    FileRelocator,
    generate_move_file_params,
    get_files_existing_at_location,
)
from cumulus_api.s3 import object_exists
from tests import factories

DESTINATIONS = [
    Destination(regex=r".*\.hdf$", bucket="protected-bucket", filepath="MOD09GQ/006"),
    Destination(regex=r".*\.jpg$", bucket="public-bucket"),
]


def put_files(s3_client, files):
    for file in files:
        s3_client.put_object(Bucket=file["bucket"], Key=file["key"], Body=b"data")


def file_locations(session_factory, granule_id):
    with session_factory() as session:
        return sorted(
            (row.bucket, row.key)
            for row in models.files.search(session)
            if row.granule.granule_id == granule_id
        )


class TestGenerateMoveFileParams:
    def test_first_matching_destination_wins(self):
        files = [factories.fake_file("a.hdf")]
        destinations = [
            Destination(regex=r"\.hdf$", bucket="first"),
            Destination(regex=r".*", bucket="second"),
        ]

        (params,) = generate_move_file_params(files, destinations)

        assert params.source == {"Bucket": "source-bucket", "Key": "file-staging/a.hdf"}
        assert params.target == {"Bucket": "first", "Key": "a.hdf"}

    def test_destination_filepath(self):
        (params,) = generate_move_file_params([factories.fake_file("a.hdf")], DESTINATIONS)
        assert params.target == {"Bucket": "protected-bucket", "Key": "MOD09GQ/006/a.hdf"}

    def test_unmatched_file_stays(self):
        (params,) = generate_move_file_params([factories.fake_file("a.xml")], DESTINATIONS)
        assert params.source is None
        assert params.target is None

    def test_legacy_file(self):
        files = [{"filename": "s3://source-bucket/file-staging/a.jpg", "name": "a.jpg"}]

        (params,) = generate_move_file_params(files, DESTINATIONS)

        assert params.file["key"] == "file-staging/a.jpg"
        assert params.target == {"Bucket": "public-bucket", "Key": "a.jpg"}


def test_get_files_existing_at_location(s3_client):
    files = [factories.fake_file("a.hdf"), factories.fake_file("a.jpg")]
    s3_client.put_object(Bucket="public-bucket", Key="a.jpg", Body=b"data")

    existing = get_files_existing_at_location(
        s3_client, {"granuleId": "g1", "files": files}, DESTINATIONS
    )

    assert existing == [files[1]]


class TestFileRelocator:
    @pytest.fixture
    def relocator(self, coordinator, s3_client):
        return FileRelocator(coordinator, s3_client=s3_client, max_workers=2)

    @pytest.fixture
    def granule(self, services, collection_id, s3_client):
        granule = services.granules.create(factories.fake_granule(collection_id)).record
        put_files(s3_client, granule["files"])
        return granule

    def test_moves_files_and_updates_both_stores(
        self, relocator, granule, services, session_factory, s3_client, search_index
    ):
        granule_id = granule["granuleId"]
        reconcile = Mock()

        result = relocator.move_granule(granule, DESTINATIONS, reconcile)

        expected = [
            ("protected-bucket", f"MOD09GQ/006/{granule_id}.hdf"),
            ("public-bucket", f"{granule_id}.jpg"),
        ]
        assert [(f["bucket"], f["key"]) for f in result.updated_files] == expected
        assert result.errors == []
        for bucket, key in expected:
            assert object_exists(s3_client, bucket, key)
        for file in granule["files"]:
            assert not object_exists(s3_client, file["bucket"], file["key"])

        assert file_locations(session_factory, granule_id) == expected
        stored = services.granules.get(granule)
        assert [(f["bucket"], f["key"]) for f in stored["files"]] == expected
        assert search_index.documents[("granule", granule_id)]["files"] == stored["files"]
        reconcile.assert_called_once_with(granule, result.updated_files)

    def test_failed_file_keeps_its_location(
        self, relocator, granule, services, session_factory, s3_client
    ):
        granule_id = granule["granuleId"]
        hdf, jpg = granule["files"]
        s3_client.delete_object(Bucket=hdf["bucket"], Key=hdf["key"])
        reconcile = Mock()

        with pytest.raises(PartialRelocationFailure) as excinfo:
            relocator.move_granule(granule, DESTINATIONS, reconcile)

        (error,) = excinfo.value.errors
        assert error["moveParams"]["file"] == hdf
        assert error["reason"]
        moved_jpg = ("public-bucket", f"{granule_id}.jpg")
        assert file_locations(session_factory, granule_id) == sorted(
            [(hdf["bucket"], hdf["key"]), moved_jpg]
        )
        stored = services.granules.get(granule)
        assert [(f["bucket"], f["key"]) for f in stored["files"]] == [
            (hdf["bucket"], hdf["key"]),
            moved_jpg,
        ]
        reconcile.assert_called_once()

    def test_granule_without_relational_record(
        self, relocator, coordinator, collection_id, s3_client, session_factory
    ):
        granule = factories.fake_granule(collection_id)
        coordinator.document_store(GRANULE).write(granule)
        put_files(s3_client, granule["files"])

        result = relocator.move_granule(granule, DESTINATIONS)

        assert result.errors == []
        assert object_exists(s3_client, "public-bucket", f"{granule['granuleId']}.jpg")
        assert file_locations(session_factory, granule["granuleId"]) == []
        stored = coordinator.document_store(GRANULE).fetch_one(
            {"granuleId": granule["granuleId"], "collectionId": collection_id}
        )
        assert stored["files"][1]["bucket"] == "public-bucket"



    def test_unmatched_file_stays_in_place(
        self, relocator, services, collection_id, s3_client, session_factory
    ):
        files = [factories.fake_file("data.hdf"), factories.fake_file("metadata.xml")]
        granule = services.granules.create(
            factories.fake_granule(collection_id, files=files)
        ).record
        put_files(s3_client, files)

        result = relocator.move_granule(granule, DESTINATIONS)

        assert result.errors == []
        moved, unchanged = result.updated_files
        assert (moved["bucket"], moved["key"]) == (
            "protected-bucket",
            "MOD09GQ/006/data.hdf",
        )
        assert unchanged == granule["files"][1]
        assert object_exists(s3_client, "source-bucket", "file-staging/metadata.xml")
        assert object_exists(s3_client, "protected-bucket", "MOD09GQ/006/data.hdf")
        assert file_locations(session_factory, granule["granuleId"]) == [
            ("protected-bucket", "MOD09GQ/006/data.hdf"),
            ("source-bucket", "file-staging/metadata.xml"),
        ]

    def test_missing_document_is_rebuilt_from_the_database(
        self, relocator, granule, coordinator, services
    ):
        documents = coordinator.document_store(GRANULE)
        documents.delete(GRANULE.document_key(granule))

        result = relocator.move_granule(granule, DESTINATIONS)

        stored = services.granules.get(granule)
        assert stored["status"] == "completed"
        assert stored["published"] is False
        assert stored["files"] == result.updated_files

    def test_document_write_failure_is_reported(
        self, relocator, granule, coordinator, session_factory, monkeypatch
    ):
        def throttled(document):
            raise ClientError(
                {"Error": {"Code": "ProvisionedThroughputExceededException"}}, "PutItem"
            )

        monkeypatch.setattr(coordinator.document_store(GRANULE), "write", throttled)
        reconcile = Mock()

        result = relocator.move_granule(granule, DESTINATIONS, reconcile)

        assert isinstance(result.mirror_error, PartialMirrorFailure)
        assert result.errors == []
        reconcile.assert_called_once_with(granule, result.updated_files)
        granule_id = granule["granuleId"]
        assert file_locations(session_factory, granule_id) == [
            ("protected-bucket", f"MOD09GQ/006/{granule_id}.hdf"),
            ("public-bucket", f"{granule_id}.jpg"),
        ]

    def test_moved_file_rows_are_touched(self, relocator, granule, session_factory):
        with session_factory() as session:
            before = {
                row.cumulus_id: row.updated_at for row in models.files.search(session)
            }

        relocator.move_granule(granule, DESTINATIONS)

        with session_factory() as session:
            for row in models.files.search(session):
                assert row.updated_at > before[row.cumulus_id]
