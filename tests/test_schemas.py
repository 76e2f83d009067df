import pytest

from cumulus_api import schemas
from cumulus_api.errors import ValidationError


class TestUpgradeFile:
    def test_legacy_file_is_upgraded(self):
        legacy = {
            "bucket": "my-bucket",
            "filename": "s3://my-bucket/path/to/file.txt",
            "filepath": "path/to/file.txt",
            "name": "file123.txt",
            "path": "source/path",
            "checksumType": "my-checksumType",
            "checksumValue": "my-checksumValue",
            "url_path": "some-url-path",
            "fileSize": 1234,
        }

        assert schemas.file_shape(legacy) is schemas.FileShape.legacy
        assert schemas.upgrade_file(legacy) == {
            "bucket": "my-bucket",
            "key": "path/to/file.txt",
            "fileName": "file123.txt",
            "checksumType": "my-checksumType",
            "checksum": "my-checksumValue",
            "size": 1234,
        }

    def test_location_is_parsed_from_filename(self):
        upgraded = schemas.upgrade_file({"filename": "s3://bucket/a/b/granule.hdf"})

        assert upgraded == {"bucket": "bucket", "key": "a/b/granule.hdf", "fileName": "granule.hdf"}

    def test_name_without_key_is_legacy(self):
        record = {"bucket": "bucket", "name": "granule.hdf", "filepath": "a/granule.hdf"}
        assert schemas.file_shape({"bucket": "b", "name": "n"}) is schemas.FileShape.legacy
        assert schemas.upgrade_file(record)["fileName"] == "granule.hdf"

    def test_current_file_passes_through(self):
        current = {
            "bucket": "bucket",
            "key": "a/granule.hdf",
            "fileName": "granule.hdf",
            "checksumType": "md5",
            "checksum": "abc",
            "size": 10,
        }

        assert schemas.file_shape(current) is schemas.FileShape.current
        assert schemas.upgrade_file(current) == current

    def test_upgrade_is_idempotent(self):
        legacy = {"filename": "s3://bucket/key.hdf", "fileSize": 5, "checksumValue": "x"}
        once = schemas.upgrade_file(legacy)
        assert schemas.upgrade_file(once) == once

    def test_granule_validation_upgrades_files(self):
        granule = schemas.Granule.model_validate(
            {
                "granuleId": "g1",
                "collectionId": "MOD09GQ___006",
                "status": "completed",
                "files": [{"filename": "s3://bucket/key.hdf", "fileSize": 5}],
            }
        )

        assert granule.document()["files"] == [
            {"bucket": "bucket", "key": "key.hdf", "fileName": "key.hdf", "size": 5}
        ]


def test_status_is_case_insensitive():
    assert schemas.Status("COMPLETED") is schemas.Status.completed
    assert schemas.Status("Running").is_terminal is False
    assert schemas.is_terminal("failed")


def test_pdr_stats_total_is_computed():
    stats = schemas.PdrStats(completed=2, failed=1, processing=4, total=99)
    assert stats.total == 7


def test_collection_id_helpers():
    assert schemas.construct_collection_id("MOD09GQ", "006") == "MOD09GQ___006"
    assert schemas.deconstruct_collection_id("MOD09GQ___006") == ("MOD09GQ", "006")
    with pytest.raises(ValidationError):
        schemas.deconstruct_collection_id("MOD09GQ-006")


def test_missing_field_message():
    with pytest.raises(ValidationError, match="Field arn is missing"):
        schemas.validate_document(schemas.Execution, {"status": "running"})


def test_extra_fields_are_kept():
    execution = schemas.validate_document(
        schemas.Execution, {"arn": "arn", "status": "running", "custom": 1}
    )
    assert execution.document()["custom"] == 1


@pytest.mark.parametrize("host", ["ftp://example.com", "example.com/path"])
def test_provider_host_must_be_bare(host):
    with pytest.raises(ValidationError, match="must not include a protocol or path"):
        schemas.validate_document(schemas.Provider, {"id": "p", "host": host})


def test_granule_datetimes_are_normalized():
    granule = schemas.validate_document(
        schemas.Granule,
        {
            "granuleId": "g1",
            "collectionId": "MOD09GQ___006",
            "status": "completed",
            "productionDateTime": "2020-01-01T00:00:00Z",
        },
    )
    assert granule.productionDateTime == "2020-01-01T00:00:00.000Z"


def test_granule_datetime_must_parse():
    with pytest.raises(ValidationError, match="Field productionDateTime"):
        schemas.validate_document(
            schemas.Granule,
            {
                "granuleId": "g1",
                "collectionId": "MOD09GQ___006",
                "status": "completed",
                "productionDateTime": "yesterday",
            },
        )
