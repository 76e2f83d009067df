from datetime import datetime, timezone

import pytest

from cumulus_api import timestamps, translate
from cumulus_api.db import models
from cumulus_api.errors import ReferenceNotFoundError
from tests import factories


def test_timestamp_conversion_is_exact():
    ms = 1_600_000_000_123
    value = timestamps.ms_to_datetime(ms)

    assert value == datetime(2020, 9, 13, 12, 26, 40, 123000, tzinfo=timezone.utc)
    assert timestamps.datetime_to_ms(value) == ms
    # naive values read back from SQLite are UTC
    assert timestamps.datetime_to_ms(value.replace(tzinfo=None)) == ms


def test_iso_datetimes_are_normalized_to_utc():
    value = timestamps.iso_to_datetime("2020-01-01T05:00:00.000+05:00")

    assert timestamps.datetime_to_iso(value) == "2020-01-01T00:00:00.000Z"


def test_file_fields_are_renamed():
    values = translate.file_to_relational(
        {
            "bucket": "bucket",
            "key": "a/file.hdf",
            "fileName": "file.hdf",
            "checksumType": "md5",
            "checksum": "abc",
            "size": 12,
            "type": "data",
        },
        granule_cumulus_id=7,
    )

    assert values == {
        "bucket": "bucket",
        "key": "a/file.hdf",
        "file_name": "file.hdf",
        "checksum_type": "md5",
        "checksum_value": "abc",
        "file_size": 12,
        "type": "data",
        "source": None,
        "granule_cumulus_id": 7,
    }


def test_legacy_files_are_upgraded_on_the_way_in():
    values = translate.file_to_relational(
        {"filename": "s3://bucket/a/file.hdf", "fileSize": 3, "checksumValue": "x"}
    )

    assert values["bucket"] == "bucket"
    assert values["key"] == "a/file.hdf"
    assert values["file_size"] == 3
    assert values["checksum_value"] == "x"


class TestReferenceResolver:
    @pytest.fixture(autouse=True)
    def setup(self, session_factory):
        self.session_factory = session_factory

    def test_missing_collection_is_fatal(self):
        with self.session_factory() as session:
            resolver = translate.ReferenceResolver(session)
            with pytest.raises(ReferenceNotFoundError) as excinfo:
                resolver.collection("MOD09GQ___006")

        assert str(excinfo.value) == (
            'Record in collections with identifiers {"name": "MOD09GQ", '
            '"version": "006"} does not exist.'
        )

    def test_missing_async_operation_is_fatal(self):
        with self.session_factory() as session:
            resolver = translate.ReferenceResolver(session)
            with pytest.raises(ReferenceNotFoundError, match="async_operations"):
                resolver.async_operation("unknown")

    def test_missing_provider_is_fatal_when_supplied(self):
        with self.session_factory() as session:
            resolver = translate.ReferenceResolver(session)
            assert resolver.provider(None) is None
            with pytest.raises(ReferenceNotFoundError, match="providers"):
                resolver.provider("unknown")

    def test_optional_references_degrade_to_none(self):
        with self.session_factory() as session:
            resolver = translate.ReferenceResolver(session)
            assert resolver.parent_execution("arn:unknown") is None
            assert resolver.execution_by_url("https://unknown") is None
            assert resolver.pdr("unknown.PDR") is None

    def test_existing_references_resolve(self, collection, provider, async_operation):
        with self.session_factory() as session:
            resolver = translate.ReferenceResolver(session)
            assert resolver.collection("MOD09GQ___006") == models.collections.get_record_cumulus_id(
                session, {"name": "MOD09GQ", "version": "006"}
            )
            assert resolver.provider("prov1") is not None
            assert resolver.async_operation(async_operation["id"]) is not None


class TestRoundTrip:
    @pytest.fixture(autouse=True)
    def setup(self, services, session_factory, collection_id, provider):
        self.services = services
        self.session_factory = session_factory
        self.collection_id = collection_id

    def test_execution(self, async_operation):
        parent = self.services.executions.create(factories.fake_execution()).record
        record = self.services.executions.create(
            factories.fake_execution(
                collectionId=self.collection_id,
                asyncOperationId=async_operation["id"],
                parentArn=parent["arn"],
                timestamp=1_600_000_000_000,
            )
        ).record

        with self.session_factory() as session:
            row = models.executions.get(session, {"arn": record["arn"]})
            document = translate.execution_to_document(row)

        assert document == record

    def test_granule(self):
        execution = self.services.executions.create(factories.fake_execution()).record
        record = self.services.granules.create(
            factories.fake_granule(
                self.collection_id,
                execution=execution["execution"],
                provider="prov1",
                productVolume=2048,
                cmrLink="https://cmr.earthdata.nasa.gov/search/granules.json?concept_id=G1",
                processingStartDateTime="2020-09-13T12:26:40.000Z",
                processingEndDateTime="2020-09-13T12:30:00.000Z",
                error={"Error": "None"},
                queryFields={"cnm": {"receivedTime": "2020"}},
            )
        ).record

        with self.session_factory() as session:
            row = models.granules.get(
                session,
                {
                    "granule_id": record["granuleId"],
                    "collection_cumulus_id": row_collection_id(session),
                },
            )
            document = translate.granule_to_document(row)
            assert [e.arn for e in row.executions] == [execution["arn"]]

        assert document == record

    def test_granule_datetimes_survive_the_round_trip(self):
        record = self.services.granules.create(
            factories.fake_granule(
                self.collection_id,
                beginningDateTime="2020-01-01T00:00:00Z",
                endingDateTime="2020-01-01T05:30:00+05:30",
            )
        ).record

        with self.session_factory() as session:
            row = models.granules.get(
                session,
                {
                    "granule_id": record["granuleId"],
                    "collection_cumulus_id": row_collection_id(session),
                },
            )
            document = translate.granule_to_document(row)

        assert record["beginningDateTime"] == "2020-01-01T00:00:00.000Z"
        assert record["endingDateTime"] == "2020-01-01T00:00:00.000Z"
        assert document["beginningDateTime"] == record["beginningDateTime"]
        assert document["endingDateTime"] == record["endingDateTime"]

    def test_pdr(self):
        record = self.services.pdrs.create(
            {
                "pdrName": "test.PDR",
                "collectionId": self.collection_id,
                "provider": "prov1",
                "status": "running",
                "progress": 50.0,
                "stats": {"completed": 1, "failed": 0, "processing": 1},
                "PANSent": False,
                "PANmessage": "N/A",
                "address": "s3://provider-bucket/pdrs/test.PDR",
            }
        ).record

        with self.session_factory() as session:
            row = models.pdrs.get(session, {"name": "test.PDR"})
            document = translate.pdr_to_document(row)

        assert document == record
        assert document["stats"]["total"] == 2

    def test_rule(self):
        record = self.services.rules.create(
            factories.fake_rule(
                rule={"type": "kinesis", "value": "arn:aws:kinesis:stream", "arn": "a"},
                state="ENABLED",
                provider="prov1",
                collection={"name": "MOD09GQ", "version": "006"},
                meta={"retries": 3},
                tags=["nightly"],
            )
        ).record

        with self.session_factory() as session:
            row = models.rules.get(session, {"name": record["name"]})
            document = translate.rule_to_document(row)

        assert document == record

    def test_collection(self, collection):
        with self.session_factory() as session:
            row = models.collections.get(session, {"name": "MOD09GQ", "version": "006"})
            document = translate.collection_to_document(row)

        assert document == collection


def row_collection_id(session) -> int:
    return models.collections.get_record_cumulus_id(
        session, {"name": "MOD09GQ", "version": "006"}
    )
