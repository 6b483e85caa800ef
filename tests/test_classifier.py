"""Tests for the Event Classifier."""

import json

import pytest

from ad_monitor.classifier.events import AD_OPERATION_MARKER, classify, classify_record
from ad_monitor.models.events import EventTag


def _record(event_name=None, operation_name="ClientSideAdEventHandling_RecordAdEvent") -> dict:
    record = {"operationName": operation_name, "variables": {"input": {}}}
    if event_name is not None:
        record["variables"]["input"]["eventName"] = event_name
    return record


def _body(*records) -> bytes:
    return json.dumps(list(records)).encode("utf-8")


class TestClassifyRecord:
    @pytest.mark.parametrize(
        "event_name, expected",
        [
            ("video_ad_impression", EventTag.AD_STARTED),
            ("video_ad_quartile_complete", EventTag.AD_STARTED),
            ("video_ad_pod_complete", EventTag.AD_COMPLETED),
            ("ad_impression", EventTag.AD_RENDERED),
            ("video_ad_request", EventTag.INVALID),
        ],
    )
    def test_event_name_mapping(self, event_name, expected):
        assert classify_record(_record(event_name)) == expected

    def test_non_matching_operation_is_non_ad(self):
        record = _record("video_ad_pod_complete", operation_name="PlaybackAccessToken")
        assert classify_record(record) == EventTag.NON_AD

    def test_missing_operation_is_non_ad(self):
        assert classify_record({"variables": {"input": {"eventName": "video_ad_impression"}}}) == EventTag.NON_AD

    def test_non_string_operation_is_non_ad(self):
        assert classify_record({"operationName": 42}) == EventTag.NON_AD

    def test_non_object_record_is_non_ad(self):
        assert classify_record(None) == EventTag.NON_AD
        assert classify_record("RecordAdEvent") == EventTag.NON_AD

    def test_missing_event_name_is_invalid(self):
        assert classify_record(_record()) == EventTag.INVALID
        assert classify_record({"operationName": AD_OPERATION_MARKER}) == EventTag.INVALID
        assert classify_record({"operationName": AD_OPERATION_MARKER, "variables": []}) == EventTag.INVALID


class TestClassify:
    def test_one_tag_per_record_in_order(self):
        body = _body(
            {"operationName": "VideoPlayerStreamInfoOverlayChannel"},
            _record("video_ad_impression"),
            _record("ad_impression"),
            _record("video_ad_pod_complete"),
        )
        assert classify(body) == [
            EventTag.NON_AD,
            EventTag.AD_STARTED,
            EventTag.AD_RENDERED,
            EventTag.AD_COMPLETED,
        ]

    def test_empty_array_yields_no_ad_tags(self):
        tags = classify(b"[]")
        assert tags == [EventTag.INVALID]
        assert EventTag.AD_STARTED not in tags
        assert EventTag.AD_COMPLETED not in tags

    def test_object_body_is_invalid(self):
        assert classify(b'{"operationName": "RecordAdEvent"}') == [EventTag.INVALID]

    def test_malformed_json_is_invalid(self):
        assert classify(b"[{not json") == [EventTag.INVALID]

    def test_non_utf8_is_invalid(self):
        assert classify(b"\xff\xfe\x00") == [EventTag.INVALID]

    def test_empty_body_is_invalid(self):
        assert classify(b"") == [EventTag.INVALID]
        assert classify(None) == [EventTag.INVALID]

    def test_accepts_text(self):
        assert classify(json.dumps([_record("video_ad_pod_complete")])) == [EventTag.AD_COMPLETED]

    def test_deterministic(self):
        body = _body(_record("video_ad_impression"), _record("video_ad_pod_complete"))
        assert classify(body) == classify(body)
