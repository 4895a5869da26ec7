import pytest

from tubeproxy.core.errors import (
    ContentUnavailable,
    ExtractorUnavailable,
    FormatNotFound,
    QuotaExceeded,
    UpstreamBlocked,
    classify_extractor_error,
    classify_skipped_download,
    error_for_upstream_status,
)


@pytest.mark.parametrize("message,expected", [
    ("ERROR: [youtube] abc: Private video. Sign in if you've been granted access to this video", ContentUnavailable),
    ("ERROR: [youtube] abc: Video unavailable", ContentUnavailable),
    ("ERROR: [youtube] abc: This video is not available in your country", ContentUnavailable),
    ("ERROR: [youtube] abc: Sign in to confirm you're not a bot", UpstreamBlocked),
    ("ERROR: unable to download video data: HTTP Error 403: Forbidden", UpstreamBlocked),
    ("ERROR: unable to download video data: HTTP Error 429: Too Many Requests", QuotaExceeded),
    ("ERROR: [youtube] abc: Requested format is not available", FormatNotFound),
    ("ERROR: something odd", ExtractorUnavailable),
    ("", ExtractorUnavailable),
])
def test_classify_extractor_error(message, expected):
    error = classify_extractor_error(message)
    assert type(error) is expected


def test_classified_error_keeps_reason_out_of_message():
    error = classify_extractor_error("ERROR: [youtube] abc: Video unavailable")
    assert error.message_key == "error.content_unavailable"
    assert "Video unavailable" in error.reason


@pytest.mark.parametrize("status,expected", [
    (401, UpstreamBlocked),
    (403, UpstreamBlocked),
    (404, ContentUnavailable),
    (410, ContentUnavailable),
    (429, QuotaExceeded),
    (500, ExtractorUnavailable),
    (502, ExtractorUnavailable),
])
def test_error_for_upstream_status(status, expected):
    assert type(error_for_upstream_status(status)) is expected


def test_status_codes():
    assert ContentUnavailable.status_code == 404
    assert UpstreamBlocked.status_code == 403
    assert FormatNotFound.status_code == 404
    assert ExtractorUnavailable.status_code == 500
    assert QuotaExceeded.status_code == 503


@pytest.mark.parametrize("output,expected,key", [
    ("[youtube] abc: Live now does not pass filter (!is_live), skipping ..", ContentUnavailable, "error.live_not_supported"),
    ("[info] File is larger than max-filesize (734003200 bytes > 104857600 bytes). Skipping", FormatNotFound, "error.file_too_large"),
    ("", ExtractorUnavailable, "error.extractor_unavailable"),
])
def test_classify_skipped_download(output, expected, key):
    error = classify_skipped_download(output)
    assert type(error) is expected
    assert error.message_key == key
