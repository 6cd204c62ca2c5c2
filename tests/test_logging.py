from rcaforge.util.logging import clip, redact


def test_redact_tokens_and_keys():
    text = 'Authorization: Bearer abc.123 key sk-abcdefghijkl {"api_key": "s3cret"}'
    redacted = redact(text, extra_secrets=["abc"])
    assert "abc.123" not in redacted
    assert "sk-abcdefghijkl" not in redacted
    assert "s3cret" not in redacted
    assert "Bearer [REDACTED]" in redacted


def test_clip():
    assert clip("short", 10) == "short"
    assert clip("abcdefghij", 4) == "abcd...[6 more chars]"
