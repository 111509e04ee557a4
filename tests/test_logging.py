import logging

from intermeet.core.logging import TokenRedactingFilter


def make_record(msg, *args):
    return logging.LogRecord("uvicorn.access", logging.INFO, __file__, 1, msg, args, None)


def test_token_query_value_is_masked():
    record = make_record('"%s %s" %d', "GET", "/ws/rooms/ABC123?token=eyJhbGciOi.abc.def", 101)

    TokenRedactingFilter().filter(record)

    assert record.getMessage() == '"GET /ws/rooms/ABC123?token=***" 101'


def test_other_messages_untouched():
    record = make_record("Created room %s", "ABC123")

    assert TokenRedactingFilter().filter(record)
    assert record.getMessage() == "Created room ABC123"
