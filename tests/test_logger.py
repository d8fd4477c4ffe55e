import json

from yace.logger import new_logger, new_nop_logger


def _records(text):
    return [json.loads(line) for line in text.splitlines() if line]


def test_json_info_includes_message_and_context(capsys):
    logger = new_logger("json", False, "app", "yace")
    logger.info("hello", "k", "v")
    (record,) = _records(capsys.readouterr().err)
    assert record["msg"] == "hello"
    assert record["k"] == "v"
    assert record["app"] == "yace"
    assert record["level"] == "info"
    assert "ts" in record and "caller" in record


def test_debug_suppressed_when_disabled(capsys):
    logger = new_logger("json", False)
    logger.debug("hidden")
    assert capsys.readouterr().err == ""
    assert logger.is_debug_enabled() is False


def test_debug_emitted_when_enabled(capsys):
    logger = new_logger("json", True)
    logger.debug("dbg", "x", 1)
    (record,) = _records(capsys.readouterr().err)
    assert record["msg"] == "dbg"
    assert record["x"] == 1
    assert logger.is_debug_enabled() is True


def test_error_includes_err_text(capsys):
    logger = new_logger("json", False)
    logger.error(ValueError("boom"), "failed", "region", "us-east-1")
    (record,) = _records(capsys.readouterr().err)
    assert record["err"] == "boom"
    assert record["msg"] == "failed"
    assert record["region"] == "us-east-1"


def test_warn_is_emitted(capsys):
    logger = new_logger("json", False)
    logger.warn("careful")
    (record,) = _records(capsys.readouterr().err)
    assert record["msg"] == "careful"
    assert record["level"] == "warn"


def test_with_values_does_not_change_parent(capsys):
    parent = new_logger("json", True)
    child = parent.with_values("job_type", "ec2")
    child.info("child")
    parent.info("parent")
    child_record, parent_record = _records(capsys.readouterr().err)
    assert child_record["job_type"] == "ec2"
    assert "job_type" not in parent_record
    assert child.is_debug_enabled() == parent.is_debug_enabled()


def test_nop_logger_writes_nothing(capsys):
    logger = new_nop_logger()
    logger.info("a")
    logger.warn("b")
    logger.error(RuntimeError("c"), "d")
    logger.with_values("k", "v").info("e")
    assert capsys.readouterr().err == ""
    assert logger.is_debug_enabled() is False


def test_logfmt_quotes_values_with_spaces(capsys):
    logger = new_logger("logfmt", False)
    logger.info("hello", "key", "two words", "k", "v")
    line = capsys.readouterr().err.strip()
    assert "msg=hello" in line
    assert 'key="two words"' in line
    assert "k=v" in line
    assert line.count("\n") == 0