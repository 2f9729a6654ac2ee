"""Tests for tenant-aware logging."""

import asyncio
import logging

import pytest

from eva.utils.logging import LogConfig, TenantContextFilter, bind_log_context, get_logger


def make_record() -> logging.LogRecord:
    return logging.LogRecord("eva.test", logging.INFO, __file__, 1, "mensagem", None, None)


def test_filter_uses_placeholders_without_context():
    async def unbound():
        record = make_record()
        TenantContextFilter().filter(record)
        return record

    record = asyncio.run(unbound())
    assert (record.tenant, record.user) == ("-", "-")


def test_filter_stamps_bound_context():
    async def bound():
        bind_log_context("firm-a", "lawyer-1")
        record = make_record()
        TenantContextFilter().filter(record)
        return record

    record = asyncio.run(bound())
    assert (record.tenant, record.user) == ("firm-a", "lawyer-1")


def test_formatted_line_includes_tenant():
    config = LogConfig()
    record = make_record()
    record.tenant = "firm-a"
    record.user = "-"

    line = logging.Formatter(config.format, config.date_format).format(record)

    assert "[firm-a/-] mensagem" in line


@pytest.mark.parametrize("level", ["debug", "WARNING"])
def test_get_logger_level_override(level):
    assert get_logger(f"eva.test.{level}", level).level == getattr(logging, level.upper())
