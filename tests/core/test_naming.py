"""Tests for migration target table-name resolution."""

from __future__ import annotations

import pytest
from sqlalchemy import Column, Integer, MetaData, Table

from packages.rowtrail.naming import plural, resolve_table_name, singular, snake_case


class Order:
    """Plain class resolved by convention."""


class OrderItem:
    """Multi-word class resolved by convention."""


class HTTPRequestLog:
    """Class name with a leading acronym."""


class Invoice:
    """Class naming its own table."""

    @classmethod
    def table_name(cls) -> str:
        return "billing.invoices"


class Ledger:
    """Instance naming its own table."""

    def __init__(self, name: str) -> None:
        self._name = name

    def table_name(self) -> str:
        return self._name


class Payment:
    """Declarative-style class."""

    __tablename__ = "payments_v2"


def test_string_targets_are_trimmed() -> None:
    """Strings name the table directly."""
    assert resolve_table_name("  public.orders ") == "public.orders"


def test_blank_and_none_targets_are_rejected() -> None:
    """Blank names and None cannot be resolved."""
    with pytest.raises(ValueError):
        resolve_table_name("   ")
    with pytest.raises(ValueError):
        resolve_table_name(None)
    with pytest.raises(ValueError):
        resolve_table_name(Ledger(" "))


def test_self_naming_targets_win_over_convention() -> None:
    """table_name() on a class or instance is used as given."""
    assert resolve_table_name(Invoice) == "billing.invoices"
    assert resolve_table_name(Invoice()) == "billing.invoices"
    assert resolve_table_name(Ledger("gl_entries")) == "gl_entries"


def test_declarative_and_core_tables() -> None:
    """__tablename__ and SQLAlchemy Table objects are honored."""
    metadata = MetaData()
    table = Table("audit_log", metadata, Column("id", Integer), schema="ops")

    assert resolve_table_name(Payment) == "payments_v2"
    assert resolve_table_name(Payment()) == "payments_v2"
    assert resolve_table_name(table) == "ops.audit_log"


def test_classes_and_instances_fall_back_to_plural_snake_case() -> None:
    """Unannotated classes map to the pluralized snake_case class name."""
    assert resolve_table_name(Order) == "orders"
    assert resolve_table_name(OrderItem()) == "order_items"
    assert resolve_table_name(HTTPRequestLog) == "http_request_logs"


def test_builtin_values_are_rejected() -> None:
    """Builtins like ints have no sensible table name."""
    with pytest.raises(ValueError):
        resolve_table_name(42)


def test_snake_case() -> None:
    """Acronyms are kept together and word boundaries get underscores."""
    assert snake_case("OrderItem") == "order_item"
    assert snake_case("HTTPRequest") == "http_request"
    assert snake_case("Order2Item") == "order2_item"


def test_plural_and_singular_touch_the_last_word_only() -> None:
    """Inflection applies to the final underscore-separated word."""
    assert plural("order_item") == "order_items"
    assert plural("category") == "categories"
    assert singular("order_items") == "order_item"
    assert singular("orders") == "order"
    assert singular("order") == "order"
