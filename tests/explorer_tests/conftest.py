"""
Common fixtures for explorer tests.
Builds small in-memory schemas and record graphs.
"""
import pytest

from dbexplorer.provider import InMemorySchemaProvider
from schema_helpers import belongs_to, has_many


# ========================================================================
# Order / Customer / LineItem
# ========================================================================

@pytest.fixture
def order_schema():
    """
    Order belongs to Customer and has many LineItems; LineItem belongs to Order.
    Returns (provider, order, customer, items).
    """
    provider = InMemorySchemaProvider()
    provider.register_type("Order", [belongs_to("customer", "Customer"), has_many("line_items", "LineItem")],
                           table_name="orders")
    provider.register_type("Customer", [has_many("orders", "Order")], table_name="customers")
    provider.register_type("LineItem", [belongs_to("order", "Order")], table_name="line_items")

    customer = provider.add("Customer", id=7, name="Ada")
    order = provider.add("Order", id=1, customer_id=7, total=30)
    items = [
        provider.add("LineItem", id=10, order_id=1, sku="A-1"),
        provider.add("LineItem", id=11, order_id=1, sku="B-2"),
    ]

    order.link("customer", customer).append("line_items", *items)
    customer.append("orders", order)
    for item in items:
        item.link("order", order)
    return provider, order, customer, items


# ========================================================================
# Self-referential categories
# ========================================================================

@pytest.fixture
def category_tree():
    """Category has many sub categories, three levels deep."""
    provider = InMemorySchemaProvider()
    provider.register_type("Category", [has_many("children", "Category")])

    root = provider.add("Category", id=1, name="root")
    left = provider.add("Category", id=2, name="left")
    right = provider.add("Category", id=3, name="right")
    leaf = provider.add("Category", id=4, name="leaf")
    root.append("children", left, right)
    left.append("children", leaf)
    right.relations["children"] = []
    leaf.relations["children"] = []
    return provider, root


# ========================================================================
# Dependency cycle reachable from a seed
# ========================================================================

@pytest.fixture
def cyclic_schema():
    """
    Project has many Tasks; Task belongs to an Owner and Owner belongs to its
    current Task, so Task and Owner depend on each other.
    """
    provider = InMemorySchemaProvider()
    provider.register_type("Project", [has_many("tasks", "Task")])
    provider.register_type("Task", [belongs_to("owner", "Owner")])
    provider.register_type("Owner", [belongs_to("current_task", "Task")])

    project = provider.add("Project", id=1, name="apollo")
    task = provider.add("Task", id=5, project_id=1, owner_id=9)
    owner = provider.add("Owner", id=9, current_task_id=5)
    project.append("tasks", task)
    task.link("owner", owner)
    owner.link("current_task", task)
    return provider, project
