"""Shared BDD fixtures and step definitions for the logistics domain."""

import pytest
from logistics.returns.return_request import ReturnRequest
from protean.utils.globals import current_domain
from pytest_bdd import given, parsers, then


@pytest.fixture()
def error():
    """Container for captured domain errors."""
    return {"exc": None}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('hubs "{first}" in Lagos and "{second}" in Oyo served by one courier'))
def two_hub_catalog(reference_data):
    return reference_data


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the return is "{status}"'))
def return_has_status(return_id, status):
    assert current_domain.repository_for(ReturnRequest).get(return_id).status == status
