import pytest

from api.assets.sanitize import (
    check_element_identifier,
    check_u_size,
    sanitize_date,
    sanitize_ext_value,
    sanitize_value_double,
)
from core.asset_types import is_ok_name, subtype_to_subtypeid, type_to_typeid
from core.errors import BadRequestError


@pytest.mark.parametrize(
    "value",
    ["15-03-2024", "2024-03-15", "15-Mar-24", "15.03.2024", "15 03 2024", "03/15/2024"],
)
def test_sanitize_date_layouts(value):
    assert sanitize_date("installation_date", value) == "2024-03-15"


def test_sanitize_date_rejects_garbage():
    with pytest.raises(BadRequestError) as exc_info:
        sanitize_date("end_warranty_date", "soon")
    assert exc_info.value.message == "end_warranty_date: date format is not valid, received 'soon'"


def test_sanitize_value_double():
    assert sanitize_value_double("runtime", " 12.5 ") == "12.5"
    assert sanitize_value_double("weight", "-3e2") == "-3e2"
    with pytest.raises(BadRequestError):
        sanitize_value_double("weight", "12kg")
    with pytest.raises(BadRequestError):
        sanitize_value_double("weight", "")


def test_check_u_size():
    assert check_u_size("2") == "2"
    assert check_u_size("42U") == "42"
    assert check_u_size("1u") == "1"
    for bad in ("0", "100", "U", "two"):
        with pytest.raises(BadRequestError):
            check_u_size(bad)


def test_sanitize_ext_value_by_keytag():
    assert sanitize_ext_value("maintenance_due", "01.02.2025") == "2025-02-01"
    assert sanitize_ext_value("location_u_pos", "7") == "7"
    assert sanitize_ext_value("u_size", "3U") == "3"
    assert sanitize_ext_value("description", "anything goes") == "anything goes"
    with pytest.raises(BadRequestError):
        sanitize_ext_value("max_power", "a lot")


def test_check_element_identifier():
    assert check_element_identifier("id", " ups-1 ") == "ups-1"
    with pytest.raises(BadRequestError, match="is required"):
        check_element_identifier("id", "")
    with pytest.raises(BadRequestError, match="bad value"):
        check_element_identifier("id", "ups_1")


def test_names_and_type_registries():
    assert is_ok_name("rack-12")
    for bad in ("", "a_b", "a@b", "a%b", "a;b", 'a"b'):
        assert not is_ok_name(bad)
    assert type_to_typeid("Datacenters") == 2
    assert type_to_typeid("spaceship") == 0
    assert subtype_to_subtypeid("") == 11
    assert subtype_to_subtypeid("N_A") == 11
    assert subtype_to_subtypeid("epdu") == 3
    assert subtype_to_subtypeid("toaster") == 0
