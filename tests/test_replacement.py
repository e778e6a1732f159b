import pytest

from wingkit.configs.replacement import (
    ConfigurationFileReplacement,
    ReplaceValue,
    ValueType,
    lookup_configuration_value,
)


def _repl(value, match="key", if_value=""):
    return ConfigurationFileReplacement(
        match=match, replace_with=ReplaceValue(value), if_value=if_value
    )


@pytest.mark.parametrize(
    "value, expected_type",
    [
        ("abc", ValueType.STRING),
        (5, ValueType.NUMBER),
        (True, ValueType.BOOLEAN),
        (None, ValueType.NULL),
        ({"a": 1}, ValueType.OBJECT),
        ([1], ValueType.ARRAY),
    ],
)
def test_value_type_detection(value, expected_type):
    assert ReplaceValue(value).value_type is expected_type


def test_replace_value_string_forms():
    assert str(ReplaceValue("§Foo")) == "§Foo"
    assert str(ReplaceValue(None)) == "<nil>"
    assert str(ReplaceValue(25565)) == "25565"
    assert str(ReplaceValue({"a": 1})) == "<invalid>"
    assert str(ReplaceValue(False)) == "false"


def test_from_dict_reads_all_keys():
    r = ConfigurationFileReplacement.from_dict(
        {"match": "server-port", "if_value": "x", "replace_with": 25565}
    )
    assert r.match == "server-port"
    assert r.if_value == "x"
    assert r.replace_with.value == 25565
    assert r.replace_with.value_type is ValueType.NUMBER


def test_from_dict_falls_back_to_value_key():
    r = ConfigurationFileReplacement.from_dict({"match": "motd", "value": "hello"})
    assert r.replace_with.value == "hello"
    assert r.if_value == ""


def test_from_dict_keeps_null_replacement():
    r = ConfigurationFileReplacement.from_dict({"match": "a", "replace_with": None})
    assert r.replace_with.value_type is ValueType.NULL


@pytest.mark.parametrize(
    "data",
    [
        {"replace_with": "x"},
        {"match": 1, "replace_with": "x"},
        {"match": "a"},
        {"match": "a", "if_value": None, "replace_with": "x"},
    ],
)
def test_from_dict_rejects_invalid(data):
    with pytest.raises(ValueError):
        ConfigurationFileReplacement.from_dict(data)


def test_key_value_boolean_parsing():
    r = _repl(True)
    assert r.key_value("true") is True
    assert r.key_value("1") is True
    assert r.key_value("yes") is False
    assert r.key_value("false") is False


def test_key_value_integers_and_strings():
    r = _repl("text")
    assert r.key_value("25565") == 25565
    assert r.key_value("-3") == -3
    assert r.key_value("abc") == "abc"
    assert r.key_value(" 12") == " 12"
    assert r.key_value("1_000") == "1_000"
    too_big = "99999999999999999999"
    assert r.key_value(too_big) == too_big


def test_lookup_returns_plain_value_without_reference():
    assert lookup_configuration_value(_repl("0.0.0.0"), {}) == "0.0.0.0"
    assert lookup_configuration_value(_repl(8080), {}) == "8080"


def test_lookup_resolves_config_reference():
    config = {"docker": {"interface": "172.18.0.1"}}
    r = _repl("{{config.docker.interface}}")
    assert lookup_configuration_value(r, config) == "172.18.0.1"


def test_lookup_converts_camel_case_segments():
    config = {"docker": {"network_interface": "172.18.0.1"}}
    r = _repl("{{ config.docker.networkInterface }}")
    assert lookup_configuration_value(r, config) == "172.18.0.1"


def test_lookup_keeps_surrounding_text_and_formats_numbers():
    config = {"api": {"port": 8080}}
    r = _repl("host:{{config.api.port}}")
    assert lookup_configuration_value(r, config) == "host:8080"


def test_lookup_missing_key_gives_empty_string():
    r = _repl("{{config.docker.missing}}")
    assert lookup_configuration_value(r, {"docker": {}}) == ""