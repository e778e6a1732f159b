import configparser
import json
import xml.etree.ElementTree as ET

import pytest
import yaml

from wingkit.configs.configfile import ConfigurationFile, ConfigurationParser


def make_file(parser, replace, name="config"):
    return ConfigurationFile.from_dict({"file": name, "parser": parser, "replace": replace})


def read_ini(path):
    cp = configparser.ConfigParser(interpolation=None)
    cp.optionxform = str
    cp.read_string("[__root__]\n" + path.read_text(encoding="utf-8"))
    return cp


def test_from_dict_reads_fields():
    cf = make_file("json", [{"match": "a.b", "replace_with": "x", "if_value": "y"}], "settings.json")
    assert cf.file_name == "settings.json"
    assert cf.parser is ConfigurationParser.JSON
    assert [r.match for r in cf.replace] == ["a.b"]
    assert cf.replace[0].if_value == "y"


def test_from_dict_yml_alias_is_yaml():
    assert make_file("yml", []).parser is ConfigurationParser.YAML


def test_from_dict_invalid_replacements_become_empty():
    cf = make_file("json", [{"no_match": True}])
    assert cf.replace == []


def test_from_dict_requires_file():
    with pytest.raises(ValueError):
        ConfigurationFile.from_dict({"parser": "json", "replace": []})


def test_json_replacement_and_config_reference(tmp_path):
    target = tmp_path / "c.json"
    target.write_text(json.dumps({"server": {"port": 1, "ip": "0.0.0.0"}}))
    cf = make_file(
        "json",
        [
            {"match": "server.port", "replace_with": "25565"},
            {"match": "server.ip", "replace_with": "{{config.docker.interface}}"},
        ],
    )
    cf.parse(target, {"docker": {"interface": "172.18.0.1"}})
    assert json.loads(target.read_text()) == {"server": {"port": 25565, "ip": "172.18.0.1"}}
    assert target.read_text().startswith("{\n    ")


def test_json_invalid_document_raises(tmp_path):
    target = tmp_path / "c.json"
    target.write_text("{not json")
    with pytest.raises(ValueError):
        make_file("json", [{"match": "a", "replace_with": "b"}]).parse(target, {})


def test_yaml_replacement(tmp_path):
    target = tmp_path / "c.yaml"
    target.write_text("a: 1\nb: x\n")
    make_file("yaml", [{"match": "b", "replace_with": "y"}]).parse(target, {})
    assert yaml.safe_load(target.read_text()) == {"a": 1, "b": "y"}


def test_yaml_missing_directory_is_created(tmp_path):
    target = tmp_path / "sub" / "c.yml"
    make_file("yml", [{"match": "key", "replace_with": "value"}]).parse(target, {})
    assert yaml.safe_load(target.read_text()) == {"key": "value"}


def test_yaml_non_mapping_raises(tmp_path):
    target = tmp_path / "c.yaml"
    target.write_text("- a\n- b\n")
    with pytest.raises(ValueError):
        make_file("yaml", [{"match": "a", "replace_with": "b"}]).parse(target, {})


def test_properties_keeps_header_and_escapes(tmp_path):
    target = tmp_path / "server.properties"
    target.write_text("#Minecraft server properties\nmotd=hello\nserver-port=1\n", encoding="utf-8")
    cf = make_file(
        "properties",
        [
            {"match": "motd", "replace_with": "\u00a7Foo"},
            {"match": "server-port", "replace_with": 25565},
        ],
    )
    cf.parse(target, {})
    lines = target.read_text(encoding="utf-8").split("\n")
    assert lines[0] == "#Minecraft server properties"
    assert "motd=\\u00a7Foo" in lines
    assert "server-port=25565" in lines


def test_properties_if_value(tmp_path):
    target = tmp_path / "server.properties"
    target.write_text("a=one\nb=two\n")
    cf = make_file(
        "properties",
        [
            {"match": "a", "replace_with": "changed", "if_value": "one"},
            {"match": "b", "replace_with": "changed", "if_value": "other"},
            {"match": "c", "replace_with": "changed", "if_value": "one"},
        ],
    )
    cf.parse(target, {})
    lines = target.read_text().splitlines()
    assert lines == ["a=changed", "b=two"]


def test_properties_missing_file_is_created(tmp_path):
    target = tmp_path / "new" / "server.properties"
    make_file("properties", [{"match": "key", "replace_with": "value"}]).parse(target, {})
    assert target.read_text().splitlines() == ["key=value"]


def test_text_file_replaces_matching_lines(tmp_path):
    target = tmp_path / "c.txt"
    target.write_text("motd=hello\nport=1\n")
    make_file("file", [{"match": "motd", "replace_with": "motd=world"}]).parse(target, {})
    assert target.read_text().split("\n") == ["motd=world", "port=1", ""]


def test_ini_sections_and_default_keys(tmp_path):
    target = tmp_path / "c.ini"
    target.write_text("name = test\n\n[server]\nport = 1\n")
    cf = make_file(
        "ini",
        [
            {"match": "server.port", "replace_with": 25565},
            {"match": "name", "replace_with": "demo"},
            {"match": "a.b.c", "replace_with": "x"},
        ],
    )
    cf.parse(target, {})
    cp = read_ini(target)
    assert cp["__root__"]["name"] == "demo"
    assert cp["server"]["port"] == "25565"
    assert cp["a"]["b.c"] == "x"


def test_xml_attribute_on_new_document(tmp_path):
    target = tmp_path / "c.xml"
    make_file("xml", [{"match": "Root.Property", "replace_with": "[value='testing']"}]).parse(target, {})
    text = target.read_text()
    assert text.startswith('<?xml version="1.0" encoding="utf-8"?>')
    root = ET.fromstring(text.encode("utf-8"))
    assert root.tag == "Root"
    assert root.find("Property").get("value") == "testing"


def test_xml_updates_every_matching_element(tmp_path):
    target = tmp_path / "c.xml"
    target.write_text("<Root><Item/><Item/></Root>")
    make_file("xml", [{"match": "Root.Item", "replace_with": "hi"}]).parse(target, {})
    text = target.read_text()
    assert not text.startswith("<?xml")
    items = ET.fromstring(text).findall("Item")
    assert [item.text for item in items] == ["hi", "hi"]


def test_unknown_parser_leaves_file_alone(tmp_path):
    target = tmp_path / "c.cfg"
    target.write_text("untouched")
    cf = make_file("toml", [{"match": "untouched", "replace_with": "changed"}])
    cf.parse(target, {})
    assert cf.parser == "toml"
    assert target.read_text() == "untouched"