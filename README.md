# wingkit

A library for a game server daemon: it rewrites a server's configuration
files from the replacement rules an egg defines, and talks to the panel's
remote API.

## Installation

```
pip install wingkit
```

## Rewriting configuration files

`wingkit.configs.configfile.ConfigurationFile` describes one file: its
name, the parser to use and a list of replacements. The parsers are the
members of `ConfigurationParser`: `file`, `yaml` (also spelled `yml`),
`properties`, `ini`, `json` and `xml`.

```python
from wingkit.configs.configfile import ConfigurationFile

definition = ConfigurationFile.from_dict({
    "file": "server.properties",
    "parser": "properties",
    "replace": [
        {"match": "server-ip", "replace_with": "0.0.0.0"},
        {"match": "server-port", "replace_with": "{{config.docker.port}}"},
    ],
})

daemon_config = {"docker": {"port": 25565}}
definition.parse("/srv/server/server.properties", daemon_config)
```

`parse(path, configuration)` applies every replacement to the file at
`path`. A missing file, and its directory, is created first.

A string replacement value may hold a `{{config.some.key}}` reference,
which is resolved against the `configuration` mapping passed to `parse`
(each key part is converted to snake case first). A reference to a key
that does not exist gives an empty string. Replacements with an invalid
`replace` list are dropped with a logged warning; the older `value` key
is accepted in place of `replace_with`.

What each parser does:

- `properties`: comment lines at the head of the file are kept, the
  other comments are dropped; keys are rewritten as `key=value` with
  non-ASCII characters written as escape sequences. With `if_value`,
  only a key already holding that value is replaced.
- `ini`: `section.key` addresses a key in a section, a plain name a key
  outside any section; keys are written as `key = value`.
- `json` and `yaml`: dot paths such as `server.address`; `servers.*.address`
  applies the replacement to every child of `servers` (only the first `*`
  is expanded); `name[0].key` addresses an array element, and a missing
  array is created for index 0. Output keys are sorted; JSON is indented
  by four spaces.
- `xml`: dot paths from the root element; missing elements are created
  unless the match holds `*`. A value of the form `[attr='value']` sets
  an attribute, anything else sets the element's text.
- `file`: every line starting with the match is replaced, whole, by the
  replacement value.

For `json` and `yaml`, `if_value` limits a replacement to a key whose
current JSON value equals it; prefixed with `regex:`, the existing value
is rewritten by the pattern, with `$1`-style references in the
replacement.

The lower-level pieces are also available: `wingkit.configs.replacement`
(`ConfigurationFileReplacement`, `ReplaceValue`,
`lookup_configuration_value`) and `wingkit.configs.jsonpath`
(`set_value_at_path`, `set_at_pathway`, `iterate_over_json`).

## Talking to the panel

```python
from wingkit.remote.servers import PanelClient

panel = PanelClient("https://panel.example.com", token_id="node-id", token="token")

for server in panel.get_servers(50):
    print(server.uuid)

panel.set_installation_status("some-uuid", True)
```

`PanelClient` sends requests to `<base>/api/remote` with a
`Bearer <token_id>.<token>` authorization header. `get_servers` fetches
the first page and then the remaining pages in parallel threads. Other
calls cover server configuration and installation scripts, installation,
archive, transfer and import status, SFTP credential validation, backup
upload URLs and status, restoration status and activity logs. Responses
are returned as the dataclasses in `wingkit.remote.models`.

Transport failures and 5xx responses are retried with randomised
exponential backoff for up to about 30 seconds (or `max_attempts`
retries when that is above zero); 4xx responses fail at once. Failures
from the panel are raised as `wingkit.remote.errors.RequestError`, which
carries `code`, `status`, `detail` and `status_code`. A 4xx answer to
`validate_sftp_credentials` raises `SftpInvalidCredentialsError`.

## What this package does not do

It is a library only: it has no command, runs no daemon or HTTP server,
and does not load the daemon's own configuration file. The configuration
that `{{config.*}}` references resolve against must be passed in as a
mapping.

## Running the tests

```
pip install wingkit[test]
pytest
```