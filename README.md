# hsctl

Building blocks for a mesh VPN control server: MagicDNS root domains and
per-machine DNS settings, DERP relay maps, a STUN binding responder, a small
SQLite key-value store, ACL tag checks, and the table and output formatting
used by an admin command line.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Modules

- `hsctl.dns` – `generate_magic_dns_root_domains(prefixes)` returns the reverse
  DNS zones (`in-addr.arpa.` and `ip6.arpa.`) covering a list of address
  prefixes; `generate_ipv4_dns_root_domain` and `generate_ipv6_dns_root_domain`
  handle one prefix each. `get_map_response_dns_config(dns_config, base_domain,
  machine, peers)` returns, when MagicDNS is on (`DNSConfig.proxied`), a copy of
  the configuration with the machine's namespace added as a search domain and a
  route for every namespace among the machine and its peers; otherwise it
  returns the configuration unchanged. The data types are `Namespace`,
  `Machine` and `DNSConfig`.
- `hsctl.store` – `KeyValueStore` keeps key/value pairs in an SQLite table
  (in memory by default, or at a given path) and records `db_version` when
  opened. It has `get_value`, `set_value`, `ping` and `close`, and works as a
  context manager. `get_value` raises `ValueNotFoundError` for a missing key.
  `encode_json_column` and `decode_json_column` handle JSON-encoded column
  values; IP addresses and networks are encoded as strings.
- `hsctl.derp` – `DERPMap`, `DERPRegion`, `DERPNode` and `DERPConfig`.
  `load_derp_map_from_path` reads a YAML file, `load_derp_map_from_url` fetches
  JSON over HTTP, `merge_derp_maps` merges regions (a later map wins on a shared
  region ID), and `get_derp_map(cfg)` loads and merges every configured source,
  stopping at the first path and at the first URL that fails.
  `generate_region_local_derp` describes a local relay as a one-node region,
  `derp_probe_response(method)` answers latency probes, and
  `bootstrap_dns_entries(derp_map, resolve)` resolves each node's host name,
  leaving out failed lookups.
- `hsctl.stun` – `is_stun`, `parse_binding_request` (returns the transaction
  ID, checks a FINGERPRINT attribute when present, raises `StunError`),
  `binding_response(txid, address, port)` (builds a success response with an
  XOR-MAPPED-ADDRESS), and `serve_stun(sock, stop_event)`, a blocking loop that
  answers binding requests on a UDP socket until the event is set.
- `hsctl.tags` – `validate_tag(tag)` raises `InvalidTagError` unless the tag
  starts with `tag:`, is lower case and contains no whitespace.
- `hsctl.cli.output` – `success_output` and `error_output` print a result as
  plain text or as `json`, `json-line` or `yaml`; `render_table` lays out rows
  as aligned columns; `colour_time` and the `light_*` helpers add ANSI colours.
- `hsctl.cli.nodes` – `nodes_to_table` builds the rows of a machine listing
  from `NodeRecord` values; `node_key_short_string` gives the short form of a
  node key.
- `hsctl.cli.listings` – `routes_to_table`, `preauthkeys_to_table` and
  `namespaces_to_table` build rows from `RouteSet`, `PreAuthKeyRecord` and
  `NamespaceRecord` values.
- `hsctl.cli.main` – the `hsctl` command.

## Examples

```python
import ipaddress
from hsctl.dns import generate_magic_dns_root_domains

generate_magic_dns_root_domains([ipaddress.ip_network("fd7a:115c:a1e0::/48")])
# ['0.e.1.a.c.5.1.1.a.7.d.f.ip6.arpa.']
```

```python
from hsctl.store import KeyValueStore, ValueNotFoundError

with KeyValueStore() as store:
    store.set_value("greeting", "hello")
    store.get_value("greeting")     # 'hello'
    store.get_value("db_version")   # '1'
    try:
        store.get_value("missing")
    except ValueNotFoundError:
        pass
```

```python
from hsctl.tags import validate_tag, InvalidTagError

validate_tag("tag:servers")        # accepted
try:
    validate_tag("servers")
except InvalidTagError as exc:
    print(exc)                     # tag must start with the string 'tag:'
```

```python
from hsctl.cli.listings import RouteSet, routes_to_table
from hsctl.cli.output import render_table

routes = RouteSet(
    advertised_routes=["10.0.0.0/24", "192.168.1.0/24"],
    enabled_routes=["10.0.0.0/24"],
)
print(render_table(routes_to_table(routes)))
# Route          | Enabled
# 10.0.0.0/24    | true
# 192.168.1.0/24 | false
```

## Command line

```
hsctl version
hsctl version -o json
```

`hsctl version` prints the version. With `-o json`, `-o json-line` or
`-o yaml` it prints `{"version": ...}` in that format, and logging is
silenced so the output stays valid. The command also accepts `-c/--config`
and `--force`. Log colour is turned off when standard error is not a
terminal, when `TERM` is `dumb`, or when `NO_COLOR` is set.

## What the package does not do

- There is no control server: nothing serves the coordination protocol, the
  admin API or the DERP relay itself. `serve_stun` is the only network loop,
  and you open and bind its socket yourself.
- The command line has only the `version` command. There are no commands to
  manage nodes, namespaces, routes or pre-auth keys, and no client that talks
  to a running server; the table builders in `hsctl.cli` format data you
  already have.
- No configuration file is read: `-c/--config` is accepted but not loaded.
- Storage is limited to the key-value table; there are no tables for
  machines, namespaces or keys.