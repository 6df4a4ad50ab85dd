# clashctl

A command-line client and small Python library for the RESTful
external-controller API of a Clash proxy.

## Installation

    pip install .

## Command line

Register a server and make it the active one. You are asked for the URL of
the API and for its secret (leave it empty for none):

    clashctl server add

The configuration is kept in `~/.config/clashctl/config.ron`. Use
`--config-dir` to choose another directory, or `-c/--config-path` to choose
the file itself; the two cannot be combined.

Other server commands:

    clashctl server use     # pick the active server
    clashctl server list    # show configured servers, marking the active one (alias: ls)
    clashctl server del     # remove servers after confirmation

Working with proxies on the active server:

    clashctl proxy list                     # proxy groups with their members
    clashctl proxy list --plain             # every proxy on its own line
    clashctl proxy list --sort-by name --sort-order descendant
    clashctl proxy list -e direct -e reject # leave out some types
    clashctl proxy list -i selector         # show only some types
    clashctl proxy use                      # change the selected proxy of a group

`--sort-by` takes `type`, `name` or `delay` (default `delay`; unreachable
proxies go last), `--sort-order` takes `ascendant` or `descendant` (default
`ascendant`), and `-r/--reverse` reverses the listing. In the delay column
`?` means the last test failed and `-` means the proxy was never tested.

Global options, given before the command:

- `-v/--verbose`: log at DEBUG level instead of INFO
- `-t/--timeout`: request timeout in milliseconds (default 2000)
- `--test-url`: URL used for delay tests

Run without a command, `clashctl` prints its help. Errors are printed to
standard error and the exit status is 1.

## Library

```python
from clashctl.api import Clash

clash = Clash.builder("http://127.0.0.1:9090").with_secret("secret").build()

proxies = clash.get_proxies()
for name, proxy in proxies.groups():
    print(name, proxy.proxy_type, proxy.now)

print(clash.get_version())

traffic = clash.get_traffic()
try:
    for sample in traffic:
        print(sample.up, sample.down)
finally:
    traffic.close()
```

`Clash` also offers `get_configs`, `reload_configs`, `get_rules`,
`get_proxy`, `get_proxy_delay` (timeout in milliseconds),
`set_proxygroup_selected`, `get_connections`, `close_connections`,
`close_one_connection` and the streaming `get_log`. Streams are `LongHaul`
objects: iterators that can also be used as context managers. The response
types live in `clashctl.models`, and sort methods for proxies and rules in
`clashctl.sort`.

Failures are raised as subclasses of `clashctl.errors.ClashError`, such as
`FailedResponse` for HTTP error codes and `BadResponseFormat` for bodies
that cannot be parsed. Problems with the config file raise subclasses of
`clashctl.errors.InteractiveError`.

## What it does not do

There is no full-screen terminal interface and no generation of shell
completion scripts; the command line offers only the `proxy` and `server`
commands above.

## Running the tests

    pip install .[test]
    pytest