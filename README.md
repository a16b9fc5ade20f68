# omc

`omc` reads the files an OpenShift must-gather collected: it keeps track of
which must-gather and project you are working in, prints container logs
(optionally filtered by level), lists Kubernetes objects from YAML files as
tables or as JSON/YAML, and shows an API resource catalogue.

## Installation

```
pip install .
```

This installs the `omc` command. The only runtime dependency is PyYAML.

## Configuration and contexts

Contexts are stored in a JSON file, `~/.omc.json` by default. Use
`--config FILE` to point at another file; `-n/--namespace` overrides the
project of the current context for one command. If `~/.omc.json` does not
exist it is created empty.

Select a must-gather directory:

```
omc use /path/to/must-gather
omc use --id mycase /path/to/must-gather
omc use --id mycase
```

The path must be a directory. `omc use` looks for the directory that holds
`namespaces/`: a directory containing a single subdirectory (and no
`timestamp` file) is descended into; a directory with a `timestamp` file must
contain exactly one subdirectory, otherwise an error is reported. A context
matching the given id or path becomes current; an unknown one is added with
the project `default` and, without `--id`, a random 8-character id.

With no arguments, `omc use` prints the current must-gather and namespace.

Show or change the project of the current context:

```
omc project
omc project openshift-etcd
```

## Reading logs

```
omc logs etcd-master-0 -c etcd
omc logs pod/etcd-master-0 etcd --previous
omc logs etcd-master-0 --all-containers
omc logs etcd-master-0 -c etcd -l error,warning
```

Logs are read from
`namespaces/<ns>/pods/<pod>/<container>/<container>/logs/current.log`
(`previous.log` with `-p/--previous`). A pod with a single container needs no
container name; `--all-containers` prints every regular container of the pod.
`-l/--log-level` takes a comma-separated list of `info`, `warning` and
`error` and keeps only CRI log lines (`TIMESTAMP STREAM ...`) whose second
field starts with `I`, `W` or `E` respectively.

## Inspecting arbitrary objects

`omc uget` (alias `omc dget`) lists Kubernetes objects from a YAML file, or
from every file directly inside a directory. Files holding a list with
`items` are expanded into their objects.

```
omc uget --path ./objects
omc uget --path ./objects my-deployment
omc uget --path ./objects --kind deployment,service -l app=web
omc uget --path ./objects --show-labels
omc uget --path ./objects -o yaml
omc uget --path ./objects -o 'jsonpath={.metadata.name}'
omc uget --path ./objects --columns columns.yaml
```

`-o` accepts `json`, `yaml` or `jsonpath=TEMPLATE`; without it a table with
`KIND` and `NAME` columns is printed. The selector supports `key=value`,
`key==value`, `key!=value`, `key` and `!key`, comma separated.

A columns file replaces the default columns:

```yaml
columns:
  - name: NAME
    jsonPath: .metadata.name
    type: string
  - name: AGE
    jsonPath: .metadata.creationTimestamp
    type: date
```

A column of type `date` shows the object's age at the time its file was last
modified.

## Listing API resources

```
omc api-resources --source https://example.com/api-resources.yaml
omc api-resources -o wide --source https://example.com/api-resources.yaml
```

The catalogue is a YAML document with a `resources` list (`name`,
`shortNames`, `apiVersion`, `namespaced`, `kind`, `supportedSince`). Its
location comes from `--source` or the `OMC_API_RESOURCES_URL` environment
variable; there is no built-in default. `-o wide` adds the `SINCE` column.

## Version

```
omc version
```

## Using it as a library

- `omc.config`: `Config`, `Context`, `load_config`, `save_config`,
  `set_project`, `use_context`, `find_must_gather`, `random_id`.
- `omc.crilog`: `parse_cri_line`, `filter_log_lines`, `filter_log_file`.
- `omc.pods`: `resolve_must_gather_root`, `resolve_logs_target`,
  `container_log_paths`, `print_pod_logs`.
- `omc.resources`: `Resource`, `parse_resource_list`, `resource_table`,
  `format_table`, `fetch_resources`.
- `omc.uget`: `uget`, `get_from_json_path`, `to_json_path`, `match_kind`,
  `match_labels`, `load_columns`, `collect_object_files`.
- `omc.cli`: `main`, `build_parser`, `init_config`.

## What it does not do

`omc` has no `get`, `describe`, `delete`, `alert` or `etcd` commands: it does
not render typed views of pods, nodes or other resources, cannot remove
contexts from the config file, and does not read alerts or etcd data. Use
`omc uget` to list objects from the YAML files directly.